"""IMAP transport built on imap-tools."""

import imaplib
import re
import ssl
from typing import Any

import structlog
from imap_tools import AND, MailBox, MailBoxStartTls, MailBoxUnencrypted, MailMessageFlags
from imap_tools.errors import ImapToolsError
from pydantic import SecretStr

from mailsession.connection import ParsedConnectionString, parse_connection_string
from mailsession.exceptions import (
    MessageNotFoundError,
    ServerConnectionError,
    ValidationError,
)
from mailsession.transport.base import MailTransport, OpenOption

logger = structlog.get_logger()

# Socket timeout in seconds applied to every connection.
DEFAULT_TIMEOUT = 30.0

_UID_RE = re.compile(rb"UID (\d+)")

# Errors raised by imap-tools, imaplib and the socket layer underneath.
_IMAP_ERRORS = (ImapToolsError, imaplib.IMAP4.error, OSError)

_IMAPClient = MailBox | MailBoxUnencrypted | MailBoxStartTls

_KNOWN_FLAGS = frozenset(
    {"ssl", "tls", "notls", "validate-cert", "novalidate-cert", "readonly", "debug", "user", "authuser"}
)


def _flag_names(flags: list[str]) -> dict[str, str | None]:
    names: dict[str, str | None] = {}
    for flag in flags:
        name, sep, value = flag.partition("=")
        names[name] = value if sep else None
    return names


def _server_key(parsed: ParsedConnectionString) -> tuple[Any, ...]:
    return (parsed.host, parsed.port, parsed.service, tuple(parsed.flags))


class ImapHandle:
    """A live imap-tools mailbox together with the server it points at.

    Reopening against a different server replaces ``client`` in place, so a
    session always holds the same handle object.
    """

    def __init__(self, server: ParsedConnectionString, username: str, password: SecretStr) -> None:
        self.server = server
        self.username = username
        self.password = password
        self.client: _IMAPClient | None = None
        self.selected: str | None = None

    @property
    def is_connected(self) -> bool:
        return self.client is not None


class ImapToolsTransport(MailTransport):
    """MailTransport for the ``imap`` service using imap-tools.

    Flags honoured: ``ssl`` (implicit TLS), ``tls`` (STARTTLS), ``notls``,
    ``validate-cert``/``novalidate-cert``, ``readonly``, ``debug`` and
    ``user=<name>``. Other flags are accepted and ignored.
    """

    def __init__(self, timeout: float | None = DEFAULT_TIMEOUT) -> None:
        """Initialize the transport.

        Args:
            timeout: Socket timeout in seconds for every connection it opens.
                None blocks without limit.
        """
        self._timeout = timeout
        self._last_error: str | None = None

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def last_error(self) -> str | None:
        return self._last_error

    def open(
        self,
        connection_string: str,
        username: str | None,
        password: str | None,
        options: int,
        retries: int,
    ) -> ImapHandle | None:
        parsed = self._parse(connection_string)
        if parsed is None:
            return None

        handle = ImapHandle(parsed, username or "", SecretStr(password or ""))
        if not self._connect(handle, options, retries):
            return None
        if not self._select(handle, parsed.mailbox, options):
            self._logout(handle)
            return None
        return handle

    def reopen(self, handle: ImapHandle, connection_string: str, options: int, retries: int) -> bool:
        parsed = self._parse(connection_string)
        if parsed is None:
            return False

        if handle.is_connected and _server_key(parsed) == _server_key(handle.server):
            handle.server = parsed
            return self._select(handle, parsed.mailbox, options)

        logger.info("Reconnecting to a different server", host=parsed.host, port=parsed.port)
        self._logout(handle)
        handle.server = parsed
        if not self._connect(handle, options, retries):
            return False
        return self._select(handle, parsed.mailbox, options)

    def close(self, handle: ImapHandle, purge: bool = False) -> None:
        if handle.client is None:
            return
        if purge and handle.selected is not None:
            try:
                handle.client.expunge()
            except _IMAP_ERRORS as e:
                self._last_error = str(e)
                logger.warning("Expunge before close failed", error=str(e))
        self._logout(handle)

    def count(self, handle: ImapHandle) -> int:
        client = self._require_client(handle)
        if handle.selected is None:
            return 0
        # NOOP lets the server report new EXISTS counts for the selected
        # mailbox. SELECT flushes the previous mailbox's responses, so the
        # last EXISTS always matches the sequence numbers FETCH resolves.
        try:
            client.client.noop()
        except _IMAP_ERRORS as e:
            raise self._connection_error(e) from e

        exists = client.client.untagged_responses.get("EXISTS")
        if not exists:
            self._last_error = f"No EXISTS response for {handle.selected}"
            logger.error("IMAP operation failed", error=self._last_error)
            raise ServerConnectionError(self._last_error)
        return int(exists[-1])

    def resolve_uid(self, handle: ImapHandle, position: int) -> int:
        client = self._require_client(handle)
        if position < 1:
            raise MessageNotFoundError(position=position)
        try:
            typ, data = client.client.fetch(str(position), "(UID)")
        except imaplib.IMAP4.abort as e:
            raise self._connection_error(e) from e
        except imaplib.IMAP4.error as e:
            self._last_error = str(e)
            raise MessageNotFoundError(position=position) from e
        except OSError as e:
            raise self._connection_error(e) from e

        if typ == "OK":
            for item in data:
                line = item[0] if isinstance(item, tuple) else item
                if isinstance(line, bytes):
                    match = _UID_RE.search(line)
                    if match:
                        return int(match.group(1))
        raise MessageNotFoundError(position=position)

    def search(self, handle: ImapHandle, criteria: str) -> list[int] | None:
        client = self._require_client(handle)
        try:
            uids = client.uids(criteria)
        except _IMAP_ERRORS as e:
            self._last_error = str(e)
            logger.warning("UID search failed", criteria=criteria, error=str(e))
            return None
        return [int(uid) for uid in uids]

    def expunge(self, handle: ImapHandle) -> bool:
        client = self._require_client(handle)
        try:
            client.expunge()
        except ImapToolsError as e:
            self._last_error = str(e)
            return False
        except (imaplib.IMAP4.error, OSError) as e:
            raise self._connection_error(e) from e
        return True

    def mailbox_exists(self, handle: ImapHandle, mailbox_spec: str) -> bool:
        client = self._require_client(handle)
        name = self._mailbox_name(mailbox_spec)
        try:
            return client.folder.exists(name)
        except _IMAP_ERRORS as e:
            raise self._connection_error(e) from e

    def create_mailbox(self, handle: ImapHandle, mailbox_spec: str) -> bool:
        client = self._require_client(handle)
        name = self._mailbox_name(mailbox_spec)
        try:
            client.folder.create(name)
        except ImapToolsError as e:
            self._last_error = str(e)
            logger.warning("Mailbox creation failed", mailbox=name, error=str(e))
            return False
        except (imaplib.IMAP4.error, OSError) as e:
            raise self._connection_error(e) from e
        return True

    def fetch_raw(self, handle: ImapHandle, uid: int) -> bytes | None:
        client = self._require_client(handle)
        try:
            messages = list(client.fetch(AND(uid=str(uid)), mark_seen=False))
        except _IMAP_ERRORS as e:
            raise self._connection_error(e) from e
        if not messages:
            return None
        return messages[0].obj.as_bytes()

    def mark_deleted(self, handle: ImapHandle, uid: int) -> bool:
        client = self._require_client(handle)
        try:
            client.flag(str(uid), MailMessageFlags.DELETED, True)
        except ImapToolsError as e:
            self._last_error = str(e)
            return False
        except (imaplib.IMAP4.error, OSError) as e:
            raise self._connection_error(e) from e
        return True

    def _parse(self, connection_string: str) -> ParsedConnectionString | None:
        try:
            parsed = parse_connection_string(connection_string)
        except ValidationError as e:
            self._last_error = str(e)
            return None
        if parsed.service != "imap":
            self._last_error = f"Unsupported service: {parsed.service}"
            return None
        return parsed

    def _connect(self, handle: ImapHandle, options: int, retries: int) -> bool:
        """Create the imap-tools mailbox and log in, trying up to ``retries`` times."""
        server = handle.server
        flags = _flag_names(server.flags)
        username = flags.get("user") or handle.username

        for attempt in range(1, max(retries, 1) + 1):
            logger.info("Connecting to IMAP server", host=server.host, port=server.port, attempt=attempt)
            try:
                client = self._create_client(server.host, server.port, flags)
                if options & OpenOption.DEBUG or "debug" in flags:
                    client.client.debug = 4
                client.login(username, handle.password.get_secret_value(), initial_folder=None)
            except _IMAP_ERRORS as e:
                self._last_error = str(e)
                logger.warning("IMAP login failed", host=server.host, attempt=attempt, error=str(e))
                continue
            handle.client = client
            handle.selected = None
            return True
        return False

    def _create_client(self, host: str, port: int | None, flags: dict[str, str | None]) -> _IMAPClient:
        for name in flags:
            if name not in _KNOWN_FLAGS:
                logger.debug("Ignoring unsupported flag", flag=name)

        # Sockets take IPv6 literals without the brackets.
        host = host.removeprefix("[").removesuffix("]")

        if "ssl" in flags:
            return MailBox(
                host,
                port=port or 993,
                timeout=self._timeout,
                ssl_context=self._ssl_context(flags),
            )
        if "tls" in flags:
            return MailBoxStartTls(
                host,
                port=port or 143,
                timeout=self._timeout,
                ssl_context=self._ssl_context(flags),
            )
        return MailBoxUnencrypted(host, port=port or 143, timeout=self._timeout)

    @staticmethod
    def _ssl_context(flags: dict[str, str | None]) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if "novalidate-cert" in flags:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _select(self, handle: ImapHandle, mailbox: str | None, options: int) -> bool:
        if options & OpenOption.HALFOPEN:
            handle.selected = None
            return True

        client = self._require_client(handle)
        folder = mailbox or "INBOX"
        readonly = bool(options & OpenOption.READONLY) or "readonly" in _flag_names(handle.server.flags)
        try:
            client.folder.set(folder, readonly=readonly)
        except _IMAP_ERRORS as e:
            self._last_error = str(e)
            logger.warning("Mailbox selection failed", mailbox=folder, error=str(e))
            return False
        handle.selected = folder
        return True

    def _logout(self, handle: ImapHandle) -> None:
        if handle.client is None:
            return
        try:
            handle.client.logout()
        except _IMAP_ERRORS:
            logger.debug("IMAP logout failed (connection may already be closed)")
        handle.client = None
        handle.selected = None

    def _require_client(self, handle: ImapHandle) -> _IMAPClient:
        if handle.client is None:
            raise ServerConnectionError("Handle is not connected")
        return handle.client

    def _mailbox_name(self, mailbox_spec: str) -> str:
        try:
            parsed = parse_connection_string(mailbox_spec)
        except ValidationError:
            return mailbox_spec
        return parsed.mailbox or "INBOX"

    def _connection_error(self, error: Exception) -> ServerConnectionError:
        self._last_error = str(error)
        logger.error("IMAP operation failed", error=str(error))
        return ServerConnectionError(self._last_error)
