"""Lifecycle of the single transport handle owned by a session."""

import logging
from enum import Enum
from types import TracebackType
from typing import Any

from pydantic import SecretStr

from mailsession.connection import ServerAddress, connection_string, server_specification
from mailsession.exceptions import ServerConnectionError, ValidationError
from mailsession.flags import FlagSet
from mailsession.transport.base import MailTransport

logger = logging.getLogger(__name__)

# Connection attempts requested from the transport on open and reopen.
CONNECT_RETRIES = 1


class SessionState(str, Enum):
    """Where a TransportSession is in its lifecycle."""

    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


class TransportSession:
    """Owns at most one transport handle and reconnects it when the mailbox changes.

    The handle is opened lazily on first use. Selecting a different mailbox
    while a handle is open reopens that same handle; a fresh one is never
    created alongside it.
    """

    def __init__(
        self,
        transport: MailTransport,
        address: ServerAddress,
        flags: FlagSet,
        mailbox: str | None = None,
    ) -> None:
        """Initialize the session without connecting.

        Args:
            transport: Transport supplying the protocol primitives.
            address: Server host, port and service.
            flags: Connection flags, read each time a connection string is built.
            mailbox: Initially selected mailbox, if any.
        """
        self._transport = transport
        self._address = address
        self._flags = flags
        self._mailbox = mailbox
        self._username: str | None = None
        self._password: SecretStr | None = None
        self._options = 0
        self._handle: Any | None = None
        self._state = SessionState.UNOPENED

    @property
    def transport(self) -> MailTransport:
        return self._transport

    @property
    def address(self) -> ServerAddress:
        return self._address

    @property
    def flags(self) -> FlagSet:
        return self._flags

    @property
    def mailbox(self) -> str | None:
        return self._mailbox

    @property
    def options(self) -> int:
        return self._options

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def set_authentication(self, username: str, password: str | SecretStr) -> None:
        """Set the credentials used the next time a handle is opened."""
        self._username = username
        self._password = password if isinstance(password, SecretStr) else SecretStr(password)

    def set_options(self, bitmask: int) -> None:
        """Store the option bitmask for future open and reopen calls.

        Raises:
            ValidationError: If ``bitmask`` is not a non-negative integer.
        """
        if isinstance(bitmask, bool) or not isinstance(bitmask, int) or bitmask < 0:
            raise ValidationError(
                f"Options must be a non-negative integer bitmask, got {bitmask!r}", value=bitmask
            )
        self._options = int(bitmask)

    def server_specification(self) -> str:
        return server_specification(self._address, self._flags)

    def connection_string(self) -> str:
        return connection_string(self._address, self._flags, self._mailbox)

    def select_mailbox(self, name: str | None = None) -> None:
        """Select a mailbox, reopening the live handle immediately if there is one.

        Raises:
            ServerConnectionError: If the reopen fails.
        """
        self._mailbox = name
        if self._handle is not None:
            self._reopen()

    def handle(self) -> Any:
        """Return the live handle, connecting first if necessary.

        Raises:
            ServerConnectionError: If the connection cannot be opened.
        """
        if self._handle is None:
            self._open()
        return self._handle

    def close(self, purge: bool = False) -> None:
        """Close the handle if one is open.

        Args:
            purge: Permanently remove messages marked for deletion before closing.
        """
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        self._state = SessionState.CLOSED
        logger.info("Closing connection (host=%s, purge=%s)", self._address.host, purge)
        self._transport.close(handle, purge)

    def _open(self) -> None:
        if self._handle is not None:
            return

        logger.info(
            "Opening connection (host=%s, port=%s, mailbox=%s)",
            self._address.host,
            self._address.port,
            self._mailbox,
        )
        password = self._password.get_secret_value() if self._password else None
        handle = self._transport.open(
            self.connection_string(),
            self._username,
            password,
            self._options,
            CONNECT_RETRIES,
        )
        if handle is None:
            diagnostic = self._transport.last_error()
            logger.warning("Connection failed (host=%s): %s", self._address.host, diagnostic)
            raise ServerConnectionError(diagnostic)

        self._handle = handle
        self._state = SessionState.OPEN

    def _reopen(self) -> None:
        if self._handle is None:
            return

        logger.info("Reopening connection (mailbox=%s)", self._mailbox)
        if not self._transport.reopen(
            self._handle, self.connection_string(), self._options, CONNECT_RETRIES
        ):
            diagnostic = self._transport.last_error()
            logger.warning("Reopen failed (mailbox=%s): %s", self._mailbox, diagnostic)
            handle, self._handle = self._handle, None
            self._state = SessionState.CLOSED
            self._transport.close(handle)
            raise ServerConnectionError(diagnostic)

    def __enter__(self) -> "TransportSession":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
