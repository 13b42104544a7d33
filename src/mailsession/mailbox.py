"""Mailbox session: the object applications hold to work with one mailbox."""

import logging
from types import TracebackType
from typing import TYPE_CHECKING, Any

import pydantic
from pydantic import SecretStr

from mailsession.connection import DEFAULT_SERVICE, ServerAddress
from mailsession.exceptions import ValidationError
from mailsession.flags import FlagPolicy, FlagSet
from mailsession.locator import MessageLocator
from mailsession.message import Message
from mailsession.session import TransportSession
from mailsession.transport.base import MailTransport
from mailsession.transport.imap import ImapToolsTransport

if TYPE_CHECKING:
    from mailsession.config import Settings

logger = logging.getLogger(__name__)

# Well-known ports that imply a security flag.
_PORT_FLAGS: dict[int, str] = {143: "novalidate-cert", 993: "ssl"}


class MessageCursor:
    """Forward cursor over sequence positions ``1..count``.

    The upper bound is the message count read at the last :meth:`reset` (or
    lazily by the first :meth:`is_valid`). It is not refreshed while
    iterating, so a long-running loop sees the mailbox as it was when the
    cursor was reset. Call :meth:`reset` again to pick up changes.
    """

    def __init__(self, locator: MessageLocator) -> None:
        self._locator = locator
        self._position = 0
        self._count: int | None = None

    @property
    def position(self) -> int:
        return self._position

    @property
    def cached_count(self) -> int | None:
        return self._count

    def reset(self) -> None:
        """Refresh the cached count and move to position 1."""
        self._count = self._locator.count()
        self._position = 1
        logger.debug("Cursor reset (count=%d)", self._count)

    def is_valid(self) -> bool:
        if self._count is None:
            self._count = self._locator.count()
        return 1 <= self._position <= self._count

    def current_key(self) -> int:
        return self._position

    def current_value(self) -> Message:
        """Return the message at the current position.

        Raises:
            MessageNotFoundError: If nothing exists at the current position.
        """
        return self._locator.message(self._position)

    def advance(self) -> None:
        self._position += 1


class MailboxSession:
    """Connects to a mail server and enumerates the messages of one mailbox.

    Example:
        session = MailboxSession("mail.example.org", 993)
        session.set_authentication("bob", "secret")
        session.select_mailbox("Archive")
        for message in session.search("UNSEEN", limit=10):
            print(message.uid)
    """

    def __init__(
        self,
        host: str,
        port: int | None = 143,
        service: str = DEFAULT_SERVICE,
        *,
        transport: MailTransport | None = None,
        flag_policy: FlagPolicy | None = None,
    ) -> None:
        """Initialize the session without connecting.

        Port 143 sets ``novalidate-cert`` and port 993 sets ``ssl``.

        Args:
            host: Server hostname.
            port: Server port, or None to leave it out of the connection string.
            service: ``imap``, ``pop3`` or ``nntp``.
            transport: Transport to use. Defaults to the imap-tools transport.
            flag_policy: Secure-transport toggle and exclusive flag pairs.

        Raises:
            ValidationError: If host, port or service are invalid.
        """
        try:
            address = ServerAddress(host=host, port=port, service=service)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid server address: {e}", value=(host, port, service)) from e

        self._flags = FlagSet(flag_policy)
        if port in _PORT_FLAGS:
            self._flags.set(_PORT_FLAGS[port])

        self._session = TransportSession(transport or ImapToolsTransport(), address, self._flags)
        self._locator = MessageLocator(self._session)
        self._cursor = MessageCursor(self._locator)

    @classmethod
    def from_settings(
        cls, settings: "Settings", transport: MailTransport | None = None
    ) -> "MailboxSession":
        """Build a session from loaded settings, applying flags in configured order."""
        session = cls(
            settings.host,
            settings.port,
            settings.service,
            transport=transport or ImapToolsTransport(timeout=settings.timeout),
            flag_policy=settings.flag_policy(),
        )
        for flag, value in settings.flags.items():
            session.set_flag(flag, value)
        if settings.username:
            session.set_authentication(settings.username, settings.password or SecretStr(""))
        session.set_options(settings.options)
        if settings.mailbox:
            session.select_mailbox(settings.mailbox)
        return session

    @property
    def flags(self) -> FlagSet:
        return self._flags

    @property
    def mailbox(self) -> str | None:
        return self._session.mailbox

    @property
    def transport_session(self) -> TransportSession:
        return self._session

    @property
    def locator(self) -> MessageLocator:
        return self._locator

    @property
    def cursor(self) -> MessageCursor:
        return self._cursor

    def set_authentication(self, username: str, password: str | SecretStr) -> None:
        self._session.set_authentication(username, password)

    def set_flag(self, flag: str, value: str | bool | None = None) -> None:
        """Set, replace or remove a connection flag. See :meth:`FlagSet.set`."""
        self._flags.set(flag, value)

    def remove_flag(self, flag: str) -> None:
        self._flags.remove(flag)

    def toggle_flag(self, flag: str) -> None:
        self._flags.toggle(flag)

    def set_options(self, bitmask: int) -> None:
        self._session.set_options(bitmask)

    def server_specification(self) -> str:
        return self._session.server_specification()

    def connection_string(self) -> str:
        return self._session.connection_string()

    def select_mailbox(self, name: str | None = None) -> None:
        self._session.select_mailbox(name)

    def handle(self) -> Any:
        return self._session.handle()

    def close(self, purge: bool = False) -> None:
        self._session.close(purge)

    def count(self) -> int:
        return self._locator.count()

    def messages(self, limit: int | None = None) -> list[Message]:
        return self._locator.messages(limit)

    def message(self, position: int) -> Message:
        return self._locator.message(position)

    def search(self, criteria: str = "ALL", limit: int | None = None) -> list[Message]:
        return self._locator.search(criteria, limit)

    def recent(self, limit: int | None = None) -> list[Message]:
        return self._locator.recent(limit)

    def expunge(self) -> bool:
        """Permanently remove messages marked for deletion from the selected mailbox."""
        return self._session.transport.expunge(self._session.handle())

    def has_mailbox(self, name: str) -> bool:
        handle = self._session.handle()
        return self._session.transport.mailbox_exists(handle, self.server_specification() + name)

    def create_mailbox(self, name: str) -> bool:
        handle = self._session.handle()
        return self._session.transport.create_mailbox(handle, self.server_specification() + name)

    # Cursor over the selected mailbox

    def reset(self) -> None:
        self._cursor.reset()

    def is_valid(self) -> bool:
        return self._cursor.is_valid()

    def current_key(self) -> int:
        return self._cursor.current_key()

    def current_value(self) -> Message:
        return self._cursor.current_value()

    def advance(self) -> None:
        self._cursor.advance()

    def __enter__(self) -> "MailboxSession":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
