"""Abstract base class for mail transports."""

from abc import ABC, abstractmethod
from enum import IntFlag
from typing import Any


class OpenOption(IntFlag):
    """Option bits passed to :meth:`MailTransport.open` and :meth:`MailTransport.reopen`."""

    NONE = 0
    DEBUG = 1
    READONLY = 2
    HALFOPEN = 64


class MailTransport(ABC):
    """Primitive operations a session needs from the underlying mail library.

    Handles returned by :meth:`open` are opaque to callers; only the
    transport that issued a handle may interpret it. Connection strings use
    the ``{host[:port][/service][/flag]...}[mailbox]`` format.
    """

    @abstractmethod
    def open(
        self,
        connection_string: str,
        username: str | None,
        password: str | None,
        options: int,
        retries: int,
    ) -> Any | None:
        """Connect, authenticate and select the mailbox in the connection string.

        Returns:
            A new handle, or None on failure (see :meth:`last_error`).
        """
        ...

    @abstractmethod
    def reopen(self, handle: Any, connection_string: str, options: int, retries: int) -> bool:
        """Point an existing handle at a new connection string.

        Returns:
            True on success, False on failure (see :meth:`last_error`).
        """
        ...

    @abstractmethod
    def close(self, handle: Any, purge: bool = False) -> None:
        """Close the handle, expunging deleted messages first when ``purge`` is set."""
        ...

    @abstractmethod
    def count(self, handle: Any) -> int:
        """Return the number of messages in the selected mailbox."""
        ...

    @abstractmethod
    def resolve_uid(self, handle: Any, position: int) -> int:
        """Translate a 1-based sequence position into the message's UID.

        Raises:
            MessageNotFoundError: If there is no message at that position.
        """
        ...

    @abstractmethod
    def search(self, handle: Any, criteria: str) -> list[int] | None:
        """Run a UID search with the given criteria.

        Returns:
            Matching UIDs in server order, or None if the search itself failed.
        """
        ...

    @abstractmethod
    def expunge(self, handle: Any) -> bool:
        """Permanently remove messages marked as deleted."""
        ...

    @abstractmethod
    def mailbox_exists(self, handle: Any, mailbox_spec: str) -> bool:
        """Check whether the mailbox addressed by ``{server}name`` exists."""
        ...

    @abstractmethod
    def create_mailbox(self, handle: Any, mailbox_spec: str) -> bool:
        """Create the mailbox addressed by ``{server}name``."""
        ...

    @abstractmethod
    def fetch_raw(self, handle: Any, uid: int) -> bytes | None:
        """Fetch the raw RFC 822 message with the given UID, or None if missing."""
        ...

    @abstractmethod
    def mark_deleted(self, handle: Any, uid: int) -> bool:
        """Flag the message with the given UID as deleted."""
        ...

    @abstractmethod
    def last_error(self) -> str | None:
        """Return the diagnostic message of the most recent failure."""
        ...
