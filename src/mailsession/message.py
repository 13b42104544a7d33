"""Message handles addressed by stable UID."""

import weakref
from typing import TYPE_CHECKING

from mailsession.exceptions import MailSessionError, MessageNotFoundError

if TYPE_CHECKING:
    from mailsession.session import TransportSession


class Message:
    """A message in the selected mailbox, identified by its UID.

    The handle keeps only a weak reference to the session that issued it, so
    it never keeps a connection alive. Operations on a handle whose session
    has been garbage collected raise MailSessionError.
    """

    def __init__(self, uid: int, session: "TransportSession") -> None:
        self._uid = uid
        self._session_ref = weakref.ref(session)

    @property
    def uid(self) -> int:
        return self._uid

    @property
    def session(self) -> "TransportSession | None":
        return self._session_ref()

    def fetch_raw(self) -> bytes:
        """Fetch the raw RFC 822 content of the message.

        Raises:
            MessageNotFoundError: If the UID no longer exists in the mailbox.
            MailSessionError: If the owning session no longer exists.
        """
        session = self._require_session()
        raw = session.transport.fetch_raw(session.handle(), self._uid)
        if raw is None:
            raise MessageNotFoundError(uid=self._uid)
        return raw

    def delete(self) -> bool:
        """Mark the message as deleted.

        It is removed for good on the next expunge or ``close(purge=True)``.
        """
        session = self._require_session()
        return session.transport.mark_deleted(session.handle(), self._uid)

    def _require_session(self) -> "TransportSession":
        session = self._session_ref()
        if session is None:
            raise MailSessionError(f"Session for message UID {self._uid} no longer exists")
        return session

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self._uid == other._uid and self.session is other.session

    def __hash__(self) -> int:
        return hash(self._uid)

    def __repr__(self) -> str:
        return f"Message(uid={self._uid})"
