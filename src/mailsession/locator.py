"""Resolution of sequence positions and search criteria into message handles."""

import logging

from mailsession.exceptions import ValidationError
from mailsession.message import Message
from mailsession.session import TransportSession

logger = logging.getLogger(__name__)


def _check_limit(limit: int | None) -> None:
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 0):
        raise ValidationError(f"Limit must be a non-negative integer, got {limit!r}", value=limit)


class MessageLocator:
    """Finds messages in the selected mailbox and returns them as UID handles.

    Sequence positions are only used transiently to look up UIDs; every
    returned Message is addressed by UID so it stays valid when other
    messages are expunged or new ones arrive.
    """

    def __init__(self, session: TransportSession) -> None:
        self._session = session

    def count(self) -> int:
        """Return the number of messages in the selected mailbox."""
        session = self._session
        return session.transport.count(session.handle())

    def messages(self, limit: int | None = None) -> list[Message]:
        """Return handles for positions ``1..min(count, limit)`` in position order."""
        _check_limit(limit)
        total = self.count()
        if limit is not None:
            total = min(total, limit)
        if total < 1:
            return []

        handle = self._session.handle()
        transport = self._session.transport
        return [
            Message(transport.resolve_uid(handle, position), self._session)
            for position in range(1, total + 1)
        ]

    def message(self, position: int) -> Message:
        """Return the handle for one sequence position.

        Raises:
            MessageNotFoundError: If there is no message at ``position``.
        """
        session = self._session
        uid = session.transport.resolve_uid(session.handle(), position)
        return Message(uid, session)

    def search(self, criteria: str = "ALL", limit: int | None = None) -> list[Message]:
        """Return handles for messages matching an IMAP search expression.

        Results keep the server's order and are truncated to ``limit``. A
        search that fails on the server returns an empty list, same as one
        with no matches.
        """
        _check_limit(limit)
        session = self._session
        uids = session.transport.search(session.handle(), criteria)
        if not uids:
            if uids is None:
                logger.info(
                    "Search failed, returning no results (criteria=%s): %s",
                    criteria,
                    session.transport.last_error(),
                )
            return []

        if limit is not None:
            uids = uids[:limit]
        return [Message(uid, session) for uid in uids]

    def recent(self, limit: int | None = None) -> list[Message]:
        """Return messages flagged as recent."""
        return self.search("Recent", limit)
