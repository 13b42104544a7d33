"""Shared fixtures: an in-memory MailTransport."""

from typing import Any

import pytest

from mailsession.connection import parse_connection_string
from mailsession.exceptions import MessageNotFoundError
from mailsession.transport.base import MailTransport


class FakeHandle:
    def __init__(self, connection_string: str, options: int, retries: int) -> None:
        self.connection_string = connection_string
        self.options = options
        self.retries = retries
        self.closed = False
        self.purged = False


class FakeTransport(MailTransport):
    """Mailboxes held as ordered UID lists; records every call."""

    def __init__(self, mailboxes: dict[str, list[int]] | None = None) -> None:
        self.mailboxes = mailboxes if mailboxes is not None else {"INBOX": []}
        self.search_results: dict[str, list[int]] = {}
        self.deleted: set[int] = set()
        self.calls: list[tuple[Any, ...]] = []
        self.fail_open: str | None = None
        self.fail_reopen: str | None = None
        self.fail_search = False
        self._last_error: str | None = None

    def _uids(self, handle: FakeHandle) -> list[int]:
        name = parse_connection_string(handle.connection_string).mailbox or "INBOX"
        return self.mailboxes.setdefault(name, [])

    def open(self, connection_string, username, password, options, retries):
        self.calls.append(("open", connection_string, username, password, options, retries))
        if self.fail_open:
            self._last_error = self.fail_open
            return None
        return FakeHandle(connection_string, options, retries)

    def reopen(self, handle, connection_string, options, retries):
        self.calls.append(("reopen", handle, connection_string, options, retries))
        if self.fail_reopen:
            self._last_error = self.fail_reopen
            return False
        handle.connection_string = connection_string
        handle.options = options
        return True

    def close(self, handle, purge=False):
        self.calls.append(("close", handle, purge))
        if purge:
            self.expunge(handle)
            handle.purged = True
        handle.closed = True

    def count(self, handle):
        return len(self._uids(handle))

    def resolve_uid(self, handle, position):
        uids = self._uids(handle)
        if not 1 <= position <= len(uids):
            raise MessageNotFoundError(position=position)
        return uids[position - 1]

    def search(self, handle, criteria):
        self.calls.append(("search", criteria))
        if self.fail_search:
            self._last_error = "SEARCH command error"
            return None
        if criteria in self.search_results:
            return list(self.search_results[criteria])
        if criteria == "ALL":
            return list(self._uids(handle))
        return []

    def expunge(self, handle):
        uids = self._uids(handle)
        uids[:] = [uid for uid in uids if uid not in self.deleted]
        return True

    def mailbox_exists(self, handle, mailbox_spec):
        self.calls.append(("mailbox_exists", mailbox_spec))
        return parse_connection_string(mailbox_spec).mailbox in self.mailboxes

    def create_mailbox(self, handle, mailbox_spec):
        self.calls.append(("create_mailbox", mailbox_spec))
        self.mailboxes[parse_connection_string(mailbox_spec).mailbox] = []
        return True

    def fetch_raw(self, handle, uid):
        if uid not in self._uids(handle):
            return None
        return f"Subject: message {uid}\r\n\r\nbody".encode()

    def mark_deleted(self, handle, uid):
        if uid not in self._uids(handle):
            return False
        self.deleted.add(uid)
        return True

    def last_error(self):
        return self._last_error


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport({"INBOX": [101, 102, 105, 110, 111], "Archive": [7, 9]})
