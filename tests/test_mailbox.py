"""Tests for MailboxSession and MessageCursor."""

import pytest

from mailsession.exceptions import MessageNotFoundError, ServerConnectionError, ValidationError
from mailsession.flags import FlagPolicy
from mailsession.mailbox import MailboxSession
from mailsession.transport.imap import DEFAULT_TIMEOUT, ImapToolsTransport


@pytest.fixture
def mailbox(transport) -> MailboxSession:
    session = MailboxSession("mail.example.org", 993, transport=transport)
    session.set_authentication("bob", "secret")
    return session


class TestConstruction:
    def test_port_993_sets_ssl(self, transport) -> None:
        session = MailboxSession("mail.example.org", 993, transport=transport)
        assert list(session.flags) == ["ssl"]
        assert session.server_specification() == "{mail.example.org:993/ssl}"

    def test_port_143_sets_novalidate_cert(self, transport) -> None:
        session = MailboxSession("mail.example.org", transport=transport)
        assert session.server_specification() == "{mail.example.org:143/novalidate-cert}"

    def test_other_port_sets_no_flags(self, transport) -> None:
        session = MailboxSession("pop.example.org", 110, "pop3", transport=transport)
        assert session.server_specification() == "{pop.example.org:110/pop3}"

    def test_no_port(self, transport) -> None:
        session = MailboxSession("mail.example.org", None, transport=transport)
        assert session.server_specification() == "{mail.example.org}"

    def test_port_flag_dropped_when_ssl_disabled(self, transport) -> None:
        session = MailboxSession(
            "mail.example.org", 993, transport=transport, flag_policy=FlagPolicy(ssl_enabled=False)
        )
        assert session.server_specification() == "{mail.example.org:993}"

    def test_invalid_address(self, transport) -> None:
        with pytest.raises(ValidationError):
            MailboxSession("mail.example.org", 70000, transport=transport)
        with pytest.raises(ValidationError):
            MailboxSession("mail.example.org", 993, "smtp", transport=transport)

    def test_default_transport(self) -> None:
        session = MailboxSession("mail.example.org")
        transport = session.transport_session.transport
        assert isinstance(transport, ImapToolsTransport)
        assert transport.timeout == DEFAULT_TIMEOUT

    def test_ipv6_literal_host(self, transport) -> None:
        session = MailboxSession("[2001:db8::5]", 993, transport=transport)
        session.select_mailbox("INBOX")
        assert session.connection_string() == "{[2001:db8::5]:993/ssl}INBOX"


class TestFlagsAndStrings:
    def test_set_flag_and_connection_string(self, mailbox: MailboxSession) -> None:
        mailbox.set_flag("novalidate-cert")
        mailbox.set_flag("authuser", "admin")
        mailbox.select_mailbox("Archive")

        assert mailbox.connection_string() == (
            "{mail.example.org:993/ssl/novalidate-cert/authuser=admin}Archive"
        )

    def test_toggle_and_remove(self, mailbox: MailboxSession) -> None:
        mailbox.toggle_flag("readonly")
        mailbox.remove_flag("ssl")

        assert mailbox.server_specification() == "{mail.example.org:993/readonly}"

    def test_mailbox_property(self, mailbox: MailboxSession) -> None:
        assert mailbox.mailbox is None
        mailbox.select_mailbox("Archive")
        assert mailbox.mailbox == "Archive"


class TestOperations:
    def test_select_mailbox_while_open_reopens(self, mailbox: MailboxSession, transport) -> None:
        mailbox.handle()
        mailbox.select_mailbox("Archive")

        kinds = [call[0] for call in transport.calls]
        assert kinds.count("open") == 1
        assert kinds[-1] == "reopen"
        assert transport.calls[-1][2].endswith("}Archive")
        assert mailbox.count() == 2

    def test_messages_with_limit(self, mailbox: MailboxSession) -> None:
        messages = mailbox.messages(limit=3)
        assert [m.uid for m in messages] == [101, 102, 105]

    def test_message(self, mailbox: MailboxSession) -> None:
        assert mailbox.message(5).uid == 111

    def test_search_and_recent(self, mailbox: MailboxSession, transport) -> None:
        transport.search_results["Recent"] = [111]

        assert [m.uid for m in mailbox.search("ALL", limit=2)] == [101, 102]
        assert [m.uid for m in mailbox.recent()] == [111]

    def test_has_mailbox_uses_server_specification(
        self, mailbox: MailboxSession, transport
    ) -> None:
        assert mailbox.has_mailbox("Archive")
        assert not mailbox.has_mailbox("Missing")
        assert ("mailbox_exists", "{mail.example.org:993/ssl}Archive") in transport.calls

    def test_create_mailbox(self, mailbox: MailboxSession, transport) -> None:
        mailbox.select_mailbox("INBOX")
        assert mailbox.create_mailbox("Receipts")

        assert ("create_mailbox", "{mail.example.org:993/ssl}Receipts") in transport.calls
        assert mailbox.has_mailbox("Receipts")

    def test_expunge(self, mailbox: MailboxSession, transport) -> None:
        mailbox.message(1).delete()
        assert mailbox.expunge()
        assert mailbox.count() == 4

    def test_close_with_purge(self, mailbox: MailboxSession, transport) -> None:
        mailbox.message(2).delete()
        mailbox.close(purge=True)

        assert transport.mailboxes["INBOX"] == [101, 105, 110, 111]

    def test_context_manager(self, transport) -> None:
        with MailboxSession("mail.example.org", 993, transport=transport) as session:
            session.count()

        assert transport.calls[-1][0] == "close"

    def test_connection_failure_propagates(self, mailbox: MailboxSession, transport) -> None:
        transport.fail_open = "Connection refused"
        with pytest.raises(ServerConnectionError, match="Connection refused"):
            mailbox.messages()


class TestCursor:
    def test_iterates_all_positions(self, mailbox: MailboxSession) -> None:
        seen = []
        mailbox.reset()
        while mailbox.is_valid():
            seen.append((mailbox.current_key(), mailbox.current_value().uid))
            mailbox.advance()

        assert seen == [(1, 101), (2, 102), (3, 105), (4, 110), (5, 111)]

    def test_reset_on_non_empty_mailbox_is_valid(self, mailbox: MailboxSession) -> None:
        mailbox.reset()
        assert mailbox.is_valid()
        assert mailbox.current_key() == 1

    def test_reset_on_empty_mailbox_is_invalid(self, mailbox: MailboxSession, transport) -> None:
        transport.mailboxes["INBOX"] = []
        mailbox.reset()
        assert not mailbox.is_valid()

    def test_advance_past_end_is_invalid(self, mailbox: MailboxSession) -> None:
        mailbox.reset()
        for _ in range(5):
            mailbox.advance()
        assert not mailbox.is_valid()
        assert mailbox.current_key() == 6

    def test_is_valid_without_reset_caches_count(
        self, mailbox: MailboxSession, transport
    ) -> None:
        assert not mailbox.is_valid()
        assert mailbox.cursor.cached_count == 5
        assert mailbox.cursor.position == 0

    def test_cached_count_is_stale_until_reset(
        self, mailbox: MailboxSession, transport
    ) -> None:
        mailbox.reset()
        transport.mailboxes["INBOX"][:] = [101, 102]
        for _ in range(3):
            mailbox.advance()

        assert mailbox.is_valid()
        with pytest.raises(MessageNotFoundError):
            mailbox.current_value()

        mailbox.reset()
        assert mailbox.cursor.cached_count == 2

    def test_reset_picks_up_new_messages(self, mailbox: MailboxSession, transport) -> None:
        mailbox.reset()
        transport.mailboxes["INBOX"].append(120)
        assert mailbox.cursor.cached_count == 5

        mailbox.reset()
        assert mailbox.cursor.cached_count == 6
