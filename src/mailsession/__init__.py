"""Client-side mailbox sessions: connection strings, handle lifecycle and UID-based message enumeration."""

from mailsession.config import Settings, get_settings_eager
from mailsession.connection import (
    ServerAddress,
    connection_string,
    parse_connection_string,
    server_specification,
)
from mailsession.exceptions import (
    ConfigError,
    MailSessionError,
    MessageNotFoundError,
    ServerConnectionError,
    ValidationError,
)
from mailsession.flags import DEFAULT_FLAG_POLICY, FlagPolicy, FlagSet
from mailsession.locator import MessageLocator
from mailsession.mailbox import MailboxSession, MessageCursor
from mailsession.message import Message
from mailsession.session import SessionState, TransportSession
from mailsession.transport import ImapToolsTransport, MailTransport, OpenOption

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "DEFAULT_FLAG_POLICY",
    "FlagPolicy",
    "FlagSet",
    "ImapToolsTransport",
    "MailSessionError",
    "MailTransport",
    "MailboxSession",
    "Message",
    "MessageCursor",
    "MessageLocator",
    "MessageNotFoundError",
    "OpenOption",
    "ServerAddress",
    "ServerConnectionError",
    "SessionState",
    "Settings",
    "TransportSession",
    "ValidationError",
    "connection_string",
    "get_settings_eager",
    "parse_connection_string",
    "server_specification",
]
