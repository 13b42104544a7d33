"""Mail transports for mailsession."""

from mailsession.transport.base import MailTransport, OpenOption
from mailsession.transport.imap import ImapHandle, ImapToolsTransport

__all__ = [
    "ImapHandle",
    "ImapToolsTransport",
    "MailTransport",
    "OpenOption",
]
