"""Connection string construction and parsing.

The wire format is ``{host[:port][/service][/flag]...}[mailbox]``: a
brace-delimited server specification optionally followed, with no
separator, by a mailbox name. The service segment is omitted for IMAP.
"""

from collections.abc import Iterable
from typing import Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from mailsession.exceptions import ValidationError

Service = Literal["imap", "pop3", "nntp"]

DEFAULT_SERVICE: Service = "imap"
SERVICES: tuple[str, ...] = ("imap", "pop3", "nntp")


class ServerAddress(BaseModel):
    """Where to connect: host, optional port and protocol service."""

    model_config = ConfigDict(frozen=True)

    # Hostname, IPv4 address or bracketed IPv6 literal such as [::1].
    host: str = Field(
        ..., min_length=1, pattern=r"^(\[[0-9A-Fa-f:.]+\]|[^{}/:\s\[\]]+)$"
    )
    port: int | None = Field(default=None, ge=1, le=65535)
    service: Service = DEFAULT_SERVICE


class ParsedConnectionString(NamedTuple):
    """A connection string decoded back into its parts."""

    host: str
    port: int | None
    service: str
    flags: list[str]
    mailbox: str | None


def server_specification(address: ServerAddress, flags: Iterable[str]) -> str:
    """Build ``{host[:port][/service]/flag...}`` without a mailbox."""
    spec = "{" + address.host

    if address.port is not None:
        spec += f":{address.port}"

    if address.service != DEFAULT_SERVICE:
        spec += f"/{address.service}"

    for flag in flags:
        spec += f"/{flag}"

    return spec + "}"


def connection_string(
    address: ServerAddress, flags: Iterable[str], mailbox: str | None = None
) -> str:
    """Build the full connection string, appending the mailbox when one is selected."""
    spec = server_specification(address, flags)
    if mailbox:
        spec += mailbox
    return spec


def parse_connection_string(value: str) -> ParsedConnectionString:
    """Decode a connection string produced by :func:`connection_string`.

    Raises:
        ValidationError: If the string is not in the expected format.
    """
    if not value.startswith("{") or "}" not in value:
        raise ValidationError(f"Not a connection string: {value!r}", value=value)

    server, _, mailbox = value[1:].partition("}")
    segments = server.split("/")
    authority = segments[0]
    if authority.startswith("["):
        end = authority.find("]")
        if end < 0 or (end + 1 < len(authority) and authority[end + 1] != ":"):
            raise ValidationError(f"Invalid IPv6 host in connection string: {value!r}", value=value)
        host, port_text = authority[: end + 1], authority[end + 2 :]
    else:
        host, _, port_text = authority.partition(":")
    if not host:
        raise ValidationError(f"Connection string has no host: {value!r}", value=value)

    port: int | None = None
    if port_text:
        if not port_text.isdigit():
            raise ValidationError(f"Invalid port in connection string: {value!r}", value=value)
        port = int(port_text)

    rest = segments[1:]
    service: str = DEFAULT_SERVICE
    if rest and rest[0] in SERVICES:
        service = rest.pop(0)

    return ParsedConnectionString(
        host=host,
        port=port,
        service=service,
        flags=[flag for flag in rest if flag],
        mailbox=mailbox or None,
    )
