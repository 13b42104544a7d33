"""Custom exceptions for mailsession."""


class MailSessionError(Exception):
    """Base exception for mailsession."""


class ConfigError(MailSessionError):
    """Raised when there is a configuration error."""

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        line: int | None = None,
        col: int | None = None,
    ) -> None:
        self.file_path = file_path
        self.line = line
        self.col = col
        full_message = message
        if file_path:
            location = f" in {file_path}"
            if line is not None:
                location += f" at line {line}"
                if col is not None:
                    location += f", column {col}"
            full_message = f"Configuration error{location}: {message}"
        super().__init__(full_message)


class ValidationError(MailSessionError):
    """Raised when a caller passes a malformed argument (e.g. an option bitmask)."""

    def __init__(self, message: str, value: object = None) -> None:
        self.value = value
        super().__init__(message)


class ServerConnectionError(MailSessionError):
    """Raised when opening or reopening a server connection fails.

    Attributes:
        diagnostic: The transport's last error message, if any.
    """

    def __init__(self, diagnostic: str | None) -> None:
        self.diagnostic = diagnostic
        super().__init__(f"Connection failed: {diagnostic or 'unknown error'}")


class MessageNotFoundError(MailSessionError):
    """Raised when a sequence position or UID cannot be resolved."""

    def __init__(self, position: int | None = None, uid: int | None = None) -> None:
        self.position = position
        self.uid = uid
        if position is not None:
            message = f"No message at position {position}"
        else:
            message = f"No message with UID {uid}"
        super().__init__(message)
