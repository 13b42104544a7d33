"""Connection flags with secure-transport gating and mutually exclusive pairs."""

import logging
from collections.abc import Iterator

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mailsession.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Flags that depend on secure-transport support being available.
SSL_FLAGS: frozenset[str] = frozenset({"ssl", "validate-cert", "novalidate-cert", "tls", "notls"})

# Setting either side of a pair evicts the other side.
EXCLUSIVE_FLAGS: dict[str, str] = {"validate-cert": "novalidate-cert", "tls": "notls"}

_FORBIDDEN_CHARS = frozenset("/{}=")
_FORBIDDEN_VALUE_CHARS = frozenset("/{}")


class FlagPolicy(BaseModel):
    """Rules applied by a FlagSet on every mutation.

    Attributes:
        ssl_enabled: When False, security-related flags are silently rejected.
        ssl_flags: Flags that count as security-related.
        exclusive_flags: Pairs of flags that may never be present together.
    """

    model_config = ConfigDict(frozen=True)

    ssl_enabled: bool = True
    ssl_flags: frozenset[str] = Field(default=SSL_FLAGS)
    exclusive_flags: dict[str, str] = Field(default_factory=lambda: dict(EXCLUSIVE_FLAGS))

    @model_validator(mode="after")
    def _check_pairs(self) -> "FlagPolicy":
        for flag, partner in self.exclusive_flags.items():
            if flag == partner:
                raise ValueError(f"Flag '{flag}' cannot be exclusive with itself")
        return self

    def allows(self, flag: str) -> bool:
        """Return False if the flag is security-related and secure transport is off."""
        return self.ssl_enabled or flag not in self.ssl_flags

    def partner(self, flag: str) -> str | None:
        """Return the flag that is mutually exclusive with ``flag``, if any.

        Both directions of the mapping are checked.
        """
        if flag in self.exclusive_flags:
            return self.exclusive_flags[flag]
        for key, value in self.exclusive_flags.items():
            if value == flag:
                return key
        return None


DEFAULT_FLAG_POLICY = FlagPolicy()


def _flag_name(entry: str) -> str:
    return entry.split("=", 1)[0]


class FlagSet:
    """Ordered set of connection modifier tokens.

    Entries are either bare flags (``ssl``) or key=value pairs
    (``authuser=bob``). Each flag name appears at most once and insertion
    order is preserved, since it is the order flags are written into the
    connection string.
    """

    def __init__(self, policy: FlagPolicy | None = None) -> None:
        self._policy = policy or DEFAULT_FLAG_POLICY
        self._entries: list[str] = []

    @property
    def policy(self) -> FlagPolicy:
        return self._policy

    def set(self, flag: str, value: str | bool | None = None) -> None:
        """Add, replace or remove a flag.

        Args:
            flag: The flag name.
            value: ``None``/``True`` ensures a bare flag, a non-empty string
                stores ``flag=value`` and ``False`` (or ``""``) removes the flag.

        Raises:
            ValidationError: If the flag name is empty or contains a delimiter.
        """
        _validate_flag_name(flag)
        if isinstance(value, str) and _FORBIDDEN_VALUE_CHARS.intersection(value):
            raise ValidationError(f"Flag value contains a reserved character: {value!r}", value=value)

        if not self._policy.allows(flag):
            logger.debug("Ignoring security flag, secure transport disabled (flag=%s)", flag)
            return

        partner = self._policy.partner(flag)
        if partner is not None:
            self._discard(partner)

        index = self._index(flag)
        if value is False or value == "":
            if index is not None:
                del self._entries[index]
            return

        entry = flag if value is None or value is True else f"{flag}={value}"
        if index is None:
            self._entries.append(entry)
        else:
            self._entries[index] = entry

    def remove(self, flag: str) -> None:
        """Remove a flag (bare or key=value), leaving its pair partner alone."""
        self._discard(flag)

    def toggle(self, flag: str) -> None:
        """Remove the flag if present, otherwise add it as a bare flag."""
        if flag in self:
            self.remove(flag)
        else:
            self.set(flag)

    def get(self, flag: str) -> str | bool | None:
        """Return the flag's value, True for a bare flag, or None if absent."""
        index = self._index(flag)
        if index is None:
            return None
        _, sep, value = self._entries[index].partition("=")
        return value if sep else True

    def _index(self, flag: str) -> int | None:
        for i, entry in enumerate(self._entries):
            if _flag_name(entry) == flag:
                return i
        return None

    def _discard(self, flag: str) -> None:
        index = self._index(flag)
        if index is not None:
            del self._entries[index]

    def __contains__(self, flag: object) -> bool:
        return isinstance(flag, str) and self._index(flag) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FlagSet({self._entries!r})"


def _validate_flag_name(flag: str) -> None:
    if not isinstance(flag, str) or not flag:
        raise ValidationError("Flag name must be a non-empty string", value=flag)
    if _FORBIDDEN_CHARS.intersection(flag):
        raise ValidationError(f"Flag name contains a reserved character: {flag!r}", value=flag)
