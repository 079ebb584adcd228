"""Domain models shared across services."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AccountRecord:
    """Represents an account known to the local store."""

    id: int
    display_name: str | None = None
