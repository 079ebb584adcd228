"""Join code generation."""

import logging
import secrets
from dataclasses import dataclass
from typing import Protocol

from collab_sessions.domain.errors import JoinCodeExhausted

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 8


class JoinCodeLookup(Protocol):
    """Answers whether a join code is held by an active session."""

    def join_code_in_use(self, join_code: str) -> bool:
        """Return True when an active session uses the join code."""


def generate_join_code(group_bytes: int = 2) -> str:
    """Return a human-typeable code such as ``AB12-CD34``."""
    first = secrets.token_hex(group_bytes).upper()
    second = secrets.token_hex(group_bytes).upper()
    return f"{first}-{second}"


@dataclass
class JoinCodeGenerator:
    """Produces join codes that do not collide with active sessions."""

    max_attempts: int = MAX_ATTEMPTS

    def generate(self) -> str:
        return generate_join_code()

    def ensure_unique(self, lookup: JoinCodeLookup) -> str:
        """Return a join code unused by any active session.

        Short codes are retried a bounded number of times. After that a
        longer code is drawn and checked once more before giving up.
        """
        for _ in range(self.max_attempts):
            code = self.generate()
            if not lookup.join_code_in_use(code):
                return code

        logger.warning(
            "Join code collided %s times, falling back to a long code",
            self.max_attempts,
        )
        code = generate_join_code(group_bytes=4)
        if lookup.join_code_in_use(code):
            raise JoinCodeExhausted()
        return code
