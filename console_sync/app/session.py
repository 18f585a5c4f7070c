"""
Session provider contract.

The authenticated session lives outside the sync layer; the layer only reads
the current identity to tag its logs.
"""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class Identity:
    """The signed-in console user."""
    user_id: str
    role: str
    branch_id: Optional[str] = None
    branch_name: Optional[str] = None


class SessionProvider(Protocol):
    """Anything that can report who is signed in."""

    def current_identity(self) -> Optional[Identity]:
        ...


@dataclass
class StaticSessionProvider:
    """Session provider returning a fixed identity (scripts and tests)."""
    identity: Optional[Identity] = None

    def current_identity(self) -> Optional[Identity]:
        return self.identity
