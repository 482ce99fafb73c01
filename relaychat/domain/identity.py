from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

UserType = Literal["guest", "regular"]


@dataclass(frozen=True)
class UserIdentity:
    """Authenticated caller as supplied by the upstream auth layer."""

    id: str
    type: UserType = "regular"
