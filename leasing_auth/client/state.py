from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SessionState:
    is_authenticated: bool = False
    access_token: str | None = None
    refresh_token: str | None = None
    user: dict[str, Any] | None = None
    is_loading: bool = True
    error: str | None = None
