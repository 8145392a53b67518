from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class LinkExternalIdentity:
    user_id: str
    google_id: str


@dataclass(frozen=True)
class ChangePassword:
    user_id: str
    password_hash: str


@dataclass(frozen=True)
class UpdateProfile:
    user_id: str
    name: str


UserUpdateCommand = Union[LinkExternalIdentity, ChangePassword, UpdateProfile]
