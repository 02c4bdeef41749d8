from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

CODE_VERIFIER_KEY = "code_verifier"
OAUTH_STATE_KEY = "oauth_state"
REQUESTED_SCOPES_KEY = "requested_scopes"
ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
EXPIRES_AT_KEY = "expires_at"
GRANTED_SCOPES_KEY = "granted_scopes"

TOKEN_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, EXPIRES_AT_KEY, GRANTED_SCOPES_KEY)
PENDING_KEYS = (CODE_VERIFIER_KEY, OAUTH_STATE_KEY, REQUESTED_SCOPES_KEY)


@dataclass(frozen=True)
class TokenGroup:
    access_token: str
    refresh_token: str | None
    expires_at: int  # epoch ms
    granted_scopes: frozenset[str]

    def to_items(self) -> dict[str, str]:
        items = {
            ACCESS_TOKEN_KEY: self.access_token,
            EXPIRES_AT_KEY: str(self.expires_at),
            GRANTED_SCOPES_KEY: " ".join(sorted(self.granted_scopes)),
        }
        if self.refresh_token:
            items[REFRESH_TOKEN_KEY] = self.refresh_token
        return items


@dataclass(frozen=True)
class PendingHandshake:
    verifier: str
    state: str | None = None
    requested_scopes: tuple[str, ...] = ()


@dataclass
class Session:
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: int | None = None
    granted_scopes: frozenset[str] = field(default_factory=frozenset)
    pending_verifier: str | None = None
    pending_state: str | None = None

    @classmethod
    def from_items(cls, items: dict[str, str]) -> "Session":
        return cls(
            access_token=items.get(ACCESS_TOKEN_KEY) or None,
            refresh_token=items.get(REFRESH_TOKEN_KEY) or None,
            expires_at=_parse_epoch_ms(items.get(EXPIRES_AT_KEY)),
            granted_scopes=frozenset(items.get(GRANTED_SCOPES_KEY, "").split()),
            pending_verifier=items.get(CODE_VERIFIER_KEY) or None,
            pending_state=items.get(OAUTH_STATE_KEY) or None,
        )

    def is_expired(self, now_ms: int) -> bool:
        return self.expires_at is None or now_ms >= self.expires_at


def _parse_epoch_ms(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class SessionStore(ABC):
    """Durable string key/value area holding the single dashboard session.

    Every public operation performs at most one read and one whole-document
    write, so the token group is never observed half written.
    """

    @abstractmethod
    def _read_all(self) -> dict[str, str]:
        raise NotImplementedError

    @abstractmethod
    def _write_all(self, items: dict[str, str]) -> None:
        raise NotImplementedError

    async def load(self) -> Session:
        return Session.from_items(self._read_all())

    async def save_tokens(self, group: TokenGroup) -> None:
        items = self._read_all()
        for key in TOKEN_KEYS:
            items.pop(key, None)
        items.update(group.to_items())
        self._write_all(items)

    async def clear_tokens(self) -> None:
        items = self._read_all()
        if not any(key in items for key in TOKEN_KEYS):
            return
        for key in TOKEN_KEYS:
            items.pop(key, None)
        self._write_all(items)

    async def save_pending(self, pending: PendingHandshake) -> None:
        items = self._read_all()
        for key in PENDING_KEYS:
            items.pop(key, None)
        items[CODE_VERIFIER_KEY] = pending.verifier
        if pending.state:
            items[OAUTH_STATE_KEY] = pending.state
        if pending.requested_scopes:
            items[REQUESTED_SCOPES_KEY] = " ".join(pending.requested_scopes)
        self._write_all(items)

    async def take_pending(self) -> PendingHandshake | None:
        """Read and clear the pending handshake in a single write."""
        items = self._read_all()
        removed = {key: items.pop(key) for key in PENDING_KEYS if key in items}
        if not removed:
            return None
        self._write_all(items)

        verifier = removed.get(CODE_VERIFIER_KEY)
        if not verifier:
            return None
        return PendingHandshake(
            verifier=verifier,
            state=removed.get(OAUTH_STATE_KEY) or None,
            requested_scopes=tuple(removed.get(REQUESTED_SCOPES_KEY, "").split()),
        )

    async def clear(self) -> None:
        self._write_all({})


class MemorySessionStore(SessionStore):
    def __init__(self, items: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(items or {})

    def _read_all(self) -> dict[str, str]:
        return dict(self._items)

    def _write_all(self, items: dict[str, str]) -> None:
        self._items = dict(items)


class FileSessionStore(SessionStore):
    def __init__(self, path: str | Path = ".tunestats_session.json") -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise RuntimeError("Session store file is invalid; expected top-level JSON object.")
        if not all(isinstance(value, str) for value in raw.values()):
            raise RuntimeError("Session store file is invalid; values must be strings.")
        return raw

    def _write_all(self, items: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(items, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
