from __future__ import annotations

import json
import logging
import re
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from core.auth import AuthSession

logger = logging.getLogger(__name__)

_CLIENT_ID = re.compile(r"^[0-9a-f]{32}$")


def new_client_id() -> str:
    return uuid.uuid4().hex


class SessionStore:
    """Session of one browser client persisted as a small JSON file.

    Loaded once on construction, written on every change and removed on
    logout. A corrupt file is discarded like a missing one.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._session: Optional[AuthSession] = None
        self.load()

    @classmethod
    def for_client(cls, directory: Path | str, client_id: str) -> "SessionStore":
        """Store under ``directory`` keyed by ``client_id`` (a uuid4 hex string)."""
        if not _CLIENT_ID.match(client_id or ""):
            raise ValueError(f"Invalid client id: {client_id!r}")
        return cls(Path(directory) / f"session-{client_id}.json")

    @property
    def session(self) -> Optional[AuthSession]:
        return self._session

    def load(self) -> Optional[AuthSession]:
        self._session = None
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            self._session = AuthSession.from_dict(raw)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("discarding unreadable session file %s: %s", self.path, exc)
            self.path.unlink(missing_ok=True)
        return self._session

    def save(self, session: AuthSession) -> None:
        self._session = session
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(session.to_dict()), encoding="utf-8")

    def clear(self) -> None:
        self._session = None
        self.path.unlink(missing_ok=True)


class PageCache:
    """Tables loaded for the page on screen; switching page drops them."""

    def __init__(self) -> None:
        self.page: Optional[str] = None
        self.tables: Dict[str, Any] = {}

    def for_page(self, page: str) -> Dict[str, Any]:
        if page != self.page:
            if self.tables:
                logger.debug("dropping %d table(s) loaded for %s", len(self.tables), self.page)
            self.page = page
            self.tables = {}
        return self.tables

    def clear(self) -> None:
        self.tables = {}
