"""Upload session tracking stores."""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class UploadStatus(str, Enum):
    """Upload status enumeration."""

    PENDING = "pending"  # Signed URL issued, awaiting completion
    COMPLETED = "completed"  # Object verified in storage


@dataclass
class UploadSession:
    """Upload session metadata."""

    upload_id: str
    user_id: str
    file_name: str
    unique_file_name: str
    file_size: int
    mime_type: str
    bucket: str
    file_path: str
    created_at: datetime
    folder: str = ""
    status: UploadStatus = UploadStatus.PENDING
    is_video: bool = False
    detected_as_video: bool = False
    will_use_resumable_upload: bool = False
    signed_url: Optional[str] = None
    token: Optional[str] = None
    completed_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None

    def is_expired(self, now: datetime, ttl_seconds: int) -> bool:
        """Pending sessions past the retention window are expired."""
        if self.status != UploadStatus.PENDING:
            return False
        return (now - self.created_at).total_seconds() > ttl_seconds


class UploadStore(ABC):
    """Registry of upload sessions keyed by upload id.

    Methods are blocking; async callers run them with ``asyncio.to_thread``.
    """

    @abstractmethod
    def create(self, session: UploadSession) -> None:
        """Store a new upload session."""

    @abstractmethod
    def get(self, upload_id: str) -> Optional[UploadSession]:
        """Retrieve an upload session by id."""

    @abstractmethod
    def mark_completed(
        self, upload_id: str, result: Dict[str, Any], completed_at: datetime
    ) -> bool:
        """Transition a pending session to completed.

        Returns:
            True if this call performed the transition, False if the session
            is unknown or was already completed (its result is left untouched).
        """

    @abstractmethod
    def delete(self, upload_id: str) -> bool:
        """Remove a session. Returns False if it did not exist."""

    @abstractmethod
    def list_expired(self, cutoff: datetime) -> list[UploadSession]:
        """List pending sessions created before ``cutoff``."""


class InMemoryUploadStore(UploadStore):
    """Process-local store for upload sessions.

    Safe to call from worker threads; a lock guards every access.
    """

    def __init__(self):
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = threading.Lock()

    def create(self, session: UploadSession) -> None:
        with self._lock:
            self._sessions[session.upload_id] = session

    def get(self, upload_id: str) -> Optional[UploadSession]:
        with self._lock:
            return self._sessions.get(upload_id)

    def mark_completed(
        self, upload_id: str, result: Dict[str, Any], completed_at: datetime
    ) -> bool:
        with self._lock:
            session = self._sessions.get(upload_id)
            if session is None or session.status != UploadStatus.PENDING:
                return False
            session.status = UploadStatus.COMPLETED
            session.completed_at = completed_at
            session.result = result
            return True

    def delete(self, upload_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(upload_id, None) is not None

    def list_expired(self, cutoff: datetime) -> list[UploadSession]:
        with self._lock:
            return [
                session
                for session in self._sessions.values()
                if session.status == UploadStatus.PENDING and session.created_at < cutoff
            ]


class SqliteUploadStore(UploadStore):
    """Durable SQLite-backed store for upload sessions.

    Survives process restarts. The ``(status, created_at)`` index backs the
    expiry scan.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init(self) -> None:
        """Create the schema if needed."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS upload_sessions (
                    upload_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    unique_file_name TEXT NOT NULL,
                    file_size INTEGER NOT NULL,
                    mime_type TEXT NOT NULL,
                    bucket TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    folder TEXT NOT NULL,
                    status TEXT NOT NULL,
                    is_video INTEGER NOT NULL,
                    detected_as_video INTEGER NOT NULL,
                    will_use_resumable_upload INTEGER NOT NULL,
                    signed_url TEXT,
                    token TEXT,
                    created_at TEXT NOT NULL,
                    completed_at TEXT,
                    result TEXT
                );
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_upload_sessions_expiry
                ON upload_sessions(status, created_at);
                """
            )
        logger.info("Initialized upload session store", extra={"db_path": self.db_path})

    def create(self, session: UploadSession) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO upload_sessions(
                    upload_id, user_id, file_name, unique_file_name, file_size,
                    mime_type, bucket, file_path, folder, status, is_video,
                    detected_as_video, will_use_resumable_upload, signed_url,
                    token, created_at, completed_at, result
                )
                VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.upload_id,
                    session.user_id,
                    session.file_name,
                    session.unique_file_name,
                    session.file_size,
                    session.mime_type,
                    session.bucket,
                    session.file_path,
                    session.folder,
                    UploadStatus(session.status).value,
                    int(session.is_video),
                    int(session.detected_as_video),
                    int(session.will_use_resumable_upload),
                    session.signed_url,
                    session.token,
                    session.created_at.isoformat(),
                    session.completed_at.isoformat() if session.completed_at else None,
                    json.dumps(session.result, default=str) if session.result is not None else None,
                ),
            )

    def get(self, upload_id: str) -> Optional[UploadSession]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM upload_sessions WHERE upload_id = ?", (upload_id,)
            ).fetchone()
        return self._row_to_session(row) if row else None

    def mark_completed(
        self, upload_id: str, result: Dict[str, Any], completed_at: datetime
    ) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE upload_sessions
                SET status = ?, completed_at = ?, result = ?
                WHERE upload_id = ? AND status = ?
                """,
                (
                    UploadStatus.COMPLETED.value,
                    completed_at.isoformat(),
                    json.dumps(result, default=str),
                    upload_id,
                    UploadStatus.PENDING.value,
                ),
            )
            return cursor.rowcount == 1

    def delete(self, upload_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM upload_sessions WHERE upload_id = ?", (upload_id,)
            )
            return cursor.rowcount == 1

    def list_expired(self, cutoff: datetime) -> list[UploadSession]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM upload_sessions
                WHERE status = ? AND created_at < ?
                ORDER BY created_at
                """,
                (UploadStatus.PENDING.value, cutoff.isoformat()),
            ).fetchall()
        return [self._row_to_session(row) for row in rows]

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> UploadSession:
        return UploadSession(
            upload_id=row["upload_id"],
            user_id=row["user_id"],
            file_name=row["file_name"],
            unique_file_name=row["unique_file_name"],
            file_size=row["file_size"],
            mime_type=row["mime_type"],
            bucket=row["bucket"],
            file_path=row["file_path"],
            folder=row["folder"],
            status=UploadStatus(row["status"]),
            is_video=bool(row["is_video"]),
            detected_as_video=bool(row["detected_as_video"]),
            will_use_resumable_upload=bool(row["will_use_resumable_upload"]),
            signed_url=row["signed_url"],
            token=row["token"],
            created_at=datetime.fromisoformat(row["created_at"]),
            completed_at=datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None,
            result=json.loads(row["result"]) if row["result"] else None,
        )


_upload_store: Optional[UploadStore] = None


def get_upload_store() -> UploadStore:
    """Return the process-wide upload store selected by UPLOAD_STORE_BACKEND."""
    global _upload_store
    if _upload_store is None:
        from learnhub.core.config import settings

        backend = settings.UPLOAD_STORE_BACKEND.lower()
        if backend == "sqlite":
            store = SqliteUploadStore(settings.UPLOAD_STORE_PATH)
            store.init()
            _upload_store = store
        elif backend == "memory":
            _upload_store = InMemoryUploadStore()
        else:
            raise ValueError(f"Unknown UPLOAD_STORE_BACKEND: {settings.UPLOAD_STORE_BACKEND}")
    return _upload_store
