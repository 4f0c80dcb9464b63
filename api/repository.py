import logging
import uuid
from datetime import datetime, timezone

from database import Database
from models import (
    STATUS_ERROR,
    STATUS_PROCESSING,
    STATUS_READY,
    TRACK_STATUSES,
    Track,
    User,
)

logger = logging.getLogger(__name__)


class TrackStateError(RuntimeError):
    """Raised when a track status change would leave a terminal state."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_track(row) -> Track:
    return Track(
        id=row["id"],
        user_id=row["user_id"],
        path=row["path"],
        duration_s=row["duration_s"],
        size_bytes=row["size_bytes"],
        status=row["status"],
        error_msg=row["error_msg"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
    )


class TrackRepository:
    """CRUD over track records.

    Status only ever moves ``processing -> ready`` or ``processing -> error``.
    Re-applying the current status is accepted as a no-op; anything else out of
    a terminal state raises TrackStateError.
    """

    def __init__(self, database: Database):
        self.db = database

    def create(
        self,
        track_id: str,
        path: str,
        duration_s: float,
        size_bytes: int = 0,
        user_id: str | None = None,
    ) -> Track:
        now = _now()
        with self.db.session() as conn:
            conn.execute(
                """
                INSERT INTO tracks (id, user_id, path, duration_s, size_bytes,
                                    status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (track_id, user_id, path, duration_s, size_bytes, STATUS_PROCESSING, now, now),
            )
            row = conn.execute("SELECT * FROM tracks WHERE id=?", (track_id,)).fetchone()
        logger.info(f"Track {track_id} created (processing)")
        return _row_to_track(row)

    def get(self, track_id: str) -> Track | None:
        with self.db.session() as conn:
            row = conn.execute("SELECT * FROM tracks WHERE id=?", (track_id,)).fetchone()
        return _row_to_track(row) if row else None

    def list_by_owner(self, user_id: str) -> list[Track]:
        with self.db.session() as conn:
            rows = conn.execute(
                "SELECT * FROM tracks WHERE user_id=? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [_row_to_track(r) for r in rows]

    def _transition(self, track_id: str, status: str, assignments: str = "", params: tuple = ()) -> Track | None:
        if status not in TRACK_STATUSES:
            raise ValueError(f"Unknown track status: {status!r}")

        with self.db.session() as conn:
            row = conn.execute("SELECT * FROM tracks WHERE id=?", (track_id,)).fetchone()
            if not row:
                return None

            current = row["status"]
            if current == status:
                return _row_to_track(row)
            if current != STATUS_PROCESSING:
                raise TrackStateError(f"Track {track_id} is {current}; cannot move to {status}")

            conn.execute(
                f"UPDATE tracks SET status=?, updated_at=?{assignments} WHERE id=?",
                (status, _now(), *params, track_id),
            )
            row = conn.execute("SELECT * FROM tracks WHERE id=?", (track_id,)).fetchone()

        logger.info(f"Track {track_id}: {current} -> {status}")
        return _row_to_track(row)

    def update_status(self, track_id: str, status: str, error_msg: str | None = None) -> Track | None:
        if error_msg is not None:
            return self._transition(track_id, status, ", error_msg=?", (error_msg,))
        return self._transition(track_id, status)

    def mark_ready(self, track_id: str, duration_s: float, size_bytes: int) -> Track | None:
        return self._transition(
            track_id,
            STATUS_READY,
            ", duration_s=?, size_bytes=?, error_msg=NULL",
            (duration_s, size_bytes),
        )

    def mark_error(self, track_id: str, error_msg: str) -> Track | None:
        return self.update_status(track_id, STATUS_ERROR, error_msg=error_msg)

    def delete(self, track_id: str) -> bool:
        with self.db.session() as conn:
            deleted = conn.execute("DELETE FROM tracks WHERE id=?", (track_id,)).rowcount
        return deleted > 0

    def fail_stuck(self) -> int:
        """Move tracks left 'processing' by a previous crash/restart to 'error'.

        Called during startup before any request is served. There is no
        retry-in-place, so an interrupted run can only end in error.
        """
        with self.db.session() as conn:
            stuck = conn.execute(
                "UPDATE tracks SET status=?, error_msg=?, updated_at=? WHERE status=?",
                (STATUS_ERROR, "interrupted by restart", _now(), STATUS_PROCESSING),
            ).rowcount
        if stuck:
            logger.warning(f"Marked {stuck} stuck processing track(s) as error on startup")
        else:
            logger.info("No stuck processing tracks found on startup")
        return stuck


class UserRepository:
    def __init__(self, database: Database):
        self.db = database

    def create(self, email: str, password_hash: str) -> User:
        user_id = str(uuid.uuid4())
        with self.db.session() as conn:
            conn.execute(
                "INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                (user_id, email, password_hash, _now()),
            )
            row = conn.execute("SELECT * FROM users WHERE id=?", (user_id,)).fetchone()
        return _row_to_user(row)

    def get(self, user_id: str) -> User | None:
        with self.db.session() as conn:
            row = conn.execute("SELECT * FROM users WHERE id=?", (user_id,)).fetchone()
        return _row_to_user(row) if row else None

    def get_by_email(self, email: str) -> User | None:
        with self.db.session() as conn:
            row = conn.execute("SELECT * FROM users WHERE email=?", (email,)).fetchone()
        return _row_to_user(row) if row else None
