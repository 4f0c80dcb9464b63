"""Tests for the SQLite track and user repositories."""

import sqlite3

import pytest

from database import Database
from models import STATUS_ERROR, STATUS_PROCESSING, STATUS_READY
from repository import TrackStateError


def test_create_starts_processing(track_repo):
    track = track_repo.create("t1", path="/data/tracks/t1", duration_s=10)
    assert track.status == STATUS_PROCESSING
    assert track.duration_s == 10
    assert track.size_bytes == 0
    assert track.user_id is None
    assert track_repo.get("t1") == track


def test_get_unknown_returns_none(track_repo):
    assert track_repo.get("nope") is None


def test_mark_ready_records_measurements(track_repo):
    track_repo.create("t1", path="/p", duration_s=10)
    track = track_repo.mark_ready("t1", duration_s=12.5, size_bytes=2048)
    assert track.status == STATUS_READY
    assert track.duration_s == 12.5
    assert track.size_bytes == 2048


def test_mark_error_keeps_message(track_repo):
    track_repo.create("t1", path="/p", duration_s=10)
    track = track_repo.mark_error("t1", "ffmpeg mix failed")
    assert track.status == STATUS_ERROR
    assert track.error_msg == "ffmpeg mix failed"


def test_same_status_twice_is_noop(track_repo):
    track_repo.create("t1", path="/p", duration_s=10)
    first = track_repo.update_status("t1", STATUS_READY)
    second = track_repo.update_status("t1", STATUS_READY)
    assert second.status == STATUS_READY
    assert second.updated_at == first.updated_at


@pytest.mark.parametrize(
    "terminal,target",
    [
        (STATUS_READY, STATUS_ERROR),
        (STATUS_ERROR, STATUS_READY),
        (STATUS_READY, STATUS_PROCESSING),
        (STATUS_ERROR, STATUS_PROCESSING),
    ],
)
def test_terminal_states_do_not_move(track_repo, terminal, target):
    track_repo.create("t1", path="/p", duration_s=10)
    track_repo.update_status("t1", terminal)
    with pytest.raises(TrackStateError):
        track_repo.update_status("t1", target)
    assert track_repo.get("t1").status == terminal


def test_update_unknown_track_returns_none(track_repo):
    assert track_repo.update_status("nope", STATUS_READY) is None


def test_unknown_status_rejected(track_repo):
    track_repo.create("t1", path="/p", duration_s=10)
    with pytest.raises(ValueError):
        track_repo.update_status("t1", "pending")


def test_list_by_owner_newest_first(track_repo, user_repo):
    alice = user_repo.create("alice@example.com", "hash")
    bob = user_repo.create("bob@example.com", "hash")
    track_repo.create("a1", path="/p", duration_s=1, user_id=alice.id)
    track_repo.create("b1", path="/p", duration_s=1, user_id=bob.id)
    track_repo.create("a2", path="/p", duration_s=1, user_id=alice.id)

    assert [t.id for t in track_repo.list_by_owner(alice.id)] == ["a2", "a1"]
    assert [t.id for t in track_repo.list_by_owner(bob.id)] == ["b1"]


def test_delete(track_repo):
    track_repo.create("t1", path="/p", duration_s=1)
    assert track_repo.delete("t1") is True
    assert track_repo.get("t1") is None
    assert track_repo.delete("t1") is False


def test_fail_stuck_only_touches_processing(track_repo):
    track_repo.create("stuck", path="/p", duration_s=1)
    track_repo.create("done", path="/p", duration_s=1)
    track_repo.mark_ready("done", 1.0, 10)

    assert track_repo.fail_stuck() == 1
    assert track_repo.get("stuck").status == STATUS_ERROR
    assert track_repo.get("done").status == STATUS_READY
    assert track_repo.fail_stuck() == 0


def test_user_lookup(user_repo):
    user = user_repo.create("me@example.com", "hash")
    assert user_repo.get(user.id) == user
    assert user_repo.get_by_email("me@example.com") == user
    assert user_repo.get_by_email("other@example.com") is None


def test_duplicate_email_rejected(user_repo):
    user_repo.create("me@example.com", "hash")
    with pytest.raises(sqlite3.IntegrityError):
        user_repo.create("me@example.com", "hash")


def test_connection_pragmas(tmp_path):
    database = Database(str(tmp_path / "p.db"), pragmas={"busy_timeout": 250})
    database.init_db()
    with database.session() as conn:
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        assert conn.execute("PRAGMA busy_timeout").fetchone()[0] == 250
