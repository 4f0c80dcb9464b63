import logging
import os
import sqlite3

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from assembler import final_path, remove_track_files
from auth import optional_user
from dependencies import get_tracks
from models import STATUS_READY, Track, User
from repository import TrackRepository

logger = logging.getLogger(__name__)
router = APIRouter()


def _visible_track(track_id: str, user: User | None, tracks: TrackRepository) -> Track:
    track = tracks.get(track_id)
    if not track:
        raise HTTPException(404, "Track not found")
    if track.user_id and (user is None or user.id != track.user_id):
        raise HTTPException(403, "Not allowed to access this track")
    return track


def _ready_track(track_id: str, user: User | None, tracks: TrackRepository) -> Track:
    track = _visible_track(track_id, user, tracks)
    if track.status != STATUS_READY:
        raise HTTPException(400, "Track is not ready yet")
    return track


@router.get("/v1/content/{track_id}")
def get_content(
    track_id: str,
    user: User | None = Depends(optional_user),
    tracks: TrackRepository = Depends(get_tracks),
):
    """Content reference for a finished track."""
    track = _ready_track(track_id, user, tracks)
    return {
        "trackId": track.id,
        "status": track.status,
        "url": f"/v1/content/{track.id}/audio",
        "durationSec": track.duration_s,
        "sizeBytes": track.size_bytes,
    }


@router.get("/v1/content/{track_id}/audio")
def get_content_audio(
    track_id: str,
    user: User | None = Depends(optional_user),
    tracks: TrackRepository = Depends(get_tracks),
):
    track = _ready_track(track_id, user, tracks)
    path = final_path(track)
    if not os.path.exists(path):
        logger.error(f"Track {track_id} is ready but {path} is missing")
        raise HTTPException(404, "Track file not found")
    return FileResponse(path, media_type="audio/mpeg", filename=f"{track.id}.mp3")


@router.delete("/v1/content/{track_id}")
async def delete_content(
    track_id: str,
    user: User | None = Depends(optional_user),
    tracks: TrackRepository = Depends(get_tracks),
):
    """Remove a track record and its files. Unknown ids are a 404."""
    track = _visible_track(track_id, user, tracks)

    try:
        deleted = tracks.delete(track_id)
        await remove_track_files(track)
    except (sqlite3.Error, OSError) as e:
        logger.error(f"Deleting track {track_id} failed: {e}", exc_info=True)
        raise HTTPException(500, "Failed to delete track")

    if not deleted:
        raise HTTPException(404, "Track not found")

    logger.info(f"Deleted track: {track_id}")
    return {"ok": True, "message": f"Track {track_id} deleted successfully"}
