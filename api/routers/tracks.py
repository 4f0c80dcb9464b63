import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from assembler import AssemblyError, TrackAssembler
from auth import current_user, optional_user
from catalog import BackingTrackCatalog
from dependencies import get_assembler, get_catalog, get_tracks
from models import Track, User
from ratelimit import ASSEMBLY_LIMIT_MESSAGE, ASSEMBLY_RATE_LIMIT, limiter
from repository import TrackRepository
from schemas import AssembleTrackRequest

logger = logging.getLogger(__name__)
router = APIRouter()


def track_to_dict(track: Track) -> dict:
    return {
        "trackId": track.id,
        "status": track.status,
        "url": f"/v1/content/{track.id}",
        "durationSec": track.duration_s,
        "sizeBytes": track.size_bytes,
        "createdAt": track.created_at,
        "updatedAt": track.updated_at,
    }


@router.get("/v1/tracks")
def list_backing_tracks(catalog: BackingTrackCatalog = Depends(get_catalog)):
    """Backing tracks available for mixing."""
    return [
        {"id": t.id, "name": t.name, "durationSec": t.duration_s, "tags": t.tags}
        for t in catalog.all()
    ]


@router.get("/v1/tracks/mine")
def list_my_tracks(
    user: User = Depends(current_user),
    tracks: TrackRepository = Depends(get_tracks),
):
    return {"tracks": [track_to_dict(t) for t in tracks.list_by_owner(user.id)]}


@router.post("/v1/tracks/assemble")
@limiter.limit(ASSEMBLY_RATE_LIMIT, error_message=ASSEMBLY_LIMIT_MESSAGE)
async def assemble_track(
    request: Request,
    response: Response,
    body: AssembleTrackRequest,
    user: User | None = Depends(optional_user),
    catalog: BackingTrackCatalog = Depends(get_catalog),
    assembler: TrackAssembler = Depends(get_assembler),
):
    if catalog.get(body.backing_track_id) is None:
        raise HTTPException(400, f"Unknown backingTrackId: {body.backing_track_id}")

    try:
        track = await assembler.assemble(body.to_assembly(), user_id=user.id if user else None)
    except AssemblyError as e:
        # Details are already logged; the client only learns which track to poll.
        return JSONResponse(status_code=500, content={"detail": "Failed to assemble track", "trackId": e.track_id})
    except Exception as e:
        logger.error(f"Track assembly could not start: {e}", exc_info=True)
        raise HTTPException(500, "Failed to assemble track")

    return {
        "trackId": track.id,
        "url": f"/v1/content/{track.id}",
        "durationSec": track.duration_s,
    }
