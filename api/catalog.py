import os

from models import BackingTrack

DATA_DIR = os.environ.get("DATA_DIR", "/tmp/whspr")
BACKING_TRACKS_DIR = os.environ.get("BACKING_TRACKS_DIR", os.path.join(DATA_DIR, "backing"))

DEFAULT_BACKING_TRACKS = [
    BackingTrack(id="1", name="Ocean Waves", filename="ocean_waves.mp3", duration_s=300, tags=["nature", "water"]),
    BackingTrack(id="2", name="Rainforest", filename="rainforest.mp3", duration_s=300, tags=["nature", "rain"]),
    BackingTrack(
        id="3", name="Gentle Piano", filename="gentle_piano.mp3", duration_s=300, tags=["instrumental", "piano"]
    ),
]


class BackingTrackCatalog:
    """Static list of music beds the voice track can be mixed over."""

    def __init__(self, tracks: list[BackingTrack] | None = None, directory: str | None = None):
        self.directory = directory or BACKING_TRACKS_DIR
        self._tracks = {t.id: t for t in (tracks if tracks is not None else DEFAULT_BACKING_TRACKS)}

    def all(self) -> list[BackingTrack]:
        return list(self._tracks.values())

    def get(self, track_id: str) -> BackingTrack | None:
        return self._tracks.get(track_id)

    def path_for(self, track_id: str) -> str:
        track = self._tracks.get(track_id)
        if track is None:
            raise KeyError(track_id)
        return os.path.join(self.directory, track.filename)
