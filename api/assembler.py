import asyncio
import logging
import os
import shutil
import uuid

from audio import AudioProcessor
from catalog import BackingTrackCatalog
from models import AssemblyRequest, Track, VoiceClip
from repository import TrackRepository
from speech import SpeechSynthesizer

logger = logging.getLogger(__name__)

DATA_DIR = os.environ.get("DATA_DIR", "/tmp/whspr")

FINAL_FILENAME = "final.mp3"
TEMP_DIRNAME = "temp"
ESTIMATED_LINE_S = 5.0
DUCK_LEVEL_DB = -10
FINAL_BITRATE_KBPS = 128


class AssemblyError(RuntimeError):
    """Track assembly failed. The track record has been moved to 'error'."""

    def __init__(self, track_id: str):
        super().__init__(f"Failed to assemble track {track_id}")
        self.track_id = track_id


def track_dir(data_dir: str, track_id: str) -> str:
    return os.path.join(data_dir, "tracks", track_id)


def final_path(track: Track) -> str:
    return os.path.join(track.path, FINAL_FILENAME)


class TrackAssembler:
    """Turns an ordered affirmation set into a finished, mixed MP3.

    Per run: synthesize each line, join the clips with silent gaps, normalize
    loudness, duck a backing track under the voice and encode. The track
    record goes processing -> ready, or processing -> error if any step fails.
    """

    def __init__(
        self,
        tracks: TrackRepository,
        synthesizer: SpeechSynthesizer,
        processor: AudioProcessor,
        catalog: BackingTrackCatalog,
        data_dir: str | None = None,
        synthesis_concurrency: int = 1,
        estimated_line_s: float = ESTIMATED_LINE_S,
    ):
        self.tracks = tracks
        self.synthesizer = synthesizer
        self.processor = processor
        self.catalog = catalog
        self.data_dir = data_dir or DATA_DIR
        self.synthesis_concurrency = max(1, synthesis_concurrency)
        self.estimated_line_s = estimated_line_s

    async def assemble(self, request: AssemblyRequest, user_id: str | None = None) -> Track:
        track_id = str(uuid.uuid4())
        work_dir = track_dir(self.data_dir, track_id)
        temp_dir = os.path.join(work_dir, TEMP_DIRNAME)

        await asyncio.to_thread(os.makedirs, temp_dir, exist_ok=True)
        track = self.tracks.create(
            track_id,
            path=work_dir,
            duration_s=len(request.affirmations) * self.estimated_line_s,
            user_id=user_id,
        )
        logger.info(f"Assembling track {track_id}: {len(request.affirmations)} affirmation(s)")

        try:
            output = await self._run(track, request, temp_dir)
            duration_s = await self.processor.get_duration(output)
            size_bytes = await asyncio.to_thread(os.path.getsize, output)
            ready = self.tracks.mark_ready(track_id, duration_s, size_bytes)
            if ready is None:
                raise RuntimeError("track record deleted during assembly")
            track = ready
        except Exception as e:
            logger.error(f"Track {track_id} failed: {e}", exc_info=True)
            self.tracks.mark_error(track_id, str(e))
            raise AssemblyError(track_id) from e
        finally:
            await self._cleanup(temp_dir)

        logger.info(f"Track {track_id} ready: {track.duration_s:.1f}s, {track.size_bytes} bytes")
        return track

    async def _run(self, track: Track, request: AssemblyRequest, temp_dir: str) -> str:
        clips = await self.synthesize_clips(request, temp_dir)
        voice = await self.join_clips(clips, request.gap_seconds, temp_dir)

        normalized = await self.processor.normalize(
            voice, os.path.join(temp_dir, "voice_normalized.m4a"), request.target_lufs
        )
        mixed = await self.processor.mix(
            normalized,
            self.catalog.path_for(request.backing_track_id),
            os.path.join(temp_dir, "mixed.m4a"),
            DUCK_LEVEL_DB,
        )
        return await self.processor.convert_to_mp3(
            mixed, final_path(track), FINAL_BITRATE_KBPS, comment=track.id
        )

    async def synthesize_clips(self, request: AssemblyRequest, temp_dir: str) -> list[VoiceClip]:
        """Synthesize every affirmation; the result is always in request order.

        Runs one line at a time unless ``synthesis_concurrency`` allows a
        bounded fan-out. Either way each clip carries its original index and the
        list is sorted on it, never on completion order.
        """
        semaphore = asyncio.Semaphore(self.synthesis_concurrency)

        async def synthesize(index: int, text: str) -> VoiceClip:
            async with semaphore:
                path = os.path.join(temp_dir, f"affirmation_{index:03d}.mp3")
                await self.synthesizer.synthesize_to_file(text, request.voice_id, path, request.voice_settings)
                duration_s = await self.processor.get_duration(path)
                logger.info(f"Synthesized affirmation {index + 1}/{len(request.affirmations)} ({duration_s:.1f}s)")
                return VoiceClip(index=index, text=text, path=path, duration_s=duration_s)

        if self.synthesis_concurrency == 1:
            clips = [await synthesize(i, text) for i, text in enumerate(request.affirmations)]
        else:
            tasks = [asyncio.ensure_future(synthesize(i, text)) for i, text in enumerate(request.affirmations)]
            try:
                clips = await asyncio.gather(*tasks)
            except BaseException:
                # Siblings must be finished before the caller removes temp_dir.
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
        return sorted(clips, key=lambda clip: clip.index)

    async def join_clips(self, clips: list[VoiceClip], gap_seconds: float, temp_dir: str) -> str:
        """One continuous voice track: a gap after every clip except the last."""
        if len(clips) == 1:
            return clips[0].path

        parts = []
        for clip in clips[:-1]:
            padded = os.path.join(temp_dir, f"affirmation_{clip.index:03d}_gap.m4a")
            parts.append(await self.processor.insert_silence(clip.path, padded, gap_seconds))
        parts.append(clips[-1].path)

        return await self.processor.concatenate(parts, os.path.join(temp_dir, "voice.m4a"))

    async def _cleanup(self, temp_dir: str):
        try:
            await asyncio.to_thread(shutil.rmtree, temp_dir)
        except OSError as e:
            logger.warning(f"Could not remove {temp_dir}: {e}")


async def remove_track_files(track: Track):
    """Delete a track's working directory; missing directories are fine."""
    if os.path.isdir(track.path):
        await asyncio.to_thread(shutil.rmtree, track.path)
        logger.info(f"Deleted files: {track.path}")
