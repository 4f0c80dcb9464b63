import asyncio
import contextlib
import json
import logging
import os

logger = logging.getLogger(__name__)

FFMPEG_TIMEOUT_S = float(os.environ.get("FFMPEG_TIMEOUT_S", "300"))

SAMPLE_RATE = 44100
INTERMEDIATE_CODEC = "aac"


class AudioProcessingError(RuntimeError):
    """An ffmpeg/ffprobe invocation failed or timed out."""


def _partial_path(output_path: str) -> str:
    # Keep the extension so ffmpeg still picks the right muxer.
    directory, name = os.path.split(output_path)
    stem, ext = os.path.splitext(name)
    return os.path.join(directory, f".{stem}.partial{ext}")


async def _kill(proc: asyncio.subprocess.Process):
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    await proc.wait()


class AudioProcessor:
    """Async wrappers around the ffmpeg toolchain.

    Each operation reads one or two files and writes one output file. Output is
    rendered to a hidden sibling file and moved over ``output_path`` only when
    ffmpeg exits cleanly, so reruns replace the previous result and a failed run
    never leaves a half-written file behind.
    """

    def __init__(self, ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe", timeout_s: float | None = None):
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.timeout_s = timeout_s or FFMPEG_TIMEOUT_S

    async def _exec(self, *cmd: str) -> tuple[int, str, str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AudioProcessingError(f"could not start {cmd[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            await _kill(proc)
            raise AudioProcessingError(f"{cmd[0]} timed out after {self.timeout_s:.0f}s")
        except asyncio.CancelledError:
            await _kill(proc)
            raise

        return proc.returncode, stdout.decode(errors="replace"), stderr.decode(errors="replace")

    async def _render(self, step: str, args: list[str], output_path: str) -> str:
        directory = os.path.dirname(output_path)
        if directory:
            await asyncio.to_thread(os.makedirs, directory, exist_ok=True)
        partial = _partial_path(output_path)

        logger.info(f"ffmpeg {step} -> {output_path}")
        try:
            returncode, _, stderr = await self._exec(self.ffmpeg, "-hide_banner", "-nostdin", *args, "-y", partial)
            if returncode != 0:
                raise AudioProcessingError(f"ffmpeg {step} failed: {stderr[-500:]}")
        except BaseException:
            # Timeouts and cancellation included: nothing half-written survives.
            with contextlib.suppress(FileNotFoundError):
                os.unlink(partial)
            raise

        await asyncio.to_thread(os.replace, partial, output_path)
        return output_path

    async def insert_silence(self, input_path: str, output_path: str, seconds: float) -> str:
        """Append ``seconds`` of silence after the input's audio."""
        return await self._render(
            "insert_silence",
            [
                "-i", input_path,
                "-f", "lavfi",
                "-i", f"aevalsrc=0|0:c=stereo:s={SAMPLE_RATE}:d={seconds}",
                "-filter_complex", "[0:a][1:a]concat=n=2:v=0:a=1[out]",
                "-map", "[out]",
                "-c:a", INTERMEDIATE_CODEC,
            ],
            output_path,
        )

    async def concatenate(self, input_paths: list[str], output_path: str) -> str:
        """Join clips back to back, in the order given."""
        if not input_paths:
            raise ValueError("concatenate needs at least one input")

        args: list[str] = []
        for path in input_paths:
            args += ["-i", path]
        streams = "".join(f"[{i}:a]" for i in range(len(input_paths)))
        args += [
            "-filter_complex", f"{streams}concat=n={len(input_paths)}:v=0:a=1[out]",
            "-map", "[out]",
            "-c:a", INTERMEDIATE_CODEC,
        ]
        return await self._render("concatenate", args, output_path)

    async def normalize(self, input_path: str, output_path: str, target_lufs: float = -16) -> str:
        # loudnorm resamples to 192kHz internally; bring it back down.
        return await self._render(
            "normalize",
            [
                "-i", input_path,
                "-af", f"loudnorm=I={target_lufs}:TP=-1.5:LRA=11",
                "-ar", str(SAMPLE_RATE),
                "-c:a", INTERMEDIATE_CODEC,
            ],
            output_path,
        )

    async def mix(self, voice_path: str, music_path: str, output_path: str, duck_level_db: float = -10) -> str:
        """Duck the music by ``duck_level_db`` and lay the voice over it.

        The music loops if it is shorter than the voice; the result is cut to
        the voice's length.
        """
        return await self._render(
            "mix",
            [
                "-i", voice_path,
                "-stream_loop", "-1",
                "-i", music_path,
                "-filter_complex",
                f"[1:a]volume={duck_level_db}dB[ducked];"
                "[0:a][ducked]amix=inputs=2:duration=first:dropout_transition=0:normalize=0[out]",
                "-map", "[out]",
                "-c:a", INTERMEDIATE_CODEC,
            ],
            output_path,
        )

    async def convert_to_mp3(
        self,
        input_path: str,
        output_path: str,
        bitrate_kbps: int = 128,
        comment: str | None = None,
    ) -> str:
        args = [
            "-i", input_path,
            "-vn",
            "-acodec", "libmp3lame",
            "-ab", f"{bitrate_kbps}k",
            "-ar", str(SAMPLE_RATE),
            "-ac", "2",
            "-id3v2_version", "3",
        ]
        if comment:
            args += ["-metadata", f"comment={comment}"]
        return await self._render("convert_to_mp3", args, output_path)

    async def get_duration(self, path: str) -> float:
        """Duration in seconds via ffprobe; 0.0 if the file can't be probed."""
        try:
            returncode, stdout, stderr = await self._exec(
                self.ffprobe,
                "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                path,
            )
            if returncode != 0:
                raise AudioProcessingError(f"ffprobe exited with {returncode}: {stderr[-200:]}")

            info = json.loads(stdout)
            duration = info.get("format", {}).get("duration")
            if duration is None:
                for stream in info.get("streams", []):
                    if stream.get("codec_type") == "audio" and "duration" in stream:
                        duration = stream["duration"]
                        break
            return float(duration) if duration is not None else 0.0
        except (AudioProcessingError, ValueError) as e:
            logger.warning(f"Could not probe duration of {path}: {e}")
            return 0.0
