import logging
import os
import re
import uuid

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from audio import AudioProcessor
from dependencies import get_processor, get_synthesizer
from schemas import SynthesizeVoiceRequest
from speech import SpeechSynthesizer, SynthesisError

logger = logging.getLogger(__name__)
router = APIRouter()

DATA_DIR = os.environ.get("DATA_DIR", "/tmp/whspr")
VOICE_DIR = os.path.join(DATA_DIR, "voice")

_FILE_ID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}-\d+$")


@router.post("/v1/voice/synthesize")
async def synthesize_voice(
    body: SynthesizeVoiceRequest,
    synthesizer: SpeechSynthesizer = Depends(get_synthesizer),
    processor: AudioProcessor = Depends(get_processor),
):
    """Synthesize one or more lines for preview, one file per line."""
    settings = body.voice_params.to_settings() if body.voice_params else None
    batch = uuid.uuid4()
    files = []
    try:
        for index, text in enumerate(body.texts()):
            file_id = f"{batch}-{index}"
            path = os.path.join(VOICE_DIR, f"{file_id}.mp3")
            await synthesizer.synthesize_to_file(text, body.voice_id, path, settings)
            files.append({
                "id": file_id,
                "url": f"/v1/voice/files/{file_id}",
                "durationSec": await processor.get_duration(path),
            })
    except SynthesisError:
        raise HTTPException(500, "Failed to synthesize voice")

    return {"files": files}


@router.get("/v1/voice/files/{file_id}")
def get_voice_file(file_id: str):
    if not _FILE_ID.match(file_id):
        raise HTTPException(404, "File not found")
    path = os.path.join(VOICE_DIR, f"{file_id}.mp3")
    if not os.path.exists(path):
        raise HTTPException(404, "File not found")
    return FileResponse(path, media_type="audio/mpeg")
