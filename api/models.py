from dataclasses import dataclass, field
from typing import Optional

STATUS_PROCESSING = "processing"
STATUS_READY = "ready"
STATUS_ERROR = "error"
TRACK_STATUSES = (STATUS_PROCESSING, STATUS_READY, STATUS_ERROR)


@dataclass
class Track:
    id: str
    user_id: Optional[str]
    path: str  # track working directory
    duration_s: float
    size_bytes: int
    status: str  # 'processing' | 'ready' | 'error'
    error_msg: Optional[str]
    created_at: str
    updated_at: str


@dataclass
class User:
    id: str
    email: str
    password_hash: str
    created_at: str


@dataclass
class BackingTrack:
    id: str
    name: str
    filename: str
    duration_s: float
    tags: list[str] = field(default_factory=list)


@dataclass
class VoiceSettings:
    stability: Optional[float] = None
    similarity_boost: Optional[float] = None


@dataclass
class AssemblyRequest:
    affirmations: list[str]
    voice_id: str
    backing_track_id: str
    gap_seconds: float = 4
    target_lufs: float = -16
    voice_settings: Optional[VoiceSettings] = None


@dataclass
class VoiceClip:
    index: int
    text: str
    path: str
    duration_s: float
