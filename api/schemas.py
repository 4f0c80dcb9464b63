"""Request bodies. Everything here is checked before any service is called."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints

from models import AssemblyRequest, VoiceSettings

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(_Body):
    email: EmailStr
    password: str = Field(min_length=8)


class LoginRequest(_Body):
    email: EmailStr
    password: str


class VoiceParams(_Body):
    stability: float | None = Field(None, ge=0, le=1)
    similarity_boost: float | None = Field(None, ge=0, le=1)

    def to_settings(self) -> VoiceSettings:
        return VoiceSettings(stability=self.stability, similarity_boost=self.similarity_boost)


class GenerateAffirmationsRequest(_Body):
    themes: list[NonEmptyStr] = Field(min_length=1)
    tone: Literal["calm", "grateful", "confident"] | None = None
    count: int = Field(20, ge=1, le=50)
    gap_seconds: int = Field(4, ge=1, le=10, alias="gapSeconds")


class SynthesizeVoiceRequest(_Body):
    text: NonEmptyStr | list[NonEmptyStr]
    voice_id: NonEmptyStr = Field(alias="voiceId")
    voice_params: VoiceParams | None = Field(None, alias="voiceParams")

    def texts(self) -> list[str]:
        return self.text if isinstance(self.text, list) else [self.text]


class AssembleTrackRequest(_Body):
    affirmations: list[NonEmptyStr] = Field(min_length=1)
    voice_id: NonEmptyStr = Field(alias="voiceId")
    backing_track_id: NonEmptyStr = Field(alias="backingTrackId")
    gap_seconds: int = Field(4, ge=1, le=10, alias="gapSeconds")
    target_lufs: float = Field(-16, ge=-30, le=-10, alias="targetLufs")
    voice_params: VoiceParams | None = Field(None, alias="voiceParams")

    def to_assembly(self) -> AssemblyRequest:
        return AssemblyRequest(
            affirmations=list(self.affirmations),
            voice_id=self.voice_id,
            backing_track_id=self.backing_track_id,
            gap_seconds=self.gap_seconds,
            target_lufs=self.target_lufs,
            voice_settings=self.voice_params.to_settings() if self.voice_params else None,
        )
