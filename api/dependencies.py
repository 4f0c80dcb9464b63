"""Accessors for the per-process service instances built in main.lifespan."""

from fastapi import Request

from affirmations import AffirmationGenerator
from assembler import TrackAssembler
from audio import AudioProcessor
from catalog import BackingTrackCatalog
from repository import TrackRepository, UserRepository
from speech import SpeechSynthesizer


def get_tracks(request: Request) -> TrackRepository:
    return request.app.state.tracks


def get_users(request: Request) -> UserRepository:
    return request.app.state.users


def get_catalog(request: Request) -> BackingTrackCatalog:
    return request.app.state.catalog


def get_synthesizer(request: Request) -> SpeechSynthesizer:
    return request.app.state.synthesizer


def get_processor(request: Request) -> AudioProcessor:
    return request.app.state.processor


def get_generator(request: Request) -> AffirmationGenerator:
    return request.app.state.generator


def get_assembler(request: Request) -> TrackAssembler:
    return request.app.state.assembler
