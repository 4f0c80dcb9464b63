import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

import auth
from affirmations import AffirmationGenerator
from assembler import TrackAssembler
from audio import AudioProcessor
from catalog import BackingTrackCatalog
from database import Database
from ratelimit import limiter, rate_limit_exceeded
from repository import TrackRepository, UserRepository
from routers import content, generate, system, tracks, users, voice
from speech import SpeechSynthesizer

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = os.getenv("APP_NAME", "WHSPR")
SYNTHESIS_CONCURRENCY = int(os.environ.get("SYNTHESIS_CONCURRENCY", "1"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up %s API", APP_NAME)
    if auth.JWT_SECRET == auth.DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is not set; using the built-in development secret")

    database = Database()
    database.init_db()
    app.state.tracks = TrackRepository(database)
    app.state.users = UserRepository(database)
    app.state.tracks.fail_stuck()

    client = httpx.AsyncClient(timeout=60.0)
    app.state.catalog = BackingTrackCatalog()
    app.state.processor = AudioProcessor()
    app.state.synthesizer = SpeechSynthesizer(client=client)
    app.state.generator = AffirmationGenerator(client=client)
    app.state.assembler = TrackAssembler(
        app.state.tracks,
        app.state.synthesizer,
        app.state.processor,
        app.state.catalog,
        synthesis_concurrency=SYNTHESIS_CONCURRENCY,
    )
    yield
    logger.info("Shutting down %s API", APP_NAME)
    await client.aclose()


app = FastAPI(title=APP_NAME + " API", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded)

_origins = [o.strip() for o in os.environ.get("ALLOWED_ORIGINS", "http://localhost:5173").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


app.include_router(system.router)
app.include_router(users.router)
app.include_router(generate.router)
app.include_router(voice.router)
app.include_router(tracks.router)
app.include_router(content.router)
