import logging
import os

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

# limits notation: "<count>/<n><unit>"
AFFIRMATION_RATE_LIMIT = os.environ.get("AFFIRMATION_RATE_LIMIT", "20/15minutes")
ASSEMBLY_RATE_LIMIT = os.environ.get("ASSEMBLY_RATE_LIMIT", "5/15minutes")

AFFIRMATION_LIMIT_MESSAGE = "Too many affirmation generation requests, please try again later."
ASSEMBLY_LIMIT_MESSAGE = "Too many track assembly requests, please try again later."

# Counters live in process memory, keyed by client address.
limiter = Limiter(key_func=get_remote_address, headers_enabled=True)


async def rate_limit_exceeded(request: Request, exc: RateLimitExceeded):
    logger.info(f"Rate limit hit by {get_remote_address(request)} on {request.url.path}")
    response = JSONResponse(status_code=429, content={"detail": exc.detail})
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)
