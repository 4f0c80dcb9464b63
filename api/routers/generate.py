import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from affirmations import AffirmationGenerator, GenerationError, build_prompt
from dependencies import get_generator
from ratelimit import AFFIRMATION_LIMIT_MESSAGE, AFFIRMATION_RATE_LIMIT, limiter
from schemas import GenerateAffirmationsRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/v1/affirmations/generate")
@limiter.limit(AFFIRMATION_RATE_LIMIT, error_message=AFFIRMATION_LIMIT_MESSAGE)
async def generate_affirmations(
    request: Request,
    response: Response,
    body: GenerateAffirmationsRequest,
    generator: AffirmationGenerator = Depends(get_generator),
):
    prompt = build_prompt(body.themes, body.tone)
    try:
        affirmations = await generator.generate(prompt, body.count)
    except GenerationError:
        raise HTTPException(500, "Failed to generate affirmations")

    return {
        "affirmations": affirmations,
        "promptUsed": prompt,
        "model": generator.model,
        "gapSeconds": body.gap_seconds,
    }
