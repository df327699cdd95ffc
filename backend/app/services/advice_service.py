"""
Request orchestration for screenshot advice and goal step generation.

analyze():
    rate-limit check -> body parsing -> input validation -> image decode -> prompt -> Gemini
    Every failure is raised as an ``AdviceError``; no model call is made when
    the rate limit or validation rejects the request.

generate_steps():
    prompt -> search-grounded Gemini call -> JSON step parsing
    Upstream and parse failures degrade to ``FALLBACK_STEPS`` with the reason
    attached, so the goal-creation flow always has steps to show.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from app.core.advice_prompts import compose_prompt, select_context
from app.core.errors import (
    MalformedRequest,
    MalformedStepData,
    MissingInput,
    RateLimited,
    UpstreamError,
)
from app.core.image_payload import DecodedImage, decode_image, validate_analysis_input
from app.core.rate_limit import RateLimiter, RateLimitResult
from app.core.step_prompts import FALLBACK_STEPS, build_step_generation_prompt
from app.models.advice import AnalyzeRequest
from app.models.steps import StepGenerationResult
from app.utils.json_parser import parse_steps

logger = logging.getLogger(__name__)

STEP_ERROR_PREFIX = "ステップ生成でエラーが発生しました: "


def load_analyze_request(raw: bytes) -> AnalyzeRequest:
    """Parse a raw /api/analyze body; JSON and type errors become ``MalformedRequest``."""
    try:
        return AnalyzeRequest.model_validate_json(raw)
    except PydanticValidationError as e:
        raise MalformedRequest.from_errors(e.errors()) from e


class ModelClient(Protocol):
    async def generate(
        self,
        instruction: str,
        image: DecodedImage | None = None,
        *,
        use_search_grounding: bool = False,
    ) -> str: ...


@dataclass(frozen=True)
class AnalysisResult:
    response: str
    rate_limit: RateLimitResult

    @property
    def remaining(self) -> int:
        return self.rate_limit.remaining


class AdviceService:
    """Sequences the rate limiter, validation, prompt composition and model call."""

    def __init__(self, rate_limiter: RateLimiter, model_client: ModelClient) -> None:
        self.rate_limiter = rate_limiter
        self.model_client = model_client

    async def analyze(self, identifier: str, request: AnalyzeRequest | bytes) -> AnalysisResult:
        """Answer one screenshot question.

        *request* may be the raw body; it is then parsed only after the rate
        limit has been charged, so a malformed body still counts.
        """
        rate_limit = await self.rate_limiter.check(identifier)
        if not rate_limit.allowed:
            raise RateLimited(
                rate_limit.error,
                remaining=rate_limit.remaining,
                reset_time=rate_limit.reset_time,
            )

        if not isinstance(request, AnalyzeRequest):
            request = load_analyze_request(request)
        validate_analysis_input(request.image, request.question)
        image = decode_image(request.image)

        context = select_context(request.goal, request.history)
        instruction = compose_prompt(request.question, context)

        logger.info(
            "Analyzing screenshot for %s (%s, %s, %d bytes)",
            identifier, type(context).__name__, image.mime_type, len(image.data),
        )
        response = await self.model_client.generate(instruction, image=image)

        return AnalysisResult(response=response, rate_limit=rate_limit)

    async def generate_steps(
        self,
        goal_title: str | None,
        description: str | None = None,
    ) -> StepGenerationResult:
        if not goal_title or not goal_title.strip():
            raise MissingInput("目標タイトルが必要です")

        prompt = build_step_generation_prompt(goal_title, description)
        logger.info("Generating steps for goal: %s", goal_title)

        try:
            raw = await self.model_client.generate(prompt, use_search_grounding=True)
            steps = parse_steps(raw)
        except (UpstreamError, MalformedStepData) as e:
            logger.warning("Step generation fell back to default steps (%s): %s", e.code, e.message)
            return StepGenerationResult(
                steps=list(FALLBACK_STEPS),
                fallback_reason=f"{STEP_ERROR_PREFIX}{e.message}",
            )

        logger.info("Generated %d steps for goal: %s", len(steps), goal_title)
        return StepGenerationResult(steps=steps)
