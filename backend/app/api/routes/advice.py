"""Screenshot advice and goal step generation endpoints."""

import logging

from fastapi import APIRouter, Request, Response

from app.api.dependencies import AdviceServiceDep, ClientIdentifier
from app.core.rate_limit import rate_limit_headers
from app.models.advice import AnalyzeRequest, AnalyzeResponse
from app.models.steps import GenerateStepsRequest, GenerateStepsResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": AnalyzeRequest.model_json_schema()}},
        },
    },
)
async def analyze_screenshot(
    request: Request,
    response: Response,
    identifier: ClientIdentifier,
    service: AdviceServiceDep,
) -> AnalyzeResponse:
    """
    Answer a question about a screenshot.

    Uses the goal-directed prompt when a goal or conversation history is
    supplied. The body is read raw and parsed by the service after the rate
    limit check. Errors are rendered by the ``AdviceError`` handler in ``app.main``.
    """
    result = await service.analyze(identifier, await request.body())
    response.headers.update(rate_limit_headers(result.remaining, result.rate_limit.reset_time))
    return AnalyzeResponse(response=result.response, remaining=result.remaining)


@router.post(
    "/generate-steps",
    response_model=GenerateStepsResponse,
    response_model_exclude_none=True,
)
async def generate_steps(
    body: GenerateStepsRequest,
    service: AdviceServiceDep,
) -> GenerateStepsResponse:
    """Break a goal down into ordered steps; always 200 once ``goalTitle`` is present."""
    result = await service.generate_steps(body.goal_title, body.description)
    return result.to_response()
