"""Pydantic models for goal step generation."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from app.models.advice import to_camel


class ParsedStep(BaseModel):
    """A single step returned by the model."""

    title: str
    description: str


class GenerateStepsRequest(BaseModel):
    """Request body for POST /api/generate-steps."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    goal_title: str | None = Field(None, description="Short title of the goal to break down")
    description: str | None = Field(None, description="Optional details or current situation")


class GenerateStepsResponse(BaseModel):
    """Ordered steps; ``fallback`` is true when canned steps replaced the model output."""

    steps: list[ParsedStep] = Field(default_factory=list)
    fallback: bool = False
    error: str | None = None


class StepGenerationResult(BaseModel):
    """Outcome of step generation: real steps, or fallback steps plus the reason."""

    steps: list[ParsedStep]
    fallback_reason: str | None = None

    @property
    def fallback(self) -> bool:
        return self.fallback_reason is not None

    def to_response(self) -> GenerateStepsResponse:
        return GenerateStepsResponse(
            steps=self.steps,
            fallback=self.fallback,
            error=self.fallback_reason,
        )
