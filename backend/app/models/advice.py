"""Pydantic models for the screenshot advice endpoint."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


def to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(w.title() for w in parts[1:])


class GoalContext(BaseModel):
    """The user's current objective, used to bias the advice."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    objective: str
    current_status: str = ""
    deadline: str | None = None


class HistoryEntry(BaseModel):
    """One earlier question/answer exchange, oldest entries first."""

    model_config = ConfigDict(frozen=True)

    question: str
    answer: str


class AnalyzeRequest(BaseModel):
    """Request body for POST /api/analyze.

    ``image`` and ``question`` are optional at the schema level so that the
    rate-limit check runs before the "both required" validation.
    """

    model_config = ConfigDict(frozen=True)

    image: str | None = Field(None, description="Screenshot as a data:<mime>;base64,<payload> URI")
    question: str | None = Field(None, description="The user's question about the screenshot")
    goal: GoalContext | None = None
    history: list[HistoryEntry] | None = Field(
        None, description="Earlier exchanges, oldest first; only the most recent few are used"
    )


class AnalyzeResponse(BaseModel):
    """Advice text plus the caller's remaining daily quota."""

    response: str
    remaining: int
