"""Domain errors for the advice pipeline.

Each error carries the HTTP status it maps to and a user-facing message.
The FastAPI exception handler in ``app.main`` renders them as ``{"error": message}``.
"""


class AdviceError(Exception):
    """Base exception for every failure the advice pipeline surfaces."""

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "サーバーエラーが発生しました。しばらくしてから再試行してください。"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


class RateLimited(AdviceError):
    """Raised when a caller hits the burst spacing or the daily cap."""

    code = "RATE_LIMITED"
    status_code = 429
    default_message = "リクエストが多すぎます。少し待ってから再試行してください。"

    def __init__(
        self,
        message: str | None = None,
        *,
        remaining: int = 0,
        reset_time: float | None = None,
    ):
        super().__init__(message)
        self.remaining = remaining
        self.reset_time = reset_time


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class ValidationError(AdviceError):
    """Base class for caller input that must be corrected before retrying."""

    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "リクエストの内容が正しくありません。"


class MalformedRequest(ValidationError):
    """The body is not JSON or a field has the wrong type."""

    code = "MALFORMED_REQUEST"
    default_message = "リクエストの形式が正しくありません"

    @classmethod
    def from_errors(cls, errors: list[dict]) -> "MalformedRequest":
        """Build the message from the first pydantic error (``body`` is dropped from the location)."""
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = " ".join(part for part in (location, first.get("msg", "")) if part)
        if not detail:
            return cls()
        return cls(f"{cls.default_message}: {detail}")


class MissingInput(ValidationError):
    code = "MISSING_INPUT"
    default_message = "画像と質問の両方が必要です"


class QuestionTooLong(ValidationError):
    code = "QUESTION_TOO_LONG"
    default_message = "質問は500文字以内にしてください"


class ImageTooLarge(ValidationError):
    code = "IMAGE_TOO_LARGE"
    default_message = "画像は5MB以下にしてください"


class InvalidImageFormat(AdviceError):
    """The image payload is not a base64 data URI."""

    code = "INVALID_IMAGE_FORMAT"
    status_code = 400
    default_message = "無効な画像形式です"


# ---------------------------------------------------------------------------
# Upstream model failures
# ---------------------------------------------------------------------------


class UpstreamError(AdviceError):
    """Base class for failures of the Gemini call."""

    code = "UPSTREAM_ERROR"
    status_code = 502


class UpstreamTimeout(UpstreamError):
    code = "UPSTREAM_TIMEOUT"
    status_code = 504
    default_message = "AIの応答時間が長すぎました。もう一度試してください。"


class UpstreamAuthError(UpstreamError):
    code = "UPSTREAM_AUTH_ERROR"
    status_code = 502
    default_message = "AI APIに接続できませんでした。APIキーの設定を確認してください。"


class UpstreamUnavailable(UpstreamError):
    code = "UPSTREAM_UNAVAILABLE"
    status_code = 502
    default_message = "AI APIに接続できませんでした。しばらくしてから再試行してください。"


# ---------------------------------------------------------------------------
# Model output
# ---------------------------------------------------------------------------


class MalformedStepData(AdviceError):
    """The model's step output did not follow the JSON array contract."""

    code = "MALFORMED_STEP_DATA"
    status_code = 502
    default_message = "ステップデータの形式が正しくありません"
