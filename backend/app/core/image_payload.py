"""Decoding and size checks for screenshot data URIs."""

import base64
import binascii
import re
from dataclasses import dataclass

from app.config import settings
from app.core.errors import ImageTooLarge, InvalidImageFormat, MissingInput, QuestionTooLong

_DATA_URI_RE = re.compile(r"^data:([^;]+);base64,(.+)$")

# Base64 inflates binary data by 4/3, so decoded size is about 3/4 of the text.
BASE64_SIZE_RATIO = 0.75


@dataclass(frozen=True)
class DecodedImage:
    mime_type: str
    data: bytes


def estimated_image_size(data_uri: str) -> float:
    """Approximate decoded size in bytes of a data URI (whole string length * 0.75)."""
    return len(data_uri) * BASE64_SIZE_RATIO


def validate_analysis_input(image: str | None, question: str | None) -> None:
    """Reject missing input, long questions, then oversized images, in that order."""
    if not image or not question:
        raise MissingInput()

    if len(question) > settings.max_question_length:
        raise QuestionTooLong(
            f"質問は{settings.max_question_length}文字以内にしてください"
        )

    max_bytes = settings.max_image_size_mb * 1024 * 1024
    if estimated_image_size(image) > max_bytes:
        raise ImageTooLarge(f"画像は{settings.max_image_size_mb}MB以下にしてください")


def decode_image(data_uri: str) -> DecodedImage:
    """Split ``data:<mime>;base64,<payload>`` into its MIME type and raw bytes."""
    match = _DATA_URI_RE.match(data_uri or "")
    if not match:
        raise InvalidImageFormat()

    mime_type, payload = match.groups()
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageFormat() from e

    return DecodedImage(mime_type=mime_type, data=data)
