"""Tests for data URI decoding and analysis input validation."""

import pytest

from app.core.errors import ImageTooLarge, InvalidImageFormat, MissingInput, QuestionTooLong
from app.core.image_payload import decode_image, validate_analysis_input

FIVE_MIB = 5 * 1024 * 1024


class TestDecodeImage:
    def test_png_data_uri(self):
        image = decode_image("data:image/png;base64,AAAA")
        assert image.mime_type == "image/png"
        assert image.data == b"\x00\x00\x00"

    def test_jpeg_mime_type_preserved(self):
        image = decode_image("data:image/jpeg;base64,/9j/4AAQ")
        assert image.mime_type == "image/jpeg"

    def test_not_a_data_uri(self):
        with pytest.raises(InvalidImageFormat):
            decode_image("not-a-data-uri")

    def test_missing_base64_marker(self):
        with pytest.raises(InvalidImageFormat):
            decode_image("data:image/png,AAAA")

    def test_empty_payload(self):
        with pytest.raises(InvalidImageFormat):
            decode_image("data:image/png;base64,")

    def test_invalid_base64_payload(self):
        with pytest.raises(InvalidImageFormat):
            decode_image("data:image/png;base64,@@@@")


class TestValidateAnalysisInput:
    def test_both_missing(self):
        with pytest.raises(MissingInput) as exc_info:
            validate_analysis_input("", "")
        assert "両方が必要です" in exc_info.value.message

    @pytest.mark.parametrize("image,question", [(None, "q"), ("data:x;base64,AA", None)])
    def test_one_missing(self, image, question):
        with pytest.raises(MissingInput):
            validate_analysis_input(image, question)

    def test_question_of_500_chars_passes(self):
        validate_analysis_input("data:image/png;base64,AAAA", "あ" * 500)

    def test_question_of_501_chars_fails(self):
        with pytest.raises(QuestionTooLong):
            validate_analysis_input("data:image/png;base64,AAAA", "a" * 501)

    def test_image_over_limit_fails(self):
        # len * 0.75 just over 5 MiB
        oversized = "A" * (FIVE_MIB * 4 // 3 + 4)
        with pytest.raises(ImageTooLarge):
            validate_analysis_input(oversized, "q")

    def test_image_at_limit_passes(self):
        validate_analysis_input("A" * (FIVE_MIB * 4 // 3), "q")

    def test_missing_checked_before_length(self):
        with pytest.raises(MissingInput):
            validate_analysis_input("", "a" * 600)

    def test_length_checked_before_size(self):
        with pytest.raises(QuestionTooLong):
            validate_analysis_input("A" * (FIVE_MIB * 2), "a" * 501)
