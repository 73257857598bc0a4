"""Tests for leading metadata block extraction."""

import pytest

from docdoctor.errors import ParseError, UnterminatedFrontmatterError
from docdoctor.parser.frontmatter import (
    document_body,
    extract_frontmatter,
    has_opening_fence,
    split_lines,
)


class TestExtractFrontmatter:
    def test_no_fence_returns_none(self) -> None:
        assert extract_frontmatter("# Hello") is None

    def test_fence_not_on_first_line_is_not_frontmatter(self) -> None:
        assert extract_frontmatter("\n---\ntitle: x\n---\n") is None

    def test_fence_with_trailing_space_is_not_a_fence(self) -> None:
        assert extract_frontmatter("--- \ntitle: x\n---\n") is None

    def test_basic_span(self) -> None:
        text = "---\ntitle: x\n---\nBody\n"
        span = extract_frontmatter(text)
        assert span is not None
        assert span.body == "title: x\n"
        assert span.start_offset == 4
        assert span.end_offset == 4 + len("title: x\n")
        assert text[span.fence_end :] == "Body\n"

    def test_crlf_lines(self) -> None:
        text = "---\r\ntitle: x\r\n---\r\nBody"
        span = extract_frontmatter(text)
        assert span is not None
        assert span.body == "title: x\r\n"
        assert span.newline == "\r\n"
        assert text[span.fence_end :] == "Body"

    def test_bom_is_skipped(self) -> None:
        text = "\ufeff---\ntitle: x\n---\n"
        span = extract_frontmatter(text)
        assert span is not None
        assert span.body == "title: x\n"
        # BOM is three bytes in UTF-8
        assert span.start_offset == 3 + 4

    def test_byte_offsets_account_for_multibyte_text(self) -> None:
        text = "---\ntitle: café\n---\n"
        span = extract_frontmatter(text)
        assert span is not None
        assert span.end_offset - span.start_offset == len(
            "title: café\n".encode()
        )
        assert span.body_end - span.body_start == len("title: café\n")

    def test_empty_body(self) -> None:
        span = extract_frontmatter("---\n---\nBody")
        assert span is not None
        assert span.body == ""

    def test_closing_fence_at_end_without_newline(self) -> None:
        text = "---\na: 1\n---"
        span = extract_frontmatter(text)
        assert span is not None
        assert span.body == "a: 1\n"
        assert text[span.fence_end :] == ""

    def test_unterminated_raises_with_opening_position(self) -> None:
        with pytest.raises(UnterminatedFrontmatterError) as exc_info:
            extract_frontmatter("---\ntitle: x\nno close\n")
        err = exc_info.value
        assert isinstance(err, ParseError)
        assert err.position is not None
        assert (err.position.line, err.position.column) == (1, 1)
        assert "line 1, column 1" in str(err)

    def test_lone_opening_fence_is_unterminated(self) -> None:
        with pytest.raises(UnterminatedFrontmatterError):
            extract_frontmatter("---")


class TestHelpers:
    def test_has_opening_fence(self) -> None:
        assert has_opening_fence("---\n")
        assert has_opening_fence("---\r\n")
        assert not has_opening_fence("----\n")

    def test_split_lines_keeps_endings(self) -> None:
        assert split_lines("a\nb\r\nc") == ["a\n", "b\r\n", "c"]
        assert split_lines("") == []

    def test_document_body_without_metadata(self) -> None:
        assert document_body("plain") == ("plain", 0)

    def test_document_body_skips_bom(self) -> None:
        assert document_body("\ufeffplain") == ("plain", 1)

    def test_document_body_after_fence(self) -> None:
        body, index = document_body("---\na: 1\n---\nText")
        assert body == "Text"
        assert index == len("---\na: 1\n---\n")
