"""Frontmatter extraction, decoding and rewriting."""

from docdoctor.parser.decoder import (
    DecodedDocument,
    DecodeWarning,
    MetadataDecoder,
    decode_document,
    parse_document,
)
from docdoctor.parser.frontmatter import FrontmatterSpan, extract_frontmatter
from docdoctor.parser.position import PositionTracker, SourcePosition
from docdoctor.parser.writer import MetadataWriter

__all__ = [
    "DecodeWarning",
    "DecodedDocument",
    "FrontmatterSpan",
    "MetadataDecoder",
    "MetadataWriter",
    "PositionTracker",
    "SourcePosition",
    "decode_document",
    "extract_frontmatter",
    "parse_document",
]
