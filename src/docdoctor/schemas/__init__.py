"""Embedded JSON-Schema documents describing the metadata format."""

from __future__ import annotations

import copy
import json
from functools import cache
from importlib import resources
from typing import Any

from docdoctor.constants import SCHEMA_VERSION

FRONTMATTER_SCHEMA = "frontmatter.json"
STUBS_SCHEMA = "stubs.json"


@cache
def _load(name: str) -> dict[str, Any]:
    source = resources.files(__name__).joinpath(name)
    return json.loads(source.read_text(encoding="utf-8"))


class EmbeddedSchemaProvider:
    """Serves the schemas shipped inside the package.

    Callers receive copies; the cached documents are never handed out.
    """

    def frontmatter_schema(self) -> dict[str, Any]:
        return copy.deepcopy(_load(FRONTMATTER_SCHEMA))

    def stubs_schema(self) -> dict[str, Any]:
        return copy.deepcopy(_load(STUBS_SCHEMA))

    def version(self) -> str:
        return SCHEMA_VERSION
