"""Shared test fixtures: sample documents, switchboard, fake repository."""

import os

# Keep a developer's own config files and env out of the tests.
for _key in list(os.environ):
    if _key.startswith("DOC_DOCTOR_"):
        del os.environ[_key]

from pathlib import Path

import pytest

from docdoctor.config import Settings
from docdoctor.repositories.fakes import InMemoryDocumentRepository
from docdoctor.services.switchboard import Switchboard

FULL_DOC = """\
---
title: Field Guide
refinement: 0.82
audience: internal
form: stable
origin: human
tags:
  - guide
  - ops
custom_field: 42
stubs:
  - verify: "Check the retention numbers"
  - stub_type: citation
    description: Source for the latency claim
    stub_form: persistent
    priority: high
    inline_anchor: latency
---
# Field Guide

Latency is low. ^latency
"""

BLOCKING_DOC = """\
---
refinement: 0.95
audience: public
stubs:
  - verify:
      description: check
      stub_form: blocking
      priority: high
---
Body text.
"""


@pytest.fixture
def full_doc() -> str:
    return FULL_DOC


@pytest.fixture
def blocking_doc() -> str:
    return BLOCKING_DOC


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings whose user config path points into tmp_path."""
    return Settings(
        user_config_path=tmp_path / "user" / "config.yaml",
        _env_file=None,  # type: ignore[call-arg]
    )


@pytest.fixture
def repository() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository(
        {
            "guide.md": FULL_DOC,
            "notes/blocking.md": BLOCKING_DOC,
        }
    )


@pytest.fixture
def switchboard(repository: InMemoryDocumentRepository) -> Switchboard:
    return Switchboard(repository=repository)
