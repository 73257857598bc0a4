"""Tests for the Switchboard façade."""

import math
from datetime import date
from pathlib import Path

import pytest

from docdoctor.calculations.config import merge_config_layers
from docdoctor.config import Settings
from docdoctor.constants import (
    Priority,
    StubForm,
    StubOrigin,
    StubType,
    SyncStatus,
)
from docdoctor.errors import (
    AmbiguousSelectorError,
    AnalysisError,
    DocumentAccessError,
    InvalidStubError,
    ParseError,
    RepositoryErrorKind,
    StubNotFoundError,
    SwitchboardError,
)
from docdoctor.models import L1Properties
from docdoctor.parser.frontmatter import document_body
from docdoctor.repositories.fakes import InMemoryDocumentRepository
from docdoctor.repositories.filesystem import FileSystemRepository
from docdoctor.services.switchboard import (
    NewStub,
    StubFilter,
    StubResolution,
    StubUpdates,
    Switchboard,
    normalize_anchor,
)

THREE_STUBS = """\
---
title: Roadmap
refinement: 0.6
stubs:
  - verify: Check the Q3 dates
  - verify: Check the owners
  - link:
      description: Link the RFC
      inline_anchor: rfc
---
See the RFC ^rfc and again #^rfc.
Not an anchor: foo^rfc.
"""


class TestParseAndAnalyze:
    def test_parse_document(
        self, switchboard: Switchboard, full_doc: str
    ) -> None:
        props = switchboard.parse_document(full_doc)
        assert props.title == "Field Guide"

    def test_parse_error_propagates(self, switchboard: Switchboard) -> None:
        with pytest.raises(ParseError):
            switchboard.parse_document("---\nrefinement: 9\n---\n")

    def test_analyze_wraps_parse_errors(
        self, switchboard: Switchboard
    ) -> None:
        with pytest.raises(AnalysisError) as exc_info:
            switchboard.analyze_document("---\nrefinement: 9\n---\n")
        err = exc_info.value
        assert isinstance(err, SwitchboardError)
        assert err.field == "refinement"
        assert err.position is not None
        assert err.position.line == 2

    def test_analyze_full_document(
        self, switchboard: Switchboard, full_doc: str
    ) -> None:
        analysis = switchboard.analyze_document(full_doc)
        dims = analysis.dimensions
        assert dims.stub_penalty == pytest.approx(0.02 + 0.075)
        assert dims.health == pytest.approx(0.82 - 0.095)
        assert dims.trust_level == 0.90
        assert dims.freshness == 1.0
        assert dims.usefulness.is_useful
        assert analysis.vectors.stub_count == 2
        assert analysis.warnings == ()

    def test_age_from_modified_field(self, switchboard: Switchboard) -> None:
        text = "---\nform: developing\nmodified: 2024-01-01\n---\n"
        analysis = switchboard.analyze_document(
            text, as_of=date(2024, 1, 31)
        )
        assert analysis.dimensions.freshness == pytest.approx(0.5)

    def test_explicit_age_wins(self, switchboard: Switchboard) -> None:
        text = "---\nform: developing\nmodified: 2024-01-01\n---\n"
        analysis = switchboard.analyze_document(
            text, days_since_update=0, as_of=date(2024, 1, 31)
        )
        assert analysis.dimensions.freshness == 1.0

    def test_strict_switchboard_reports_unknown_keys(self) -> None:
        board = Switchboard(strict=True)
        analysis = board.analyze_document("---\ntitel: x\n---\n")
        assert analysis.warning_messages[0] == "Unknown field: titel"
        assert analysis.warnings[0].path == "/titel"

    def test_configured_switchboard(self) -> None:
        config = merge_config_layers([{"trust_factors": {"unknown": 0.1}}])
        board = Switchboard(config=config)
        dims = board.analyze_document("# plain").dimensions
        assert dims.trust_level == 0.1
        assert not dims.using_defaults

    def test_idempotent_through_reemit(
        self, switchboard: Switchboard, full_doc: str
    ) -> None:
        first = switchboard.analyze_document(full_doc)
        again = switchboard.analyze_document(
            switchboard.reemit_document(full_doc)
        )
        assert again.properties == first.properties
        assert again.dimensions == first.dimensions

    def test_unknown_keys_do_not_change_dimensions(
        self, switchboard: Switchboard
    ) -> None:
        base = "---\ntitle: t\nrefinement: 0.6\nform: stable\n---\nBody\n"
        noisy = (
            "---\nzzz: [1, 2]\ntitle: t\nrefinement: 0.6\n"
            "owner: sam\nform: stable\n---\nBody\n"
        )
        a = switchboard.analyze_document(base, days_since_update=10)
        b = switchboard.analyze_document(noisy, days_since_update=10)
        assert a.dimensions == b.dimensions
        assert a.vectors == b.vectors


class TestValidate:
    def test_uses_switchboard_strictness(self, full_doc: str) -> None:
        assert Switchboard().validate_document(full_doc).is_valid
        assert not Switchboard(strict=True).validate_document(
            full_doc
        ).is_valid

    def test_explicit_strict_overrides(self, full_doc: str) -> None:
        board = Switchboard(strict=True)
        assert board.validate_document(full_doc, strict=False).is_valid


class TestStubSelection:
    def test_list_with_filter(self, switchboard: Switchboard) -> None:
        listed = switchboard.list_stubs(
            THREE_STUBS, StubFilter(stub_type=StubType.VERIFY)
        )
        assert [s.index for s in listed] == [0, 1]

    def test_select_by_index(self, switchboard: Switchboard) -> None:
        stubs = switchboard.parse_document(THREE_STUBS).stubs
        assert switchboard.select_stub(stubs, 2) == 2

    def test_index_out_of_range(self, switchboard: Switchboard) -> None:
        stubs = switchboard.parse_document(THREE_STUBS).stubs
        with pytest.raises(StubNotFoundError, match="out of range"):
            switchboard.select_stub(stubs, 3)
        with pytest.raises(StubNotFoundError):
            switchboard.select_stub(stubs, -1)

    def test_select_by_prefix_case_insensitive(
        self, switchboard: Switchboard
    ) -> None:
        stubs = switchboard.parse_document(THREE_STUBS).stubs
        assert switchboard.select_stub(stubs, "check the o") == 1
        assert switchboard.select_stub(stubs, "LINK") == 2

    def test_ambiguous_prefix(self, switchboard: Switchboard) -> None:
        stubs = switchboard.parse_document(THREE_STUBS).stubs
        with pytest.raises(AmbiguousSelectorError) as exc_info:
            switchboard.select_stub(stubs, "Check")
        assert exc_info.value.candidates == (0, 1)

    def test_no_prefix_match(self, switchboard: Switchboard) -> None:
        stubs = switchboard.parse_document(THREE_STUBS).stubs
        with pytest.raises(StubNotFoundError):
            switchboard.select_stub(stubs, "Rewrite")

    @pytest.mark.parametrize("selector", [True, "   "])
    def test_bad_selectors(
        self, switchboard: Switchboard, selector: bool | str
    ) -> None:
        stubs = switchboard.parse_document(THREE_STUBS).stubs
        with pytest.raises(InvalidStubError):
            switchboard.select_stub(stubs, selector)


class TestAddStub:
    def test_bom_document_without_metadata(
        self, switchboard: Switchboard
    ) -> None:
        new_text, result = switchboard.add_stub(
            "\ufeff# Hello\n", NewStub(stub_type="draft", description="Intro")
        )
        assert new_text.startswith("\ufeff---\n")
        assert result.index == 0
        assert document_body(new_text)[0] == "# Hello\n"

    def test_preserves_unknown_keys_in_place(
        self, switchboard: Switchboard
    ) -> None:
        text = (
            "---\ntitle: Doc\ncustom_field: 42\nstubs:\n"
            "  - verify: Check source\n---\nBody stays.\n"
        )
        new_text, result = switchboard.add_stub(
            text, NewStub(stub_type="draft", description="Write intro")
        )
        assert new_text.splitlines()[2] == "custom_field: 42"
        assert result.index == 1
        assert result.stub_count == 2
        assert result.stub.stub_type == StubType.DRAFT
        assert document_body(new_text)[0] == "Body stays.\n"
        assert switchboard.parse_document(new_text).extras == {
            "custom_field": 42
        }

    def test_enumerations_from_strings(
        self, switchboard: Switchboard
    ) -> None:
        _, result = switchboard.add_stub(
            "# Doc\n",
            NewStub(
                stub_type="Benchmark",
                description="Measure",
                stub_form="blocking",
                priority="CRITICAL",
                stub_origin="review-feedback",
                inline_anchor="^perf",
            ),
        )
        stub = result.stub
        assert stub.stub_form == StubForm.BLOCKING
        assert stub.priority == Priority.CRITICAL
        assert stub.stub_origin == StubOrigin.REVIEW_FEEDBACK
        assert stub.inline_anchor == "perf"

    def test_invalid_new_stub(self, switchboard: Switchboard) -> None:
        with pytest.raises(InvalidStubError) as exc_info:
            switchboard.add_stub(
                "# Doc\n", NewStub(stub_type="fixme", description="x")
            )
        assert exc_info.value.field == "stub_type"
        with pytest.raises(InvalidStubError):
            switchboard.add_stub(
                "# Doc\n", NewStub(stub_type="link", description=" ")
            )

    def test_input_text_not_modified_on_error(
        self, switchboard: Switchboard
    ) -> None:
        text = "---\nrefinement: 2\n---\n"
        with pytest.raises(ParseError):
            switchboard.add_stub(
                text, NewStub(stub_type="link", description="x")
            )


class TestResolveStub:
    def test_resolve_marks_status(self, switchboard: Switchboard) -> None:
        new_text, result = switchboard.resolve_stub(THREE_STUBS, "Check the Q")
        assert result.index == 0
        assert result.resolution == StubResolution.RESOLVE
        assert result.stub.sync_status == SyncStatus.RESOLVED
        props = switchboard.parse_document(new_text)
        assert props.stubs[0].sync_status == SyncStatus.RESOLVED
        assert props.stubs[1] == switchboard.parse_document(
            THREE_STUBS
        ).stubs[1]

    def test_cancel(self, switchboard: Switchboard) -> None:
        _, result = switchboard.resolve_stub(THREE_STUBS, 2, "cancel")
        assert result.stub.sync_status == SyncStatus.CANCELLED

    def test_remove(self, switchboard: Switchboard) -> None:
        new_text, result = switchboard.resolve_stub(
            THREE_STUBS, 1, StubResolution.REMOVE
        )
        assert result.stub_count == 2
        descriptions = [
            s.description
            for s in switchboard.parse_document(new_text).stubs
        ]
        assert descriptions == ["Check the Q3 dates", "Link the RFC"]
        assert document_body(new_text) == document_body(THREE_STUBS)

    def test_unknown_resolution(self, switchboard: Switchboard) -> None:
        with pytest.raises(InvalidStubError):
            switchboard.resolve_stub(THREE_STUBS, 0, "archive")

    def test_ambiguous(self, switchboard: Switchboard) -> None:
        with pytest.raises(AmbiguousSelectorError):
            switchboard.resolve_stub(THREE_STUBS, "check")


class TestUpdateStub:
    def test_update_fields(self, switchboard: Switchboard) -> None:
        new_text, result = switchboard.update_stub(
            THREE_STUBS,
            "Link",
            StubUpdates(priority="high", stub_form="persistent"),
        )
        assert result.changed_fields == ("stub_form", "priority")
        assert result.previous.priority == Priority.MEDIUM
        assert result.stub.priority == Priority.HIGH
        assert result.stub.inline_anchor == "rfc"
        stub = switchboard.parse_document(new_text).stubs[2]
        assert stub == result.stub

    def test_no_changes(self, switchboard: Switchboard) -> None:
        with pytest.raises(InvalidStubError, match="No stub fields"):
            switchboard.update_stub(THREE_STUBS, 0, StubUpdates())

    def test_invalid_value(self, switchboard: Switchboard) -> None:
        with pytest.raises(InvalidStubError) as exc_info:
            switchboard.update_stub(
                THREE_STUBS, 0, StubUpdates(priority="asap")
            )
        assert exc_info.value.field == "priority"

    def test_link_and_unlink_anchor(self, switchboard: Switchboard) -> None:
        linked, result = switchboard.link_stub_anchor(
            THREE_STUBS, 0, "^dates"
        )
        assert result.stub.inline_anchor == "dates"
        unlinked, _ = switchboard.unlink_stub_anchor(linked, 0)
        stub = switchboard.parse_document(unlinked).stubs[0]
        assert stub.inline_anchor is None

    def test_unlink_without_anchor(self, switchboard: Switchboard) -> None:
        with pytest.raises(InvalidStubError):
            switchboard.unlink_stub_anchor(THREE_STUBS, 0)


class TestAnchors:
    def test_find_anchor_matches(self, switchboard: Switchboard) -> None:
        matches = switchboard.find_anchor_matches(THREE_STUBS, "rfc")
        assert matches.anchor == "rfc"
        assert matches.count == 2
        body, _ = document_body(THREE_STUBS)
        assert matches.matches[0].offset == body.index("^rfc")
        assert matches.lines == [11, 11]
        assert matches.matches[0].column == len("See the RFC ") + 1

    def test_offsets_are_bytes(self, switchboard: Switchboard) -> None:
        text = "---\ntitle: t\n---\nCafé ^x\n"
        (match,) = switchboard.find_anchor_matches(text, "x").matches
        assert match.offset == len("Café ".encode())
        assert match.column == len("Café ") + 1

    def test_anchor_prefix_is_not_a_match(
        self, switchboard: Switchboard
    ) -> None:
        text = "Para ^rfc-2 here\n"
        assert not switchboard.find_anchor_matches(text, "rfc").found

    def test_invalid_anchor(self) -> None:
        with pytest.raises(InvalidStubError):
            normalize_anchor("has space")

    def test_stub_anchor_report(self, switchboard: Switchboard) -> None:
        text = THREE_STUBS.replace(
            "  - verify: Check the owners\n",
            "  - verify:\n"
            "      description: Check the owners\n"
            "      inline_anchor: owners\n",
        ).replace("Not an anchor", "Tail ^tail")
        report = switchboard.find_stub_anchors(text)
        by_name = {a.anchor: a for a in report.anchors}
        assert by_name["rfc"].stub_indices == (2,)
        assert by_name["tail"].stub_indices == ()
        assert report.orphaned_stubs == (1,)


class TestCalculations:
    def test_calculate_health(self, switchboard: Switchboard) -> None:
        props = switchboard.parse_document(THREE_STUBS)
        assert switchboard.calculate_health(props) == pytest.approx(
            0.6 - 0.06
        )

    def test_calculate_health_with_config(
        self, switchboard: Switchboard
    ) -> None:
        config = merge_config_layers([{"health": {"stub_weight": 0.0}}])
        props = switchboard.parse_document(THREE_STUBS)
        assert switchboard.calculate_health(props, config) == 0.6

    def test_forecast(self, switchboard: Switchboard) -> None:
        props = switchboard.parse_document(THREE_STUBS)
        assert switchboard.forecast_completion(props, 1.5) == pytest.approx(
            2.0
        )
        assert math.isinf(switchboard.forecast_completion(props, 0))

    def test_dimensions_and_vectors(self, switchboard: Switchboard) -> None:
        props = L1Properties()
        assert switchboard.calculate_dimensions(props).health == 0.0
        assert switchboard.calculate_vectors(props).magnitude == 0.0
        assert not switchboard.calculate_usefulness(props).is_useful


class TestSchemasAndRoundTrip:
    def test_schema_access(self, switchboard: Switchboard) -> None:
        assert switchboard.schema_version() == "1.0.0"
        assert switchboard.frontmatter_schema()["type"] == "object"
        assert "$defs" in switchboard.stubs_schema()

    def test_reemit_identity(
        self, switchboard: Switchboard, full_doc: str
    ) -> None:
        assert switchboard.reemit_document(full_doc) == full_doc


class TestPathOperations:
    def test_analyze_path(self, switchboard: Switchboard) -> None:
        analysis = switchboard.analyze_path("guide.md")
        assert analysis.properties.title == "Field Guide"

    def test_validate_path(self, switchboard: Switchboard) -> None:
        assert switchboard.validate_path("notes/blocking.md").is_valid

    def test_missing_path(self, switchboard: Switchboard) -> None:
        with pytest.raises(DocumentAccessError) as exc_info:
            switchboard.analyze_path("missing.md")
        assert exc_info.value.kind == RepositoryErrorKind.NOT_FOUND

    def test_write_document(
        self,
        switchboard: Switchboard,
        repository: InMemoryDocumentRepository,
    ) -> None:
        new_text, _ = switchboard.add_stub(
            repository.read("guide.md"),
            NewStub(stub_type="example", description="Show a config"),
        )
        switchboard.write_document("guide.md", new_text)
        assert len(switchboard.analyze_path("guide.md").properties.stubs) == 3

    def test_write_rejects_undecodable_text(
        self,
        switchboard: Switchboard,
        repository: InMemoryDocumentRepository,
    ) -> None:
        with pytest.raises(ParseError):
            switchboard.write_document("guide.md", "---\nform: x\n---\n")
        assert repository.read("guide.md").startswith("---\ntitle: Field")

    def test_write_permission_denied(
        self,
        switchboard: Switchboard,
        repository: InMemoryDocumentRepository,
    ) -> None:
        repository.denied.add("guide.md")
        with pytest.raises(DocumentAccessError) as exc_info:
            switchboard.write_document("guide.md", "# ok\n")
        assert exc_info.value.kind == RepositoryErrorKind.PERMISSION_DENIED

    def test_without_repository(self) -> None:
        with pytest.raises(SwitchboardError, match="No document repository"):
            Switchboard().analyze_path("guide.md")


class TestFromSettings:
    def test_project_layer_and_filesystem_repository(
        self, settings: Settings, tmp_path: Path
    ) -> None:
        (tmp_path / ".doc-doctor.yaml").write_text(
            "trust_factors:\n  unknown: 0.1\n", encoding="utf-8"
        )
        (tmp_path / "doc.md").write_text("# plain\n", encoding="utf-8")
        strict = settings.model_copy(update={"strict": True})

        board = Switchboard.from_settings(strict, project_root=tmp_path)
        assert board.strict
        assert isinstance(board.repository, FileSystemRepository)
        dims = board.analyze_path("doc.md").dimensions
        assert dims.trust_level == 0.1
        assert not dims.using_defaults

    def test_overrides_win(self, settings: Settings) -> None:
        board = Switchboard.from_settings(
            settings, overrides={"trust_factors": {"unknown": 0.3}}
        )
        assert board.repository is None
        dims = board.analyze_document("# plain").dimensions
        assert dims.trust_level == 0.3
