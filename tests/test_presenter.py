"""Tests for the display adapters: presenter, status, hover, diagnostics and commands."""

from __future__ import annotations

import json
from urllib.parse import unquote

import pytest

from tfcompliance.ai.errors import ParseFailure, RequestFailure
from tfcompliance.suggestions.controller import SuggestionController
from tfcompliance.suggestions.locator import locate
from tfcompliance.suggestions.models import LocatedSuggestion
from tfcompliance.ui.commands import (
    ACCEPT_SUGGESTION,
    CHECK_COMPLIANCE,
    DECLINE_SUGGESTION,
    TOGGLE_AUTO_ANALYSIS,
    CommandRegistry,
    coerce_suggestion,
    command_uri,
    decode_command_argument,
    encode_command_argument,
    register_compliance_commands,
)
from tfcompliance.ui.diagnostics import DIAGNOSTIC_SOURCE, Diagnostic, build_diagnostics, provide_code_actions
from tfcompliance.ui.events import (
    AnalysisCompleted,
    AnalysisStarted,
    AutoAnalysisToggled,
    NoticePosted,
    SuggestionsCleared,
    SuggestionsPublished,
)
from tfcompliance.ui.hover import build_hover_markdown, hover_at
from tfcompliance.ui.presenter import RecordingSink, SuggestionPresenter
from tfcompliance.ui.status import status_for

from conftest import make_suggestion

DOC_ID = "main.tf"


def _located(main_tf: str, *suggestions) -> tuple[LocatedSuggestion, ...]:
    lines = main_tf.split("\n")
    return tuple(LocatedSuggestion.build(item, locate(lines, item)) for item in suggestions)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def presenter(event_bus, sink) -> SuggestionPresenter:
    presenter = SuggestionPresenter(event_bus, sink)
    presenter.attach()
    return presenter


class TestStatus:
    def test_analysis_in_flight_wins(self) -> None:
        status = status_for(analyzing=True, auto_enabled=False, issue_count=4)
        assert status.text == "$(sync~spin) Analyzing Terraform..."

    def test_paused_before_issue_count(self) -> None:
        status = status_for(analyzing=False, auto_enabled=False, issue_count=4)
        assert status.text == "$(debug-pause) Analysis Paused"
        assert status.background == "prominentBackground"

    def test_issue_count(self) -> None:
        status = status_for(analyzing=False, auto_enabled=True, issue_count=3)
        assert status.text == "$(warning) 3 compliance issue(s)"
        assert status.background == "warningBackground"
        assert status.command == TOGGLE_AUTO_ANALYSIS

    def test_compliant(self) -> None:
        status = status_for(analyzing=False, auto_enabled=True, issue_count=0)
        assert status.text == "$(check) Terraform Compliant"
        assert status.background is None


class TestHover:
    def test_replacement_markdown(self, main_tf, public_acl_suggestion) -> None:
        [item] = _located(main_tf, public_acl_suggestion)

        markdown = build_hover_markdown(item)

        assert markdown.startswith('## Current Code\n```terraform\nacl    = "public-read"\n```\n\n')
        assert '## Suggested Improvement\n```terraform\nacl    = "private"\n```\n\n---\n\n' in markdown
        assert f"[Accept]({command_uri(ACCEPT_SUGGESTION, item.suggestion)} \"Apply this suggestion\")" in markdown
        assert "Remove this suggestion from view" in markdown
        assert markdown.endswith("---\n*Public read access exposes bucket contents*\n\n**Line:** 7")

    def test_insertion_has_no_current_code(self) -> None:
        item = _located("a\nb", make_suggestion(suggested="new = 1", line_number=2))[0]

        markdown = build_hover_markdown(item)

        assert "## Current Code" not in markdown
        assert markdown.startswith("## Suggested Improvement\n")

    def test_hover_at_covers_located_lines(self, main_tf, public_acl_suggestion) -> None:
        items = _located(main_tf, public_acl_suggestion)

        assert hover_at(items, 6) is not None
        assert hover_at(items, 5) is None


class TestCommandArguments:
    def test_encoded_argument_is_uri_safe_json(self, public_acl_suggestion) -> None:
        encoded = encode_command_argument(public_acl_suggestion)

        assert " " not in encoded and '"' not in encoded
        assert json.loads(unquote(encoded)) == public_acl_suggestion.to_dict()
        assert decode_command_argument(encoded) == public_acl_suggestion

    def test_single_element_array_is_unwrapped(self, public_acl_suggestion) -> None:
        wrapped = json.dumps([public_acl_suggestion.to_dict()])
        assert decode_command_argument(wrapped) == public_acl_suggestion

    def test_invalid_argument(self) -> None:
        with pytest.raises(ParseFailure):
            decode_command_argument("%7Bnot-json")
        with pytest.raises(ParseFailure):
            coerce_suggestion(42)

    def test_coerce_accepts_every_form(self, main_tf, public_acl_suggestion) -> None:
        [item] = _located(main_tf, public_acl_suggestion)

        assert coerce_suggestion(public_acl_suggestion) is public_acl_suggestion
        assert coerce_suggestion(item) is item.suggestion
        assert coerce_suggestion(public_acl_suggestion.to_dict()) == public_acl_suggestion


class TestDiagnostics:
    def test_one_diagnostic_per_suggestion(
        self, main_tf, public_acl_suggestion, instance_type_suggestion
    ) -> None:
        items = _located(main_tf, public_acl_suggestion, instance_type_suggestion)

        diagnostics = build_diagnostics(items)

        assert [d.message for d in diagnostics] == [
            "Compliance Issue: Public read access exposes bucket contents",
            "Compliance Issue: Newer generation lowers cost",
        ]
        assert [d.index for d in diagnostics] == [0, 1]
        assert diagnostics[0].range == items[0].location.match_range
        assert diagnostics[0].to_dict()["source"] == DIAGNOSTIC_SOURCE

    def test_code_actions_skip_foreign_and_stale_diagnostics(
        self, main_tf, public_acl_suggestion
    ) -> None:
        items = _located(main_tf, public_acl_suggestion)
        [ours] = build_diagnostics(items)
        foreign = Diagnostic(range=ours.range, message="lint", code="suggestion-0", source="tflint")
        stale = Diagnostic(range=ours.range, message="old", code="suggestion-5")

        actions = provide_code_actions([ours, foreign, stale], items)

        assert [(a.title, a.command, a.is_preferred) for a in actions] == [
            ("Accept compliance suggestion", ACCEPT_SUGGESTION, True),
            ("Decline suggestion", DECLINE_SUGGESTION, False),
        ]
        assert actions[0].arguments == (items[0].suggestion,)
        assert all(action.kind == "quickfix" for action in actions)


class TestPresenter:
    def test_attach_shows_initial_status(self, presenter, sink) -> None:
        assert sink.status is not None
        assert sink.status.text == "$(check) Terraform Compliant"

    def test_published_suggestions_are_drawn(
        self, event_bus, presenter, sink, main_tf, public_acl_suggestion
    ) -> None:
        items = _located(main_tf, public_acl_suggestion)

        event_bus.publish(SuggestionsPublished(document_id=DOC_ID, suggestions=items))

        assert sink.highlights[DOC_ID] == (items[0].location.match_range,)
        assert len(sink.diagnostics[DOC_ID]) == 1
        assert presenter.total_count == 1
        assert sink.status.text == "$(warning) 1 compliance issue(s)"
        assert presenter.hover(DOC_ID, 6) is not None
        assert len(presenter.code_actions(DOC_ID, sink.diagnostics[DOC_ID])) == 2

    def test_analysis_status_follows_events(self, event_bus, presenter, sink) -> None:
        event_bus.publish(AnalysisStarted(document_id=DOC_ID, trigger="edit"))
        assert presenter.is_analyzing
        assert sink.status.text.startswith("$(sync~spin)")

        event_bus.publish(AnalysisCompleted(document_id=DOC_ID, received=0, kept=0))
        assert not presenter.is_analyzing
        assert sink.status.text == "$(check) Terraform Compliant"

    def test_clear_removes_document_and_resets_analyzing(
        self, event_bus, presenter, sink, main_tf, public_acl_suggestion
    ) -> None:
        event_bus.publish(
            SuggestionsPublished(document_id=DOC_ID, suggestions=_located(main_tf, public_acl_suggestion))
        )
        event_bus.publish(AnalysisStarted(document_id=DOC_ID, trigger="timer"))

        event_bus.publish(SuggestionsCleared(document_id=None))

        assert sink.highlights == {}
        assert presenter.total_count == 0
        assert not presenter.is_analyzing

    def test_toggle_and_notices(self, event_bus, presenter, sink) -> None:
        event_bus.publish(AutoAnalysisToggled(enabled=False))
        event_bus.publish(NoticePosted(message="hello", level="warning"))

        assert sink.status.text == "$(debug-pause) Analysis Paused"
        assert sink.notices == [("warning", "hello")]

    def test_detach_stops_updates(self, event_bus, presenter, sink) -> None:
        presenter.detach()
        event_bus.publish(NoticePosted(message="ignored"))

        assert sink.notices == []


class TestCommands:
    @pytest.fixture
    def wired(self, workspace, event_bus, quiet_settings, fake_client_factory, public_acl_suggestion, sink):
        client = fake_client_factory([[public_acl_suggestion]])
        controller = SuggestionController(workspace, client, quiet_settings, event_bus=event_bus)
        registry = CommandRegistry()
        register_compliance_commands(registry, controller, event_bus)
        presenter = SuggestionPresenter(event_bus, sink, auto_enabled=False)
        presenter.attach()
        yield controller, registry, client
        presenter.detach()

    def test_registry_rejects_duplicates(self, wired) -> None:
        _, registry, _ = wired

        assert set(registry.command_ids()) == {
            ACCEPT_SUGGESTION,
            DECLINE_SUGGESTION,
            TOGGLE_AUTO_ANALYSIS,
            CHECK_COMPLIANCE,
        }
        with pytest.raises(ValueError):
            registry.register(CHECK_COMPLIANCE, lambda: None)

        registry.unregister(CHECK_COMPLIANCE)
        assert not registry.has(CHECK_COMPLIANCE)
        registry.register(CHECK_COMPLIANCE, lambda: None)

    @pytest.mark.asyncio
    async def test_unknown_command(self) -> None:
        with pytest.raises(KeyError):
            await CommandRegistry().execute("tfcompliance.nothing")

    @pytest.mark.asyncio
    async def test_hover_link_accepts_suggestion(self, wired, workspace, main_tf, sink) -> None:
        controller, registry, _ = wired
        workspace.open_document(main_tf, path="main.tf", document_id=DOC_ID)

        [item] = await registry.execute(CHECK_COMPLIANCE)
        uri = command_uri(ACCEPT_SUGGESTION, item.suggestion)

        assert await registry.execute_uri(uri) is True
        assert workspace.require_document(DOC_ID).lines[6] == '  acl    = "private"'
        assert controller.suggestions_for(DOC_ID) == ()
        assert sink.notices[-1] == ("info", "Suggestion applied successfully")

    @pytest.mark.asyncio
    async def test_repeated_accept_link_warns_without_editing(self, wired, workspace, main_tf, sink) -> None:
        _, registry, _ = wired
        workspace.open_document(main_tf, path="main.tf", document_id=DOC_ID)
        [item] = await registry.execute(CHECK_COMPLIANCE)
        uri = command_uri(ACCEPT_SUGGESTION, item.suggestion)
        assert await registry.execute_uri(uri) is True
        applied = workspace.require_document(DOC_ID).text

        assert await registry.execute_uri(uri) is False
        assert workspace.require_document(DOC_ID).text == applied
        assert sink.notices[-1] == (
            "warning",
            "Could not find suggestion to apply. It may have already been applied or removed.",
        )

    @pytest.mark.asyncio
    async def test_decline_unknown_suggestion_warns(self, wired, workspace, main_tf, sink) -> None:
        _, registry, _ = wired
        workspace.open_document(main_tf, path="main.tf", document_id=DOC_ID)

        assert await registry.execute(DECLINE_SUGGESTION, make_suggestion(original="nope")) is False
        assert sink.notices == [
            ("warning", "Could not find suggestion to dismiss. It may have already been removed.")
        ]

    @pytest.mark.asyncio
    async def test_check_without_editor_reports_error(self, wired, sink) -> None:
        _, registry, client = wired

        assert await registry.execute(CHECK_COMPLIANCE) is None
        assert sink.notices == [("error", "No active editor found")]
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_check_failure_is_prefixed(
        self, workspace, event_bus, quiet_settings, fake_client_factory, main_tf, sink
    ) -> None:
        client = fake_client_factory([RequestFailure(message="Service unavailable")])
        controller = SuggestionController(workspace, client, quiet_settings, event_bus=event_bus)
        registry = CommandRegistry()
        register_compliance_commands(registry, controller, event_bus)
        presenter = SuggestionPresenter(event_bus, sink)
        presenter.attach()
        workspace.open_document(main_tf, path="main.tf", document_id=DOC_ID)

        assert await registry.execute(CHECK_COMPLIANCE) is None
        assert sink.notices == [("error", "Failed to analyze Terraform code: Service unavailable")]

    @pytest.mark.asyncio
    async def test_toggle_command_flips_state(self, wired, sink) -> None:
        controller, registry, _ = wired

        assert await registry.execute(TOGGLE_AUTO_ANALYSIS) is True
        assert controller.auto_analysis_enabled is True
        assert sink.notices[-1] == ("info", "Terraform auto-analysis enabled")
        assert sink.status.text == "$(check) Terraform Compliant"
