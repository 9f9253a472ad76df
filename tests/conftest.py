"""Shared pytest fixtures."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable

import pytest

from tfcompliance.editor.workspace import DocumentWorkspace
from tfcompliance.services.settings import Settings
from tfcompliance.suggestions.models import Suggestion
from tfcompliance.ui.events import Event, EventBus

MAIN_TF = "\n".join(
    [
        'provider "aws" {',
        '  region = "us-east-1"',
        "}",
        "",
        'resource "aws_s3_bucket" "logs" {',
        '  bucket = "app-logs"',
        '  acl    = "public-read"',
        "}",
        "",
        'resource "aws_instance" "web" {',
        '  ami           = "ami-123456"',
        '  instance_type = "t2.micro"',
        "}",
    ]
)


class FakeAdvisoryClient:
    """Stands in for :class:`AdvisoryClient`; replays queued responses in order.

    Queue an exception instance to make the matching call raise it. Set ``gate`` to
    hold calls until the test releases it.
    """

    def __init__(self, responses: Iterable[Any] = ()) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, bool]] = []
        self.gate: asyncio.Event | None = None

    async def analyze(self, code: str, *, strict: bool = False) -> list[Suggestion]:
        self.calls.append((code, strict))
        if self.gate is not None:
            await self.gate.wait()
        result = self.responses.pop(0) if self.responses else []
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def aclose(self) -> None:
        return None


class EventRecorder:
    """Collects every published event of the subscribed types."""

    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


def make_suggestion(
    original: str = "",
    suggested: str = "x = 1",
    line_number: int = 1,
    reasoning: str = "General cleanup",
) -> Suggestion:
    return Suggestion(
        original_code_snippet=original,
        suggested_code_snippet=suggested,
        line_number=line_number,
        reasoning=reasoning,
    )


@pytest.fixture
def main_tf() -> str:
    return MAIN_TF


@pytest.fixture
def suggestion_factory() -> Callable[..., Suggestion]:
    return make_suggestion


@pytest.fixture
def public_acl_suggestion() -> Suggestion:
    return make_suggestion(
        original='acl    = "public-read"',
        suggested='acl    = "private"',
        line_number=3,
        reasoning="Public read access exposes bucket contents",
    )


@pytest.fixture
def instance_type_suggestion() -> Suggestion:
    return make_suggestion(
        original='instance_type = "t2.micro"',
        suggested='instance_type = "t3.micro"',
        line_number=12,
        reasoning="Newer generation lowers cost",
    )


@pytest.fixture
def fake_client_factory() -> Callable[..., FakeAdvisoryClient]:
    return FakeAdvisoryClient


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def workspace(event_bus: EventBus) -> DocumentWorkspace:
    return DocumentWorkspace(event_bus=event_bus)


@pytest.fixture
def recorder_factory(event_bus: EventBus) -> Callable[..., EventRecorder]:
    def _factory(*event_types: type[Event]) -> EventRecorder:
        return EventRecorder(event_bus, *event_types)

    return _factory


@pytest.fixture
def quiet_settings() -> Settings:
    """Settings with automatic analysis off and short delays."""

    return Settings(
        enable_auto_analysis=False,
        debounce_delay=10,
        analysis_interval=0,
        focus_delay=10,
    )
