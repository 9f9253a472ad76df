"""Status indicator states for the analysis lifecycle."""

from __future__ import annotations

from dataclasses import dataclass

from .commands import TOGGLE_AUTO_ANALYSIS


@dataclass(slots=True, frozen=True)
class StatusIndicator:
    text: str
    tooltip: str
    background: str | None = None
    command: str = TOGGLE_AUTO_ANALYSIS


def analyzing_status() -> StatusIndicator:
    return StatusIndicator(
        text="$(sync~spin) Analyzing Terraform...",
        tooltip="Checking for compliance issues",
    )


def issues_status(count: int) -> StatusIndicator:
    return StatusIndicator(
        text=f"$(warning) {count} compliance issue(s)",
        tooltip=f"Found {count} compliance issue(s). Click to toggle auto-analysis.",
        background="warningBackground",
    )


def compliant_status() -> StatusIndicator:
    return StatusIndicator(
        text="$(check) Terraform Compliant",
        tooltip="No compliance issues found. Auto-analysis enabled (click to toggle)",
    )


def paused_status() -> StatusIndicator:
    return StatusIndicator(
        text="$(debug-pause) Analysis Paused",
        tooltip="Terraform compliance auto-analysis is disabled (click to toggle)",
        background="prominentBackground",
    )


def status_for(*, analyzing: bool, auto_enabled: bool, issue_count: int) -> StatusIndicator:
    """Pick the indicator; an analysis in flight wins over everything else."""

    if analyzing:
        return analyzing_status()
    if not auto_enabled:
        return paused_status()
    if issue_count > 0:
        return issues_status(issue_count)
    return compliant_status()


__all__ = [
    "StatusIndicator",
    "analyzing_status",
    "compliant_status",
    "issues_status",
    "paused_status",
    "status_for",
]
