"""Changelog checklist rendering."""

from discourseupdater.models import StageKind, UpdateOutcome

UNKNOWN = "unknown"


def _box(checked: bool) -> str:
    return "[x]" if checked else "[ ]"


def format_checklist(outcome: UpdateOutcome) -> str:
    """Renders the four-line Markdown checklist posted to the changelog topic."""
    new_version = outcome.new_discourse_version or UNKNOWN
    reclaimed = outcome.reclaimed_space or UNKNOWN
    lines = [
        f"- {_box(outcome.stage_succeeded(StageKind.OS_UPDATE))} Ubuntu OS updated",
        f"- {_box(outcome.stage_succeeded(StageKind.REBOOT))} Server rebooted",
        f"- {_box(outcome.stage_succeeded(StageKind.REBUILD))} "
        f"Updated Discourse to version {new_version}",
        f"- {_box(outcome.stage_succeeded(StageKind.CLEANUP))} "
        f"`cleanup` Total reclaimed space: {reclaimed}",
    ]
    return "\n".join(lines)
