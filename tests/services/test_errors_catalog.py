import pytest

from discourseupdater.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("batch_failed", install="b", stage="Discourse rebuild", reason="exit 1")

    assert "Update stopped at `b` during Discourse rebuild: exit 1" in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError):
        actionable_error("no_such_error")
