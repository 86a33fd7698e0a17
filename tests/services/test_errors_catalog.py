import pytest

from ephemeraldb.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("image_pull_failed", image="mysql:8")

    assert "Failed to pull image mysql:8." in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_code():
    with pytest.raises(KeyError, match="Unknown error catalog key"):
        actionable_error("does_not_exist")
