"""Tests for job status classification."""

import pytest

from orchestrator.jobs.states import (
    TERMINAL_STATUSES,
    is_active,
    is_forward,
    is_terminal,
    normalize_status,
    status_rank,
    user_message,
)


class TestTerminalClassification:
    @pytest.mark.parametrize("status", ["done", "insufficient_data", "failed"])
    def test_terminal_statuses(self, status):
        assert is_terminal(status)
        assert not is_active(status)

    @pytest.mark.parametrize("status", ["queued", "ingesting", "data_ready", "analyzing"])
    def test_in_progress_statuses(self, status):
        assert not is_terminal(status)
        assert is_active(status)

    def test_unknown_label_is_active(self):
        assert is_active("warming_up")
        assert not is_terminal("warming_up")

    def test_terminal_set_is_exact(self):
        assert TERMINAL_STATUSES == {"done", "insufficient_data", "failed"}


class TestNormalization:
    def test_legacy_label_maps_to_ingesting(self):
        assert normalize_status("collecting_evidence") == "ingesting"
        assert is_active("collecting_evidence")

    def test_case_and_whitespace(self):
        assert normalize_status("  DONE ") == "done"

    def test_none(self):
        assert normalize_status(None) == ""


class TestForwardTransitions:
    def test_skip_data_ready(self):
        assert is_forward("ingesting", "analyzing")

    def test_jump_straight_to_terminal(self):
        assert is_forward("queued", "failed")
        assert is_forward("ingesting", "insufficient_data")

    def test_no_backward_move(self):
        assert not is_forward("analyzing", "ingesting")

    def test_terminal_is_final(self):
        assert not is_forward("done", "analyzing")
        assert not is_forward("failed", "done")

    def test_same_status_is_allowed(self):
        assert is_forward("done", "done")

    def test_first_observation(self):
        assert is_forward(None, "analyzing")

    def test_legacy_equivalent_of_ingesting(self):
        assert is_forward("collecting_evidence", "ingesting")
        assert status_rank("collecting_evidence") == status_rank("ingesting")


class TestUserMessage:
    def test_insufficient_data_suggests_retry(self):
        assert "Try again" in user_message("insufficient_data")

    def test_failed_includes_error(self):
        assert user_message("failed", "boom") == "Analysis failed: boom"
        assert user_message("failed") == "Analysis failed."

    def test_in_progress(self):
        assert user_message("analyzing") == "Analysis in progress."
