"""Tests for job state resolution."""

from __future__ import annotations

import pytest

from zen_backup.models.schedule import JobState, LiveJobFacts
from zen_backup.scheduler.state import resolve_job_state


class TestMarkersOnly:
    def test_no_definition_is_not_installed(self) -> None:
        assert resolve_job_state(False, True, True) == JobState.NOT_INSTALLED
        assert resolve_job_state(False, False, False, LiveJobFacts(True, True)) == JobState.NOT_INSTALLED

    def test_loaded_and_enabled_is_active(self) -> None:
        assert resolve_job_state(True, False, True) == JobState.ACTIVE

    def test_disabled_marker_is_paused(self) -> None:
        assert resolve_job_state(True, True, True) == JobState.PAUSED

    def test_never_loaded_is_paused(self) -> None:
        assert resolve_job_state(True, False, False) == JobState.PAUSED


class TestLiveFacts:
    @pytest.mark.parametrize(
        ("live", "expected"),
        [
            (LiveJobFacts(enabled=True, loaded=True), JobState.ACTIVE),
            (LiveJobFacts(enabled=False, loaded=True), JobState.PAUSED),
            (LiveJobFacts(enabled=True, loaded=False), JobState.PAUSED),
        ],
    )
    def test_live_facts_win_over_markers(self, live: LiveJobFacts, expected: JobState) -> None:
        # Markers alone would say "never loaded"; the host answer decides
        assert resolve_job_state(True, False, False, live) == expected

    def test_enabled_live_overrides_stale_disabled_marker(self) -> None:
        live = LiveJobFacts(enabled=True, loaded=True)
        assert resolve_job_state(True, True, True, live) == JobState.ACTIVE

    def test_unknown_enabled_falls_back_to_marker(self) -> None:
        live = LiveJobFacts(enabled=None, loaded=True)
        assert resolve_job_state(True, True, True, live) == JobState.PAUSED
        assert resolve_job_state(True, False, True, live) == JobState.ACTIVE

    def test_empty_live_facts_use_markers(self) -> None:
        assert resolve_job_state(True, False, True, LiveJobFacts()) == JobState.ACTIVE
        assert resolve_job_state(True, True, True, LiveJobFacts()) == JobState.PAUSED
