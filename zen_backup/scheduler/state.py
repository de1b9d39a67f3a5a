"""Job state resolution — a pure function of the facts gathered about one job."""

from __future__ import annotations

from zen_backup.models.schedule import JobState, LiveJobFacts


def resolve_job_state(
    definition_exists: bool,
    disabled_marker: bool,
    loaded_marker: bool,
    live: LiveJobFacts | None = None,
) -> JobState:
    """
    Project platform facts onto ``JobState``.

    A job without a definition file is always ``NOT_INSTALLED``.  Live facts
    from the host facility take precedence over marker files whenever they
    are known; a definition that was never loaded counts as paused, since
    nothing will run it.
    """
    if not definition_exists:
        return JobState.NOT_INSTALLED

    if live is not None and (live.enabled is not None or live.loaded is not None):
        if live.enabled is False or live.loaded is False:
            return JobState.PAUSED
        if live.enabled is None and disabled_marker:
            return JobState.PAUSED
        return JobState.ACTIVE

    if disabled_marker or not loaded_marker:
        return JobState.PAUSED
    return JobState.ACTIVE
