from datetime import datetime, timedelta, timezone

from toonana.jobs.models import ComicJobStatus, Stage, StageKind
from toonana.jobs.publisher import StatusPublisher
from toonana.jobs.registry import StatusRegistry
from toonana.progress import ProgressEvent


def _publisher():
    registry = StatusRegistry()
    initial = ComicJobStatus(job_id="job", entry_id="entry", style="comic")
    return registry, StatusPublisher(registry, initial)


def test_initial_status_is_queued_in_registry() -> None:
    registry, publisher = _publisher()

    assert registry.get("job").stage.kind is StageKind.QUEUED
    assert publisher.job_id == "job"
    assert not publisher.is_terminal


def test_terminal_stage_is_written_once() -> None:
    registry, publisher = _publisher()
    publisher.publish(Stage.rendering(40, 100))

    assert publisher.cancel() is True
    assert publisher.fail("late failure") is False
    assert publisher.publish(Stage.done(), result_image_path="/tmp/x.png") is False

    status = registry.get("job")
    assert status.stage == Stage.cancelled()
    assert status.result_image_path is None


def test_stage_never_moves_backwards() -> None:
    registry, publisher = _publisher()
    publisher.publish(Stage.prompting(), storyboard_text="Panel 1")

    assert publisher.publish(Stage.parsing()) is False
    assert publisher.publish(Stage.prompting(), storyboard_text="Panel 1\nCaption") is True
    assert publisher.publish(Stage.rendering(20, 100)) is True
    assert publisher.publish(Stage.rendering(10, 100)) is False
    assert registry.get("job").stage == Stage.rendering(20, 100)
    assert registry.get("job").storyboard_text == "Panel 1\nCaption"


def test_updated_at_is_monotonic_even_if_clock_steps_back() -> None:
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    times = iter([base, base - timedelta(seconds=30)])
    registry = StatusRegistry()
    initial = ComicJobStatus(
        job_id="job",
        entry_id="entry",
        style="comic",
        updated_at=base - timedelta(minutes=5),
    )
    publisher = StatusPublisher(registry, initial, clock=lambda: next(times))

    publisher.publish(Stage.parsing())
    assert registry.get("job").updated_at == base
    publisher.publish(Stage.storyboarding())

    assert registry.get("job").updated_at == base


def test_progress_is_throttled_to_multiples_of_five() -> None:
    registry, publisher = _publisher()
    written = []
    original_upsert = registry.upsert

    def recording_upsert(job_id, status):
        written.append(status.stage)
        original_upsert(job_id, status)

    registry.upsert = recording_upsert
    publisher.publish(Stage.rendering(0, 100))

    for completed in (1, 3, 5, 6, 10, 10, 12, 15, 99, 100):
        publisher.on_progress(ProgressEvent(completed=completed))

    rendered = [stage.completed for stage in written if stage.kind is StageKind.RENDERING]
    assert rendered == [0, 5, 10, 15, 100]


def test_heartbeat_ticks_bypass_the_step_filter() -> None:
    registry, publisher = _publisher()
    publisher.publish(Stage.rendering(0, 100))

    publisher.on_progress(ProgressEvent(completed=2, heartbeat=True))
    assert registry.get("job").stage == Stage.rendering(2, 100)

    publisher.on_progress(ProgressEvent(completed=2, heartbeat=True))
    publisher.on_progress(ProgressEvent(completed=1, heartbeat=True))
    assert registry.get("job").stage == Stage.rendering(2, 100)


def test_progress_outside_rendering_is_ignored() -> None:
    registry, publisher = _publisher()
    publisher.publish(Stage.prompting())

    publisher.on_progress(ProgressEvent(completed=50))

    assert registry.get("job").stage.kind is StageKind.PROMPTING


def test_stage_payloads() -> None:
    assert Stage.rendering(150, 100).to_dict() == {"stage": "rendering", "completed": 100, "total": 100}
    assert Stage.failed("boom").to_dict() == {"stage": "failed", "error": "boom"}
    assert Stage.cancelled().to_dict() == {"stage": "cancelled"}
    assert Stage.done().is_terminal and not Stage.saving().is_terminal
