"""Unit tests for the payment-check polling controller."""

from datetime import datetime, timedelta, timezone

import pytest
import schedule

from infrastructure.persistence.property_store import InMemoryPropertyStore
from modules.membership.polling import (
    INTERVAL_KEY,
    LAST_PROCESSED_KEY,
    PAYMENT_CHECK_HANDLER,
    START_TIME_KEY,
    TRIGGER_ID_KEY,
    InMemoryTriggerScheduler,
    PollingBackoffController,
    PollState,
    ScheduleTriggerScheduler,
)

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def at(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


class Source:
    """Pending flag and last-modified watermark of the transaction sheet."""

    def __init__(self, pending: bool = True, watermark=None):
        self.pending = pending
        self.watermark = watermark
        self.evaluations = 0

    def is_pending(self) -> bool:
        self.evaluations += 1
        return self.pending

    def last_modified(self):
        return self.watermark


@pytest.fixture
def properties():
    return InMemoryPropertyStore()


@pytest.fixture
def triggers():
    return InMemoryTriggerScheduler()


@pytest.fixture
def controller_factory(properties, triggers):
    def _factory(source: Source, **kwargs) -> PollingBackoffController:
        return PollingBackoffController(
            properties,
            triggers,
            pending=source.is_pending,
            watermark=source.last_modified,
            clock=lambda: T0,
            **kwargs,
        )

    return _factory


@pytest.mark.unit
class TestBackoffTimeline:
    def test_escalates_while_pending_and_resets_when_clear(
        self, controller_factory, triggers, properties
    ):
        """1-minute checks, then 5-minute after 5 minutes, then hourly after 15."""
        source = Source(pending=True)
        controller = controller_factory(source)
        observed = {}

        controller.on_event(at(0))
        observed[0] = triggers.intervals(PAYMENT_CHECK_HANDLER)

        minute = 0
        while minute < 20:
            interval = triggers.intervals(PAYMENT_CHECK_HANDLER)[0]
            minute += interval
            source.watermark = at(minute)
            assert controller.check(at(minute)) is True
            observed[minute] = triggers.intervals(PAYMENT_CHECK_HANDLER)

        assert observed[0] == [1]
        assert all(observed[m] == [1] for m in range(1, 6))
        assert observed[6] == [5]
        assert observed[11] == [5]
        assert observed[16] == [60]
        assert properties.get(START_TIME_KEY) is None

        source.pending = False
        source.watermark = at(80)
        assert controller.check(at(80)) is False

        assert triggers.triggers == {}
        for key in (TRIGGER_ID_KEY, START_TIME_KEY, INTERVAL_KEY):
            assert properties.get(key) is None
        assert properties.get(LAST_PROCESSED_KEY) == at(80).isoformat()
        assert controller.state().is_idle

    def test_clears_at_first_check(self, controller_factory, triggers):
        source = Source(pending=False, watermark=at(0))
        controller = controller_factory(source)
        controller.on_event(at(0))

        assert controller.check(at(1)) is False
        assert triggers.triggers == {}

    def test_same_interval_keeps_trigger(self, controller_factory, triggers, properties):
        source = Source(pending=True)
        controller = controller_factory(source)
        controller.on_event(at(0))
        source.watermark = at(6)
        controller.check(at(6))
        trigger_id = properties.get(TRIGGER_ID_KEY)

        source.watermark = at(11)
        controller.check(at(11))

        assert properties.get(TRIGGER_ID_KEY) == trigger_id
        assert list(triggers.triggers) == [trigger_id]

    def test_new_event_restarts_fast_checks(self, controller_factory, triggers, properties):
        source = Source(pending=True)
        controller = controller_factory(source)
        controller.on_event(at(0))
        source.watermark = at(6)
        controller.check(at(6))

        controller.on_event(at(7))

        assert triggers.intervals(PAYMENT_CHECK_HANDLER) == [1]
        assert properties.get(START_TIME_KEY) == at(7).isoformat()

    def test_rejects_inverted_tiers(self, controller_factory):
        with pytest.raises(ValueError):
            controller_factory(Source(), short_minutes=15, long_minutes=5)


@pytest.mark.unit
class TestWatermark:
    def test_unchanged_source_skips_processing(self, controller_factory):
        """No new data since the last processing means still pending, no scan."""
        source = Source(pending=True, watermark=at(-1))
        controller = controller_factory(source)
        controller.on_event(at(0))

        controller.check(at(1))
        controller.check(at(2))

        assert source.evaluations == 1

    def test_advanced_source_is_processed(self, controller_factory):
        source = Source(pending=True, watermark=at(-1))
        controller = controller_factory(source)
        controller.on_event(at(0))
        controller.check(at(1))

        source.watermark = at(1.5)
        controller.check(at(2))

        assert source.evaluations == 2


@pytest.mark.unit
class TestWakeIfChanged:
    def test_wakes_idle_poller_on_new_data(self, controller_factory, properties, triggers):
        properties.set(LAST_PROCESSED_KEY, at(0).isoformat())
        controller = controller_factory(Source(watermark=at(5)))

        assert controller.wake_if_changed(at(6)) is True
        assert triggers.intervals(PAYMENT_CHECK_HANDLER) == [1]

    def test_stays_idle_without_new_data(self, controller_factory, properties):
        properties.set(LAST_PROCESSED_KEY, at(10).isoformat())
        assert controller_factory(Source(watermark=at(5))).wake_if_changed() is False
        assert controller_factory(Source(watermark=None)).wake_if_changed() is False

    def test_active_poller_is_left_alone(self, controller_factory, triggers):
        controller = controller_factory(Source(watermark=at(5)))
        controller.on_event(at(0))
        assert controller.wake_if_changed(at(6)) is False
        assert len(triggers.triggers) == 1


@pytest.mark.unit
class TestPollState:
    def test_invalid_values_load_as_none(self, properties):
        properties.set(START_TIME_KEY, "yesterday")
        properties.set(INTERVAL_KEY, "often")
        state = PollState.load(properties)
        assert state.start_time is None
        assert state.interval_minutes is None
        assert state.is_idle


@pytest.mark.unit
class TestScheduleTriggerScheduler:
    def test_create_list_delete(self):
        scheduler = schedule.Scheduler()
        calls = []
        triggers = ScheduleTriggerScheduler(
            scheduler, {PAYMENT_CHECK_HANDLER: lambda: calls.append(1)}
        )

        trigger_id = triggers.create(PAYMENT_CHECK_HANDLER, 5)

        assert triggers.list(PAYMENT_CHECK_HANDLER) == [trigger_id]
        job = scheduler.get_jobs(PAYMENT_CHECK_HANDLER)[0]
        assert job.interval == 5
        assert job.unit == "minutes"

        triggers.delete(trigger_id)
        assert scheduler.get_jobs() == []

    def test_unknown_handler(self):
        triggers = ScheduleTriggerScheduler(schedule.Scheduler(), {})
        with pytest.raises(KeyError):
            triggers.create("nope", 1)
