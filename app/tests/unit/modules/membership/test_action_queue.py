"""Unit tests for the expiry action queue."""

import pytest

from infrastructure.persistence.property_store import InMemoryPropertyStore
from infrastructure.resilience.retry import (
    InMemoryRetryStore,
    PropertyRetryStore,
    RetryConfig,
    RetryRecord,
)
from modules.membership.action_queue import (
    EXPIRY_OPERATION,
    ExpiryActionProcessor,
    ExpiryActionQueue,
    drain_expiry_queue,
)
from modules.membership.directory.memory import InMemoryDirectory
from modules.membership.domain.models import ExpiryAction
from modules.membership.groups import InMemoryGroupBackend
from modules.membership.mail import InMemoryMailSender
from tests.factories.membership import make_expiry_payload, make_member


@pytest.fixture
def store():
    return InMemoryRetryStore(RetryConfig(max_attempts=3, base_delay_seconds=60))


@pytest.fixture
def backends():
    mail = InMemoryMailSender()
    groups = InMemoryGroupBackend({"g1@club.example": {"alice@example.com"}})
    return mail, groups


def _action(**overrides):
    return ExpiryAction.from_payload(make_expiry_payload(**overrides))


@pytest.mark.unit
class TestExpiryActionQueue:
    def test_enqueue_saves_payload(self, store):
        queue = ExpiryActionQueue(store)
        record_id = queue.enqueue(_action(groups=["g1@club.example"]))
        record = store.fetch_due()[0]
        assert record.id == record_id
        assert record.operation_type == EXPIRY_OPERATION
        assert record.payload["groups"] == ["g1@club.example"]


@pytest.mark.unit
class TestExpiryActionProcessor:
    def test_success_sends_and_removes_from_groups(self, store, backends):
        mail, groups = backends
        ExpiryActionQueue(store).enqueue(_action(groups=["g1@club.example"]))
        processor = ExpiryActionProcessor(mail, groups)

        report = drain_expiry_queue(store, processor)

        assert len(report.succeeded) == 1
        assert [m.subject for m in mail.to("alice@example.com")] == [
            "Your membership expires soon"
        ]
        assert groups.members_of("g1@club.example") == set()
        assert [a.email for a in processor.completed] == ["alice@example.com"]
        assert store.get_stats() == {"active_records": 0, "dlq_records": 0}

    def test_deletes_identity_when_asked(self, store, backends):
        mail, groups = backends
        member = make_member(primary_email="alice.smith@club.example")
        directory = InMemoryDirectory([member], sleep=lambda _: None)
        ExpiryActionQueue(store).enqueue(
            _action(delete_identity=True, directoryEmail="alice.smith@club.example")
        )

        drain_expiry_queue(store, ExpiryActionProcessor(mail, groups, directory))

        assert not directory.get_member("alice.smith@club.example").is_success

    def test_failed_send_is_retried_then_dead_lettered(self, backends):
        """A failing item is retried and dead-lettered at the attempt cap."""
        mail, groups = backends
        mail.failures["alice@example.com"] = "smtp down"
        store = InMemoryRetryStore(
            RetryConfig(max_attempts=3, base_delay_seconds=0, max_delay_seconds=0)
        )
        ExpiryActionQueue(store).enqueue(_action())
        processor = ExpiryActionProcessor(mail, groups)

        reports = [drain_expiry_queue(store, processor) for _ in range(4)]

        assert [len(r.retried) for r in reports] == [1, 1, 0, 0]
        assert [len(r.dead_lettered) for r in reports] == [0, 0, 1, 0]
        dead = store.get_dlq_entries()
        assert dead[0].attempts == 3
        assert "smtp down" in dead[0].last_error
        assert processor.completed == []

    def test_retry_waits_for_backoff(self, store, backends):
        mail, groups = backends
        mail.failures["alice@example.com"] = "smtp down"
        ExpiryActionQueue(store).enqueue(_action())
        processor = ExpiryActionProcessor(mail, groups)

        first = drain_expiry_queue(store, processor)
        second = drain_expiry_queue(store, processor)

        assert len(first.retried) == 1
        assert second.processed == 0
        record = store.fetch_due(now=first.retried[0].next_retry_at)[0]
        assert record.attempts == 1

    def test_malformed_payload_dead_letters_at_once(self, store, backends):
        mail, groups = backends
        store.save(RetryRecord(operation_type=EXPIRY_OPERATION, payload={"email": "nope"}))
        processor = ExpiryActionProcessor(mail, groups)

        report = drain_expiry_queue(store, processor)

        assert len(report.dead_lettered) == 1
        assert processor.validation_errors[0].label.startswith("Queue item ")
        assert mail.sent == []

    @pytest.mark.parametrize("durable", [False, True])
    def test_retry_after_group_failure_sends_one_email(self, backends, durable):
        """Steps that already succeeded are not repeated on a retry."""
        mail, groups = backends
        groups.failures[("alice@example.com", "g1@club.example")] = "backend down"
        config = RetryConfig(max_attempts=5, base_delay_seconds=0, max_delay_seconds=0)
        store = (
            PropertyRetryStore(InMemoryPropertyStore(), config)
            if durable
            else InMemoryRetryStore(config)
        )
        ExpiryActionQueue(store).enqueue(_action(groups=["g1@club.example"]))
        processor = ExpiryActionProcessor(mail, groups)

        failed = [drain_expiry_queue(store, processor) for _ in range(3)]
        del groups.failures[("alice@example.com", "g1@club.example")]
        final = drain_expiry_queue(store, processor)

        assert [len(r.retried) for r in failed] == [1, 1, 1]
        assert len(final.succeeded) == 1
        assert len(mail.to("alice@example.com")) == 1
        assert groups.members_of("g1@club.example") == set()
        removes = [c for c in groups.calls if c[0] == "remove"]
        assert len(removes) == 4
