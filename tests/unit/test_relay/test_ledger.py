"""Tests for the command ledger."""

from __future__ import annotations

import pytest

from canvasrelay.domain.models import CommandState, DeliveryMode
from canvasrelay.relay.ledger import CommandLedger

from helpers import FakeClock


class TestEnqueue:
    def test_new_command_is_pending(self, ledger: CommandLedger) -> None:
        cid = ledger.enqueue("clear()")
        command = ledger.get(cid)
        assert command is not None
        assert command.state is CommandState.PENDING
        assert command.delivered_to == []
        assert command.payload == "clear()"

    def test_ids_are_unique(self, ledger: CommandLedger) -> None:
        ids = {ledger.enqueue("clear()") for _ in range(50)}
        assert len(ids) == 50
        assert len(ledger) == 50

    def test_records_origin_session(self, ledger: CommandLedger) -> None:
        cid = ledger.enqueue("clear()", origin_session="sess-1")
        assert ledger.get(cid).origin_session == "sess-1"  # type: ignore[union-attr]

    @pytest.mark.parametrize("payload", ["", "   ", "\n\n"])
    def test_rejects_empty_payload(self, ledger: CommandLedger, payload: str) -> None:
        with pytest.raises(ValueError):
            ledger.enqueue(payload)
        assert len(ledger) == 0

    def test_colliding_id_factory_is_retried(self, clock: FakeClock) -> None:
        ids = iter(["a", "a", "b"])
        ledger = CommandLedger(clock=clock, id_factory=lambda: next(ids))
        assert ledger.enqueue("clear()") == "a"
        assert ledger.enqueue("clear()") == "b"


class TestDelivery:
    def test_first_delivery_advances_to_sent(self, ledger: CommandLedger) -> None:
        cid = ledger.enqueue("clear()")
        assert ledger.record_delivery(cid, "client-1") is True
        command = ledger.get(cid)
        assert command.state is CommandState.SENT  # type: ignore[union-attr]
        assert command.delivered_to == ["client-1"]  # type: ignore[union-attr]

    def test_delivered_to_grows_without_duplicates(self, ledger: CommandLedger) -> None:
        cid = ledger.enqueue("clear()")
        ledger.record_delivery(cid, "a")
        ledger.record_delivery(cid, "b")
        ledger.record_delivery(cid, "a")
        assert ledger.get(cid).delivered_to == ["a", "b"]  # type: ignore[union-attr]

    def test_missing_command_is_noop(self, ledger: CommandLedger) -> None:
        assert ledger.record_delivery("nope", "client-1") is False

    def test_delivery_does_not_regress_terminal_state(self, ledger: CommandLedger) -> None:
        cid = ledger.enqueue("clear()")
        ledger.record_consumption(cid)
        ledger.record_delivery(cid, "late")
        command = ledger.get(cid)
        assert command.state is CommandState.EXECUTED  # type: ignore[union-attr]
        assert "late" in command.delivered_to  # type: ignore[union-attr]

    def test_pull_mode_keeps_command_pending(self, clock: FakeClock) -> None:
        ledger = CommandLedger(delivery_mode=DeliveryMode.PULL, clock=clock)
        cid = ledger.enqueue("clear()")
        ledger.record_delivery(cid, "client-1")
        command = ledger.get(cid)
        assert command.state is CommandState.PENDING  # type: ignore[union-attr]
        assert command.delivered_to == ["client-1"]  # type: ignore[union-attr]


class TestConsumption:
    def test_consume_twice(self, ledger: CommandLedger) -> None:
        cid = ledger.enqueue("clear()")
        ledger.record_delivery(cid, "client-1")
        assert ledger.record_consumption(cid) is True
        assert ledger.get(cid).state is CommandState.EXECUTED  # type: ignore[union-attr]
        assert ledger.record_consumption(cid) is False
        assert ledger.get(cid).state is CommandState.EXECUTED  # type: ignore[union-attr]

    def test_pending_can_be_consumed_directly(self, ledger: CommandLedger) -> None:
        cid = ledger.enqueue("clear()")
        assert ledger.record_consumption(cid) is True
        assert ledger.get(cid).state is CommandState.EXECUTED  # type: ignore[union-attr]

    def test_missing_command(self, ledger: CommandLedger) -> None:
        assert ledger.record_consumption("nope") is False

    def test_errored_command_cannot_be_consumed(self, ledger: CommandLedger) -> None:
        cid = ledger.enqueue("clear()")
        ledger.record_error(cid, "boom")
        assert ledger.record_consumption(cid) is False
        assert ledger.get(cid).state is CommandState.ERROR  # type: ignore[union-attr]


class TestError:
    @pytest.mark.parametrize("delivered", [False, True])
    def test_error_from_non_terminal(self, ledger: CommandLedger, delivered: bool) -> None:
        cid = ledger.enqueue("clear()")
        if delivered:
            ledger.record_delivery(cid, "client-1")
        assert ledger.record_error(cid, "bad arg") is True
        command = ledger.get(cid)
        assert command.state is CommandState.ERROR  # type: ignore[union-attr]
        assert command.error_detail == "bad arg"  # type: ignore[union-attr]

    def test_error_after_execution_is_rejected(self, ledger: CommandLedger) -> None:
        cid = ledger.enqueue("clear()")
        ledger.record_consumption(cid)
        assert ledger.record_error(cid, "too late") is False
        command = ledger.get(cid)
        assert command.state is CommandState.EXECUTED  # type: ignore[union-attr]
        assert command.error_detail is None  # type: ignore[union-attr]

    def test_missing_command(self, ledger: CommandLedger) -> None:
        assert ledger.record_error("nope", "x") is False


class TestQueries:
    def test_list_pending_oldest_first(self, ledger: CommandLedger, clock: FakeClock) -> None:
        first = ledger.enqueue("clear()")
        clock.advance(1)
        second = ledger.enqueue("fr(1,1,2,2)")
        clock.advance(1)
        third = ledger.enqueue("c(5,5;3)")
        ledger.record_delivery(second, "client-1")
        assert [c.id for c in ledger.list_pending()] == [first, third]

    def test_recent_newest_first(self, ledger: CommandLedger, clock: FakeClock) -> None:
        ids = []
        for _ in range(4):
            ids.append(ledger.enqueue("clear()"))
            clock.advance(1)
        assert [c.id for c in ledger.recent(limit=2)] == [ids[3], ids[2]]

    def test_get_returns_copy(self, ledger: CommandLedger) -> None:
        cid = ledger.enqueue("clear()")
        copy = ledger.get(cid)
        copy.delivered_to.append("intruder")  # type: ignore[union-attr]
        assert ledger.get(cid).delivered_to == []  # type: ignore[union-attr]

    def test_stats(self, ledger: CommandLedger) -> None:
        a = ledger.enqueue("clear()")
        b = ledger.enqueue("clear()")
        c = ledger.enqueue("clear()")
        ledger.enqueue("clear()")
        ledger.record_delivery(a, "x")
        ledger.record_consumption(b)
        ledger.record_error(c, "oops")
        stats = ledger.stats()
        assert stats.model_dump() == {
            "total": 4, "pending": 1, "sent": 1, "executed": 1, "error": 1,
        }


class TestPurge:
    def test_never_purges_pending_or_sent(self, ledger: CommandLedger, clock: FakeClock) -> None:
        pending = ledger.enqueue("clear()")
        sent = ledger.enqueue("clear()")
        ledger.record_delivery(sent, "client-1")
        clock.advance(10 * 24 * 3600)
        assert ledger.purge(max_age=60) == 0
        assert pending in ledger
        assert sent in ledger

    def test_purges_old_terminal_keeps_young(
        self, ledger: CommandLedger, clock: FakeClock
    ) -> None:
        old_done = ledger.enqueue("clear()")
        old_err = ledger.enqueue("clear()")
        ledger.record_consumption(old_done)
        ledger.record_error(old_err, "x")
        clock.advance(3600)
        young = ledger.enqueue("clear()")
        ledger.record_consumption(young)
        clock.advance(60)

        assert ledger.purge(max_age=1800) == 2
        assert old_done not in ledger
        assert old_err not in ledger
        assert young in ledger

    def test_eligible_states_cannot_widen_to_pending(
        self, ledger: CommandLedger, clock: FakeClock
    ) -> None:
        cid = ledger.enqueue("clear()")
        clock.advance(7200)
        removed = ledger.purge(
            max_age=60, eligible_states={CommandState.PENDING, CommandState.SENT}
        )
        assert removed == 0
        assert cid in ledger

    def test_eligible_states_can_narrow(self, ledger: CommandLedger, clock: FakeClock) -> None:
        done = ledger.enqueue("clear()")
        failed = ledger.enqueue("clear()")
        ledger.record_consumption(done)
        ledger.record_error(failed, "x")
        clock.advance(7200)
        assert ledger.purge(max_age=60, eligible_states={CommandState.ERROR}) == 1
        assert done in ledger
        assert failed not in ledger

    def test_acks_after_purge_are_noops(self, ledger: CommandLedger, clock: FakeClock) -> None:
        cid = ledger.enqueue("clear()")
        ledger.record_consumption(cid)
        clock.advance(7200)
        ledger.purge(max_age=60)
        assert ledger.record_delivery(cid, "late") is False
        assert ledger.record_consumption(cid) is False
        assert ledger.record_error(cid, "late") is False
