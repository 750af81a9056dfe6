from __future__ import annotations

import pytest

from pysmartlock.exceptions import SmartLockOperationPendingError
from pysmartlock.models.events import DeviceEvent, DeviceEventKind
from pysmartlock.models.state import IDLE, NoticeKind, OperationKind, PendingAdd, PendingDelete
from pysmartlock.sync.machine import NO_EFFECTS, TagSyncMachine


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _machine(clock: _Clock | None = None) -> TagSyncMachine:
    return TagSyncMachine(add_timeout=25.0, delete_timeout=25.0, clock=clock or _Clock())


def _snapshot(*tags: str) -> DeviceEvent:
    return DeviceEvent(kind=DeviceEventKind.TAGS_SNAPSHOT, tags=tags)


def _added(tag_id: str) -> DeviceEvent:
    return DeviceEvent(kind=DeviceEventKind.ADD_SUCCEEDED, tag_id=tag_id)


def _deleted(tag_id: str) -> DeviceEvent:
    return DeviceEvent(kind=DeviceEventKind.DELETE_SUCCEEDED, tag_id=tag_id)


def test_open_add_sets_deadline_from_clock() -> None:
    clock = _Clock()
    machine = _machine(clock)

    pending = machine.open_add()

    assert isinstance(machine.add_slot, PendingAdd)
    assert pending.started_at == 1000.0
    assert pending.deadline == 1025.0


def test_second_add_rejected_while_pending() -> None:
    machine = _machine()
    first = machine.open_add()

    with pytest.raises(SmartLockOperationPendingError) as exc_info:
        machine.open_add()

    assert exc_info.value.operation == OperationKind.ADD
    assert machine.add_slot == first


def test_add_success_clears_slot_and_requests_refresh() -> None:
    machine = _machine()
    machine.open_add()

    effects = machine.apply(_added("T3"))

    assert machine.add_slot == IDLE
    assert effects.commands == ("fetchTags",)
    assert effects.notices == ()
    assert effects.state_changed


def test_add_success_does_not_touch_tag_list() -> None:
    machine = _machine()
    machine.apply(_snapshot("T1"))
    machine.open_add()

    machine.apply(_added("T2"))

    assert machine.tags == ("T1",)


def test_add_success_while_idle_is_ignored() -> None:
    machine = _machine()

    assert machine.apply(_added("T9")) == NO_EFFECTS
    assert machine.add_slot == IDLE


def test_duplicate_add_success_only_refreshes_once() -> None:
    machine = _machine()
    machine.open_add()

    first = machine.apply(_added("T3"))
    second = machine.apply(_added("T3"))

    assert first.commands == ("fetchTags",)
    assert second == NO_EFFECTS


def test_add_failure_surfaces_notice() -> None:
    machine = _machine()
    machine.open_add()

    effects = machine.apply(DeviceEvent(kind=DeviceEventKind.ADD_FAILED))

    assert machine.add_slot == IDLE
    assert effects.commands == ()
    assert [n.kind for n in effects.notices] == [NoticeKind.ADD_FAILED]


def test_add_failure_while_idle_is_ignored() -> None:
    machine = _machine()
    assert machine.apply(DeviceEvent(kind=DeviceEventKind.ADD_FAILED)) == NO_EFFECTS


def test_add_timeout_notifies_once_and_late_success_only_refreshes() -> None:
    machine = _machine()
    pending = machine.open_add()

    timed_out = machine.expire(OperationKind.ADD, pending.op_id)
    assert machine.add_slot == IDLE
    assert [n.kind for n in timed_out.notices] == [NoticeKind.ADD_TIMEOUT]
    assert timed_out.notices[0].is_timeout

    # Timer firing twice must not notify twice.
    assert machine.expire(OperationKind.ADD, pending.op_id) == NO_EFFECTS

    late = machine.apply(_added("T3"))
    assert late.commands == ("fetchTags",)
    assert late.notices == ()
    assert machine.add_slot == IDLE

    # Only the first late confirmation refreshes.
    assert machine.apply(_added("T3")) == NO_EFFECTS


def test_stale_timeout_does_not_clear_newer_add() -> None:
    machine = _machine()
    first = machine.open_add()
    machine.apply(_added("T1"))
    second = machine.open_add()

    assert machine.expire(OperationKind.ADD, first.op_id) == NO_EFFECTS
    assert machine.add_slot == second


def test_new_add_after_timeout_forgets_late_refresh() -> None:
    machine = _machine()
    first = machine.open_add()
    machine.expire(OperationKind.ADD, first.op_id)
    machine.open_add()

    effects = machine.apply(_added("T5"))

    assert effects.commands == ("fetchTags",)
    assert machine.add_slot == IDLE
    assert machine.apply(_added("T5")) == NO_EFFECTS


def test_snapshots_replace_tag_list_wholesale() -> None:
    machine = _machine()

    machine.apply(_snapshot("A", "B"))
    effects = machine.apply(_snapshot("B"))

    assert machine.tags == ("B",)
    assert effects.state_changed
    assert effects.commands == ()


def test_identical_snapshot_reports_no_change() -> None:
    machine = _machine()
    machine.apply(_snapshot("A"))

    assert not machine.apply(_snapshot("A")).state_changed


def test_first_empty_snapshot_counts_as_change() -> None:
    machine = _machine()

    effects = machine.apply(_snapshot())

    assert effects.state_changed
    assert machine.snapshot(connected=True).snapshot_received


def test_delete_of_other_tag_rejected_while_pending() -> None:
    machine = _machine()
    machine.open_delete("T1")

    with pytest.raises(SmartLockOperationPendingError) as exc_info:
        machine.open_delete("T2")

    assert exc_info.value.tag_id == "T1"
    assert isinstance(machine.delete_slot, PendingDelete)
    assert machine.delete_slot.tag_id == "T1"


def test_delete_success_clears_slot_and_requests_refresh() -> None:
    machine = _machine()
    machine.apply(_snapshot("T1", "T2"))
    machine.open_delete("T2")

    effects = machine.apply(_deleted("T2"))

    assert machine.delete_slot == IDLE
    assert effects.commands == ("fetchTags",)
    assert machine.tags == ("T1", "T2")


def test_delete_success_for_other_tag_keeps_slot() -> None:
    machine = _machine()
    machine.open_delete("T2")

    assert machine.apply(_deleted("T7")) == NO_EFFECTS
    assert isinstance(machine.delete_slot, PendingDelete)


def test_delete_failure_and_timeout_notices_carry_tag_id() -> None:
    machine = _machine()
    machine.open_delete("T1")
    failed = machine.apply(DeviceEvent(kind=DeviceEventKind.DELETE_FAILED))
    assert [(n.kind, n.tag_id) for n in failed.notices] == [(NoticeKind.DELETE_FAILED, "T1")]

    pending = machine.open_delete("T2")
    timed_out = machine.expire(OperationKind.DELETE, pending.op_id)
    assert [(n.kind, n.tag_id) for n in timed_out.notices] == [(NoticeKind.DELETE_TIMEOUT, "T2")]
    assert machine.delete_slot == IDLE


def test_late_delete_confirmation_refreshes_only_for_timed_out_tag() -> None:
    machine = _machine()
    pending = machine.open_delete("T1")
    machine.expire(OperationKind.DELETE, pending.op_id)

    assert machine.apply(_deleted("T9")) == NO_EFFECTS
    assert machine.apply(_deleted("T1")).commands == ("fetchTags",)
    assert machine.apply(_deleted("T1")) == NO_EFFECTS


def test_add_and_delete_slots_are_independent() -> None:
    machine = _machine()
    machine.open_add()
    machine.open_delete("T1")

    snap = machine.snapshot(connected=False)
    assert snap.adding
    assert snap.deleting_tag == "T1"
    assert not snap.connected

    machine.apply(_deleted("T1"))
    assert isinstance(machine.add_slot, PendingAdd)


def test_add_mode_and_unknown_events_have_no_effect() -> None:
    machine = _machine()
    machine.open_add()

    assert machine.apply(DeviceEvent(kind=DeviceEventKind.ADD_MODE_ACKNOWLEDGED)) == NO_EFFECTS
    assert machine.apply(DeviceEvent(kind=DeviceEventKind.UNKNOWN, raw="reboot")) == NO_EFFECTS
    assert isinstance(machine.add_slot, PendingAdd)
