import asyncio
from datetime import datetime

import pytest

from detachements.constants.constants import RequestStatus, TransitionAction
from detachements.core.errors import InvalidTransition, NotFound, ValidationError
from detachements.services.LeaveRequestStore import LeaveRequestStore
from detachements.services.LeaveRequestValidator import validate_submission
from detachements.services.LifecycleManager import LifecycleManager, plan_transition
from detachements.services.NotificationSink import RecordingNotificationSink
from tests.factories import raw_submission

CC = ["secretariat@csec-sg.fr"]


# ---------------------------------------------------------------------------
# plan_transition
# ---------------------------------------------------------------------------


def test_validate_pending_plan():
    now = datetime(2024, 3, 1, 12, 0)
    plan = plan_transition("r1", RequestStatus.pending, TransitionAction.validate, now=now, decided_by="a@b.fr")
    assert not plan.already
    assert plan.target == RequestStatus.sent
    assert plan.changes == {"status": RequestStatus.sent, "validated_at": now, "decided_by": "a@b.fr"}


def test_validate_sent_is_already_done():
    plan = plan_transition("r1", RequestStatus.sent, TransitionAction.validate)
    assert plan.already
    assert plan.changes == {}


@pytest.mark.parametrize("status", [RequestStatus.refused, RequestStatus.cancelled])
def test_validate_closed_request_is_invalid(status):
    with pytest.raises(InvalidTransition) as exc_info:
        plan_transition("r1", status, TransitionAction.validate)
    assert exc_info.value.status == status.value
    assert exc_info.value.status_code == 409


@pytest.mark.parametrize("action", [TransitionAction.refuse, TransitionAction.cancel])
def test_decision_plan_records_reason(action):
    now = datetime(2024, 3, 1, 12, 0)
    plan = plan_transition("r1", RequestStatus.pending, action, reason="  Effectif insuffisant ", now=now)
    assert plan.changes["status"] == plan.target
    assert plan.changes["decision_reason"] == "Effectif insuffisant"
    assert plan.changes["decision_at"] == now
    assert "validated_at" not in plan.changes


@pytest.mark.parametrize("action", [TransitionAction.refuse, TransitionAction.cancel])
@pytest.mark.parametrize("reason", [None, "", "   "])
def test_decision_requires_reason(action, reason):
    with pytest.raises(ValidationError) as exc_info:
        plan_transition("r1", RequestStatus.pending, action, reason=reason)
    assert exc_info.value.field == "reason"


@pytest.mark.parametrize("action", [TransitionAction.refuse, TransitionAction.cancel])
@pytest.mark.parametrize("status", [RequestStatus.sent, RequestStatus.refused, RequestStatus.cancelled])
def test_decision_on_closed_request_is_invalid(action, status):
    with pytest.raises(InvalidTransition):
        plan_transition("r1", status, action, reason="Motif")


def test_reason_is_checked_before_status():
    with pytest.raises(ValidationError):
        plan_transition("r1", RequestStatus.sent, TransitionAction.refuse, reason="")


# ---------------------------------------------------------------------------
# LifecycleManager
# ---------------------------------------------------------------------------


async def _stored_request(db_session, **overrides):
    return await LeaveRequestStore(db_session).insert(validate_submission(raw_submission(**overrides)))


async def test_validate_sends_confirmation_to_manager_and_hr(db_session, admin):
    record = await _stored_request(db_session)
    sink = RecordingNotificationSink()
    manager = LifecycleManager(LeaveRequestStore(db_session), sink, CC)

    result = await manager.validate(record.id, admin)

    assert not result.already
    assert result.record.status == RequestStatus.sent
    assert result.record.validated_at is not None
    assert result.record.decided_by == admin.email
    assert len(sink.directives) == 1
    directive = sink.directives[0]
    assert directive.kind == "sent"
    assert directive.to == ["manager@socgen.fr", "rh@socgen.fr"]
    assert directive.cc == ["secretariat@csec-sg.fr", "camille.martin@socgen.fr"]


async def test_validate_twice_sends_once(db_session, admin):
    record = await _stored_request(db_session)
    sink = RecordingNotificationSink()
    manager = LifecycleManager(LeaveRequestStore(db_session), sink, CC)

    await manager.validate(record.id, admin)
    second = await manager.validate(record.id, admin)

    assert second.already
    assert second.directive is None
    assert len(sink.directives) == 1


async def test_refuse_notifies_applicant_with_reason(db_session, admin):
    record = await _stored_request(db_session)
    sink = RecordingNotificationSink()
    manager = LifecycleManager(LeaveRequestStore(db_session), sink, CC)

    result = await manager.refuse(record.id, "Période de clôture", admin)

    assert result.record.status == RequestStatus.refused
    assert result.record.decision_reason == "Période de clôture"
    assert result.record.decision_at is not None
    assert result.record.validated_at is None
    assert sink.directives[0].to == ["camille.martin@socgen.fr"]
    assert "Période de clôture" in sink.directives[0].text


async def test_cancel_then_validate_is_invalid(db_session, admin):
    record = await _stored_request(db_session)
    sink = RecordingNotificationSink()
    manager = LifecycleManager(LeaveRequestStore(db_session), sink, CC)

    await manager.cancel(record.id, "Demande en double", admin)
    with pytest.raises(InvalidTransition):
        await manager.validate(record.id, admin)

    stored = await LeaveRequestStore(db_session).get(record.id)
    assert stored.status == RequestStatus.cancelled
    assert [d.kind for d in sink.directives] == ["cancelled"]


async def test_refuse_without_reason_leaves_request_pending(db_session, admin):
    record = await _stored_request(db_session)
    sink = RecordingNotificationSink()
    manager = LifecycleManager(LeaveRequestStore(db_session), sink, CC)

    with pytest.raises(ValidationError):
        await manager.refuse(record.id, "  ", admin)

    stored = await LeaveRequestStore(db_session).get(record.id)
    assert stored.status == RequestStatus.pending
    assert sink.directives == []


async def test_unknown_request(db_session):
    manager = LifecycleManager(LeaveRequestStore(db_session), RecordingNotificationSink(), CC)
    with pytest.raises(NotFound):
        await manager.validate("missing-id")


class _BrokenSink:
    def enqueue(self, directive):
        raise RuntimeError("queue is down")


async def test_sink_failure_does_not_undo_transition(db_session, admin):
    record = await _stored_request(db_session)
    manager = LifecycleManager(LeaveRequestStore(db_session), _BrokenSink(), CC)

    result = await manager.validate(record.id, admin)

    assert result.record.status == RequestStatus.sent


async def test_concurrent_validations_send_a_single_email(database, db_session, admin):
    record = await _stored_request(db_session)
    sink = RecordingNotificationSink()

    async def validate():
        async with database.get_session() as session:
            manager = LifecycleManager(LeaveRequestStore(session), sink, CC)
            return await manager.validate(record.id, admin)

    results = await asyncio.gather(validate(), validate())

    assert sorted(result.already for result in results) == [False, True]
    assert len(sink.directives) == 1


async def test_concurrent_validate_and_refuse_have_one_winner(database, db_session, admin):
    record = await _stored_request(db_session)
    sink = RecordingNotificationSink()

    async def run(action):
        async with database.get_session() as session:
            manager = LifecycleManager(LeaveRequestStore(session), sink, CC)
            if action == TransitionAction.validate:
                return await manager.validate(record.id, admin)
            return await manager.refuse(record.id, "Motif", admin)

    results = await asyncio.gather(
        run(TransitionAction.validate), run(TransitionAction.refuse), return_exceptions=True
    )

    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], InvalidTransition)
    assert len(sink.directives) == 1

    stored = await LeaveRequestStore(db_session).get(record.id)
    assert stored.status.value == sink.directives[0].kind
