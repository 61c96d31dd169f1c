"""
Request lifecycle.

    pending --validate--> sent
    pending --refuse----> refused
    pending --cancel----> cancelled

``sent``, ``refused`` and ``cancelled`` are terminal. Validating a request
that is already ``sent`` succeeds without any change and without a second
email; every other action outside ``pending`` is an InvalidTransition.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from detachements.constants.constants import ACTION_TARGET_STATUS, RequestStatus, TransitionAction
from detachements.core.errors import InvalidTransition, ValidationError
from detachements.models.admin import AdminUser
from detachements.models.leave import LeaveRequest
from detachements.services.LeaveNotificationFormatter import (
    NotificationDirective,
    build_decision_notification,
    build_validation_notification,
)
from detachements.services.LeaveRequestStore import LeaveRequestStore
from detachements.services.NotificationSink import NotificationSink

logger = logging.getLogger(__name__)


@dataclass
class TransitionPlan:
    action: TransitionAction
    target: RequestStatus
    changes: Dict[str, Any] = field(default_factory=dict)
    already: bool = False


@dataclass
class TransitionResult:
    record: LeaveRequest
    already: bool = False
    directive: Optional[NotificationDirective] = None


def plan_transition(
    request_id: str,
    status: RequestStatus,
    action: TransitionAction,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    decided_by: Optional[str] = None,
) -> TransitionPlan:
    """
    Decide what an action does to a request in ``status``.

    Returns:
        The column changes to apply, or a plan flagged ``already`` for a
        repeated validation.

    Raises:
        ValidationError: refuse/cancel without a reason.
        InvalidTransition: the action is not allowed from ``status``.
    """
    action = TransitionAction(action)
    status = RequestStatus(status)
    target = ACTION_TARGET_STATUS[action]
    now = now or datetime.utcnow()

    if action == TransitionAction.validate:
        if status == RequestStatus.sent:
            return TransitionPlan(action=action, target=target, already=True)
        if status != RequestStatus.pending:
            raise InvalidTransition(request_id, status.value, action.value)
        return TransitionPlan(
            action=action,
            target=target,
            changes={"status": target, "validated_at": now, "decided_by": decided_by},
        )

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Motif requis", field="reason")
    if status != RequestStatus.pending:
        raise InvalidTransition(request_id, status.value, action.value)
    return TransitionPlan(
        action=action,
        target=target,
        changes={
            "status": target,
            "decision_at": now,
            "decision_reason": reason,
            "decided_by": decided_by,
        },
    )


_record_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _lock_for(request_id: str) -> asyncio.Lock:
    lock = _record_locks.get(request_id)
    if lock is None:
        lock = asyncio.Lock()
        _record_locks[request_id] = lock
    return lock


class LifecycleManager:
    """Applies admin actions to stored requests and queues their notification."""

    def __init__(
        self,
        store: LeaveRequestStore,
        sink: NotificationSink,
        cc_emails: Optional[Iterable[str]] = None,
    ):
        self.store = store
        self.sink = sink
        self.cc_emails = cc_emails

    async def transition(
        self,
        request_id: str,
        action: TransitionAction,
        admin: Optional[AdminUser] = None,
        reason: Optional[str] = None,
    ) -> TransitionResult:
        admin_email = admin.email if admin else None

        async with _lock_for(request_id):
            record = await self.store.get(request_id)
            plan = plan_transition(request_id, record.status, action, reason, decided_by=admin_email)
            if plan.already:
                logger.info(f"ℹ️ Request {request_id} already sent, nothing to do")
                return TransitionResult(record=record, already=True)

            applied = await self.store.update_if_status(request_id, RequestStatus.pending, plan.changes)
            record = await self.store.get(request_id)
            if not applied:
                # Another worker moved the request out of pending in the meantime
                if plan.action == TransitionAction.validate and record.status == RequestStatus.sent:
                    return TransitionResult(record=record, already=True)
                raise InvalidTransition(request_id, record.status.value, plan.action.value)

        logger.info(f"✅ Request {request_id} {plan.target.value} by {admin_email or 'unknown admin'}")

        if plan.target == RequestStatus.sent:
            directive = build_validation_notification(record, admin, self.cc_emails)
        else:
            directive = build_decision_notification(record, plan.target)

        try:
            self.sink.enqueue(directive)
        except Exception as e:
            logger.error(f"❌ Could not queue '{directive.kind}' email for request {request_id}: {e}")

        return TransitionResult(record=record, directive=directive)

    async def validate(self, request_id: str, admin: Optional[AdminUser] = None) -> TransitionResult:
        return await self.transition(request_id, TransitionAction.validate, admin)

    async def refuse(
        self, request_id: str, reason: Optional[str], admin: Optional[AdminUser] = None
    ) -> TransitionResult:
        return await self.transition(request_id, TransitionAction.refuse, admin, reason)

    async def cancel(
        self, request_id: str, reason: Optional[str], admin: Optional[AdminUser] = None
    ) -> TransitionResult:
        return await self.transition(request_id, TransitionAction.cancel, admin, reason)
