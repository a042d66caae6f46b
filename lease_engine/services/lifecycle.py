"""Lifecycle service - applies state machine decisions to the stored application"""

from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from lease_engine.domain.clock import Clock, SystemClock
from lease_engine.domain.exceptions import ForbiddenAction, GuardNotSatisfied, StateConflict
from lease_engine.domain.identifiers import ApplicationId
from lease_engine.domain.lifecycle import (
    DECISION_ACTIONS,
    Action,
    Conflict,
    ConflictReason,
    GuardFacts,
    Transition,
    next_status,
)
from lease_engine.domain.models import TimelineEntry
from lease_engine.infrastructure.database.repositories import ApplicationRepository
from lease_engine.infrastructure.observability.logging import log_conflict, log_transition
from lease_engine.infrastructure.observability.metrics import record_transition


class LifecycleService:
    """
    Moves an application through its lifecycle.

    The state machine decides; this class performs the single conditional
    status write and appends the timeline. It does not commit: callers own
    the transaction so a transition can share it with other writes.
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.applications = ApplicationRepository(db)

    def apply(
        self,
        application_id: ApplicationId,
        action: Union[Action, str],
        facts: GuardFacts,
        actor: str,
        values: Optional[Dict[str, Any]] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Transition:
        """
        Apply `action` to the application.

        Returns the Transition (no_op=True when the application is already in
        the target status; nothing is written then).

        Raises:
            ApplicationNotFound: unknown application
            ForbiddenAction: facts.role may not perform the action
            StateConflict: wrong source status, or the status changed under us
            GuardNotSatisfied: status allows the action but the facts do not
        """
        record = self.applications.get(application_id)
        decision = next_status(record.status, action, facts)

        if isinstance(decision, Conflict):
            record_transition(decision.action, decision.reason.value)
            log_conflict(str(application_id), decision.action, decision.current, decision.reason.value)
            raise self._to_exception(decision, facts)

        if decision.no_op:
            record_transition(decision.action.value, "no_op")
            log_transition(
                str(application_id),
                decision.action.value,
                decision.from_status.value,
                decision.to_status.value,
                actor,
                no_op=True,
            )
            return decision

        now = self.clock.now()
        swapped = self.applications.compare_and_swap_status(
            application_id, decision.expected, decision.to_status, now, values
        )
        if not swapped:
            # Someone else moved the application between our read and write
            current = self.applications.current_status(application_id) or record.status
            record_transition(decision.action.value, "conflict")
            log_conflict(str(application_id), decision.action.value, current, "conflict")
            raise StateConflict(current=current, action=decision.action.value)

        entries = []
        if decision.action in DECISION_ACTIONS:
            entries.append(
                TimelineEntry(at=now, by=actor, event=f"decision.{decision.action.value}", meta=dict(meta or {}))
            )
        entries.append(
            TimelineEntry(
                at=now,
                by=actor,
                event="status.change",
                meta={
                    "from": decision.from_status.value,
                    "to": decision.to_status.value,
                    "via": decision.action.value,
                },
            )
        )
        self.applications.append_timeline(application_id, entries)

        record_transition(decision.action.value, "applied")
        log_transition(
            str(application_id),
            decision.action.value,
            decision.from_status.value,
            decision.to_status.value,
            actor,
        )
        return decision

    @staticmethod
    def _to_exception(conflict: Conflict, facts: GuardFacts) -> Exception:
        if conflict.reason == ConflictReason.FORBIDDEN:
            role = facts.role.value if facts.role else "anonymous"
            return ForbiddenAction(role=role, action=conflict.action)
        if conflict.reason == ConflictReason.GUARD_NOT_MET:
            return GuardNotSatisfied(current=conflict.current, action=conflict.action)
        return StateConflict(current=conflict.current, action=conflict.action, needs=conflict.needs)
