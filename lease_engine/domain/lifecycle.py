"""Application lifecycle state machine - pure and total over (status, action)"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from lease_engine.domain.models import Bucket, MinRule, Terms
from lease_engine.domain.payment_plan import terms_are_valid


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    ADMIN_SCREENED = "admin_screened"
    APPROVED_HIGH = "approved_high"
    TERMS_SET = "terms_set"
    MIN_DUE = "min_due"
    MIN_PAID = "min_paid"
    COUNTERSIGNED = "countersigned"
    OCCUPIED = "occupied"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class Action(str, Enum):
    SUBMIT = "submit"
    PRELIMINARY_ACCEPT = "preliminary_accept"
    APPROVE = "approve"
    REJECT = "reject"
    WITHDRAW = "withdraw"
    SET_TERMS = "set_terms"
    SYSTEM_MIN_READY = "system_min_ready"
    PAYMENT_UPDATED = "payment_updated"
    SIGNATURES_COMPLETED = "signatures_completed"
    TICK_CLOCK = "tick_clock"


class Role(str, Enum):
    TENANT = "tenant"
    MEMBER = "member"
    ADMIN = "admin"
    OWNER = "owner"
    SYSTEM = "system"


class ConflictReason(str, Enum):
    UNKNOWN_ACTION = "unknown_action"
    FORBIDDEN = "forbidden"
    BAD_STATE = "bad_state"
    GUARD_NOT_MET = "guard_not_met"


S = ApplicationStatus
FIRM_ROLES = frozenset({Role.MEMBER, Role.ADMIN, Role.OWNER})
TERMINAL_STATES = frozenset({S.REJECTED, S.WITHDRAWN, S.OCCUPIED})

# Landlord decisions get their own timeline entry besides the status change
DECISION_ACTIONS = frozenset({Action.PRELIMINARY_ACCEPT, Action.APPROVE, Action.REJECT})


@dataclass(frozen=True)
class Rule:
    sources: Tuple[ApplicationStatus, ...]
    targets: Tuple[ApplicationStatus, ...]
    roles: FrozenSet[Role]


RULES: Dict[Action, Rule] = {
    Action.SUBMIT: Rule((S.DRAFT,), (S.SUBMITTED,), frozenset({Role.TENANT, Role.SYSTEM})),
    Action.PRELIMINARY_ACCEPT: Rule((S.SUBMITTED,), (S.ADMIN_SCREENED,), FIRM_ROLES),
    Action.APPROVE: Rule((S.SUBMITTED, S.ADMIN_SCREENED), (S.APPROVED_HIGH,), frozenset({Role.ADMIN, Role.OWNER})),
    Action.REJECT: Rule((S.SUBMITTED,), (S.REJECTED,), FIRM_ROLES),
    Action.WITHDRAW: Rule((S.DRAFT, S.SUBMITTED, S.ADMIN_SCREENED), (S.WITHDRAWN,), frozenset({Role.TENANT})),
    Action.SET_TERMS: Rule((S.APPROVED_HIGH,), (S.TERMS_SET,), FIRM_ROLES | {Role.SYSTEM}),
    Action.SYSTEM_MIN_READY: Rule((S.TERMS_SET,), (S.MIN_DUE, S.COUNTERSIGNED), frozenset({Role.SYSTEM})),
    Action.PAYMENT_UPDATED: Rule((S.MIN_DUE,), (S.MIN_PAID,), frozenset({Role.SYSTEM})),
    Action.SIGNATURES_COMPLETED: Rule((S.MIN_PAID,), (S.COUNTERSIGNED,), frozenset({Role.SYSTEM})),
    Action.TICK_CLOCK: Rule((S.COUNTERSIGNED,), (S.OCCUPIED,), frozenset({Role.SYSTEM})),
}

REQUIRED_SIGNATURES = 2


@dataclass(frozen=True)
class GuardFacts:
    """Facts known at call time; only what the action's guard needs is read"""

    role: Optional[Role] = None
    members_ack: bool = False
    terms: Optional[Terms] = None
    min_rules: Tuple[MinRule, ...] = ()
    payment_totals: Mapping[Bucket, int] = field(default_factory=dict)
    signatures_count: int = 0
    as_of: Optional[date] = None


@dataclass(frozen=True)
class Transition:
    """Accepted action; `expected` is the status filter for the compare-and-swap write"""

    action: Action
    from_status: ApplicationStatus
    to_status: ApplicationStatus
    expected: Tuple[ApplicationStatus, ...]
    no_op: bool = False


@dataclass(frozen=True)
class Conflict:
    action: str
    current: str
    reason: ConflictReason
    needs: Tuple[str, ...] = ()


def countersign_minimum_satisfied(rules, totals: Mapping[Bucket, int]) -> bool:
    """All rules met across buckets; no rules configured means not ready"""
    rules = list(rules or ())
    if not rules:
        return False
    return all(totals.get(rule.bucket, 0) >= rule.min_cents for rule in rules)


def _parse(enum_cls, raw):
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except ValueError:
        return None


def _guard(action: Action, facts: GuardFacts) -> Optional[ApplicationStatus]:
    """Target status when the action's guard holds, else None"""
    if action == Action.SUBMIT:
        return S.SUBMITTED if facts.members_ack else None
    if action == Action.SET_TERMS:
        return S.TERMS_SET if terms_are_valid(facts.terms) else None
    if action == Action.SYSTEM_MIN_READY:
        # Terms were validated on the way into terms_set
        return S.MIN_DUE if facts.min_rules else S.COUNTERSIGNED
    if action == Action.PAYMENT_UPDATED:
        return S.MIN_PAID if countersign_minimum_satisfied(facts.min_rules, facts.payment_totals) else None
    if action == Action.SIGNATURES_COMPLETED:
        return S.COUNTERSIGNED if facts.signatures_count >= REQUIRED_SIGNATURES else None
    if action == Action.TICK_CLOCK:
        start = facts.terms.start_date if facts.terms else None
        if start is None or facts.as_of is None:
            return None
        return S.OCCUPIED if start <= facts.as_of else None
    return RULES[action].targets[0]


def next_status(
    current: Union[ApplicationStatus, str],
    action: Union[Action, str],
    facts: Optional[GuardFacts] = None,
) -> Union[Transition, Conflict]:
    """
    Compute the next lifecycle status. Never raises.

    Checks in order:
    - unknown status or action -> Conflict(unknown_action)
    - caller role not allowed -> Conflict(forbidden)
    - current already a target of the action -> no-op Transition (idempotent retry)
    - current not an allowed source -> Conflict(bad_state, needs=sources)
    - guard not met -> Conflict(guard_not_met)
    """
    facts = facts or GuardFacts()
    status = _parse(ApplicationStatus, current)
    act = _parse(Action, action)
    if status is None or act is None:
        return Conflict(action=str(getattr(action, "value", action)), current=str(getattr(current, "value", current)),
                        reason=ConflictReason.UNKNOWN_ACTION)

    rule = RULES[act]
    if facts.role not in rule.roles:
        return Conflict(action=act.value, current=status.value, reason=ConflictReason.FORBIDDEN)

    if status in rule.targets:
        return Transition(action=act, from_status=status, to_status=status, expected=(status,), no_op=True)

    if status not in rule.sources:
        return Conflict(
            action=act.value,
            current=status.value,
            reason=ConflictReason.BAD_STATE,
            needs=tuple(s.value for s in rule.sources),
        )

    target = _guard(act, facts)
    if target is None:
        return Conflict(action=act.value, current=status.value, reason=ConflictReason.GUARD_NOT_MET)

    return Transition(action=act, from_status=status, to_status=target, expected=(status,))


def allowed_actions(status: Union[ApplicationStatus, str]) -> List[Action]:
    """Actions that can move an application out of `status` (for UI hints)"""
    parsed = _parse(ApplicationStatus, status)
    if parsed is None:
        return []
    return [action for action, rule in RULES.items() if parsed in rule.sources]
