"""Unit tests for the application lifecycle state machine"""

from datetime import date

import pytest

from lease_engine.domain.lifecycle import (
    Action,
    ApplicationStatus,
    Conflict,
    ConflictReason,
    GuardFacts,
    Role,
    Transition,
    allowed_actions,
    countersign_minimum_satisfied,
    next_status,
)
from lease_engine.domain.models import Bucket, MinRule, Terms

S = ApplicationStatus

TERMS = Terms(address="12 Elm St", rent_cents=200000, start_date=date(2026, 2, 1), deposit_cents=150000)
RULES = (MinRule(Bucket.UPFRONT, 210000), MinRule(Bucket.DEPOSIT, 150000))


def test_approve_then_repeat_then_reject():
    """Approve moves on, a repeat is a no-op, a late reject is a conflict"""
    admin = GuardFacts(role=Role.ADMIN)

    first = next_status(S.SUBMITTED, Action.APPROVE, admin)
    assert isinstance(first, Transition)
    assert first.to_status == S.APPROVED_HIGH
    assert not first.no_op

    repeat = next_status(S.APPROVED_HIGH, Action.APPROVE, admin)
    assert isinstance(repeat, Transition)
    assert repeat.no_op
    assert repeat.to_status == S.APPROVED_HIGH

    late = next_status(S.APPROVED_HIGH, Action.REJECT, admin)
    assert isinstance(late, Conflict)
    assert late.reason == ConflictReason.BAD_STATE
    assert late.current == "approved_high"
    assert late.needs == ("submitted",)


def test_transition_expects_the_status_it_was_computed_from():
    for status in (S.SUBMITTED, S.ADMIN_SCREENED):
        result = next_status(status, Action.APPROVE, GuardFacts(role=Role.OWNER))

        assert result.from_status == status
        assert result.expected == (status,)


@pytest.mark.parametrize(
    "action, role",
    [
        (Action.APPROVE, Role.MEMBER),
        (Action.APPROVE, Role.TENANT),
        (Action.PRELIMINARY_ACCEPT, Role.TENANT),
        (Action.REJECT, Role.SYSTEM),
        (Action.WITHDRAW, Role.ADMIN),
        (Action.SYSTEM_MIN_READY, Role.OWNER),
    ],
)
def test_role_not_allowed_is_forbidden(action, role):
    result = next_status(S.SUBMITTED, action, GuardFacts(role=role))

    assert isinstance(result, Conflict)
    assert result.reason == ConflictReason.FORBIDDEN


def test_missing_role_is_forbidden():
    result = next_status(S.SUBMITTED, Action.REJECT)
    assert result.reason == ConflictReason.FORBIDDEN


def test_unknown_action_or_status_is_a_conflict():
    assert next_status(S.SUBMITTED, "teleport", GuardFacts(role=Role.ADMIN)).reason == ConflictReason.UNKNOWN_ACTION
    assert next_status("archived", Action.APPROVE, GuardFacts(role=Role.ADMIN)).reason == ConflictReason.UNKNOWN_ACTION


def test_accepts_raw_strings():
    result = next_status("submitted", "preliminary_accept", GuardFacts(role=Role.MEMBER))
    assert result.to_status == S.ADMIN_SCREENED


def test_submit_needs_member_acknowledgement():
    assert next_status(S.DRAFT, Action.SUBMIT, GuardFacts(role=Role.TENANT)).reason == ConflictReason.GUARD_NOT_MET

    result = next_status(S.DRAFT, Action.SUBMIT, GuardFacts(role=Role.TENANT, members_ack=True))
    assert result.to_status == S.SUBMITTED


def test_withdraw_from_early_states_only():
    tenant = GuardFacts(role=Role.TENANT)
    for status in (S.DRAFT, S.SUBMITTED, S.ADMIN_SCREENED):
        assert next_status(status, Action.WITHDRAW, tenant).to_status == S.WITHDRAWN
    assert next_status(S.APPROVED_HIGH, Action.WITHDRAW, tenant).reason == ConflictReason.BAD_STATE


def test_set_terms_needs_valid_terms():
    facts = GuardFacts(role=Role.ADMIN, terms=TERMS)
    assert next_status(S.APPROVED_HIGH, Action.SET_TERMS, facts).to_status == S.TERMS_SET

    no_address = GuardFacts(role=Role.ADMIN, terms=Terms(address="", rent_cents=1, start_date=date(2026, 2, 1)))
    assert next_status(S.APPROVED_HIGH, Action.SET_TERMS, no_address).reason == ConflictReason.GUARD_NOT_MET
    assert next_status(S.APPROVED_HIGH, Action.SET_TERMS, GuardFacts(role=Role.ADMIN)).reason == ConflictReason.GUARD_NOT_MET


def test_min_ready_depends_on_rules():
    with_rules = GuardFacts(role=Role.SYSTEM, terms=TERMS, min_rules=RULES)
    assert next_status(S.TERMS_SET, Action.SYSTEM_MIN_READY, with_rules).to_status == S.MIN_DUE

    without = GuardFacts(role=Role.SYSTEM, terms=TERMS)
    assert next_status(S.TERMS_SET, Action.SYSTEM_MIN_READY, without).to_status == S.COUNTERSIGNED


def test_payment_updated_needs_every_minimum():
    short = GuardFacts(role=Role.SYSTEM, min_rules=RULES, payment_totals={Bucket.UPFRONT: 210000, Bucket.DEPOSIT: 149999})
    assert next_status(S.MIN_DUE, Action.PAYMENT_UPDATED, short).reason == ConflictReason.GUARD_NOT_MET

    met = GuardFacts(role=Role.SYSTEM, min_rules=RULES, payment_totals={Bucket.UPFRONT: 210000, Bucket.DEPOSIT: 150000})
    assert next_status(S.MIN_DUE, Action.PAYMENT_UPDATED, met).to_status == S.MIN_PAID


def test_countersign_minimum_needs_rules():
    assert not countersign_minimum_satisfied([], {Bucket.UPFRONT: 10**9})
    assert countersign_minimum_satisfied([MinRule(Bucket.DEPOSIT, 100)], {Bucket.DEPOSIT: 100})
    assert not countersign_minimum_satisfied([MinRule(Bucket.DEPOSIT, 100)], {})


def test_signatures_and_move_in():
    assert next_status(S.MIN_PAID, Action.SIGNATURES_COMPLETED, GuardFacts(role=Role.SYSTEM, signatures_count=1)).reason == (
        ConflictReason.GUARD_NOT_MET
    )
    signed = next_status(S.MIN_PAID, Action.SIGNATURES_COMPLETED, GuardFacts(role=Role.SYSTEM, signatures_count=2))
    assert signed.to_status == S.COUNTERSIGNED

    early = GuardFacts(role=Role.SYSTEM, terms=TERMS, as_of=date(2026, 1, 31))
    assert next_status(S.COUNTERSIGNED, Action.TICK_CLOCK, early).reason == ConflictReason.GUARD_NOT_MET

    on_start = GuardFacts(role=Role.SYSTEM, terms=TERMS, as_of=date(2026, 2, 1))
    assert next_status(S.COUNTERSIGNED, Action.TICK_CLOCK, on_start).to_status == S.OCCUPIED


def test_terminal_states_allow_nothing():
    for status in (S.REJECTED, S.WITHDRAWN, S.OCCUPIED):
        assert allowed_actions(status) == []


def test_allowed_actions():
    assert allowed_actions("draft") == [Action.SUBMIT, Action.WITHDRAW]
    assert allowed_actions(S.SUBMITTED) == [Action.PRELIMINARY_ACCEPT, Action.APPROVE, Action.REJECT, Action.WITHDRAW]
    assert allowed_actions("nonsense") == []


def test_next_status_is_total():
    """Every (status, action, role) combination answers without raising"""
    facts_by_role = [GuardFacts(role=role, terms=TERMS, min_rules=RULES) for role in Role] + [GuardFacts()]
    for status in ApplicationStatus:
        for action in Action:
            for facts in facts_by_role:
                result = next_status(status, action, facts)
                assert isinstance(result, (Transition, Conflict))
                if isinstance(result, Transition) and not result.no_op:
                    assert result.expected == (status,)
