"""Unit tests for obligation generation and paid-amount materialization"""

from datetime import date, datetime, timezone

from lease_engine.domain.allocation import allocate, charges_from_obligations
from lease_engine.domain.identifiers import LeaseId
from lease_engine.domain.models import (
    ObligationGroup,
    ObligationStatus,
    Payment,
    PaymentKind,
    PaymentStatus,
    RawLeaseTerms,
)
from lease_engine.domain.obligations import (
    build_scheduled_payments,
    generate_obligations,
    materialize_paid,
    obligation_status,
)
from lease_engine.domain.payment_plan import build_payment_plan


def test_generate_obligations_move_in_items_then_rent(sample_terms, application_id):
    """First month, key fee and deposit due at start, then one rent per month"""
    plan = build_payment_plan(sample_terms)
    obligations = generate_obligations(plan, application_id)

    assert [o.key for o in obligations] == ["first", "key_fee", "security", "rent:2026:02", "rent:2026:03"]
    assert [o.amount_cents for o in obligations] == [200000, 10000, 150000, 200000, 200000]
    assert [o.priority for o in obligations] == [20, 30, 40, 1000, 1001]
    assert [o.group for o in obligations] == [
        ObligationGroup.UPFRONT,
        ObligationGroup.FEE,
        ObligationGroup.DEPOSIT,
        ObligationGroup.RENT,
        ObligationGroup.RENT,
    ]
    assert all(o.due_on == date(2026, 2, 1) for o in obligations[:3])
    assert obligations[4].due_on == date(2026, 3, 1)
    assert obligations[3].label == "Rent 2026-02"


def test_only_move_in_items_gate_countersign(sample_terms, application_id):
    obligations = generate_obligations(build_payment_plan(sample_terms), application_id)

    gating = [o.key for o in obligations if o.pre_sign_gate]
    assert gating == ["first", "key_fee", "security"]
    assert all(o.paid_cents == 0 and o.status == ObligationStatus.DUE for o in obligations)


def test_last_month_is_collected_first(application_id):
    plan = build_payment_plan(
        RawLeaseTerms(
            monthly_rent_cents=150000,
            start_date="2026-05-01",
            term_months=12,
            require_first_before_move_in=True,
            require_last_before_move_in=True,
        )
    )
    obligations = generate_obligations(plan, application_id)

    assert [o.key for o in obligations[:2]] == ["last", "first"]
    assert obligations[0].label == "Last month"


def test_rent_schedule_for_end_of_month_start(application_id):
    """Due dates clamp to month end; keys stay unique and dates increase"""
    plan = build_payment_plan(RawLeaseTerms(monthly_rent_cents=100000, start_date="2026-01-31", term_months=13))
    rent = [o for o in generate_obligations(plan, application_id) if o.group == ObligationGroup.RENT]

    assert len(rent) == 13
    assert rent[1].due_on == date(2026, 2, 28)
    assert rent[2].due_on == date(2026, 3, 31)
    assert len({o.key for o in rent}) == 13
    assert all(a.due_on < b.due_on for a, b in zip(rent, rent[1:]))
    assert all(a.priority < b.priority for a, b in zip(rent, rent[1:]))
    assert rent[-1].due_on <= plan.end_date


def test_no_term_means_no_rent_schedule(application_id):
    plan = build_payment_plan(RawLeaseTerms(monthly_rent_cents=100000, start_date="2026-01-01", security_cents=5000))
    obligations = generate_obligations(plan, application_id)

    assert [o.key for o in obligations] == ["security"]


def test_obligations_carry_lease_id(sample_terms, application_id):
    lease_id = LeaseId.new()
    obligations = generate_obligations(build_payment_plan(sample_terms), application_id, lease_id)

    assert all(o.lease_id == lease_id and o.application_id == application_id for o in obligations)


def test_scheduled_payments(sample_terms, application_id):
    obligations = generate_obligations(build_payment_plan(sample_terms), application_id)
    scheduled = build_scheduled_payments(obligations, currency="USD")

    assert len(scheduled) == 5
    assert [s.bucket for s in scheduled] == ["standard", "standard", "deposit", "standard", "standard"]
    assert all(s.currency == "USD" and s.status == "scheduled" for s in scheduled)
    assert scheduled[4].due_date == date(2026, 3, 1)


def test_obligation_status():
    assert obligation_status(1000, 0) == ObligationStatus.DUE
    assert obligation_status(1000, 1) == ObligationStatus.PARTIAL
    assert obligation_status(1000, 1000) == ObligationStatus.PAID


def test_materialize_paid_from_allocation(sample_terms, application_id):
    """250000 upfront: first and key fee paid, 40000 onto the first rent month"""
    obligations = generate_obligations(build_payment_plan(sample_terms), application_id)
    payment = Payment(
        kind=PaymentKind.UPFRONT,
        status=PaymentStatus.SUCCEEDED,
        amount_cents=250000,
        created_at=datetime(2026, 1, 20, tzinfo=timezone.utc),
    )
    allocation = allocate(charges_from_obligations(obligations), [payment])

    paid = {o.key: (o.paid_cents, o.status) for o in materialize_paid(obligations, allocation)}
    assert paid["first"] == (200000, ObligationStatus.PAID)
    assert paid["key_fee"] == (10000, ObligationStatus.PAID)
    assert paid["rent:2026:02"] == (40000, ObligationStatus.PARTIAL)
    assert paid["security"] == (0, ObligationStatus.DUE)
    assert paid["rent:2026:03"] == (0, ObligationStatus.DUE)


def test_materialize_paid_replaces_rather_than_adds(sample_terms, application_id):
    obligations = generate_obligations(build_payment_plan(sample_terms), application_id)
    payment = Payment(
        kind=PaymentKind.DEPOSIT,
        status=PaymentStatus.SUCCEEDED,
        amount_cents=100000,
        created_at=datetime(2026, 1, 20, tzinfo=timezone.utc),
    )
    allocation = allocate(charges_from_obligations(obligations), [payment])

    once = materialize_paid(obligations, allocation)
    twice = materialize_paid(once, allocation)
    assert once == twice
    assert [o.paid_cents for o in twice if o.key == "security"] == [100000]
