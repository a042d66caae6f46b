"""Unit tests for payment plan building and clamping"""

from datetime import date

import pytest

from lease_engine.domain.exceptions import InvalidLeaseTerms
from lease_engine.domain.models import Bucket, MinRule, PaymentPlan, RawLeaseTerms
from lease_engine.domain.payment_plan import build_payment_plan, terms_are_valid, terms_from_plan


def _terms(**overrides) -> RawLeaseTerms:
    values = dict(
        monthly_rent_cents=200000,
        start_date="2026-02-01",
        term_months=2,
        security_cents=150000,
        key_fee_cents=10000,
        require_first_before_move_in=True,
    )
    values.update(overrides)
    return RawLeaseTerms(**values)


def test_build_plan_derives_maxima_and_totals(sample_terms):
    """First month + key fee form the upfront max; security is the deposit max"""
    plan = build_payment_plan(sample_terms)

    assert plan.upfront_max_cents == 210000
    assert plan.deposit_max_cents == 150000
    assert plan.upfront_totals.first_cents == 200000
    assert plan.upfront_totals.last_cents == 0
    assert plan.upfront_totals.other_upfront_cents == 210000
    assert plan.upfront_totals.total_upfront_cents == 360000
    assert plan.start_date == date(2026, 2, 1)
    assert plan.end_date == date(2026, 3, 31)


def test_thresholds_are_clamped_not_rejected(sample_terms):
    """999999 thresholds are silently capped at their maxima"""
    plan = build_payment_plan(sample_terms)

    assert plan.countersign_upfront_threshold_cents == 210000
    assert plan.countersign_deposit_threshold_cents == 150000


def test_thresholds_below_max_are_kept():
    plan = build_payment_plan(_terms(countersign_upfront_threshold_cents=5000, countersign_deposit_threshold_cents=0))

    assert plan.countersign_upfront_threshold_cents == 5000
    assert plan.countersign_deposit_threshold_cents == 0
    assert plan.min_rules() == [MinRule(Bucket.UPFRONT, 5000)]


def test_priority_is_ordered_subset_with_last_before_first():
    plan = build_payment_plan(_terms(require_last_before_move_in=True))
    assert plan.priority == ("last_month", "first_month", "key_fee", "security_deposit")

    plan = build_payment_plan(_terms(require_first_before_move_in=False, key_fee_cents=0))
    assert plan.priority == ("security_deposit",)


def test_negative_fees_are_floored_to_zero():
    plan = build_payment_plan(_terms(key_fee_cents=-500, security_cents=-1))

    assert plan.key_fee_cents == 0
    assert plan.security_cents == 0
    assert plan.priority == ("first_month",)


def test_absent_term_has_no_end_date():
    plan = build_payment_plan(_terms(term_months=None))

    assert plan.term_months is None
    assert plan.end_date is None


@pytest.mark.parametrize(
    "overrides, code",
    [
        ({"monthly_rent_cents": 0}, "bad_monthly"),
        ({"monthly_rent_cents": -100}, "bad_monthly"),
        ({"monthly_rent_cents": "200000"}, "bad_monthly"),
        ({"start_date": "02/01/2026"}, "bad_start_date"),
        ({"start_date": "2026-02-30"}, "bad_start_date"),
        ({"start_date": None}, "bad_start_date"),
        ({"term_months": 0}, "bad_term_months"),
        ({"term_months": 1.5}, "bad_term_months"),
        ({"term_months": True}, "bad_term_months"),
        ({"security_cents": 200001}, "security_gt_monthly"),
    ],
)
def test_invalid_terms_are_rejected_with_code(overrides, code):
    with pytest.raises(InvalidLeaseTerms) as exc_info:
        build_payment_plan(_terms(**overrides))
    assert exc_info.value.code == code


def test_security_equal_to_rent_is_allowed():
    plan = build_payment_plan(_terms(security_cents=200000))
    assert plan.security_cents == 200000


def test_plan_document_restores_same_plan(sample_terms):
    plan = build_payment_plan(sample_terms)
    doc = plan.to_document()

    assert doc["upfrontMaxCents"] == 210000
    assert doc["startDate"] == "2026-02-01"
    assert PaymentPlan.from_document(doc) == plan


def test_terms_snapshot(sample_terms):
    plan = build_payment_plan(sample_terms)

    terms = terms_from_plan(plan, "  12 Elm St, Apt 3 ")
    assert terms.address == "12 Elm St, Apt 3"
    assert terms.deposit_cents == 150000
    assert terms_are_valid(terms)

    assert not terms_are_valid(terms_from_plan(plan, "   "))
    assert not terms_are_valid(None)
