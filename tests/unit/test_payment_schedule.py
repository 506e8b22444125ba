"""Unit tests for installment splitting, schedules and payment summaries."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from lms.core.exceptions import InvalidInputError, ValidationError
from lms.admin.models.payments import PaymentStatus
from lms.admin.services.payment_ledger import (
    FULL_PAYMENT_DESCRIPTION,
    build_schedule,
    split_installments,
    summarize_payments,
)

START = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


def _payment(amount, status):
    return SimpleNamespace(amount=Decimal(amount), status=status)


class TestSplitInstallments:
    def test_remainder_goes_to_last_installment(self):
        """100.00 in 3 -> 33.33, 33.33, 33.34."""
        assert split_installments(Decimal("100.00"), 3, "GBP") == [
            Decimal("33.33"),
            Decimal("33.33"),
            Decimal("33.34"),
        ]

    def test_rounded_share_above_exact_share(self):
        amounts = split_installments(Decimal("100.00"), 6, "GBP")

        assert amounts[:5] == [Decimal("16.67")] * 5
        assert amounts[5] == Decimal("16.65")

    @pytest.mark.parametrize("count", [2, 3, 4, 6])
    @pytest.mark.parametrize(
        "total", ["0.50", "1.00", "99.99", "100.00", "1062.00", "7777.77", "123456.79"]
    )
    def test_sum_is_exact(self, total, count):
        amounts = split_installments(Decimal(total), count, "GBP")

        assert len(amounts) == count
        assert sum(amounts) == Decimal(total)
        assert all(a == a.quantize(Decimal("0.01")) for a in amounts)

    def test_zero_decimal_currency(self):
        assert split_installments(Decimal("1000"), 3, "JPY") == [
            Decimal("333"),
            Decimal("333"),
            Decimal("334"),
        ]

    @pytest.mark.parametrize("count", [0, 1, 13])
    def test_count_out_of_range(self, count):
        with pytest.raises(InvalidInputError):
            split_installments(Decimal("100"), count, "GBP")

    def test_price_too_small_to_split(self):
        with pytest.raises(ValidationError):
            split_installments(Decimal("0.02"), 3, "GBP")

    def test_rounded_up_shares_leave_nothing_for_last(self):
        """0.15 / 6 rounds to 0.03, so five shares already cover the total."""
        with pytest.raises(ValidationError) as exc_info:
            split_installments(Decimal("0.15"), 6, "GBP")

        assert exc_info.value.details["count"] == 6
        assert exc_info.value.details["final_price"] == "0.15"


class TestBuildSchedule:
    def test_full_payment_due_now(self):
        schedule = build_schedule(Decimal("1062.00"), "GBP", start=START)

        assert len(schedule) == 1
        assert schedule[0].amount == Decimal("1062.00")
        assert schedule[0].due_date == START
        assert schedule[0].installment_number == 1
        assert schedule[0].description == FULL_PAYMENT_DESCRIPTION

    def test_installments_every_thirty_days(self):
        schedule = build_schedule(Decimal("100.00"), "GBP", installments=3, start=START)

        assert [entry.due_date for entry in schedule] == [
            START,
            START + timedelta(days=30),
            START + timedelta(days=60),
        ]
        assert [entry.description for entry in schedule] == [
            "Installment 1 of 3",
            "Installment 2 of 3",
            "Installment 3 of 3",
        ]
        assert sum(entry.amount for entry in schedule) == Decimal("100.00")

    def test_custom_interval(self):
        schedule = build_schedule(Decimal("90"), "GBP", installments=2, start=START, interval_days=7)

        assert schedule[1].due_date == START + timedelta(days=7)

    def test_final_price_rounded_before_split(self):
        schedule = build_schedule(Decimal("100.005"), "GBP", installments=2, start=START)

        assert sum(entry.amount for entry in schedule) == Decimal("100.01")

    @pytest.mark.parametrize("installments", [None, 4])
    def test_free_enrollment_has_no_payments(self, installments):
        assert build_schedule(Decimal("0"), "GBP", installments=installments) == []

    def test_invalid_count_rejected_even_when_free(self):
        with pytest.raises(InvalidInputError):
            build_schedule(Decimal("0"), "GBP", installments=20)


class TestSummarizePayments:
    def test_nothing_paid(self):
        summary = summarize_payments(
            Decimal("100.00"),
            [_payment("50.00", PaymentStatus.PENDING), _payment("50.00", PaymentStatus.PENDING)],
            "GBP",
        )

        assert summary.paid_amount == 0
        assert summary.pending_amount == Decimal("100.00")
        assert summary.payment_percentage == 0
        assert summary.payment_status == "PENDING"

    def test_partially_paid(self):
        summary = summarize_payments(
            Decimal("100.00"),
            [
                _payment("33.33", PaymentStatus.PAID),
                _payment("33.33", PaymentStatus.PENDING),
                _payment("33.34", PaymentStatus.PENDING),
            ],
            "GBP",
        )

        assert summary.paid_amount == Decimal("33.33")
        assert summary.pending_amount == Decimal("66.67")
        assert summary.payment_percentage == Decimal("33.33")
        assert summary.payment_status == "PARTIAL"

    def test_part_payment_against_full_price(self):
        """500 paid of 1062: 562 outstanding, about 47% paid."""
        summary = summarize_payments(
            Decimal("1062.00"),
            [_payment("500.00", PaymentStatus.PAID), _payment("562.00", PaymentStatus.PENDING)],
            "GBP",
        )

        assert summary.paid_amount == Decimal("500.00")
        assert summary.pending_amount == Decimal("562.00")
        assert summary.payment_percentage == Decimal("47.08")
        assert summary.payment_status == "PARTIAL"

    def test_only_paid_payments_count(self):
        summary = summarize_payments(
            Decimal("100.00"),
            [
                _payment("40.00", PaymentStatus.PAID),
                _payment("30.00", PaymentStatus.FAILED),
                _payment("30.00", PaymentStatus.REFUNDED),
            ],
            "GBP",
        )

        assert summary.paid_amount == Decimal("40.00")
        assert summary.pending_amount == Decimal("60.00")

    def test_fully_paid(self):
        summary = summarize_payments(
            Decimal("1062.00"), [_payment("1062.00", PaymentStatus.PAID)], "GBP"
        )

        assert summary.payment_percentage == Decimal("100.00")
        assert summary.pending_amount == 0
        assert summary.payment_status == "PAID"

    def test_percentage_clamped_when_overpaid(self):
        summary = summarize_payments(
            Decimal("100.00"),
            [_payment("100.00", PaymentStatus.PAID), _payment("20.00", PaymentStatus.PAID)],
            "GBP",
        )

        assert summary.payment_percentage == Decimal("100.00")
        assert summary.pending_amount == Decimal("-20.00")

    def test_zero_total(self):
        summary = summarize_payments(Decimal("0"), [], "GBP")

        assert summary.payment_percentage == 0
        assert summary.pending_amount == 0
        assert summary.payment_status == "PAID"
