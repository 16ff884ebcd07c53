"""Data models for the loan amortizer.

This module defines the dataclasses passed into and out of the engine: the loan
terms, extra (early) payments, rate adjustments, the per-month payment records
and the aggregate results. Inputs are frozen dataclasses so a schedule request
can be reused and compared; the numeric fields of the inputs may hold raw user
values (strings included) because the engine validates them itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Optional, Union

# Anything a presentation layer might hand us for a number.
RawNumber = Union[Decimal, int, float, str, None]


class EarlyPaymentKind(str, Enum):
    ONE_TIME = "one-time"
    RECURRING = "recurring"


@dataclass(frozen=True)
class LoanTerms:
    """The three static inputs of a loan.

    Attributes
    ----------
    principal:
        The financed amount. Must be positive.
    annual_rate_percent:
        Nominal annual interest rate in percent (``8`` means 8 %). Zero is allowed.
    term_months:
        Number of monthly payments in the original schedule.
    """

    principal: RawNumber
    annual_rate_percent: RawNumber
    term_months: RawNumber


@dataclass(frozen=True)
class EarlyPayment:
    """An extra principal payment on top of the regular installment.

    Attributes
    ----------
    kind:
        ``"one-time"`` applies once in ``start_month``. ``"recurring"`` applies in
        ``start_month`` and then every ``frequency_months`` months until payoff.
    amount:
        Extra principal paid in each matching month.
    start_month:
        1-indexed schedule month of the (first) payment.
    frequency_months:
        Cadence of a recurring payment; ignored for one-time payments.
    name:
        Optional label, e.g. ``"Annual bonus"``.
    """

    kind: Union[EarlyPaymentKind, str]
    amount: RawNumber
    start_month: RawNumber
    frequency_months: RawNumber = 1
    name: Optional[str] = None


@dataclass(frozen=True)
class RateAdjustment:
    """A new annual rate in force from ``effective_month`` onward."""

    effective_month: RawNumber
    new_annual_rate_percent: RawNumber


@dataclass(frozen=True)
class PaymentRecord:
    """One month of an amortization schedule.

    ``principal`` includes any extra payment applied in the month; the extra part
    alone is repeated in ``extra_payment``. ``total_payment`` is always
    ``principal + interest``.
    """

    index: int
    date: date
    total_payment: Decimal
    principal: Decimal
    interest: Decimal
    ending_balance: Decimal
    extra_payment: Decimal
    annual_rate_percent: Decimal


class PaymentCalculation(NamedTuple):
    monthly_payment: Decimal
    total_payment: Decimal


@dataclass(frozen=True)
class PayoffProjection:
    """Result of a forward payoff simulation.

    ``payoff_month`` is the last month with a payment, or ``None`` when the
    balance would not reach zero within the projection cap (negative
    amortization).
    """

    payoff_month: Optional[int]

    @property
    def converged(self) -> bool:
        return self.payoff_month is not None


@dataclass(frozen=True)
class ScheduleState:
    """Loop-carried state of the schedule generator at the start of ``month``."""

    month: int
    balance: Decimal
    rate: Decimal
    payment: Decimal
    remaining_months: int


class ScheduleEventKind(str, Enum):
    EARLY_PAYMENT = "early_payment"
    RATE_ADJUSTMENT = "rate_adjustment"
    PROJECTION_NOT_CONVERGED = "projection_not_converged"


@dataclass(frozen=True)
class ScheduleEvent:
    """Notification sent to a schedule observer when the trajectory changes.

    ``amount`` is the extra principal applied for early payments and the new
    annual rate for rate adjustments.
    """

    kind: ScheduleEventKind
    month: int
    state: ScheduleState
    amount: Decimal


@dataclass(frozen=True)
class SavingsResult:
    interest_saved: Decimal
    months_saved: int
    actual_total_interest: Decimal
    actual_total_payment: Decimal
    baseline_total_interest: Decimal
    baseline_months: int
    actual_months: int


@dataclass(frozen=True)
class LoanSnapshot:
    """Where a loan stands on a given day, as stored alongside the loan record."""

    as_of: date
    current_balance: Decimal
    current_payment: Decimal
    next_payment: Optional[PaymentRecord]
    payoff_date: Optional[date]
