"""Core calculation engine for the loan amortizer.

This module implements the financial logic required to build amortization
schedules for annuity (equal installment) loans whose trajectory can be
perturbed by extra principal payments and by changes of the interest rate.
Every function is pure: the same inputs always give the same output and
nothing is read from or written to the outside world.

The pieces, leaves first:

* ``compute_fixed_payment`` - closed-form annuity payment.
* ``amount_for_month`` - extra principal due in a given month.
* ``project_payoff_month`` - forward simulation used to keep the remaining term
  consistent after a perturbation.
* ``generate_schedule`` - month-by-month state machine producing the schedule.
* ``compare_savings`` - schedule with and without extra payments.

Invalid input never raises here; it yields a zero payment or an empty schedule.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal, DivisionByZero, InvalidOperation, Overflow, getcontext
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .data_models import (
    EarlyPayment,
    EarlyPaymentKind,
    LoanSnapshot,
    LoanTerms,
    PaymentCalculation,
    PaymentRecord,
    PayoffProjection,
    RateAdjustment,
    SavingsResult,
    ScheduleEvent,
    ScheduleEventKind,
    ScheduleState,
)
from .utils import add_months, monthly_rate, parse_date, to_decimal, to_int

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
# Balances below half a cent are treated as paid off.
HALF_CENT = Decimal("0.005")
# Projection cap: 100 years of monthly payments.
MAX_PROJECTION_MONTH = 1200

Observer = Callable[[ScheduleEvent], None]


# ---------------------------------------------------------------------------
# Fixed payment
# ---------------------------------------------------------------------------


def _annuity_payment(principal: Decimal, rate_per_month: Decimal, term: int) -> Decimal:
    """Return the annuity (equal installment) monthly payment for a loan.

    The formula is:

        payment = P * (i * (1 + i)^n) / ((1 + i)^n - 1)

    where ``P`` is the principal, ``i`` is the monthly interest rate and
    ``n`` is the number of payments. When the interest rate is zero, the
    payment simplifies to ``P / n``.
    """
    if rate_per_month == 0:
        return principal / Decimal(term)
    factor = (1 + rate_per_month) ** term
    if factor == 1:
        # rate too small to register at this precision
        return principal / Decimal(term)
    return principal * (rate_per_month * factor) / (factor - 1)


def _validated_terms(
    principal: object, annual_rate_percent: object, term_months: object
) -> Optional[Tuple[Decimal, Decimal, int]]:
    principal_value = to_decimal(principal)
    rate_value = to_decimal(annual_rate_percent)
    term_value = to_int(term_months)
    if principal_value is None or rate_value is None or term_value is None:
        return None
    if principal_value <= 0 or rate_value < 0 or term_value <= 0:
        return None
    return principal_value, rate_value, term_value


def compute_fixed_payment(
    principal: object, annual_rate_percent: object, term_months: object
) -> PaymentCalculation:
    """Return the fixed monthly payment and the total paid over the term.

    Invalid input (non-positive principal or term, negative rate, values that
    are not finite numbers) gives ``(0, 0)``, and so do inputs so large that the
    payment cannot be represented.
    """
    terms = _validated_terms(principal, annual_rate_percent, term_months)
    if terms is None:
        return PaymentCalculation(ZERO, ZERO)
    principal_value, rate_value, term_value = terms
    try:
        payment = _annuity_payment(principal_value, monthly_rate(rate_value), term_value)
        return PaymentCalculation(payment, payment * term_value)
    except (DivisionByZero, InvalidOperation, Overflow):
        logger.debug(
            "Payment out of range for %s at %s%% over %s months", principal_value, rate_value, term_value
        )
        return PaymentCalculation(ZERO, ZERO)


# ---------------------------------------------------------------------------
# Early payments
# ---------------------------------------------------------------------------


def _early_payment_amount(month: int, payment: EarlyPayment) -> Decimal:
    amount = to_decimal(payment.amount)
    start_month = to_int(payment.start_month)
    if amount is None or amount <= 0 or start_month is None or start_month < 1:
        return ZERO
    kind = payment.kind.value if isinstance(payment.kind, EarlyPaymentKind) else str(payment.kind)
    if kind == EarlyPaymentKind.ONE_TIME.value:
        return amount if start_month == month else ZERO
    if kind == EarlyPaymentKind.RECURRING.value:
        frequency = to_int(payment.frequency_months)
        if frequency is None or frequency < 1:
            return ZERO
        if month >= start_month and (month - start_month) % frequency == 0:
            return amount
    return ZERO


def amount_for_month(month: int, early_payments: Iterable[EarlyPayment]) -> Decimal:
    """Total extra principal scheduled for ``month`` (1-indexed).

    One-time payments match their own month; recurring payments match their
    start month and every ``frequency_months`` months after it, with no end.
    Entries with malformed fields contribute nothing.
    """
    total = ZERO
    for payment in early_payments:
        total += _early_payment_amount(month, payment)
    return total


# ---------------------------------------------------------------------------
# Payoff projection
# ---------------------------------------------------------------------------


def project_payoff_month(
    start_month: int,
    start_balance: Decimal,
    fixed_payment: Decimal,
    annual_rate_percent: Decimal,
    early_payments: Sequence[EarlyPayment] = (),
    include_start_month: bool = True,
) -> PayoffProjection:
    """Simulate forward and return the month in which the balance is paid off.

    Each simulated month pays ``fixed_payment`` plus the extra payments that
    match the month, at a constant ``annual_rate_percent``. With
    ``include_start_month=False`` the extras of ``start_month`` itself are left
    out because the caller has already applied them.

    If the balance is still positive after month ``MAX_PROJECTION_MONTH`` the
    payment never catches up with the interest and the projection returns
    ``PayoffProjection(None)``.
    """
    balance = start_balance
    if balance <= 0:
        return PayoffProjection(start_month - 1)
    rate_per_month = monthly_rate(annual_rate_percent)
    month = start_month
    while month <= MAX_PROJECTION_MONTH:
        payment = fixed_payment
        if include_start_month or month != start_month:
            payment += amount_for_month(month, early_payments)
        interest = balance * rate_per_month
        principal = min(payment - interest, balance)
        balance -= principal
        if balance < HALF_CENT:
            return PayoffProjection(month)
        month += 1
    return PayoffProjection(None)


# ---------------------------------------------------------------------------
# Schedule generation
# ---------------------------------------------------------------------------


def _index_rate_adjustments(adjustments: Iterable[RateAdjustment]) -> Dict[int, Decimal]:
    """Map effective month to new rate.

    Adjustments are sorted by month (stable, so input order breaks ties) and a
    later adjustment for the same month replaces an earlier one. Adjustments
    with an unusable month or rate are dropped.
    """
    valid: List[Tuple[int, Decimal]] = []
    for adjustment in adjustments:
        month = to_int(adjustment.effective_month)
        rate = to_decimal(adjustment.new_annual_rate_percent)
        if month is None or month < 1 or rate is None or rate < 0:
            logger.warning("Ignoring invalid rate adjustment %r", adjustment)
            continue
        valid.append((month, rate))
    mapping: Dict[int, Decimal] = {}
    for month, rate in sorted(valid, key=lambda item: item[0]):
        if month in mapping:
            logger.warning(
                "Two rate adjustments in month %d; using %s%% instead of %s%%",
                month,
                rate,
                mapping[month],
            )
        mapping[month] = rate
    return mapping


def _notify(
    observer: Optional[Observer],
    kind: ScheduleEventKind,
    state: ScheduleState,
    amount: Decimal,
) -> None:
    if observer is not None:
        observer(ScheduleEvent(kind=kind, month=state.month, state=state, amount=amount))


def _apply_early_payment(
    state: ScheduleState,
    early_payments: Sequence[EarlyPayment],
    observer: Optional[Observer],
) -> Tuple[ScheduleState, Decimal]:
    """Step 1: take this month's extra principal off the balance first.

    The remaining term is then re-projected with the unchanged payment and rate
    so a later rate change is amortized over the shortened life of the loan.
    """
    extra = amount_for_month(state.month, early_payments)
    if extra <= 0:
        return state, ZERO
    applied = min(extra, state.balance)
    state = replace(state, balance=state.balance - applied)
    logger.debug("Month %d: extra payment %s, balance %s", state.month, applied, state.balance)
    if state.balance > 0:
        projection = project_payoff_month(
            state.month,
            state.balance,
            state.payment,
            state.rate,
            early_payments,
            include_start_month=False,
        )
        if projection.converged:
            state = replace(
                state, remaining_months=max(1, projection.payoff_month - state.month + 1)
            )
        else:
            logger.warning(
                "Month %d: payoff projection did not converge; keeping %d remaining months",
                state.month,
                state.remaining_months,
            )
            _notify(observer, ScheduleEventKind.PROJECTION_NOT_CONVERGED, state, applied)
    _notify(observer, ScheduleEventKind.EARLY_PAYMENT, state, applied)
    return state, applied


def _apply_rate_adjustment(
    state: ScheduleState,
    rate_by_month: Dict[int, Decimal],
    observer: Optional[Observer],
) -> ScheduleState:
    """Step 2: switch rate and re-amortize balance over the remaining months."""
    new_rate = rate_by_month.get(state.month)
    if new_rate is None:
        return state
    payment = compute_fixed_payment(state.balance, new_rate, state.remaining_months).monthly_payment
    if payment <= 0 and state.balance > 0:
        logger.warning("Month %d: ignoring rate change to %s%%, payment out of range", state.month, new_rate)
        return state
    logger.debug(
        "Month %d: rate %s%% -> %s%%, payment %s -> %s over %d months",
        state.month,
        state.rate,
        new_rate,
        state.payment,
        payment,
        state.remaining_months,
    )
    state = replace(state, rate=new_rate, payment=payment)
    _notify(observer, ScheduleEventKind.RATE_ADJUSTMENT, state, new_rate)
    return state


def advance_month(
    state: ScheduleState,
    start_date: date,
    early_payments: Sequence[EarlyPayment],
    rate_by_month: Dict[int, Decimal],
    observer: Optional[Observer] = None,
) -> Tuple[ScheduleState, PaymentRecord]:
    """Run one month of the schedule and return the next state and its record.

    The order is fixed: extra payment, rate adjustment, interest, regular
    payment. When both perturbations hit the same month the new rate is
    amortized against the balance already reduced by the extra payment.
    """
    state, extra = _apply_early_payment(state, early_payments, observer)
    state = _apply_rate_adjustment(state, rate_by_month, observer)

    interest = state.balance * monthly_rate(state.rate)
    principal = min(state.payment - interest, state.balance)
    balance = state.balance - principal
    if balance < HALF_CENT:
        principal = state.balance
        balance = ZERO

    record = PaymentRecord(
        index=state.month,
        date=add_months(start_date, state.month - 1),
        total_payment=principal + extra + interest,
        principal=principal + extra,
        interest=interest,
        ending_balance=balance,
        extra_payment=extra,
        annual_rate_percent=state.rate,
    )
    next_state = replace(
        state,
        month=state.month + 1,
        balance=balance,
        remaining_months=max(1, state.remaining_months - 1),
    )
    return next_state, record


def generate_schedule(
    terms: LoanTerms,
    start_date: object,
    early_payments: Sequence[EarlyPayment] = (),
    rate_adjustments: Iterable[RateAdjustment] = (),
    observer: Optional[Observer] = None,
) -> List[PaymentRecord]:
    """Compute the amortization schedule for a loan.

    Parameters
    ----------
    terms: LoanTerms
        Principal, annual rate in percent and term in months.
    start_date:
        Date of the first payment (``date`` or ``YYYY-MM-DD``/``YYYY-MM``).
    early_payments:
        One-time and recurring extra principal payments.
    rate_adjustments:
        Rate changes by schedule month.
    observer:
        Optional callable receiving a ``ScheduleEvent`` whenever an extra
        payment or a rate change alters the trajectory.

    Returns
    -------
    List[PaymentRecord]
        One record per month until the balance reaches zero or the term ends.
        Empty when the terms or the start date are invalid.
    """
    validated = _validated_terms(terms.principal, terms.annual_rate_percent, terms.term_months)
    if validated is None:
        logger.debug("Invalid loan terms %r; returning empty schedule", terms)
        return []
    try:
        anchor = parse_date(start_date)
    except ValueError:
        logger.debug("Invalid start date %r; returning empty schedule", start_date)
        return []
    principal, rate, term = validated
    payment = compute_fixed_payment(principal, rate, term).monthly_payment
    if payment <= 0:
        logger.debug("No representable payment for %r; returning empty schedule", terms)
        return []

    early_payments = tuple(early_payments)
    rate_by_month = _index_rate_adjustments(rate_adjustments)
    state = ScheduleState(
        month=1,
        balance=principal,
        rate=rate,
        payment=payment,
        remaining_months=term,
    )

    schedule: List[PaymentRecord] = []
    while state.balance > 0 and state.month <= term:
        state, record = advance_month(state, anchor, early_payments, rate_by_month, observer)
        schedule.append(record)
    if state.balance > 0:
        logger.info("Term ended with %s still outstanding", state.balance)
    return schedule


# ---------------------------------------------------------------------------
# Savings and summaries
# ---------------------------------------------------------------------------


def compare_savings(
    terms: LoanTerms,
    start_date: object,
    early_payments: Sequence[EarlyPayment] = (),
    rate_adjustments: Sequence[RateAdjustment] = (),
) -> SavingsResult:
    """Compare the schedule with extra payments to the same loan without them.

    Both schedules follow the same rate adjustments, so the difference is due to
    the extra payments alone.
    """
    rate_adjustments = tuple(rate_adjustments)
    actual = generate_schedule(terms, start_date, early_payments, rate_adjustments)
    baseline = generate_schedule(terms, start_date, (), rate_adjustments)

    actual_interest = sum((r.interest for r in actual), ZERO)
    baseline_interest = sum((r.interest for r in baseline), ZERO)
    return SavingsResult(
        interest_saved=baseline_interest - actual_interest,
        months_saved=len(baseline) - len(actual),
        actual_total_interest=actual_interest,
        actual_total_payment=sum((r.total_payment for r in actual), ZERO),
        baseline_total_interest=baseline_interest,
        baseline_months=len(baseline),
        actual_months=len(actual),
    )


def remaining_balance(schedule: Sequence[PaymentRecord], payments_made: int, principal: Decimal) -> Decimal:
    """Balance left after ``payments_made`` payments of ``schedule``."""
    if payments_made <= 0 or not schedule:
        return principal
    return schedule[min(payments_made, len(schedule)) - 1].ending_balance


def next_payment(schedule: Sequence[PaymentRecord], as_of: date) -> Optional[PaymentRecord]:
    """First payment dated strictly after ``as_of``, or ``None`` once paid off."""
    for record in schedule:
        if record.date > as_of:
            return record
    return None


def loan_snapshot(schedule: Sequence[PaymentRecord], principal: Decimal, as_of: date) -> LoanSnapshot:
    """Summarize where the loan stands on ``as_of``."""
    paid = sum(1 for record in schedule if record.date <= as_of)
    upcoming = next_payment(schedule, as_of)
    return LoanSnapshot(
        as_of=as_of,
        current_balance=remaining_balance(schedule, paid, principal),
        current_payment=upcoming.total_payment if upcoming else ZERO,
        next_payment=upcoming,
        payoff_date=schedule[-1].date if schedule else None,
    )


def build_summary(terms: LoanTerms, schedule: Sequence[PaymentRecord], start_date: object) -> Dict[str, object]:
    """Aggregate metrics of a schedule.

    Returns a dict with total interest, total extra principal, total paid,
    number of payments, the highest monthly outflow, the original and the
    actual end dates (``YYYY-MM``) and the balance left after the last record.
    """
    principal = to_decimal(terms.principal) or ZERO
    calculation = compute_fixed_payment(terms.principal, terms.annual_rate_percent, terms.term_months)
    term = to_int(terms.term_months) or 0
    try:
        anchor: Optional[date] = parse_date(start_date)
    except ValueError:
        anchor = None

    summary: Dict[str, object] = {
        "principal": float(principal),
        "monthly_payment": float(calculation.monthly_payment),
        "total_interest": float(sum((r.interest for r in schedule), ZERO)),
        "total_extra": float(sum((r.extra_payment for r in schedule), ZERO)),
        "total_payment": float(sum((r.total_payment for r in schedule), ZERO)),
        "payments_made": len(schedule),
        "highest_payment": float(max((r.total_payment for r in schedule), default=ZERO)),
        "term_months": term,
        "original_end_date": add_months(anchor, term - 1).strftime("%Y-%m") if anchor and term > 0 else None,
        "payoff_date": schedule[-1].date.strftime("%Y-%m") if schedule else None,
        "ending_balance": float(schedule[-1].ending_balance) if schedule else float(principal),
    }
    return summary
