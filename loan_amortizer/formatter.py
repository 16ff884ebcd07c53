"""Output helpers for the loan amortizer.

This module provides simple functions to render amortization schedules,
summaries and savings in a tabular text format using built-in printing and
string formatting.
"""

from __future__ import annotations

from typing import Dict, Iterable

from .data_models import PaymentRecord, SavingsResult


def print_summary(summary: Dict[str, object]) -> None:
    """Print a summary of loan metrics in a human-readable format."""
    print("Summary")
    print("-" * 72)
    print(f"Principal          : {summary['principal']:.2f}")
    print(f"Monthly payment    : {summary['monthly_payment']:.2f}")
    print(f"Total interest     : {summary['total_interest']:.2f}")
    if summary.get('total_extra', 0):
        print(f"Total extra paid   : {summary['total_extra']:.2f}")
    print(f"Total paid         : {summary['total_payment']:.2f}")
    print(f"Original end date  : {summary['original_end_date']}")
    print(f"Payoff date        : {summary['payoff_date']}")
    print(f"Payments made      : {summary['payments_made']}")
    if summary.get('highest_payment'):
        print(f"Highest payment    : {summary['highest_payment']:.2f}")
    # A positive balance here means the term ran out before the loan was repaid.
    if summary.get('ending_balance', 0) > 0.005:
        print(f"Unpaid balance     : {summary['ending_balance']:.2f}")
    print("-" * 72)


def print_savings(savings: SavingsResult) -> None:
    """Print what the extra payments save compared to the plain schedule."""
    print("Savings")
    print("-" * 72)
    print(f"Baseline interest  : {savings.baseline_total_interest:.2f}")
    print(f"Actual interest    : {savings.actual_total_interest:.2f}")
    print(f"Interest saved     : {savings.interest_saved:.2f}")
    print(f"Actual total paid  : {savings.actual_total_payment:.2f}")
    print(f"Payments           : {savings.actual_months} (baseline {savings.baseline_months})")
    if savings.months_saved:
        print(f"Term reduction     : {savings.months_saved} months")
    print("-" * 72)


def print_schedule(schedule: Iterable[PaymentRecord], show_rate: bool = False) -> None:
    """Print the amortization schedule as a simple table.

    Parameters
    ----------
    schedule: Iterable[PaymentRecord]
        The records to print.
    show_rate: bool
        Whether to include the annual rate in force each month. Hidden by
        default because it only changes when rate adjustments are supplied.
    """
    headers = [
        "Period",
        "Date",
        "Payment",
        "Principal",
        "Interest",
        "Extra",
        "EndBal",
    ]
    if show_rate:
        headers.append("Rate")
    print("\t".join(headers))
    for record in schedule:
        row = [
            str(record.index),
            record.date.isoformat(),
            f"{record.total_payment:.2f}",
            f"{record.principal:.2f}",
            f"{record.interest:.2f}",
            f"{record.extra_payment:.2f}",
            f"{record.ending_balance:.2f}",
        ]
        if show_rate:
            row.append(f"{record.annual_rate_percent:.3f}%")
        print("\t".join(row))
