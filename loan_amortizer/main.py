"""Command-line interface for the loan amortizer.

This module uses the ``click`` library to implement a multi-command interface.
Users can compute the fixed payment, full amortization schedules with extra
payments and rate changes, summaries and savings, and keep loans in a local
database. Schedules can be printed to the terminal or exported to JSON/CSV.
"""

from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

import click

from .config import Settings, load_settings
from .data_models import EarlyPayment, EarlyPaymentKind, LoanTerms, PaymentRecord, RateAdjustment
from .engine import build_summary, compare_savings, compute_fixed_payment, generate_schedule, loan_snapshot
from .formatter import print_savings, print_schedule, print_summary
from .store import LoanStore, StoredLoan, create_store_from_env
from .utils import convert_term_to_months, decimal_from_str, months_between, parse_date


@dataclass(frozen=True)
class LoanRequest:
    terms: LoanTerms
    start_date: date
    early_payments: Tuple[EarlyPayment, ...]
    rate_adjustments: Tuple[RateAdjustment, ...]


def parse_amount(value: str) -> float:
    """Parse a numeric string with optional suffixes.

    Accepts plain floats ("500000") and shorthand with ``k``/``m`` suffixes
    (e.g., "500k" meaning 500_000). Returns a float.
    """
    value = value.strip().lower()
    value = value.replace(",", "")
    factor = 1.0
    if value.endswith("k"):
        factor = 1_000.0
        value = value[:-1]
    elif value.endswith("m"):
        factor = 1_000_000.0
        value = value[:-1]
    try:
        return float(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def parse_money(value: str) -> Decimal:
    """Parse an amount option into a finite ``Decimal``."""
    try:
        return decimal_from_str(str(parse_amount(value)))
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def parse_month(token: str, start_date: date) -> int:
    """Turn ``"7"`` or ``"YYYY-MM"`` into a 1-indexed schedule month.

    A year-month is the schedule month whose payment falls in that calendar
    month, so the start month itself is month 1.
    """
    token = token.strip()
    if "-" in token:
        try:
            when = parse_date(token)
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        month = months_between(start_date, when) + 1
    else:
        try:
            month = int(token)
        except ValueError:
            raise click.BadParameter(f"Invalid month: {token}")
    if month < 1:
        raise click.BadParameter(f"Month {token} is before the first payment")
    return month


def parse_extra_strings(values: Tuple[str, ...], start_date: date) -> List[EarlyPayment]:
    payments: List[EarlyPayment] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 2:
            raise click.BadParameter(f"Extra payment must be in MONTH:AMOUNT format; got {item}")
        month_str, amt_str = parts
        payments.append(
            EarlyPayment(
                kind=EarlyPaymentKind.ONE_TIME,
                amount=parse_money(amt_str),
                start_month=parse_month(month_str, start_date),
            )
        )
    return payments


def parse_recurring_strings(values: Tuple[str, ...], start_date: date) -> List[EarlyPayment]:
    payments: List[EarlyPayment] = []
    for item in values:
        parts = item.split(":")
        if len(parts) not in (2, 3):
            raise click.BadParameter(
                f"Recurring payment must be in MONTH:AMOUNT[:EVERY] format; got {item}"
            )
        frequency = 1
        if len(parts) == 3:
            try:
                frequency = int(parts[2])
            except ValueError:
                raise click.BadParameter(f"Invalid frequency: {parts[2]}")
            if frequency < 1:
                raise click.BadParameter("Recurring frequency must be at least 1 month")
        payments.append(
            EarlyPayment(
                kind=EarlyPaymentKind.RECURRING,
                amount=parse_money(parts[1]),
                start_month=parse_month(parts[0], start_date),
                frequency_months=frequency,
            )
        )
    return payments


def parse_rate_change_strings(values: Tuple[str, ...], start_date: date) -> List[RateAdjustment]:
    adjustments: List[RateAdjustment] = []
    seen: Dict[int, str] = {}
    for item in values:
        parts = item.rsplit(":", 1)
        if len(parts) != 2:
            raise click.BadParameter(f"Rate change must be in MONTH:RATE format; got {item}")
        month = parse_month(parts[0], start_date)
        if month in seen:
            raise click.BadParameter(
                f"Rate changes {seen[month]} and {item} both fall in month {month}"
            )
        seen[month] = item
        try:
            rate = decimal_from_str(parts[1].strip().rstrip("%"))
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        adjustments.append(RateAdjustment(effective_month=month, new_annual_rate_percent=rate))
    return adjustments


def build_request_from_options(
    principal: str,
    rate: float,
    term: int,
    term_unit: str,
    start_date: str,
    extra: Tuple[str, ...] = (),
    recurring: Tuple[str, ...] = (),
    rate_change: Tuple[str, ...] = (),
) -> LoanRequest:
    try:
        start_dt = parse_date(start_date)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    terms = LoanTerms(
        principal=parse_money(principal),
        annual_rate_percent=decimal_from_str(str(rate)),
        term_months=convert_term_to_months(term, term_unit),
    )
    early_payments = parse_extra_strings(extra, start_dt) + parse_recurring_strings(recurring, start_dt)
    return LoanRequest(
        terms=terms,
        start_date=start_dt,
        early_payments=tuple(early_payments),
        rate_adjustments=tuple(parse_rate_change_strings(rate_change, start_dt)),
    )


def record_to_dict(record: PaymentRecord) -> Dict[str, Any]:
    return {
        "index": record.index,
        "date": record.date.isoformat(),
        "payment": float(record.total_payment),
        "principal": float(record.principal),
        "interest": float(record.interest),
        "extra": float(record.extra_payment),
        "ending_balance": float(record.ending_balance),
        "rate": float(record.annual_rate_percent),
    }


def export_to_json(path: Path, schedule: List[PaymentRecord], summary: Dict[str, Any]) -> None:
    """Export schedule and summary to a JSON file."""
    data = {"summary": summary, "schedule": [record_to_dict(r) for r in schedule]}
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, schedule: List[PaymentRecord]) -> None:
    """Export schedule to a CSV file."""
    header = ["Index", "Date", "Payment", "Principal", "Interest", "Extra", "Ending_Balance", "Rate"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for record in schedule:
            writer.writerow(list(record_to_dict(record).values()))


def loan_options(func: Callable) -> Callable:
    """Attach the options shared by every command that describes a loan."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Loan amount (500000, 500k)"),
        click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)"),
        click.option("--term", "-t", "term", required=True, type=int, help="Loan term"),
        click.option(
            "--term-unit",
            "term_unit",
            type=click.Choice(["months", "years"]),
            default="months",
            help="Unit of --term",
        ),
        click.option("--start-date", "-s", "start_date", required=True, help="First payment date (YYYY-MM or YYYY-MM-DD)"),
        click.option("--extra", "extra", multiple=True, help="One-time extra payment in MONTH:AMOUNT format"),
        click.option(
            "--recurring",
            "recurring",
            multiple=True,
            help="Recurring extra payment in MONTH:AMOUNT[:EVERY] format. Example: --recurring 1:200:3",
        ),
        click.option("--rate-change", "rate_change", multiple=True, help="Rate change in MONTH:RATE format"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _request_from_kwargs(kwargs: Dict[str, Any]) -> LoanRequest:
    return build_request_from_options(
        kwargs.pop("principal"),
        kwargs.pop("rate"),
        kwargs.pop("term"),
        kwargs.pop("term_unit"),
        kwargs.pop("start_date"),
        kwargs.pop("extra"),
        kwargs.pop("recurring"),
        kwargs.pop("rate_change"),
    )


def _schedule_for(request: LoanRequest) -> List[PaymentRecord]:
    return generate_schedule(
        request.terms, request.start_date, request.early_payments, request.rate_adjustments
    )


def _print_schedule_rows(schedule: List[PaymentRecord], settings: Settings, show_rate: bool) -> None:
    # Limit schedule length printed to avoid flooding the terminal
    max_rows = settings.max_rows
    if len(schedule) > max_rows:
        click.echo(f"Schedule has {len(schedule)} rows; showing first {max_rows} rows.")
        print_schedule(schedule[:max_rows], show_rate=show_rate)
    else:
        print_schedule(schedule, show_rate=show_rate)


def _store(ctx: click.Context) -> LoanStore:
    settings: Settings = ctx.obj["settings"]
    if "store" not in ctx.obj:
        ctx.obj["store"] = create_store_from_env(ctx.obj.get("database_url") or settings.database_url)
    return ctx.obj["store"]


def _load(ctx: click.Context, loan_id: str) -> StoredLoan:
    loan = _store(ctx).get_loan(loan_id)
    if loan is None:
        raise click.ClickException(f"No loan with id {loan_id}")
    return loan


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log schedule recalculations")
@click.option("--database-url", "database_url", help="SQLAlchemy URL of the loan database")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, database_url: Optional[str]) -> None:
    """A command-line loan amortizer with extra payments and rate changes."""
    settings = load_settings()
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["database_url"] = database_url


@cli.command()
@click.option("--principal", "-p", "principal", required=True, help="Loan amount")
@click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)")
@click.option("--term", "-t", "term", required=True, type=int, help="Loan term")
@click.option("--term-unit", "term_unit", type=click.Choice(["months", "years"]), default="months")
def payment(principal: str, rate: float, term: int, term_unit: str) -> None:
    """Print the fixed monthly payment and the total paid over the term."""
    result = compute_fixed_payment(
        parse_money(principal),
        decimal_from_str(str(rate)),
        convert_term_to_months(term, term_unit),
    )
    click.echo(f"Monthly payment : {result.monthly_payment:.2f}")
    click.echo(f"Total payment   : {result.total_payment:.2f}")


@cli.command()
@loan_options
@click.option("--show-rate", is_flag=True, help="Add the annual rate column")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.pass_context
def schedule(ctx: click.Context, show_rate: bool, output: Optional[str], **kwargs: Any) -> None:
    """Compute and print the full amortization schedule."""
    request = _request_from_kwargs(kwargs)
    records = _schedule_for(request)
    if not records:
        raise click.ClickException("No schedule: check principal, rate, term and start date")
    summary_data = build_summary(request.terms, records, request.start_date)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, records, summary_data)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, records)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
    else:
        print_summary(summary_data)
        _print_schedule_rows(records, ctx.obj["settings"], show_rate)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(output: Optional[str], **kwargs: Any) -> None:
    """Compute and print only the summary metrics for a loan."""
    request = _request_from_kwargs(kwargs)
    records = _schedule_for(request)
    summary_data = build_summary(request.terms, records, request.start_date)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        with path.open("w", encoding="utf-8") as f:
            json.dump({"summary": summary_data}, f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(summary_data)


@cli.command()
@loan_options
def savings(**kwargs: Any) -> None:
    """Show interest and time saved by the extra payments."""
    request = _request_from_kwargs(kwargs)
    result = compare_savings(
        request.terms, request.start_date, request.early_payments, request.rate_adjustments
    )
    print_savings(result)


@cli.command()
@loan_options
@click.option("--name", "name", required=True, help="Display name of the loan")
@click.option("--id", "loan_id", help="Loan id (generated when omitted)")
@click.option("--as-of", "as_of", help="Snapshot date (YYYY-MM-DD), defaults to today")
@click.pass_context
def save(ctx: click.Context, name: str, loan_id: Optional[str], as_of: Optional[str], **kwargs: Any) -> None:
    """Store a loan together with its current snapshot."""
    request = _request_from_kwargs(kwargs)
    snapshot_date = _as_of(as_of)
    records = _schedule_for(request)
    loan_id = loan_id or uuid4().hex
    _store(ctx).save_loan(
        loan_id,
        name,
        request.terms,
        request.start_date,
        request.early_payments,
        request.rate_adjustments,
        loan_snapshot(records, request.terms.principal, snapshot_date),
    )
    click.echo(loan_id)


@cli.command()
@click.pass_context
def loans(ctx: click.Context) -> None:
    """List saved loans."""
    stored = _store(ctx).list_loans()
    if not stored:
        click.echo("No saved loans.")
        return
    for loan in stored:
        balance = f"{loan.current_balance:.2f}" if loan.current_balance is not None else "-"
        payoff = loan.payoff_date.strftime("%Y-%m") if loan.payoff_date else "-"
        click.echo(
            f"{loan.id}\t{loan.name}\t{loan.terms.principal:.2f}\t"
            f"{loan.terms.annual_rate_percent}%\t{loan.terms.term_months}m\t{balance}\t{payoff}"
        )


@cli.command()
@click.argument("loan_id")
@click.option("--as-of", "as_of", help="Snapshot date (YYYY-MM-DD), defaults to today")
@click.option("--show-rate", is_flag=True, help="Add the annual rate column")
@click.pass_context
def show(ctx: click.Context, loan_id: str, as_of: Optional[str], show_rate: bool) -> None:
    """Recompute a saved loan, refresh its snapshot and print it."""
    loan = _load(ctx, loan_id)
    records = generate_schedule(loan.terms, loan.start_date, loan.early_payments, loan.rate_adjustments)
    snapshot = loan_snapshot(records, loan.terms.principal, _as_of(as_of))
    _store(ctx).update_snapshot(loan_id, snapshot)
    click.echo(f"{loan.name} ({loan.id})")
    click.echo(f"Current balance    : {snapshot.current_balance:.2f}")
    if snapshot.next_payment is not None:
        click.echo(
            f"Next payment       : {snapshot.next_payment.total_payment:.2f} "
            f"on {snapshot.next_payment.date.isoformat()}"
        )
    print_summary(build_summary(loan.terms, records, loan.start_date))
    _print_schedule_rows(records, ctx.obj["settings"], show_rate)


@cli.command()
@click.argument("loan_id")
@click.pass_context
def delete(ctx: click.Context, loan_id: str) -> None:
    """Delete a saved loan."""
    if not _store(ctx).delete_loan(loan_id):
        raise click.ClickException(f"No loan with id {loan_id}")
    click.echo(f"Deleted {loan_id}")


def _as_of(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return parse_date(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


if __name__ == "__main__":
    cli()
