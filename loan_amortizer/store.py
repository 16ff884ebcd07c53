"""Persistence layer for saved loans.

The engine is a pure function of its inputs, so anything that has to survive
between runs lives here: the loan inputs keyed by an id, and the snapshot
computed from them (current balance, current payment, payoff date). It
defaults to SQLite for local use, but accepts any SQLAlchemy-compatible URL.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import Column, Date, DateTime, Integer, Numeric, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DEFAULT_DATABASE_URL
from .data_models import EarlyPayment, EarlyPaymentKind, LoanSnapshot, LoanTerms, RateAdjustment
from .utils import to_decimal

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoanModel(Base):
    __tablename__ = "loans"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    principal = Column(Numeric(18, 2, asdecimal=False), nullable=False)
    annual_rate_percent = Column(Numeric(9, 4, asdecimal=False), nullable=False)
    term_months = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    early_payments_json = Column(Text, nullable=False, default="[]")
    rate_adjustments_json = Column(Text, nullable=False, default="[]")
    current_balance = Column(Numeric(18, 2, asdecimal=False))
    current_payment = Column(Numeric(18, 2, asdecimal=False))
    payoff_date = Column(Date)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


@dataclass(frozen=True)
class StoredLoan:
    """A saved loan, ready to be fed back into the engine."""

    id: str
    name: str
    terms: LoanTerms
    start_date: date
    early_payments: List[EarlyPayment]
    rate_adjustments: List[RateAdjustment]
    current_balance: Optional[Decimal]
    current_payment: Optional[Decimal]
    payoff_date: Optional[date]


def _early_payment_to_dict(payment: EarlyPayment) -> Dict[str, Any]:
    kind = payment.kind.value if isinstance(payment.kind, EarlyPaymentKind) else str(payment.kind)
    return {
        "kind": kind,
        "amount": str(payment.amount),
        "start_month": str(payment.start_month),
        "frequency_months": str(payment.frequency_months),
        "name": payment.name,
    }


def _rate_adjustment_to_dict(adjustment: RateAdjustment) -> Dict[str, Any]:
    return {
        "effective_month": str(adjustment.effective_month),
        "new_annual_rate_percent": str(adjustment.new_annual_rate_percent),
    }


class LoanStore:
    """Database-backed loan store."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def save_loan(
        self,
        loan_id: str,
        name: str,
        terms: LoanTerms,
        start_date: date,
        early_payments: Sequence[EarlyPayment] = (),
        rate_adjustments: Sequence[RateAdjustment] = (),
        snapshot: Optional[LoanSnapshot] = None,
    ) -> None:
        """Insert or replace the loan stored under ``loan_id``."""
        with self._session_factory() as session:
            row = session.get(LoanModel, loan_id) or LoanModel(id=loan_id)
            row.name = name
            row.principal = Decimal(str(terms.principal))
            row.annual_rate_percent = Decimal(str(terms.annual_rate_percent))
            row.term_months = int(terms.term_months)
            row.start_date = start_date
            row.early_payments_json = json.dumps([_early_payment_to_dict(p) for p in early_payments])
            row.rate_adjustments_json = json.dumps([_rate_adjustment_to_dict(a) for a in rate_adjustments])
            if snapshot is not None:
                self._apply_snapshot(row, snapshot)
            session.add(row)
            session.commit()
        logger.info("Saved loan %s", loan_id)

    def update_snapshot(self, loan_id: str, snapshot: LoanSnapshot) -> bool:
        with self._session_factory() as session:
            row = session.get(LoanModel, loan_id)
            if row is None:
                return False
            self._apply_snapshot(row, snapshot)
            session.commit()
        return True

    def get_loan(self, loan_id: str) -> Optional[StoredLoan]:
        with self._session_factory() as session:
            row = session.get(LoanModel, loan_id)
            return self._to_loan(row) if row else None

    def list_loans(self) -> List[StoredLoan]:
        with self._session_factory() as session:
            rows: Iterable[LoanModel] = session.execute(
                select(LoanModel).order_by(LoanModel.created_at.asc())
            ).scalars()
            return [self._to_loan(row) for row in rows]

    def delete_loan(self, loan_id: str) -> bool:
        with self._session_factory() as session:
            row = session.get(LoanModel, loan_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
        logger.info("Deleted loan %s", loan_id)
        return True

    @staticmethod
    def _apply_snapshot(row: LoanModel, snapshot: LoanSnapshot) -> None:
        row.current_balance = snapshot.current_balance.quantize(Decimal("0.01"))
        row.current_payment = snapshot.current_payment.quantize(Decimal("0.01"))
        row.payoff_date = snapshot.payoff_date

    @staticmethod
    def _to_loan(row: LoanModel) -> StoredLoan:
        early_payments = [
            EarlyPayment(
                kind=item["kind"],
                amount=item["amount"],
                start_month=item["start_month"],
                frequency_months=item["frequency_months"],
                name=item.get("name"),
            )
            for item in json.loads(row.early_payments_json)
        ]
        rate_adjustments = [
            RateAdjustment(
                effective_month=item["effective_month"],
                new_annual_rate_percent=item["new_annual_rate_percent"],
            )
            for item in json.loads(row.rate_adjustments_json)
        ]
        return StoredLoan(
            id=row.id,
            name=row.name,
            terms=LoanTerms(
                principal=to_decimal(row.principal),
                annual_rate_percent=to_decimal(row.annual_rate_percent),
                term_months=row.term_months,
            ),
            start_date=row.start_date,
            early_payments=early_payments,
            rate_adjustments=rate_adjustments,
            current_balance=to_decimal(row.current_balance),
            current_payment=to_decimal(row.current_payment),
            payoff_date=row.payoff_date,
        )


def create_store_from_env(url: Optional[str]) -> LoanStore:
    return LoanStore(url or DEFAULT_DATABASE_URL)
