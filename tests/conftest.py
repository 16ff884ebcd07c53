"""Shared fixtures.

Fixture loan: $250,000 at 8 % for 180 months, first payment on 2024-08-27.
"""

from datetime import date
from decimal import Decimal

import pytest

from loan_amortizer.data_models import LoanTerms


@pytest.fixture
def terms() -> LoanTerms:
    return LoanTerms(principal=Decimal("250000"), annual_rate_percent=Decimal("8"), term_months=180)


@pytest.fixture
def start() -> date:
    return date(2024, 8, 27)
