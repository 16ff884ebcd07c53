from decimal import Decimal

from loan_amortizer.data_models import EarlyPayment, EarlyPaymentKind
from loan_amortizer.engine import MAX_PROJECTION_MONTH, compute_fixed_payment, project_payoff_month


def _payment():
    return compute_fixed_payment(Decimal("250000"), Decimal("8"), 180).monthly_payment


class TestProjectPayoffMonth:
    def test_unperturbed_loan_pays_off_at_term(self):
        projection = project_payoff_month(1, Decimal("250000"), _payment(), Decimal("8"))
        assert projection.converged
        assert projection.payoff_month == 180

    def test_extra_payment_shortens_projection(self):
        extras = [EarlyPayment(kind=EarlyPaymentKind.ONE_TIME, amount=Decimal("20000"), start_month=1)]
        projection = project_payoff_month(1, Decimal("250000"), _payment(), Decimal("8"), extras)
        assert projection.payoff_month < 180

    def test_start_month_extras_can_be_skipped(self):
        extras = [EarlyPayment(kind=EarlyPaymentKind.ONE_TIME, amount=Decimal("20000"), start_month=3)]
        skipped = project_payoff_month(
            3, Decimal("240000"), _payment(), Decimal("8"), extras, include_start_month=False
        )
        plain = project_payoff_month(3, Decimal("240000"), _payment(), Decimal("8"))
        assert skipped == plain

    def test_zero_rate(self):
        projection = project_payoff_month(1, Decimal("1200"), Decimal("100"), Decimal("0"))
        assert projection.payoff_month == 12

    def test_zero_balance_is_already_paid(self):
        projection = project_payoff_month(5, Decimal("0"), Decimal("100"), Decimal("5"))
        assert projection.payoff_month == 4

    def test_negative_amortization_does_not_converge(self):
        """Interest on $250K at 8% is ~$1,667/month; $100 never catches up."""
        projection = project_payoff_month(1, Decimal("250000"), Decimal("100"), Decimal("8"))
        assert not projection.converged
        assert projection.payoff_month is None

    def test_start_after_cap_does_not_converge(self):
        projection = project_payoff_month(MAX_PROJECTION_MONTH + 1, Decimal("100"), Decimal("100"), Decimal("0"))
        assert not projection.converged
