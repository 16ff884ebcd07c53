import csv
import json

import pytest
from click.testing import CliRunner

from loan_amortizer.main import cli

LOAN = ["-p", "250k", "-r", "8", "-t", "15", "--term-unit", "years", "-s", "2024-08-27"]


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'cli.sqlite3'}"


class TestPaymentCommand:
    def test_prints_payment(self, runner):
        result = runner.invoke(cli, ["payment", "-p", "250000", "-r", "8", "-t", "180"])
        assert result.exit_code == 0
        assert "Monthly payment : 2389.13" in result.output

    def test_invalid_loan_prints_zero(self, runner):
        result = runner.invoke(cli, ["payment", "-p", "0", "-r", "8", "-t", "180"])
        assert result.exit_code == 0
        assert "Monthly payment : 0.00" in result.output


class TestScheduleCommand:
    def test_prints_summary_and_truncates(self, runner):
        result = runner.invoke(cli, ["schedule", *LOAN])
        assert result.exit_code == 0
        assert "Payments made      : 180" in result.output
        assert "showing first 120 rows" in result.output

    def test_max_rows_from_environment(self, runner, monkeypatch):
        monkeypatch.setenv("LOAN_AMORTIZER_MAX_ROWS", "500")
        result = runner.invoke(cli, ["schedule", *LOAN])
        assert result.exit_code == 0
        assert "showing first" not in result.output

    def test_json_export(self, runner, tmp_path):
        path = tmp_path / "schedule.json"
        result = runner.invoke(
            cli, ["schedule", *LOAN, "--rate-change", "3:7.25", "--extra", "2025-06:5000", "--output", str(path)]
        )
        assert result.exit_code == 0
        data = json.loads(path.read_text())
        assert data["schedule"][2]["payment"] == pytest.approx(2283.06, abs=0.01)
        assert data["schedule"][10]["extra"] == 5000.0
        assert data["summary"]["payments_made"] == len(data["schedule"])
        assert len(data["schedule"]) < 180

    def test_csv_export(self, runner, tmp_path):
        path = tmp_path / "schedule.csv"
        result = runner.invoke(cli, ["schedule", *LOAN, "--recurring", "1:200:3", "--output", str(path)])
        assert result.exit_code == 0
        with path.open(newline="") as f:
            rows = list(csv.reader(f))
        assert rows[0][:3] == ["Index", "Date", "Payment"]
        assert rows[1][1] == "2024-08-27"
        assert float(rows[4][5]) == 200.0

    def test_unsupported_export(self, runner, tmp_path):
        result = runner.invoke(cli, ["schedule", *LOAN, "--output", str(tmp_path / "schedule.pdf")])
        assert result.exit_code == 2

    def test_duplicate_rate_changes_rejected(self, runner):
        result = runner.invoke(cli, ["schedule", *LOAN, "--rate-change", "3:7", "--rate-change", "2024-10:6"])
        assert result.exit_code == 2
        assert "both fall in month 3" in result.output

    @pytest.mark.parametrize(
        "option",
        [["--extra", "3"], ["--extra", "x:100"], ["--recurring", "1:100:0"], ["--rate-change", "2024-01:5"]],
    )
    def test_malformed_options(self, runner, option):
        result = runner.invoke(cli, ["schedule", *LOAN, *option])
        assert result.exit_code == 2

    def test_invalid_start_date(self, runner):
        result = runner.invoke(cli, ["schedule", "-p", "1000", "-r", "5", "-t", "12", "-s", "soon"])
        assert result.exit_code == 2


class TestSummaryAndSavings:
    def test_summary(self, runner):
        result = runner.invoke(cli, ["summary", *LOAN, "--extra", "3:5000"])
        assert result.exit_code == 0
        assert "Total extra paid   : 5000.00" in result.output

    def test_summary_json(self, runner, tmp_path):
        path = tmp_path / "summary.json"
        result = runner.invoke(cli, ["summary", *LOAN, "--output", str(path)])
        assert result.exit_code == 0
        assert json.loads(path.read_text())["summary"]["payments_made"] == 180

    def test_savings(self, runner):
        result = runner.invoke(cli, ["savings", *LOAN, "--extra", "3:5000"])
        assert result.exit_code == 0
        assert "Interest saved" in result.output
        assert "Term reduction" in result.output


class TestSavedLoans:
    def test_save_list_show_delete(self, runner, db_url):
        result = runner.invoke(
            cli, ["--database-url", db_url, "save", *LOAN, "--name", "Home", "--id", "home", "--as-of", "2025-01-01"]
        )
        assert result.exit_code == 0
        assert result.output.strip() == "home"

        result = runner.invoke(cli, ["--database-url", db_url, "loans"])
        assert result.exit_code == 0
        assert "home\tHome\t250000.00" in result.output

        result = runner.invoke(cli, ["--database-url", db_url, "show", "home", "--as-of", "2025-01-01"])
        assert result.exit_code == 0
        assert "Home (home)" in result.output
        assert "Next payment       : 2389.13 on 2025-01-27" in result.output

        result = runner.invoke(cli, ["--database-url", db_url, "delete", "home"])
        assert result.exit_code == 0
        result = runner.invoke(cli, ["--database-url", db_url, "loans"])
        assert "No saved loans." in result.output

    def test_unknown_loan(self, runner, db_url):
        assert runner.invoke(cli, ["--database-url", db_url, "show", "missing"]).exit_code == 1
        assert runner.invoke(cli, ["--database-url", db_url, "delete", "missing"]).exit_code == 1
