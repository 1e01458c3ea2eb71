"""
Tests for two-stage form validation.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.config import AppSettings
from src.models.forms import LoanForm, TransactionForm
from src.models.loan import Loan, LoanType
from src.models.transaction import Transaction
from src.validation import (
    FormValidationError,
    LoanFormValidator,
    TransactionFormValidator,
    get_user_friendly_summary,
    parse_decimal,
)


@pytest.fixture
def settings():
    return AppSettings()


class TestParseDecimal:
    """Tests for typed number parsing."""

    def test_plain_number(self):
        assert parse_decimal("1500") == Decimal("1500")

    def test_thousands_separators(self):
        assert parse_decimal("1,500,000") == Decimal("1500000")

    @pytest.mark.parametrize("text", ["", "   ", "abc", "12abc", "NaN", "Infinity", "1e1000000", "1e-1000000"])
    def test_not_a_number(self, text):
        assert parse_decimal(text) is None


class TestTransactionFormValidator:
    """Tests for the record-transaction form."""

    def test_valid_form_yields_transaction(self, settings):
        validator = TransactionFormValidator(settings)
        result = validator.validate(TransactionForm(
            transaction_type="Income",
            amount="150,000",
            description="Repayment from Amina",
        ))

        assert result.is_valid
        assert result.schema_valid and result.semantic_valid
        assert isinstance(result.record, Transaction)
        assert result.record.amount == Decimal("150000")
        assert result.record.transaction_type == "Income"
        assert result.record.status == "completed"
        assert result.record.date is not None

    def test_empty_form_lists_every_missing_field(self, settings):
        result = TransactionFormValidator(settings).validate(TransactionForm())

        assert not result.is_valid
        assert not result.schema_valid
        assert {i.field for i in result.issues} == {"transaction_type", "amount", "description"}
        assert all(i.issue_type == "missing" for i in result.issues)
        assert result.record is None

    def test_non_numeric_amount(self, settings):
        result = TransactionFormValidator(settings).validate(TransactionForm(
            transaction_type="Expense",
            amount="abc",
            description="Rent",
        ))

        assert not result.is_valid
        assert result.issues[0].issue_type == "not_a_number"
        assert result.issues[0].message == "Amount must be a number"

    def test_description_too_long(self, settings):
        result = TransactionFormValidator(settings).validate(TransactionForm(
            transaction_type="Income",
            amount="100",
            description="y" * 501,
        ))

        assert not result.is_valid
        assert result.record is None
        assert result.issues[0].field == "description"
        assert result.issues[0].issue_type == "out_of_range"
        assert result.issues[0].message == "Description must be at most 500 characters"

    def test_description_at_limit_accepted(self, settings):
        result = TransactionFormValidator(settings).validate(TransactionForm(
            transaction_type="Income",
            amount="100",
            description="y" * 500,
        ))
        assert result.is_valid

    def test_astronomical_amount_is_not_a_number(self, settings):
        result = TransactionFormValidator(settings).validate(TransactionForm(
            transaction_type="Income",
            amount="1e1000000",
            description="Grant",
        ))

        assert not result.is_valid
        assert result.issues[0].message == "Amount must be a number"

    def test_unknown_type_rejected(self, settings):
        result = TransactionFormValidator(settings).validate(TransactionForm(
            transaction_type="Transfer",
            amount="10",
            description="x",
        ))
        assert not result.is_valid
        assert result.issues[0].issue_type == "unknown_value"

    def test_semantic_stage_skipped_when_schema_fails(self, settings):
        result = TransactionFormValidator(settings).validate(TransactionForm(
            transaction_type="Income",
            amount="abc",
        ))
        assert not result.semantic_valid
        assert all(i.issue_type != "out_of_range" for i in result.issues)

    def test_zero_amount_rejected(self, settings):
        result = TransactionFormValidator(settings).validate(TransactionForm(
            transaction_type="Income",
            amount="0",
            description="Nothing",
        ))
        assert result.schema_valid
        assert not result.semantic_valid
        assert result.issues[0].issue_type == "out_of_range"

    def test_huge_amount_is_only_a_warning(self):
        settings = AppSettings(max_transaction_amount=1000)
        result = TransactionFormValidator(settings).validate(TransactionForm(
            transaction_type="Income",
            amount="5000",
            description="Grant",
        ))
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_future_date_warns(self, settings):
        result = TransactionFormValidator(settings).validate(TransactionForm(
            transaction_type="Income",
            amount="10",
            description="x",
            date=datetime.now(timezone.utc) + timedelta(days=30),
        ))
        assert result.is_valid
        assert result.issues[0].issue_type == "future_date"

    def test_parse_raises_with_result(self, settings):
        with pytest.raises(FormValidationError) as exc_info:
            TransactionFormValidator(settings).parse(TransactionForm(amount="abc"))
        assert exc_info.value.result.error_count == 3
        assert "Amount must be a number" in str(exc_info.value)


class TestLoanFormValidator:
    """Tests for the add-loan form."""

    def _form(self, **overrides):
        data = {
            "loan_type": "Education",
            "loan_amount": "800000",
            "interest_rate": "15%",
            "borrower_name": "Joseph Okello",
            "repayment_date": datetime.now(timezone.utc) + timedelta(days=90),
            "aging": "0-30 days",
        }
        data.update(overrides)
        return LoanForm(**data)

    def test_valid_form_yields_loan(self, settings):
        result = LoanFormValidator(settings).validate(self._form())

        assert result.is_valid
        assert isinstance(result.record, Loan)
        assert result.record.loan_type is LoanType.EDUCATION
        assert result.record.interest_rate == Decimal("15")
        assert result.record.aging == "0-30 days"

    def test_missing_fields(self, settings):
        result = LoanFormValidator(settings).validate(LoanForm())
        fields = {i.field for i in result.issues}
        assert fields == {
            "loan_type", "loan_amount", "interest_rate", "borrower_name", "repayment_date",
        }

    def test_non_numeric_interest(self, settings):
        result = LoanFormValidator(settings).validate(self._form(interest_rate="ten"))
        assert not result.is_valid
        assert result.issues[0].message == "Interest rate must be a number"

    def test_interest_out_of_range(self, settings):
        result = LoanFormValidator(settings).validate(self._form(interest_rate="120"))
        assert not result.is_valid
        assert result.issues[0].field == "interest_rate"

    def test_long_borrower_name_rejected(self, settings):
        result = LoanFormValidator(settings).validate(self._form(borrower_name="A" * 201))
        assert not result.is_valid
        assert result.issues[0].field == "borrower_name"
        assert result.record is None

    def test_long_aging_rejected(self, settings):
        result = LoanFormValidator(settings).validate(self._form(aging="x" * 51))
        assert not result.is_valid
        assert result.issues[0].field == "aging"

    def test_unknown_loan_type(self, settings):
        result = LoanFormValidator(settings).validate(self._form(loan_type="Mortgage"))
        assert not result.is_valid

    def test_past_repayment_date_warns(self, settings):
        result = LoanFormValidator(settings).validate(self._form(
            repayment_date=datetime(2020, 1, 1),
        ))
        assert result.is_valid
        assert result.warnings == ["Repayment date is already in the past"]

    def test_parse(self, settings):
        loan = LoanFormValidator(settings).parse(self._form())
        assert loan.borrower_name == "Joseph Okello"


class TestUserFriendlySummary:
    """Tests for the message shown under the form."""

    def test_all_passed(self, settings):
        result = TransactionFormValidator(settings).validate(TransactionForm(
            transaction_type="Income", amount="1", description="x",
        ))
        assert get_user_friendly_summary(result) == "✅ All checks passed."

    def test_errors_listed(self, settings):
        result = TransactionFormValidator(settings).validate(TransactionForm())
        summary = get_user_friendly_summary(result)
        assert summary.startswith("❌ Please fix the following:")
        assert "Amount is required" in summary
        assert "💡 Please fill in all fields" in summary
