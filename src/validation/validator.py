"""
Two-Stage Form Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Numeric parsing (no silent "abc" -> NaN -> 0)
- Known transaction / loan types

STAGE 2 - SEMANTIC VALIDATION:
- Amount ranges (positive, below the sanity limit)
- Interest rate range
- Date plausibility

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails

IMPORTANT: Validation NEVER silently fixes input.
It reports issues, and only a clean form produces a typed record.
"""

from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from src.config import AppSettings, get_settings
from src.models.forms import (
    LoanForm,
    TransactionForm,
    ValidationIssue,
    ValidationResult,
)
from src.models.loan import Loan, LoanType
from src.models.transaction import (
    Transaction,
    TransactionType,
    is_readable_amount,
    utc_now,
)


# Transactions can be back-dated freely but not recorded far ahead
FUTURE_DATE_TOLERANCE = timedelta(days=1)

# Longest free text a form accepts
MAX_DESCRIPTION_LENGTH = 500
MAX_BORROWER_NAME_LENGTH = 200
MAX_AGING_LENGTH = 50


class FormValidationError(ValueError):
    """Raised by the strict parse helpers; carries the full result."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(i.message for i in result.issues if i.severity == "error")
        super().__init__(f"Invalid {result.form} form: {messages}")


def parse_decimal(text: str) -> Optional[Decimal]:
    """
    Parse a typed number. Thousands separators are allowed.

    Returns None for anything that isn't a finite number, and for
    magnitudes too large or too small to be a money amount.
    """
    cleaned = text.strip().replace(",", "").replace("_", "")
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return value if is_readable_amount(value) else None


def _missing(field: str, label: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="missing",
        message=f"{label} is required",
        severity="error",
        suggested_fix="Please fill in all fields",
    )


def _not_a_number(field: str, label: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="not_a_number",
        message=f"{label} must be a number",
        severity="error",
        suggested_fix="Use digits only, e.g. 150000",
    )


def _too_long(field: str, label: str, limit: int) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="out_of_range",
        message=f"{label} must be at most {limit} characters",
        severity="error",
        suggested_fix="Please shorten it",
    )


class TransactionFormValidator:
    """Validates the record-transaction form and builds a Transaction."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _validate_schema(
        self,
        form: TransactionForm,
    ) -> tuple[bool, list[ValidationIssue], Optional[Decimal]]:
        issues = []

        if not form.transaction_type:
            issues.append(_missing("transaction_type", "Transaction type"))
        elif TransactionType.recognise(form.transaction_type) is None:
            allowed = ", ".join(t.value for t in TransactionType)
            issues.append(ValidationIssue(
                field="transaction_type",
                issue_type="unknown_value",
                message=f"Unknown transaction type '{form.transaction_type}'",
                severity="error",
                suggested_fix=f"Choose one of: {allowed}",
            ))

        amount = None
        if not form.amount:
            issues.append(_missing("amount", "Amount"))
        else:
            amount = parse_decimal(form.amount)
            if amount is None:
                issues.append(_not_a_number("amount", "Amount"))

        if not form.description:
            issues.append(_missing("description", "Description"))
        elif len(form.description) > MAX_DESCRIPTION_LENGTH:
            issues.append(_too_long("description", "Description", MAX_DESCRIPTION_LENGTH))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues, amount

    def _validate_semantic(
        self,
        form: TransactionForm,
        amount: Decimal,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        if amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="out_of_range",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Record money going out as an Expense, not a negative amount",
            ))

        max_amount = Decimal(str(self._settings.max_transaction_amount))
        if amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=(
                    f"Amount ({self._settings.currency} {amount:,.0f}) "
                    "seems unusually high"
                ),
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if form.date is not None:
            when = form.date if form.date.tzinfo else form.date.replace(tzinfo=utc_now().tzinfo)
            if when > utc_now() + FUTURE_DATE_TOLERANCE:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message=f"Date ({form.date.date()}) is in the future",
                    severity="warning",
                    suggested_fix="Please verify the date is correct",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(self, form: TransactionForm) -> ValidationResult:
        """
        Run the two-stage validation.

        Returns:
            ValidationResult; `record` is the Transaction when valid
        """
        all_issues: list[ValidationIssue] = []

        schema_valid, schema_issues, amount = self._validate_schema(form)
        all_issues.extend(schema_issues)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(form, amount)
            all_issues.extend(semantic_issues)

        is_valid = schema_valid and semantic_valid
        record = None
        if is_valid:
            now = utc_now()
            record = Transaction(
                transaction_type=TransactionType(form.transaction_type).value,
                amount=amount,
                date=form.date or now,
                created_at=now,
                description=form.description,
            )

        return ValidationResult(
            form="transaction",
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=is_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
            record=record,
        )

    def parse(self, form: TransactionForm) -> Transaction:
        """
        Strict variant of validate().

        Raises:
            FormValidationError: If the form is not valid
        """
        result = self.validate(form)
        if not result.is_valid:
            raise FormValidationError(result)
        return result.record


class LoanFormValidator:
    """Validates the add-loan form and builds a Loan."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _validate_schema(
        self,
        form: LoanForm,
    ) -> tuple[bool, list[ValidationIssue], Optional[Decimal], Optional[Decimal]]:
        issues = []

        if not form.loan_type:
            issues.append(_missing("loan_type", "Loan type"))
        elif form.loan_type not in {t.value for t in LoanType}:
            allowed = ", ".join(t.value for t in LoanType)
            issues.append(ValidationIssue(
                field="loan_type",
                issue_type="unknown_value",
                message=f"Unknown loan type '{form.loan_type}'",
                severity="error",
                suggested_fix=f"Choose one of: {allowed}",
            ))

        loan_amount = None
        if not form.loan_amount:
            issues.append(_missing("loan_amount", "Loan amount"))
        else:
            loan_amount = parse_decimal(form.loan_amount)
            if loan_amount is None:
                issues.append(_not_a_number("loan_amount", "Loan amount"))

        interest_rate = None
        if not form.interest_rate:
            issues.append(_missing("interest_rate", "Interest rate"))
        else:
            interest_rate = parse_decimal(form.interest_rate.rstrip("%"))
            if interest_rate is None:
                issues.append(_not_a_number("interest_rate", "Interest rate"))

        if not form.borrower_name:
            issues.append(_missing("borrower_name", "Borrower name"))
        elif len(form.borrower_name) > MAX_BORROWER_NAME_LENGTH:
            issues.append(_too_long("borrower_name", "Borrower name", MAX_BORROWER_NAME_LENGTH))

        if form.aging and len(form.aging) > MAX_AGING_LENGTH:
            issues.append(_too_long("aging", "Aging", MAX_AGING_LENGTH))

        if form.repayment_date is None:
            issues.append(_missing("repayment_date", "Repayment date"))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues, loan_amount, interest_rate

    def _validate_semantic(
        self,
        form: LoanForm,
        loan_amount: Decimal,
        interest_rate: Decimal,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        if loan_amount <= 0:
            issues.append(ValidationIssue(
                field="loan_amount",
                issue_type="out_of_range",
                message="Loan amount must be greater than zero",
                severity="error",
            ))
        elif loan_amount > Decimal(str(self._settings.max_transaction_amount)):
            issues.append(ValidationIssue(
                field="loan_amount",
                issue_type="suspicious_value",
                message="Loan amount seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        max_rate = Decimal(str(self._settings.max_interest_rate))
        if interest_rate < 0 or interest_rate > max_rate:
            issues.append(ValidationIssue(
                field="interest_rate",
                issue_type="out_of_range",
                message=f"Interest rate must be between 0 and {max_rate}%",
                severity="error",
            ))

        repayment = form.repayment_date
        if repayment.tzinfo is None:
            repayment = repayment.replace(tzinfo=utc_now().tzinfo)
        if repayment < utc_now():
            issues.append(ValidationIssue(
                field="repayment_date",
                issue_type="past_date",
                message="Repayment date is already in the past",
                severity="warning",
                suggested_fix="Please verify the repayment date",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(self, form: LoanForm) -> ValidationResult:
        all_issues: list[ValidationIssue] = []

        schema_valid, schema_issues, loan_amount, interest_rate = self._validate_schema(form)
        all_issues.extend(schema_issues)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(
                form, loan_amount, interest_rate
            )
            all_issues.extend(semantic_issues)

        is_valid = schema_valid and semantic_valid
        record = None
        if is_valid:
            record = Loan(
                loan_type=LoanType(form.loan_type),
                loan_amount=loan_amount,
                interest_rate=interest_rate,
                repayment_date=form.repayment_date,
                borrower_name=form.borrower_name,
                aging=form.aging or None,
            )

        return ValidationResult(
            form="loan",
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=is_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
            record=record,
        )

    def parse(self, form: LoanForm) -> Loan:
        """
        Strict variant of validate().

        Raises:
            FormValidationError: If the form is not valid
        """
        result = self.validate(form)
        if not result.is_valid:
            raise FormValidationError(result)
        return result.record


def get_user_friendly_summary(result: ValidationResult) -> str:
    """
    Generate a user-friendly summary of validation results.

    This is what the form shows under the submit button.
    """
    if result.is_valid and not result.warnings:
        return "✅ All checks passed."

    lines = []

    if result.has_errors:
        lines.append("❌ Please fix the following:")
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

    if result.warnings:
        if lines:
            lines.append("")
        lines.append("⚠️ Please verify the following:")
        for warning in result.warnings:
            lines.append(f"   • {warning}")

    return "\n".join(lines)
