"""Form validation package."""

from src.validation.validator import (
    FormValidationError,
    LoanFormValidator,
    TransactionFormValidator,
    get_user_friendly_summary,
    parse_decimal,
)

__all__ = [
    "FormValidationError",
    "LoanFormValidator",
    "TransactionFormValidator",
    "get_user_friendly_summary",
    "parse_decimal",
]
