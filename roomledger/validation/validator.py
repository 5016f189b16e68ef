"""
Two-Stage Expense Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking (price must be a number, date must be ISO-8601)
- Required field presence (item, price, person)
- Length limits (item, note)
- Positive price with at most two decimal places

STAGE 2 - SEMANTIC VALIDATION:
- The person must be on the roster
- Dates far in the future are flagged (warning only)

IMPORTANT: Validation NEVER silently fixes issues and never raises for
bad input. Everything wrong with a request is reported at once, and
nothing invalid reaches storage or the settlement engine.
"""

from datetime import timedelta
from typing import Any, Optional

from pydantic import ValidationError

from roomledger.config import AppSettings, get_settings
from roomledger.models.expense import (
    ExpenseCreate,
    Roster,
    ValidationIssue,
    ValidationResult,
    utcnow,
)


REQUIRED_FIELDS = ("item", "price", "person")

# pydantic error types raised by the max_digits bound on ExpenseCreate.price
TOO_MANY_DIGITS = ("decimal_max_digits", "decimal_whole_digits")


def _pydantic_issues(error: ValidationError) -> list[ValidationIssue]:
    """Translate pydantic type errors into our issue format."""
    issues = []
    for err in error.errors():
        field = str(err["loc"][0]) if err["loc"] else "body"
        issue_type = "invalid_format"
        if field == "price" and err["type"] in TOO_MANY_DIGITS:
            issue_type = "out_of_range"
            limit = err.get("ctx", {}).get("max_digits", "12")
            message = f"Price is too large (at most {limit} digits)"
        elif field == "price":
            message = "Price must be a positive number"
        elif field == "date":
            message = "Invalid date format"
        else:
            message = f"{field.capitalize()} is invalid: {err['msg']}"
        issues.append(ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=message,
            severity="error",
        ))
    return issues


class ExpenseValidator:
    """
    Validates create-expense payloads through a two-stage pipeline.

    Stage 1: Schema validation (needs nothing but the payload)
    Stage 2: Semantic validation (needs the roster)
    """

    def __init__(
        self,
        roster: Roster,
        settings: Optional[AppSettings] = None,
    ):
        self._roster = roster
        self._settings = settings or get_settings().app

    def _validate_schema(
        self,
        payload: Any,
    ) -> tuple[Optional[ExpenseCreate], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_expense_or_None, list_of_issues)
        """
        if not isinstance(payload, dict):
            return None, [ValidationIssue(
                field="body",
                issue_type="invalid_format",
                message="Request body must be a JSON object",
                severity="error",
            )]

        issues = []

        for field in REQUIRED_FIELDS:
            value = payload.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                label = "Item name" if field == "item" else field.capitalize()
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"{label} is required",
                    severity="error",
                ))
        if issues:
            return None, issues

        # bool is an int subclass; True must not become a price of 1
        if isinstance(payload.get("price"), bool):
            return None, [ValidationIssue(
                field="price",
                issue_type="invalid_format",
                message="Price must be a positive number",
                severity="error",
            )]

        try:
            expense = ExpenseCreate.model_validate(payload)
        except ValidationError as e:
            return None, _pydantic_issues(e)

        if len(expense.item) > self._settings.max_item_length:
            issues.append(ValidationIssue(
                field="item",
                issue_type="too_long",
                message=(
                    f"Item name must be less than "
                    f"{self._settings.max_item_length} characters"
                ),
                severity="error",
            ))

        price = expense.price
        if not price.is_finite() or price <= 0:
            issues.append(ValidationIssue(
                field="price",
                issue_type="invalid_value",
                message="Price must be a positive number",
                severity="error",
            ))
        elif price.normalize().as_tuple().exponent < -2:
            issues.append(ValidationIssue(
                field="price",
                issue_type="invalid_value",
                message="Price cannot have more than two decimal places",
                severity="error",
            ))
        elif price > self._settings.max_expense_amount:
            issues.append(ValidationIssue(
                field="price",
                issue_type="suspicious_value",
                message=f"Price ({price:,.2f}) seems unusually high",
                severity="warning",
            ))

        if expense.note and len(expense.note) > self._settings.max_note_length:
            issues.append(ValidationIssue(
                field="note",
                issue_type="too_long",
                message=(
                    f"Note must be less than "
                    f"{self._settings.max_note_length} characters"
                ),
                severity="error",
            ))

        if any(issue.severity == "error" for issue in issues):
            return None, issues
        return expense, issues

    def _validate_semantic(
        self,
        expense: ExpenseCreate,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if expense.person not in self._roster:
            issues.append(ValidationIssue(
                field="person",
                issue_type="unknown_person",
                message=(
                    "Invalid person name. Must be one of: "
                    + ", ".join(self._roster.members)
                ),
                severity="error",
            ))

        tolerance = timedelta(days=self._settings.future_date_tolerance_days)
        if expense.date and expense.date > utcnow() + tolerance:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Expense date ({expense.date.date()}) is in the future",
                severity="warning",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(self, payload: Any) -> ValidationResult:
        """
        Run the full two-stage validation pipeline.

        Args:
            payload: The raw request body

        Returns:
            ValidationResult with all issues found and, when valid,
            the parsed expense
        """
        all_issues = []

        expense, schema_issues = self._validate_schema(payload)
        all_issues.extend(schema_issues)
        schema_valid = expense is not None

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(expense)
            all_issues.extend(semantic_issues)

        warnings = [i.message for i in all_issues if i.severity == "warning"]
        is_valid = schema_valid and semantic_valid

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=is_valid,
            issues=all_issues,
            warnings=warnings,
            expense=expense if is_valid else None,
        )
