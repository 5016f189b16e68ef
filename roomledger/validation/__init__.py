"""Expense validation package."""

from roomledger.validation.validator import ExpenseValidator

__all__ = ["ExpenseValidator"]
