"""Validators for generated SQL."""

from __future__ import annotations

from dataclasses import dataclass

import sqlparse
from sqlparse import tokens as sql_tokens

from .models import ValidationResult


@dataclass
class SQLQueryValidator:
    """Accepts exactly one read-only SELECT statement (optionally introduced by WITH)."""

    def validate(self, sql: str) -> ValidationResult:
        """
        Validate generated SQL.

        :param sql: The SQL returned by a generator
        :return: Validation result with errors if any
        """
        stripped = (sql or "").strip().rstrip(";").strip()
        if not stripped:
            return ValidationResult(is_valid=False, error_message="Empty SQL query")

        statements = [statement for statement in sqlparse.split(stripped) if statement.strip()]
        if len(statements) != 1:
            return ValidationResult(
                is_valid=False,
                error_message="Only a single SELECT statement is allowed",
                syntax_errors=[f"Found {len(statements)} statements"],
            )

        statement = sqlparse.parse(statements[0])[0]
        if statement.get_type() != "SELECT":
            return ValidationResult(
                is_valid=False,
                error_message=f"Only SELECT statements are allowed, got {statement.get_type()}",
            )

        forbidden = sorted(
            {
                token.normalized
                for token in statement.flatten()
                if token.ttype in (sql_tokens.Keyword.DML, sql_tokens.Keyword.DDL)
                and token.normalized != "SELECT"
            }
        )
        if forbidden:
            return ValidationResult(
                is_valid=False,
                error_message=f"Forbidden keywords in query: {', '.join(forbidden)}",
                syntax_errors=forbidden,
            )

        return ValidationResult(is_valid=True)
