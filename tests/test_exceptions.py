from __future__ import annotations

import pytest

from utils.exceptions import (
    BudgetExceeded,
    ErrorKind,
    MalformedOracleOutput,
    OracleTransient,
    OracleUnavailable,
    classify_oracle_error,
)


class _StatusError(Exception):
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


@pytest.mark.parametrize(
    "exc, expected",
    [
        (TimeoutError("read timed out"), OracleTransient),
        (ConnectionError("reset by peer"), OracleTransient),
        (ValueError("Expecting value: line 1 column 1"), MalformedOracleOutput),
        (KeyError("facts"), MalformedOracleOutput),
        (ValueError("429 rate limit"), OracleTransient),
        (RuntimeError("Invalid API key provided"), OracleUnavailable),
        (_StatusError("denied", 401), OracleUnavailable),
        (_StatusError("slow down", 429), OracleTransient),
        (RuntimeError("something odd"), OracleTransient),
    ],
)
def test_classify_oracle_error(exc, expected) -> None:
    classified = classify_oracle_error(exc, oracle="planner", model="smart")

    assert type(classified) is expected
    assert classified.oracle == "planner"
    assert classified.model == "smart"


def test_classified_errors_pass_through() -> None:
    original = OracleUnavailable("no key", oracle="critic")
    assert classify_oracle_error(original) is original


def test_error_kinds_and_details() -> None:
    exc = BudgetExceeded("over budget", budget="cost_budget_exceeded", spent=0.06, limit=0.05)

    assert exc.kind == ErrorKind.BUDGET_EXCEEDED
    assert "cost_budget_exceeded" in str(exc)
    assert MalformedOracleOutput("bad").kind == ErrorKind.MALFORMED_ORACLE_OUTPUT
