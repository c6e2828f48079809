"""
Tests for the Result type used for expected failures.
"""

import pytest

from healthscore.errors import FetchError, SampleValidationError
from healthscore.result import Result


class TestResult:
    """Test the Result type for explicit error handling."""

    def test_result_ok_creates_successful_result(self) -> None:
        result: Result[str, Exception] = Result.ok("success")
        assert result.is_ok()
        assert not result.is_err()
        assert result.unwrap() == "success"

    def test_result_error_creates_failed_result(self) -> None:
        error = SampleValidationError("value is missing")
        result: Result[str, SampleValidationError] = Result.err(error)
        assert not result.is_ok()
        assert result.is_err()
        assert result.unwrap_or("default") == "default"
        assert result.unwrap_err() is error

    def test_unwrap_raises_on_error_result(self) -> None:
        result: Result[list[int], FetchError] = Result.err(
            FetchError("steps", 3, ConnectionError("offline"))
        )

        with pytest.raises(FetchError, match="steps failed after 3 attempt"):
            result.unwrap()

    def test_empty_list_is_a_value(self) -> None:
        result: Result[list[int], Exception] = Result.ok([])
        assert result.is_ok()
        assert result.unwrap() == []

    def test_unwrap_err_on_ok_raises(self) -> None:
        with pytest.raises(ValueError):
            Result.ok(1).unwrap_err()

    def test_requires_exactly_one_of_value_or_error(self) -> None:
        with pytest.raises(ValueError):
            Result()
        with pytest.raises(ValueError):
            Result(value=1, error=ValueError("x"))
