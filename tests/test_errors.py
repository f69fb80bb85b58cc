"""Tests for the bad-record error policy."""

import pytest

from slurm_rest_exporter import errors


def test_fail_fast_reraises():
    """FAIL_FAST raises the error it is handed."""
    error = errors.MissingFieldError("account name not found in job", field="account")
    with pytest.raises(errors.MissingFieldError) as exc_info:
        errors.ErrorPolicy.FAIL_FAST.handle(error, aggregator="test")
    assert exc_info.value is error


def test_skip_returns_without_raising():
    """SKIP swallows the error so the caller can move on."""
    error = errors.UnknownStateError("job", "bogus")
    assert errors.ErrorPolicy.SKIP.handle(error, aggregator="test") is None


def test_policy_parses_from_string():
    """Policies round-trip through their config string values."""
    assert errors.ErrorPolicy("skip") is errors.ErrorPolicy.SKIP
    assert errors.ErrorPolicy("fail_fast") is errors.ErrorPolicy.FAIL_FAST
