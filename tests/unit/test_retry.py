"""Unit tests for the HTTP-boundary persistence retry"""

import pytest
from unittest.mock import MagicMock, patch
from commission_gateway.api.retry import with_persistence_retry
from commission_gateway.domain.exceptions import InvalidState, PersistenceError


@patch("commission_gateway.api.retry.time.sleep")
def test_retry_recovers_after_transient_failure(mock_sleep: MagicMock):
    operation = MagicMock(side_effect=[PersistenceError("db down"), PersistenceError("db down"), "ok"])

    assert with_persistence_retry(operation, max_retries=3, backoff_base=1.0) == "ok"
    assert operation.call_count == 3
    # Exponential backoff: 1s, then 2s
    assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]


@patch("commission_gateway.api.retry.time.sleep")
def test_retry_gives_up_after_max_attempts(mock_sleep: MagicMock):
    operation = MagicMock(side_effect=PersistenceError("db down"))

    with pytest.raises(PersistenceError):
        with_persistence_retry(operation, max_retries=3, backoff_base=0.0)
    assert operation.call_count == 3


@patch("commission_gateway.api.retry.time.sleep")
def test_retry_does_not_retry_domain_errors(mock_sleep: MagicMock):
    operation = MagicMock(side_effect=InvalidState("not ready"))

    with pytest.raises(InvalidState):
        with_persistence_retry(operation, max_retries=3)
    assert operation.call_count == 1
    mock_sleep.assert_not_called()
