"""Tests for database retry logic."""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from estate_feed.database.repository import (
    DB_RETRY_MAX_ATTEMPTS,
    SourceRepository,
    with_db_retry,
)

LOCKED = OperationalError("database is locked", None, None)


@pytest.fixture
def no_wait():
    """Retry without sleeping."""
    with patch("estate_feed.database.repository.wait_exponential", return_value=0):
        yield


class TestWithDbRetry:
    """Tests for the with_db_retry decorator."""

    def test_transient_lock_recovers(self, no_wait: None) -> None:
        """A call that fails twice with a lock error succeeds on the third try."""
        operation = MagicMock(side_effect=[LOCKED, LOCKED, "ok"])

        @with_db_retry
        def write() -> str:
            return operation()

        assert write() == "ok"
        assert operation.call_count == 3

    def test_persistent_lock_reraises(self, no_wait: None) -> None:
        """The original OperationalError surfaces after the last attempt."""
        operation = MagicMock(side_effect=LOCKED)

        @with_db_retry
        def write() -> str:
            return operation()

        with pytest.raises(OperationalError):
            write()

        assert operation.call_count == DB_RETRY_MAX_ATTEMPTS

    def test_other_errors_not_retried(self) -> None:
        operation = MagicMock(side_effect=ValueError("bad value"))

        @with_db_retry
        def write() -> str:
            return operation()

        with pytest.raises(ValueError, match="bad value"):
            write()

        assert operation.call_count == 1

    def test_preserves_function_metadata(self) -> None:
        @with_db_retry
        def advance() -> None:
            """Advance something."""

        assert advance.__name__ == "advance"
        assert advance.__doc__ == "Advance something."


class TestRepositoryRetry:
    """Repository writes go through the retry decorator."""

    def test_watermark_commit_retried(self, no_wait: None) -> None:
        """A locked commit during advance_watermark is retried."""
        source = MagicMock(last_message_id=10)
        session = MagicMock()
        session.query.return_value.filter.return_value.first.return_value = source
        session.commit.side_effect = [LOCKED, None]

        result = SourceRepository(session).advance_watermark(1, 42)

        assert result == 42
        assert session.query.call_count == 2
