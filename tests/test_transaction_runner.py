from unittest.mock import Mock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from tennisflow.core.exceptions import TransactionRetryExhaustedError
from tennisflow.services.transaction_runner import is_transient_error, run_in_transaction


class FakeDriverError(Exception):
    def __init__(self, pgcode=None):
        super().__init__(f"driver error {pgcode}")
        self.pgcode = pgcode


def transient_error(pgcode: str = "40001") -> OperationalError:
    return OperationalError("UPDATE users ...", {}, FakeDriverError(pgcode))


@pytest.fixture
def mock_db():
    return Mock()


class TestIsTransientError:
    @pytest.mark.parametrize("pgcode", ["40001", "40P01"])
    def test_serialization_and_deadlock(self, pgcode):
        assert is_transient_error(transient_error(pgcode)) is True

    def test_other_sqlstate(self):
        assert is_transient_error(transient_error("23505")) is False

    def test_invalidated_connection(self):
        exc = OperationalError("SELECT 1", {}, FakeDriverError(), connection_invalidated=True)

        assert is_transient_error(exc) is True

    def test_non_database_errors(self):
        assert is_transient_error(ValueError("boom")) is False
        assert is_transient_error(
            IntegrityError("INSERT", {}, FakeDriverError("23505"))
        ) is False


class TestRunInTransaction:
    """트랜잭션 재시도 실행기"""

    def test_commits_result(self, mock_db):
        work = Mock(return_value=42)

        result = run_in_transaction(mock_db, work, sleep=Mock())

        assert result == 42
        work.assert_called_once_with(mock_db)
        mock_db.commit.assert_called_once()
        mock_db.rollback.assert_not_called()

    def test_retries_transient_error_then_succeeds(self, mock_db):
        work = Mock(side_effect=[transient_error(), transient_error("40P01"), "ok"])
        sleep = Mock()

        result = run_in_transaction(mock_db, work, backoff_seconds=0.05, sleep=sleep)

        assert result == "ok"
        assert work.call_count == 3
        assert mock_db.rollback.call_count == 2
        assert [c.args[0] for c in sleep.call_args_list] == pytest.approx([0.05, 0.1])

    def test_gives_up_after_max_attempts(self, mock_db):
        work = Mock(side_effect=transient_error())
        sleep = Mock()

        with pytest.raises(TransactionRetryExhaustedError) as exc_info:
            run_in_transaction(mock_db, work, max_attempts=3, sleep=sleep)

        assert work.call_count == 3
        assert sleep.call_count == 2
        assert exc_info.value.status_code == 503
        assert exc_info.value.details["attempts"] == 3
        mock_db.commit.assert_not_called()

    def test_non_transient_error_is_not_retried(self, mock_db):
        work = Mock(side_effect=ValueError("bad input"))
        sleep = Mock()

        with pytest.raises(ValueError):
            run_in_transaction(mock_db, work, sleep=sleep)

        assert work.call_count == 1
        mock_db.rollback.assert_called_once()
        sleep.assert_not_called()

    def test_custom_retry_predicate(self, mock_db):
        work = Mock(side_effect=[KeyError("x"), "done"])

        result = run_in_transaction(
            mock_db, work, is_retryable=lambda e: isinstance(e, KeyError), sleep=Mock()
        )

        assert result == "done"
