import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from chatcore.exceptions.base import (
    DuplicateError,
    NotAuthorizedError,
    RepositoryError,
    StorageUnavailableError,
)
from chatcore.exceptions.integrity_classifier import (
    CheckConstraintError,
    ForeignKeyConstraintError,
    NotNullConstraintError,
    UniqueConstraintError,
    UnknownIntegrityError,
    classify_integrity_error,
    is_unique_violation,
)
from chatcore.exceptions.mapper import (
    db_error_handler,
    extract_columns_from_integrity,
    raise_mapped_integrity_error,
)


class FakeDriverError(Exception):
    """Stands in for a DBAPI exception carrying a SQLSTATE."""

    def __init__(self, message: str, pgcode: str | None = None):
        super().__init__(message)
        self.pgcode = pgcode


class FakeSession:

    def __init__(self):
        self.rollbacks = 0

    async def rollback(self):
        self.rollbacks += 1


def integrity_error(message: str, pgcode: str | None = None) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, FakeDriverError(message, pgcode))


class TestClassifier:

    @pytest.mark.parametrize(
        "pgcode, expected",
        [
            ("23505", UniqueConstraintError),
            ("23502", NotNullConstraintError),
            ("23503", ForeignKeyConstraintError),
            ("23514", CheckConstraintError),
            ("23999", UnknownIntegrityError),
        ],
    )
    def test_postgres_codes(self, pgcode, expected):
        exc_cls, _ = classify_integrity_error(integrity_error("boom", pgcode))

        assert exc_cls is expected

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("UNIQUE constraint failed: users.username", UniqueConstraintError),
            ("NOT NULL constraint failed: messages.content", NotNullConstraintError),
            ("FOREIGN KEY constraint failed", ForeignKeyConstraintError),
            ("CHECK constraint failed: canonical_pair", CheckConstraintError),
            ("disk I/O weirdness", UnknownIntegrityError),
        ],
    )
    def test_message_fallback(self, message, expected):
        exc_cls, constraint = classify_integrity_error(integrity_error(message))

        assert exc_cls is expected
        assert constraint is None

    def test_is_unique_violation(self):
        assert is_unique_violation(integrity_error("UNIQUE constraint failed: users.username")) is True
        assert is_unique_violation(integrity_error("FOREIGN KEY constraint failed")) is False


class TestColumnExtraction:

    def test_sqlite_composite_unique(self):
        exc = integrity_error(
            "UNIQUE constraint failed: conversations.user_low_id, conversations.user_high_id"
        )

        assert extract_columns_from_integrity(exc) == ["user_low_id", "user_high_id"]

    def test_postgres_key_detail(self):
        exc = integrity_error(
            'duplicate key value violates unique constraint "uq_users_username"\n'
            "DETAIL:  Key (username)=(alice) already exists.",
            pgcode="23505",
        )

        assert extract_columns_from_integrity(exc) == ["username"]

    def test_postgres_not_null(self):
        exc = integrity_error('null value in column "content" violates not-null constraint', pgcode="23502")

        assert extract_columns_from_integrity(exc) == ["content"]

    def test_nothing_recognizable(self):
        assert extract_columns_from_integrity(integrity_error("something odd")) is None


class TestRaiseMappedIntegrityError:

    def test_unique_becomes_duplicate(self):
        exc = integrity_error("UNIQUE constraint failed: users.username")

        with pytest.raises(DuplicateError) as exc_info:
            raise_mapped_integrity_error(exc, "User")

        err = exc_info.value
        assert err.fields == ["username"]
        assert err.http_status() == 409
        assert err.__cause__ is exc

    def test_not_null_becomes_repository_error(self):
        exc = integrity_error("NOT NULL constraint failed: messages.content")

        with pytest.raises(RepositoryError) as exc_info:
            raise_mapped_integrity_error(exc, "Message")

        assert exc_info.value.fields == ["content"]
        assert not isinstance(exc_info.value, DuplicateError)

    def test_raw_driver_text_is_not_exposed_for_check_failures(self):
        exc = integrity_error("CHECK constraint failed: canonical_pair")

        with pytest.raises(RepositoryError) as exc_info:
            raise_mapped_integrity_error(exc, "Conversation")

        assert "canonical_pair" not in exc_info.value.message


@pytest.mark.asyncio
class TestDbErrorHandler:

    async def test_integrity_error_is_mapped_and_rolled_back(self):
        db = FakeSession()

        with pytest.raises(DuplicateError):
            async with db_error_handler(db, "User"):
                raise integrity_error("UNIQUE constraint failed: users.username")

        assert db.rollbacks == 1

    async def test_app_errors_pass_through_untouched(self):
        db = FakeSession()
        original = NotAuthorizedError()

        with pytest.raises(NotAuthorizedError) as exc_info:
            async with db_error_handler(db, "Message"):
                raise original

        assert exc_info.value is original
        assert db.rollbacks == 0

    async def test_driver_failures_become_storage_unavailable(self):
        db = FakeSession()

        with pytest.raises(StorageUnavailableError) as exc_info:
            async with db_error_handler(db, "Message"):
                raise OperationalError("SELECT 1", {}, Exception("could not connect to 10.0.0.5"))

        err = exc_info.value
        assert err.error_code == "storage_unavailable"
        assert err.http_status() == 503
        assert "10.0.0.5" not in str(err)
        assert db.rollbacks == 1

    async def test_clean_block_does_nothing(self):
        db = FakeSession()

        async with db_error_handler(db, "User"):
            pass

        assert db.rollbacks == 0
