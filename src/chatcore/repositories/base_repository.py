"""
Base repository class providing common database operations.

Repositories never commit: they `flush()` so generated keys and server
defaults are available, and the request (or the test) decides whether the
unit of work is committed or rolled back.
"""
import time
import logging
from typing import TypeVar, Generic, Type, Any

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from chatcore.database.base import Base
from chatcore.exceptions.base import (
    RepositoryError,
    DuplicateError,
    InvalidFieldError,
)
from chatcore.exceptions.mapper import db_error_handler
from chatcore.validators.exception_validators import (
    find_unknown_model_kwargs,
    get_required_columns,
    find_unique_conflicts,
)

ModelType = TypeVar("ModelType", bound=Base)

logger = logging.getLogger(__name__)


class BaseRepository(Generic[ModelType]):
    """
    Generic base repository providing common CRUD operations.

    Type Parameters:
        ModelType: The SQLAlchemy model class this repository manages.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        """
        Args:
            model: The SQLAlchemy model class (not an instance), used to build queries.
            db: The request-scoped async session.
        """
        self.model = model
        self.db = db

    @property
    def model_name(self) -> str:
        return self.model.__name__

    async def create(self, **kwargs) -> ModelType:
        """
        Validate `kwargs` against the model and insert a new row.

        Logging:
        - DEBUG: start event with the provided keys (not values).
        - INFO: expected domain errors (invalid fields, missing required, duplicate).
        - INFO: success event with created id and duration_ms.

        Raises:
            InvalidFieldError: unknown attribute names.
            RepositoryError: a required column is missing.
            DuplicateError: a unique column set already exists.
            StorageUnavailableError: the database failed.
        """
        logger.debug(
            "repo.create.start",
            extra={"model": self.model_name, "operation": "create", "provided_keys": sorted(kwargs)},
        )

        unknown = find_unknown_model_kwargs(self.model, kwargs)
        if unknown:
            logger.info(
                "repo.create.invalid_fields",
                extra={"model": self.model_name, "operation": "create", "invalid_fields": sorted(unknown)},
            )
            raise InvalidFieldError(f"Unknown field(s) for {self.model_name}: {', '.join(unknown)}", fields=unknown)

        missing = [c for c in get_required_columns(self.model) if kwargs.get(c) is None]
        if missing:
            logger.info(
                "repo.create.missing_required",
                extra={"model": self.model_name, "operation": "create", "missing_fields": sorted(missing)},
            )
            raise RepositoryError(f"Missing required field(s): {', '.join(missing)} for {self.model_name}", fields=missing)

        start = time.perf_counter()

        async with db_error_handler(self.db, self.model_name):
            conflicts = await find_unique_conflicts(self.db, self.model, kwargs)
            if conflicts:
                logger.info(
                    "repo.create.duplicate_precheck",
                    extra={"model": self.model_name, "operation": "create", "conflict_fields": sorted(conflicts)},
                )
                raise DuplicateError(
                    f"{self.model_name} already exists for field(s): {', '.join(sorted(conflicts))}",
                    fields=sorted(conflicts),
                )

            entity = self.model(**kwargs)
            self.db.add(entity)
            await self.db.flush()
            await self.db.refresh(entity)

        logger.info(
            "repo.create.success",
            extra={
                "model": self.model_name,
                "operation": "create",
                "id": getattr(entity, "id", None),
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return entity

    async def get_by_id(self, entity_id: int) -> ModelType | None:
        """
        Return the entity with primary key `entity_id`, or None.
        """
        async with db_error_handler(self.db, self.model_name):
            result = await self.db.execute(select(self.model).where(self.model.id == entity_id))
            entity = result.scalar_one_or_none()

        logger.debug("repo.get_by_id", extra={"model": self.model_name, "id": entity_id, "found": entity is not None})
        return entity

    async def count(self, **filters: Any) -> int:
        """
        Count rows, optionally filtered by equality on model attributes
        (e.g. `count(read=False)`). `None` values are ignored.
        """
        unknown = find_unknown_model_kwargs(self.model, filters)
        if unknown:
            raise InvalidFieldError(f"Unknown field(s) for {self.model_name}: {', '.join(unknown)}", fields=unknown)

        query = select(func.count(self.model.id))
        for field, value in filters.items():
            if value is not None:
                query = query.where(getattr(self.model, field) == value)

        async with db_error_handler(self.db, self.model_name):
            result = await self.db.execute(query)
            return result.scalar() or 0
