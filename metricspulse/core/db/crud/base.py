from datetime import datetime, timezone
from typing import Any, Generic, Sequence, Type, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import SQLColumnExpression, and_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.sql import Select

from metricspulse.core.exceptions.types import DatabaseException

T = TypeVar("T")


def dialect_insert(session: AsyncSession):
    """
    Return the dialect-specific ``insert`` construct for the session's bind.

    Both PostgreSQL and SQLite support ``ON CONFLICT`` clauses, which the
    generic ``sqlalchemy.insert`` does not expose.
    """
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        return pg_insert
    if dialect_name == "sqlite":
        return sqlite_insert
    raise DatabaseException(f"Unsupported database dialect for upsert: {dialect_name}")


class BaseDB(Generic[T]):
    def __init__(self, model: Type[T]):
        self.model = model

    async def get_by_id(
        self, session: AsyncSession, id: UUID, options: list[Any] = []
    ) -> T | None:
        """
        Asynchronously retrieves an instance of the model by its primary key.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            id (UUID): The primary key value of the model instance to retrieve.
            options (list[Any], optional): A list of SQLAlchemy loader options. Defaults to an empty list.

        Returns:
            T | None: The model instance if found, otherwise None.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt: Select = (
                select(self.model)
                .options(*options)
                .where(getattr(self.model, "id") == id)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def get_by_filters(
        self,
        session: AsyncSession,
        filters: dict,
        order_by: list[SQLColumnExpression] | None = None,
        limit: int | None = None,
    ) -> Sequence[T]:
        """
        Asynchronously retrieves records of the model that match the given filters.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            filters (dict): A dictionary of filter conditions to apply to the query.
            order_by (list[SQLColumnExpression] | None, optional): Expressions to order the results by.
            limit (int | None, optional): Max number of records to return.

        Returns:
            Sequence[T]: Instances of the model that match the filters.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).filter_by(**filters)
            if order_by:
                stmt = stmt.order_by(*order_by)
            if limit:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return result.scalars().all()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with filters {filters}: {str(e)}"
            ) from e

    async def get_one_by_filters(self, session: AsyncSession, filters: dict) -> T | None:
        """
        Asynchronously retrieves a single record of the model that matches the given filters.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).filter_by(**filters)
            result = await session.execute(stmt)
            return result.scalars().first()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving one {self.model.__name__} with filters {filters}: {str(e)}"
            ) from e

    async def get_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        order_by: list[Any] | None = None,
        limit: int | None = None,
    ) -> Sequence[T]:
        """
        Asynchronously retrieves records of the model that match the given conditions.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            conditions (Sequence[SQLColumnExpression]): SQLAlchemy expressions to filter the query.
            order_by (list[Any] | None, optional): Expressions to order the results by.
            limit (int | None, optional): Max number of records to return.

        Returns:
            Sequence[T]: Instances of the model that match the conditions.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).where(and_(*conditions))
            if order_by:
                stmt = stmt.order_by(*order_by)
            if limit:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return result.scalars().all()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def create(
        self,
        session: AsyncSession,
        data: dict,
        commit_self: bool = True,
    ) -> T:
        """
        Asynchronously creates and persists a new instance of the model.

        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session to use.
            data (dict): Fields and values to initialize the model instance.
            commit_self (bool, optional): If True, commits the transaction; otherwise only flushes.

        Returns:
            T: The newly created model instance.

        Raises:
            DatabaseException: If an error occurs while creating the instance.
        """
        try:
            obj = self.model(**data)
            session.add(obj)

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            await session.refresh(obj)
            return obj
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error creating {self.model.__name__}: {str(e)}"
            ) from e

    async def upsert(
        self,
        session: AsyncSession,
        data: dict[str, Any],
        unique_fields: list[str],
        exclude_from_update: list[str] | None = None,
        commit_self: bool = True,
    ) -> tuple[T, bool]:
        """
        Upsert a record using INSERT ... ON CONFLICT ... DO UPDATE.

        Inserts a new record if none exists, or updates the existing record on
        conflict over ``unique_fields``.

        Args:
            session: Database session.
            data: Dictionary of all fields to set on the record.
            unique_fields: Field names forming the unique constraint used for
                conflict detection.
            exclude_from_update: Fields to leave untouched on conflict. ``id``,
                ``created_at`` and the unique fields are always excluded.
            commit_self: Whether to commit after the operation.

        Returns:
            A tuple of (instance, created).

        Raises:
            DatabaseException: If an error occurs during the operation.
            ValueError: If any unique_field is missing from data.
        """
        for field in unique_fields:
            if field not in data:
                raise ValueError(
                    f"Unique field '{field}' must be present in data for upsert"
                )

        try:
            default_exclude = {"id", "created_at", *unique_fields}
            if exclude_from_update:
                default_exclude.update(exclude_from_update)

            now = datetime.now(timezone.utc)
            insert_data = {k: v for k, v in data.items() if k != "id"}
            insert_data["id"] = data.get("id") or uuid4()
            if hasattr(self.model, "created_at") and "created_at" not in insert_data:
                insert_data["created_at"] = now
            if hasattr(self.model, "updated_at") and "updated_at" not in insert_data:
                insert_data["updated_at"] = now

            update_set = {
                k: v for k, v in insert_data.items() if k not in default_exclude
            }
            if hasattr(self.model, "updated_at"):
                update_set["updated_at"] = now

            insert = dialect_insert(session)
            stmt = (
                insert(self.model)
                .values(**insert_data)
                .on_conflict_do_update(
                    index_elements=unique_fields,
                    set_=update_set,
                )
                .returning(self.model)
                .execution_options(populate_existing=True)
            )

            result = await session.execute(stmt)
            instance = result.scalar_one()

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            # A fresh insert keeps the id generated above
            created = getattr(instance, "id", None) == insert_data.get("id")
            return instance, created

        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error upserting {self.model.__name__}: {str(e)}"
            ) from e
