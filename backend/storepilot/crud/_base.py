"""Base CRUD class for billing tables."""

from typing import Any, Generic, Optional, Type, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot.db.unit_of_work import UnitOfWork
from storepilot.models._base import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """CRUD base class.

    Writes commit on their own unless a UnitOfWork is passed, in which case the caller
    owns the transaction.
    """

    def __init__(self, model: Type[ModelType]):
        """CRUD object with default methods.

        Args:
        ----
            model (Type[ModelType]): The model to be used in the CRUD operations.

        """
        self.model = model

    async def get(self, db: AsyncSession, id: UUID) -> Optional[ModelType]:
        """Get a single object by ID.

        Args:
        ----
            db (AsyncSession): The database session.
            id (UUID): The UUID of the object to get.

        Returns:
        -------
            Optional[ModelType]: The object with the given ID.

        """
        result = await db.execute(select(self.model).where(self.model.id == id))
        return result.unique().scalar_one_or_none()

    async def create(
        self, db: AsyncSession, *, obj_in: Union[CreateSchemaType, dict], uow: UnitOfWork = None
    ) -> ModelType:
        """Create a new object.

        Args:
        ----
            db (AsyncSession): The database session.
            obj_in (CreateSchemaType): The object to create.
            uow (UnitOfWork, optional): Unit of work for transaction control.
                If not provided, auto-commits the transaction.

        Returns:
        -------
            ModelType: The created object.

        """
        if not isinstance(obj_in, dict):
            obj_in = obj_in.model_dump()
        db_obj = self.model(**obj_in)
        db.add(db_obj)

        if uow is None:
            await db.commit()
        else:
            await db.flush()

        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, dict[str, Any]],
        uow: UnitOfWork = None,
    ) -> ModelType:
        """Update an object.

        Args:
        ----
            db (AsyncSession): The database session.
            db_obj (ModelType): The object to update.
            obj_in (Union[UpdateSchemaType, Dict[str, Any]]): The new object data.
            uow (UnitOfWork, optional): Unit of work for transaction control.

        Returns:
        -------
            ModelType: The updated object

        """
        if not isinstance(obj_in, dict):
            obj_in = obj_in.model_dump(exclude_unset=True)

        for key, value in obj_in.items():
            if hasattr(db_obj, key):
                setattr(db_obj, key, value)
        db.add(db_obj)

        if uow is None:
            await db.commit()
        else:
            await db.flush()

        return db_obj

    async def remove(
        self, db: AsyncSession, *, id: UUID, uow: UnitOfWork = None
    ) -> Optional[ModelType]:
        """Delete an object.

        Args:
        ----
            db (AsyncSession): The database session.
            id (UUID): The UUID of the object to delete.
            uow (UnitOfWork, optional): Unit of work for transaction control.

        Returns:
        -------
            Optional[ModelType]: The deleted object.

        """
        result = await db.execute(select(self.model).where(self.model.id == id))
        db_obj = result.unique().scalar_one_or_none()
        if db_obj is None:
            return None

        await db.delete(db_obj)

        if uow is None:
            await db.commit()

        return db_obj
