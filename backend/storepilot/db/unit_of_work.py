"""Unit of work for database transactions."""

from sqlalchemy.ext.asyncio import AsyncSession


class UnitOfWork:
    """Unit of work for database transactions.

    Usage:
    -----
    ```python

    async with UnitOfWork(db) as uow:
        subscription = await crud.subscription.get_live_by_account(
            db, account_id, for_update=True
        )
        subscription.cancel_at_period_end = True
        await crud.billing_event.create(db, obj_in=event_in, uow=uow)

    # Committed when the block exits, rolled back if it raises.
    ```

    """

    def __init__(self, session: AsyncSession):
        """Initialize the UnitOfWork with a database session.

        Args:
        ----
            session (AsyncSession): The database session.

        """
        self.session = session
        self._committed = False
        self._rolledback = False

    @property
    def committed(self) -> bool:
        """Whether the transaction has been committed."""
        return self._committed

    async def commit(self) -> None:
        """Commit the transaction, unless it has already ended."""
        if not self._committed and not self._rolledback:
            await self.session.commit()
            self._committed = True

    async def rollback(self) -> None:
        """Roll the transaction back, unless it has already ended."""
        if not self._committed and not self._rolledback:
            await self.session.rollback()
            self._rolledback = True

    async def __aenter__(self) -> "UnitOfWork":
        """Enter the context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Commit on success, roll back if the block raised."""
        if exc_type is not None:
            await self.rollback()
        else:
            await self.commit()
