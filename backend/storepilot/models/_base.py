"""Base models for the application."""

import uuid

from sqlalchemy import UUID, Column, DateTime
from sqlalchemy.ext.declarative import declared_attr
from sqlalchemy.orm import DeclarativeBase

from storepilot.core.datetime_utils import utc_now_naive


class Base(DeclarativeBase):
    """Base class for all models."""

    id = Column(UUID, primary_key=True, default=uuid.uuid4, nullable=False)
    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    modified_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive, nullable=False)


class AccountBase(Base):
    """Base class for tables owned by an account.

    Accounts live in the upstream identity service, so account_id carries no foreign key.
    """

    __abstract__ = True

    @declared_attr
    def account_id(cls):
        """Account ID column."""
        return Column(UUID, nullable=False, index=True)
