"""Common test fixtures and configuration for pytest.

Lifecycle unit tests run without a database or Stripe: the repository and the billing
provider are replaced by in-memory fakes from tests/fixtures/common.py. Repository
tests use a SQLite database from tests/fixtures/database.py.
"""

import pytest

from storepilot.platform.billing.account_locks import AccountLockRegistry

# Import all fixtures so they are automatically available for all tests
from tests.fixtures.common import (  # noqa
    account_id,
    api_context,
    basic_plan,
    fake_provider,
    fake_repository,
    lifecycle,
    mock_db,
    pro_plan,
)
from tests.fixtures.database import db_engine, db_session, session_factory  # noqa


@pytest.fixture
def lock_registry():
    """Provide a fresh per-account lock registry."""
    return AccountLockRegistry()
