"""Shared fixtures: every test gets its own SQLite database file."""

import pytest
import business_logic
import database_manager as db


@pytest.fixture(scope="function")
def setup_test_db(tmp_path):
    """Setup test database before each test, teardown after."""
    business_logic.initialize_database({
        'db_engine': 'sqlite',
        'db_path': str(tmp_path / "budgetbook_test.db")
    })

    yield

    db.close_connection()
    business_logic.DATABASE_CONFIGURED = False


@pytest.fixture
def category_ids(setup_test_db):
    """Seeded category ids keyed by name."""
    return {c['name']: c['id'] for c in business_logic.get_all_categories()}
