"""
Database manager for Budgetbook application.

All database CRUD operations are performed here using PeeWee ORM.
This module contains PURE CRUD functions - no validation, no logic.
All data preparation and validation happens in business_logic.py.
"""

import logging
import time
from peewee import SqliteDatabase, DoesNotExist, IntegrityError, OperationalError, fn
from playhouse.pool import PooledMySQLDatabase
from database_model import (
    database,
    ALL_MODELS,
    Category,
    BudgetMonth,
    BudgetItem,
    Configuration
)

logger = logging.getLogger(__name__)

# Connection retry configuration
MAX_RETRIES = 3
RETRY_DELAY = 1  # seconds

# Query performance tracking
ENABLE_QUERY_METRICS = True
SLOW_QUERY_THRESHOLD = 1.0  # Log queries taking longer than 1 second

# Batch size for carry-forward inserts (SQLite variable limit)
INSERT_BATCH_SIZE = 100


# ==================== INITIALIZATION ====================

def initialize_connection(engine: str = "sqlite",
                          path: str = "./budgetbook.db",
                          host: str = "localhost", port: int = 3306,
                          database_name: str = "budgetbook",
                          user: str = "budgetbook_user",
                          password: str = "budgetbook_pass",
                          pool_size: int = 10,
                          pool_recycle: int = 3600) -> None:
    """
    Initialize database connection.

    MySQL uses connection pooling so that each request reuses a connection
    instead of opening a new one. SQLite is used for single-user local setups
    and for tests.

    Args:
        engine: 'sqlite' or 'mysql'
        path: SQLite database file (sqlite only)
        host: Database host (mysql only)
        port: Database port (mysql only)
        database_name: Database name (mysql only)
        user: Database user (mysql only)
        password: Database password (mysql only)
        pool_size: Maximum number of connections in pool (default: 10)
        pool_recycle: Recycle connections after this many seconds (default: 3600)
    """
    try:
        if engine == "mysql":
            target = PooledMySQLDatabase(
                database_name,
                host=host,
                port=port,
                user=user,
                password=password,
                charset='utf8mb4',
                max_connections=pool_size,
                stale_timeout=pool_recycle,
                timeout=10  # Connection timeout
            )
            description = f"{host}:{port}/{database_name} (pool_size={pool_size}, recycle={pool_recycle}s)"
        elif engine == "sqlite":
            target = SqliteDatabase(path, pragmas={'foreign_keys': 1})
            description = f"sqlite:{path}"
        else:
            raise ValueError(f"Unsupported database engine: {engine}")

        if database.obj is not None and not database.is_closed():
            database.close()
        database.initialize(target)

        if database.is_closed():
            database.connect()

        logger.info(f"Database connection initialized: {description}")
    except Exception as e:
        logger.error(f"Failed to initialize database connection: {e}")
        raise


def check_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns True if connection is alive, False otherwise.
    """
    try:
        database.execute_sql('SELECT 1')
        return True
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


def reconnect() -> bool:
    """
    Attempt to reconnect to database.

    Returns True if reconnection successful, False otherwise.
    """
    try:
        if not database.is_closed():
            database.close()
        database.connect()
        logger.info("Database reconnection successful")
        return True
    except Exception as e:
        logger.error(f"Database reconnection failed: {e}")
        return False


def execute_with_retry(operation, *args, **kwargs):
    """
    Execute database operation with retry logic for transient failures.

    Args:
        operation: Function to execute
        *args, **kwargs: Arguments to pass to operation

    Returns:
        Result of operation

    Raises:
        Exception: If all retries exhausted
    """
    last_exception = None

    for attempt in range(MAX_RETRIES):
        try:
            if attempt > 0 and not check_connection():
                logger.info("Connection unhealthy, attempting reconnect...")
                reconnect()

            return operation(*args, **kwargs)

        except OperationalError as e:
            last_exception = e
            logger.warning(f"Database operation failed (attempt {attempt + 1}/{MAX_RETRIES}): {e}")

            if attempt < MAX_RETRIES - 1:
                time.sleep(RETRY_DELAY)
                reconnect()
            else:
                logger.error(f"Database operation failed after {MAX_RETRIES} attempts")
                raise last_exception

        except IntegrityError as e:
            # Constraint violations are left to the caller to handle
            logger.warning(f"Integrity error: {e}")
            raise

        except Exception as e:
            # Non-retryable error, raise immediately
            logger.error(f"Non-retryable database error: {e}")
            raise

    raise last_exception


def create_tables_if_not_exist() -> None:
    """
    Create all tables if they don't exist.

    Note: PeeWee's safe=True checks if tables exist, but may still try to
    add indexes. We catch duplicate key errors which can happen if tables
    already exist with indexes from a previous run.
    """
    try:
        database.create_tables(ALL_MODELS, safe=True)
        logger.info("Database tables created/verified")
    except OperationalError as e:
        if "Duplicate key name" in str(e) or "Duplicate entry" in str(e):
            logger.info("Database tables already exist with indexes - skipping creation")
        else:
            logger.error(f"Failed to create tables: {e}")
            raise
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise


def close_connection() -> None:
    """Close database connection."""
    if not database.is_closed():
        database.close()
        logger.info("Database connection closed")


def atomic():
    """
    Open a transaction (or a savepoint when already inside one).

    Used by the importer to isolate each record while keeping the whole
    batch in one outer transaction.
    """
    return database.atomic()


def _execute_transaction(func, *args, **kwargs):
    """
    Inner function to execute database operation in transaction.

    This is separated out so it can be wrapped by execute_with_retry.
    """
    with database.atomic():
        return func(*args, **kwargs)


def with_transaction(func):
    """
    Decorator to wrap database write operations in transactions with retry logic.

    Ensures atomicity - either all changes succeed or all are rolled back.
    Automatically retries on transient connection failures (OperationalError).
    """
    def wrapper(*args, **kwargs):
        try:
            return execute_with_retry(_execute_transaction, func, *args, **kwargs)
        except IntegrityError:
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__} after all retries: {e}")
            raise
    return wrapper


def with_retry(func):
    """
    Decorator to wrap database read operations with retry logic.

    Automatically retries on transient connection failures (OperationalError).
    Used for SELECT queries to ensure connection resilience.
    """
    def wrapper(*args, **kwargs):
        try:
            return execute_with_retry(func, *args, **kwargs)
        except IntegrityError:
            raise
        except Exception as e:
            logger.error(f"Failed to {func.__name__} after all retries: {e}")
            raise
    return wrapper


def log_query_time(func):
    """
    Decorator to log query execution time for performance monitoring.

    Logs warning for queries exceeding SLOW_QUERY_THRESHOLD.
    """
    def wrapper(*args, **kwargs):
        if not ENABLE_QUERY_METRICS:
            return func(*args, **kwargs)

        start_time = time.time()
        try:
            result = func(*args, **kwargs)
            elapsed = time.time() - start_time

            if elapsed > SLOW_QUERY_THRESHOLD:
                logger.warning(f"Slow query in {func.__name__}: {elapsed:.3f}s")
            else:
                logger.debug(f"Query {func.__name__}: {elapsed:.3f}s")

            return result
        except Exception as e:
            elapsed = time.time() - start_time
            logger.error(f"Query failed in {func.__name__} after {elapsed:.3f}s: {e}")
            raise
    return wrapper


# ==================== CATEGORY CRUD ====================

@with_transaction
def create_category(data: dict) -> Category:
    """Create category with provided data dict."""
    category = Category(**data)
    category.save(force_insert=True)
    logger.info(f"Created category: {category.name} ({category.id})")
    return category


@with_retry
def get_category_by_id(category_id: str) -> Category:
    """Get category by ID."""
    try:
        return Category.get(Category.id == category_id)
    except DoesNotExist:
        return None


@with_retry
def get_all_categories() -> list:
    """Get all categories ordered for presentation."""
    return list(Category.select().order_by(Category.type, Category.sort_order, Category.name))


@with_retry
def get_categories_by_sort_order() -> list:
    """Get all categories ordered by sort_order, then name."""
    return list(Category.select().order_by(Category.sort_order, Category.name, Category.id))


@with_retry
def category_exists_by_name(name: str) -> bool:
    """Check if category with name exists (case-insensitive)."""
    return Category.select().where(fn.LOWER(Category.name) == name.lower()).exists()


@with_transaction
def update_category(category_id: str, data: dict) -> Category:
    """Update category fields."""
    category = Category.get(Category.id == category_id)
    for key, value in data.items():
        setattr(category, key, value)
    category.save()
    logger.info(f"Updated category: {category.name} ({category.id})")
    return category


@with_transaction
def delete_category(category_id: str) -> int:
    """
    Delete category and every budget item that references it.

    Returns number of deleted budget items.
    """
    category = Category.get(Category.id == category_id)
    category_name = category.name
    item_count = BudgetItem.delete().where(BudgetItem.category_id == category_id).execute()
    category.delete_instance()
    logger.info(f"Deleted category: {category_name} ({category_id}) with {item_count} budget items")
    return item_count


# ==================== BUDGET MONTH CRUD ====================

@with_transaction
def create_budget_month(data: dict) -> BudgetMonth:
    """Create budget month with provided data dict."""
    budget_month = BudgetMonth(**data)
    budget_month.save(force_insert=True)
    logger.info(f"Created budget month: {budget_month.year}/{budget_month.month} ({budget_month.id})")
    return budget_month


@with_retry
def get_budget_month(year: int, month: int, owner_id: str):
    """Get budget month by (year, month, owner). Returns None if missing."""
    return BudgetMonth.get_or_none(
        (BudgetMonth.year == year) &
        (BudgetMonth.month == month) &
        (BudgetMonth.owner_id == owner_id)
    )


@with_retry
def get_budget_month_by_id(month_id: str):
    """Get budget month by ID."""
    try:
        return BudgetMonth.get(BudgetMonth.id == month_id)
    except DoesNotExist:
        return None


@with_retry
def get_budget_months_in_range(start: tuple, end: tuple, owner_id: str) -> list:
    """
    Get budget months between two (year, month) pairs, inclusive.

    Ordered chronologically.
    """
    start_key = start[0] * 12 + start[1]
    end_key = end[0] * 12 + end[1]
    month_key = BudgetMonth.year * 12 + BudgetMonth.month
    return list(BudgetMonth
                .select()
                .where(
                    (BudgetMonth.owner_id == owner_id) &
                    (month_key >= start_key) &
                    (month_key <= end_key)
                )
                .order_by(BudgetMonth.year, BudgetMonth.month))


# ==================== BUDGET ITEM CRUD ====================

@with_transaction
def create_budget_item(data: dict) -> BudgetItem:
    """Create budget item with provided data dict."""
    item = BudgetItem(**data)
    item.save(force_insert=True)
    logger.info(f"Created budget item: {item.name} ({item.id})")
    return item


@with_transaction
def create_budget_items(rows: list) -> int:
    """
    Insert many budget items at once.

    Args:
        rows: List of complete budget item data dicts

    Returns:
        Number of inserted rows
    """
    for start in range(0, len(rows), INSERT_BATCH_SIZE):
        BudgetItem.insert_many(rows[start:start + INSERT_BATCH_SIZE]).execute()
    logger.info(f"Created {len(rows)} budget items in batch")
    return len(rows)


@with_retry
def get_budget_item_by_id(item_id: str):
    """Get budget item by ID."""
    try:
        return BudgetItem.get(BudgetItem.id == item_id)
    except DoesNotExist:
        return None


@with_retry
@log_query_time
def get_budget_items_by_month(month_id: str) -> list:
    """
    Get all items for a budget month joined with their category.

    Ordered by creation time, then name.
    """
    return list(BudgetItem
                .select(BudgetItem, Category)
                .join(Category)
                .where(BudgetItem.budget_month_id == month_id)
                .order_by(BudgetItem.created_at, BudgetItem.name, BudgetItem.id))


@with_transaction
def update_budget_item(item_id: str, data: dict) -> BudgetItem:
    """Update budget item fields."""
    item = BudgetItem.get(BudgetItem.id == item_id)
    for key, value in data.items():
        setattr(item, key, value)
    item.save()
    logger.info(f"Updated budget item: {item.id}")
    return item


@with_transaction
def delete_budget_item(item_id: str) -> None:
    """Delete budget item by ID."""
    item = BudgetItem.get(BudgetItem.id == item_id)
    item.delete_instance()
    logger.info(f"Deleted budget item: {item_id}")


# ==================== CONFIGURATION CRUD ====================

@with_transaction
def create_configuration(data: dict) -> Configuration:
    """Create configuration entry with provided data dict."""
    config = Configuration(**data)
    config.save(force_insert=True)
    logger.info(f"Created configuration: {config.key}")
    return config


@with_retry
def get_configuration_by_key(key: str) -> Configuration:
    """Get configuration by key."""
    try:
        return Configuration.get(Configuration.key == key)
    except DoesNotExist:
        return None


# ==================== SEED DATA ====================

@with_transaction
def seed_initial_data(rows: list) -> None:
    """
    Insert the default categories.

    Args:
        rows: Complete category data dicts prepared by business_logic.py
    """
    created = 0
    for data in rows:
        if not Category.select().where(fn.LOWER(Category.name) == data['name'].lower()).exists():
            Category.create(**data)
            created += 1
    logger.info(f"Database seeded with {created} default categories")
