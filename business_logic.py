"""
Business logic for Budgetbook application.

All validation, business rules, and data preparation happens here.
This module prepares complete data dicts with UIDs, timestamps, and NULL conversion
before passing to database_manager.py for pure CRUD operations.

DO NOT call database methods directly - always use database_manager module.

Main responsibilities:
- Month lifecycle: lazily create budget months and carry items forward
- Aggregation: per item, per category and per month totals and variances
- Category and budget item CRUD with validation
"""

import logging
import os
import json
import time
from datetime import datetime, date, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from dateutil.relativedelta import relativedelta
from peewee import IntegrityError

from database_model import DEFAULT_OWNER
from utils import (
    CENTS, ZERO, MAX_AMOUNT, generate_uid, empty_to_none, validate_month, validate_year,
    previous_month, format_month_year, derive_display_name, to_cents,
    parse_flexible_date
)
import database_manager as db

logger = logging.getLogger(__name__)

# Database configuration state
DATABASE_CONFIGURED = False

# Try multiple paths for database config file (Docker vs local development)
DB_CONFIG_PATHS = [
    "/app/data/budgetbook_db_config.json",  # Docker container path
    "./budgetbook_db_config.json",           # Local development (project root)
    "./data/budgetbook_db_config.json"       # Local development (data subdirectory)
]

DEFAULT_SQLITE_PATH = "./budgetbook.db"

CATEGORY_TYPES = ('revenue', 'expense')

# Category names that can never be deleted
PROTECTED_CATEGORY_NAMES = ('revenue', 'other')

DEFAULT_CATEGORIES = [
    ('revenue', 'Revenue', 'revenue', 0),
    ('housing', 'Housing', 'expense', 1),
    ('transportation', 'Transportation', 'expense', 2),
    ('food', 'Food', 'expense', 3),
    ('other', 'Other', 'expense', 4),
]

MAX_HISTORY_MONTHS = 24


# ==================== ERRORS ====================

class ValidationError(ValueError):
    """
    Request data failed validation.

    Carries a list of field-level messages: [{"field": ..., "message": ...}]
    """

    def __init__(self, errors: list):
        self.errors = errors
        super().__init__("; ".join(f"{e['field']}: {e['message']}" for e in errors))


class NotFoundError(ValueError):
    """Referenced item, category or month does not exist."""


def _field_error(field: str, message: str) -> ValidationError:
    return ValidationError([{'field': field, 'message': message}])


# ==================== INITIALIZATION ====================

def _get_config_file_path() -> str:
    """
    Get the path to the database configuration file.

    Returns the first existing path from DB_CONFIG_PATHS, or the path a new
    file would be written to.
    """
    for path in DB_CONFIG_PATHS:
        if os.path.exists(path):
            return path

    if os.path.exists("/app/data"):
        return DB_CONFIG_PATHS[0]  # Docker
    else:
        return DB_CONFIG_PATHS[1]  # Local dev


def load_database_config() -> Optional[dict]:
    """
    Load database configuration from budgetbook_db_config.json file.

    Returns:
        dict: Database configuration with keys: db_engine, db_path, db_host,
              db_port, db_name, db_user, db_password, db_pool_size
        None if file doesn't exist
    """
    config_file = _get_config_file_path()

    if not os.path.exists(config_file):
        return None

    try:
        with open(config_file, 'r') as f:
            config = json.load(f)
            logger.info(f"Database configuration loaded from {config_file}")
            return config
    except Exception as e:
        logger.error(f"Failed to read {config_file}: {e}")
        return None


def initialize_database(config: Optional[dict] = None):
    """
    Initialize database connection, create tables and seed default categories.

    Without a config file the app runs on a local SQLite database
    (BUDGETBOOK_DB_PATH or ./budgetbook.db).
    """
    global DATABASE_CONFIGURED

    try:
        if config is None:
            config = load_database_config()

        if config is None:
            config = {}
            logger.info("No budgetbook_db_config.json found - using local SQLite database")

        engine = config.get('db_engine', 'sqlite')
        if engine == 'mysql':
            db.initialize_connection(
                engine='mysql',
                host=config.get('db_host', 'localhost'),
                port=int(config.get('db_port', 3306)),
                database_name=config.get('db_name', 'budgetbook'),
                user=config.get('db_user', 'budgetbook_user'),
                password=config.get('db_password', 'budgetbook_pass'),
                pool_size=int(config.get('db_pool_size', 10))
            )
        else:
            path = config.get('db_path') or os.getenv('BUDGETBOOK_DB_PATH', DEFAULT_SQLITE_PATH)
            db.initialize_connection(engine='sqlite', path=path)

        db.create_tables_if_not_exist()
        _seed_default_categories()
        DATABASE_CONFIGURED = True
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        DATABASE_CONFIGURED = False
        raise


def _seed_default_categories() -> None:
    """Seed default categories once, tracked by the 'database_seeded' flag."""
    seeded_config = db.get_configuration_by_key('database_seeded')
    if seeded_config and seeded_config.value == 'true':
        return

    now = datetime.now()
    rows = [{
        'id': generate_uid(),
        'name': name,
        'display_name': display_name,
        'type': category_type,
        'sort_order': sort_order,
        'created_at': now
    } for name, display_name, category_type, sort_order in DEFAULT_CATEGORIES]
    db.seed_initial_data(rows)

    db.create_configuration({
        'id': generate_uid(),
        'key': 'database_seeded',
        'value': 'true',
        'created_at': now,
        'updated_at': now
    })


# ==================== CATEGORY BUSINESS LOGIC ====================

def category_to_dict(category) -> dict:
    return {
        'id': category.id,
        'name': category.name,
        'display_name': category.display_name,
        'type': category.type,
        'sort_order': category.sort_order
    }


def get_all_categories() -> list:
    """Get all categories ordered by type, sort order and name."""
    try:
        return [category_to_dict(c) for c in db.get_all_categories()]
    except Exception as e:
        logger.error(f"Failed to get categories: {e}")
        raise


def _validate_sort_order(sort_order, errors: list):
    if isinstance(sort_order, bool) or not isinstance(sort_order, int):
        try:
            sort_order = int(str(sort_order))
        except (TypeError, ValueError):
            errors.append({'field': 'sort_order', 'message': 'Sort order must be an integer'})
            return None
    if sort_order < 0:
        errors.append({'field': 'sort_order', 'message': 'Sort order must be greater than or equal to 0'})
        return None
    return sort_order


def create_category(name: str, type: str, display_name: Optional[str] = None,
                    sort_order: int = 0) -> dict:
    """
    Create new category.

    Business logic:
    - Validate name not empty
    - Validate type in ['revenue', 'expense']
    - Validate sort_order is a non-negative integer
    - Check uniqueness: category name doesn't exist (case-insensitive)
    - Derive display name from name when not given
    - Generate UID and timestamp
    """
    try:
        errors = []
        name = name.strip() if isinstance(name, str) else None
        if not name:
            errors.append({'field': 'name', 'message': 'Category name is required'})

        if type not in CATEGORY_TYPES:
            errors.append({'field': 'type', 'message': "Category type must be 'revenue' or 'expense'"})

        sort_order = _validate_sort_order(sort_order, errors)

        display_name = empty_to_none(display_name)
        if display_name is not None and not isinstance(display_name, str):
            errors.append({'field': 'display_name', 'message': 'Display name must be text'})

        if errors:
            raise ValidationError(errors)

        if db.category_exists_by_name(name):
            raise _field_error('name', f"Category '{name}' already exists")

        category_data = {
            'id': generate_uid(),
            'name': name,
            'display_name': display_name.strip() if display_name else derive_display_name(name),
            'type': type,
            'sort_order': sort_order,
            'created_at': datetime.now()
        }

        category = db.create_category(category_data)
        logger.info(f"Business logic: Created category {name}")

        return category_to_dict(category)
    except Exception as e:
        logger.error(f"Failed to create category: {e}")
        raise


def update_category(category_id: str, data: dict) -> dict:
    """
    Update category.

    Business logic:
    - Validate category_id exists
    - Only name, display_name, type and sort_order can change
    - Protected categories keep their name and type
    - New name must not conflict with another category (case-insensitive)
    """
    try:
        category = db.get_category_by_id(category_id)
        if not category:
            raise NotFoundError(f"Category {category_id} not found")

        errors = []
        changes = {}
        protected = category.name.lower() in PROTECTED_CATEGORY_NAMES

        if 'name' in data:
            name = data['name'].strip() if isinstance(data['name'], str) else None
            if not name:
                errors.append({'field': 'name', 'message': 'Category name is required'})
            elif name != category.name:
                if protected:
                    errors.append({'field': 'name', 'message': f"Category '{category.name}' is protected and cannot be renamed"})
                elif name.lower() != category.name.lower() and db.category_exists_by_name(name):
                    errors.append({'field': 'name', 'message': f"Category '{name}' already exists"})
                else:
                    changes['name'] = name

        if 'display_name' in data:
            display_name = empty_to_none(data['display_name'])
            if not isinstance(display_name, str):
                errors.append({'field': 'display_name', 'message': 'Display name is required'})
            else:
                changes['display_name'] = display_name.strip()

        if 'type' in data and data['type'] != category.type:
            if data['type'] not in CATEGORY_TYPES:
                errors.append({'field': 'type', 'message': "Category type must be 'revenue' or 'expense'"})
            elif protected:
                errors.append({'field': 'type', 'message': f"Category '{category.name}' is protected and cannot change type"})
            else:
                changes['type'] = data['type']

        if 'sort_order' in data:
            sort_order = _validate_sort_order(data['sort_order'], errors)
            if sort_order is not None:
                changes['sort_order'] = sort_order

        if errors:
            raise ValidationError(errors)

        if changes:
            category = db.update_category(category_id, changes)
            logger.info(f"Business logic: Updated category {category_id}")

        return category_to_dict(category)
    except Exception as e:
        logger.error(f"Failed to update category: {e}")
        raise


def delete_category(category_id: str) -> dict:
    """
    Delete category.

    Business logic:
    - Validate category_id exists
    - Refuse protected categories ('revenue', 'other')
    - Budget items in the category are deleted with it
    """
    try:
        category = db.get_category_by_id(category_id)
        if not category:
            raise NotFoundError(f"Category {category_id} not found")

        if category.name.lower() in PROTECTED_CATEGORY_NAMES:
            raise ValueError(f"Category '{category.name}' is protected and cannot be deleted")

        deleted_items = db.delete_category(category_id)
        logger.info(f"Business logic: Deleted category {category_id}")

        return {'deleted_items': deleted_items}
    except Exception as e:
        logger.error(f"Failed to delete category: {e}")
        raise


# ==================== MONTH LIFECYCLE ====================

def _validate_year_month(year, month) -> None:
    errors = []
    if not validate_year(year):
        errors.append({'field': 'year', 'message': f"Invalid year: {year}"})
    if not validate_month(month):
        errors.append({'field': 'month', 'message': f"Invalid month: {month}"})
    if errors:
        raise ValidationError(errors)


def _create_month_with_carry_forward(year: int, month: int, owner_id: str):
    """
    Create a budget month and copy the previous month's items into it.

    Copies keep name, category, expected amount and due date. Actual amount
    is reset to 0 and is_paid to False. Due dates are not shifted.
    """
    with db.atomic():
        now = datetime.now()
        budget_month = db.create_budget_month({
            'id': generate_uid(),
            'year': year,
            'month': month,
            'owner_id': owner_id,
            'is_active': True,
            'created_at': now
        })

        prev_year, prev_month = previous_month(year, month)
        previous = db.get_budget_month(prev_year, prev_month, owner_id)
        if previous is None:
            logger.info(f"No budget month {prev_year}/{prev_month} to carry forward - {year}/{month} starts empty")
            return budget_month

        previous_items = db.get_budget_items_by_month(previous.id)
        rows = []
        for index, item in enumerate(previous_items):
            # Keep the previous month's ordering
            created_at = now + timedelta(microseconds=index)
            rows.append({
                'id': generate_uid(),
                'budget_month_id': budget_month.id,
                'category_id': item.category_id_id,
                'name': item.name,
                'expected_amount': item.expected_amount,
                'actual_amount': ZERO,
                'due_date': item.due_date,
                'is_paid': False,
                'created_at': created_at,
                'updated_at': created_at
            })

        if rows:
            db.create_budget_items(rows)
        logger.info(f"Carried forward {len(rows)} items from {prev_year}/{prev_month} to {year}/{month}")

        return budget_month


def get_or_create_budget_month(year: int, month: int, owner_id: str = DEFAULT_OWNER) -> tuple:
    """
    Get the budget month for (year, month, owner), creating it when missing.

    Returns:
        (BudgetMonth, created) where created is True if this call created it

    A concurrent request may create the same month between lookup and insert.
    The unique index then rejects our insert and the existing row is returned.
    """
    _validate_year_month(year, month)

    existing = db.get_budget_month(year, month, owner_id)
    if existing:
        return existing, False

    try:
        budget_month = _create_month_with_carry_forward(year, month, owner_id)
    except IntegrityError:
        existing = db.get_budget_month(year, month, owner_id)
        if existing is None:
            raise
        logger.info(f"Budget month {year}/{month} was created concurrently - using existing {existing.id}")
        return existing, False

    logger.info(f"Business logic: Created budget month {year}/{month} ({budget_month.id})")
    return budget_month, True


def resolve_month(year: int, month: int, owner_id: str = DEFAULT_OWNER):
    """Idempotent get-or-create of a budget month. Returns the BudgetMonth."""
    budget_month, _ = get_or_create_budget_month(year, month, owner_id)
    return budget_month


# ==================== AGGREGATION ====================

def calculate_variance(actual: Decimal, expected: Decimal) -> Decimal:
    """Variance is actual minus expected, for revenue and expenses alike."""
    return to_cents(actual - expected)


def calculate_variance_percentage(variance: Decimal, expected: Decimal) -> Decimal:
    """Variance as percentage of expected. 0 when expected is 0."""
    if expected == 0:
        return ZERO
    return (variance / expected * 100).quantize(CENTS, rounding=ROUND_HALF_UP)


def _item_sort_key(item):
    return (item.created_at, item.name, item.id)


def _item_to_dict(item, category) -> dict:
    expected = to_cents(item.expected_amount or 0)
    actual = to_cents(item.actual_amount or 0)
    return {
        'id': item.id,
        'name': item.name,
        'category': category.name,
        'category_id': category.id,
        'expected_amount': expected,
        'actual_amount': actual,
        'variance': calculate_variance(actual, expected),
        'due_date': item.due_date.isoformat() if item.due_date else None,
        'is_paid': bool(item.is_paid)
    }


def build_month_view(year: int, month: int, month_id: Optional[str],
                     categories: list, items: list) -> dict:
    """
    Compute the full month view from raw rows. No side effects.

    Args:
        year: Calendar year of the month
        month: Calendar month (1-12)
        month_id: BudgetMonth id, or None for a month that was never opened
        categories: All Category rows
        items: BudgetItem rows of the month, each joined with its Category

    Returns:
        Dict with revenue_items, expense_categories and totals. All amounts
        are Decimal with two decimal places.
    """
    revenue_items = []
    items_by_category = {}

    for item in sorted(items, key=_item_sort_key):
        category = item.category_id
        if category.type == 'revenue':
            revenue_items.append(_item_to_dict(item, category))
        else:
            items_by_category.setdefault(category.id, []).append(_item_to_dict(item, category))

    expense_categories = []
    expense_rows = sorted(
        (c for c in categories if c.type == 'expense'),
        key=lambda c: (c.sort_order, c.name, c.id)
    )
    for category in expense_rows:
        category_items = items_by_category.get(category.id, [])
        expected_total = sum((i['expected_amount'] for i in category_items), ZERO)
        actual_total = sum((i['actual_amount'] for i in category_items), ZERO)
        expense_categories.append({
            'category': category.name,
            'category_id': category.id,
            'display_name': category.display_name,
            'sort_order': category.sort_order,
            'items': category_items,
            'totals': {
                'expected_total': expected_total,
                'actual_total': actual_total,
                'variance': calculate_variance(actual_total, expected_total)
            }
        })

    expected_total_revenue = sum((i['expected_amount'] for i in revenue_items), ZERO)
    actual_total_revenue = sum((i['actual_amount'] for i in revenue_items), ZERO)
    revenue_variance = calculate_variance(actual_total_revenue, expected_total_revenue)

    expected_total_expenses = sum((c['totals']['expected_total'] for c in expense_categories), ZERO)
    actual_total_expenses = sum((c['totals']['actual_total'] for c in expense_categories), ZERO)
    expenses_variance = calculate_variance(actual_total_expenses, expected_total_expenses)

    expected_net_income = expected_total_revenue - expected_total_expenses
    actual_net_income = actual_total_revenue - actual_total_expenses
    net_income_variance = calculate_variance(actual_net_income, expected_net_income)

    return {
        'budget_month_id': month_id,
        'year': year,
        'month': month,
        'label': format_month_year(year, month),
        'revenue_items': revenue_items,
        'expense_categories': expense_categories,
        'totals': {
            'expected_total_revenue': expected_total_revenue,
            'actual_total_revenue': actual_total_revenue,
            'expected_total_expenses': expected_total_expenses,
            'actual_total_expenses': actual_total_expenses,
            'expected_net_income': expected_net_income,
            'actual_net_income': actual_net_income,
            'revenue_variance': revenue_variance,
            'expenses_variance': expenses_variance,
            'net_income_variance': net_income_variance,
            'revenue_variance_percentage': calculate_variance_percentage(revenue_variance, expected_total_revenue),
            'expenses_variance_percentage': calculate_variance_percentage(expenses_variance, expected_total_expenses),
            'net_income_variance_percentage': calculate_variance_percentage(net_income_variance, expected_net_income)
        }
    }


def _month_view(budget_month, categories: list) -> dict:
    start_time = time.time()
    items = db.get_budget_items_by_month(budget_month.id)
    view = build_month_view(budget_month.year, budget_month.month, budget_month.id, categories, items)
    logger.debug(f"[MONTH_VIEW] {budget_month.year}/{budget_month.month} with {len(items)} items "
                 f"took {(time.time() - start_time) * 1000:.2f}ms")
    return view


def compute_month_view(month_id: str) -> dict:
    """Compute the month view for an existing budget month."""
    try:
        budget_month = db.get_budget_month_by_id(month_id)
        if not budget_month:
            raise NotFoundError(f"Budget month {month_id} not found")

        return _month_view(budget_month, db.get_categories_by_sort_order())
    except Exception as e:
        logger.error(f"Failed to compute month view: {e}")
        raise


def get_month_data(year: int, month: int, owner_id: str = DEFAULT_OWNER) -> dict:
    """Resolve (lazily creating) a month and return its computed view."""
    try:
        budget_month = resolve_month(year, month, owner_id)
        return compute_month_view(budget_month.id)
    except Exception as e:
        logger.error(f"Failed to get month data for {year}/{month}: {e}")
        raise


def get_current_month_data(today: Optional[date] = None, owner_id: str = DEFAULT_OWNER) -> dict:
    """Month view for the calendar month containing today."""
    today = today or date.today()
    return get_month_data(today.year, today.month, owner_id)


def navigate_to_date(date_value, owner_id: str = DEFAULT_OWNER) -> dict:
    """Month view for the month containing the given date string."""
    target = parse_flexible_date(date_value)
    if target is None:
        raise _field_error('date', f"Invalid date: {date_value}")
    return get_month_data(target.year, target.month, owner_id)


def get_budget_history(count: int, end_year: int, end_month: int,
                       owner_id: str = DEFAULT_OWNER) -> list:
    """
    Month views for `count` months ending at (end_year, end_month), oldest first.

    Only reads existing months. A month that was never opened is returned as
    an empty view with budget_month_id None; history never creates months.
    """
    try:
        if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= MAX_HISTORY_MONTHS:
            raise _field_error('count', f"Count must be between 1 and {MAX_HISTORY_MONTHS}")
        _validate_year_month(end_year, end_month)

        end = date(end_year, end_month, 1)
        start = end - relativedelta(months=count - 1)

        categories = db.get_categories_by_sort_order()
        existing = {
            (m.year, m.month): m
            for m in db.get_budget_months_in_range((start.year, start.month), (end.year, end.month), owner_id)
        }

        history = []
        for offset in range(count):
            current = start + relativedelta(months=offset)
            budget_month = existing.get((current.year, current.month))
            if budget_month:
                history.append(_month_view(budget_month, categories))
            else:
                history.append(build_month_view(current.year, current.month, None, categories, []))

        return history
    except Exception as e:
        logger.error(f"Failed to get budget history: {e}")
        raise


# ==================== BUDGET ITEM BUSINESS LOGIC ====================

def _validate_amount(value, field: str, errors: list) -> Optional[Decimal]:
    """Amounts entered by users must be numbers >= 0."""
    if isinstance(value, bool):
        errors.append({'field': field, 'message': 'Amount must be a number'})
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        errors.append({'field': field, 'message': 'Amount must be a number'})
        return None
    if not amount.is_finite():
        errors.append({'field': field, 'message': 'Amount must be a number'})
        return None
    if amount < 0:
        errors.append({'field': field, 'message': 'Amount must be greater than or equal to 0'})
        return None
    if amount >= MAX_AMOUNT or to_cents(amount) >= MAX_AMOUNT:
        errors.append({'field': field, 'message': f'Amount must be less than {MAX_AMOUNT}'})
        return None
    return to_cents(amount)


def _validate_due_date(value, errors: list):
    value = empty_to_none(value)
    if value is None:
        return None
    due_date = parse_flexible_date(value)
    if due_date is None:
        errors.append({'field': 'due_date', 'message': f"Invalid due date: {value}"})
    return due_date


def create_item(year: int, month: int, name: str, category_id: str,
                expected_amount, actual_amount=0, due_date=None,
                is_paid: bool = False, owner_id: str = DEFAULT_OWNER) -> dict:
    """
    Create new budget item in the given month.

    Business logic:
    - Validate name not empty
    - Validate category exists
    - Validate amounts are numbers >= 0
    - Validate due date (optional)
    - Resolve (lazily create) the budget month
    - Generate UID and timestamps
    """
    try:
        errors = []
        name = name.strip() if isinstance(name, str) else None
        if not name:
            errors.append({'field': 'name', 'message': 'Name is required'})

        category = db.get_category_by_id(category_id) if category_id else None
        if not category:
            errors.append({'field': 'category_id', 'message': f"Category {category_id} not found"})

        if expected_amount is None:
            errors.append({'field': 'expected_amount', 'message': 'Expected amount is required'})
        else:
            expected_amount = _validate_amount(expected_amount, 'expected_amount', errors)

        actual_amount = _validate_amount(0 if actual_amount is None else actual_amount, 'actual_amount', errors)
        due_date = _validate_due_date(due_date, errors)

        if not isinstance(is_paid, bool):
            errors.append({'field': 'is_paid', 'message': 'is_paid must be true or false'})

        if errors:
            raise ValidationError(errors)

        budget_month = resolve_month(year, month, owner_id)

        now = datetime.now()
        item = db.create_budget_item({
            'id': generate_uid(),
            'budget_month_id': budget_month.id,
            'category_id': category.id,
            'name': name,
            'expected_amount': expected_amount,
            'actual_amount': actual_amount,
            'due_date': due_date,
            'is_paid': is_paid,
            'created_at': now,
            'updated_at': now
        })
        logger.info(f"Business logic: Created budget item {item.id} in {year}/{month}")

        return _item_to_dict(item, category)
    except Exception as e:
        logger.error(f"Failed to create budget item: {e}")
        raise


def update_item(item_id: str, data: dict) -> dict:
    """
    Update a budget item. Only fields present in data are changed.

    Accepted fields: name, category_id, expected_amount, actual_amount,
    due_date, is_paid.
    """
    try:
        item = db.get_budget_item_by_id(item_id)
        if not item:
            raise NotFoundError(f"Budget item {item_id} not found")

        errors = []
        changes = {}
        category = None

        if 'name' in data:
            name = data['name'].strip() if isinstance(data['name'], str) else None
            if not name:
                errors.append({'field': 'name', 'message': 'Name is required'})
            else:
                changes['name'] = name

        if 'category_id' in data:
            category = db.get_category_by_id(data['category_id']) if data['category_id'] else None
            if not category:
                errors.append({'field': 'category_id', 'message': f"Category {data['category_id']} not found"})
            else:
                changes['category_id'] = category.id

        for field in ('expected_amount', 'actual_amount'):
            if field in data:
                if data[field] is None:
                    errors.append({'field': field, 'message': 'Amount is required'})
                    continue
                amount = _validate_amount(data[field], field, errors)
                if amount is not None:
                    changes[field] = amount

        if 'due_date' in data:
            changes['due_date'] = _validate_due_date(data['due_date'], errors)

        if 'is_paid' in data:
            if not isinstance(data['is_paid'], bool):
                errors.append({'field': 'is_paid', 'message': 'is_paid must be true or false'})
            else:
                changes['is_paid'] = data['is_paid']

        if errors:
            raise ValidationError(errors)

        if changes:
            changes['updated_at'] = datetime.now()
            item = db.update_budget_item(item_id, changes)
            logger.info(f"Business logic: Updated budget item {item_id}")

        return _item_to_dict(item, category or db.get_category_by_id(item.category_id_id))
    except Exception as e:
        logger.error(f"Failed to update budget item: {e}")
        raise


def delete_item(item_id: str) -> None:
    """Delete a budget item."""
    try:
        item = db.get_budget_item_by_id(item_id)
        if not item:
            raise NotFoundError(f"Budget item {item_id} not found")

        db.delete_budget_item(item_id)
        logger.info(f"Business logic: Deleted budget item {item_id}")
    except Exception as e:
        logger.error(f"Failed to delete budget item: {e}")
        raise
