"""
Import logic for Budgetbook application.

Handles bulk import of budget items from JSON payloads and .xlsx workbooks.
Records are loosely structured: amounts may carry currency symbols, dates and
months come in several formats, and unknown categories are created on the fly.

This module follows the same architectural pattern as business_logic.py:
- NO direct database calls - always use database_manager module
- UUIDs generated via utils.generate_uid()
- Timestamps set here (not in database)
- Empty strings converted to NULL via utils.empty_to_none()
"""

import logging
from datetime import datetime
from typing import Optional
from openpyxl import load_workbook

from database_model import DEFAULT_OWNER
from utils import (
    generate_uid, empty_to_none, validate_month, validate_year, derive_display_name,
    normalize_amount, parse_flexible_date, parse_month_string
)
from business_logic import ValidationError, get_or_create_budget_month
import database_manager as db

logger = logging.getLogger(__name__)

TYPE_ALIASES = {
    'revenue': 'revenue',
    'income': 'revenue',
    'expense': 'expense',
    'expenses': 'expense',
}

DEFAULT_CATEGORY_BY_TYPE = {
    'revenue': 'income',
    'expense': 'miscellaneous',
}

# Sort order for categories created during import
NEW_CATEGORY_SORT_ORDER = {
    'revenue': 0,
    'expense': 100,
}

EXPECTED_AMOUNT_KEYS = ('expectedAmount', 'budgetAmount', 'amount')
PAID_STATUSES = ('paid', 'complete', 'completed')
TRUE_STRINGS = ('true', 'yes', 'y', '1')


# ==================== HELPER FUNCTIONS ====================

def normalize_category_type(raw) -> str:
    """
    Map a record's type field onto 'revenue' or 'expense'.

    Missing type means expense.

    Raises:
        ValueError: On any other value
    """
    raw = empty_to_none(raw)
    if raw is None:
        return 'expense'
    category_type = TYPE_ALIASES.get(str(raw).strip().lower())
    if category_type is None:
        raise ValueError(f"Invalid type '{raw}' (expected revenue, income, expense or expenses)")
    return category_type


def _coerce_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in TRUE_STRINGS


def _record_is_paid(record: dict) -> bool:
    """isPaid, then paid, then a status of paid/complete/completed."""
    for key in ('isPaid', 'paid'):
        if record.get(key) is not None:
            return _coerce_bool(record[key])
    status = record.get('status')
    return isinstance(status, str) and status.strip().lower() in PAID_STATUSES


def _first_present(record: dict, keys: tuple):
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def resolve_category(name: str, category_type: str, existing_categories: list):
    """
    Find a category by (name, type), creating it when missing.

    Matching is case-insensitive. A created category is appended to
    existing_categories so later records in the same batch reuse it.

    Args:
        name: Category name from the record (e.g. "side_hustle")
        category_type: 'revenue' or 'expense'
        existing_categories: Category rows known so far (mutated)

    Returns:
        Category

    Raises:
        ValueError: If the name is taken by a category of the other type
    """
    lowered = name.lower()
    for category in existing_categories:
        if category.name.lower() != lowered:
            continue
        if category.type == category_type:
            return category
        raise ValueError(f"Category '{category.name}' already exists as {category.type}")

    category = db.create_category({
        'id': generate_uid(),
        'name': name,
        'display_name': derive_display_name(name),
        'type': category_type,
        'sort_order': NEW_CATEGORY_SORT_ORDER[category_type],
        'created_at': datetime.now()
    })
    existing_categories.append(category)
    logger.info(f"Import: Created {category_type} category '{name}'")
    return category


# ==================== BULK IMPORT ====================

def _import_record(record, default_month: tuple, categories: list, months: dict,
                   owner_id: str) -> tuple:
    """
    Insert one record as a budget item.

    Returns:
        (month_created, category_created)
    """
    if not isinstance(record, dict):
        raise ValueError("Record must be an object")

    name = empty_to_none(record.get('name'))
    if name is None:
        raise ValueError("Name is required")
    name = str(name).strip()

    category_type = normalize_category_type(record.get('type'))
    expected_amount = normalize_amount(_first_present(record, EXPECTED_AMOUNT_KEYS), category_type)
    actual_amount = normalize_amount(record.get('actualAmount'), category_type)

    year, month = parse_month_string(record.get('month')) or default_month
    month_key = f"{year}-{month}"
    month_created = False
    budget_month = months.get(month_key)
    if budget_month is None:
        budget_month, month_created = get_or_create_budget_month(year, month, owner_id)
        months[month_key] = budget_month

    category_name = empty_to_none(record.get('category')) or DEFAULT_CATEGORY_BY_TYPE[category_type]
    categories_before = len(categories)
    category = resolve_category(str(category_name).strip(), category_type, categories)

    now = datetime.now()
    db.create_budget_item({
        'id': generate_uid(),
        'budget_month_id': budget_month.id,
        'category_id': category.id,
        'name': name,
        'expected_amount': expected_amount,
        'actual_amount': actual_amount,
        'due_date': parse_flexible_date(record.get('dueDate')),
        'is_paid': _record_is_paid(record),
        'created_at': now,
        'updated_at': now
    })

    return month_created, len(categories) > categories_before


def _record_label(record, index: int) -> str:
    name = record.get('name') if isinstance(record, dict) else None
    if isinstance(name, str) and name.strip():
        return f"Item '{name.strip()}'"
    return f"Record {index}"


def import_batch(target_year: int, target_month: int, records,
                 owner_id: str = DEFAULT_OWNER) -> dict:
    """
    Import a batch of loosely structured records into budget months.

    Each record is imported in its own savepoint; a failing record is
    reported in errors and the rest of the batch continues.

    Args:
        target_year: Default year for records without a parseable month
        target_month: Default month (1-12)
        records: List of record dicts (a single dict is accepted)

    Returns:
        {
            "success": 2,
            "failed": 1,
            "category_created": 1,
            "months_created": 1,
            "errors": ["Item 'Gym': Invalid type 'transfer' ..."],
            "message": "Imported 2 of 3 records, 1 failed"
        }

    Raises:
        ValidationError: If records is not a list/object or the target month is invalid
    """
    if isinstance(records, dict):
        records = [records]
    if not isinstance(records, list):
        raise ValidationError([{'field': 'data', 'message': 'Import data must be a list of records'}])

    errors = []
    if not validate_year(target_year):
        errors.append({'field': 'date', 'message': f"Invalid year: {target_year}"})
    if not validate_month(target_month):
        errors.append({'field': 'date', 'message': f"Invalid month: {target_month}"})
    if errors:
        raise ValidationError(errors)

    result = {
        'success': 0,
        'failed': 0,
        'category_created': 0,
        'months_created': 0,
        'errors': []
    }

    try:
        categories = list(db.get_all_categories())
        months = {}

        with db.atomic():
            for index, record in enumerate(records, start=1):
                # Caches only take changes from records that commit
                record_categories = list(categories)
                record_months = dict(months)
                try:
                    with db.atomic():
                        month_created, category_created = _import_record(
                            record, (target_year, target_month), record_categories, record_months, owner_id
                        )
                except Exception as e:
                    result['failed'] += 1
                    result['errors'].append(f"{_record_label(record, index)}: {e}")
                    logger.warning(f"Import: Skipped record {index}: {e}")
                    continue

                categories = record_categories
                months = record_months
                result['success'] += 1
                result['months_created'] += int(month_created)
                result['category_created'] += int(category_created)
    except Exception as e:
        logger.error(f"Failed to import batch: {e}")
        raise

    message = f"Imported {result['success']} of {len(records)} records"
    if result['failed']:
        message += f", {result['failed']} failed"
    result['message'] = message

    logger.info(f"Import: {message} into {target_year}/{target_month} "
                f"({result['category_created']} categories, {result['months_created']} months created)")
    return result


# ==================== SPREADSHEET PARSING ====================

def _clean_cell(value):
    if isinstance(value, str):
        return empty_to_none(value.strip())
    return value


def parse_spreadsheet_records(file_path: str) -> list:
    """
    Read records from the active sheet of an .xlsx workbook.

    The first non-empty row is the header. Every following non-empty row
    becomes a dict keyed by header; empty cells are left out.

    Example sheet:
        | name | type    | amount | dueDate    |
        | Rent | expense | 1500   | 2024-03-01 |
      → [{"name": "Rent", "type": "expense", "amount": 1500, "dueDate": datetime(2024, 3, 1)}]

    Raises:
        ValueError: If the workbook cannot be loaded or has no header row
    """
    try:
        wb = load_workbook(file_path, data_only=True, read_only=True)
    except Exception as e:
        raise ValueError(f"Failed to load spreadsheet: {e}")

    try:
        header = None
        records = []
        for row in wb.active.iter_rows(values_only=True):
            cells = [_clean_cell(value) for value in row]
            if all(value is None for value in cells):
                continue

            if header is None:
                header = [str(value) if value is not None else None for value in cells]
                continue

            record = {
                key: value
                for key, value in zip(header, cells)
                if key is not None and value is not None
            }
            if record:
                records.append(record)
    finally:
        wb.close()

    if header is None:
        raise ValueError("Spreadsheet has no header row")

    logger.info(f"Parsed {len(records)} records from spreadsheet")
    return records


def import_spreadsheet(file_path: str, target_year: int, target_month: int,
                       owner_id: Optional[str] = None) -> dict:
    """Parse an .xlsx workbook and import its records as one batch."""
    records = parse_spreadsheet_records(file_path)
    return import_batch(target_year, target_month, records, owner_id or DEFAULT_OWNER)
