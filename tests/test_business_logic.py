"""
Tests for business_logic.py

Month lifecycle, aggregation, history and item/category CRUD.
"""

import logging
import pytest
from datetime import date
from decimal import Decimal

import business_logic
from business_logic import ValidationError, NotFoundError
import database_manager as db


def _item(category_ids, name, category, expected, actual=0, year=2024, month=3, **kwargs):
    return business_logic.create_item(year, month, name, category_ids[category], expected, actual, **kwargs)


def _all_items(view):
    items = list(view['revenue_items'])
    for category in view['expense_categories']:
        items.extend(category['items'])
    return items


# ==================== MONTH LIFECYCLE ====================

def test_resolve_month_is_idempotent(setup_test_db):
    first, created = business_logic.get_or_create_budget_month(2024, 3)
    second, created_again = business_logic.get_or_create_budget_month(2024, 3)
    assert created
    assert not created_again
    assert first.id == second.id
    assert business_logic.resolve_month(2024, 3).id == first.id


def test_resolve_month_rejects_invalid_month(setup_test_db):
    with pytest.raises(ValidationError) as exc_info:
        business_logic.resolve_month(2024, 13)
    assert exc_info.value.errors[0]['field'] == 'month'


def test_carry_forward_resets_actuals_and_paid(setup_test_db, category_ids):
    """Feb 'A: 100/80 paid' becomes Mar 'A: 100/0 unpaid' with the same due date."""
    _item(category_ids, 'A', 'housing', 100, 80, month=2, due_date='2024-02-05', is_paid=True)

    view = business_logic.get_month_data(2024, 3)
    items = _all_items(view)

    assert len(items) == 1
    assert items[0]['name'] == 'A'
    assert items[0]['expected_amount'] == Decimal('100.00')
    assert items[0]['actual_amount'] == Decimal('0.00')
    assert items[0]['is_paid'] is False
    assert items[0]['due_date'] == '2024-02-05'
    assert items[0]['category'] == 'housing'


def test_carry_forward_across_year_boundary(setup_test_db, category_ids):
    _item(category_ids, 'Salary', 'revenue', 4000, 4000, year=2023, month=12)

    view = business_logic.get_month_data(2024, 1)
    assert [i['name'] for i in view['revenue_items']] == ['Salary']


def test_carry_forward_keeps_item_order(setup_test_db, category_ids):
    for name in ('Zebra', 'Alpha', 'Mango'):
        _item(category_ids, name, 'food', 10, month=2)

    view = business_logic.get_month_data(2024, 3)
    food = next(c for c in view['expense_categories'] if c['category'] == 'food')
    assert [i['name'] for i in food['items']] == ['Zebra', 'Alpha', 'Mango']


def test_month_without_previous_starts_empty(setup_test_db):
    view = business_logic.get_month_data(2024, 3)
    assert view['revenue_items'] == []
    assert all(c['items'] == [] for c in view['expense_categories'])


def test_carry_forward_happens_only_once(setup_test_db, category_ids):
    """Items added to the previous month later do not leak into an existing month."""
    _item(category_ids, 'A', 'food', 10, month=2)
    business_logic.get_month_data(2024, 3)
    _item(category_ids, 'B', 'food', 20, month=2)

    view = business_logic.get_month_data(2024, 3)
    assert [i['name'] for i in _all_items(view)] == ['A']


def test_concurrent_month_creation_returns_existing(setup_test_db, monkeypatch, caplog):
    """A lost insert race falls back to the row the other request created."""
    existing = business_logic.resolve_month(2024, 3)
    real_get_budget_month = db.get_budget_month
    calls = []

    def stale_lookup(year, month, owner_id):
        calls.append((year, month))
        if len(calls) == 1:
            return None
        return real_get_budget_month(year, month, owner_id)

    monkeypatch.setattr(db, 'get_budget_month', stale_lookup)

    with caplog.at_level(logging.INFO):
        budget_month, created = business_logic.get_or_create_budget_month(2024, 3)
    assert not created
    assert budget_month.id == existing.id
    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert any("created concurrently" in r.getMessage() for r in caplog.records)


# ==================== AGGREGATION ====================

def test_month_view_totals_and_variance_identity(setup_test_db, category_ids):
    _item(category_ids, 'Salary', 'revenue', 4000, 4100)
    _item(category_ids, 'Rent', 'housing', 1500, 1500)
    _item(category_ids, 'Groceries', 'food', 400, 450.25)

    view = business_logic.get_month_data(2024, 3)
    totals = view['totals']

    assert view['label'] == 'March 2024'
    assert totals['expected_total_revenue'] == Decimal('4000.00')
    assert totals['actual_total_revenue'] == Decimal('4100.00')
    assert totals['expected_total_expenses'] == Decimal('1900.00')
    assert totals['actual_total_expenses'] == Decimal('1950.25')
    assert totals['expected_net_income'] == Decimal('2100.00')
    assert totals['actual_net_income'] == Decimal('2149.75')

    for item in _all_items(view):
        assert item['variance'] == item['actual_amount'] - item['expected_amount']
    for category in view['expense_categories']:
        category_totals = category['totals']
        assert category_totals['variance'] == category_totals['actual_total'] - category_totals['expected_total']
    assert totals['revenue_variance'] == Decimal('100.00')
    assert totals['expenses_variance'] == Decimal('50.25')
    assert totals['net_income_variance'] == Decimal('49.75')

    assert totals['revenue_variance_percentage'] == Decimal('2.50')
    assert totals['expenses_variance_percentage'] == Decimal('2.64')


def test_variance_percentage_is_zero_without_expected(setup_test_db, category_ids):
    _item(category_ids, 'Gift', 'revenue', 0, 250)

    totals = business_logic.get_month_data(2024, 3)['totals']
    assert totals['revenue_variance'] == Decimal('250.00')
    assert totals['revenue_variance_percentage'] == Decimal('0')
    assert totals['expenses_variance_percentage'] == Decimal('0')


def test_month_view_is_deterministic(setup_test_db, category_ids):
    _item(category_ids, 'Salary', 'revenue', 4000, 4100)
    _item(category_ids, 'Rent', 'housing', 1500, 1500)

    month_id = business_logic.resolve_month(2024, 3).id
    assert business_logic.compute_month_view(month_id) == business_logic.compute_month_view(month_id)


def test_expense_categories_listed_in_sort_order_even_when_empty(setup_test_db):
    view = business_logic.get_month_data(2024, 3)
    assert [c['category'] for c in view['expense_categories']] == ['housing', 'transportation', 'food', 'other']
    assert view['expense_categories'][0]['display_name'] == 'Housing'
    assert view['expense_categories'][0]['totals']['expected_total'] == Decimal('0')


def test_compute_month_view_unknown_month(setup_test_db):
    with pytest.raises(NotFoundError):
        business_logic.compute_month_view('missing')


def test_navigate_to_date(setup_test_db):
    view = business_logic.navigate_to_date('03/15/2024')
    assert (view['year'], view['month']) == (2024, 3)

    with pytest.raises(ValidationError):
        business_logic.navigate_to_date('xyz')


def test_get_current_month_data(setup_test_db):
    view = business_logic.get_current_month_data(today=date(2024, 7, 4))
    assert view['label'] == 'July 2024'


# ==================== HISTORY ====================

def test_history_is_oldest_first_and_never_creates_months(setup_test_db, category_ids):
    _item(category_ids, 'Salary', 'revenue', 4000, 4000, month=2)

    history = business_logic.get_budget_history(3, 2024, 3)

    assert [v['label'] for v in history] == ['January 2024', 'February 2024', 'March 2024']
    assert history[0]['budget_month_id'] is None
    assert history[1]['totals']['actual_total_revenue'] == Decimal('4000.00')
    assert history[2]['budget_month_id'] is None
    assert db.get_budget_month(2024, 1, 'local') is None
    assert db.get_budget_month(2024, 3, 'local') is None


def test_history_spans_year_boundary(setup_test_db):
    history = business_logic.get_budget_history(2, 2024, 1)
    assert [(v['year'], v['month']) for v in history] == [(2023, 12), (2024, 1)]


@pytest.mark.parametrize("count", [0, 25])
def test_history_count_bounds(setup_test_db, count):
    with pytest.raises(ValidationError):
        business_logic.get_budget_history(count, 2024, 3)


# ==================== BUDGET ITEMS ====================

def test_create_item_returns_serialized_item(setup_test_db, category_ids):
    item = _item(category_ids, 'Rent', 'housing', '1500', 0, due_date='03/01/2024')
    assert item['name'] == 'Rent'
    assert item['category'] == 'housing'
    assert item['expected_amount'] == Decimal('1500.00')
    assert item['variance'] == Decimal('-1500.00')
    assert item['due_date'] == '2024-03-01'
    assert item['is_paid'] is False


def test_create_item_validation_errors(setup_test_db):
    with pytest.raises(ValidationError) as exc_info:
        business_logic.create_item(2024, 3, '  ', 'missing', -5, 'abc', due_date='xyz', is_paid='yes')

    fields = {e['field'] for e in exc_info.value.errors}
    assert fields == {'name', 'category_id', 'expected_amount', 'actual_amount', 'due_date', 'is_paid'}
    assert db.get_budget_month(2024, 3, 'local') is None


@pytest.mark.parametrize("amount", ["1e40", "100000000", "99999999.995", 10 ** 30])
def test_create_item_rejects_oversized_amount(setup_test_db, category_ids, amount):
    with pytest.raises(ValidationError) as exc_info:
        _item(category_ids, 'Rent', 'housing', amount)

    assert exc_info.value.errors == [
        {'field': 'expected_amount', 'message': 'Amount must be less than 100000000'}
    ]


def test_create_item_accepts_largest_storable_amount(setup_test_db, category_ids):
    item = _item(category_ids, 'House', 'housing', '99999999.99')
    assert item['expected_amount'] == Decimal('99999999.99')


def test_update_item_rejects_oversized_actual_amount(setup_test_db, category_ids):
    item = _item(category_ids, 'Rent', 'housing', 1500)
    with pytest.raises(ValidationError) as exc_info:
        business_logic.update_item(item['id'], {'actual_amount': '1e40'})
    assert exc_info.value.errors[0]['field'] == 'actual_amount'


def test_update_item_is_partial(setup_test_db, category_ids):
    item = _item(category_ids, 'Rent', 'housing', 1500, 0, due_date='2024-03-01')

    updated = business_logic.update_item(item['id'], {'actual_amount': 1500, 'is_paid': True})

    assert updated['expected_amount'] == Decimal('1500.00')
    assert updated['actual_amount'] == Decimal('1500.00')
    assert updated['is_paid'] is True
    assert updated['due_date'] == '2024-03-01'
    assert updated['name'] == 'Rent'


def test_update_item_moves_category_and_clears_due_date(setup_test_db, category_ids):
    item = _item(category_ids, 'Bus pass', 'other', 60, due_date='2024-03-01')

    updated = business_logic.update_item(item['id'], {
        'category_id': category_ids['transportation'],
        'due_date': None
    })
    assert updated['category'] == 'transportation'
    assert updated['due_date'] is None


def test_update_item_rejects_negative_amount(setup_test_db, category_ids):
    item = _item(category_ids, 'Rent', 'housing', 1500)
    with pytest.raises(ValidationError):
        business_logic.update_item(item['id'], {'expected_amount': -1})


def test_update_and_delete_unknown_item(setup_test_db):
    with pytest.raises(NotFoundError):
        business_logic.update_item('missing', {'name': 'x'})
    with pytest.raises(NotFoundError):
        business_logic.delete_item('missing')


def test_delete_item(setup_test_db, category_ids):
    item = _item(category_ids, 'Rent', 'housing', 1500)
    business_logic.delete_item(item['id'])
    assert db.get_budget_item_by_id(item['id']) is None


# ==================== CATEGORIES ====================

def test_get_all_categories_seeded(setup_test_db):
    categories = business_logic.get_all_categories()
    assert [c['name'] for c in categories] == ['housing', 'transportation', 'food', 'other', 'revenue']


def test_create_category_derives_display_name(setup_test_db):
    category = business_logic.create_category('side_hustle', 'revenue')
    assert category['display_name'] == 'Side Hustle'
    assert category['sort_order'] == 0


def test_create_category_rejects_duplicates_case_insensitively(setup_test_db):
    with pytest.raises(ValidationError) as exc_info:
        business_logic.create_category('HOUSING', 'expense')
    assert exc_info.value.errors[0]['field'] == 'name'


def test_create_category_rejects_invalid_type_and_sort_order(setup_test_db):
    with pytest.raises(ValidationError) as exc_info:
        business_logic.create_category('pets', 'transfer', sort_order=-1)
    assert {e['field'] for e in exc_info.value.errors} == {'type', 'sort_order'}


@pytest.mark.parametrize("name", ['revenue', 'other'])
def test_protected_categories_cannot_be_deleted(setup_test_db, category_ids, name):
    with pytest.raises(ValueError) as exc_info:
        business_logic.delete_category(category_ids[name])
    assert 'protected' in str(exc_info.value)
    assert db.get_category_by_id(category_ids[name]) is not None


def test_protected_category_cannot_be_renamed(setup_test_db, category_ids):
    with pytest.raises(ValidationError):
        business_logic.update_category(category_ids['revenue'], {'name': 'income'})

    updated = business_logic.update_category(category_ids['revenue'], {'display_name': 'Income'})
    assert updated['display_name'] == 'Income'


def test_update_category_sort_order_reorders_month_view(setup_test_db, category_ids):
    business_logic.update_category(category_ids['food'], {'sort_order': 0})

    view = business_logic.get_month_data(2024, 3)
    assert view['expense_categories'][0]['category'] == 'food'


def test_delete_category_deletes_its_items(setup_test_db, category_ids):
    _item(category_ids, 'Rent', 'housing', 1500)
    _item(category_ids, 'Insurance', 'housing', 80)

    result = business_logic.delete_category(category_ids['housing'])

    assert result == {'deleted_items': 2}
    view = business_logic.get_month_data(2024, 3)
    assert 'housing' not in [c['category'] for c in view['expense_categories']]


def test_delete_unknown_category(setup_test_db):
    with pytest.raises(NotFoundError):
        business_logic.delete_category('missing')


# ==================== INITIALIZATION ====================

def test_initialize_database_seeds_once(setup_test_db):
    business_logic._seed_default_categories()
    assert len(business_logic.get_all_categories()) == 5
    assert business_logic.DATABASE_CONFIGURED


def test_load_database_config_reads_first_existing_file(tmp_path, monkeypatch):
    config_file = tmp_path / "budgetbook_db_config.json"
    config_file.write_text('{"db_engine": "sqlite", "db_path": "/tmp/x.db"}')
    monkeypatch.setattr(business_logic, 'DB_CONFIG_PATHS', [str(tmp_path / "missing.json"), str(config_file)])

    assert business_logic.load_database_config() == {"db_engine": "sqlite", "db_path": "/tmp/x.db"}
