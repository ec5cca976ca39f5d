"""
Export logic for Budgetbook application.

Renders computed month views as CSV text. Views come from business_logic.py,
so exports show exactly what the API returns.
"""

import csv
import logging
from io import StringIO

from database_model import DEFAULT_OWNER
import business_logic

logger = logging.getLogger(__name__)

ITEM_HEADER = ['Name', 'Expected Amount', 'Actual Amount', 'Due Date', 'Paid', 'Variance']


def _money(amount) -> str:
    return f"{amount:.2f}"


def _item_row(item: dict) -> list:
    return [
        item['name'],
        _money(item['expected_amount']),
        _money(item['actual_amount']),
        item['due_date'] or '',
        'Yes' if item['is_paid'] else 'No',
        _money(item['variance'])
    ]


def _total_row(label: str, expected, actual, variance) -> list:
    return [label, _money(expected), _money(actual), '', '', _money(variance)]


def render_month_csv(view: dict) -> str:
    """Render a month view as CSV with REVENUE, EXPENSES and SUMMARY sections."""
    output = StringIO()
    writer = csv.writer(output, lineterminator='\n')
    totals = view['totals']

    writer.writerow(['Budget', view['label']])
    writer.writerow([])

    writer.writerow(['REVENUE'])
    writer.writerow(ITEM_HEADER)
    for item in view['revenue_items']:
        writer.writerow(_item_row(item))
    writer.writerow(_total_row('Total Revenue', totals['expected_total_revenue'],
                               totals['actual_total_revenue'], totals['revenue_variance']))
    writer.writerow([])

    writer.writerow(['EXPENSES'])
    for category in view['expense_categories']:
        writer.writerow([category['display_name']])
        writer.writerow(ITEM_HEADER)
        for item in category['items']:
            writer.writerow(_item_row(item))
        category_totals = category['totals']
        writer.writerow(_total_row(f"Total {category['display_name']}", category_totals['expected_total'],
                                   category_totals['actual_total'], category_totals['variance']))
    writer.writerow([])

    writer.writerow(['SUMMARY'])
    writer.writerow(ITEM_HEADER)
    writer.writerow(_total_row('Total Revenue', totals['expected_total_revenue'],
                               totals['actual_total_revenue'], totals['revenue_variance']))
    writer.writerow(_total_row('Total Expenses', totals['expected_total_expenses'],
                               totals['actual_total_expenses'], totals['expenses_variance']))
    writer.writerow(_total_row('Net Income', totals['expected_net_income'],
                               totals['actual_net_income'], totals['net_income_variance']))

    return output.getvalue()


def render_history_csv(views: list) -> str:
    """One column pair (expected, actual) per month, oldest first."""
    output = StringIO()
    writer = csv.writer(output, lineterminator='\n')

    header = ['Metric']
    for view in views:
        header.extend([f"{view['label']} Expected", f"{view['label']} Actual"])
    writer.writerow(header)

    metrics = (
        ('Revenue', 'expected_total_revenue', 'actual_total_revenue'),
        ('Expenses', 'expected_total_expenses', 'actual_total_expenses'),
        ('Net Income', 'expected_net_income', 'actual_net_income'),
    )
    for label, expected_key, actual_key in metrics:
        row = [label]
        for view in views:
            row.extend([_money(view['totals'][expected_key]), _money(view['totals'][actual_key])])
        writer.writerow(row)

    return output.getvalue()


def export_month_csv(year: int, month: int, owner_id: str = DEFAULT_OWNER) -> str:
    """CSV export of one month (the month is created if it was never opened)."""
    try:
        view = business_logic.get_month_data(year, month, owner_id)
        logger.info(f"Exported budget {year}/{month} as CSV")
        return render_month_csv(view)
    except Exception as e:
        logger.error(f"Failed to export budget {year}/{month}: {e}")
        raise


def export_history_csv(count: int, end_year: int, end_month: int,
                       owner_id: str = DEFAULT_OWNER) -> str:
    """CSV export of the revenue/expense/net income history."""
    try:
        views = business_logic.get_budget_history(count, end_year, end_month, owner_id)
        logger.info(f"Exported {count} months of history ending {end_year}/{end_month} as CSV")
        return render_history_csv(views)
    except Exception as e:
        logger.error(f"Failed to export history: {e}")
        raise
