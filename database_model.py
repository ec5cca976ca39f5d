"""
Database models for Budgetbook application.

All models use PeeWee ORM and follow these principles:
- UIDs generated in business_logic.py via utils.generate_uid()
- All currency amounts stored as fixed-scale decimals (2 places)
- Empty strings converted to NULL via utils.empty_to_none()
- NO LOGIC IN MODELS - pure data structures only
- All constraints, defaults, and business rules enforced in business_logic.py
- Timestamps set explicitly by business_logic.py
"""

from peewee import (
    DatabaseProxy,
    Model,
    CharField,
    IntegerField,
    SmallIntegerField,
    BooleanField,
    DecimalField,
    DateField,
    DateTimeField,
    TextField,
    ForeignKeyField,
)


# Database handle. Initialized in database_manager.py with either a pooled
# MySQL connection or a SQLite file, depending on configuration.
database = DatabaseProxy()

# Owner key used when the app runs in single-user mode
DEFAULT_OWNER = 'local'


class PreciseDateTimeField(DateTimeField):
    """DATETIME with microseconds. Plain MySQL DATETIME truncates to seconds."""
    field_type = 'DATETIME(6)'


class BaseModel(Model):
    """
    Base model with common fields.

    All models inherit from this to get:
    - id field (UID - set by business_logic.py)
    - created_at timestamp (set by business_logic.py)
    - Shared database connection
    """
    id = CharField(primary_key=True, max_length=10)
    created_at = DateTimeField()

    class Meta:
        database = database


class Category(BaseModel):
    """
    Revenue and expense categories.

    Categories are global across all months. `name` is the internal key and
    must be unique; `display_name` is what users see.

    Business rules (enforced in business_logic.py):
    - 'revenue' and 'other' cannot be deleted
    - Deleting a category deletes the budget items that use it
    - New expense categories created by import get sort_order 100
    """
    name = CharField(max_length=255, unique=True)
    display_name = CharField(max_length=255)
    type = CharField(max_length=10)  # 'revenue' or 'expense'
    sort_order = IntegerField(default=0)

    class Meta:
        table_name = 'budgetbook_categories'


class BudgetMonth(BaseModel):
    """
    Container for all budget items of one calendar month.

    Created lazily the first time a month is opened. Year and month never
    change after creation.

    Business rules (enforced in business_logic.py):
    - Unique constraint on (year, month, owner_id)
    - Month must be 1-12
    - Items of the previous month are carried forward on creation
    """
    year = IntegerField()
    month = SmallIntegerField()  # 1-12
    owner_id = CharField(max_length=36, default=DEFAULT_OWNER)
    is_active = BooleanField(default=True)

    class Meta:
        table_name = 'budgetbook_budget_months'
        indexes = (
            (('year', 'month', 'owner_id'), True),
        )


class BudgetItem(BaseModel):
    """
    One expected/actual line in a budget month.

    Business rules (enforced in business_logic.py):
    - Owned by its budget month; deleted together with it
    - actual_amount defaults to 0, is_paid to False
    - due_date is optional (NULL)
    - updated_at set by business_logic.py on create/update
    - created_at keeps microseconds; carried-forward copies are ordered by it
    """
    budget_month_id = ForeignKeyField(BudgetMonth, column_name='budget_month_id', on_delete='CASCADE')
    category_id = ForeignKeyField(Category, column_name='category_id', on_delete='CASCADE')
    name = CharField(max_length=255)
    expected_amount = DecimalField(max_digits=10, decimal_places=2, auto_round=True, default=0)
    actual_amount = DecimalField(max_digits=10, decimal_places=2, auto_round=True, default=0)
    due_date = DateField(null=True)
    is_paid = BooleanField(default=False)
    created_at = PreciseDateTimeField()
    updated_at = DateTimeField()

    class Meta:
        table_name = 'budgetbook_budget_items'


class Configuration(BaseModel):
    """
    Application configuration settings.

    Stores key-value pairs such as:
    - database_seeded: "true" or "false" (internal flag for first-time setup)

    NOTE: Database connection settings are stored in budgetbook_db_config.json,
    NOT in this table.
    """
    key = CharField(max_length=255, unique=True)
    value = TextField()
    updated_at = DateTimeField()

    class Meta:
        table_name = 'budgetbook_configuration'


# List of all models for easy reference
ALL_MODELS = [
    Category,
    BudgetMonth,
    BudgetItem,
    Configuration,
]
