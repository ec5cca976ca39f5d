"""
Main application file for Budgetbook.
All routes consolidated here - no separate router files.
"""

from datetime import date

from dotenv import load_dotenv
from fastapi import FastAPI, Request, UploadFile, File, Form
from fastapi.responses import JSONResponse, StreamingResponse
import logging
import business_logic
import import_logic
import export_logic
import database_manager as db
from utils import parse_flexible_date

# Load environment variables (BUDGETBOOK_DB_PATH)
load_dotenv()

# Setup logging
logger = logging.getLogger(__name__)

# Initialize app
app = FastAPI(title="Budgetbook")


@app.on_event("startup")
def startup_event():
    """Initialize application on startup."""
    logger.info("Starting Budgetbook application...")
    if business_logic.DATABASE_CONFIGURED:
        logger.info("Database already initialized")
        return
    try:
        business_logic.initialize_database()
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        # Don't raise - /health reports the problem
    logger.info("Budgetbook application started")


def _error_response(e: Exception, action: str) -> JSONResponse:
    """Map business layer exceptions onto the JSON error envelope."""
    if isinstance(e, business_logic.NotFoundError):
        return JSONResponse(
            status_code=404,
            content={"success": False, "error": str(e)}
        )
    if isinstance(e, business_logic.ValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": str(e), "errors": e.errors}
        )
    if isinstance(e, ValueError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": str(e)}
        )
    if isinstance(e, KeyError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": f"Missing required field: {e}"}
        )
    logger.error(f"Error {action}: {e}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(e)}
    )


def _target_date(value) -> date:
    """Date from a request field; today when missing."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return date.today()
    parsed = parse_flexible_date(value)
    if parsed is None:
        raise business_logic.ValidationError([{'field': 'date', 'message': f"Invalid date: {value}"}])
    return parsed


def _csv_response(content: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}"
        }
    )


# ==================== HEALTH CHECK ====================

@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker and monitoring.

    Returns 200 if healthy, 503 if database is unreachable.
    """
    try:
        if not business_logic.DATABASE_CONFIGURED:
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "reason": "Database not configured"
                }
            )

        if db.check_connection():
            return {
                "status": "healthy",
                "database": "connected"
            }
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "reason": "Database connection lost"
            }
        )
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "reason": "Health check error"
            }
        )


# ==================== BUDGET API ROUTES ====================

@app.get("/api/budget/current-month")
async def get_current_month():
    """Month view for the current calendar month (created on first visit)."""
    try:
        data = business_logic.get_current_month_data()
        return {"success": True, "data": data}
    except Exception as e:
        return _error_response(e, "getting current month")


@app.get("/api/budget/history/{count}")
async def get_history(count: int, year: int = None, month: int = None):
    """
    Month views for the last `count` months, oldest first.

    Query params year/month pick the last month (default: current month).
    """
    try:
        today = date.today()
        data = business_logic.get_budget_history(
            count,
            year if year is not None else today.year,
            month if month is not None else today.month
        )
        return {"success": True, "data": data}
    except Exception as e:
        return _error_response(e, "getting budget history")


@app.get("/api/budget/export/history/{count}")
async def export_history(count: int, year: int = None, month: int = None):
    """Download history as CSV."""
    try:
        today = date.today()
        end_year = year if year is not None else today.year
        end_month = month if month is not None else today.month
        content = export_logic.export_history_csv(count, end_year, end_month)
        return _csv_response(content, f"budget_history_{end_year}_{end_month:02d}_{count}.csv")
    except Exception as e:
        return _error_response(e, "exporting history")


@app.get("/api/budget/export/{year}/{month}")
async def export_month(year: int, month: int):
    """Download one month as CSV."""
    try:
        content = export_logic.export_month_csv(year, month)
        return _csv_response(content, f"budget_{year}_{month:02d}.csv")
    except Exception as e:
        return _error_response(e, f"exporting budget {year}/{month}")


@app.get("/api/budget/{year}/{month}")
async def get_month(year: int, month: int):
    """
    Get month view. The month is created (with carry-forward) on first visit.

    Returns:
    {
        "budget_month_id": "abc123",
        "year": 2024,
        "month": 3,
        "label": "March 2024",
        "revenue_items": [...],
        "expense_categories": [...],
        "totals": {...}
    }
    """
    try:
        data = business_logic.get_month_data(year, month)
        return {"success": True, "data": data}
    except Exception as e:
        return _error_response(e, f"getting budget {year}/{month}")


@app.post("/api/budget/navigate")
async def navigate(request: Request):
    """
    Jump to the month containing a date.

    Request body:
    {
        "date": "2024-03-15"
    }
    """
    try:
        data = await request.json()
        result = business_logic.navigate_to_date(data["date"])
        return {"success": True, "data": result}
    except Exception as e:
        return _error_response(e, "navigating")


# ==================== BUDGET ITEM API ROUTES ====================

@app.post("/api/budget/items")
async def create_item(request: Request):
    """
    Create budget item.

    Request body:
    {
        "year": 2024,
        "month": 3,
        "name": "Rent",
        "category_id": "abc123",
        "expected_amount": 1500,
        "actual_amount": 0,          # optional
        "due_date": "2024-03-01",    # optional
        "is_paid": false             # optional
    }
    """
    try:
        data = await request.json()
        result = business_logic.create_item(
            year=data["year"],
            month=data["month"],
            name=data["name"],
            category_id=data["category_id"],
            expected_amount=data["expected_amount"],
            actual_amount=data.get("actual_amount", 0),
            due_date=data.get("due_date"),
            is_paid=data.get("is_paid", False)
        )
        return {"success": True, "data": result}
    except Exception as e:
        return _error_response(e, "creating budget item")


@app.put("/api/budget/items/{item_id}")
async def update_item(item_id: str, request: Request):
    """Update budget item. Only fields present in the body change."""
    try:
        data = await request.json()
        result = business_logic.update_item(item_id, data)
        return {"success": True, "data": result}
    except Exception as e:
        return _error_response(e, f"updating budget item {item_id}")


@app.delete("/api/budget/items/{item_id}")
async def delete_item(item_id: str):
    """Delete budget item."""
    try:
        business_logic.delete_item(item_id)
        return {"success": True}
    except Exception as e:
        return _error_response(e, f"deleting budget item {item_id}")


# ==================== CATEGORY API ROUTES ====================

@app.get("/api/categories")
async def get_categories():
    """Get all categories."""
    try:
        categories = business_logic.get_all_categories()
        return {"success": True, "data": categories}
    except Exception as e:
        return _error_response(e, "getting categories")


@app.post("/api/categories")
async def create_category(request: Request):
    """
    Create new category.

    Request body:
    {
        "name": "side_hustle",
        "type": "revenue",            # or "expense"
        "display_name": "Side Hustle", # optional
        "sort_order": 5               # optional
    }
    """
    try:
        data = await request.json()
        result = business_logic.create_category(
            name=data["name"],
            type=data["type"],
            display_name=data.get("display_name"),
            sort_order=data.get("sort_order", 0)
        )
        return {"success": True, "data": result}
    except Exception as e:
        return _error_response(e, "creating category")


@app.put("/api/categories/{category_id}")
async def update_category(category_id: str, request: Request):
    """Update category name, display name, type or sort order."""
    try:
        data = await request.json()
        result = business_logic.update_category(category_id, data)
        return {"success": True, "data": result}
    except Exception as e:
        return _error_response(e, f"updating category {category_id}")


@app.delete("/api/categories/{category_id}")
async def delete_category(category_id: str):
    """Delete category and its budget items ('revenue' and 'other' are protected)."""
    try:
        result = business_logic.delete_category(category_id)
        return {"success": True, "data": result}
    except Exception as e:
        return _error_response(e, f"deleting category {category_id}")


# ==================== IMPORT API ====================

@app.post("/api/budget/import")
async def import_budget(request: Request):
    """
    Bulk import budget items.

    Request body:
    {
        "date": "2024-03-01",    # default month for records (optional, today)
        "data": [
            {"name": "Salary", "type": "income", "amount": "$4,000"},
            {"name": "Rent", "category": "housing", "amount": 1500, "dueDate": "03/01/2024"}
        ]
    }
    """
    try:
        data = await request.json()
        if not isinstance(data, dict):
            raise business_logic.ValidationError([{'field': 'data', 'message': 'Request body must be an object'}])
        target = _target_date(data.get("date"))
        result = import_logic.import_batch(target.year, target.month, data["data"])
        return {"success": True, "data": result}
    except Exception as e:
        return _error_response(e, "importing budget data")


@app.post("/api/budget/import/spreadsheet")
async def import_spreadsheet(file: UploadFile = File(...), date: str = Form(None)):
    """Import budget items from an uploaded .xlsx workbook."""
    try:
        if not file.filename or not file.filename.lower().endswith('.xlsx'):
            raise ValueError("Only .xlsx files supported")

        target = _target_date(date)

        # Save to temp file
        import tempfile
        import os

        with tempfile.NamedTemporaryFile(delete=False, suffix='.xlsx') as tmp:
            content = await file.read()
            tmp.write(content)
            tmp_path = tmp.name

        try:
            result = import_logic.import_spreadsheet(tmp_path, target.year, target.month)
            return {"success": True, "data": result}
        finally:
            # Clean up temp file
            os.unlink(tmp_path)
    except Exception as e:
        return _error_response(e, "importing spreadsheet")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8009,
        log_config="uvicorn_log_config.ini"
    )
