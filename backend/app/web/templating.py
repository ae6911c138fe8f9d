"""Jinja2 environment shared by the dashboard pages"""
from datetime import date, datetime
from fastapi.templating import Jinja2Templates

from app.core.config import settings

templates = Jinja2Templates(directory=str(settings.TEMPLATES_DIR))


def format_money(value) -> str:
    try:
        return f"${float(value):,.2f}"
    except (TypeError, ValueError):
        return "$0.00"


def format_date(value, fmt: str = "%Y-%m-%d") -> str:
    if isinstance(value, (datetime, date)):
        return value.strftime(fmt)
    return value or ""


templates.env.filters["money"] = format_money
templates.env.filters["date"] = format_date
templates.env.globals["app_name"] = settings.APP_NAME
