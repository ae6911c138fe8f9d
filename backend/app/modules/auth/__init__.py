# Authentication module

from app.modules.auth.dependencies import (
    get_current_user,
    get_current_admin,
    require_role_level,
    require_roles,
    get_dashboard_user,
    get_dashboard_admin,
    get_optional_dashboard_user,
)

__all__ = [
    # API (bearer) authentication
    "get_current_user",
    "get_current_admin",
    "require_role_level",
    "require_roles",
    # Dashboard (cookie) authentication
    "get_dashboard_user",
    "get_dashboard_admin",
    "get_optional_dashboard_user",
]
