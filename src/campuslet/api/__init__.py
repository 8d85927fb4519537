"""Campuslet admin API -- router, wiring and application factory."""

from campuslet.api.app import create_admin_app
from campuslet.api.dependencies import build_admin_application, get_admin_application
from campuslet.api.router import router
from campuslet.api.settings import AdapterStrategy, AdminSettings, get_admin_settings

__all__ = [
    "AdapterStrategy",
    "AdminSettings",
    "build_admin_application",
    "create_admin_app",
    "get_admin_application",
    "get_admin_settings",
    "router",
]
