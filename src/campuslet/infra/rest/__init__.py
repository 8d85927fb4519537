"""Campuslet Infra REST -- best-effort adapter over a PostgREST-style API."""

from campuslet.infra.rest.best_effort_adapter import RestBestEffortAdapter
from campuslet.infra.rest.settings import RestStoreSettings, get_rest_store_settings

__all__ = ["RestBestEffortAdapter", "RestStoreSettings", "get_rest_store_settings"]
