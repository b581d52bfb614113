"""Telemetry capture for ASGI apps.

Usage::

    from fastapi import FastAPI
    from telescope import Telescope, TelescopeOptions

    app = FastAPI()
    telescope = Telescope.setup(app, TelescopeOptions(client_ignore_urls=["https://cdn.example.com/*"]))
    client = telescope.http_client()
"""

from telescope.config import TelescopeOptions, TelescopeSettings, get_settings
from telescope.core import Telescope, get_telescope, reset_telescope
from telescope.exceptions import CaptureError, ConfigurationError, StorageError, TelescopeError
from telescope.middleware import TelescopeMiddleware
from telescope.models import Entry, EntryType
from telescope.storage import MemoryStorage, SQLStorage, StorageDriver, StoragePort

__all__ = [
    "CaptureError",
    "ConfigurationError",
    "Entry",
    "EntryType",
    "MemoryStorage",
    "SQLStorage",
    "StorageDriver",
    "StorageError",
    "StoragePort",
    "Telescope",
    "TelescopeError",
    "TelescopeMiddleware",
    "TelescopeOptions",
    "TelescopeSettings",
    "get_settings",
    "get_telescope",
    "reset_telescope",
]
