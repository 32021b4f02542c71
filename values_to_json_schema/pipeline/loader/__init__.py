"""
Loader module.

Loads the documents `$ref`s point at, from files or over HTTP.
"""

from __future__ import annotations

from .base import Loader, bundle_ref_id, load
from .dispatch import CacheLoader, URLSchemeLoader, new_default_loader
from .file_loader import FileLoader
from .http_cache import CachedResponse, HTTPCache, HTTPFileCache, HTTPMemoryCache
from .http_loader import ACCEPT_HEADER, HTTPLoader

__all__ = [
    "Loader",
    "load",
    "bundle_ref_id",
    "FileLoader",
    "HTTPLoader",
    "ACCEPT_HEADER",
    "URLSchemeLoader",
    "CacheLoader",
    "new_default_loader",
    "CachedResponse",
    "HTTPCache",
    "HTTPFileCache",
    "HTTPMemoryCache",
]
