"""
Loaders that route and memoize `$ref` loading.
"""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import SplitResult

import httpx

from ..errors import UnsupportedError
from ..schema_ast.nodes import Schema
from ..schema_ast.refs import redact_url, trim_fragment
from .base import Loader
from .file_loader import FileLoader
from .http_cache import HTTPCache
from .http_loader import HTTPLoader


class URLSchemeLoader(Loader):
    """Delegates to a loader chosen by the URL scheme of the `$ref`."""

    def __init__(self, loaders: dict[str, Loader]):
        self.loaders = loaders

    def load(self, ref: SplitResult, *, referrer: str = "", logger: logging.Logger | None = None) -> Schema:
        loader = self.loaders.get(ref.scheme)
        if loader is None:
            schemes = ", ".join(f'"{scheme}"' for scheme in sorted(self.loaders))
            raise UnsupportedError(
                f'cannot load schema from $ref="{redact_url(ref)}", supported schemes: {schemes}'
            )
        return loader.load(ref, referrer=referrer, logger=logger)


class CacheLoader(Loader):
    """Remembers every loaded document for the lifetime of the loader.

    Repeated loads of the same URL return the same Schema instance, so
    callers must not modify what they get back.
    """

    def __init__(self, loader: Loader):
        self.loader = loader
        self.cache: dict[str, Schema] = {}

    def load(self, ref: SplitResult, *, referrer: str = "", logger: logging.Logger | None = None) -> Schema:
        key = trim_fragment(ref).geturl()
        if key in self.cache:
            return self.cache[key]
        schema = self.loader.load(ref, referrer=referrer, logger=logger)
        self.cache[key] = schema
        return schema


def new_default_loader(
    client: httpx.Client,
    root: Path | str,
    root_path: str | None = None,
    cache: HTTPCache | None = None,
    user_agent: str = "",
) -> Loader:
    """Build the loader chain used by the generator.

    Local files are read from inside `root`, `http` and `https` URLs are
    fetched with `client`, and every document is loaded at most once.
    """
    file_loader = FileLoader(root, root_path=root_path)
    http_loader = HTTPLoader(client, cache=cache, user_agent=user_agent)
    return CacheLoader(
        URLSchemeLoader(
            {
                "": file_loader,
                "file": file_loader,
                "http": http_loader,
                "https": http_loader,
            }
        )
    )
