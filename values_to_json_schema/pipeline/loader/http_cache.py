"""
Caching of HTTP responses for `$ref` loading.

Responses are kept for as long as their `Cache-Control: max-age` allows.
Expired entries are still returned so the loader can revalidate them with
their ETag instead of downloading the body again.
"""

from __future__ import annotations

import base64
import gzip
import json
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

import httpx
import platformdirs

CACHE_APP_NAME = "values-to-json-schema"
_SAFE_SEGMENT_RE = re.compile(r"^[A-Za-z0-9._~+=@,%!$&'()-]+$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CachedResponse:
    """A cached response body with its freshness information."""

    cached_at: datetime
    max_age: timedelta
    etag: str = ""
    content_type: str = ""
    data: bytes = b""

    def expiry(self) -> datetime:
        return self.cached_at + self.max_age

    def expired(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        return now - self.cached_at > self.max_age


class HTTPCache(Protocol):
    """Storage for HTTP responses keyed by request URL."""

    def load_cache(self, request: httpx.Request) -> CachedResponse | None:
        """Return the cached response, or None when nothing is cached.

        Raises:
            OSError: If the cache cannot be read
            ValueError: If the cached entry is corrupt
        """
        ...

    def save_cache(
        self,
        request: httpx.Request,
        response: httpx.Response,
        body: bytes,
        previous: CachedResponse | None = None,
    ) -> CachedResponse | None:
        """Store a response body, overwriting any earlier entry.

        Returns None when the response must not be cached. `previous` is
        the entry being revalidated; its ETag and content type are kept
        when a 304 response omits them.

        Raises:
            OSError: If the cache cannot be written
        """
        ...


def get_cache_control_max_age(header: str) -> timedelta:
    """Read `max-age` from a Cache-Control header.

    `no-cache` and `no-store` disable caching. Unparsable values are
    ignored.
    """
    max_age = timedelta(0)
    for directive in header.split(","):
        key, _, value = directive.strip().partition("=")
        if key in ("no-cache", "no-store"):
            return timedelta(0)
        if key == "max-age":
            try:
                max_age = timedelta(seconds=int(value))
            except ValueError:
                continue
    return max_age


def _new_cached_response(
    response: httpx.Response,
    body: bytes,
    now: datetime,
    previous: CachedResponse | None = None,
) -> CachedResponse | None:
    max_age = get_cache_control_max_age(response.headers.get("Cache-Control", ""))
    if max_age <= timedelta(0):
        return None
    etag = response.headers.get("ETag", "")
    content_type = response.headers.get("Content-Type", "")
    if previous is not None:
        etag = etag or previous.etag
        content_type = content_type or previous.content_type
    return CachedResponse(cached_at=now, max_age=max_age, etag=etag, content_type=content_type, data=body)


class HTTPMemoryCache:
    """In-process cache, mostly useful for tests."""

    def __init__(self, now: Callable[[], datetime] = utc_now):
        self.entries: dict[str, CachedResponse] = {}
        self.now = now

    def load_cache(self, request: httpx.Request) -> CachedResponse | None:
        return self.entries.get(str(request.url))

    def save_cache(
        self,
        request: httpx.Request,
        response: httpx.Response,
        body: bytes,
        previous: CachedResponse | None = None,
    ) -> CachedResponse | None:
        cached = _new_cached_response(response, body, self.now(), previous)
        if cached is not None:
            self.entries[str(request.url)] = cached
        return cached


class HTTPFileCache:
    """Cache stored as gzipped JSON files in the user cache directory."""

    def __init__(self, cache_dir: Path | str | None = None, now: Callable[[], datetime] = utc_now):
        """
        Initialize the cache.

        Args:
            cache_dir: Directory to store entries in. Defaults to
                `<user cache dir>/values-to-json-schema/httploader`.
            now: Clock used to timestamp new entries
        """
        if cache_dir is None:
            cache_dir = Path(platformdirs.user_cache_dir(CACHE_APP_NAME)) / "httploader"
        self.cache_dir = Path(cache_dir)
        self.now = now

    def path_for(self, request: httpx.Request) -> Path:
        return self.cache_dir / (url_to_cache_path(request.url) + ".json.gz")

    def load_cache(self, request: httpx.Request) -> CachedResponse | None:
        path = self.path_for(request)
        try:
            with gzip.open(path, "rt", encoding="utf-8") as f:
                record = json.load(f)
        except FileNotFoundError:
            return None
        except (gzip.BadGzipFile, EOFError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValueError(f"decode cached response {path}: {e}") from e
        try:
            return CachedResponse(
                cached_at=datetime.fromisoformat(record["cached_at"]),
                max_age=timedelta(seconds=record["max_age"]),
                etag=record.get("etag", ""),
                content_type=record.get("content_type", ""),
                data=base64.b64decode(record["data"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"decode cached response {path}: {e}") from e

    def save_cache(
        self,
        request: httpx.Request,
        response: httpx.Response,
        body: bytes,
        previous: CachedResponse | None = None,
    ) -> CachedResponse | None:
        cached = _new_cached_response(response, body, self.now(), previous)
        if cached is None:
            return None
        path = self.path_for(request)
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        record = {
            "cached_at": cached.cached_at.isoformat(),
            "max_age": cached.max_age.total_seconds(),
            "etag": cached.etag,
            "content_type": cached.content_type,
            "data": base64.b64encode(cached.data).decode("ascii"),
        }
        with gzip.open(path, "wt", encoding="utf-8") as f:
            json.dump(record, f)
        return cached


def url_to_cache_path(url: httpx.URL | str) -> str:
    """Return a relative file path to store the response of `url` under.

    The mapping is lossy and one-way. It keeps paths human readable so
    parts of the cache can be cleared by hand, e.g.
    `https://example.com:8080/schemas/foo.json` becomes
    `https/example.com/8080/schemas/foo.json`.
    """
    url = httpx.URL(str(url))
    segments = [url.scheme or "no-scheme", url.host or "no-host"]
    if url.port is not None:
        segments.append(str(url.port))

    path_segments = []
    for segment in url.path.removeprefix("/").split("/"):
        if segment == "":
            continue
        if segment == ".":
            path_segments.append("_dot")
        elif segment == "..":
            path_segments.append("_up")
        elif _SAFE_SEGMENT_RE.match(segment):
            path_segments.append(segment)
        else:
            path_segments.append(base64.b32encode(segment.encode("utf-8")).decode("ascii").rstrip("="))
    segments.append(os.path.join(*path_segments) if path_segments else "_index")
    return os.path.join(*segments)
