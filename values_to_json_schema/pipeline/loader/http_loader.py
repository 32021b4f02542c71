"""
Loader for `$ref`s pointing at `http://` and `https://` URLs.
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
import time
from collections.abc import Callable
from datetime import datetime
from urllib.parse import SplitResult

import httpx
import yaml

from ..errors import LoaderError, SchemaDecodeError, UnsupportedError
from ..log import format_size_bytes, get_logger
from ..schema_ast.nodes import Schema
from ..schema_ast.refs import Referrer, redact_url, trim_fragment
from ..schema_ast.yaml_nodes import load_yaml
from .base import Loader
from .http_cache import CachedResponse, HTTPCache, utc_now

ACCEPT_HEADER = (
    "application/schema+json,application/json,application/schema+yaml,application/yaml,text/plain; charset=utf-8"
)
DEFAULT_SIZE_LIMIT = 200_000_000
DEFAULT_TIMEOUT = 30.0

_YAML_MEDIA_TYPE_RE = re.compile(r"^application/(.*\+)?yaml$")


class HTTPLoader(Loader):
    """Fetches schemas over HTTP, with optional response caching."""

    def __init__(
        self,
        client: httpx.Client,
        cache: HTTPCache | None = None,
        size_limit: int = DEFAULT_SIZE_LIMIT,
        user_agent: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        now: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the loader.

        Args:
            client: HTTP client to send requests with. TLS and proxy
                settings are the client's concern.
            cache: Where to keep responses between runs
            size_limit: Maximum body size in bytes
            user_agent: Value of the User-Agent header, if any
            timeout: Deadline in seconds for one whole request, body
                included
            now: Clock used to check cache freshness
        """
        self.client = client
        self.cache = cache
        self.size_limit = size_limit
        self.user_agent = user_agent
        self.timeout = timeout
        self.now = now

    def load(self, ref: SplitResult, *, referrer: str = "", logger: logging.Logger | None = None) -> Schema:
        logger = get_logger(logger)
        url = trim_fragment(ref)
        url_text = redact_url(url)
        if url.scheme not in ("http", "https"):
            raise LoaderError(f'$ref="{url_text}" must use the "http" or "https" scheme')

        request = self.new_request(url, referrer)
        logger.info("Loading %s", url_text)
        start = time.monotonic()

        cached, schema = self.load_cache(request, logger)
        if schema is not None:
            logger.info("=> cached %s in %s", format_size_bytes(len(cached.data)), _format_duration(time.monotonic() - start))
            return schema

        if cached is not None and cached.etag:
            request.headers["If-None-Match"] = cached.etag

        response, body = self._send(request, url_text)
        if response.status_code == httpx.codes.NOT_MODIFIED and cached is not None:
            schema = self._revalidated(request, response, cached, url_text, logger)
            if schema is not None:
                logger.info("=> cached %s in %s", format_size_bytes(len(cached.data)), _format_duration(time.monotonic() - start))
                return schema
            request.headers.pop("If-None-Match", None)
            response, body = self._send(request, url_text)

        if not response.is_success:
            raise LoaderError(
                f"request $ref={url_text} over HTTP: got non-2xx status code: {response.status_code} {response.reason_phrase}"
            )

        schema = self._parse_response(response, body, url_text)
        logger.info("=> got %s in %s", format_size_bytes(len(body)), _format_duration(time.monotonic() - start))

        if self.cache is not None:
            try:
                self.cache.save_cache(request, response, body)
            except OSError as e:
                logger.warning("Failed to save HTTP cache for %s: %s", url_text, e)

        schema.set_referrer(_referrer_for(request.url))
        return schema

    def new_request(self, url: SplitResult, referrer: str = "") -> httpx.Request:
        headers = {
            "Accept": ACCEPT_HEADER,
            "Accept-Encoding": "gzip",
        }
        if referrer.startswith(("http://", "https://")):
            headers["Link"] = f'<{referrer}>; rel="describedby"'
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        return self.client.build_request("GET", url.geturl(), headers=headers, timeout=self.timeout)

    def load_cache(
        self, request: httpx.Request, logger: logging.Logger | None = None
    ) -> tuple[CachedResponse | None, Schema | None]:
        """Look up a cached response for the request.

        Returns:
            The cached record, or None on a miss, and the decoded schema,
            or None when the record is expired and must be revalidated.
            Cache failures are logged and treated as a miss.
        """
        if self.cache is None:
            return None, None
        logger = get_logger(logger)
        try:
            cached = self.cache.load_cache(request)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read HTTP cache for %s: %s", request.url, e)
            return None, None
        if cached is None or cached.expired(self.now()):
            return cached, None
        try:
            schema = _parse_body(cached.content_type, cached.data, str(request.url))
        except LoaderError as e:
            logger.warning("Failed to decode cached response for %s: %s", request.url, e)
            return None, None
        schema.set_referrer(_referrer_for(request.url))
        return cached, schema

    def _revalidated(
        self,
        request: httpx.Request,
        response: httpx.Response,
        cached: CachedResponse,
        url_text: str,
        logger: logging.Logger,
    ) -> Schema | None:
        # 304: the stored body is still valid, only its freshness changes
        try:
            refreshed = self.cache.save_cache(request, response, cached.data, previous=cached)
            schema = _parse_body((refreshed or cached).content_type, cached.data, url_text)
        except (OSError, LoaderError) as e:
            logger.warning("Failed to reuse cached response for %s, fetching it again: %s", url_text, e)
            return None
        schema.set_referrer(_referrer_for(request.url))
        return schema

    def _send(self, request: httpx.Request, url_text: str) -> tuple[httpx.Response, bytes]:
        deadline = time.monotonic() + self.timeout
        try:
            response = self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise LoaderError(f"request $ref={url_text} over HTTP: {e}") from e

        try:
            if not response.is_success:
                return response, b""

            encoding = response.headers.get("Content-Encoding", "").strip().lower()
            if encoding not in ("", "gzip"):
                raise UnsupportedError(f'request $ref={url_text} over HTTP: unsupported content encoding: "{encoding}"')

            chunks = []
            size = 0
            try:
                for chunk in response.iter_bytes():
                    size += len(chunk)
                    if size > self.size_limit:
                        raise LoaderError(
                            f"request $ref={url_text} over HTTP: aborted request after reading more than "
                            f"{format_size_bytes(self.size_limit)}"
                        )
                    if time.monotonic() > deadline:
                        raise LoaderError(f"request $ref={url_text} over HTTP: timed out after {self.timeout:g}s")
                    chunks.append(chunk)
            except httpx.DecodingError as e:
                raise LoaderError(f"request $ref={url_text} over HTTP: create gzip reader: {e}") from e
            except httpx.HTTPError as e:
                raise LoaderError(f"request $ref={url_text} over HTTP: read body: {e}") from e
            return response, b"".join(chunks)
        finally:
            response.close()

    def _parse_response(self, response: httpx.Response, body: bytes, url_text: str) -> Schema:
        return _parse_body(response.headers.get("Content-Type", ""), body, url_text)


def _parse_body(content_type: str, body: bytes, url_text: str) -> Schema:
    """Decode a response body according to its Content-Type.

    Used for fresh responses and for cached ones, so both decode alike.
    """
    media_type, params = _parse_content_type(content_type)
    charset = params.get("charset", "").lower()
    if charset not in ("", "utf-8", "utf8"):
        raise UnsupportedError(f'request $ref={url_text} over HTTP: unsupported response charset: "{charset}"')

    if _YAML_MEDIA_TYPE_RE.match(media_type):
        try:
            return Schema.from_dict(load_yaml(body))
        except (yaml.YAMLError, SchemaDecodeError) as e:
            raise LoaderError(f"parse $ref={url_text} YAML: {e}") from e
    try:
        return Schema.from_dict(json.loads(body))
    except (json.JSONDecodeError, UnicodeDecodeError, SchemaDecodeError) as e:
        raise LoaderError(f"parse $ref={url_text} JSON: {e}") from e


def _referrer_for(url: httpx.URL) -> Referrer:
    return Referrer.from_url(str(url.copy_with(path=posixpath.dirname(url.path), query=None)))


def _parse_content_type(value: str) -> tuple[str, dict[str, str]]:
    media_type, *raw_params = value.split(";")
    params = {}
    for param in raw_params:
        key, _, param_value = param.strip().partition("=")
        params[key.strip().lower()] = param_value.strip().strip('"')
    return media_type.strip().lower(), params


def _format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    return f"{seconds:.1f}s"
