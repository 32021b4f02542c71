"""
Tests for the file and HTTP loaders and the loader chain.
"""

import gzip
import json
import logging
import re
from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit

import httpx
import pytest

from values_to_json_schema.pipeline.errors import LoaderError, UnsupportedError
from values_to_json_schema.pipeline.loader import (
    ACCEPT_HEADER,
    CacheLoader,
    FileLoader,
    HTTPLoader,
    HTTPMemoryCache,
    Loader,
    URLSchemeLoader,
    bundle_ref_id,
    load,
    new_default_loader,
)
from values_to_json_schema.pipeline.schema_ast.nodes import Schema

logger = logging.getLogger("test_loaders")


class CountingLoader(Loader):
    """Returns a fixed schema and counts calls."""

    def __init__(self, schema=None):
        self.schema = schema if schema is not None else Schema(type="string")
        self.calls = []

    def load(self, ref, *, referrer="", logger=None):
        self.calls.append(ref.geturl())
        return self.schema


def http_client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestLoad:
    """Tests for the load helper."""

    def test_no_loader(self):
        with pytest.raises(LoaderError, match="no loader configured"):
            load(None, "a.json")

    def test_empty_ref(self):
        with pytest.raises(LoaderError, match=r"cannot load empty \$ref"):
            load(CountingLoader(), "")

    def test_sets_relative_id_for_files(self):
        schema = load(CountingLoader(), "/abs/chart/schemas/a.json#/x", "/abs/chart")
        assert schema.id == "schemas/a.json"

    def test_keeps_http_id(self):
        schema = load(CountingLoader(), "https://example.com/a.json#/x", "/abs/chart")
        assert schema.id == "https://example.com/a.json"

    def test_boolean_schema_gets_no_id(self):
        schema = load(CountingLoader(Schema.true()), "https://example.com/a.json")
        assert schema.id == ""

    def test_bundle_ref_id(self):
        assert bundle_ref_id(urlsplit("file:///abs/chart/a.json"), "/abs") == "chart/a.json"
        assert bundle_ref_id(urlsplit("schemas/a.json#/x")) == "schemas/a.json"


class TestFileLoader:
    """Tests for FileLoader."""

    @pytest.fixture
    def root(self, tmp_path):
        root = tmp_path / "chart"
        (root / "schemas").mkdir(parents=True)
        (root / "schemas" / "a.json").write_text(json.dumps({"type": "object", "properties": {"b": {"$ref": "b.json"}}}))
        (root / "schemas" / "c.yaml").write_text("type: string\nminLength: 1\n")
        (root / "schemas" / "broken.json").write_text("{")
        (tmp_path / "outside.json").write_text("{}")
        return root.resolve()

    def test_load_json(self, root):
        schema = FileLoader(root).load(urlsplit("schemas/a.json"), logger=logger)
        assert schema.type == "object"
        # Nested references resolve against the loaded file's directory
        assert schema.properties["b"].ref_referrer.dir == str(root / "schemas")
        assert schema.properties["b"].parse_ref().path == str(root / "schemas" / "b.json")

    def test_load_yaml(self, root):
        schema = FileLoader(root).load(urlsplit("schemas/c.yaml"), logger=logger)
        assert schema.to_dict() == {"type": "string", "minLength": 1}

    def test_absolute_path_is_made_relative_to_root_path(self, root):
        schema = FileLoader(root).load(urlsplit(str(root / "schemas" / "c.yaml")), logger=logger)
        assert schema.type == "string"

    def test_file_scheme(self, root):
        schema = FileLoader(root).load(urlsplit(f"file://{root}/schemas/c.yaml"), logger=logger)
        assert schema.type == "string"

    def test_path_escape(self, root):
        with pytest.raises(LoaderError, match="path escapes from parent"):
            FileLoader(root).load(urlsplit("../outside.json"), logger=logger)

    def test_wrong_scheme(self, root):
        with pytest.raises(LoaderError, match='must start with "file://", "./", or "/"'):
            FileLoader(root).load(urlsplit("ftp://example.com/a.json"), logger=logger)

    def test_missing_file(self, root):
        with pytest.raises(LoaderError, match="open schemas/missing.json"):
            FileLoader(root).load(urlsplit("schemas/missing.json"), logger=logger)

    def test_invalid_json(self, root):
        with pytest.raises(LoaderError, match="parse JSON file"):
            FileLoader(root).load(urlsplit("schemas/broken.json"), logger=logger)

    def test_logs_progress(self, root, caplog):
        with caplog.at_level(logging.INFO, logger="test_loaders"):
            FileLoader(root).load(urlsplit("schemas/c.yaml"), logger=logger)
        assert "Loading file" in caplog.text
        assert "=> got 26B" in caplog.text


class TestHTTPLoader:
    """Tests for HTTPLoader against a mock transport."""

    def test_load(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"type": "object", "properties": {"b": {"$ref": "b.json"}}})

        loader = HTTPLoader(http_client(handler), user_agent="test-agent")
        schema = loader.load(
            urlsplit("https://example.com/schemas/a.json#/properties"),
            referrer="https://example.com/root.json",
            logger=logger,
        )
        assert schema.type == "object"
        assert schema.properties["b"].parse_ref().geturl() == "https://example.com/schemas/b.json"

        request = requests[0]
        assert str(request.url) == "https://example.com/schemas/a.json"
        assert request.headers["Accept"] == ACCEPT_HEADER
        assert request.headers["Accept-Encoding"] == "gzip"
        assert request.headers["Link"] == '<https://example.com/root.json>; rel="describedby"'
        assert request.headers["User-Agent"] == "test-agent"

    def test_yaml_response(self):
        def handler(request):
            return httpx.Response(200, content=b"type: integer\n", headers={"Content-Type": "application/schema+yaml"})

        schema = HTTPLoader(http_client(handler)).load(urlsplit("https://example.com/a.yaml"), logger=logger)
        assert schema.type == "integer"

    def test_gzip_response(self):
        def handler(request):
            return httpx.Response(
                200,
                content=gzip.compress(b'{"type": "string"}'),
                headers={"Content-Type": "application/json", "Content-Encoding": "gzip"},
            )

        schema = HTTPLoader(http_client(handler)).load(urlsplit("https://example.com/a.json"), logger=logger)
        assert schema.type == "string"

    def test_unsupported_encoding(self):
        def handler(request):
            return httpx.Response(200, content=b"{}", headers={"Content-Encoding": "foobar"})

        with pytest.raises(UnsupportedError, match='unsupported content encoding: "foobar"'):
            HTTPLoader(http_client(handler)).load(urlsplit("https://example.com/a.json"), logger=logger)

    def test_unsupported_charset(self):
        def handler(request):
            return httpx.Response(200, content=b"{}", headers={"Content-Type": "application/json; charset=latin1"})

        with pytest.raises(UnsupportedError, match='unsupported response charset: "latin1"'):
            HTTPLoader(http_client(handler)).load(urlsplit("https://example.com/a.json"), logger=logger)

    def test_error_status(self):
        def handler(request):
            return httpx.Response(410)

        with pytest.raises(LoaderError, match="got non-2xx status code: 410 Gone"):
            HTTPLoader(http_client(handler)).load(urlsplit("https://example.com/a.json"), logger=logger)

    def test_size_limit(self):
        def handler(request):
            return httpx.Response(200, content=b" " * 100)

        with pytest.raises(LoaderError, match="aborted request after reading more than 10B"):
            HTTPLoader(http_client(handler), size_limit=10).load(urlsplit("https://example.com/a.json"), logger=logger)

    def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, content=b"{")

        with pytest.raises(LoaderError, match=re.escape("parse $ref=https://example.com/a.json JSON")):
            HTTPLoader(http_client(handler)).load(urlsplit("https://example.com/a.json"), logger=logger)

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(LoaderError, match="over HTTP: connection refused"):
            HTTPLoader(http_client(handler)).load(urlsplit("https://example.com/a.json"), logger=logger)

    def test_wrong_scheme(self):
        loader = HTTPLoader(http_client(lambda request: httpx.Response(200)))
        with pytest.raises(LoaderError, match='must use the "http" or "https" scheme'):
            loader.load(urlsplit("ftp://example.com/a.json"), logger=logger)


class TestHTTPLoaderCache:
    """Tests for cached and revalidated HTTP loads."""

    def test_fresh_hit_then_revalidation(self):
        now = [datetime(2026, 1, 1, tzinfo=timezone.utc)]
        requests = []

        def handler(request):
            requests.append(request)
            headers = {"Cache-Control": "max-age=60", "ETag": '"v1"'}
            if request.headers.get("If-None-Match") == '"v1"':
                return httpx.Response(304, headers=headers)
            return httpx.Response(200, content=b'{"type": "string"}', headers={"Content-Type": "application/json", **headers})

        cache = HTTPMemoryCache(now=lambda: now[0])
        loader = HTTPLoader(http_client(handler), cache=cache, now=lambda: now[0])
        ref = urlsplit("https://example.com/a.json")

        assert loader.load(ref, logger=logger).type == "string"
        assert len(requests) == 1

        # Fresh: no request at all
        now[0] += timedelta(seconds=30)
        assert loader.load(ref, logger=logger).type == "string"
        assert len(requests) == 1

        # Expired: revalidated with the ETag, and the entry is refreshed
        now[0] += timedelta(seconds=60)
        schema = loader.load(ref, logger=logger)
        assert len(requests) == 2
        assert requests[1].headers["If-None-Match"] == '"v1"'
        assert schema.type == "string"
        entry = cache.entries["https://example.com/a.json"]
        assert entry.cached_at == now[0]
        assert entry.expiry() == now[0] + timedelta(seconds=60)

    def test_changed_resource_is_fetched_again(self):
        now = [datetime(2026, 1, 1, tzinfo=timezone.utc)]
        bodies = [b'{"type": "string"}', b'{"type": "integer"}']

        def handler(request):
            return httpx.Response(200, content=bodies.pop(0), headers={"Cache-Control": "max-age=60", "ETag": '"v1"'})

        cache = HTTPMemoryCache(now=lambda: now[0])
        loader = HTTPLoader(http_client(handler), cache=cache, now=lambda: now[0])
        ref = urlsplit("https://example.com/a.json")
        loader.load(ref, logger=logger)
        now[0] += timedelta(seconds=120)
        assert loader.load(ref, logger=logger).type == "integer"

    def test_cached_json_decodes_like_fresh(self):
        now = [datetime(2026, 1, 1, tzinfo=timezone.utc)]
        body = b'{"type": "number", "enum": [1e20, 2.5e-7]}'

        def handler(request):
            return httpx.Response(
                200, content=body, headers={"Content-Type": "application/json", "Cache-Control": "max-age=60"}
            )

        loader = HTTPLoader(http_client(handler), cache=HTTPMemoryCache(now=lambda: now[0]), now=lambda: now[0])
        ref = urlsplit("https://example.com/a.json")
        fresh = loader.load(ref, logger=logger)
        now[0] += timedelta(seconds=30)
        cached = loader.load(ref, logger=logger)
        assert fresh.enum == [1e20, 2.5e-7]
        assert cached.enum == fresh.enum

    def test_cached_yaml_keeps_its_media_type(self):
        now = [datetime(2026, 1, 1, tzinfo=timezone.utc)]

        def handler(request):
            return httpx.Response(
                200, content=b"type: string\n", headers={"Content-Type": "application/yaml", "Cache-Control": "max-age=60"}
            )

        loader = HTTPLoader(http_client(handler), cache=HTTPMemoryCache(now=lambda: now[0]), now=lambda: now[0])
        ref = urlsplit("https://example.com/a.yaml")
        loader.load(ref, logger=logger)
        now[0] += timedelta(seconds=30)
        assert loader.load(ref, logger=logger).type == "string"

    def test_cache_read_failure_is_a_miss(self, caplog):
        class BrokenCache:
            def load_cache(self, request):
                raise OSError("disk on fire")

            def save_cache(self, request, response, body):
                return None

        def handler(request):
            return httpx.Response(200, json={"type": "string"})

        loader = HTTPLoader(http_client(handler), cache=BrokenCache())
        with caplog.at_level(logging.WARNING, logger="test_loaders"):
            schema = loader.load(urlsplit("https://example.com/a.json"), logger=logger)
        assert schema.type == "string"
        assert "Failed to read HTTP cache" in caplog.text


class TestLoaderChain:
    """Tests for URLSchemeLoader, CacheLoader and new_default_loader."""

    def test_unknown_scheme(self):
        loader = URLSchemeLoader({"file": CountingLoader(), "http": CountingLoader()})
        message = 'cannot load schema from $ref="ftp://example.com/a.json", supported schemes: "file", "http"'
        with pytest.raises(UnsupportedError, match=re.escape(message)):
            loader.load(urlsplit("ftp://example.com/a.json"))

    def test_dispatch_by_scheme(self):
        file_loader = CountingLoader()
        http_loader = CountingLoader()
        loader = URLSchemeLoader({"": file_loader, "https": http_loader})
        loader.load(urlsplit("https://example.com/a.json"))
        loader.load(urlsplit("a.json"))
        assert http_loader.calls == ["https://example.com/a.json"]
        assert file_loader.calls == ["a.json"]

    def test_cache_loader_returns_same_instance(self):
        inner = CountingLoader()
        loader = CacheLoader(inner)
        first = loader.load(urlsplit("https://example.com/a.json#/x"))
        second = loader.load(urlsplit("https://example.com/a.json#/y"))
        assert first is second
        assert len(inner.calls) == 1

    def test_default_loader_reads_files(self, tmp_path):
        (tmp_path / "a.json").write_text('{"type": "boolean"}')

        def handler(request):
            raise AssertionError("no HTTP request expected")

        loader = new_default_loader(http_client(handler), tmp_path)
        assert isinstance(loader, CacheLoader)
        assert loader.load(urlsplit("a.json"), logger=logger).type == "boolean"
