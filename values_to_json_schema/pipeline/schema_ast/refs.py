"""
`$ref` parsing and resolution.

A `$ref` found in a values file or in a loaded schema is relative to where
that document came from. The Referrer remembers this origin (a directory or
a URL) so that nested relative references keep working after fragments are
moved around by the merger and the bundler.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import SplitResult, unquote, urljoin, urlsplit, urlunsplit

from ..errors import LoaderError


def parse_ref_url(ref: str) -> SplitResult:
    """Parse a `$ref` value as a URL.

    Raises:
        LoaderError: If the value is not a valid URL
    """
    if ref.startswith(":"):
        raise LoaderError(f'parse "{ref}": missing protocol scheme')
    try:
        return urlsplit(ref)
    except ValueError as e:
        raise LoaderError(f'parse "{ref}": {e}') from e


def trim_fragment(url: SplitResult) -> SplitResult:
    return url._replace(fragment="")


def redact_url(url: SplitResult) -> str:
    """Render a URL with any password replaced, for error messages."""
    if url.password is None:
        return url.geturl()
    netloc = url.netloc.replace(f":{url.password}@", ":xxxxx@", 1)
    return urlunsplit(url._replace(netloc=netloc))


def is_local_ref(url: SplitResult) -> bool:
    """Whether the URL only points inside the current document (`#/...`)."""
    return not url.scheme and not url.netloc and not url.path and not url.query


@dataclass(frozen=True)
class RefFile:
    """A `$ref` pointing at a local file, e.g. `schemas/foo.json#/$defs/bar`."""

    path: str = ""
    frag: str = ""

    @staticmethod
    def parse(ref: str, allow_absolute: bool = False) -> RefFile:
        return RefFile.from_url(parse_ref_url(ref), allow_absolute=allow_absolute)

    @staticmethod
    def from_url(url: SplitResult, allow_absolute: bool = False) -> RefFile:
        """Convert an already parsed URL.

        Returns an empty RefFile for URLs with another scheme than `file`,
        as those are not local files.

        Raises:
            LoaderError: If the URL cannot represent a local file
        """
        if url.scheme not in ("", "file"):
            return RefFile()
        if url.scheme == "file":
            if "@" in url.netloc:
                raise LoaderError("file URL user info not supported")
            path = url.netloc + url.path
            if not path:
                raise LoaderError("unexpected empty file://")
        else:
            path = url.path
        if url.query:
            raise LoaderError("file query parameters not supported")
        path = unquote(path)
        if not allow_absolute and os.path.isabs(path):
            raise LoaderError("absolute paths not supported")
        return RefFile(path=path, frag=url.fragment)

    def __str__(self) -> str:
        if self.frag:
            return f"{self.path}#{self.frag}"
        return self.path


@dataclass(frozen=True)
class Referrer:
    """Where a schema fragment was loaded from.

    Exactly one of `dir` or `url` is set; both empty means "unknown".
    """

    dir: str = ""
    url: str = ""

    @staticmethod
    def from_dir(path: str) -> Referrer:
        return Referrer(dir=path)

    @staticmethod
    def from_url(url: SplitResult | str) -> Referrer:
        if isinstance(url, SplitResult):
            url = url.geturl()
        return Referrer(url=url)

    def is_zero(self) -> bool:
        return not self.dir and not self.url

    def join(self, ref_file: RefFile) -> str:
        """Resolve a relative file reference against this referrer.

        URL referrers treat their path as a directory, so
        `http://example.com/a/b/c` joined with `../bar` gives
        `http://example.com/a/b/bar`.
        """
        if not ref_file.path:
            return str(ref_file)

        if self.dir:
            return str(RefFile(path=self.join_dir(ref_file.path), frag=ref_file.frag))

        if self.url:
            base = urlsplit(self.url)
            if not base.path.endswith("/"):
                base = base._replace(path=base.path + "/")
            joined = urlsplit(urljoin(base.geturl(), ref_file.path))
            return urlunsplit(joined._replace(fragment=ref_file.frag))

        return str(ref_file)

    def join_dir(self, path: str) -> str:
        """Make a relative file path absolute using the referrer directory."""
        if not self.dir or os.path.isabs(path):
            return path
        return os.path.normpath(os.path.join(self.dir, path))


def resolve_ref(ref: str, referrer: Referrer) -> SplitResult:
    """Parse a `$ref` and make local file paths absolute using the referrer.

    HTTP(S) references and in-document references (`#/...`) are returned
    as-is.

    Raises:
        LoaderError: If the reference cannot be parsed
    """
    url = parse_ref_url(ref)
    if url.scheme not in ("", "file") or is_local_ref(url):
        return url
    ref_file = RefFile.from_url(url, allow_absolute=True)
    if referrer.url:
        return urlsplit(referrer.join(ref_file))
    return SplitResult(scheme="", netloc="", path=referrer.join_dir(ref_file.path), query="", fragment=ref_file.frag)
