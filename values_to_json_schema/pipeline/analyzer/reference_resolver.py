"""
Reference resolver for bundling.

Loads every external `$ref` of a schema and stores the loaded documents
under the root `$defs`, so the result can be used without network or
file access.
"""

from __future__ import annotations

import logging
import posixpath

from ..errors import LoaderError
from ..loader.base import Loader, bundle_ref_id, load
from ..log import get_logger
from ..merger.compliance import ensure_compliant
from ..pointer import Ptr, parse_ptr
from ..schema_ast.nodes import Schema
from ..schema_ast.refs import is_local_ref


class ReferenceResolver:
    """Resolves external `$ref`s into bundled `$defs`."""

    def __init__(self, loader: Loader | None, base_path_for_ids: str = "", logger: logging.Logger | None = None):
        """
        Initialize the resolver.

        Args:
            loader: Loader used to fetch referenced documents
            base_path_for_ids: Absolute directory that local file `$id`s
                are made relative to
            logger: Logger passed down to the loader
        """
        if loader is None:
            raise LoaderError("no loader configured")
        self.loader = loader
        self.base_path_for_ids = base_path_for_ids
        self.logger = get_logger(logger)
        # Bundled reference IDs and their `$defs` names. Boolean schemas
        # carry no `$id`, so this is the only record of them.
        self.bundled: dict[str, str] = {}

    def bundle(self, schema: Schema) -> dict[str, str]:
        """Load all external `$ref`s of `schema` into `schema.defs`, in place.

        Documents already bundled, judged by `$id` or by an earlier `$ref`
        to the same document, are not loaded again.

        Returns:
            The `$defs` name of each bundled reference ID

        Raises:
            LoaderError: If a reference cannot be loaded, prefixed with the
                pointer of the node holding it
            CircularReferenceError: If a loaded document has a cycle
        """
        self._bundle_rec(Ptr(), schema, schema)
        return self.bundled

    def _bundle_rec(self, ptr: Ptr, root: Schema, schema: Schema) -> None:
        for sub_ptr, sub in list(schema.subschemas()):
            self._bundle_rec(ptr.add(sub_ptr), root, sub)

        if not schema.ref:
            return
        try:
            ref = schema.parse_ref()
        except LoaderError as e:
            raise LoaderError(f"{ptr}: parse $ref as URL: {e}") from e
        if is_local_ref(ref):
            return

        ref_id = bundle_ref_id(ref, self.base_path_for_ids)
        if ref_id in self.bundled or any(def_.id == ref_id for def_ in root.defs.values()):
            return

        try:
            loaded = load(self.loader, ref, self.base_path_for_ids, referrer=schema.id or "", logger=self.logger)
        except LoaderError as e:
            raise LoaderError(f"{ptr}: {e}") from e
        # The loader may hand the same instance to other callers
        loaded = loaded.clone()

        # Documents that were bundled themselves keep their `$defs` with `$id`s
        for def_name, def_ in list(loaded.defs.items()):
            if def_.id and not any(existing.id == def_.id for existing in root.defs.values()):
                root.defs[generate_bundled_name(def_.id, root.defs)] = def_
                del loaded.defs[def_name]

        name = generate_bundled_name(loaded.id or ref_id, root.defs)
        root.defs[name] = loaded
        self.bundled[ref_id] = name
        ensure_compliant(loaded)

        self._bundle_rec(Ptr.of("$defs", name), root, loaded)


def bundle_schema(
    loader: Loader | None,
    schema: Schema,
    base_path_for_ids: str = "",
    logger: logging.Logger | None = None,
) -> dict[str, str]:
    """Bundle all external references of `schema` into its `$defs`.

    Returns the `$defs` name of each bundled reference ID, for
    `bundle_remove_ids`.
    """
    return ReferenceResolver(loader, base_path_for_ids, logger).bundle(schema)


def generate_bundled_name(id_: str, defs: dict[str, Schema]) -> str:
    """Pick a `$defs` key for a bundled document.

    Uses the last path segment of its `$id`, adding `_2`, `_3`, ... on
    collisions. An existing entry with the same `$id` keeps its name.
    """
    base_name = posixpath.basename(id_.rstrip("/")) or id_
    name = base_name
    i = 1
    while name in defs:
        if defs[name].id == id_:
            return name
        i += 1
        name = f"{base_name}_{i}"
    return name


def bundle_remove_ids(schema: Schema, base_path_for_ids: str = "", bundled_refs: dict[str, str] | None = None) -> None:
    """Point `$ref`s at bundled `$defs` entries and drop their `$id`s.

    Some editors, like the JSON and YAML language servers of Visual Studio
    Code, do not look up `$id`s inside `$defs`. For example
    `{"$ref": "https://example.com/schema.json"}` becomes
    `{"$ref": "#/$defs/schema.json"}`.

    Updates the schema in place. `bundled_refs`, as returned by
    `bundle_schema`, resolves references to documents without an `$id`,
    such as boolean schemas.

    Raises:
        LoaderError: If a `$ref` matches no bundled document
    """
    bundled_refs = bundled_refs or {}
    bundled = {id(def_): name for name, def_ in schema.defs.items() if def_.id}
    _change_refs_rec(Ptr(), schema, schema, "", bundled, base_path_for_ids, bundled_refs)
    for def_ in schema.defs.values():
        def_.id = ""


def _change_refs_rec(
    ptr: Ptr,
    root: Schema,
    schema: Schema,
    def_name: str,
    bundled: dict[int, str],
    base_path_for_ids: str,
    bundled_refs: dict[str, str],
) -> None:
    for sub_ptr, sub in schema.subschemas():
        sub_def_name = bundled.get(id(sub), def_name) if schema is root else def_name
        _change_refs_rec(ptr.add(sub_ptr), root, sub, sub_def_name, bundled, base_path_for_ids, bundled_refs)

    if not schema.ref:
        return
    try:
        ref = schema.parse_ref()
    except LoaderError as e:
        raise LoaderError(f"{ptr}: parse $ref as URL: {e}") from e

    if is_local_ref(ref):
        # Local references inside a bundled document are relative to that document
        if def_name:
            schema.ref = _def_ref(def_name, ref.fragment)
        return

    ref_id = bundle_ref_id(ref, base_path_for_ids)
    for name, def_ in root.defs.items():
        if def_.id == ref_id:
            schema.ref = _def_ref(name, ref.fragment)
            return
    if bundled_refs.get(ref_id) in root.defs:
        schema.ref = _def_ref(bundled_refs[ref_id], ref.fragment)
        return
    raise LoaderError(f'{ptr}: no $defs found that matches $ref="{schema.ref}"')


def _def_ref(name: str, fragment: str) -> str:
    return "#" + str(Ptr.of("$defs", name).add(parse_ptr(fragment)))
