# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Cargo manifest model.

Manifests are held as ``tomlkit`` documents: a typed, mutable node tree
(tables, inline tables, arrays, scalars) that keeps comments, key order
and whitespace of everything that is not edited. Nothing here flattens a
manifest into plain dicts for writing; edits go through the tree.

Dependency entries come in two shapes::

    [dependencies]
    serde = "1.0"                                      ← PlainVersion
    tokio = { version = "1", features = ["full"] }     ← TableSpec

    [dependencies.clap]                                ← TableSpec
    version = "4"

An entry is *inherited* when its table carries ``workspace = true``.

Entry attributes fall into four classes:

    ┌──────────────┬──────────────────────────────────┬──────────────────┐
    │ Class        │ Keys                             │ On promotion     │
    ├──────────────┼──────────────────────────────────┼──────────────────┤
    │ version      │ version                          │ moved to root    │
    │ source       │ path git branch tag rev          │ moved to root    │
    │              │ registry package                 │                  │
    │ local        │ features optional                │ kept on member   │
    │              │ default-features                 │                  │
    │ unknown      │ anything else                    │ entry skipped    │
    └──────────────┴──────────────────────────────────┴──────────────────┘
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions
from tomlkit.items import Item, Table

from inheritkit.errors import E, InheritKitError
from inheritkit.logging import get_logger

logger = get_logger(__name__)

MANIFEST_NAME = 'Cargo.toml'

VERSION_KEY = 'version'
WORKSPACE_KEY = 'workspace'
LOCAL_KEYS: frozenset[str] = frozenset({'features', 'optional', 'default-features', 'default_features'})
SOURCE_KEYS: tuple[str, ...] = ('path', 'git', 'branch', 'tag', 'rev', 'registry', 'package')
DEFAULT_FEATURES_KEYS: tuple[str, ...] = ('default-features', 'default_features')


class DependencyKind(str, Enum):
    """Dependency namespace. Each kind is counted independently."""

    NORMAL = 'normal'
    DEV = 'dev'
    BUILD = 'build'

    @property
    def table_name(self) -> str:
        """The manifest table holding this kind of dependency."""
        return _TABLE_NAMES[self]


_TABLE_NAMES: dict[DependencyKind, str] = {
    DependencyKind.NORMAL: 'dependencies',
    DependencyKind.DEV: 'dev-dependencies',
    DependencyKind.BUILD: 'build-dependencies',
}


@dataclass(frozen=True)
class PlainVersion:
    """``name = "1.2"``: a bare version requirement."""

    version: str

    @property
    def attributes(self) -> dict[str, Any]:
        """The equivalent table form, ``{version = ...}``."""
        return {VERSION_KEY: self.version}


@dataclass(frozen=True)
class TableSpec:
    """``name = { ... }`` or a ``[dependencies.name]`` table.

    Attributes:
        attributes: Plain Python values of the table, in document order.
        inline: ``False`` for a standard ``[dependencies.name]`` table.
    """

    attributes: dict[str, Any] = field(default_factory=dict)
    inline: bool = True


DependencySpec = PlainVersion | TableSpec


def parse_spec(value: object) -> DependencySpec | None:
    """Build a :data:`DependencySpec` from a tomlkit value.

    Returns ``None`` for values that are neither a string nor a table
    (``name = 1``, ``name = ["x"]``); such entries still count as
    occurrences but cannot be rewritten.
    """
    if isinstance(value, str):
        return PlainVersion(str(value))
    if isinstance(value, dict):
        attributes = value.unwrap() if isinstance(value, Item) else dict(value)
        return TableSpec(
            attributes=dict(attributes),
            inline=not isinstance(value, Table),
        )
    return None


def spec_version(spec: DependencySpec | None) -> str | None:
    """The ``version`` requirement of ``spec``, if it declares one."""
    if spec is None:
        return None
    version = spec.attributes.get(VERSION_KEY)
    return version if isinstance(version, str) else None


def is_inherited(spec: DependencySpec | None) -> bool:
    """Whether ``spec`` already references the workspace."""
    return isinstance(spec, TableSpec) and spec.attributes.get(WORKSPACE_KEY) is True


def spec_source(spec: DependencySpec | None) -> dict[str, Any]:
    """Source attributes of ``spec`` (``path``, ``git``, ...), in canonical key order."""
    if spec is None:
        return {}
    attributes = spec.attributes
    return {key: attributes[key] for key in SOURCE_KEYS if key in attributes}


def disables_default_features(spec: DependencySpec | None) -> bool:
    """Whether ``spec`` sets ``default-features = false`` (either spelling)."""
    if not isinstance(spec, TableSpec):
        return False
    return any(spec.attributes.get(key) is False for key in DEFAULT_FEATURES_KEYS)


def unknown_attributes(spec: DependencySpec) -> list[str]:
    """Attribute names the rewriter does not know how to carry over."""
    known = LOCAL_KEYS | set(SOURCE_KEYS) | {VERSION_KEY, WORKSPACE_KEY}
    return [key for key in spec.attributes if key not in known]


@dataclass(eq=False)
class ManifestDocument:
    """One ``Cargo.toml`` on disk and its parsed tree.

    Attributes:
        path: Absolute path of the manifest.
        text: The file content as read.
        doc: The tomlkit document tree; edited in place.
        dirty: Set by editors once ``doc`` has been mutated.
    """

    path: Path
    text: str
    doc: tomlkit.TOMLDocument
    dirty: bool = False

    @classmethod
    def load(cls, path: Path) -> ManifestDocument:
        """Read and parse ``path``.

        Raises:
            InheritKitError: ``IK-MANIFEST-NOT-FOUND`` if the file is
                missing, ``IK-MALFORMED-MANIFEST`` if it cannot be read
                or parsed.
        """
        path = path.resolve()
        if not path.is_file():
            raise InheritKitError(
                code=E.MANIFEST_NOT_FOUND,
                message=f'{MANIFEST_NAME} not found at {path}',
                hint=f'Check that {path} exists.',
            )
        try:
            # Bytes round-trip keeps CRLF line endings intact.
            text = path.read_bytes().decode('utf-8')
        except (OSError, UnicodeDecodeError) as exc:
            raise InheritKitError(
                code=E.MALFORMED_MANIFEST,
                message=f'Cannot read {path}: {exc}',
                hint=f'Check that {path} is a readable UTF-8 file.',
            ) from exc
        try:
            doc = tomlkit.parse(text)
        except tomlkit.exceptions.TOMLKitError as exc:
            raise InheritKitError(
                code=E.MALFORMED_MANIFEST,
                message=f'Cannot parse {path}: {exc}',
                hint=f'Check that {path} contains valid TOML.',
            ) from exc
        logger.debug('manifest_loaded', path=str(path))
        return cls(path=path, text=text, doc=doc)

    def render(self) -> str:
        """Serialize the (possibly edited) tree."""
        return tomlkit.dumps(self.doc)

    @property
    def changed(self) -> bool:
        """Whether serializing now would produce different bytes."""
        return self.dirty and self.render() != self.text


@dataclass(frozen=True)
class DependencyTable:
    """A dependency table inside a member manifest.

    Attributes:
        kind: Namespace the table belongs to.
        location: Dotted table path, e.g. ``dependencies`` or
            ``target.'cfg(unix)'.dev-dependencies``.
        table: The live tomlkit container.
    """

    kind: DependencyKind
    location: str
    table: Any


@dataclass(eq=False)
class MemberManifest:
    """A member crate's manifest.

    Attributes:
        document: The parsed manifest. For a root crate this is the same
            object as the workspace's document.
        name: ``[package].name``, or the directory name when absent.
    """

    document: ManifestDocument
    name: str

    @property
    def path(self) -> Path:
        """Absolute manifest path."""
        return self.document.path

    @property
    def directory(self) -> Path:
        """Directory holding the manifest."""
        return self.document.path.parent

    def dependency_tables(self) -> Iterator[DependencyTable]:
        """Yield every dependency table, top-level first, then per target."""
        doc = self.document.doc
        for kind in DependencyKind:
            table = doc.get(kind.table_name)
            if isinstance(table, dict):
                yield DependencyTable(kind=kind, location=kind.table_name, table=table)

        target = doc.get('target')
        if not isinstance(target, dict):
            return
        for cfg, target_table in target.items():
            if not isinstance(target_table, dict):
                continue
            for kind in DependencyKind:
                table = target_table.get(kind.table_name)
                if isinstance(table, dict):
                    yield DependencyTable(
                        kind=kind,
                        location=f"target.'{cfg}'.{kind.table_name}",
                        table=table,
                    )

    def dependencies(self, kind: DependencyKind) -> dict[str, DependencySpec | None]:
        """All ``kind`` entries of this member keyed by name.

        Target-specific entries are included; when a name appears in more
        than one table, the first table wins.
        """
        deps: dict[str, DependencySpec | None] = {}
        for dep_table in self.dependency_tables():
            if dep_table.kind is not kind:
                continue
            for name, value in dep_table.table.items():
                deps.setdefault(str(name), parse_spec(value))
        return deps


@dataclass(eq=False)
class WorkspaceManifest:
    """The root manifest declaring ``[workspace]``.

    Attributes:
        document: The parsed root manifest.
        members: ``[workspace].members`` entries (paths or globs).
        exclude: ``[workspace].exclude`` entries.
    """

    document: ManifestDocument
    members: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    @property
    def path(self) -> Path:
        """Absolute manifest path."""
        return self.document.path

    @property
    def directory(self) -> Path:
        """Workspace root directory."""
        return self.document.path.parent

    @property
    def has_package(self) -> bool:
        """Whether the root manifest is also a crate (``[package]``)."""
        return isinstance(self.document.doc.get('package'), dict)

    def shared_table(self, *, create: bool = False) -> Any:  # noqa: ANN401 - tomlkit container
        """Return ``[workspace.dependencies]``, creating it when asked."""
        workspace = self.document.doc['workspace']
        table = workspace.get('dependencies')
        if isinstance(table, dict) or not create:
            return table if isinstance(table, dict) else None
        table = tomlkit.table()
        workspace.append('dependencies', table)
        self.document.dirty = True
        logger.debug('shared_table_created', path=str(self.path))
        return workspace['dependencies']

    def shared_dependencies(self) -> dict[str, DependencySpec | None]:
        """``[workspace.dependencies]`` entries keyed by name."""
        table = self.shared_table()
        if table is None:
            return {}
        return {str(name): parse_spec(value) for name, value in table.items()}


__all__ = [
    'DEFAULT_FEATURES_KEYS',
    'LOCAL_KEYS',
    'MANIFEST_NAME',
    'SOURCE_KEYS',
    'DependencyKind',
    'DependencySpec',
    'DependencyTable',
    'ManifestDocument',
    'MemberManifest',
    'PlainVersion',
    'TableSpec',
    'WorkspaceManifest',
    'disables_default_features',
    'is_inherited',
    'parse_spec',
    'spec_source',
    'spec_version',
    'unknown_attributes',
]
