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

"""Workspace discovery: root manifest, member globs, member manifests.

Cargo workspace layout (directory names are arbitrary)::

    ws/
    ├── Cargo.toml        ← [workspace] members = ["crates/*", "tools/cli"]
    ├── crates/
    │   ├── core/
    │   │   └── Cargo.toml
    │   └── utils/
    │       └── Cargo.toml
    └── tools/
        └── cli/
            └── Cargo.toml

Everything here only reads the file system. Any failure is fatal: the
pipeline cannot aggregate anything without a complete manifest set.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from inheritkit.errors import E, InheritKitError
from inheritkit.logging import get_logger
from inheritkit.manifest import MANIFEST_NAME, ManifestDocument, MemberManifest, WorkspaceManifest

logger = get_logger(__name__)


@dataclass
class LoadedWorkspace:
    """The root manifest plus every member manifest it declares.

    Attributes:
        root: The workspace root manifest.
        members: Member manifests in declaration order. A root crate
            (``[package]`` next to ``[workspace]``) comes first.
    """

    root: WorkspaceManifest
    members: list[MemberManifest] = field(default_factory=list)

    @property
    def documents(self) -> list[ManifestDocument]:
        """Every distinct document of the run, root first."""
        docs = [self.root.document]
        for member in self.members:
            if all(member.document is not d for d in docs):
                docs.append(member.document)
        return docs


def _string_list(value: object, *, key: str, path: Path) -> list[str]:
    """Validate that ``[workspace].<key>`` is an array of strings."""
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise InheritKitError(
            code=E.MALFORMED_MANIFEST,
            message=f'[workspace].{key} in {path} must be an array of strings',
            hint=f'Example: {key} = ["crates/*"]',
        )
    return [str(v) for v in value]


def read_workspace_manifest(path: Path) -> WorkspaceManifest:
    """Load the root manifest and its ``[workspace]`` member list.

    Args:
        path: The root ``Cargo.toml``, or the directory containing it.

    Raises:
        InheritKitError: ``IK-MANIFEST-NOT-FOUND``,
            ``IK-MALFORMED-MANIFEST`` or ``IK-NO-MEMBERS-DECLARED``.
    """
    if path.is_dir():
        path = path / MANIFEST_NAME
    document = ManifestDocument.load(path)

    workspace = document.doc.get('workspace')
    if not isinstance(workspace, dict):
        raise InheritKitError(
            code=E.NO_MEMBERS_DECLARED,
            message=f'No [workspace] section found in {document.path}',
            hint='Point --path at the Cargo.toml that declares [workspace].',
        )

    members = _string_list(workspace.get('members'), key='members', path=document.path)
    if not members:
        raise InheritKitError(
            code=E.NO_MEMBERS_DECLARED,
            message=f'[workspace].members is empty in {document.path}',
            hint='List at least one member crate directory, e.g. members = ["crates/*"].',
        )
    exclude = _string_list(workspace.get('exclude'), key='exclude', path=document.path)

    logger.debug('workspace_manifest_loaded', path=str(document.path), members=members)
    return WorkspaceManifest(document=document, members=members, exclude=exclude)


def _is_excluded(root: Path, directory: Path, exclude: Sequence[str]) -> bool:
    rel = directory.relative_to(root).as_posix() if directory.is_relative_to(root) else str(directory)
    for pattern in exclude:
        pattern = pattern.rstrip('/')
        if fnmatch.fnmatch(rel, pattern) or rel == pattern or rel.startswith(f'{pattern}/'):
            return True
    return False


def expand_member_globs(root: Path, globs: Sequence[str], exclude: Sequence[str] = ()) -> list[Path]:
    """Expand ``[workspace].members`` entries into crate directories.

    Glob entries (``crates/*``) keep only matches holding a
    ``Cargo.toml``. Plain entries must point at a crate directory.
    Directories listed under ``[workspace].exclude`` are dropped and
    duplicates are returned once, in first-seen order.

    Raises:
        InheritKitError: ``IK-MANIFEST-NOT-FOUND`` if a plain entry has
            no manifest.
    """
    root = root.resolve()
    dirs: list[Path] = []
    seen: set[Path] = set()

    def _add(candidate: Path) -> None:
        resolved = candidate.resolve()
        if resolved in seen or _is_excluded(root, resolved, exclude):
            return
        seen.add(resolved)
        dirs.append(resolved)

    for pattern in globs:
        if any(ch in pattern for ch in '*?['):
            for match in sorted(root.glob(pattern)):
                if match.is_dir() and (match / MANIFEST_NAME).is_file():
                    _add(match)
                else:
                    logger.debug('glob_match_skipped', path=str(match), pattern=pattern)
        else:
            candidate = root / pattern
            if not (candidate / MANIFEST_NAME).is_file():
                raise InheritKitError(
                    code=E.MANIFEST_NOT_FOUND,
                    message=f'Workspace member {pattern!r} has no {MANIFEST_NAME} at {candidate / MANIFEST_NAME}',
                    hint='Fix or remove the entry in [workspace].members.',
                )
            _add(candidate)
    return dirs


def _package_name(document: ManifestDocument) -> str:
    package = document.doc.get('package')
    if isinstance(package, dict) and isinstance(package.get('name'), str):
        return str(package['name'])
    return document.path.parent.name


def read_workspace(path: Path) -> LoadedWorkspace:
    """Load the root manifest and every member manifest.

    Args:
        path: The root ``Cargo.toml``, or the directory containing it.

    Returns:
        The loaded workspace. Nothing is mutated.

    Raises:
        InheritKitError: Any loading failure; all are fatal.
    """
    root = read_workspace_manifest(path)
    members: list[MemberManifest] = []

    if root.has_package:
        members.append(MemberManifest(document=root.document, name=_package_name(root.document)))

    for crate_dir in expand_member_globs(root.directory, root.members, root.exclude):
        if crate_dir == root.directory:
            # "." in members: the root crate, already added above.
            continue
        document = ManifestDocument.load(crate_dir / MANIFEST_NAME)
        members.append(MemberManifest(document=document, name=_package_name(document)))

    logger.info(
        'members_loaded',
        count=len(members),
        members=[m.name for m in members],
    )
    return LoadedWorkspace(root=root, members=members)


def filter_members(members: Sequence[MemberManifest], exclude_packages: Sequence[str]) -> list[MemberManifest]:
    """Drop members whose package name matches any of ``exclude_packages`` (globs)."""
    kept: list[MemberManifest] = []
    for member in members:
        if any(fnmatch.fnmatch(member.name, pat) for pat in exclude_packages):
            logger.debug('member_excluded', member=member.name, patterns=list(exclude_packages))
            continue
        kept.append(member)
    return kept


__all__ = [
    'LoadedWorkspace',
    'expand_member_globs',
    'filter_members',
    'read_workspace',
    'read_workspace_manifest',
]
