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

"""Apply inheritance decisions to the in-memory manifest trees.

Member entries::

    serde = "1.0"                                  → serde = { workspace = true }
    tokio = { version = "1", features = ["rt"] }   → tokio = { workspace = true, features = ["rt"] }
    core = { path = "../core", optional = true }   → core = { workspace = true, optional = true }

Root ``[workspace.dependencies]`` entries::

    serde = "1.0"
    core = { version = "0.3", path = "crates/core" }
    rand = { version = "0.8", default-features = false }

``version`` and source attributes always leave the member; ``features``,
``optional`` and ``default-features`` stay, keeping their original
spelling. When the root entry disables default features, rewritten
entries that did not disable them get ``default-features = true``.
Comments after a rewritten entry stay in place. Entries the
rewriter cannot convert safely are skipped one by one with an
``IK-AMBIGUOUS-INLINE-STRUCTURE`` warning.

Nothing is written to disk here; edited documents are flagged ``dirty``
for :mod:`inheritkit.writer`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import tomlkit
from tomlkit.items import InlineTable, Item

from inheritkit.aggregate import Occurrence
from inheritkit.errors import AmbiguousInlineStructure, InheritKitWarning
from inheritkit.logging import get_logger
from inheritkit.manifest import (
    DEFAULT_FEATURES_KEYS,
    LOCAL_KEYS,
    SOURCE_KEYS,
    VERSION_KEY,
    WORKSPACE_KEY,
    TableSpec,
    WorkspaceManifest,
    unknown_attributes,
)

if TYPE_CHECKING:
    from inheritkit.selector import InheritanceDecision

logger = get_logger(__name__)

_FLAG_KEYS = ('optional', *DEFAULT_FEATURES_KEYS)


@dataclass
class RewriteResult:
    """What the rewriter changed.

    Attributes:
        rewritten: Member entries now inheriting from the workspace.
        skipped: One warning per entry left untouched.
        published: Names written to ``[workspace.dependencies]``.
    """

    rewritten: list[Occurrence] = field(default_factory=list)
    skipped: list[InheritKitWarning] = field(default_factory=list)
    published: list[str] = field(default_factory=list)


def _value_text(value: object) -> str:
    """TOML text of ``value``; live tomlkit items keep their formatting."""
    if isinstance(value, Item):
        return value.as_string()
    return tomlkit.item(value).as_string()


def _inline_table(pairs: Iterable[tuple[str, str]]) -> InlineTable:
    """Build ``{ key = value, ... }`` from already rendered value text."""
    body = ', '.join(f'{key} = {text}' for key, text in pairs)
    return tomlkit.parse(f'_ = {{ {body} }}\n')['_']


def check_rewritable(occurrence: Occurrence) -> TableSpec | None:
    """Validate that ``occurrence`` can be turned into an inheritance reference.

    Returns:
        The entry's :class:`TableSpec`, or ``None`` for a plain version.

    Raises:
        AmbiguousInlineStructure: The entry holds something the rewriter
            would drop or mangle.
    """
    spec = occurrence.spec
    path = occurrence.member.path
    dependency = str(occurrence.key)
    if spec is None:
        raise AmbiguousInlineStructure(path, dependency, 'value is neither a version string nor a table')
    if not isinstance(spec, TableSpec):
        return None

    attributes = spec.attributes
    unknown = unknown_attributes(spec)
    if unknown:
        raise AmbiguousInlineStructure(path, dependency, f'unsupported attribute(s) {", ".join(unknown)}')
    if WORKSPACE_KEY in attributes:
        raise AmbiguousInlineStructure(path, dependency, f'workspace = {attributes[WORKSPACE_KEY]!r}')
    for key, value in attributes.items():
        if isinstance(value, dict):
            raise AmbiguousInlineStructure(path, dependency, f'nested table under {key!r}')
    features = attributes.get('features')
    if features is not None and not (isinstance(features, list) and all(isinstance(f, str) for f in features)):
        raise AmbiguousInlineStructure(path, dependency, 'features must be an array of strings')
    for flag in _FLAG_KEYS:
        if flag in attributes and not isinstance(attributes[flag], bool):
            raise AmbiguousInlineStructure(path, dependency, f'{flag} must be a boolean')
    return spec


def rewrite_member_entry(occurrence: Occurrence, *, enable_default_features: bool = False) -> None:
    """Replace one member entry with a workspace inheritance reference.

    With ``enable_default_features`` an entry that does not set
    ``default-features`` itself gets ``default-features = true``, so it
    keeps its default features under a root entry that disables them.

    Raises:
        AmbiguousInlineStructure: See :func:`check_rewritable`; the
            document is left untouched in that case.
    """
    spec = check_rewritable(occurrence)
    table = occurrence.table.table
    name = occurrence.key.name
    current = table[name]
    add_default_features = enable_default_features and not (
        spec is not None and any(key in spec.attributes for key in DEFAULT_FEATURES_KEYS)
    )

    if spec is not None and not spec.inline:
        # [dependencies.name] keeps its table form.
        for key in [k for k in current if k == VERSION_KEY or k in SOURCE_KEYS]:
            del current[key]
        current[WORKSPACE_KEY] = True
        if add_default_features:
            current['default-features'] = True
    else:
        kept = [] if spec is None else [(k, _value_text(current[k])) for k in spec.attributes if k in LOCAL_KEYS]
        if add_default_features:
            kept.append(('default-features', 'true'))
        table[name] = _inline_table([(WORKSPACE_KEY, 'true'), *kept])

    occurrence.member.document.dirty = True
    logger.debug(
        'member_entry_rewritten',
        member=occurrence.member.name,
        dependency=str(occurrence.key),
        table=occurrence.table.location,
    )


def upsert_shared_dependency(
    workspace: WorkspaceManifest,
    name: str,
    version: str | None,
    source: Mapping[str, Any],
    *,
    default_features: bool = True,
) -> bool:
    """Insert or update ``name`` in ``[workspace.dependencies]``.

    A new or plain-string entry becomes ``name = "version"`` (or an
    inline table when a source or ``default-features = false`` is
    published). An existing table entry keeps its other keys and only
    gets ``version``, source and ``default-features`` updated.

    Returns:
        Whether the document changed.
    """
    table = workspace.shared_table(create=True)
    existing = table.get(name)

    if isinstance(existing, dict):
        changed = False
        wanted = {VERSION_KEY: version, **source} if version is not None else dict(source)
        if not default_features:
            spelling = next((k for k in DEFAULT_FEATURES_KEYS if k in existing), DEFAULT_FEATURES_KEYS[0])
            wanted[spelling] = False
        for key, value in wanted.items():
            if existing.get(key) != value:
                existing[key] = value
                changed = True
    else:
        if source or not default_features:
            pairs = [(VERSION_KEY, _value_text(version))] if version is not None else []
            pairs += [(key, _value_text(value)) for key, value in source.items()]
            if not default_features:
                pairs.append((DEFAULT_FEATURES_KEYS[0], 'false'))
            new_value: object = _inline_table(pairs)
            changed = True
        else:
            new_value = version
            changed = existing is None or str(existing) != version
        if changed:
            table[name] = new_value

    if changed:
        workspace.document.dirty = True
        logger.debug(
            'shared_dependency_written',
            dependency=name,
            version=version,
            source=dict(source),
            default_features=default_features,
        )
    return changed


def apply_decisions(decisions: Iterable[InheritanceDecision], workspace: WorkspaceManifest) -> RewriteResult:
    """Rewrite every member entry of ``decisions`` and publish them at the root.

    A name is only published when at least one member entry was
    rewritten; a decision whose entries were all skipped changes nothing.
    """
    result = RewriteResult()
    to_publish: dict[str, InheritanceDecision] = {}

    for decision in decisions:
        for occurrence in decision.occurrences:
            try:
                rewrite_member_entry(occurrence, enable_default_features=not decision.default_features)
            except AmbiguousInlineStructure as exc:
                logger.debug('entry_skipped', dependency=exc.dependency, path=str(exc.path), reason=exc.info.message)
                result.skipped.append(exc.to_warning())
                continue
            result.rewritten.append(occurrence)
            to_publish.setdefault(decision.name, decision)

    for name in sorted(to_publish):
        decision = to_publish[name]
        upsert_shared_dependency(
            workspace,
            name,
            decision.version,
            decision.source,
            default_features=decision.default_features,
        )
        result.published.append(name)

    logger.info(
        'manifests_rewritten',
        entries=len(result.rewritten),
        skipped=len(result.skipped),
        published=len(result.published),
    )
    return result


__all__ = [
    'RewriteResult',
    'apply_decisions',
    'check_rewritable',
    'rewrite_member_entry',
    'upsert_shared_dependency',
]
