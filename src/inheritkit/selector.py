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

"""Threshold selection and version resolution.

A record qualifies when its occurrence count reaches the threshold
(inclusive). Every qualifying name then needs exactly one entry in
``[workspace.dependencies]``, which is shared by all namespaces, so
resolution happens per *name*:

1. **Rewritability.** Entries the rewriter cannot convert
   (:func:`inheritkit.rewriter.check_rewritable`) are reported as
   ``IK-AMBIGUOUS-INLINE-STRUCTURE`` and take no further part.

2. **Source.** If the root already declares the name, its source wins.
   Otherwise the most common source among the occurrences wins, ties
   going to the first one seen. Member ``path`` values are rebased onto
   the workspace root before comparing. Occurrences with another source
   are left alone and reported as ``IK-SOURCE-MISMATCH``.
   A kind whose remaining members fall below the threshold is dropped.

3. **Version.** All versions of the matching occurrences, plus the
   version already in the root table, are pooled. One distinct value is
   used as is. Several distinct values are a conflict:

   - ``ConflictPolicy.HIGHEST`` publishes the highest requirement and
     reports ``IK-VERSION-CONFLICT-RESOLVED``. Members that used a
     discarded version are rewritten as well, so their effective
     requirement changes.
   - ``ConflictPolicy.FAIL`` raises ``IK-VERSION-CONFLICT`` before
     anything is mutated.

4. **Default features.** If any promoted entry, or the root entry, sets
   ``default-features = false``, the root entry publishes it too.

Requirements are ordered by their first comparator with operators and
wildcards stripped (``^1.2``, ``~1.2.0``, ``>=1.2, <2`` and ``1.2.*`` all
order as ``1.2``), using :class:`packaging.version.Version`.
"""

from __future__ import annotations

import os
import re
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from packaging.version import InvalidVersion, Version

from inheritkit.aggregate import DependencyKey, Occurrence, OccurrenceRecord
from inheritkit.errors import AmbiguousInlineStructure, E, InheritKitError, InheritKitWarning
from inheritkit.logging import get_logger
from inheritkit.manifest import (
    DependencyKind,
    MemberManifest,
    WorkspaceManifest,
    disables_default_features,
    spec_source,
    spec_version,
)
from inheritkit.rewriter import check_rewritable

logger = get_logger(__name__)

_OPERATOR_RE = re.compile(r'^[\s^~=<>]+')
_NUMERIC_PREFIX_RE = re.compile(r'\d+(?:\.\d+)*')
_WILDCARDS = frozenset({'*', 'x', 'X', ''})


class ConflictPolicy(str, Enum):
    """What to do when members disagree on a promoted dependency's version."""

    HIGHEST = 'highest'
    FAIL = 'fail'


def version_sort_key(requirement: str) -> Version:
    """Map a Cargo version requirement to a comparable version.

    Only the first comparator counts. Requirements that cannot be
    parsed at all (``*``) sort lowest.
    """
    first = requirement.split(',', 1)[0].strip()
    first = _OPERATOR_RE.sub('', first)
    parts: list[str] = []
    for part in first.split('.'):
        if part in _WILDCARDS:
            break
        parts.append(part)
    text = '.'.join(parts)
    try:
        return Version(text)
    except InvalidVersion:
        # Cargo pre-release tags PEP 440 rejects (1.0.0-foo.3): numeric part only.
        m = _NUMERIC_PREFIX_RE.match(text)
        return Version(m.group(0) if m else '0')


def resolve_version(versions: Sequence[str]) -> str:
    """Pick the highest requirement of ``versions``.

    Equal keys (``1.2`` vs ``^1.2``) go to the more frequent spelling,
    then to the lexicographically smaller one.
    """
    counts = Counter(versions)
    candidates = sorted(counts)
    candidates.sort(key=lambda v: (version_sort_key(v), counts[v]), reverse=True)
    return candidates[0]


@dataclass(frozen=True)
class VersionConflict:
    """Members disagreed on the version of a promoted dependency.

    Attributes:
        name: Dependency name.
        kinds: Namespaces the name was promoted in.
        resolved: The version published at workspace level.
        discarded: Each discarded version mapped to the manifests that
            used it (the root manifest when it was the root's version).
    """

    name: str
    kinds: tuple[DependencyKind, ...]
    resolved: str
    discarded: dict[str, list[Path]] = field(default_factory=dict)

    def _discarded_summary(self) -> str:
        return '; '.join(
            f'{version!r} in {", ".join(str(p) for p in paths)}' for version, paths in self.discarded.items()
        )

    def describe(self) -> str:
        """One-line human summary."""
        return f'{self.name!r}: published {self.resolved!r}, discarded {self._discarded_summary()}'

    def to_warning(self) -> InheritKitWarning:
        """The ``IK-VERSION-CONFLICT-RESOLVED`` warning for this conflict."""
        count = len({p for paths in self.discarded.values() for p in paths})
        return InheritKitWarning(
            code=E.VERSION_CONFLICT_RESOLVED,
            message=(
                f'Dependency {self.name!r} uses conflicting versions; publishing {self.resolved!r} '
                f'and rewriting {count} manifest(s) that used another version: {self._discarded_summary()}'
            ),
            hint='Pass --on-conflict fail to stop instead of changing these requirements.',
        )


@dataclass
class InheritanceDecision:
    """Promote one :class:`DependencyKey`.

    Attributes:
        key: Namespace and name.
        version: Version to publish; ``None`` only for a source-only
            dependency (git or path without ``version``).
        source: Source attributes to publish alongside the version,
            with ``path`` relative to the workspace root.
        occurrences: Member entries to rewrite.
        conflict: The version conflict resolved for this name, if any.
        default_features: ``False`` when the root entry must publish
            ``default-features = false``.
    """

    key: DependencyKey
    version: str | None
    source: dict[str, Any] = field(default_factory=dict)
    occurrences: list[Occurrence] = field(default_factory=list)
    conflict: VersionConflict | None = None
    default_features: bool = True

    @property
    def name(self) -> str:
        """Dependency name."""
        return self.key.name

    @property
    def members(self) -> list[MemberManifest]:
        """Distinct members whose entries are rewritten."""
        seen: list[MemberManifest] = []
        for occ in self.occurrences:
            if all(occ.member is not m for m in seen):
                seen.append(occ.member)
        return seen


@dataclass
class Selection:
    """Selector output.

    Attributes:
        decisions: One decision per promoted key, ordered by key.
        conflicts: Version conflicts resolved by the highest-version rule.
        warnings: Source mismatches and unpublishable names.
    """

    decisions: list[InheritanceDecision] = field(default_factory=list)
    conflicts: list[VersionConflict] = field(default_factory=list)
    warnings: list[InheritKitWarning] = field(default_factory=list)


def _normalize_source(source: Mapping[str, Any], base: Path, root: Path) -> dict[str, Any]:
    """Rebase a ``path`` source from ``base`` onto the workspace ``root``."""
    normalized = dict(source)
    path = normalized.get('path')
    if isinstance(path, str):
        absolute = os.path.normpath(base / path)
        normalized['path'] = Path(os.path.relpath(absolute, root)).as_posix()
    return normalized


def _source_key(source: Mapping[str, Any]) -> tuple[tuple[str, str], ...]:
    return tuple((k, v if isinstance(v, str) else repr(v)) for k, v in source.items())


def _choose_source(
    normalized: Sequence[dict[str, Any]],
    root_source: dict[str, Any] | None,
) -> dict[str, Any]:
    if root_source is not None:
        return root_source
    counts: Counter[tuple[tuple[str, str], ...]] = Counter()
    first_seen: dict[tuple[tuple[str, str], ...], dict[str, Any]] = {}
    for source in normalized:
        key = _source_key(source)
        counts[key] += 1
        first_seen.setdefault(key, source)
    # max() keeps the first of equal counts, i.e. first appearance.
    best = max(first_seen, key=lambda k: counts[k])
    return first_seen[best]


def select(
    records: Mapping[DependencyKey, OccurrenceRecord],
    threshold: int,
    *,
    workspace: WorkspaceManifest,
    policy: ConflictPolicy = ConflictPolicy.HIGHEST,
) -> Selection:
    """Select records reaching ``threshold`` and resolve what to publish.

    Args:
        records: Aggregator output.
        threshold: Minimum occurrence count, inclusive, at least 1.
        workspace: Root manifest; its ``[workspace.dependencies]`` take
            part in source and version resolution.
        policy: Version conflict policy.

    Raises:
        InheritKitError: ``IK-CONFIG-INVALID-VALUE`` for a threshold below
            1; ``IK-VERSION-CONFLICT`` under :attr:`ConflictPolicy.FAIL`.
    """
    if threshold < 1:
        raise InheritKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'Occurrence threshold must be a positive integer, got {threshold}',
            hint='Use --occurrences 2 or higher to promote shared dependencies.',
        )

    candidates: dict[str, list[OccurrenceRecord]] = {}
    for key, record in records.items():
        if record.count >= threshold:
            candidates.setdefault(key.name, []).append(record)

    root = workspace.directory
    shared = workspace.shared_dependencies()
    selection = Selection()

    for name, name_records in candidates.items():
        occurrences: list[Occurrence] = []
        for record in name_records:
            for occ in record.occurrences:
                try:
                    check_rewritable(occ)
                except AmbiguousInlineStructure as exc:
                    logger.debug('entry_skipped', dependency=exc.dependency, path=str(exc.path), reason=exc.info.message)
                    selection.warnings.append(exc.to_warning())
                    continue
                occurrences.append(occ)
        if not occurrences:
            continue

        normalized = [_normalize_source(spec_source(occ.spec), occ.member.directory, root) for occ in occurrences]
        root_spec = shared.get(name)
        root_source = _normalize_source(spec_source(root_spec), root, root) if name in shared else None
        chosen = _choose_source(normalized, root_source)
        chosen_key = _source_key(chosen)

        matched: list[Occurrence] = []
        for occ, source in zip(occurrences, normalized):
            if _source_key(source) == chosen_key:
                matched.append(occ)
                continue
            selection.warnings.append(
                InheritKitWarning(
                    code=E.SOURCE_MISMATCH,
                    message=(
                        f'{occ.key} in {occ.member.path} comes from {dict(source) or "the default registry"}, '
                        f'but the workspace entry uses {dict(chosen) or "the default registry"}; left unchanged'
                    ),
                    hint='Align the dependency source across members to inherit it.',
                )
            )

        # Skipped entries no longer count toward the threshold.
        kept: list[tuple[OccurrenceRecord, list[Occurrence]]] = []
        for record in name_records:
            occs = [occ for occ in matched if occ.key == record.key]
            members = len({id(occ.member) for occ in occs})
            if members < threshold:
                logger.debug('below_threshold', dependency=str(record.key), members=members, threshold=threshold)
                continue
            kept.append((record, occs))
        if not kept:
            continue

        promoted = [occ for _, occs in kept for occ in occs]
        pool: list[tuple[str, Path]] = [(occ.version, occ.member.path) for occ in promoted if occ.version is not None]
        root_version = spec_version(root_spec)
        if root_version is not None:
            pool.append((root_version, workspace.path))
        versions = [version for version, _ in pool]

        if not versions and not chosen:
            selection.warnings.append(
                InheritKitWarning(
                    code=E.AMBIGUOUS_INLINE_STRUCTURE,
                    message=f'{name!r} has neither a version nor a source to publish; left unchanged',
                    hint='Give the dependency a version in at least one member.',
                )
            )
            continue

        resolved = resolve_version(versions) if versions else None
        conflict: VersionConflict | None = None
        if resolved is not None and len(set(versions)) > 1:
            discarded: dict[str, list[Path]] = {}
            for version, path in pool:
                if version == resolved:
                    continue
                paths = discarded.setdefault(version, [])
                if path not in paths:
                    paths.append(path)
            conflict = VersionConflict(
                name=name,
                kinds=tuple(record.key.kind for record, _ in kept),
                resolved=resolved,
                discarded=discarded,
            )
            selection.conflicts.append(conflict)
            logger.debug('version_conflict', dependency=name, resolved=resolved, discarded=sorted(discarded))

        default_features = not (
            disables_default_features(root_spec) or any(disables_default_features(occ.spec) for occ in promoted)
        )
        for record, occs in kept:
            selection.decisions.append(
                InheritanceDecision(
                    key=record.key,
                    version=resolved,
                    source=dict(chosen),
                    occurrences=occs,
                    conflict=conflict,
                    default_features=default_features,
                )
            )

    if selection.conflicts and policy is ConflictPolicy.FAIL:
        raise InheritKitError(
            code=E.VERSION_CONFLICT,
            message='Conflicting versions for promoted dependencies: '
            + '; '.join(c.describe() for c in selection.conflicts),
            hint='Align the versions across members, or pass --on-conflict highest to publish the highest one.',
        )

    selection.decisions.sort(key=lambda d: d.key)
    logger.info(
        'dependencies_selected',
        threshold=threshold,
        promoted=[str(d.key) for d in selection.decisions],
        conflicts=len(selection.conflicts),
    )
    return selection


__all__ = [
    'ConflictPolicy',
    'InheritanceDecision',
    'Selection',
    'VersionConflict',
    'resolve_version',
    'select',
    'version_sort_key',
]
