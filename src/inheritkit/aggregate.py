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

"""Dependency occurrence counting.

Each ``(kind, name)`` pair is a separate counter: ``serde`` under
``[dependencies]`` and ``serde`` under ``[dev-dependencies]`` never add
up, because inheriting one does not inherit the other.

The count of a record is the number of distinct members declaring the
name, no matter how many versions they use or how many tables of one
member (``[dependencies]`` plus ``[target.'cfg(unix)'.dependencies]``)
mention it. Entries already written as ``{ workspace = true }`` are not
counted at all; they are already promoted.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from inheritkit.logging import get_logger
from inheritkit.manifest import (
    DependencyKind,
    DependencySpec,
    DependencyTable,
    MemberManifest,
    is_inherited,
    parse_spec,
    spec_version,
)

logger = get_logger(__name__)


@dataclass(frozen=True, order=True)
class DependencyKey:
    """A dependency name within one namespace."""

    kind: DependencyKind
    name: str

    def __str__(self) -> str:
        """Render as ``name`` or ``name (dev)``."""
        if self.kind is DependencyKind.NORMAL:
            return self.name
        return f'{self.name} ({self.kind.value})'


@dataclass(eq=False)
class Occurrence:
    """One dependency entry in one table of one member.

    Attributes:
        member: The declaring member.
        key: Namespace and name.
        table: The table holding the entry.
        spec: Parsed entry, ``None`` when the value is neither a string
            nor a table.
    """

    member: MemberManifest
    key: DependencyKey
    table: DependencyTable
    spec: DependencySpec | None

    @property
    def version(self) -> str | None:
        """The entry's version requirement, if any."""
        return spec_version(self.spec)


@dataclass
class OccurrenceRecord:
    """All occurrences of one :class:`DependencyKey`."""

    key: DependencyKey
    occurrences: list[Occurrence] = field(default_factory=list)

    @property
    def members(self) -> list[MemberManifest]:
        """Distinct declaring members, in first-seen order."""
        seen: list[MemberManifest] = []
        for occ in self.occurrences:
            if all(occ.member is not m for m in seen):
                seen.append(occ.member)
        return seen

    @property
    def count(self) -> int:
        """Number of distinct members declaring this dependency."""
        return len(self.members)

    @property
    def versions(self) -> set[str]:
        """Distinct version requirements observed."""
        return {occ.version for occ in self.occurrences if occ.version is not None}

    @property
    def unversioned_members(self) -> list[MemberManifest]:
        """Members whose entries carry no ``version`` (features/path/git only)."""
        versioned = [occ.member for occ in self.occurrences if occ.version is not None]
        return [m for m in self.members if all(m is not v for v in versioned)]


def aggregate(members: Iterable[MemberManifest]) -> dict[DependencyKey, OccurrenceRecord]:
    """Count dependency occurrences across ``members``.

    Returns:
        Records keyed by :class:`DependencyKey`, sorted by key.
    """
    records: dict[DependencyKey, OccurrenceRecord] = {}
    inherited = 0
    for member in members:
        for dep_table in member.dependency_tables():
            for name, value in dep_table.table.items():
                spec = parse_spec(value)
                if is_inherited(spec):
                    inherited += 1
                    continue
                key = DependencyKey(kind=dep_table.kind, name=str(name))
                record = records.setdefault(key, OccurrenceRecord(key=key))
                record.occurrences.append(Occurrence(member=member, key=key, table=dep_table, spec=spec))

    logger.debug('dependencies_aggregated', records=len(records), already_inherited=inherited)
    return dict(sorted(records.items()))


__all__ = [
    'DependencyKey',
    'Occurrence',
    'OccurrenceRecord',
    'aggregate',
]
