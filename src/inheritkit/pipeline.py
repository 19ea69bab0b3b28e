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

"""One inheritance run over one workspace.

Pipeline::

    Cargo.toml
        │
        ▼
    ┌──────────────┐  IK-MANIFEST-NOT-FOUND, IK-MALFORMED-MANIFEST,
    │ read         │  IK-NO-MEMBERS-DECLARED: fatal, nothing touched
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ aggregate    │  (kind, name) → occurrences
    └──────┬───────┘
           ▼
    ┌──────────────┐  IK-VERSION-CONFLICT-RESOLVED, IK-SOURCE-MISMATCH:
    │ select       │  warnings (IK-VERSION-CONFLICT is fatal with "fail")
    └──────┬───────┘
           ▼
    ┌──────────────┐  IK-AMBIGUOUS-INLINE-STRUCTURE: warning, entry skipped
    │ rewrite      │
    └──────┬───────┘
           ▼
    ┌──────────────┐  IK-WRITE-FAILED: per file, exit code 1
    │ write        │  (skipped with dry_run)
    └──────────────┘

All state is built fresh by :meth:`Pipeline.run`; nothing survives
between runs. Fatal errors propagate as
:class:`~inheritkit.errors.InheritKitError`; everything else ends up on
the returned :class:`RunResult`.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from inheritkit.aggregate import aggregate
from inheritkit.config import load_config
from inheritkit.errors import InheritKitWarning, WriteFailed
from inheritkit.logging import get_logger, run_context
from inheritkit.reader import filter_members, read_workspace
from inheritkit.rewriter import apply_decisions
from inheritkit.selector import ConflictPolicy, InheritanceDecision, VersionConflict, select
from inheritkit.writer import write_documents

logger = get_logger(__name__)


@dataclass
class RunResult:
    """Everything one run decided and did.

    Attributes:
        manifest: Root manifest path.
        decisions: Promoted dependencies, one per namespace and name.
        conflicts: Version conflicts resolved by the highest-version rule.
        warnings: Every recoverable condition, in the order it arose.
        changed: Manifests whose content changed (written, or that would
            be written under ``dry_run``).
        failures: Manifests that could not be written.
        dry_run: Whether writing was skipped.
    """

    manifest: Path
    decisions: list[InheritanceDecision] = field(default_factory=list)
    conflicts: list[VersionConflict] = field(default_factory=list)
    warnings: list[InheritKitWarning] = field(default_factory=list)
    changed: list[Path] = field(default_factory=list)
    failures: list[WriteFailed] = field(default_factory=list)
    dry_run: bool = False

    @property
    def exit_code(self) -> int:
        """``1`` if any write failed, else ``0``. Warnings never fail a run."""
        return 1 if self.failures else 0


class Pipeline:
    """Reader → Aggregator → Selector → Rewriter → Writer, single pass.

    Args:
        manifest: Root ``Cargo.toml`` (or its directory).
        occurrences: Promotion threshold, inclusive.
        exclude_packages: Extra package name globs to skip, added to the
            configured ``exclude-packages``.
        on_conflict: Overrides the configured conflict policy.
        dry_run: Compute everything but write nothing.
    """

    def __init__(
        self,
        manifest: Path,
        occurrences: int,
        *,
        exclude_packages: Sequence[str] = (),
        on_conflict: ConflictPolicy | None = None,
        dry_run: bool = False,
    ) -> None:
        """Store the run parameters; no I/O happens until :meth:`run`."""
        self.manifest = manifest
        self.occurrences = occurrences
        self.exclude_packages = list(exclude_packages)
        self.on_conflict = on_conflict
        self.dry_run = dry_run

    def run(self) -> RunResult:
        """Execute the run.

        Raises:
            InheritKitError: Fatal configuration errors, or a version
                conflict under :attr:`ConflictPolicy.FAIL`. No file has
                been written when this is raised.
        """
        with run_context(workspace=str(self.manifest)):
            loaded = read_workspace(self.manifest)
            config = load_config(loaded.root)
            policy = self.on_conflict or config.on_conflict
            members = filter_members(loaded.members, [*config.exclude_packages, *self.exclude_packages])

            records = aggregate(members)
            selection = select(records, self.occurrences, workspace=loaded.root, policy=policy)
            rewrite = apply_decisions(selection.decisions, loaded.root)

            result = RunResult(
                manifest=loaded.root.path,
                decisions=selection.decisions,
                conflicts=selection.conflicts,
                warnings=[
                    *(c.to_warning() for c in selection.conflicts),
                    *selection.warnings,
                    *rewrite.skipped,
                ],
                dry_run=self.dry_run,
            )
            for warning in result.warnings:
                logger.debug('run_warning', code=warning.code.value, message=warning.info.message)

            documents = loaded.documents
            if self.dry_run:
                result.changed = [d.path for d in documents if d.changed]
                logger.info('dry_run', would_write=[str(p) for p in result.changed])
                return result

            report = write_documents(documents)
            result.changed = report.written
            result.failures = report.failures
            logger.info('run_complete', written=len(report.written), failed=len(report.failures))
            return result


def run(
    manifest: Path,
    occurrences: int,
    *,
    exclude_packages: Sequence[str] = (),
    on_conflict: ConflictPolicy | None = None,
    dry_run: bool = False,
) -> RunResult:
    """Build a :class:`Pipeline` and run it once."""
    return Pipeline(
        manifest,
        occurrences,
        exclude_packages=exclude_packages,
        on_conflict=on_conflict,
        dry_run=dry_run,
    ).run()


__all__ = [
    'Pipeline',
    'RunResult',
    'run',
]
