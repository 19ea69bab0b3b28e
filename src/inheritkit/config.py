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

"""Configuration reader for inheritkit.

Settings live in the workspace root manifest, in the table Cargo
reserves for external tools::

    [workspace.metadata.inheritkit]
    exclude-packages = ["xtask", "*-bench"]   # package name globs to skip
    on-conflict = "highest"                   # "highest" or "fail"

The table is optional. Command-line flags take precedence:
``--on-conflict`` replaces the configured policy and
``--exclude-packages`` adds to the configured globs.

Validation::

    [workspace.metadata.inheritkit]
    on-conflcit = "fail"       ← typo
             │
             ▼
    IK-CONFIG-INVALID-KEY: Unknown key 'on-conflcit'
      = hint: Did you mean 'on-conflict'?
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tomlkit.items import Item

from inheritkit.errors import E, InheritKitError
from inheritkit.logging import get_logger
from inheritkit.manifest import WorkspaceManifest
from inheritkit.selector import ConflictPolicy

logger = get_logger(__name__)

CONFIG_TABLE = 'workspace.metadata.inheritkit'

VALID_KEYS: frozenset[str] = frozenset({
    'exclude-packages',
    'on-conflict',
})

_TYPE_MAP: dict[str, type] = {
    'exclude-packages': list,
    'on-conflict': str,
}


@dataclass(frozen=True)
class InheritConfig:
    """Validated settings for one run.

    Attributes:
        exclude_packages: Package name globs whose manifests are left
            out of counting and rewriting.
        on_conflict: Version conflict policy.
        config_path: Manifest the settings were read from, if any.
    """

    exclude_packages: list[str] = field(default_factory=list)
    on_conflict: ConflictPolicy = ConflictPolicy.HIGHEST
    config_path: Path | None = None


def _suggest_key(unknown: str) -> str | None:
    """Return the closest valid key for a typo, or None."""
    matches = difflib.get_close_matches(unknown, VALID_KEYS, n=1, cutoff=0.6)
    return matches[0] if matches else None


def _validate_value_type(key: str, value: Any) -> None:  # noqa: ANN401 - dynamic config values
    expected = _TYPE_MAP[key]
    if not isinstance(value, expected):
        raise InheritKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'{key}' must be {expected.__name__}, got {type(value).__name__}",
            hint=f'Check the value of {key} in [{CONFIG_TABLE}].',
        )


def _validate_on_conflict(value: str) -> ConflictPolicy:
    try:
        return ConflictPolicy(value)
    except ValueError:
        allowed = sorted(p.value for p in ConflictPolicy)
        raise InheritKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"on-conflict must be one of {allowed}, got '{value}'",
            hint="Use 'highest' to publish the highest version, 'fail' to stop on disagreement.",
        ) from None


def parse_config(raw: dict[str, Any], *, path: Path | None = None) -> InheritConfig:
    """Validate a raw ``[workspace.metadata.inheritkit]`` mapping.

    Raises:
        InheritKitError: ``IK-CONFIG-INVALID-KEY`` for unknown keys,
            ``IK-CONFIG-INVALID-VALUE`` for bad types or values.
    """
    for key in raw:
        if key not in VALID_KEYS:
            suggestion = _suggest_key(key)
            raise InheritKitError(
                code=E.CONFIG_INVALID_KEY,
                message=f"Unknown key '{key}' in [{CONFIG_TABLE}]",
                hint=f"Did you mean '{suggestion}'?" if suggestion else f'Valid keys: {", ".join(sorted(VALID_KEYS))}',
            )
        _validate_value_type(key, raw[key])

    exclude = raw.get('exclude-packages', [])
    for pattern in exclude:
        if not isinstance(pattern, str):
            raise InheritKitError(
                code=E.CONFIG_INVALID_VALUE,
                message=f'exclude-packages entries must be strings, got {type(pattern).__name__}',
                hint='Example: exclude-packages = ["xtask"]',
            )

    on_conflict = ConflictPolicy.HIGHEST
    if 'on-conflict' in raw:
        on_conflict = _validate_on_conflict(raw['on-conflict'])

    return InheritConfig(
        exclude_packages=[str(p) for p in exclude],
        on_conflict=on_conflict,
        config_path=path,
    )


def load_config(workspace: WorkspaceManifest) -> InheritConfig:
    """Read settings from the root manifest, defaults when absent."""
    workspace_table = workspace.document.doc.get('workspace', {})
    metadata = workspace_table.get('metadata', {}) if isinstance(workspace_table, dict) else {}
    raw = metadata.get('inheritkit') if isinstance(metadata, dict) else None
    if raw is None:
        return InheritConfig()
    if not isinstance(raw, dict):
        raise InheritKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'[{CONFIG_TABLE}] must be a table, got {type(raw).__name__}',
        )
    config = parse_config(raw.unwrap() if isinstance(raw, Item) else dict(raw), path=workspace.path)
    logger.debug('config_loaded', path=str(config.config_path), exclude_packages=config.exclude_packages)
    return config


__all__ = [
    'CONFIG_TABLE',
    'VALID_KEYS',
    'InheritConfig',
    'load_config',
    'parse_config',
]
