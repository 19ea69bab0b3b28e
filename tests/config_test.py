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

"""Tests for inheritkit.config: the [workspace.metadata.inheritkit] table."""

from __future__ import annotations

from pathlib import Path

import pytest
import structlog
from inheritkit.config import InheritConfig, load_config, parse_config
from inheritkit.errors import E, InheritKitError
from inheritkit.reader import read_workspace_manifest
from inheritkit.selector import ConflictPolicy

from tests._workspace import create_cargo_workspace


class TestParseConfig:
    """Tests for parse_config()."""

    def test_empty(self) -> None:
        """An empty table gives the defaults."""
        config = parse_config({})
        assert config == InheritConfig()
        assert config.on_conflict is ConflictPolicy.HIGHEST

    def test_values(self) -> None:
        """Both keys are read."""
        config = parse_config({'exclude-packages': ['xtask'], 'on-conflict': 'fail'})
        assert config.exclude_packages == ['xtask']
        assert config.on_conflict is ConflictPolicy.FAIL

    def test_unknown_key_suggests(self) -> None:
        """A typo gets a did-you-mean hint."""
        with pytest.raises(InheritKitError) as exc_info:
            parse_config({'on-conflcit': 'fail'})
        assert exc_info.value.code is E.CONFIG_INVALID_KEY
        assert "'on-conflict'" in exc_info.value.hint

    def test_wrong_type(self) -> None:
        """exclude-packages must be a list."""
        with pytest.raises(InheritKitError) as exc_info:
            parse_config({'exclude-packages': 'xtask'})
        assert exc_info.value.code is E.CONFIG_INVALID_VALUE

    def test_non_string_pattern(self) -> None:
        """exclude-packages entries must be strings."""
        with pytest.raises(InheritKitError) as exc_info:
            parse_config({'exclude-packages': ['ok', 3]})
        assert exc_info.value.code is E.CONFIG_INVALID_VALUE

    def test_bad_policy(self) -> None:
        """on-conflict accepts only the known policies."""
        with pytest.raises(InheritKitError) as exc_info:
            parse_config({'on-conflict': 'lowest'})
        assert exc_info.value.code is E.CONFIG_INVALID_VALUE


class TestLoadConfig:
    """Tests for load_config()."""

    def test_absent_table(self, tmp_path: Path) -> None:
        """No metadata table means defaults."""
        create_cargo_workspace(tmp_path, ['crates/*'])
        assert load_config(read_workspace_manifest(tmp_path)) == InheritConfig()

    def test_reads_metadata_table(self, tmp_path: Path) -> None:
        """Settings come from [workspace.metadata.inheritkit]."""
        create_cargo_workspace(
            tmp_path,
            ['crates/*'],
            extra='\n[workspace.metadata.inheritkit]\nexclude-packages = ["xtask"]\non-conflict = "fail"\n',
        )
        workspace = read_workspace_manifest(tmp_path)
        config = load_config(workspace)
        assert config.exclude_packages == ['xtask']
        assert config.on_conflict is ConflictPolicy.FAIL
        assert config.config_path == workspace.path

    def test_logs_config_path(self, tmp_path: Path) -> None:
        """The loaded settings are logged with the manifest they came from."""
        create_cargo_workspace(tmp_path, ['crates/*'], extra='\n[workspace.metadata.inheritkit]\non-conflict = "fail"\n')
        workspace = read_workspace_manifest(tmp_path)
        with structlog.testing.capture_logs() as cap:
            config = load_config(workspace)
        (event,) = [e for e in cap if e['event'] == 'config_loaded']
        assert event['path'] == str(config.config_path) == str(workspace.path)

    def test_other_tools_metadata_ignored(self, tmp_path: Path) -> None:
        """Metadata for other tools is not validated."""
        create_cargo_workspace(tmp_path, ['crates/*'], extra='\n[workspace.metadata.release]\nsign = true\n')
        assert load_config(read_workspace_manifest(tmp_path)) == InheritConfig()

    def test_not_a_table(self, tmp_path: Path) -> None:
        """inheritkit metadata must be a table."""
        create_cargo_workspace(tmp_path, ['crates/*'], extra='\n[workspace.metadata]\ninheritkit = "yes"\n')
        with pytest.raises(InheritKitError) as exc_info:
            load_config(read_workspace_manifest(tmp_path))
        assert exc_info.value.code is E.CONFIG_INVALID_VALUE
