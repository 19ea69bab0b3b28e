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

"""Tests for inheritkit.cli: parser, output and exit codes."""

from __future__ import annotations

from pathlib import Path

import pytest
from inheritkit import cli
from inheritkit.cli import build_parser, main

from tests._workspace import create_deps_workspace

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _workspace(root: Path) -> Path:
    return create_deps_workspace(
        root,
        {
            'a': '[dependencies]\nserde = "1.0"\n',
            'b': '[dependencies]\nserde = "1.0"\n',
            'c': '[dependencies]\nserde = "1.2"\n',
        },
    )


class TestBuildParser:
    """Tests for the argument parser structure."""

    def test_required_options(self) -> None:
        """--path and --occurrences are required."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args([])
        assert exc_info.value.code == 2

    def test_defaults(self) -> None:
        """Optional flags default to off."""
        args = build_parser().parse_args(['--path', 'Cargo.toml', '--occurrences', '2'])
        assert args.path == Path('Cargo.toml')
        assert args.occurrences == 2
        assert args.exclude_packages == []
        assert args.on_conflict is None
        assert not args.dry_run

    @pytest.mark.parametrize('value', ['0', '-1', 'two'])
    def test_occurrences_must_be_positive(self, value: str) -> None:
        """Non-positive or non-numeric thresholds are argument errors."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(['--path', 'Cargo.toml', '--occurrences', value])
        assert exc_info.value.code == 2

    def test_on_conflict_choices(self) -> None:
        """Unknown conflict policies are rejected."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(['--path', 'x', '--occurrences', '2', '--on-conflict', 'lowest'])


class TestMain:
    """Tests for main() exit codes and output."""

    def test_success(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """A run with only warnings exits 0 and prints the summary."""
        manifest = _workspace(tmp_path)
        assert main(['--path', str(manifest), '--occurrences', '3']) == 0

        captured = capsys.readouterr()
        assert 'Promoted 1 dependency' in captured.out
        assert '==== serde 1.2 (3 members) ====' in captured.out
        assert '  crates/a/Cargo.toml' in captured.out
        assert 'warning[IK-VERSION-CONFLICT-RESOLVED]' in captured.err

    def test_dry_run_writes_nothing(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """--dry-run reports without writing."""
        manifest = _workspace(tmp_path)
        before = manifest.read_bytes()
        assert main(['--path', str(manifest), '--occurrences', '3', '--dry-run']) == 0
        assert manifest.read_bytes() == before
        assert 'Would promote 1 dependency' in capsys.readouterr().out

    def test_fatal_error_exits_1(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """A missing manifest renders an error and exits 1."""
        assert main(['--path', str(tmp_path / 'Cargo.toml'), '--occurrences', '2']) == 1
        assert 'error[IK-MANIFEST-NOT-FOUND]' in capsys.readouterr().err

    def test_conflict_fail_exits_1(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """--on-conflict fail turns a version conflict into exit 1."""
        manifest = _workspace(tmp_path)
        before = manifest.read_bytes()
        assert main(['--path', str(manifest), '--occurrences', '3', '--on-conflict', 'fail']) == 1
        assert 'error[IK-VERSION-CONFLICT]' in capsys.readouterr().err
        assert manifest.read_bytes() == before

    def test_write_failure_exits_1(
        self,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failed write is rendered and exits 1."""
        manifest = _workspace(tmp_path)

        def _write_bytes(self: Path, data: bytes) -> int:
            raise PermissionError(13, 'Permission denied', str(self))

        monkeypatch.setattr(Path, 'write_bytes', _write_bytes)
        assert main(['--path', str(manifest), '--occurrences', '3']) == 1
        assert 'error[IK-WRITE-FAILED]' in capsys.readouterr().err

    def test_interrupt_exits_130(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Ctrl-C exits 130."""

        def _interrupted(*args: object, **kwargs: object) -> None:
            raise KeyboardInterrupt

        monkeypatch.setattr(cli, 'run', _interrupted)
        assert main(['--path', str(tmp_path), '--occurrences', '2']) == 130

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        """--version prints the package version."""
        with pytest.raises(SystemExit) as exc_info:
            main(['--version'])
        assert exc_info.value.code == 0
        assert 'inheritkit' in capsys.readouterr().out
