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

"""Tests for inheritkit.manifest."""

from __future__ import annotations

from pathlib import Path

import pytest
import tomlkit
from inheritkit.errors import E, InheritKitError
from inheritkit.manifest import (
    DependencyKind,
    ManifestDocument,
    MemberManifest,
    PlainVersion,
    TableSpec,
    is_inherited,
    parse_spec,
    spec_source,
    spec_version,
    unknown_attributes,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _member(tmp_path: Path, text: str) -> MemberManifest:
    path = tmp_path / 'Cargo.toml'
    path.write_text(text, encoding='utf-8')
    return MemberManifest(document=ManifestDocument.load(path), name='m')


# ---------------------------------------------------------------------------
# Entry parsing
# ---------------------------------------------------------------------------


class TestParseSpec:
    """Tests for parse_spec() and its helpers."""

    def test_plain_version(self) -> None:
        """A string entry is a PlainVersion."""
        doc = tomlkit.parse('serde = "1.0"\n')
        spec = parse_spec(doc['serde'])
        assert spec == PlainVersion('1.0')
        assert spec_version(spec) == '1.0'

    def test_inline_table(self) -> None:
        """An inline table keeps its attributes and is flagged inline."""
        doc = tomlkit.parse('tokio = { version = "1", features = ["rt"], optional = true }\n')
        spec = parse_spec(doc['tokio'])
        assert isinstance(spec, TableSpec)
        assert spec.inline
        assert spec.attributes == {'version': '1', 'features': ['rt'], 'optional': True}

    def test_standard_table(self) -> None:
        """A [dependencies.name] table is a non-inline TableSpec."""
        doc = tomlkit.parse('[dependencies.clap]\nversion = "4"\n')
        spec = parse_spec(doc['dependencies']['clap'])
        assert isinstance(spec, TableSpec)
        assert not spec.inline
        assert spec_version(spec) == '4'

    def test_other_values(self) -> None:
        """Values that are neither string nor table give None."""
        doc = tomlkit.parse('weird = 3\n')
        assert parse_spec(doc['weird']) is None

    def test_inherited(self) -> None:
        """workspace = true marks an inherited entry."""
        doc = tomlkit.parse('a = { workspace = true }\nb = { workspace = false }\nc = "1"\n')
        assert is_inherited(parse_spec(doc['a']))
        assert not is_inherited(parse_spec(doc['b']))
        assert not is_inherited(parse_spec(doc['c']))

    def test_source_in_canonical_order(self) -> None:
        """Source attributes come back in canonical key order."""
        doc = tomlkit.parse('x = { rev = "abc", version = "1", git = "https://example.com/x" }\n')
        assert list(spec_source(parse_spec(doc['x']))) == ['git', 'rev']

    def test_unknown_attributes(self) -> None:
        """Keys outside the known classes are reported."""
        doc = tomlkit.parse('x = { version = "1", artifact = "bin", features = [] }\n')
        assert unknown_attributes(parse_spec(doc['x'])) == ['artifact']


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestManifestDocument:
    """Tests for ManifestDocument."""

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing manifest is IK-MANIFEST-NOT-FOUND."""
        with pytest.raises(InheritKitError) as exc_info:
            ManifestDocument.load(tmp_path / 'Cargo.toml')
        assert exc_info.value.code is E.MANIFEST_NOT_FOUND

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Unparseable TOML is IK-MALFORMED-MANIFEST."""
        path = tmp_path / 'Cargo.toml'
        path.write_text('[package\nname = "x"\n', encoding='utf-8')
        with pytest.raises(InheritKitError) as exc_info:
            ManifestDocument.load(path)
        assert exc_info.value.code is E.MALFORMED_MANIFEST

    def test_render_round_trips(self, tmp_path: Path) -> None:
        """An untouched document renders back to the exact input."""
        text = '# top\r\n[package]\r\nname = "x"   # name\r\n\r\n[dependencies]\r\nserde = "1"\r\n'
        path = tmp_path / 'Cargo.toml'
        path.write_bytes(text.encode('utf-8'))
        document = ManifestDocument.load(path)
        assert document.render() == text
        assert not document.changed

    def test_changed_requires_dirty(self, tmp_path: Path) -> None:
        """Only dirty documents whose text differs count as changed."""
        path = tmp_path / 'Cargo.toml'
        path.write_text('[dependencies]\nserde = "1"\n', encoding='utf-8')
        document = ManifestDocument.load(path)
        document.dirty = True
        assert not document.changed
        document.doc['dependencies']['serde'] = '2'
        assert document.changed


class TestMemberManifest:
    """Tests for MemberManifest dependency tables."""

    def test_tables_in_order(self, tmp_path: Path) -> None:
        """Top-level tables come first, then target-specific ones."""
        member = _member(
            tmp_path,
            '[dependencies]\na = "1"\n\n'
            '[dev-dependencies]\nb = "1"\n\n'
            "[target.'cfg(unix)'.dependencies]\nc = \"1\"\n\n"
            "[target.'cfg(windows)'.build-dependencies]\nd = \"1\"\n",
        )
        locations = [(t.kind, t.location) for t in member.dependency_tables()]
        assert locations == [
            (DependencyKind.NORMAL, 'dependencies'),
            (DependencyKind.DEV, 'dev-dependencies'),
            (DependencyKind.NORMAL, "target.'cfg(unix)'.dependencies"),
            (DependencyKind.BUILD, "target.'cfg(windows)'.build-dependencies"),
        ]

    def test_dependencies_by_kind(self, tmp_path: Path) -> None:
        """dependencies() merges target tables into their kind."""
        member = _member(
            tmp_path,
            '[dependencies]\na = "1"\n\n[dev-dependencies]\nb = "2"\n\n'
            "[target.'cfg(unix)'.dependencies]\nc = \"3\"\n",
        )
        assert set(member.dependencies(DependencyKind.NORMAL)) == {'a', 'c'}
        assert set(member.dependencies(DependencyKind.DEV)) == {'b'}
        assert member.dependencies(DependencyKind.BUILD) == {}
