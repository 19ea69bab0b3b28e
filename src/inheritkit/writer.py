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

"""Write edited manifests back to their original paths."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from inheritkit.errors import WriteFailed
from inheritkit.logging import get_logger
from inheritkit.manifest import ManifestDocument

logger = get_logger(__name__)


@dataclass
class WriteReport:
    """Outcome of writing a batch of manifests.

    Attributes:
        written: Paths written successfully.
        failures: One :class:`WriteFailed` per path that could not be written.
    """

    written: list[Path] = field(default_factory=list)
    failures: list[WriteFailed] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether every write succeeded."""
        return not self.failures


def write_documents(documents: Iterable[ManifestDocument]) -> WriteReport:
    """Serialize every changed document to its path.

    Unchanged documents are not touched. A failing write does not stop
    the remaining ones; failures are collected on the report.
    """
    report = WriteReport()
    for document in documents:
        if not document.changed:
            continue
        try:
            document.path.write_bytes(document.render().encode('utf-8'))
        except OSError as exc:
            failure = WriteFailed(document.path, exc)
            logger.debug('write_failed', path=str(document.path), error=str(exc))
            report.failures.append(failure)
            continue
        report.written.append(document.path)
        logger.info('manifest_written', path=str(document.path))
    return report


__all__ = [
    'WriteReport',
    'write_documents',
]
