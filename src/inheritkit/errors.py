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

"""Structured error system for inheritkit.

Every error has a unique ``IK-NAMED-KEY`` code, a human-readable message,
and an optional hint with a suggested fix.

Code categories::

    IK-CONFIG-*       [workspace.metadata.inheritkit] errors
    IK-MANIFEST-*     Root / member manifest loading errors
    IK-VERSION-*      Version conflict handling
    IK-SOURCE-*       Dependency source disagreements
    IK-WRITE-*        Writing manifests back to disk

Errors fall into three groups that the pipeline treats differently:

- **Fatal** (raised as :class:`InheritKitError`): the workspace cannot be
  loaded, so nothing is touched.
- **Recoverable** (collected as :class:`InheritKitWarning`): one
  dependency or member is handled by policy and the run continues.
- **File-scoped** (``IK-WRITE-FAILED``): collected per file, all other
  files are still written, the exit code reflects the failure.

Usage::

    from inheritkit.errors import E, InheritKitError

    raise InheritKitError(
        code=E.MANIFEST_NOT_FOUND,
        message='Cargo.toml not found at /tmp/ws/Cargo.toml',
        hint='Pass the path to the workspace root Cargo.toml via --path.',
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """Enumeration of all inheritkit diagnostic codes."""

    # Configuration
    CONFIG_INVALID_KEY = 'IK-CONFIG-INVALID-KEY'
    CONFIG_INVALID_VALUE = 'IK-CONFIG-INVALID-VALUE'

    # Manifest loading (fatal)
    MANIFEST_NOT_FOUND = 'IK-MANIFEST-NOT-FOUND'
    MALFORMED_MANIFEST = 'IK-MALFORMED-MANIFEST'
    NO_MEMBERS_DECLARED = 'IK-NO-MEMBERS-DECLARED'

    # Selection / rewriting (recoverable unless on-conflict = "fail")
    VERSION_CONFLICT = 'IK-VERSION-CONFLICT'
    VERSION_CONFLICT_RESOLVED = 'IK-VERSION-CONFLICT-RESOLVED'
    SOURCE_MISMATCH = 'IK-SOURCE-MISMATCH'
    AMBIGUOUS_INLINE_STRUCTURE = 'IK-AMBIGUOUS-INLINE-STRUCTURE'

    # Writing
    WRITE_FAILED = 'IK-WRITE-FAILED'


# Convenience alias for shorter imports.
E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single diagnostic.

    Attributes:
        code: The ``IK-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class InheritKitError(Exception):
    """Base exception for all inheritkit errors.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def hint(self) -> str:
        """Suggestion for fixing this error, or empty string."""
        return self.info.hint


class InheritKitWarning(UserWarning):
    """Base warning for all inheritkit warnings.

    Same structure as :class:`InheritKitError` but collected on the run
    result instead of being raised.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of the warning.
        hint: Optional suggestion for how to address the warning.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def hint(self) -> str:
        """Suggestion for addressing this warning, or empty string."""
        return self.info.hint


class AmbiguousInlineStructure(InheritKitError):
    """A dependency entry cannot become ``{ workspace = true }`` without losing data.

    Args:
        path: Manifest holding the entry.
        dependency: Dependency name (with namespace).
        reason: What the rewriter did not understand.
    """

    def __init__(self, path: object, dependency: str, reason: str) -> None:
        """Initialize with the entry location and the reason."""
        self.path = path
        self.dependency = dependency
        super().__init__(
            code=E.AMBIGUOUS_INLINE_STRUCTURE,
            message=f'Skipped {dependency} in {path}: {reason}',
            hint='Rewrite the entry by hand or simplify it to version, features and optional.',
        )

    def to_warning(self) -> InheritKitWarning:
        """Downgrade to a warning; the run continues without this entry."""
        return InheritKitWarning(code=self.code, message=self.info.message, hint=self.hint)


class WriteFailed(InheritKitError):
    """A manifest could not be written back to disk.

    Args:
        path: The manifest that failed to write.
        cause: The underlying I/O error.
    """

    def __init__(self, path: object, cause: OSError) -> None:
        """Initialize with the failing path and its I/O cause."""
        self.path = path
        self.cause = cause
        super().__init__(
            code=E.WRITE_FAILED,
            message=f'Failed to write {path}: {cause}',
            hint=f'Check file permissions for {path}.',
        )


def _render(
    label: str,
    color: str,
    info: ErrorInfo,
    out: TextIO,
) -> None:
    if out.isatty():
        console = Console(file=out, highlight=False)
        msg = rich_escape(info.message)
        console.print(
            f'[bold {color}]{label}[/bold {color}][bold {color}]\\[{info.code.value}][/bold {color}][bold]: {msg}[/bold]',
        )
        if info.hint:
            hint = rich_escape(info.hint)
            console.print('  [dim]|[/dim]')
            console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {hint}')
        console.print()
    else:
        print(f'{label}[{info.code.value}]: {info.message}', file=out)  # noqa: T201 - CLI output
        if info.hint:
            print('  |', file=out)  # noqa: T201 - CLI output
            print(f'  = hint: {info.hint}', file=out)  # noqa: T201 - CLI output
        print(file=out)  # noqa: T201 - CLI output


def render_error(exc: InheritKitError, *, file: TextIO | None = None) -> None:
    """Render an error in Rust-compiler style with color.

    Output format::

        error[IK-NO-MEMBERS-DECLARED]: [workspace].members is empty in Cargo.toml
          |
          = hint: List at least one member crate directory.

    Args:
        exc: The error to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    _render('error', 'red', exc.info, file or sys.stderr)


def render_warning(exc: InheritKitWarning, *, file: TextIO | None = None) -> None:
    """Render a warning in Rust-compiler style with color.

    Args:
        exc: The warning to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    _render('warning', 'yellow', exc.info, file or sys.stderr)


__all__ = [
    'AmbiguousInlineStructure',
    'E',
    'ErrorCode',
    'ErrorInfo',
    'InheritKitError',
    'InheritKitWarning',
    'WriteFailed',
    'render_error',
    'render_warning',
]
