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

"""Command-line interface for inheritkit.

Usage::

    inheritkit --path Cargo.toml --occurrences 3
    inheritkit --path . --occurrences 2 --dry-run
    inheritkit --path Cargo.toml --occurrences 2 --on-conflict fail

Exit codes::

    0     success (warnings included)
    1     fatal error, conflict under --on-conflict fail, or a failed write
    2     invalid arguments
    130   interrupted

Diagnostics go to stderr; the promotion summary goes to stdout.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from rich.console import Console
from rich.table import Table
from rich_argparse import RichHelpFormatter

from inheritkit import __version__
from inheritkit.errors import InheritKitError, render_error, render_warning
from inheritkit.logging import configure_logging, get_logger
from inheritkit.pipeline import RunResult, run
from inheritkit.selector import ConflictPolicy

logger = get_logger(__name__)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f'expected a positive integer, got {value!r}') from None
    if number < 1:
        raise argparse.ArgumentTypeError(f'expected a positive integer, got {number}')
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured :class:`argparse.ArgumentParser`.
    """
    RichHelpFormatter.styles['argparse.groups'] = 'bold yellow'
    parser = argparse.ArgumentParser(
        prog='inheritkit',
        description='Promote dependencies shared by Cargo workspace members to [workspace.dependencies].',
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
    )
    parser.add_argument(
        '--path',
        type=Path,
        required=True,
        metavar='CARGO_TOML',
        help='Workspace root Cargo.toml (or the directory holding it).',
    )
    parser.add_argument(
        '--occurrences',
        type=_positive_int,
        required=True,
        metavar='N',
        help='Promote a dependency once at least N members declare it.',
    )
    parser.add_argument(
        '--exclude-packages',
        nargs='+',
        default=[],
        metavar='NAME',
        help='Package names (globs) to leave out, added to exclude-packages from the manifest.',
    )
    parser.add_argument(
        '--on-conflict',
        choices=[p.value for p in ConflictPolicy],
        default=None,
        help='On version disagreement publish the highest version, or fail without changes.',
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Compute and report everything, write nothing.',
    )
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Debug logging.',
    )
    parser.add_argument(
        '--quiet',
        '-q',
        action='store_true',
        help='Only log warnings and errors.',
    )
    parser.add_argument(
        '--json-log',
        action='store_true',
        help='Log JSON lines instead of console output.',
    )
    return parser


def _relative(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix() if path.is_relative_to(root) else str(path)


def _print_summary(result: RunResult, *, file: TextIO | None = None) -> None:
    """Print promoted dependencies, one block per namespace and name."""
    out = file or sys.stdout
    root = result.manifest.parent
    verb = 'Would promote' if result.dry_run else 'Promoted'
    noun = 'dependency' if len(result.decisions) == 1 else 'dependencies'

    if out.isatty():
        console = Console(file=out, highlight=False)
        table = Table(show_header=True, header_style='bold', show_edge=False, pad_edge=False)
        table.add_column('Dependency', min_width=16)
        table.add_column('Kind')
        table.add_column('Members', justify='right')
        table.add_column('Version')
        table.add_column('Manifests')
        for decision in result.decisions:
            members = decision.members
            table.add_row(
                decision.name,
                decision.key.kind.value,
                str(len(members)),
                decision.version or '-',
                '\n'.join(_relative(m.path, root) for m in members),
            )
        console.print(f'[bold]{verb} {len(result.decisions)} {noun}[/bold]')
        if result.decisions:
            console.print(table)
        return

    print(f'{verb} {len(result.decisions)} {noun}', file=out)  # noqa: T201 - CLI output
    for decision in result.decisions:
        members = decision.members
        version = decision.version or '-'
        print(  # noqa: T201 - CLI output
            f'==== {decision.key} {version} ({len(members)} members) ====',
            file=out,
        )
        for member in members:
            print(f'  {_relative(member.path, root)}', file=out)  # noqa: T201 - CLI output
    if result.changed:
        label = 'Would write' if result.dry_run else 'Wrote'
        print(f'{label}: {", ".join(_relative(p, root) for p in result.changed)}', file=out)  # noqa: T201 - CLI output


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, json_log=args.json_log)

    try:
        result = run(
            args.path,
            args.occurrences,
            exclude_packages=args.exclude_packages,
            on_conflict=ConflictPolicy(args.on_conflict) if args.on_conflict else None,
            dry_run=args.dry_run,
        )
    except InheritKitError as exc:
        render_error(exc)
        return 1
    except KeyboardInterrupt:
        logger.info('interrupted')
        return 130

    for warning in result.warnings:
        render_warning(warning)
    for failure in result.failures:
        render_error(failure)
    _print_summary(result)
    return result.exit_code


def _main() -> None:
    """Wrapper for pyproject.toml [project.scripts] entry point."""
    sys.exit(main())


__all__ = [
    'build_parser',
    'main',
]
