#!/usr/bin/env python3
"""
RATCHET CLI
-----------
Command surface over the pinning engine:

    ratchet check   [--parser P] [--consistent] PATH...
    ratchet lint    [--parser P] [--format F] PATH...
    ratchet pin     [--parser P] [--out O] [--dry-run] [--diff] PATH...
    ratchet unpin   [--out O] [--dry-run] [--diff] PATH...
    ratchet update  [--parser P] [--out O] [--dry-run] [--diff] PATH...
    ratchet upgrade [--parser P] [--no-pin] [--out O] [--dry-run] [--diff] PATH...

Human output goes to stderr through rich; stdout carries only lint
reports and --dry-run renderings so both can be piped.

Author: Ratchet Team
Date: 2026-10-18
"""

import argparse
import logging
import signal
import sys
import threading
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from ratchet.cli import formatter as formatters
from ratchet.core.concurrency import default_concurrency
from ratchet.core.document import YamlDocument
from ratchet.core.engine import PinningEngine
from ratchet.core.errors import RatchetError, ResolutionErrors
from ratchet.core.exporter import DocumentExporter
from ratchet.core.models import Node
from ratchet.core.settings import Settings
from ratchet.core.workspace import (
    atomic_write,
    expand_paths,
    load_files,
    output_path,
    validate_out,
)
from ratchet.parsers.base import Parser, for_name, list_parsers
from ratchet.resolver.base import Resolver
from ratchet.resolver.default import DefaultResolver

VERSION = "0.1.0"

console = Console(stderr=True)
logger = logging.getLogger("ratchet.cli")

Operation = Callable[[PinningEngine, Parser, Dict[str, Node]], None]


class RatchetCLI:
    """
    Translates command line arguments into engine operations and renders
    the outcome. A resolver may be injected, otherwise one is built from
    the environment.
    """

    def __init__(self, resolver: Optional[Resolver] = None, settings: Optional[Settings] = None):
        self.resolver = resolver
        self.settings = settings
        self.cancel = threading.Event()
        self.parser = argparse.ArgumentParser(
            prog="ratchet",
            description="Ratchet - pin and unpin CI/CD references to immutable SHAs and digests",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self._setup_args()

    def _setup_args(self):
        self.parser.add_argument("-v", "--version", action="version", version=f"ratchet v{VERSION}")
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        check = subparsers.add_parser("check", help="Fail when any reference is unpinned")
        self._add_common(check)
        check.add_argument("--consistent", action="store_true",
                           help="Also verify pinned references still match their recorded constraint")
        check.add_argument("--concurrency", type=int, default=None,
                           help="Maximum number of concurrent resolutions")

        lint = subparsers.add_parser("lint", help="Report every unpinned reference with its position")
        self._add_common(lint)
        lint.add_argument("--format", default=None,
                          help=f"Output format: {', '.join(formatters.list_formatters())}")

        pin = subparsers.add_parser("pin", help="Resolve references and pin them to absolute values")
        self._add_common(pin)
        self._add_rewrite(pin)

        unpin = subparsers.add_parser("unpin", help="Restore the constraints recorded by pin")
        unpin.add_argument("paths", nargs="+", help="Files or directories to process")
        self._add_rewrite(unpin, resolves=False)

        update = subparsers.add_parser("update", help="Re-pin every reference within its recorded constraint")
        self._add_common(update)
        self._add_rewrite(update)

        upgrade = subparsers.add_parser("upgrade", help="Move references to their newest version")
        self._add_common(upgrade)
        self._add_rewrite(upgrade)
        upgrade.add_argument("--no-pin", dest="pin", action="store_false",
                             help="Write the new constraints without pinning them")

    def _add_common(self, sub: argparse.ArgumentParser):
        sub.add_argument("paths", nargs="+", help="Files or directories to process")
        sub.add_argument("--parser", default="actions",
                         help=f"CI dialect: {', '.join(list_parsers())} (default: actions)")

    def _add_rewrite(self, sub: argparse.ArgumentParser, resolves: bool = True):
        sub.add_argument("--out", default="",
                         help="Output file, or a directory ending in / (default: rewrite in place)")
        sub.add_argument("--dry-run", action="store_true", help="Print the result instead of writing it")
        sub.add_argument("--diff", action="store_true", help="Show a side-by-side comparison")
        if resolves:
            sub.add_argument("--concurrency", type=int, default=None,
                             help="Maximum number of concurrent resolutions")

    # --- plumbing --------------------------------------------------------------

    def _configure(self) -> Settings:
        if self.settings is None:
            self.settings = Settings()

        level = getattr(logging, self.settings.log_level.upper(), logging.WARNING)
        logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
        if self.settings.debug_newline_parsing:
            logging.getLogger("ratchet.exporter").setLevel(logging.DEBUG)
        return self.settings

    def _engine(self, args: argparse.Namespace, **kwargs) -> PinningEngine:
        if self.resolver is None:
            self.resolver = DefaultResolver.from_settings(self.settings)
        concurrency = getattr(args, "concurrency", None) or default_concurrency(1)
        return PinningEngine(self.resolver, concurrency=concurrency, cancel=self.cancel, **kwargs)

    def _load(self, args: argparse.Namespace) -> Dict[str, YamlDocument]:
        paths = expand_paths(args.paths)
        if hasattr(args, "out"):
            validate_out(args.out, paths)
        exporter = DocumentExporter(debug=self.settings.debug_newline_parsing)
        return load_files(paths, exporter)

    # --- commands --------------------------------------------------------------

    def _check(self, args: argparse.Namespace) -> int:
        parser = for_name(args.parser)
        documents = self._load(args)
        nodes = {p: d.root for p, d in documents.items()}

        engine = self._engine(args)
        engine.check(parser, nodes, consistent=args.consistent)
        console.print(f"[green]✓[/green] {len(nodes)} file(s) pinned")
        return 0

    def _lint(self, args: argparse.Namespace) -> int:
        parser = for_name(args.parser)
        render = formatters.for_name(args.format or formatters.default_formatter())
        documents = self._load(args)

        violations = PinningEngine().lint(parser, {p: d.root for p, d in documents.items()})
        render(sys.stdout, violations)
        return 1 if violations else 0

    def _rewrite(self, args: argparse.Namespace, operation: Operation,
                 parser: Optional[Parser] = None) -> int:
        """
        Shared flow of pin, unpin, update and upgrade: load, mutate, then
        write every file that does not touch a failed reference.
        """
        parser = parser or for_name(getattr(args, "parser", "actions"))
        documents = self._load(args)
        nodes = {p: d.root for p, d in documents.items()}
        engine = self._engine(args)

        failure: Optional[ResolutionErrors] = None
        skipped: List[str] = []
        try:
            operation(engine, parser, nodes)
        except ResolutionErrors as e:
            failure = e
            skipped = engine.affected_files(parser, nodes, e.refs)

        exporter = DocumentExporter(debug=self.settings.debug_newline_parsing)
        rows = []
        for path, doc in documents.items():
            if path in skipped:
                logger.warning("not writing %s, it references a failed lookup", path)
                rows.append((path, "[red]SKIPPED[/red]"))
                continue

            rendered = exporter.export(doc)
            changed = rendered != doc.text
            target = output_path(path, args.out)

            if args.diff and changed:
                self._show_side_by_side_diff(path, doc.text, rendered)
            if args.dry_run:
                if len(documents) > 1:
                    console.rule(f"[bold cyan]{target}[/bold cyan]")
                sys.stdout.write(rendered)
                rows.append((path, "[cyan]PREVIEW[/cyan]" if changed else "UNCHANGED"))
                continue

            if changed or args.out:
                atomic_write(path, target, rendered)
                rows.append((path, "[green]WRITTEN[/green]" if changed else "COPIED"))
            else:
                rows.append((path, "UNCHANGED"))

        self._render_report(args.command, rows)
        if failure is not None:
            raise failure
        return 0

    def _prewarm(self, engine: PinningEngine, parser: Parser, nodes: Dict[str, Node]):
        """Resolves every distinct reference once before per-file work."""
        if len(nodes) < 2:
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=40),
            TaskProgressColumn(),
            console=console,
            transient=True,
        ) as progress:
            task_id = progress.add_task("Resolving references...", total=None)
            engine.progress_callback = lambda ref: progress.advance(task_id)
            try:
                engine.fetch_and_cache(parser, nodes)
            except ResolutionErrors as e:
                # Failures are cached and reported again by the pin that follows
                logger.debug("pre-warm finished with %d failure(s)", len(e.errors))
            finally:
                engine.progress_callback = None

    def _pin(self, args: argparse.Namespace) -> int:
        def operation(engine: PinningEngine, parser: Parser, nodes: Dict[str, Node]):
            self._prewarm(engine, parser, nodes)
            engine.pin(parser, nodes)
        return self._rewrite(args, operation)

    def _unpin(self, args: argparse.Namespace) -> int:
        def operation(engine: PinningEngine, parser: Parser, nodes: Dict[str, Node]):
            engine.unpin(nodes)
        return self._rewrite(args, operation)

    def _update(self, args: argparse.Namespace) -> int:
        def operation(engine: PinningEngine, parser: Parser, nodes: Dict[str, Node]):
            engine.unpin(nodes)
            self._prewarm(engine, parser, nodes)
            engine.pin(parser, nodes)
        return self._rewrite(args, operation)

    def _upgrade(self, args: argparse.Namespace) -> int:
        def operation(engine: PinningEngine, parser: Parser, nodes: Dict[str, Node]):
            engine.unpin(nodes)
            engine.upgrade(parser, nodes, pin=args.pin)
        return self._rewrite(args, operation)

    # --- rendering -------------------------------------------------------------

    def _show_side_by_side_diff(self, file_path: str, old_content: str, new_content: str):
        old_syntax = Syntax(old_content.rstrip(), "yaml", theme="ansi_dark", line_numbers=True)
        new_syntax = Syntax(new_content.rstrip(), "yaml", theme="monokai", line_numbers=True)

        layout_table = Table.grid(expand=True, padding=1)
        layout_table.add_column(ratio=1)
        layout_table.add_column(ratio=1)
        layout_table.add_row(
            Panel(old_syntax, title=f"[bold red]ORIGINAL: {file_path}[/bold red]", border_style="red"),
            Panel(new_syntax, title=f"[bold green]RATCHETED: {file_path}[/bold green]", border_style="green"),
        )
        console.print(layout_table)

    def _render_report(self, command: str, rows: List[tuple]):
        table = Table(title=f"Ratchet {command}", header_style="bold magenta")
        table.add_column("File Path", style="cyan")
        table.add_column("Status")
        for path, status in rows:
            table.add_row(Text(path), status)
        console.print(table)

    # --- entry -----------------------------------------------------------------

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Parses argv and runs the command. Returns the process exit code."""
        args = self.parser.parse_args(argv)
        if not args.command:
            self.parser.print_help(sys.stderr)
            return 0

        handlers = {
            "check": self._check,
            "lint": self._lint,
            "pin": self._pin,
            "unpin": self._unpin,
            "update": self._update,
            "upgrade": self._upgrade,
        }

        self.cancel.clear()
        # Signal handlers can only be installed from the main thread
        installed = threading.current_thread() is threading.main_thread()
        if installed:
            previous = signal.signal(signal.SIGINT, self._interrupt)

        try:
            self._configure()
            return handlers[args.command](args)
        except ValidationError as e:
            console.print(Text.assemble(("Invalid configuration: ", "bold red"), str(e)))
        except ResolutionErrors as e:
            console.print(f"[bold red]Failed to resolve {len(e.errors)} reference(s):[/bold red]")
            for err in e.errors:
                console.print(Text.assemble(("  • ", "red"), str(err)))
        except RatchetError as e:
            console.print(Text.assemble(("Error: ", "bold red"), str(e)))
        finally:
            if installed:
                signal.signal(signal.SIGINT, previous if previous is not None else signal.SIG_DFL)
        return 1

    def _interrupt(self, signum, frame):
        """
        First Ctrl-C asks running operations to stop at their next
        admission check; a second one aborts immediately.
        """
        if self.cancel.is_set():
            raise KeyboardInterrupt
        self.cancel.set()
        console.print("\n[yellow]Cancelling, press Ctrl-C again to abort.[/yellow]")


def main():
    """Application entry point with interrupt handling."""
    cli = RatchetCLI()
    try:
        sys.exit(cli.run())
    except KeyboardInterrupt:
        console.print("\n[bold red]Terminated by user.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
