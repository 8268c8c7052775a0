"""CLI entry point for Docent."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import click
from rich.console import Console

from . import __version__
from .config import CONFIG_FILE, Config, VimMode, load_config, resolve_vim_enabled, save_config
from .diff import DiffParseError, FileFilter, FilterError, parse_unified_diff
from .export import write_export
from .generator import GenerationError, WalkthroughGenerator
from .layout import LayoutEngine
from .llm import ModelClient
from .mock_walkthrough import mock_walkthrough
from .models import InvalidWalkthrough, Walkthrough
from .session import SessionState
from .tui_textual import DocentApp

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(debug_logging: bool) -> None:
    """Configure logging once for the process (opt-in debug log file)."""
    if debug_logging:
        # Debug logging enabled - use rotating file handler
        log_file = Path.home() / ".cache" / "docent" / "debug.log"
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
        )
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            handlers=[handler],
        )
        logging.info("Docent starting (debug logging enabled)")
    else:
        # Default: only warn+ so TUI stays clean
        logging.basicConfig(
            level=logging.WARNING,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )


def read_diff(diff_file: str | None) -> str | None:
    """Diff text from the file argument, or from stdin when it is piped."""
    if diff_file is not None:
        return Path(diff_file).read_text(errors="replace")
    if sys.stdin is None or sys.stdin.isatty():
        return None
    text = sys.stdin.read()
    if not text:
        return None
    _reattach_terminal()
    return text


def _reattach_terminal() -> None:
    """Point fd 0 back at the terminal after reading a piped diff."""
    try:
        fd = os.open("/dev/tty", os.O_RDONLY)
    except OSError as e:
        logger.debug(f"No controlling terminal to reattach: {e}")
        return
    os.dup2(fd, 0)
    os.close(fd)


def print_config(config: Config) -> None:
    console.print("\n[bold]Current Configuration:[/bold]")
    console.print(f"  Model:          [cyan]{config.llm.model}[/cyan]")
    if config.llm.api_base:
        console.print(f"  API Base:       [cyan]{config.llm.api_base}[/cyan]")
    console.print(f"  Vim Mode:       [cyan]{config.editor.vim_mode.value}[/cyan]")
    console.print(f"  Key Timeout:    [cyan]{config.input.key_sequence_timeout_ms} ms[/cyan]")
    console.print(
        f"  Layout:         [cyan]vertical={config.layout.vertical_split} "
        f"horizontal={config.layout.horizontal_split} "
        f"bounds=[{config.layout.min_fraction}, {config.layout.max_fraction}][/cyan]"
    )
    console.print(f"  Debug Logging:  [cyan]{config.debug_logging}[/cyan]")
    console.print(f"\nConfig file: [dim]{CONFIG_FILE}[/dim]")

    for name in ("DOCENT_LLM_MODEL", "DOCENT_LLM_API_BASE", "DOCENT_VIM_MODE", "DOCENT_DEBUG_LOGGING"):
        if os.getenv(name):
            console.print(f"[yellow]Note:[/yellow] {name} is set: {os.getenv(name)}")


def build_walkthrough(diff_text: str, client: ModelClient, include: tuple[str, ...], exclude: tuple[str, ...]) -> Walkthrough:
    """Parse, filter and narrate a diff.

    Raises:
        DiffParseError, FilterError, GenerationError: When no walkthrough can be built.
    """
    parsed = parse_unified_diff(diff_text)
    parsed = FileFilter(include, exclude).apply(parsed)
    with console.status(f"[dim]Building walkthrough for {len(parsed.hunks)} hunks...[/dim]"):
        return WalkthroughGenerator(parsed, client).generate()


@click.command()
@click.argument("diff_file", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--mock", is_flag=True, help="Use a demo walkthrough (no diff or model needed)")
@click.option("--include", "-i", multiple=True, help="Only include files matching this glob (repeatable)")
@click.option("--exclude", "-x", multiple=True, help="Exclude files matching this glob (repeatable)")
@click.option("--vim-mode", type=click.Choice(["auto", "always", "never"]), default=None, help="Vim-style modal input")
@click.option("--model", help="LLM model name with litellm prefix (e.g., anthropic/claude-sonnet-4-20250514)")
@click.option("--debug-logging/--no-debug-logging", default=None, help="Enable debug logging to file")
@click.option("--export", "export_path", type=click.Path(dir_okay=False, path_type=Path), help="Write recorded comments here on quit (.md or .json)")
@click.option("--show-config", "show", is_flag=True, help="Show current configuration and exit")
@click.option("--save-config", "save", is_flag=True, help="Save --model/--vim-mode/--debug-logging to the config file")
@click.option("--version", "-v", is_flag=True, help="Show version")
def main(
    diff_file: str | None,
    mock: bool,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    vim_mode: str | None,
    model: str | None,
    debug_logging: bool | None,
    export_path: Path | None,
    show: bool,
    save: bool,
    version: bool,
) -> None:
    """Docent - walk through a diff step by step.

    Examples:
      git diff main | docent              # Review a piped diff
      docent changes.patch                # Review a diff file
      docent --mock                       # Try the demo walkthrough
      docent -x 'tests/*' changes.patch   # Skip test files
    """
    if version:
        console.print(f"docent v{__version__}")
        return

    config = load_config()
    # Apply CLI overrides (saved only with --save-config)
    if model is not None:
        config.llm.model = model
    if vim_mode is not None:
        config.editor.vim_mode = VimMode.parse(vim_mode)
    if debug_logging is not None:
        config.debug_logging = debug_logging

    if show:
        print_config(config)
        return
    if save:
        save_config(config)
        console.print(f"[green]Configuration saved![/green] [dim]{CONFIG_FILE}[/dim]")
        return

    setup_logging(config.debug_logging)
    run_docent(config, diff_file=diff_file, mock=mock, include=include, exclude=exclude, export_path=export_path)


def run_docent(
    config: Config,
    diff_file: str | None = None,
    mock: bool = False,
    include: tuple[str, ...] = (),
    exclude: tuple[str, ...] = (),
    export_path: Path | None = None,
) -> None:
    """Build the walkthrough and run the TUI until the user quits."""
    client = ModelClient(
        model=config.llm.model,
        api_base=config.llm.api_base,
        api_key=config.llm.api_key,
    )
    try:
        if mock:
            walkthrough = mock_walkthrough()
        else:
            diff_text = read_diff(diff_file)
            if diff_text is None:
                console.print("[red]Error:[/red] no diff given. Pass a file, pipe a diff, or use --mock")
                raise SystemExit(1)
            try:
                walkthrough = build_walkthrough(diff_text, client, include, exclude)
            except (DiffParseError, FilterError, GenerationError, InvalidWalkthrough) as e:
                console.print(f"[red]Error:[/red] {e}")
                raise SystemExit(1)

        layout = LayoutEngine(
            vertical_split=config.layout.vertical_split,
            horizontal_split=config.layout.horizontal_split,
            min_fraction=config.layout.min_fraction,
            max_fraction=config.layout.max_fraction,
        )
        session = SessionState(
            walkthrough,
            client,
            vim_enabled=resolve_vim_enabled(config.editor.vim_mode),
            sequence_timeout=config.input.key_sequence_timeout,
            layout=layout,
        )
        logger.info(f"Starting session with {len(walkthrough)} steps")

        try:
            app = DocentApp(session, client)
            app.run()
        except KeyboardInterrupt:
            pass
        finally:
            session.cancel_all()

        records = session.comments_snapshot()
        if export_path is not None:
            write_export(records, export_path)
            console.print(f"[green]Exported {len(records)} comments to[/green] {export_path}")
        console.print(
            f"[dim]Reviewed {walkthrough.completed_count}/{len(walkthrough)} steps. Goodbye![/dim]"
        )
    finally:
        client.shutdown()
