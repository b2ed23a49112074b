"""Command line interface for polyglot-keeper."""

from __future__ import annotations

import argparse
import pathlib
import sys
from typing import Dict, Iterable, Optional

from .configuration import (
    APP_NAME,
    build_markdown_settings,
    build_tree_settings,
    find_config_file,
    load_config,
    provider_debug_enabled,
    read_environment,
    require_section,
    resolve_api_key,
)
from .errors import (
    AbortRequested,
    ConfigurationError,
    PolyglotError,
    SourceNotFoundError,
    TranslationProviderConfigurationError,
)
from .interactive import AutomaticDecisionProvider, ConsoleDecisionProvider, DecisionProvider
from .providers import ProviderFactory, build_provider
from .translator import MarkdownSyncRunner, SyncSummary, TreeSyncRunner
from .wizard import run_setup_wizard


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=(
            "Keep JSON locale files and markdown content in sync with the primary locale "
            "using AI translation."
        ),
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=("sync", "init"),
        default="sync",
        help="`sync` translates missing and changed content (default); `init` runs setup.",
    )
    parser.add_argument(
        "--setup",
        action="store_true",
        help="Run the setup wizard (same as `init`).",
    )
    parser.add_argument(
        "--md",
        action="store_true",
        help="Synchronize markdown content instead of JSON locale files.",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Retranslate everything and clear frozen keys.",
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Disable prompts and take the first option of every question (suitable for CI).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    parser.add_argument(
        "--root",
        default=".",
        help="Project root containing polyglot.config.json (default: current directory).",
    )
    return parser


def _is_interactive(non_interactive: bool) -> bool:
    stdin = sys.stdin
    return not non_interactive and stdin is not None and stdin.isatty()


def _decision_provider(non_interactive: bool) -> DecisionProvider:
    if _is_interactive(non_interactive):
        return ConsoleDecisionProvider()
    return AutomaticDecisionProvider()


def execute_sync(
    *,
    root_dir: pathlib.Path,
    markdown: bool,
    force: bool,
    non_interactive: bool,
    verbose: bool,
    provider_debug: bool,
    decisions: Optional[DecisionProvider] = None,
    factories: Optional[Dict[str, ProviderFactory]] = None,
) -> tuple[int, SyncSummary | None, str | None]:
    """Execute a synchronization run and return the exit code, summary, and message."""

    try:
        config = load_config(root_dir)
        if config is None:
            return (
                1,
                None,
                f"No configuration found in {root_dir}. Run `{APP_NAME} init` to create one.",
            )

        section_name = "markdown" if markdown else "json"
        section = require_section(config, section_name, find_config_file(root_dir))
        environment = read_environment(root_dir, config.env_file)
        api_key = resolve_api_key(section, environment, env_file=config.env_file)
        provider = build_provider(
            section.provider,
            api_key=api_key,
            model=section.resolved_model,
            debug=provider_debug or provider_debug_enabled(environment),
            factories=factories,
        )
        decision_provider = decisions or _decision_provider(non_interactive)

        if markdown:
            runner = MarkdownSyncRunner(
                build_markdown_settings(section, root_dir, force_retranslate=force),
                provider=provider,
                decisions=decision_provider,
                model=section.resolved_model,
                verbose=verbose,
            )
        else:
            runner = TreeSyncRunner(
                build_tree_settings(section, root_dir, force_retranslate=force),
                provider=provider,
                decisions=decision_provider,
                model=section.resolved_model,
                verbose=verbose,
            )
        summary = runner.run()
    except (ConfigurationError, TranslationProviderConfigurationError) as exc:
        return 1, None, str(exc)
    except SourceNotFoundError as exc:
        return 1, None, str(exc)
    except AbortRequested:
        return 2, None, "Synchronization aborted at your request."
    except PolyglotError as exc:
        return 1, None, str(exc)
    except (KeyboardInterrupt, EOFError):
        return 2, None, "Synchronization interrupted by user."
    except Exception as exc:  # pragma: no cover - defensive catch
        error_message = (
            f"{exc}\n"
            "An unexpected error occurred. Please rerun with --verbose for more details."
        )
        return 1, None, error_message

    return 0, summary, None


def format_totals(summary: SyncSummary) -> str:
    parts = []
    translations = summary.total_translated + summary.total_updated
    if translations:
        parts.append(f"{translations} translations")
    if summary.total_failed:
        parts.append(f"{summary.total_failed} failures")
    if summary.total_removed:
        parts.append(f"{summary.total_removed} removed")
    if not parts:
        return "All locales are synchronized and sorted"
    return f"Total: {', '.join(parts)}"


def print_summary(summary: SyncSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nSynchronization complete.")
    print(f"  Source:          {summary.source_path}")
    print(
        f"  Provider:        {summary.provider_name}"
        + (f" ({summary.model})" if summary.model else "")
    )
    print(f"  Units:           {summary.total_units} ({summary.changed_units} changed)")
    if summary.retranslated_units or summary.skipped_units or summary.frozen_units:
        print(
            f"  Decisions:       {summary.retranslated_units} retranslated / "
            f"{summary.skipped_units} skipped / {summary.frozen_units} frozen"
        )
    if summary.stats:
        header = ("Locale", "Missing", "Translated", "Updated", "Failed", "Removed")
        width = max([len(header[0])] + [len(stat.locale) for stat in summary.stats])
        print()
        print(f"  {header[0]:<{width}}  " + "  ".join(f"{title:>10}" for title in header[1:]))
        for stat in summary.stats:
            counts = (stat.missing, stat.translated, stat.updated, stat.failed, stat.removed)
            print(f"  {stat.locale:<{width}}  " + "  ".join(f"{count:>10}" for count in counts))
    print(f"\n  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    print(f"  {format_totals(summary)}")
    if summary.errors:
        print("  Notes:")
        for record in summary.errors:
            print(f"    - {record.message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    root_dir = pathlib.Path(args.root).expanduser().resolve()

    # Without a config the wizard starts on its own when someone can answer it.
    needs_setup = find_config_file(root_dir) is None and _is_interactive(args.non_interactive)
    if args.setup or args.command == "init" or needs_setup:
        try:
            run_setup_wizard(root_dir)
        except AbortRequested as exc:
            print(exc)
            return 2
        except (KeyboardInterrupt, EOFError):
            print("\nSetup interrupted by user.")
            return 2
        return 0

    exit_code, summary, message = execute_sync(
        root_dir=root_dir,
        markdown=args.md,
        force=args.force,
        non_interactive=args.non_interactive,
        verbose=args.verbose,
        provider_debug=bool(args.debug_provider),
    )

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
