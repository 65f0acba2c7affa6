"""CLI entrypoints for ctxscope commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .engine import ContextEngine
from .logging import configure_logging
from .models import ContextResult


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_root_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--root",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )


def _add_subcommand(
    subparsers: argparse._SubParsersAction, name: str, help_text: str
) -> argparse.ArgumentParser:
    sub = subparsers.add_parser(name, help=help_text)
    _add_verbose_option(sub, suppress_default=True)
    _add_root_option(sub)
    return sub


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ctxscope",
        description="Rank project files by relevance to a selection and task.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    context_parser = _add_subcommand(
        subparsers, "context", "Suggest related files for the selected files."
    )
    context_parser.add_argument("files", nargs="*", help="Project-relative selected files.")
    context_parser.add_argument("--task", default=None, help="Free-text task description.")
    context_parser.add_argument(
        "--budget",
        type=int,
        default=None,
        help="Override the prompt token budget.",
    )
    context_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON.",
    )

    _add_subcommand(subparsers, "analyze", "Rebuild the project graph and cache it.")
    _add_subcommand(subparsers, "hubs", "List the most imported project files.")

    dependents_parser = _add_subcommand(
        subparsers, "dependents", "List files that import the given file."
    )
    dependents_parser.add_argument("file", help="Project-relative file path.")

    ignore_parser = _add_subcommand(
        subparsers, "ignore", "Add a path to the project .ctxignore."
    )
    ignore_parser.add_argument("path", help="Path to ignore.")
    ignore_parser.add_argument(
        "--all",
        dest="match_all_by_name",
        action="store_true",
        help="Ignore every entry with this name instead of one root-anchored path.",
    )

    serve_parser = _add_subcommand(subparsers, "serve", "Run the HTTP service.")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for ctxscope commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    if args.command == "serve":
        from .service import run_service

        run_service(args.root, host=args.host, port=args.port)
        return

    try:
        engine = ContextEngine(watch=False)
        pending = engine.set_base_dir(args.root)
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(1, f"{exc}\n")

    try:
        if pending is not None and args.command != "analyze":
            pending.result()
        _dispatch(args, engine)
    except Exception as exc:  # pragma: no cover - surfaced as exit code 1
        parser.exit(
            1, f"ctxscope {args.command} failed: {exc}\nRun with --verbose for more details.\n"
        )
    finally:
        engine.close()


def _dispatch(args: argparse.Namespace, engine: ContextEngine) -> None:
    if args.command == "context":
        if args.budget is not None and engine.scorer is not None:
            engine.scorer.settings.token_budget = args.budget
        result = engine.calculate_context(args.files, args.task)
        if args.json:
            print(json.dumps(result.to_dict(), indent=2))
        else:
            _print_context(result)
    elif args.command == "analyze":
        outcome = engine.force_reanalyze().result()
        if not outcome.ok:
            raise RuntimeError(str(outcome.error))
        print(f"Analyzed {_relativize(Path(outcome.root))}: {len(engine.get_hub_files())} hub files")
    elif args.command == "hubs":
        for path in engine.get_hub_files():
            print(path)
    elif args.command == "dependents":
        for path in engine.get_dependents_for_file(args.file):
            print(path)
    elif args.command == "ignore":
        if engine.add_ignore_pattern(args.path, args.match_all_by_name):
            print(f"Added {args.path} to .ctxignore")
        else:
            print(f"{args.path} already ignored")
    else:  # pragma: no cover - argparse enforces choices
        raise RuntimeError("Unknown command")


def _print_context(result: ContextResult) -> None:
    in_prompt = set(result.prompt_neighbors)
    heuristic = set(result.heuristic_seed_files)
    for item in result.all_neighbors:
        markers = ("*" if item.path in in_prompt else " ") + ("+" if item.path in heuristic else " ")
        print(f"{markers} {item.score:6.1f}  {item.path}")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
