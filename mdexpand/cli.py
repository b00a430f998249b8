"""CLI entrypoints for mdexpand commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .classifier import describe_plan
from .config import ConfigError, load_config
from .errors import ExpansionError
from .logging import configure_logging
from .pipeline import Preprocessor, default_output_path


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


def _add_source_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("root", help="Root Markdown file to expand.")
    parser.add_argument(
        "--base-dir",
        type=Path,
        default=None,
        help="Directory for resolving the root document's includes (defaults to its directory).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a .mdexpand.yml file (defaults to the one in the base directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdexpand",
        description="Resolve includes, execute code blocks and expand Markdown documents.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    expand_parser = subparsers.add_parser(
        "expand",
        help="Expand a document and write the result plus any artifacts.",
    )
    _add_verbose_option(expand_parser, suppress_default=True)
    _add_source_options(expand_parser)
    expand_parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output file, or '-' for stdout (defaults to <root>.expanded.md).",
    )
    expand_parser.add_argument(
        "--artifacts-dir",
        type=Path,
        default=None,
        help="Directory for generated artifacts (defaults to <output>_files).",
    )
    expand_parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Resolve includes and validate modifiers and guards without executing code.",
    )
    _add_verbose_option(check_parser, suppress_default=True)
    _add_source_options(check_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for mdexpand commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    to_stdout = getattr(args, "output", None) == "-"
    configure_logging(
        verbose=bool(args.verbose),
        quiet=to_stdout,
        log_file=getattr(args, "log_file", None),
    )

    root = Path(args.root)
    try:
        config = load_config(args.config) if args.config is not None else None
    except ConfigError as exc:
        parser.exit(1, f"mdexpand: {exc}\n")
    preprocessor = Preprocessor(config)

    if args.command == "expand":
        if to_stdout:
            output = None
        elif args.output:
            output = Path(args.output)
        else:
            output = default_output_path(root)
        try:
            result = preprocessor.expand(
                root,
                base_dir=args.base_dir,
                output=output,
                artifacts_dir=args.artifacts_dir,
            )
        except ExpansionError as exc:
            parser.exit(1, f"{exc.report()}\n")
        except (ConfigError, OSError) as exc:
            parser.exit(1, f"mdexpand expand failed: {exc}\nRun with --verbose for more details.\n")
        if to_stdout:
            sys.stdout.write(result.text)
        else:
            print(f"Expanded document written to {_relativize(result.output_path)}")
    elif args.command == "check":
        try:
            report = preprocessor.check(root, base_dir=args.base_dir)
        except ExpansionError as exc:
            parser.exit(1, f"{exc.report()}\n")
        except (ConfigError, OSError) as exc:
            parser.exit(1, f"mdexpand check failed: {exc}\n")
        for block in report.blocks:
            print(f"#{block.index:<3} {block.location}  {block.language or '-'}  {describe_plan(block.plan)}")
        print(
            f"{len(report.files)} file(s), {len(report.blocks)} block(s) "
            f"({len(report.executable)} executable), {report.conditionals} conditional(s): OK"
        )
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path | None) -> str:
    if path is None:
        return "-"
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
