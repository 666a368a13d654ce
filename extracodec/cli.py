"""CLI entrypoints for extracodec commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict

from .config import ConfigError
from .emitter import ArtifactWriteError
from .logging import configure_logging
from .orchestrator import Orchestrator


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


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )


def _add_glob_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--include",
        action="append",
        default=None,
        metavar="GLOB",
        help="Glob selecting files to scan (repeatable; replaces generate_for.include).",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=None,
        metavar="GLOB",
        help="Glob removing files from the scan (repeatable; replaces generate_for.exclude).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extracodec",
        description="Generate a router extra codec registry from marked Python classes.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log records to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Scan the project and write the generated codec module.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    _add_path_argument(generate_parser)
    _add_glob_options(generate_parser)
    generate_parser.add_argument(
        "--output-folder",
        default=None,
        help="Folder for the generated module, relative to the project root.",
    )
    generate_parser.add_argument(
        "--output-filename",
        default=None,
        help="File name of the generated module.",
    )
    generate_parser.add_argument(
        "--codec-class-name",
        default=None,
        help="Name of the generated codec class.",
    )
    generate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the generated module instead of writing it.",
    )

    list_parser = subparsers.add_parser(
        "list",
        help="List registry keys and rejected classes without generating.",
    )
    _add_verbose_option(list_parser, suppress_default=True)
    _add_path_argument(list_parser)
    _add_glob_options(list_parser)

    return parser


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for key in ("include", "exclude", "output_folder", "output_filename", "codec_class_name"):
        value = getattr(args, key, None)
        if value:
            overrides[key] = value
    return overrides


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for extracodec commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    orchestrator = Orchestrator()

    if args.command == "generate":
        dry_run = bool(getattr(args, "dry_run", False))
        try:
            outcome = orchestrator.run_generate(args.path, dry_run=dry_run, overrides=_overrides(args))
        except (FileNotFoundError, NotADirectoryError, ConfigError) as exc:
            parser.exit(1, f"{exc}\n")
        except ArtifactWriteError as exc:
            parser.exit(1, f"extracodec generate failed: {exc}\n")
        except Exception as exc:  # pragma: no cover
            parser.exit(1, f"extracodec generate failed: {exc}\nRun with --verbose for more details.\n")
        if outcome is None:
            print("No encodable classes found; nothing generated")
        elif dry_run:
            sys.stdout.write(outcome.text)
        elif outcome.written:
            print(f"Codec generated at {_relativize(outcome.path)}")
        else:
            print(f"Codec already up to date at {_relativize(outcome.path)}")
    elif args.command == "list":
        try:
            result = orchestrator.run_list(args.path, overrides=_overrides(args))
        except (FileNotFoundError, NotADirectoryError, ConfigError) as exc:
            parser.exit(1, f"{exc}\n")
        for candidate in sorted(result.candidates, key=lambda item: (item.name, item.module)):
            print(f"{candidate.registry_key} -> {candidate.module}.{candidate.name}")
        if result.serializer is not None:
            print(f"encoder -> {result.serializer.module}.{result.serializer.name}")
        if result.deserializer is not None:
            print(f"decoder -> {result.deserializer.module}.{result.deserializer.name}")
        for rejection in result.rejections:
            print(f"rejected {rejection.module}.{rejection.name}: {rejection.reason}")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
