# File: ctrlgen/cli.py
"""
ctrlgen - Command-Line Interface
================================

Built with the standard-library ``argparse`` module.

Usage examples::

    # CRUD controller for the User model, served under /account/profile
    ctrlgen gen controller profile --model=User --route=account

    # Bare controller (class with an empty route method)
    ctrlgen gen controller health

    # Show the generated source without writing anything
    ctrlgen gen controller profile --model=User --dry-run

    # Help
    ctrlgen gen controller --help

Exit codes:
    0 : success
    1 : schema or validation error
    2 : generation error
    3 : file write error
    4 : input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

from ctrlgen.errors import ConfigurationError, CtrlgenError, SchemaError

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4

DEFAULT_SCHEMA_FILE: str = "ctrlgen.yaml"


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root ctrlgen logger based on verbosity level.

    Args:
        verbosity: -1 = silent, 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    elif verbosity == 0:
        level = logging.WARNING
    else:
        level = logging.CRITICAL + 1

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("ctrlgen")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from ctrlgen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="ctrlgen",
        description=(
            "ctrlgen: schema-driven REST controller generator.\n\n"
            "Reads model definitions (JSON/YAML) and emits CRUD controllers "
            "with access control, ownership checks, field redaction and "
            "file-upload handling."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    gen: argparse.ArgumentParser = commands.add_parser(
        "gen",
        help="Generate project artifacts.",
        description="Generate project artifacts.",
    )
    artifacts = gen.add_subparsers(dest="artifact", metavar="ARTIFACT")

    controller: argparse.ArgumentParser = artifacts.add_parser(
        "controller",
        help="Generate a REST controller.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=(
            "Generate a controller class and register it in the API version's "
            "registry.\n\n"
            "With --model, the controller gets count/list/detail/add/update/"
            "remove handlers (plus a file upload handler for models with file "
            "fields). Without it, an empty controller is emitted."
        ),
        epilog=(
            "Examples:\n"
            "  ctrlgen gen controller profile --model=User --route=account\n"
            "  ctrlgen gen controller health --version=v2\n"
            "  ctrlgen gen controller profile --model=User --dry-run\n"
        ),
    )
    controller.add_argument(
        "name",
        nargs="?",
        default=None,
        metavar="NAME",
        help="Controller name, letters only (e.g. 'profile').",
    )
    controller.add_argument(
        "--model",
        nargs="?",
        const="true",
        default=None,
        metavar="MODEL",
        help="Model to generate CRUD handlers for (use --model=Name).",
    )
    controller.add_argument(
        "--route",
        default="/",
        help="Routing path prefix (default: '/').",
    )
    controller.add_argument(
        "--version",
        dest="api_version",
        default="v1",
        help="API version directory (default: v1).",
    )
    controller.add_argument(
        "--schema",
        default=None,
        metavar="PATH",
        help=f"Schema file (default: <root>/{DEFAULT_SCHEMA_FILE}).",
    )
    controller.add_argument(
        "--root",
        default=".",
        metavar="DIR",
        help="Project root directory (default: current directory).",
    )

    overrides = controller.add_argument_group("Config overrides")
    overrides.add_argument("--api-dir", default=None, help="Override config.api_dir.")
    overrides.add_argument("--models-dir", default=None, help="Override config.models_dir.")
    overrides.add_argument("--helpers-dir", default=None, help="Override config.helpers_dir.")
    overrides.add_argument(
        "--redaction-depth",
        type=int,
        default=None,
        help="Override config.max_redaction_depth (1-8).",
    )

    controller.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Print the generated source instead of writing files.",
    )
    verbosity = controller.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v INFO, -vv DEBUG).",
    )
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=False,
        help="Suppress all log output.",
    )
    return parser


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Extract config overrides from CLI arguments."""
    overrides: Dict[str, Any] = {}
    if args.api_dir is not None:
        overrides["api_dir"] = args.api_dir
    if args.models_dir is not None:
        overrides["models_dir"] = args.models_dir
    if args.helpers_dir is not None:
        overrides["helpers_dir"] = args.helpers_dir
    if args.redaction_depth is not None:
        overrides["max_redaction_depth"] = args.redaction_depth
    return overrides


# ---------------------------------------------------------------------------
# gen controller
# ---------------------------------------------------------------------------


def _run_gen_controller(args: argparse.Namespace) -> int:
    from ctrlgen.generator import ControllerGenerator, GenerationReport, parse_config
    from ctrlgen.models import ControllerConfig

    # Arguments are checked before anything is read or written.
    controller: ControllerConfig = ControllerConfig.build(
        name=args.name,
        model=args.model,
        route=args.route,
        version=args.api_version,
    )

    root: Path = Path(args.root).resolve()
    overrides: Dict[str, Any] = _build_config_overrides(args)
    schema_path: Path = Path(args.schema) if args.schema else root / DEFAULT_SCHEMA_FILE

    generator: ControllerGenerator
    if args.schema or schema_path.is_file():
        generator = ControllerGenerator.from_file(
            schema_path, root, config_overrides=overrides, dry_run=args.dry_run
        )
    else:
        logger.info("No schema file at %s; using default config.", schema_path)
        generator = ControllerGenerator(
            None, parse_config(overrides), root, dry_run=args.dry_run
        )

    report: GenerationReport = generator.generate(controller)
    if args.dry_run and report.emitted is not None:
        print(report.emitted.text, end="")
    elif not args.quiet:
        print(report.summary())
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Parse *argv*, run the command and return the exit code.

    Generator errors are logged and mapped to exit codes; they never escape.
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.command != "gen" or getattr(args, "artifact", None) != "controller":
        parser.print_help(sys.stderr)
        return EXIT_INPUT_ERROR

    _setup_logging(-1 if args.quiet else args.verbose)

    try:
        exit_code: int = _run_gen_controller(args)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR
    except SchemaError as exc:
        logger.error("%s", exc)
        return EXIT_VALIDATION_ERROR
    except CtrlgenError as exc:
        logger.error("Generation failed: %s", exc)
        return EXIT_GENERATION_ERROR
    except OSError as exc:
        logger.error("Could not write generated files: %s", exc)
        return EXIT_EXPORT_ERROR

    logger.info("Generation completed successfully.")
    return exit_code


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """Console-script entry point."""
    sys.exit(main(argv))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "main",
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("ctrlgen.cli loaded.")
