"""Command-line interface: JSON diagram in, hand-drawn PNG out."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

from . import __version__
from .models import DiagramError
from .renderer import render
from .schema import validate_config, validate_diagram

DEFAULT_CONFIG_NAME = "aidraw.config.json"


@dataclass
class CliError(Exception):
    code: str
    message: str
    hint: Optional[str] = None
    exit_code: int = 1
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    details: List[str] = field(default_factory=list)


class UsageError(Exception):
    pass


class FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # pragma: no cover - argparse callback
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = FriendlyArgumentParser(
        prog="aidraw",
        description="Render a JSON diagram description to a hand-drawn style PNG.",
    )
    parser.add_argument("input", nargs="?", help="Input JSON file (reads stdin when omitted)")
    parser.add_argument("--text", help="Raw diagram JSON")
    parser.add_argument("-o", "--output", help="Output PNG file path")
    parser.add_argument("--stdout", action="store_true", help="Write PNG bytes to stdout")
    parser.add_argument("--width", required=True, help="Output image width in pixels")
    parser.add_argument("--height", required=True, help="Output image height in pixels")
    parser.add_argument("--config", help=f"Config JSON file (default: ./{DEFAULT_CONFIG_NAME} if present)")
    parser.add_argument("--seed", type=int, default=1, help="Seed for the sketch randomness")
    parser.add_argument("--error-format", choices=["text", "json"], default="text")
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _parse_dimension(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = 0
    if value <= 0:
        raise CliError(
            "E_ARGS",
            f"--{name} must be a positive number",
            hint=f"Got {raw!r}; pass a pixel count like --{name} 800.",
            exit_code=2,
        )
    return value


def _read_input(path: Optional[str], text: Optional[str]) -> tuple[str, str]:
    if path and text is not None:
        raise CliError(
            "E_ARGS",
            "--text cannot be combined with file input",
            hint="Use either FILE or --text.",
            exit_code=2,
        )

    if text is not None:
        return text, "<text>"

    if path:
        input_path = Path(path)
        if not input_path.exists():
            raise CliError(
                "E_IO_READ",
                f"input file not found: {input_path.resolve()}",
                exit_code=2,
                file=str(input_path),
            )
        try:
            return input_path.read_text(encoding="utf-8"), str(input_path)
        except OSError as exc:
            raise CliError(
                "E_IO_READ",
                f"failed to read input file: {input_path}",
                hint=str(exc),
                exit_code=2,
                file=str(input_path),
            )

    data = "" if sys.stdin.isatty() else sys.stdin.read()
    if not data.strip():
        raise CliError(
            "E_ARGS",
            "no input provided",
            hint="Specify a file or pipe JSON to stdin.",
            exit_code=2,
        )
    return data, "<stdin>"


def _parse_json(source: str, source_name: str) -> Any:
    try:
        return json.loads(source)
    except json.JSONDecodeError as exc:
        raise CliError(
            "E_PARSE_JSON",
            f"invalid JSON: {exc.msg}",
            hint="Check for trailing commas and unquoted keys.",
            exit_code=2,
            file=source_name,
            line=exc.lineno,
            column=exc.colno,
        )


def _load_config(explicit: Optional[str]) -> dict:
    config_path = Path(explicit) if explicit else Path.cwd() / DEFAULT_CONFIG_NAME
    if not config_path.exists():
        if explicit:
            raise CliError(
                "E_CONFIG",
                f"config file not found: {config_path}",
                exit_code=3,
                file=str(config_path),
            )
        return {}

    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CliError(
            "E_CONFIG",
            f"failed to read config file: {config_path}",
            hint=str(exc),
            exit_code=3,
            file=str(config_path),
        )
    try:
        config = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CliError(
            "E_CONFIG",
            f"invalid JSON in config file: {exc.msg}",
            exit_code=3,
            file=str(config_path),
            line=exc.lineno,
            column=exc.colno,
        )
    ok, errors = validate_config(config)
    if not ok:
        raise CliError(
            "E_CONFIG",
            "invalid config schema",
            hint="Allowed keys: background (string), padding (number >= 0).",
            exit_code=3,
            file=str(config_path),
            details=errors,
        )
    return config


def _write_bytes(path: Path, content: bytes) -> None:
    try:
        path.write_bytes(content)
    except OSError as exc:
        raise CliError(
            "E_IO_WRITE",
            f"failed to write output file: {path}",
            hint=str(exc),
            exit_code=4,
            file=str(path),
        )


def _error_from_exception(exc: Exception) -> CliError:
    if isinstance(exc, CliError):
        return exc
    if isinstance(exc, DiagramError):
        return CliError(exc.code, exc.message, exit_code=3)
    return CliError(
        "E_INTERNAL",
        str(exc) or exc.__class__.__name__,
        hint="Re-run with --debug to see traceback.",
        exit_code=1,
    )


def _emit_error(err: CliError, *, error_format: str) -> None:
    if error_format == "json":
        payload = {
            "ok": False,
            "code": err.code,
            "message": err.message,
            "file": err.file,
            "line": err.line,
            "column": err.column,
            "hint": err.hint,
            "details": err.details,
        }
        sys.stderr.write(json.dumps(payload) + "\n")
        return

    sys.stderr.write(f"error[{err.code}]: {err.message}\n")
    for detail in err.details:
        sys.stderr.write(f"  {detail}\n")
    if err.hint:
        sys.stderr.write(f"hint: {err.hint}\n")


def _install_log_handler(debug: bool) -> Tuple[logging.Handler, int]:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    package_logger = logging.getLogger("aidraw")
    previous_level = package_logger.level
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    return handler, previous_level


def _remove_log_handler(handler: logging.Handler, previous_level: int) -> None:
    package_logger = logging.getLogger("aidraw")
    package_logger.removeHandler(handler)
    package_logger.setLevel(previous_level)


def _handle_render(args: argparse.Namespace) -> int:
    if args.stdout and args.output:
        raise CliError(
            "E_ARGS",
            "--stdout and --output are mutually exclusive",
            hint="Choose either --stdout or --output.",
            exit_code=2,
        )
    if not args.stdout and not args.output:
        raise CliError(
            "E_ARGS",
            "missing output",
            hint="Pass -o/--output FILE or --stdout.",
            exit_code=2,
        )
    width = _parse_dimension("width", args.width)
    height = _parse_dimension("height", args.height)

    source, source_name = _read_input(args.input, args.text)
    diagram = _parse_json(source, source_name)
    ok, errors = validate_diagram(diagram)
    if not ok:
        raise CliError(
            "E_SCHEMA",
            "invalid diagram schema",
            hint="Each element needs a known type; see the element reference.",
            exit_code=3,
            file=source_name,
            details=errors,
        )
    config = _load_config(args.config)

    png_bytes = render(diagram, width, height, config, seed=args.seed)

    if args.stdout:
        sys.stdout.buffer.write(png_bytes)
        return 0

    output_path = Path(args.output).resolve()
    _write_bytes(output_path, png_bytes)
    print(f"Diagram saved to: {output_path}")
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    parser = _build_parser()

    debug_enabled = "--debug" in raw_argv or os.getenv("AIDRAW_DEBUG") == "1"
    error_format = "text"
    if "--error-format" in raw_argv:
        idx = raw_argv.index("--error-format")
        if idx + 1 < len(raw_argv):
            error_format = raw_argv[idx + 1]

    handler, previous_level = _install_log_handler(debug_enabled)
    try:
        args = parser.parse_args(raw_argv)
        error_format = args.error_format
        return _handle_render(args)
    except UsageError as exc:
        err = CliError(
            "E_ARGS",
            str(exc),
            hint="Usage: aidraw [input] -o FILE --width PX --height PX [--config FILE]",
            exit_code=2,
        )
        _emit_error(err, error_format=error_format)
        return err.exit_code
    except Exception as exc:  # pragma: no cover - exercised in integration tests
        err = _error_from_exception(exc)
        _emit_error(err, error_format=error_format)
        if debug_enabled:
            traceback.print_exc(file=sys.stderr)
        return err.exit_code
    finally:
        _remove_log_handler(handler, previous_level)


if __name__ == "__main__":
    raise SystemExit(main())
