from __future__ import annotations

import argparse
import io
import time
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Callable

from streamguard.core.driver import VARIANT_DESCRIPTIONS, VARIANTS, run_variant
from streamguard.core.http_client import HttpClient
from streamguard.core.target import normalize_target_url
from streamguard.utils.logging import DEFAULT_LOG_FILE, configure_logging, get_logger
from streamguard.utils.output import build_cli_payload, normalize_errors, render_payload, serialize_payload


class CliUsageError(Exception):
    pass


def _get_version() -> str:
    try:
        return version("streamguard")
    except PackageNotFoundError:
        return "0.0.0"


def _resolve_variants(names: list[str] | None) -> list[str]:
    if not names:
        return list(VARIANTS)
    unknown = [n for n in names if n not in VARIANTS]
    if unknown:
        raise CliUsageError(f"unknown variant(s): {', '.join(unknown)} (known: {', '.join(VARIANTS)})")
    out: list[str] = []
    for n in names:
        if n not in out:
            out.append(n)
    return out


def _extract_check_errors(data: Any) -> list[str]:
    if not isinstance(data, dict):
        return []
    out: list[str] = []
    for run in data.get("runs") or []:
        if not isinstance(run, dict):
            continue
        label = f"{run.get('variant')}#{run.get('run')}"
        if run.get("error"):
            out.append(f"{label}: {run['error']}")
        if run.get("open_handles"):
            out.append(f"{label}: stream is not closed (handles {run['open_handles']})")
    return normalize_errors(out)


def _configure_runtime_logging(args: argparse.Namespace) -> None:
    enable_file = not bool(getattr(args, "no_log_file", False))
    file_path = configure_logging(
        level=str(getattr(args, "log_level", "INFO")),
        log_file=str(getattr(args, "log_file", DEFAULT_LOG_FILE)),
        enable_file=enable_file,
    )
    logger = get_logger(__name__)
    if file_path:
        logger.debug("log file enabled: %s", file_path)
    else:
        logger.debug("log file disabled")


def _emit_payload(args: argparse.Namespace, payload: dict[str, Any]) -> None:
    path = getattr(args, "output", None)
    if path:
        text = serialize_payload(payload, pretty=bool(getattr(args, "pretty", False)))
        Path(path).write_text(text, encoding="utf-8")
        return

    text = render_payload(
        payload,
        fmt=str(getattr(args, "format", "json")),
        pretty=bool(getattr(args, "pretty", False)),
    )
    print(text)


def _run_command(
    args: argparse.Namespace,
    *,
    command: str,
    target: str | None,
    runner: Callable[[], Any],
    error_extractor: Callable[[Any], list[str]] = lambda data: [],
) -> int:
    _configure_runtime_logging(args)
    logger = get_logger(f"{__name__}.{command}")
    started = time.perf_counter()
    cli_version = _get_version()

    try:
        logger.info("command start: %s target=%s", command, target)
        data = runner()
        errors = normalize_errors(error_extractor(data))
        ok = len(errors) == 0
        payload = build_cli_payload(
            command=command,
            version=cli_version,
            target=target,
            started_at=started,
            data=data,
            errors=errors,
            ok=ok,
        )
        logger.info("command done: %s ok=%s errors=%d", command, ok, len(errors))
        _emit_payload(args, payload)
        return 0 if ok else 1
    except CliUsageError as e:
        logger.error("usage error: %s", e)
        payload = build_cli_payload(
            command=command,
            version=cli_version,
            target=target,
            started_at=started,
            data=None,
            errors=[str(e)],
            ok=False,
        )
        print(render_payload(payload, fmt="json", pretty=True))
        return 2
    except Exception as e:
        logger.exception("command failed: %s", command)
        payload = build_cli_payload(
            command=command,
            version=cli_version,
            target=target,
            started_at=started,
            data=None,
            errors=[f"{type(e).__name__}: {e}"],
            ok=False,
        )
        print(render_payload(payload, fmt="json", pretty=True))
        return 1


def _add_runtime_options(parser: argparse.ArgumentParser, *, allow_output_file: bool) -> None:
    parser.add_argument(
        "--format",
        choices=("json", "table"),
        default="json",
        help="Result display format (default: json)",
    )
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        default="INFO",
        help="Console log level (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=str(DEFAULT_LOG_FILE),
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Disable file logging and only log to console",
    )
    if allow_output_file:
        parser.add_argument(
            "-o",
            "--output",
            type=str,
            default=None,
            help="Write structured result JSON to file",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="streamguard",
        description="streamguard: check that HTTP response streams are released after use",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_get_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Drive request variants against a URL and probe stream release")
    check.add_argument("-t", "--target", required=True, help="Target URL, e.g. http://127.0.0.1:8080/foo")
    check.add_argument(
        "--variant",
        action="append",
        default=None,
        help=f"Variant to run, repeatable (default: all of {', '.join(VARIANTS)})",
    )
    check.add_argument("--repeat", type=int, default=1, help="Fresh runs per variant (default: 1)")
    check.add_argument(
        "--chunk-size",
        type=int,
        default=io.DEFAULT_BUFFER_SIZE,
        help=f"Bytes per read while draining bodies (default: {io.DEFAULT_BUFFER_SIZE})",
    )
    check.add_argument("--timeout", type=float, default=3.0, help="HTTP timeout in seconds (default: 3.0)")
    check.add_argument("--follow-redirects", action="store_true", help="Follow redirects (default: false)")
    check.add_argument("--insecure", action="store_true", help="Disable TLS cert verification (default: false)")
    _add_runtime_options(check, allow_output_file=True)

    def _check_cmd(args: argparse.Namespace) -> int:
        def _client_factory() -> HttpClient:
            return HttpClient(
                timeout=args.timeout,
                verify_tls=not args.insecure,
                allow_redirects=bool(args.follow_redirects),
            )

        def _runner() -> dict[str, Any]:
            if args.repeat < 1:
                raise CliUsageError("--repeat must be >= 1")
            if args.chunk_size < 1:
                raise CliUsageError("--chunk-size must be >= 1")
            try:
                url = normalize_target_url(args.target)
            except ValueError as e:
                raise CliUsageError(str(e)) from e

            runs: list[dict[str, Any]] = []
            for name in _resolve_variants(args.variant):
                for i in range(1, args.repeat + 1):
                    outcome = run_variant(name, url, client_factory=_client_factory, chunk_size=args.chunk_size)
                    runs.append({"run": i, **outcome.to_dict()})
            return {"url": url, "runs": runs}

        return _run_command(
            args,
            command="check",
            target=args.target,
            runner=_runner,
            error_extractor=_extract_check_errors,
        )

    check.set_defaults(func=_check_cmd)

    variants = subparsers.add_parser("variants", help="List the request variants")
    _add_runtime_options(variants, allow_output_file=False)

    def _variants_cmd(args: argparse.Namespace) -> int:
        return _run_command(
            args,
            command="variants",
            target=None,
            runner=lambda: {
                "variants": [{"name": n, "description": VARIANT_DESCRIPTIONS[n]} for n in VARIANTS],
            },
        )

    variants.set_defaults(func=_variants_cmd)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
