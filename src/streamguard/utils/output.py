from __future__ import annotations

import json
import time
from typing import Any

from tabulate import tabulate


SCHEMA = "streamguard.cli.result/v1"


def normalize_errors(errors: list[Any] | None) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for e in errors or []:
        s = str(e).strip()
        if s and s not in seen:
            out.append(s)
            seen.add(s)
    return out


def build_cli_payload(
    *,
    command: str,
    version: str,
    target: str | None,
    started_at: float,
    data: Any,
    errors: list[Any] | None = None,
    ok: bool | None = None,
) -> dict[str, Any]:
    normalized_errors = normalize_errors(errors)
    resolved_ok = bool(ok) if ok is not None else (len(normalized_errors) == 0)
    return {
        "meta": {
            "tool": "streamguard",
            "version": version,
            "command": command,
            "schema": SCHEMA,
            "timestamp": int(time.time()),
            "duration_ms": int(round((time.perf_counter() - started_at) * 1000)),
        },
        "ok": resolved_ok,
        "target": target,
        "data": data,
        "errors": normalized_errors,
    }


def render_payload(payload: dict[str, Any], *, fmt: str = "json", pretty: bool = False) -> str:
    mode = (fmt or "json").strip().lower()
    if mode == "table":
        return _render_table(payload)
    return serialize_payload(payload, pretty=pretty)


def serialize_payload(payload: dict[str, Any], *, pretty: bool = False) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2 if pretty else None)


def _render_table(payload: dict[str, Any]) -> str:
    meta = payload.get("meta") if isinstance(payload.get("meta"), dict) else {}
    rows: list[tuple[str, str]] = [
        ("command", _safe_str(meta.get("command"))),
        ("version", _safe_str(meta.get("version"))),
        ("ok", _safe_str(payload.get("ok"))),
        ("target", _safe_str(payload.get("target"))),
        ("duration_ms", _safe_str(meta.get("duration_ms"))),
    ]

    errors = payload.get("errors")
    if isinstance(errors, list):
        rows.append(("errors_count", str(len(errors))))
        for i, err in enumerate(errors[:3], start=1):
            rows.append((f"error_{i}", _safe_str(err, max_len=160)))

    out = tabulate(rows, headers=["Field", "Value"], tablefmt="github")

    headers, detail = _detail_rows(payload.get("data"))
    if detail:
        out += "\n\n" + tabulate(detail, headers=headers, tablefmt="github")
    return out


def _detail_rows(data: Any) -> tuple[list[str], list[tuple[str, ...]]]:
    if not isinstance(data, dict):
        return [], []

    runs = data.get("runs")
    if not isinstance(runs, list):
        variants = data.get("variants") if isinstance(data.get("variants"), list) else []
        return ["Variant", "Description"], [
            (_safe_str(v.get("name")), _safe_str(v.get("description")))
            for v in variants
            if isinstance(v, dict)
        ]

    out: list[tuple[str, ...]] = []
    for run in runs:
        if not isinstance(run, dict):
            continue
        out.append(
            (
                _safe_str(run.get("variant")),
                _safe_str(run.get("run")),
                _safe_str(run.get("ok")),
                _safe_str(run.get("bytes_read")),
                _safe_str(run.get("handles")),
                _safe_str(run.get("released")),
                _safe_str(run.get("error"), max_len=60),
            )
        )
    return ["Variant", "Run", "OK", "Bytes", "Handles", "Released", "Error"], out


def _safe_str(value: Any, *, max_len: int = 120) -> str:
    if isinstance(value, (dict, list)):
        s = json.dumps(value, ensure_ascii=False)
    else:
        s = "null" if value is None else str(value)
    if len(s) <= max_len:
        return s
    return s[: max_len - 3] + "..."
