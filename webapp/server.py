from __future__ import annotations

import os
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from flask import Flask, jsonify, request

from models.errors import MonitorError
from services.runtime_status import runtime_status_store

BASE_DIR = Path(__file__).resolve().parent
LOG_SOURCES = [
    ("monitor", BASE_DIR / "../logs/log.txt"),
]
DEFAULT_LIMIT = 500
MAX_LIMIT = 5000
MAX_READ_BYTES = 2 * 1024 * 1024

LOG_LINE_RE = re.compile(
    r"^(?P<ts>\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})\s+\|\s+[A-Z]+\s+\|\s+[^|]+\|\s+(?P<msg>.*)$"
)

ERROR_STATUS = {
    "invalid_target": 400,
    "no_battery_source": 409,
    "already_running": 409,
    "target_locked": 409,
}

app = Flask(__name__)
_runner = None


def attach_runner(runner) -> None:
    global _runner
    _runner = runner


def error_response(code: str, message: str, status: int):
    return jsonify({"ok": False, "error": {"code": code, "message": message}}), status


def parse_limit(raw_limit: str | None) -> int:
    if raw_limit is None:
        return DEFAULT_LIMIT
    try:
        limit = int(raw_limit)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return max(1, min(limit, MAX_LIMIT))


def parse_timestamp(raw_ts: str | None) -> datetime | None:
    if not raw_ts:
        return None

    normalized = raw_ts.strip()
    if not normalized:
        return None

    iso_candidate = normalized.replace(" ", "T")
    if iso_candidate.endswith("Z"):
        iso_candidate = f"{iso_candidate[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(iso_candidate)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def select_log_sources(raw_source: str | None) -> List[tuple[str, Path]]:
    if not raw_source:
        return LOG_SOURCES
    return [source for source in LOG_SOURCES if source[0] == raw_source]


def tail_lines(path: Path, limit: int) -> List[str]:
    if limit <= 0:
        return []

    block_size = 8192
    data = b""
    bytes_read = 0

    with path.open("rb") as handle:
        handle.seek(0, os.SEEK_END)
        pos = handle.tell()

        while pos > 0 and data.count(b"\n") <= limit and bytes_read < MAX_READ_BYTES:
            read_size = min(block_size, pos)
            pos -= read_size
            handle.seek(pos)
            data = handle.read(read_size) + data
            bytes_read += read_size

    text = data.decode("utf-8", errors="replace")
    return text.splitlines()[-limit:]


def parse_log_line(line: str) -> tuple[str | None, str | None]:
    match = LOG_LINE_RE.match(line.strip())
    if match:
        return match.group("ts"), match.group("msg")
    return None, None


def filter_lines_since(lines: List[str], since_dt: datetime) -> List[str]:
    filtered: List[str] = []
    for line in lines:
        ts, _ = parse_log_line(line)
        dt = parse_timestamp(ts)
        if dt is not None and dt > since_dt:
            filtered.append(line)
    return filtered


@app.get("/api/status")
def api_status():
    return jsonify({"ok": True, **runtime_status_store.snapshot()})


@app.get("/api/logs")
def api_logs():
    limit = parse_limit(request.args.get("limit"))
    source = request.args.get("source")
    since_raw = request.args.get("since")
    since_dt = parse_timestamp(since_raw)
    if since_raw is not None and since_dt is None:
        return error_response("invalid_since", "Invalid 'since' value. Use ISO datetime or log timestamp format.", 400)

    selected_sources = select_log_sources(source)
    if source and not selected_sources:
        return error_response("invalid_log_source", f"Unknown log source '{source}'.", 400)

    sources_payload: List[Dict[str, Any]] = []
    for label, source_path in selected_sources:
        resolved = source_path.resolve()
        if not resolved.exists() or not resolved.is_file():
            continue
        lines = tail_lines(resolved, limit)
        if since_dt:
            lines = filter_lines_since(lines, since_dt)
        sources_payload.append({"label": label, "file": source_path.name, "line_count": len(lines), "lines": lines})

    if not sources_payload:
        return error_response("missing_log_files", "No log files are available.", 404)

    return jsonify({"ok": True, "limit": limit, "since": since_raw, "sources": sources_payload})


@app.post("/api/monitor/start")
def api_monitor_start():
    if _runner is None:
        return error_response("monitor_unavailable", "Monitor is not running in this process.", 503)

    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return error_response("invalid_body", "Request body must be a JSON object.", 400)

    try:
        _runner.start(payload.get("target"))
    except MonitorError as exc:
        return error_response(exc.code, str(exc), ERROR_STATUS.get(exc.code, 409))
    return jsonify({"ok": True, **runtime_status_store.snapshot()})


@app.post("/api/monitor/stop")
def api_monitor_stop():
    if _runner is None:
        return error_response("monitor_unavailable", "Monitor is not running in this process.", 503)
    _runner.stop()
    return jsonify({"ok": True, **runtime_status_store.snapshot()})


def run_web_server(host: str = "0.0.0.0", port: int = 8080):
    app.run(host=host, port=port, debug=False, use_reloader=False)


def start_web_server_thread(host: str = "0.0.0.0", port: int = 8080) -> threading.Thread:
    thread = threading.Thread(target=run_web_server, args=(host, port), daemon=True, name="status-webapp")
    thread.start()
    return thread
