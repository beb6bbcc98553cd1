"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict

from meter.aggregator import RunningStats
from meter.pipeline import RunResult


def create_result_json(
    run: RunResult,
    download_url: str = "",
    upload_url: str = "",
    latency_url: str = "",
) -> Dict[str, Any]:
    """Build a JSON-serialisable dict for one speed test run."""
    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "state": run.state.value,
        "endpoints": {
            "latency": latency_url or download_url,
            "download": download_url,
            "upload": upload_url,
        },
        "ping": run.ping_ms,
        "jitter": run.jitter_ms,
        "download": {"speed_mbps": run.download_mbps},
        "upload": {"speed_mbps": run.upload_mbps, "partial": run.upload_partial},
        "timeline": [p.to_dict() for p in run.timeline],
    }
    if run.error:
        result["error"] = run.error
    return result


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except OSError as exc:
        # Clean up partial temp file
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise OSError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text helpers
# ---------------------------------------------------------------------------

def format_text_result(run: RunResult) -> str:
    sep = "=" * 50
    if run.error:
        return f"{sep}\nSpeed test failed: {run.error}\n{sep}"

    upload_note = " (partial)" if run.upload_partial else ""
    return (
        f"{sep}\n"
        f"pathmeter results\n"
        f"{sep}\n"
        f"Ping: {run.ping_ms:.1f} ms (jitter: {run.jitter_ms:.2f} ms)\n"
        f"Download: {run.download_mbps:.2f} Mbps\n"
        f"Upload: {run.upload_mbps:.2f} Mbps{upload_note}\n"
        f"{sep}"
    )


def format_session_summary(stats: RunningStats) -> str:
    """ping(8)-style closing summary of a live session."""
    def _v(value):  # noqa: ANN001, ANN202
        return "--" if value is None else f"{value:.1f}"

    return (
        f"--- {stats.target} ping statistics ---\n"
        f"{stats.sent} probes sent, {stats.received} received, "
        f"{stats.lost} lost ({stats.packet_loss_pct:.0f}% loss)\n"
        f"rtt min/avg/max/jitter = {_v(stats.min_ms)}/{stats.average_ms:.1f}/"
        f"{_v(stats.max_ms)}/{stats.jitter_ms:.1f} ms"
    )
