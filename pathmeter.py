#!/usr/bin/env python3
"""
pathmeter -- latency, jitter and throughput from the terminal.

Usage::

    python pathmeter.py                          # rich dashboard
    python pathmeter.py --simple                 # plain text
    python pathmeter.py --json                   # JSON to stdout
    python pathmeter.py -o result.json           # save to file
    python pathmeter.py --download-url URL --upload-url URL
    python pathmeter.py --ping 1.1.1.1           # live ping until Ctrl-C
    python pathmeter.py --ping "Google DNS" --count 20
    python pathmeter.py --list-targets           # preset ping targets
    python pathmeter.py --config-set ping_count=10
    python pathmeter.py --config-show            # effective settings
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

from rich.live import Live

from meter.aggregator import StatsAggregator
from meter.config import (
    DEFAULTS,
    config_path,
    get_config_value,
    load_config,
    parse_assignment,
    set_config_value,
)
from meter.constants import (
    MAX_PING_COUNT,
    MAX_PROBE_INTERVAL_MS,
    MAX_UPLOAD_SIZE,
    MIN_PING_COUNT,
    MIN_PROBE_INTERVAL_MS,
    MIN_UPLOAD_SIZE,
    PRESET_TARGETS,
)
from meter.errors import MeasurementError
from meter.latency import LatencySample
from meter.logging_config import configure_logging
from meter.pipeline import RunState, SpeedTestPipeline, StateChanged
from meter.session import ProbeSession
from meter.throughput import SpeedProgress
from meter.urls import normalize_target
from ui.dashboard import (
    ProgressDisplay,
    console,
    print_final_results,
    print_header,
    print_latency_details,
    print_speed_result,
    render_session,
)
from ui.output import (
    create_result_json,
    format_session_summary,
    format_text_result,
    save_json,
)

logger = logging.getLogger("pathmeter")


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    ping_count: int,
    upload_size: int,
    timeout_ms: int,
    interval_ms: int,
) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if not MIN_PING_COUNT <= ping_count <= MAX_PING_COUNT:
        raise ValueError(f"Ping count must be between {MIN_PING_COUNT} and {MAX_PING_COUNT}")
    if not MIN_UPLOAD_SIZE <= upload_size <= MAX_UPLOAD_SIZE:
        raise ValueError(f"Upload size must be between {MIN_UPLOAD_SIZE} and {MAX_UPLOAD_SIZE} bytes")
    if not MIN_PROBE_INTERVAL_MS <= interval_ms <= MAX_PROBE_INTERVAL_MS:
        raise ValueError(
            f"Probe interval must be between {MIN_PROBE_INTERVAL_MS} and {MAX_PROBE_INTERVAL_MS} ms"
        )
    if timeout_ms <= 0:
        raise ValueError("Probe timeout must be positive")


def _resolve_target(target: str) -> str:
    """Accept a preset name (case-insensitive) or a host/URL."""
    for name, host in PRESET_TARGETS.items():
        if target.lower() == name.lower():
            return host
    return target


# ---------------------------------------------------------------------------
# One-shot speed test
# ---------------------------------------------------------------------------

_STAGE_LABELS = {
    RunState.TESTING_PING: "Testing latency & jitter...",
    RunState.TESTING_DOWNLOAD: "Testing download speed...",
    RunState.TESTING_UPLOAD: "Testing upload speed...",
}


async def run_speedtest(
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
    download_url: str,
    upload_url: str,
    latency_url: str = "",
    ping_count: int,
    upload_size: int,
) -> Dict[str, Any]:
    """Execute latency, download and upload in sequence; return a JSON-able dict."""

    show_ui = not json_output and not simple

    if show_ui:
        print_header()

    pipeline = SpeedTestPipeline(
        download_url=download_url,
        upload_url=upload_url,
        latency_url=latency_url or None,
        ping_count=ping_count,
        upload_size=upload_size,
    )

    if show_ui:
        progress = ProgressDisplay()

        def _on_event(event) -> None:  # noqa: ANN001
            if isinstance(event, StateChanged):
                progress.stop()
                if event.state in _STAGE_LABELS:
                    console.print(f"\n[bold]{_STAGE_LABELS[event.state]}[/bold]")
                if event.state is RunState.TESTING_DOWNLOAD:
                    progress.start("Downloading")
                elif event.state is RunState.TESTING_UPLOAD:
                    progress.start("Uploading")
            elif isinstance(event, LatencySample):
                style = "red" if event.failed else "dim"
                console.print(f"  [{style}]#{event.sequence}: {event.latency_ms:.1f} ms[/{style}]")
            elif isinstance(event, SpeedProgress):
                progress.update(event.speed_mbps)

        pipeline.events.add_listener(_on_event)

    run = await pipeline.run()

    if show_ui:
        if run.latency is not None:
            print_latency_details(run.latency)
        if run.download is not None:
            print_speed_result(run.download, "Download Results", "green")
        if run.upload is not None:
            print_speed_result(run.upload, "Upload Results", "blue")
        print_final_results(run, download_url=download_url, upload_url=upload_url)
    elif simple:
        print(format_text_result(run))

    result_json = create_result_json(
        run,
        download_url=download_url,
        upload_url=upload_url,
        latency_url=latency_url,
    )

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    return result_json


# ---------------------------------------------------------------------------
# Live ping
# ---------------------------------------------------------------------------

async def run_ping(
    target: str,
    *,
    count: int = 0,
    timeout_ms: int,
    interval_ms: int,
    simple: bool = False,
    json_output: bool = False,
) -> Dict[str, Any]:
    """Probe *target* until *count* outcomes arrived (0 = until interrupted)."""
    show_ui = not json_output and not simple
    url = normalize_target(target)

    aggregator = StatsAggregator(target=url)
    aggregator.note(f"Pinging {url}...")

    try:
        async with ProbeSession(timeout_ms=timeout_ms, tick_interval_ms=interval_ms) as session:
            outcomes = session.events.subscribe()
            session.start(url)

            live = Live(render_session(aggregator.snapshot()), console=console, refresh_per_second=8) if show_ui else None
            if live is not None:
                live.start()
            try:
                async for outcome in outcomes:
                    stats = aggregator.feed(outcome)
                    if live is not None:
                        live.update(render_session(stats))
                    elif simple:
                        print(stats.log[-1].message, flush=True)
                    if count and stats.sent >= count:
                        break
            finally:
                session.stop()
                aggregator.note(f"Stopped pinging {url}.")
                if live is not None:
                    live.update(render_session(aggregator.snapshot()))
                    live.stop()
    finally:
        # Printed on Ctrl-C too.
        stats = aggregator.snapshot()
        if json_output:
            print(json.dumps(stats.to_dict(), indent=2))
        else:
            print(format_session_summary(stats))

    return stats.to_dict()


# ---------------------------------------------------------------------------
# Config commands
# ---------------------------------------------------------------------------

def run_config_command(
    *,
    show: bool = False,
    get_key: Optional[str] = None,
    assignment: Optional[str] = None,
) -> None:
    """Apply ``--config-set``, then print ``--config-get`` and ``--config-show``."""
    if assignment:
        key, value = parse_assignment(assignment)
        path = set_config_value(key, value)
        console.print(f"[green]Set {key} = {json.dumps(value)}[/green] in {path}")
    if get_key:
        if get_key not in DEFAULTS:
            raise ValueError(f"Unknown config key {get_key!r}")
        print(json.dumps(get_config_value(get_key)))
    if show:
        console.print(f"[bold]Config file:[/bold] {config_path()}")
        print(json.dumps(load_config(), indent=2))


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main() -> None:
    config = load_config()

    parser = argparse.ArgumentParser(
        description="pathmeter -- latency, jitter and throughput measurement",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--log-level", type=str, default="", metavar="LEVEL", help="Log level (default: $PATHMETER_LOG_LEVEL or WARNING)")

    # Endpoints
    parser.add_argument("--download-url", type=str, default=config["download_url"], metavar="URL", help="File to download")
    parser.add_argument("--upload-url", type=str, default=config["upload_url"], metavar="URL", help="Endpoint accepting POST uploads")
    parser.add_argument("--latency-url", type=str, default=config["latency_url"], metavar="URL", help="Latency endpoint (default: download URL)")

    # Test parameters
    parser.add_argument("--ping-count", type=int, default=config["ping_count"], metavar="N", help="Number of latency samples (default: 5)")
    parser.add_argument("--upload-size", type=int, default=config["upload_size"], metavar="BYTES", help="Upload payload size (default: 10 MiB)")

    # Live ping
    parser.add_argument("--ping", nargs="?", const=config["target"], metavar="TARGET", help="Continuously probe TARGET (host, URL or preset name)")
    parser.add_argument("--count", type=int, default=0, metavar="N", help="Stop live ping after N probes (default: run until Ctrl-C)")
    parser.add_argument("--timeout-ms", type=int, default=config["probe_timeout_ms"], metavar="MS", help="Per-probe timeout (default: 2000)")
    parser.add_argument("--interval-ms", type=int, default=config["probe_interval_ms"], metavar="MS", help="Probe interval (default: 1000)")
    parser.add_argument("--list-targets", action="store_true", help="List preset ping targets and exit")

    # Config file
    parser.add_argument("--config-show", action="store_true", help="Print the config file path and effective settings, then exit")
    parser.add_argument("--config-get", type=str, metavar="KEY", help="Print one config value and exit")
    parser.add_argument("--config-set", type=str, metavar="KEY=VALUE", help="Persist one config value (JSON or plain string) and exit")

    args = parser.parse_args()
    configure_logging(args.log_level)

    if args.list_targets:
        console.print("\n[bold]Preset Targets:[/bold]\n")
        for name, host in PRESET_TARGETS.items():
            console.print(f"  {name:<16} {host}")
        return

    if args.config_show or args.config_get or args.config_set:
        try:
            run_config_command(
                show=args.config_show,
                get_key=args.config_get,
                assignment=args.config_set,
            )
        except (ValueError, OSError) as exc:
            console.print(f"[red]Error: {exc}[/red]")
            sys.exit(1)
        return

    try:
        _validate(
            ping_count=args.ping_count,
            upload_size=args.upload_size,
            timeout_ms=args.timeout_ms,
            interval_ms=args.interval_ms,
        )
        if args.count < 0:
            raise ValueError("--count must be >= 0")
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    try:
        if args.ping:
            asyncio.run(
                run_ping(
                    _resolve_target(args.ping),
                    count=args.count,
                    timeout_ms=args.timeout_ms,
                    interval_ms=args.interval_ms,
                    simple=args.simple,
                    json_output=args.json,
                )
            )
            return

        result = asyncio.run(
            run_speedtest(
                json_output=args.json,
                output_file=args.output,
                simple=args.simple,
                download_url=args.download_url,
                upload_url=args.upload_url,
                latency_url=args.latency_url,
                ping_count=args.ping_count,
                upload_size=args.upload_size,
            )
        )
        if "error" in result:
            sys.exit(1)

    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except (MeasurementError, ValueError, OSError) as exc:
        logger.debug("Fatal error", exc_info=True)
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
