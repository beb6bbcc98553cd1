"""
Rich-based terminal dashboard for pathmeter results.

All numeric work lives in ``meter`` -- this module only does presentation
via the ``rich`` library.
"""
from __future__ import annotations

from typing import List, Optional

from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from meter.aggregator import RunningStats
from meter.latency import LatencyResult
from meter.pipeline import RunResult
from meter.stats import BUCKET_NAMES, ThroughputResult, format_latency, format_speed

console = Console()


# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_histogram(values: List[float], width: int = 40, height: int = 5) -> str:
    """Return a single-line Unicode bar-chart of the last *width* values."""
    if not values:
        return "No data"

    values = values[-width:]
    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    norm = [(v - lo) / span * height for v in values]
    return "".join(_BARS[min(int(n * (len(_BARS) - 1) / height), len(_BARS) - 1)] for n in norm)


# ---------------------------------------------------------------------------
# Gauge scaling
# ---------------------------------------------------------------------------

_GAUGE_STEPS = [
    (500.0, 1000.0),
    (200.0, 500.0),
    (100.0, 200.0),
    (50.0, 100.0),
]


def gauge_ceiling(speed_mbps: float, current: float) -> float:
    """Grow the gauge maximum once *speed_mbps* passes it; never shrink it."""
    if speed_mbps <= current:
        return current
    for threshold, ceiling in _GAUGE_STEPS:
        if speed_mbps > threshold:
            return max(current, ceiling)
    return current


# ---------------------------------------------------------------------------
# One-shot results
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]pathmeter[/bold cyan]\n"
            "[dim]Latency, jitter and throughput from where you sit[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_latency_details(result: LatencyResult) -> None:
    """Print latency statistics and a histogram."""
    table = Table(title="Latency Details", box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    samples = result.samples
    if samples:
        table.add_row("Min", format_latency(min(samples)))
        table.add_row("Max", format_latency(max(samples)))
    table.add_row("Mean", format_latency(result.mean_ms))
    table.add_row("Jitter", f"{result.jitter_ms:.2f} ms")
    table.add_row("Samples", str(len(samples)))
    if result.failures:
        table.add_row("Failed", f"[red]{result.failures}[/red]")
    console.print(table)

    if samples:
        console.print(
            Panel(
                f"[cyan]{create_histogram(samples, width=len(samples))}[/cyan]",
                title="Ping Samples",
            )
        )


def print_speed_result(result: ThroughputResult, title: str, color: str = "green") -> None:
    """Print a download or upload result panel."""
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Speed", f"[bold {color}]{format_speed(result.speed_mbps)}[/bold {color}]")
    table.add_row("Data Transferred", f"{result.bytes_transferred / 1_000_000:.1f} MB")
    table.add_row("Duration", f"{result.elapsed_seconds:.1f} s")
    if getattr(result, "partial", False):
        table.add_row("Note", "[yellow]partial (endpoint failed after send)[/yellow]")
    console.print(table)

    if result.samples:
        console.print(
            Panel(
                f"[{color}]{create_histogram(result.samples)}[/{color}]\n"
                f"[dim]Min: {min(result.samples):.1f} Mbps  "
                f"Max: {max(result.samples):.1f} Mbps[/dim]",
                title="Speed Over Time",
            )
        )


def print_final_results(run: RunResult, download_url: str = "", upload_url: str = "") -> None:
    if run.error:
        console.print(f"\n[red]Error: {run.error}[/red]")
        return

    lines = []
    if download_url:
        lines.append(f"[bold cyan]Download from:[/bold cyan] {download_url}")
    if upload_url:
        lines.append(f"[bold cyan]Upload to:[/bold cyan] {upload_url}")
    if lines:
        lines.append("")
    lines.extend([
        f"[bold white]   Ping:[/bold white]  [bold yellow]{run.ping_ms:.1f} ms[/bold yellow]  "
        f"[dim](jitter: {run.jitter_ms:.2f} ms)[/dim]",
        f"[bold white]   Download:[/bold white]  [bold green]{format_speed(run.download_mbps)}[/bold green]",
        f"[bold white]   Upload:[/bold white]  [bold blue]{format_speed(run.upload_mbps)}[/bold blue]",
    ])

    console.print()
    console.print(Panel.fit("\n".join(lines), title="[bold]Results[/bold]", border_style="cyan"))
    console.print()


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Manages a ``rich`` progress bar during download / upload tests.

    The bar is filled against the gauge ceiling, which grows in steps as
    faster speeds are seen.
    """

    def __init__(self, initial_ceiling: float = 100.0) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[bold cyan]{task.fields[speed]}[/bold cyan]"),
            TextColumn("[dim]/ {task.fields[ceiling]}[/dim]"),
            TimeElapsedColumn(),
            console=console,
        )
        self.initial_ceiling = initial_ceiling
        self.ceiling = initial_ceiling
        self._task_id = None
        self._last_speed = 0.0

    def start(self, description: str) -> None:
        self.ceiling = self.initial_ceiling
        self.progress.start()
        self._task_id = self.progress.add_task(
            description,
            total=self.ceiling,
            speed="...",
            ceiling=format_speed(self.ceiling),
        )
        self._last_speed = 0.0

    def update(self, speed_mbps: float) -> None:
        if self._task_id is None:
            return
        # Debounce: only update when the value changes noticeably
        if abs(speed_mbps - self._last_speed) < 0.5:
            return
        self.ceiling = gauge_ceiling(speed_mbps, self.ceiling)
        self.progress.update(
            self._task_id,
            total=self.ceiling,
            completed=min(speed_mbps, self.ceiling),
            speed=format_speed(speed_mbps),
            ceiling=format_speed(self.ceiling),
        )
        self._last_speed = speed_mbps

    def stop(self) -> None:
        self.progress.stop()
        self._task_id = None


# ---------------------------------------------------------------------------
# Live session view
# ---------------------------------------------------------------------------

_LOG_STYLES = {
    "reply": "green",
    "timeout": "yellow",
    "error": "red",
    "info": "dim",
}

_BUCKET_LABELS = {
    "excellent": ("< 30ms", "green"),
    "good": ("30-100ms", "yellow"),
    "fair": ("100-250ms", "dark_orange"),
    "poor": ("> 250ms", "red"),
}


def _ms(value: Optional[float]) -> str:
    return "--" if value is None else f"{value:.0f} ms"


def render_session(stats: RunningStats, log_lines: int = 8, bar_width: int = 30) -> Group:
    """Build the live-ping view for one snapshot of *stats*."""
    log = Text()
    entries = list(stats.log)[-log_lines:] if log_lines > 0 else []
    for entry in entries:
        log.append(entry.message + "\n", style=_LOG_STYLES.get(entry.kind, ""))

    analysis = Table(box=box.SIMPLE, show_header=False)
    analysis.add_column(style="dim")
    analysis.add_column(justify="right", style="bold")
    analysis.add_row("Minimum", _ms(stats.min_ms))
    analysis.add_row("Maximum", _ms(stats.max_ms))
    analysis.add_row("Average", f"{stats.average_ms:.0f} ms")
    analysis.add_row("Jitter", f"{stats.jitter_ms:.0f} ms")

    summary = Table(box=box.SIMPLE, show_header=False)
    summary.add_column(style="dim")
    summary.add_column(justify="right", style="bold")
    summary.add_row("Sent", str(stats.sent))
    summary.add_row("Received", str(stats.received))
    summary.add_row("Lost", f"{stats.lost} ({stats.packet_loss_pct:.0f}%)")

    dist = Table(box=None, show_header=False, padding=(0, 1))
    dist.add_column(width=10, style="dim")
    dist.add_column()
    dist.add_column(justify="right")
    total = stats.received
    for name in BUCKET_NAMES:
        label, color = _BUCKET_LABELS[name]
        count = stats.distribution[name]
        filled = int(round(count / total * bar_width)) if total > 0 else 0
        dist.add_row(label, Text("█" * filled, style=color), str(count))

    latencies = [p.latency_ms for p in stats.history_points]
    chart = create_histogram(latencies, width=60)
    peak = stats.peak_latency_ms

    grid = Table.grid(padding=(0, 2))
    grid.add_row(
        Panel(analysis, title="Real-time Analysis", border_style="cyan"),
        Panel(summary, title="Session Summary", border_style="cyan"),
    )

    return Group(
        Panel(log, title=f"Pinging {stats.target}", border_style="blue"),
        Panel(
            f"[cyan]{chart}[/cyan]\n[dim]peak {peak:.0f} ms[/dim]",
            title="Latency",
        ),
        grid,
        Panel(dist, title="Latency Distribution"),
    )
