"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    ProgressDisplay,
    console,
    create_histogram,
    gauge_ceiling,
    print_final_results,
    print_header,
    print_latency_details,
    print_speed_result,
    render_session,
)
from .output import (
    create_result_json,
    format_session_summary,
    format_text_result,
    save_json,
)

__all__ = [
    "ProgressDisplay",
    "console",
    "create_histogram",
    "create_result_json",
    "format_session_summary",
    "format_text_result",
    "gauge_ceiling",
    "print_final_results",
    "print_header",
    "print_latency_details",
    "print_speed_result",
    "render_session",
    "save_json",
]
