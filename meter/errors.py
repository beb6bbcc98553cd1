"""
Measurement failure taxonomy.

Transport failures, deadline expiry and caller aborts are kept distinct so
the pipeline and the CLI can report them differently.
"""
from __future__ import annotations


class MeasurementError(Exception):
    """Base class for every failure surfaced by the measurement engine."""


class TransportError(MeasurementError):
    """Connection, DNS, TLS or HTTP-level failure."""


class MeasurementTimeout(MeasurementError):
    """A deadline was exceeded before the operation settled."""


class MeasurementAborted(MeasurementError):
    """The caller aborted the operation."""
