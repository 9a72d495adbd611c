"""Per-section outcome flags shared by the aggregated views."""

from enum import Enum


class SectionStatus(str, Enum):
    """Outcome of one section of an aggregated view."""

    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"
