"""Task refresh package."""

from .service import (  # noqa: F401
    CycleResult,
    PreparedSource,
    RefreshReport,
    TaskRefreshService,
    run_refresh_cycle,
)

__all__ = ["CycleResult", "PreparedSource", "RefreshReport", "TaskRefreshService", "run_refresh_cycle"]
