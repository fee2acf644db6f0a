"""Background job scheduling for geogate."""

from geogate.scheduler.service import SchedulerService

__all__ = ["SchedulerService"]
