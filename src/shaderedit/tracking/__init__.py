"""External file-change tracking for shader passes."""

from __future__ import annotations

from shaderedit.tracking.channel import NotificationChannel
from shaderedit.tracking.worker import WatcherState, WatchWorker

__all__ = ["NotificationChannel", "WatchWorker", "WatcherState"]
