"""Job bookkeeping and proactive delivery into stored conversations."""
from notifications.job_log import ChannelLog, JobLog, RecordLog
from notifications.jobs import JobService
from notifications.notifier import NotificationReport, ProactiveNotifier

__all__ = [
    "ChannelLog", "JobLog", "RecordLog",
    "JobService",
    "NotificationReport", "ProactiveNotifier",
]
