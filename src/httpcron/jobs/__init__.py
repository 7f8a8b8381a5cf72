"""Job definitions, the file-based job source and the schedule registry."""

from httpcron.jobs.models import HttpJobRequest, JobDefinition, JobFile
from httpcron.jobs.registry import JobRegistry, RegisteredJob, ScheduleState
from httpcron.jobs.source import FileJobSource, JobSource, find_job_file

__all__ = [
    "FileJobSource",
    "HttpJobRequest",
    "JobDefinition",
    "JobFile",
    "JobRegistry",
    "JobSource",
    "RegisteredJob",
    "ScheduleState",
    "find_job_file",
]
