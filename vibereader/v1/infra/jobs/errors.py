"""
Errors raised by job handlers and the scheduler.
"""


class JobError(Exception):
    """Base class for job processing failures."""


class PermanentJobError(JobError):
    """A failure that retrying cannot fix; the job fails on this attempt."""


class InvalidPayloadError(PermanentJobError):
    """The payload does not have the shape its job type expects."""


class UnknownJobTypeError(PermanentJobError):
    """No handler is registered for the job's type."""


class JobsDisabledError(JobError):
    """Background jobs are switched off by configuration."""

    def __init__(self, message: str = "Background jobs are disabled"):
        super().__init__(message)
