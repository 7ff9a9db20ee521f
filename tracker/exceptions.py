class TrackerError(Exception):
    """Base class for progress tracker errors"""


class StorageReadFailure(TrackerError):
    """Persisted session could not be read or decoded"""


class StatusSourceFailure(TrackerError):
    """The status source could not answer a connectivity or scenario check"""
