"""Scan orchestration errors.

Only NoScannerRegistered and ScanAlreadyRunning are raised to callers of the
engine. The others describe scan-time outcomes and are reported through the
progress event stream.
"""


class ScanError(Exception):
    """Base exception for scan orchestration errors."""
    pass


class NoScannerRegistered(ScanError):
    """No scanner is registered for the requested platform."""

    def __init__(self, platform: str):
        super().__init__(f"No scanner registered for platform: {platform}")
        self.platform = platform


class ScanAlreadyRunning(ScanError):
    """A scan for the platform is live and the duplicate policy is 'reject'."""

    def __init__(self, platform: str, task_id: str):
        super().__init__(f"Scan already running for platform {platform} (task {task_id})")
        self.platform = platform
        self.task_id = task_id


class PrerequisitesNotMet(ScanError):
    """The scanner's prerequisite check returned False."""

    def __init__(self, platform: str):
        super().__init__("Scanner prerequisites not met")
        self.platform = platform


class ScanFailure(ScanError):
    """The scanner raised while checking prerequisites or scanning."""

    def __init__(self, platform: str, cause: BaseException):
        super().__init__(str(cause) or type(cause).__name__)
        self.platform = platform
        self.cause = cause
