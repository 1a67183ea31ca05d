class MasteryError(Exception):
    """Base class for errors reported to callers as a tagged failure."""

    kind = "error"

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidRequest(MasteryError):
    kind = "invalid_request"


class NotFound(MasteryError):
    kind = "not_found"


class FreezeUnavailable(MasteryError):
    kind = "freeze_unavailable"


class ConcurrentUpdateConflict(MasteryError):
    """The stored row changed between read and conditional write."""

    kind = "try_again"


class JudgeError(Exception):
    """The semantic judge was unavailable or returned an unusable verdict."""
