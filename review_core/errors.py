"""
Error taxonomy for the review core.

Normalizer misuse degrades gracefully and is only logged unless a caller
asks for strict behavior. Domain errors are raised to the immediate caller.
Store commands catch everything at the command boundary and surface the
exception through the store's ``error``/``last_error`` fields.
"""


class ReviewError(Exception):
    """Base class for all review core errors"""


class InvalidDimensions(ReviewError):
    """Raised when a width/height pair is not strictly positive"""

    def __init__(self, width, height):
        self.width = width
        self.height = height
        super().__init__(f"Invalid dimensions for conversion: {width}x{height}")


class EmptyShapeSet(ReviewError):
    """A thread must be anchored to at least one shape"""

    def __init__(self, message: str = "A thread requires at least one shape"):
        super().__init__(message)


class InvalidTimeRange(ReviewError):
    def __init__(self, t_start: float, t_end: float):
        self.t_start = t_start
        self.t_end = t_end
        super().__init__(f"Invalid time range: t_end {t_end} is before t_start {t_start}")


class ThreadNotFound(ReviewError):
    def __init__(self, thread_id: str):
        self.thread_id = thread_id
        super().__init__(f"Thread not found: {thread_id}")


class AssetNotLoaded(ReviewError):
    def __init__(self, message: str = "No asset loaded"):
        super().__init__(message)


class PersistenceFailure(ReviewError):
    """Raised by persistence adapters when a read or write does not go through"""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")


class TokenGenerationFailed(ReviewError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Share token generation failed: {detail}")
