"""File analysis exceptions."""


class AnalysisError(Exception):
    """Base exception for file analysis failures."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class DocumentRenderError(AnalysisError):
    """Raised when PDF pages cannot be rasterized (malformed document)."""

    pass


class ImageProcessingError(AnalysisError):
    """Raised when a rendered page cannot be downscaled or re-encoded."""

    pass


class FileTooLargeError(AnalysisError):
    """Raised when an upload exceeds the configured size limit."""

    pass
