import logging
from functools import wraps

logger = logging.getLogger(__name__)


class PaperException(Exception):
    error_type = "paper_error"

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ExternalCallFailed(PaperException):
    """The content-shaping call raised, timed out or is not configured."""

    error_type = "external_call_failed"

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message, status_code)


class ExternalSchemaMismatch(PaperException):
    """The AI replied, but not in the declared shape."""

    error_type = "external_schema_mismatch"

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message, status_code)


class ExportFailed(PaperException):
    error_type = "export_failed"

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message, status_code)


def export_exception(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ExportFailed:
            raise
        except Exception as e:
            logger.error(f"Export failed in {func.__name__}: {str(e)}", exc_info=True)
            raise ExportFailed(f"Could not generate the PDF file: {str(e)}") from e

    return wrapper
