"""Exception types raised by the SuperSearch core."""


class SuperSearchError(Exception):
    """Base class for all SuperSearch errors."""


class ConfigurationError(SuperSearchError):
    """Settings or pipeline parameters could not be parsed or validated."""


class PdfExtractionError(SuperSearchError):
    """A PDF could not be parsed. Fatal for that file."""

    def __init__(self, path: str, message: str, page: int = None):
        self.path = path
        self.page = page
        location = f"{path} (page {page})" if page is not None else path
        super().__init__(f"Failed to extract {location}: {message}")


class StoreError(SuperSearchError):
    """A call to the remote document store failed."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"Document store {operation} failed: {message}")
