"""Exceptions raised by the fetcher and its collaborators.

Every failure inside a job is one of these kinds. They are terminal for the
job in which they occur: the executor logs them and abandons the job.
"""


class FetcherError(Exception):
    """Base exception for fetcher errors."""
    
    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.url = url
    
    def __str__(self) -> str:
        if self.url:
            return f"{self.message} (url: {self.url})"
        return self.message


class FeedTransportError(FetcherError):
    """Raised when a feed cannot be retrieved over the network."""
    
    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, url)
        self.status_code = status_code
    
    def __str__(self) -> str:
        parts = [self.message]
        if self.url:
            parts.append(f"(url: {self.url})")
        if self.status_code is not None:
            parts.append(f"(status: {self.status_code})")
        return " ".join(parts)


class FeedParseError(FetcherError):
    """Raised when feed content is malformed."""
    pass


class ImageSelectionError(FetcherError):
    """Raised when no image candidate can be selected for a page."""
    pass


class ImageWriteError(FetcherError):
    """Raised when a cropped image cannot be encoded or written."""
    pass


class DatastoreError(FetcherError):
    """Raised when a datastore read or write fails."""
    pass


class ItemNotFoundError(DatastoreError):
    """Raised when an item does not exist in the datastore."""
    
    def __init__(self, item_id: str) -> None:
        super().__init__(f"Item not found: {item_id}")
        self.item_id = item_id


class ConfigurationError(FetcherError):
    """Raised when configuration is invalid or the environment is unusable."""
    pass
