"""Feed store and startup errors."""


class StoreConflict(Exception):
    """A feed management operation conflicts with the stored feeds."""

    def __init__(self, subject: str, message: str):
        self.subject = subject
        self.message = message
        super().__init__(message)


class DuplicateFeed(StoreConflict):
    """Raised when adding a feed whose subject is already tracked."""

    def __init__(self, subject: str):
        super().__init__(subject, f"Feed for {subject} already exists")


class FeedNotFound(StoreConflict):
    """Raised when removing or updating a feed that is not tracked."""

    def __init__(self, subject: str):
        super().__init__(subject, f"Feed for {subject} not found")


class CredentialsError(Exception):
    """Raised when required credentials are missing at startup."""
