from typing import Optional


class ReviewScraperError(Exception):
    """Base class for failures a source scrape can report without crashing the run."""


class InvalidDateWindowError(ReviewScraperError, ValueError):
    pass


class AcquisitionError(ReviewScraperError):
    def __init__(self, url: str, message: str = "", status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message or f"Acquisition failed for {url}")


class NotFoundError(AcquisitionError):
    """404 - terminal for the URL, never retried."""


class RateLimitedError(AcquisitionError):
    """429 - retried with exponential backoff."""


class ForbiddenError(AcquisitionError):
    """403 - retried after rotating the client identity."""


class TransientTransportError(AcquisitionError):
    """Network failure or unexpected status - retried with linear backoff."""


class ChallengeTimeoutError(AcquisitionError):
    """An anti-bot challenge did not clear within the wait budget."""


class SessionUnavailableError(ReviewScraperError):
    """No browser could be attached or launched; fatal for the source."""


class ProductNotFoundError(ReviewScraperError):
    def __init__(self, source: str, company: str):
        self.source = source
        self.company = company
        super().__init__(f"Could not find {source} product page for {company}")
