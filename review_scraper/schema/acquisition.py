from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Union

from review_scraper.core import config
from review_scraper.core.errors import InvalidDateWindowError
from review_scraper.schema.review_models import ReviewRecord


class FailureReason(str, Enum):
    NOT_FOUND = "not-found"
    BLOCKED = "blocked"
    TIMEOUT = "timeout"
    TRANSPORT_ERROR = "transport-error"


class AcquisitionBackend(str, Enum):
    HTTP = "http"
    SESSION = "session"


@dataclass(frozen=True)
class AcquisitionRequest:
    url: str
    expected_location: Optional[str] = None
    timeout_s: float = config.NAVIGATION_TIMEOUT_S
    challenge_timeout_s: Optional[float] = None


@dataclass(frozen=True)
class Ready:
    content: str
    final_url: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed:
    reason: FailureReason
    detail: str = ""

    @property
    def ok(self) -> bool:
        return False


AcquisitionResult = Union[Ready, Failed]


@dataclass(frozen=True)
class DateWindow:
    """Inclusive calendar-date range, validated once at construction."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidDateWindowError(
                f"Start date {self.start.isoformat()} must be before or equal to end date {self.end.isoformat()}"
            )

    @classmethod
    def from_strings(cls, start_str: str, end_str: str, today: Optional[date] = None) -> "DateWindow":
        try:
            start = datetime.strptime(start_str.strip(), config.DATE_INPUT_FORMAT).date()
            end = datetime.strptime(end_str.strip(), config.DATE_INPUT_FORMAT).date()
        except (ValueError, AttributeError):
            raise InvalidDateWindowError("Invalid date format. Use YYYY-MM-DD (e.g., 2024-01-15)") from None
        window = cls(start, end)
        if start > (today or date.today()):
            raise InvalidDateWindowError("Start date cannot be in the future")
        return window

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end

    def is_before(self, value: date) -> bool:
        return value < self.start


@dataclass(frozen=True)
class PageExtraction:
    records: List[ReviewRecord] = field(default_factory=list)
    has_next_page: Optional[bool] = None


@dataclass
class PaginationState:
    page: int = 1
    consecutive_empty: int = 0
    consecutive_out_of_range: int = 0
    items: List[ReviewRecord] = field(default_factory=list)
