from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from review_scraper.core.config import APP_VERSION, DEFAULT_MAX_PAGES, DEFAULT_REQUEST_DELAY_S


class SourceKind(str, Enum):
    G2 = "g2"
    CAPTERRA = "capterra"
    TRUSTPILOT = "trustpilot"

    @property
    def label(self) -> str:
        return {"g2": "G2", "capterra": "Capterra", "trustpilot": "TrustPilot"}[self.value]


ALL_SOURCES_OPTION = "all"


class ReviewRecord(BaseModel):
    title: str
    description: str = ""
    expanded_description: Optional[str] = None
    date: Optional[str] = Field(None, description="Display date (e.g. 'January 05, 2024') or the raw string if unparsable")
    raw_date: Optional[str] = None
    rating: Optional[str] = None
    reviewer: Optional[str] = None
    source: SourceKind
    details: Dict[str, str] = Field(default_factory=dict)


class SourceResult(BaseModel):
    success: bool
    count: int = 0
    error: Optional[str] = None


class RunMetadata(BaseModel):
    company: str
    sources_requested: List[SourceKind]
    start_date: str
    end_date: str
    total_reviews: int = 0
    scraped_at: str
    scraping_duration_seconds: float = 0.0
    scraper_version: str = APP_VERSION
    scraping_results: Dict[str, SourceResult] = Field(default_factory=dict)


class ScrapeOutput(BaseModel):
    metadata: RunMetadata
    reviews: List[ReviewRecord] = []

    @property
    def succeeded(self) -> bool:
        return self.metadata.total_reviews > 0


class ScrapeRequest(BaseModel):
    company: str = Field(..., description="Company name to scrape reviews for.")
    start_date_str: str = Field(..., description="Start date (YYYY-MM-DD).")
    end_date_str: str = Field(..., description="End date (YYYY-MM-DD).")
    source: str = Field(ALL_SOURCES_OPTION, description="g2, capterra, trustpilot or all.")
    max_pages: int = Field(DEFAULT_MAX_PAGES, description="Maximum pages per source, -1 for all pages.")
    delay_ms: int = Field(int(DEFAULT_REQUEST_DELAY_S * 1000), ge=0, description="Delay between requests in milliseconds.")
    parallel: bool = False
