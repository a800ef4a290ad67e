"""Shared fakes: a scriptable browser page and a deterministic clock."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import pytest

from review_scraper.schema.review_models import ReviewRecord, SourceKind


class FakePage:
    """Stands in for a Playwright ``Page``: navigation, DOM probing and content capture."""

    def __init__(
        self,
        documents: Optional[Dict[str, str]] = None,
        redirects: Optional[Dict[str, str]] = None,
        body_text: str = "Reviews",
        markers: Iterable[str] = (),
        url: str = "about:blank",
    ) -> None:
        self.documents = documents or {}
        self.redirects = redirects or {}
        self.body_text = body_text
        self.markers = set(markers)
        self.url = url
        self.visited: List[str] = []
        self.goto_error: Optional[Exception] = None
        self.closed = False

    async def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error
        self.url = self.redirects.get(url, url)

    async def query_selector(self, selector: str):
        return object() if selector in self.markers else None

    async def inner_text(self, selector: str) -> str:
        return self.body_text

    async def content(self) -> str:
        return self.documents.get(self.url, "<html><body></body></html>")

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """``sleep`` advances ``now`` instead of suspending."""

    def __init__(self) -> None:
        self.current = 0.0
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds


def make_record(review_date: Optional[str], title: str = "Solid product overall", source: SourceKind = SourceKind.TRUSTPILOT) -> ReviewRecord:
    return ReviewRecord(
        title=title,
        description="Does what we need every single day.",
        date=review_date,
        raw_date=review_date,
        rating="5/5 stars",
        reviewer="Sam",
        source=source,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


def trustpilot_review_card(iso_datetime: Optional[str], title: str = "Reliable and fast", rating: int = 5, reviewer: str = "Sam") -> str:
    time_tag = f'<time datetime="{iso_datetime}">Jan 2024</time>' if iso_datetime else ""
    return f"""
    <div class="styles_cardWrapper__g8amG">
      <article class="styles_reviewCard__Qwhpy">
        <div data-testid="service-review-card-v2">
          <span class="typography_heading-xs__osRhC styles_consumerName__xKr9c">{reviewer}</span>
          <div data-service-review-rating="{rating}"></div>
          {time_tag}
          <h2 data-service-review-title-typography="true">{title}</h2>
          <p data-service-review-text-typography="true">We rely on it every day and it has never let us down.</p>
        </div>
      </article>
    </div>"""


def trustpilot_listing_html(iso_datetimes: Iterable[Optional[str]], has_next: Optional[bool] = None) -> str:
    cards = "".join(trustpilot_review_card(value) for value in iso_datetimes)
    pagination = ""
    if has_next is not None:
        if has_next:
            next_link = '<a name="pagination-button-next" href="/review/acme.com?page=2">Next page</a>'
        else:
            next_link = '<a name="pagination-button-next" aria-disabled="true">Next page</a>'
        pagination = f'<nav aria-label="Pagination">{next_link}</nav>'
    return f"""<html><body>
    <div class="styles_reviewListContainer__2bg_p">{cards}</div>
    {pagination}
    </body></html>"""


def trustpilot_search_html(href: str) -> str:
    return f"""<html><body>
    <div class="CDS_Card_card__16d1cc">
      <a href="{href}"><span class="CDS_Typography_heading-s__96c1da">Acme</span></a>
    </div>
    </body></html>"""
