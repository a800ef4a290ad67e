"""Tests for the FastAPI surface."""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from conftest import make_record
from main import app
from review_scraper.core.config import APP_VERSION
from review_scraper.schema.review_models import RunMetadata, ScrapeOutput, SourceKind, SourceResult

client = TestClient(app)


@pytest.fixture
def scrape_mock():
    output = ScrapeOutput(
        metadata=RunMetadata(
            company="Acme",
            sources_requested=[SourceKind.G2],
            start_date="2024-01-01",
            end_date="2024-03-31",
            total_reviews=1,
            scraped_at="2024-04-01T00:00:00+00:00",
            scraping_results={"g2": SourceResult(success=True, count=1)},
        ),
        reviews=[make_record("January 05, 2024", source=SourceKind.G2)],
    )
    with patch("review_scraper.api.endpoints.reviews.scrape_reviews_async", new_callable=AsyncMock) as mock:
        mock.return_value = output
        yield mock


def _body(**overrides):
    body = {"company": "Acme", "start_date_str": "2024-01-01", "end_date_str": "2024-03-31", "source": "g2"}
    body.update(overrides)
    return body


class TestRoot:
    def test_app_info(self) -> None:
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["version"] == APP_VERSION
        assert response.json()["docs_url"] == "/docs"
        assert response.json()["sources"] == ["g2", "capterra", "trustpilot"]
        assert response.json()["scrape_endpoint"] == "/api/v1/scrape-reviews"


class TestScrapeReviews:
    def test_returns_output_document(self, scrape_mock) -> None:
        response = client.post("/api/v1/scrape-reviews", json=_body(max_pages=3, delay_ms=1000))

        assert response.status_code == 200
        document = response.json()
        assert document["metadata"]["total_reviews"] == 1
        assert document["reviews"][0]["source"] == "g2"

        args, kwargs = scrape_mock.await_args
        assert args[0] == "Acme"
        assert (args[1].start, args[1].end) == (date(2024, 1, 1), date(2024, 3, 31))
        assert args[2] == [SourceKind.G2]
        assert kwargs == {"request_delay_s": 1.0, "max_pages": 3, "parallel": False}

    @pytest.mark.parametrize(
        "overrides",
        [
            {"start_date_str": "01-01-2024"},
            {"start_date_str": "2024-04-01"},
            {"source": "yelp"},
            {"company": "  "},
            {"max_pages": 0},
        ],
    )
    def test_invalid_input_is_400(self, scrape_mock, overrides) -> None:
        response = client.post("/api/v1/scrape-reviews", json=_body(**overrides))
        assert response.status_code == 400
        scrape_mock.assert_not_awaited()

    def test_negative_delay_is_422(self, scrape_mock) -> None:
        response = client.post("/api/v1/scrape-reviews", json=_body(delay_ms=-5))
        assert response.status_code == 422
