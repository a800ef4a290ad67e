import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, HTTPException

from review_scraper.core.errors import InvalidDateWindowError
from review_scraper.schema.acquisition import DateWindow
from review_scraper.schema.review_models import ScrapeRequest
from review_scraper.service.pagination import UNBOUNDED_PAGES
from review_scraper.service.review_service import scrape_reviews_async, validate_company_name
from review_scraper.service.sources import resolve_sources

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/scrape-reviews", tags=["Reviews"])
async def scrape_reviews_endpoint(request: ScrapeRequest = Body(...)) -> Dict[str, Any]:
    try:
        company = validate_company_name(request.company)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        window = DateWindow.from_strings(request.start_date_str, request.end_date_str)
    except InvalidDateWindowError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        sources = resolve_sources(request.source)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if request.max_pages != UNBOUNDED_PAGES and request.max_pages < 1:
        raise HTTPException(status_code=400, detail="max_pages must be positive or -1 for all pages.")

    logger.info("Scrape request for %s (%s) %s..%s", company, request.source, window.start, window.end)
    output = await scrape_reviews_async(
        company,
        window,
        sources,
        request_delay_s=request.delay_ms / 1000,
        max_pages=request.max_pages,
        parallel=request.parallel,
    )
    return output.model_dump(mode="json")
