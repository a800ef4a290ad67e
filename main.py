from fastapi import FastAPI
import uvicorn

from review_scraper.api.endpoints import reviews as reviews_api_router
from review_scraper.core.config import APP_TITLE, APP_DESCRIPTION, APP_VERSION
from review_scraper.schema.review_models import SourceKind


app = FastAPI(
    title=APP_TITLE,
    description=APP_DESCRIPTION,
    version=APP_VERSION
)

app.include_router(reviews_api_router.router, prefix="/api/v1", tags=["Reviews"])


@app.get("/", tags=["Root"])
async def read_root():
    return {
        "message": f"Welcome to the {APP_TITLE}",
        "version": APP_VERSION,
        "sources": [kind.value for kind in SourceKind],
        "scrape_endpoint": "/api/v1/scrape-reviews",
        "docs_url": "/docs",
        "redoc_url": "/redoc"
    }


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
