"""Command-line entry point: ``review-scraper -c Slack -s 2024-01-01 -e 2024-03-31 -r g2``."""
import asyncio
import logging
from pathlib import Path

import typer

from review_scraper.core import config
from review_scraper.schema.acquisition import DateWindow
from review_scraper.schema.review_models import ALL_SOURCES_OPTION
from review_scraper.service.pagination import UNBOUNDED_PAGES
from review_scraper.service.review_service import scrape_reviews_async, validate_company_name, write_output
from review_scraper.service.sources import resolve_sources

app = typer.Typer(
    name="review-scraper",
    help="Scrape G2, Capterra and TrustPilot reviews for a company within a date range.",
    add_completion=False,
)


@app.command()
def scrape(
    company: str = typer.Option(..., "--company", "-c", help="Company name to scrape reviews for."),
    start_date: str = typer.Option(..., "--start-date", "-s", help="Start date (YYYY-MM-DD)."),
    end_date: str = typer.Option(..., "--end-date", "-e", help="End date (YYYY-MM-DD)."),
    source: str = typer.Option(..., "--source", "-r", help="Source: g2, capterra, trustpilot or all."),
    output: Path = typer.Option(Path("reviews.json"), "--output", "-o", help="Output file path."),
    delay: int = typer.Option(int(config.DEFAULT_REQUEST_DELAY_S * 1000), "--delay", "-d", help="Delay between requests in milliseconds."),
    max_pages: int = typer.Option(config.DEFAULT_MAX_PAGES, "--max-pages", help="Maximum pages per source (-1 for all pages)."),
    parallel: bool = typer.Option(False, "--parallel", help="Scrape the selected sources concurrently."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Scrape reviews and save them as JSON."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        company = validate_company_name(company)
        window = DateWindow.from_strings(start_date, end_date)
        sources = resolve_sources(source)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    if delay < 0:
        typer.echo("Error: --delay must not be negative", err=True)
        raise typer.Exit(code=1)
    if max_pages != UNBOUNDED_PAGES and max_pages < 1:
        typer.echo("Error: --max-pages must be positive or -1 for all pages", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Company: {company}")
    typer.echo(f"Date range: {window.start.isoformat()} to {window.end.isoformat()}")
    typer.echo(f"Source: {source.lower() if source.lower() == ALL_SOURCES_OPTION else sources[0].label}")

    result = asyncio.run(
        scrape_reviews_async(
            company,
            window,
            sources,
            request_delay_s=delay / 1000,
            max_pages=max_pages,
            parallel=parallel,
        )
    )
    saved_to = write_output(result, output)

    typer.echo("")
    typer.echo("Scraping summary:")
    for source_name, outcome in result.metadata.scraping_results.items():
        if outcome.success:
            typer.echo(f"  {source_name}: {outcome.count} reviews")
        else:
            typer.echo(f"  {source_name}: failed ({outcome.error})")
    typer.echo(f"Total reviews: {result.metadata.total_reviews}")
    typer.echo(f"Results saved to: {saved_to}")
    typer.echo(f"Total execution time: {result.metadata.scraping_duration_seconds:.2f} seconds")

    if not result.succeeded:
        typer.echo("No reviews found. Check the company name spelling or widen the date range.", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
