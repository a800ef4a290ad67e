from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, quote, urlsplit

from review_scraper.core import config
from review_scraper.schema.acquisition import AcquisitionBackend, AcquisitionRequest
from review_scraper.schema.review_models import ALL_SOURCES_OPTION, SourceKind
from review_scraper.service.acquisition import PageHook
from review_scraper.utils.browser_helpers import (
    expand_read_more_buttons,
    handle_specific_overlay_popup,
    set_sort_to_most_recent,
)


def _g2_listing_url(product_url: str, page: int) -> str:
    return f"{product_url}?order=most_recent&page={page}"


def _capterra_listing_url(product_url: str, page: int) -> str:
    return f"{product_url}?page={page}"


def _trustpilot_listing_url(product_url: str, page: int) -> str:
    # Page 1 redirects to the bare company URL.
    return product_url if page == 1 else f"{product_url}?page={page}"


@dataclass(frozen=True)
class SourceProfile:
    kind: SourceKind
    base_url: str
    backend: AcquisitionBackend
    search_path: str
    listing_url_builder: Callable[[str, int], str]
    listing_expected_location: Optional[str] = None
    search_location_is_query: bool = False
    search_challenge_timeout_s: float = config.CHALLENGE_WAIT_TIMEOUT_S
    page_hook_factories: Tuple[Callable[[str], List[PageHook]], ...] = field(default_factory=tuple)

    @property
    def empty_page_threshold(self) -> int:
        if self.backend is AcquisitionBackend.SESSION:
            return config.SESSION_EMPTY_PAGE_THRESHOLD
        return config.HTTP_EMPTY_PAGE_THRESHOLD

    def search_url(self, company: str) -> str:
        return f"{self.base_url}{self.search_path}?query={quote(company, safe='')}"

    def search_expected_location(self, company: str) -> str:
        if self.search_location_is_query:
            return f"query={quote(company, safe='')}"
        return self.search_path.rstrip("/")

    def listing_url(self, product_url: str, page: int) -> str:
        return self.listing_url_builder(product_url, page)

    def page_hooks(self, tag: str) -> List[PageHook]:
        hooks: List[PageHook] = []
        for factory in self.page_hook_factories:
            hooks.extend(factory(tag))
        return hooks


def _requested_page(url: str) -> Optional[int]:
    values = parse_qs(urlsplit(url).query).get("page")
    try:
        return int(values[0]) if values else None
    except ValueError:
        return None


def _capterra_page_hooks(tag: str) -> List[PageHook]:
    async def sort_first_listing_page(page: Any, request: AcquisitionRequest) -> None:
        if "/reviews" in request.url and _requested_page(request.url) == 1:
            await set_sort_to_most_recent(page, tag)

    async def expand_review_cards(page: Any, request: AcquisitionRequest) -> None:
        if "/reviews" not in request.url:
            return
        await handle_specific_overlay_popup(page, tag)
        await expand_read_more_buttons(page, tag)

    return [sort_first_listing_page, expand_review_cards]


SOURCE_PROFILES: Dict[SourceKind, SourceProfile] = {
    SourceKind.G2: SourceProfile(
        kind=SourceKind.G2,
        base_url=config.G2_BASE_URL,
        backend=AcquisitionBackend.SESSION,
        search_path="/search",
        listing_url_builder=_g2_listing_url,
        listing_expected_location="/products/",
    ),
    SourceKind.CAPTERRA: SourceProfile(
        kind=SourceKind.CAPTERRA,
        base_url=config.CAPTERRA_BASE_URL,
        backend=AcquisitionBackend.SESSION,
        search_path="/search/",
        listing_url_builder=_capterra_listing_url,
        listing_expected_location="/p/",
        search_location_is_query=True,
        search_challenge_timeout_s=config.SEARCH_CHALLENGE_WAIT_TIMEOUT_S,
        page_hook_factories=(_capterra_page_hooks,),
    ),
    SourceKind.TRUSTPILOT: SourceProfile(
        kind=SourceKind.TRUSTPILOT,
        base_url=config.TRUSTPILOT_BASE_URL,
        backend=AcquisitionBackend.HTTP,
        search_path="/search",
        listing_url_builder=_trustpilot_listing_url,
    ),
}


def resolve_sources(source: str) -> List[SourceKind]:
    normalized = (source or "").strip().lower()
    if normalized == ALL_SOURCES_OPTION:
        return list(SourceKind)
    try:
        return [SourceKind(normalized)]
    except ValueError:
        valid = ", ".join([kind.value for kind in SourceKind] + [ALL_SOURCES_OPTION])
        raise ValueError(f"Invalid source '{source}'. Choose from: {valid}") from None
