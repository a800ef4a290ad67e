import logging
import re
from typing import Callable, Dict, List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from review_scraper.core import config
from review_scraper.schema.acquisition import PageExtraction
from review_scraper.schema.review_models import ReviewRecord, SourceKind
from review_scraper.utils.parsing_helpers import parse_review_datetime_for_output

logger = logging.getLogger(__name__)

_BADGE_DATE_PATTERN = re.compile(r"^[A-Za-z]+ \d{1,2}, \d{4}$")


def _text(el: Optional[Tag]) -> str:
    return el.get_text(strip=True) if el else ""


def _has_meaningful_content(title: str, description: str) -> bool:
    return (title != config.NO_TITLE and len(title) >= config.MIN_TITLE_LENGTH) or len(description) >= config.MIN_DESCRIPTION_LENGTH


def _strip_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


# --- G2 ---

def _find_g2_review_nodes(soup: BeautifulSoup) -> List[Tag]:
    container = soup.select_one(config.G2_REVIEWS_CONTAINER_SELECTOR)
    if container is None:
        logger.debug("G2 reviews container not found")
        return []
    return container.select(config.G2_REVIEW_CARD_SELECTOR)


def _extract_g2_review(card: Tag) -> Optional[ReviewRecord]:
    header = card.select_one(config.G2_REVIEW_HEADER_SELECTOR) or card
    reviewer = _text(header.select_one(config.G2_REVIEWER_SELECTOR)) or "Anonymous"

    raw_date: Optional[str] = None
    date_label = header.select_one(config.G2_REVIEW_DATE_SELECTOR)
    if date_label:
        raw_date = next((s.strip() for s in date_label.find_all(string=True, recursive=False) if s.strip()), None)
    display_date, _ = parse_review_datetime_for_output(raw_date)

    body = card.select_one(config.G2_REVIEW_BODY_SELECTOR) or card
    title = _text(body.select_one(config.G2_REVIEW_TITLE_SELECTOR)) or config.NO_TITLE
    rating = _text(body.select_one(config.G2_REVIEW_RATING_SELECTOR)) or config.NO_RATING

    details: Dict[str, str] = {}
    texts: List[str] = []
    # First section is "what do you like", second is "what do you dislike".
    for key, section in zip(("positive", "negative"), body.select("section")):
        paragraphs = [p.get_text(strip=True) for p in section.select("p")]
        section_text = "\n".join(p for p in paragraphs if p)
        details[f"{key}_title"] = _text(section.select_one(config.G2_SECTION_HEADER_SELECTOR))
        details[f"{key}_text"] = section_text
        if section_text:
            texts.append(section_text)
    description = "\n\n".join(texts)

    if not _has_meaningful_content(title, description):
        return None
    return ReviewRecord(
        title=title,
        description=description,
        date=display_date,
        raw_date=raw_date,
        rating=rating,
        reviewer=reviewer,
        source=SourceKind.G2,
        details=details,
    )


def _g2_has_next_page(soup: BeautifulSoup) -> Optional[bool]:
    return True if soup.select_one(config.G2_NEXT_PAGE_SELECTOR) else None


def _find_g2_product_url(soup: BeautifulSoup) -> Optional[str]:
    results = soup.select_one(config.G2_SEARCH_RESULTS_SELECTOR) or soup
    link = results.select_one(config.G2_PRODUCT_LINK_SELECTOR)
    if link is None or not link.get("href"):
        return None
    return _strip_query(urljoin(config.G2_BASE_URL, link["href"]))


# --- Capterra ---

def _find_capterra_review_nodes(soup: BeautifulSoup) -> List[Tag]:
    container = soup.select_one(config.REVIEW_CARDS_CONTAINER_SELECTOR)
    if container is None:
        logger.debug("Capterra review cards container not found")
        return []
    for selector in config.CAPTERRA_REVIEW_CARD_SELECTORS:
        cards = container.select(selector)
        if cards:
            return cards
    return []


def _extract_capterra_review(card: Tag) -> Optional[ReviewRecord]:
    reviewer = config.CAPTERRA_ANONYMOUS_REVIEWER
    attributes: List[str] = []
    reviewer_box = card.select_one(config.BS_REVIEWER_INFO_CONTAINER_SELECTOR)
    if reviewer_box:
        for node in reviewer_box.children:
            if isinstance(node, Tag) and node.name == "span":
                reviewer = node.get_text(strip=True) or reviewer
            elif isinstance(node, NavigableString) and not isinstance(node, Comment):
                text = node.strip()
                if text:
                    attributes.append(text)

    title = _text(card.select_one(config.BS_REVIEW_TITLE_SELECTOR)) or config.NO_TITLE
    raw_date = _text(card.select_one(config.BS_REVIEW_DATE_PUBLISHED_SELECTOR)) or None
    display_date, _ = parse_review_datetime_for_output(raw_date)
    rating = _text(card.select_one(config.BS_REVIEW_CARD_OVERALL_RATING_SELECTOR)) or config.NO_RATING
    description = " ".join(p.get_text(strip=True) for p in card.select(config.BS_REVIEW_TEXT_SELECTOR)).strip()

    expanded_parts: List[str] = []
    expanded_block = card.select_one(config.BS_REVIEW_EXPANDED_TEXT_SELECTOR)
    if expanded_block:
        # The last two children are the vendor response toggle and the footer.
        for child in expanded_block.find_all(recursive=False)[:-2]:
            text = child.get_text(strip=True)
            if text and text != config.CAPTERRA_CONTINUE_READING_TEXT:
                expanded_parts.append(text)

    if not _has_meaningful_content(title, description):
        return None
    details = {"reviewer_attributes": " | ".join(attributes)} if attributes else {}
    return ReviewRecord(
        title=title,
        description=description,
        expanded_description="\n".join(expanded_parts) or None,
        date=display_date,
        raw_date=raw_date,
        rating=rating,
        reviewer=reviewer,
        source=SourceKind.CAPTERRA,
        details=details,
    )


def _capterra_has_next_page(soup: BeautifulSoup) -> Optional[bool]:
    return None


def _find_capterra_product_url(soup: BeautifulSoup) -> Optional[str]:
    card = soup.select_one(config.CAPTERRA_SEARCH_CARD_SELECTOR)
    if card is None:
        return None
    link = card.select_one(config.CAPTERRA_PRODUCT_LINK_SELECTOR)
    if link is None or not link.get("href"):
        return None
    product_url = _strip_query(urljoin(config.CAPTERRA_BASE_URL, link["href"])).rstrip("/")
    if not product_url.endswith("/reviews"):
        product_url += "/reviews"
    return product_url + "/"


# --- TrustPilot ---

def _find_trustpilot_review_nodes(soup: BeautifulSoup) -> List[Tag]:
    container = soup.select_one(config.TRUSTPILOT_REVIEW_LIST_SELECTOR)
    if container is None:
        logger.debug("TrustPilot review list container not found")
        return []
    return container.select(config.TRUSTPILOT_REVIEW_CARD_SELECTOR)


def _extract_trustpilot_review(card: Tag) -> Optional[ReviewRecord]:
    article = card.select_one(config.TRUSTPILOT_REVIEW_ARTICLE_SELECTOR)
    if article is None:
        return None
    content = article.select_one(config.TRUSTPILOT_REVIEW_CONTENT_SELECTOR)
    if content is None:
        return None

    reviewer = _text(content.select_one(config.TRUSTPILOT_REVIEWER_SELECTOR)) or "Anonymous"
    rating = config.NO_RATING
    rating_el = content.select_one(config.TRUSTPILOT_RATING_SELECTOR)
    if rating_el and rating_el.get("data-service-review-rating"):
        rating = f"{rating_el['data-service-review-rating']}/5 stars"
    title = _text(content.select_one(config.TRUSTPILOT_TITLE_SELECTOR)) or config.NO_TITLE
    description = _text(content.select_one(config.TRUSTPILOT_TEXT_SELECTOR))

    raw_date: Optional[str] = None
    time_el = content.select_one(config.TRUSTPILOT_DATE_SELECTOR)
    if time_el and time_el.get("datetime"):
        raw_date = time_el["datetime"]
    else:
        for badge in content.select(config.TRUSTPILOT_DATE_BADGE_SELECTOR):
            badge_text = badge.get_text(strip=True)
            if _BADGE_DATE_PATTERN.match(badge_text):
                raw_date = badge_text
                break
    display_date, _ = parse_review_datetime_for_output(raw_date)

    if not _has_meaningful_content(title, description):
        return None
    return ReviewRecord(
        title=title,
        description=description,
        date=display_date,
        raw_date=raw_date,
        rating=rating,
        reviewer=reviewer,
        source=SourceKind.TRUSTPILOT,
    )


def _trustpilot_has_next_page(soup: BeautifulSoup) -> Optional[bool]:
    next_link = soup.select_one(config.TRUSTPILOT_NEXT_PAGE_SELECTOR)
    if next_link is None:
        return False if soup.select_one(config.TRUSTPILOT_PAGINATION_SELECTOR) else None
    if next_link.get("aria-disabled") == "true" or not next_link.get("href"):
        return False
    return True


def _find_trustpilot_product_url(soup: BeautifulSoup) -> Optional[str]:
    card = soup.select_one(config.TRUSTPILOT_SEARCH_CARD_SELECTOR)
    if card is None:
        return None
    link = card.select_one(config.TRUSTPILOT_PRODUCT_LINK_SELECTOR)
    if link is None or not link.get("href"):
        return None
    return _strip_query(urljoin(config.TRUSTPILOT_BASE_URL, link["href"]))


REVIEW_NODE_FINDERS: Dict[SourceKind, Callable[[BeautifulSoup], List[Tag]]] = {
    SourceKind.G2: _find_g2_review_nodes,
    SourceKind.CAPTERRA: _find_capterra_review_nodes,
    SourceKind.TRUSTPILOT: _find_trustpilot_review_nodes,
}

REVIEW_EXTRACTORS: Dict[SourceKind, Callable[[Tag], Optional[ReviewRecord]]] = {
    SourceKind.G2: _extract_g2_review,
    SourceKind.CAPTERRA: _extract_capterra_review,
    SourceKind.TRUSTPILOT: _extract_trustpilot_review,
}

NEXT_PAGE_PROBES: Dict[SourceKind, Callable[[BeautifulSoup], Optional[bool]]] = {
    SourceKind.G2: _g2_has_next_page,
    SourceKind.CAPTERRA: _capterra_has_next_page,
    SourceKind.TRUSTPILOT: _trustpilot_has_next_page,
}

PRODUCT_URL_FINDERS: Dict[SourceKind, Callable[[BeautifulSoup], Optional[str]]] = {
    SourceKind.G2: _find_g2_product_url,
    SourceKind.CAPTERRA: _find_capterra_product_url,
    SourceKind.TRUSTPILOT: _find_trustpilot_product_url,
}


def extract_page(kind: SourceKind, html: str) -> PageExtraction:
    soup = BeautifulSoup(html, config.DEFAULT_HTML_PARSER)
    extractor = REVIEW_EXTRACTORS[kind]
    records: List[ReviewRecord] = []
    for node in REVIEW_NODE_FINDERS[kind](soup):
        try:
            record = extractor(node)
        except Exception as e:
            logger.warning("Error extracting %s review data: %s - %s", kind.label, type(e).__name__, e)
            continue
        if record is not None:
            records.append(record)
    return PageExtraction(records=records, has_next_page=NEXT_PAGE_PROBES[kind](soup))


def find_product_url(kind: SourceKind, html: str) -> Optional[str]:
    return PRODUCT_URL_FINDERS[kind](BeautifulSoup(html, config.DEFAULT_HTML_PARSER))
