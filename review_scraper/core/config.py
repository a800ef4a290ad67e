import os
from pathlib import Path

# --- Application Settings ---
APP_VERSION = "1.0.0"
APP_TITLE = "SaaS Review Scraper API"
APP_DESCRIPTION = "Collects G2, Capterra and TrustPilot reviews for a company within a date window. httpx with backoff for plain sites, a persistent CDP browser session for challenge-protected ones."

DEFAULT_HTML_PARSER = "lxml"
DATE_INPUT_FORMAT = "%Y-%m-%d"
DATE_DISPLAY_FORMAT = "%B %d, %Y"

# --- Request pacing ---
DEFAULT_REQUEST_DELAY_S = 2.5
REQUEST_JITTER_S = 1.0
INTER_PAGE_DELAY_S = 1.0
DEFAULT_MAX_PAGES = 15

# --- HTTP transport / retry ---
HTTP_TIMEOUT_S = 15.0
HTTP_MAX_REDIRECTS = 5
HTTP_MAX_RETRIES = 3
RETRY_BASE_DELAY_S = 2.0
FORBIDDEN_COOLDOWN_S = 3.0

HTTP_DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
}

USER_AGENT_POOL = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
)

# --- Browser session (Chrome over CDP) ---
CDP_HOST = os.environ.get("REVIEW_SCRAPER_CDP_HOST", "localhost")
CDP_PORT = int(os.environ.get("REVIEW_SCRAPER_CDP_PORT", "9222"))
CDP_CONNECT_TIMEOUT_S = 5.0
CHROME_EXECUTABLE_OVERRIDE = os.environ.get("REVIEW_SCRAPER_CHROME_PATH")
CHROME_PROFILE_DIR = Path(os.environ.get("REVIEW_SCRAPER_CHROME_PROFILE", Path.cwd() / "chrome-profile"))
CHROME_LAUNCH_SETTLE_S = 3.0
CHROME_ATTACH_POLL_TIMEOUT_S = 15.0
CHROME_ATTACH_POLL_INTERVAL_S = 0.5

CHROME_LAUNCH_ARGS = (
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--start-fullscreen",
)

CHROME_EXECUTABLE_CANDIDATES = {
    "win32": [
        r"C:\Program Files\Google\Chrome\Application\chrome.exe",
        r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
        os.path.join(os.environ.get("LOCALAPPDATA", ""), "Google", "Chrome", "Application", "chrome.exe"),
    ],
    "darwin": [
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "/Applications/Chromium.app/Contents/MacOS/Chromium",
    ],
    "linux": [
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/usr/bin/chromium-browser",
        "/usr/bin/chromium",
        "/snap/bin/chromium",
    ],
}

# --- Navigation / challenge handling ---
NAVIGATION_TIMEOUT_S = 30.0
POST_NAVIGATION_SETTLE_S = 3.0
CONTENT_SETTLE_S = 2.0
CHALLENGE_WAIT_TIMEOUT_S = 60.0
LOCATION_WAIT_TIMEOUT_S = 30.0
SEARCH_CHALLENGE_WAIT_TIMEOUT_S = 120.0
PAGE_READY_POLL_INTERVAL_S = 2.0

CHALLENGE_SELECTORS = (
    ".g-recaptcha",
    "#recaptcha",
    '[data-testid*="captcha"]',
    ".captcha",
    ".cf-browser-verification",
    ".challenge-running",
    'iframe[src*="recaptcha"]',
    'iframe[src*="captcha"]',
    ".cloudflare-browser-verification",
)

CHALLENGE_PHRASES = (
    "please complete the security check",
    "verify you are human",
    "verifying you are human",
    "prove you are not a robot",
    "complete the captcha",
    "security verification",
    "checking your browser",
    "just a moment while we check your browser",
)

# --- Pagination ---
HTTP_EMPTY_PAGE_THRESHOLD = 3
SESSION_EMPTY_PAGE_THRESHOLD = 1
EARLY_STOP_AFTER_PAGE = 2

# --- Shared extraction placeholders ---
NO_TITLE = "No title"
NO_RATING = "No rating"
MIN_TITLE_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 11

# --- G2 ---
G2_BASE_URL = "https://www.g2.com"
G2_SEARCH_RESULTS_SELECTOR = "div.elv-flex.elv-flex-col.elv-gap-y-3.elv-mb-3"
G2_PRODUCT_LINK_SELECTOR = 'a[href*="/products/"]'
G2_REVIEWS_CONTAINER_SELECTOR = "div.elv-flex.elv-flex-col.elv-gap-2.md\\:elv-gap-6"
G2_REVIEW_CARD_SELECTOR = "article.elv-bg-neutral-0.elv-border.elv-rounded-md"
G2_REVIEW_HEADER_SELECTOR = 'div[class*="elv-flex"][class*="elv-flex-col"][class*="elv-justify-between"]'
G2_REVIEWER_SELECTOR = '[class*="elv-font-bold"][class*="elv-text-base"][class*="elv-text-default"]'
G2_REVIEW_DATE_SELECTOR = 'label[class*="elv-font-medium"][class*="elv-text-sm"][class*="elv-text-inherit"]'
G2_REVIEW_BODY_SELECTOR = 'div[class*="elv-flex"][class*="elv-flex-col"][class*="elv-gap-y-4"]'
G2_REVIEW_TITLE_SELECTOR = '[class*="elv-font-bold"][class*="elv-text-lg"][class*="elv-text-default"]'
G2_REVIEW_RATING_SELECTOR = ".elv-font-semibold.elv-text-subtle"
G2_SECTION_HEADER_SELECTOR = ".elv-font-bold"
G2_NEXT_PAGE_SELECTOR = 'a[rel="next"]'

# --- Capterra ---
CAPTERRA_BASE_URL = "https://www.capterra.com"
CAPTERRA_SEARCH_CARD_SELECTOR = '[data-testid="search-product-card"]'
CAPTERRA_PRODUCT_LINK_SELECTOR = 'a[href*="/p/"]'
REVIEW_CARDS_CONTAINER_SELECTOR = 'div[data-test-id="review-cards-container"]'
CAPTERRA_REVIEW_CARD_SELECTORS = (
    'div[class*="typo-10"][class*="mb-6"][class*="p-6"]',
    "div.e1xzmg0z.c1ofrhif.typo-10",
)
BS_REVIEWER_INFO_CONTAINER_SELECTOR = 'div[class*="typo-10"][class*="text-neutral-90"][class*="w-full"][class*="lg:w-fit"]'
BS_REVIEW_TITLE_SELECTOR = 'h3[class*="typo-20"][class*="font-semibold"]'
BS_REVIEW_DATE_PUBLISHED_SELECTOR = ".typo-0.text-neutral-90"
BS_REVIEW_CARD_OVERALL_RATING_SELECTOR = ".e1xzmg0z.sr2r3oj"
BS_REVIEW_TEXT_SELECTOR = 'div[class*="!mt-4"][class*="space-y-6"] p'
BS_REVIEW_EXPANDED_TEXT_SELECTOR = 'div[class*="space-y-4"][class*="lg:space-y-6"] > div[class="space-y-6"]'
CAPTERRA_ANONYMOUS_REVIEWER = "Anonymous Verified Reviewer"
CAPTERRA_CONTINUE_READING_TEXT = "Continue Reading"

CONTINUE_READING_BUTTON_SELECTOR = '[data-testid="continue-reading-button"]'
SORT_MENU_SELECTORS = (
    '[data-testid="filters-sort-by"]',
    "button.e1xzmg0z.byb7w84.sli6p0m",
    '[data-testid="filter-sort-MOST_RECENT"]',
    "button.e1xzmg0z.l17grxq6",
    'i[data-modal-role="close-button"]',
)
OVERLAY_POPUP_CLOSE_BUTTON_SELECTOR = 'div.sb.bkg-light.card.padding-medium i[data-modal-role="close-button"]'
BROWSER_INTERACTION_TIMEOUT_S = 7.0
SORT_CONTROL_TIMEOUT_S = 2.0

# --- TrustPilot ---
TRUSTPILOT_BASE_URL = "https://www.trustpilot.com"
TRUSTPILOT_SEARCH_CARD_SELECTOR = 'div[class*="CDS_Card_card"]'
TRUSTPILOT_PRODUCT_LINK_SELECTOR = 'a[href*="/review/"]'
TRUSTPILOT_REVIEW_LIST_SELECTOR = 'div[class*="styles_reviewListContainer"]'
TRUSTPILOT_REVIEW_CARD_SELECTOR = 'div[class*="styles_cardWrapper"]'
TRUSTPILOT_REVIEW_ARTICLE_SELECTOR = 'article[class*="styles_reviewCard"]'
TRUSTPILOT_REVIEW_CONTENT_SELECTOR = '[data-testid="service-review-card-v2"]'
TRUSTPILOT_REVIEWER_SELECTOR = 'span[class*="styles_consumerName"]'
TRUSTPILOT_RATING_SELECTOR = "[data-service-review-rating]"
TRUSTPILOT_TITLE_SELECTOR = 'h2[data-service-review-title-typography="true"]'
TRUSTPILOT_TEXT_SELECTOR = 'p[data-service-review-text-typography="true"]'
TRUSTPILOT_DATE_SELECTOR = "time[datetime]"
TRUSTPILOT_DATE_BADGE_SELECTOR = '[class*="CDS_Badge_badgeText"]'
TRUSTPILOT_PAGINATION_SELECTOR = 'nav[aria-label="Pagination"]'
TRUSTPILOT_NEXT_PAGE_SELECTOR = 'a[name="pagination-button-next"]'
