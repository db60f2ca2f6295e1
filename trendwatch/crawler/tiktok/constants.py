"""TikTok platform constants: URLs, API patterns, page markers, timeouts."""

from __future__ import annotations

BASE_URL = "https://www.tiktok.com"

# Candidate pages, visited in order. "{lang}" comes from the region profile.
CANDIDATE_PATHS = (
    "/explore?lang={lang}",
    "/foryou?lang={lang}",
    "/?lang={lang}",
)

# Feed/recommendation API endpoints whose JSON bodies carry video items
FEED_API_PATTERNS = (
    "/api/recommend/item_list",
    "/api/explore/item_list",
    "/api/preload/item_list",
    "/api/post/item_list",
    "/api/trending/item_list",
    "/api/item_list",
    "/aweme/v1/feed",
)

# Top-level keys of a structured state blob holding the item map
ITEM_MODULE_KEYS = ("ItemModule", "itemModule")

# Payload list fields, checked in order; the first non-empty one is used
PAYLOAD_LIST_FIELDS = ("itemList", "item_list", "aweme_list", "items", "list", "feed")

# Universal rehydration blob (video detail pages)
UNIVERSAL_SCOPE_KEY = "__DEFAULT_SCOPE__"
VIDEO_DETAIL_KEY = "webapp.video-detail"

# Consent prompt buttons (English + Italian), matched with :has-text()
CONSENT_BUTTON_LABELS = (
    "Accept all",
    "Accept All",
    "Allow all cookies",
    "I agree",
    "Agree",
    "Accetta",
    "Accetta tutto",
    "Accetta tutti",
    "Consenti tutto",
)
CONSENT_FALLBACK_SELECTOR = "text=/^(Accept|Accetta).*/i"

# Lower-cased substrings of the page title/URL that mean "bot check"
CHALLENGE_KEYWORDS = (
    "verify",
    "verification",
    "challenge",
    "captcha",
    "security check",
)

# Resource types aborted on enrichment pages to save bandwidth
BLOCKED_RESOURCE_TYPES = frozenset({"image", "media", "font", "stylesheet"})

CHROMIUM_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-infobars",
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
]

# Timeouts
CONSENT_CLICK_TIMEOUT_MS = 2000
CONSENT_SETTLE_MS = 500
CLOSE_TIMEOUT_S = 10.0

# Wheel distance per load-more step
SCROLL_STEP_PX = 1200
SCROLL_JITTER_MS = 400

# Debug probe
DEBUG_SETTLE_MS = 1200
DEBUG_FIRST_LINKS = 5
