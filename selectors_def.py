"""Selector definitions for the map-search and venue website crawlers.

Map search results and venue websites are both rendered dynamically and
their markup drifts over time.  To keep the crawlers resilient the tables
here specify multiple candidates for each piece of information.  The
crawling code iterates through the lists in order until it finds a match.

Should a site change you can update these lists without modifying the
crawling code.  When adding selectors remember to put more specific
selectors earlier in the list.
"""

from heuristics import venue_name
from resolver import FieldRule
from utils import clean_text, http_url, parse_rating, strip_icon_glyphs, strip_label


MAP_SEARCH_URL = "https://www.google.com/maps/search/{query}"

# Query variants built for one location.  ``subject`` comes from the
# venue kind (see heuristics.VENUE_KINDS).
QUERY_TEMPLATES = [
    "{subject} in {location}",
    "{subject} near {location}",
    "{subject} {location}",
]

# Containers that show the result list has rendered.
FEED_SELECTORS = [
    "div[role='feed']",
    "div[role='main']",
    ".m6QErb.DxyBCb",
]

# Scrolled programmatically to trigger lazy loading of further results.
SCROLL_FEED_JS = """() => {
    const feed = document.querySelector("div[role='feed']") || document.querySelector('.m6QErb');
    if (feed) feed.scrollBy(0, 1000);
}"""

# Anchors pointing at place detail pages; the second entry is only used
# when the first finds nothing.
PLACE_LINK_SELECTORS = [
    "a[href*='/maps/place/']",
    "a.hfpxzc",
]

# Present once a place detail panel has rendered.
DETAIL_PANEL_SELECTOR = (
    "button[data-item-id='address'], div[data-attrid='kc:/location/location:address']"
)

# Substrings in the page body suggesting a consent wall hid the feed.
CONSENT_MARKERS = ["consent", "Accept all"]

CONSENT_BUTTON_SELECTORS = [
    "button:has-text('Accept all')",
    "button:has-text('Accept All')",
    "button:has-text('I agree')",
    "button:has-text('Agree')",
    "form[action*='consent'] button",
    "button[aria-label*='Accept']",
    "[aria-label='Accept all']",
    "button.tHlp8d",
    "#L2AGLb",
]

# Used only when the result anchor had no accessible label.
NAME_RULES = [
    FieldRule("h1.DUwDvf", venue_name),
    FieldRule("div.qBF1Pd.fontHeadlineSmall", venue_name),
    FieldRule("h1", venue_name),
]

CATEGORY_RULES = [
    FieldRule("button[jsaction*='category']"),
    FieldRule("span.DkEaL"),
    FieldRule("button.DkEaL"),
]

RATING_RULES = [
    FieldRule("div.F7nice span[aria-hidden='true']", parse_rating),
    FieldRule("span.ceNzKf", parse_rating),
    FieldRule("div.fontDisplayLarge", parse_rating),
]

# Every match is scanned for an "N reviews" phrase.
REVIEW_COUNT_SELECTOR = "span:has-text('review')"

ADDRESS_RULES = [
    FieldRule("button[data-item-id='address'] div.fontBodyMedium", strip_label("Address:")),
    FieldRule("button[data-item-id='address']", strip_label("Address:")),
    FieldRule("div[data-tooltip*='Copy address']", strip_label("Address:")),
    FieldRule("button:has(span:has-text('Address'))", strip_label("Address:")),
]

PHONE_RULES = [
    FieldRule("button[data-item-id*='phone'] div.fontBodyMedium", strip_label("Phone:")),
    FieldRule("button[data-item-id*='phone']", strip_label("Phone:")),
    FieldRule("a[href^='tel:']", strip_label("Phone:")),
]

WEBSITE_RULES = [
    FieldRule("a[data-item-id='authority']", http_url, attribute="href"),
    FieldRule("a[aria-label*='Website']", http_url, attribute="href"),
]

HOURS_RULES = [
    FieldRule("div[aria-label*='hours']", clean_text, attribute="aria-label"),
    FieldRule("button[aria-label*='hours']", clean_text, attribute="aria-label"),
]

# Expanding the hours row reveals one table row per weekday.
HOURS_BUTTON_SELECTORS = [
    "button[data-item-id='oh']",
    "button[aria-label*='hour']",
    "[data-item-id='oh']",
    ".OqCZI button",
    "div[aria-label*='Opens'] button",
    "div[aria-label*='Closes'] button",
]
HOURS_ROW_SELECTORS = [
    "table.eK4R0e tbody tr.y0skZc",
    "table.eK4R0e tr.y0skZc",
    "table tbody tr.y0skZc",
    ".t39EBf table tr",
    "table.WgFkxc tr",
]
HOURS_DAY_RULES = [
    FieldRule("td.ylH6lf div"),
    FieldRule("td:first-child div"),
    FieldRule("td:first-child"),
]
HOURS_TIME_RULES = [
    FieldRule("td.mxowUb", clean_text, attribute="aria-label"),
    FieldRule("td.mxowUb"),
    FieldRule("td:nth-child(2)"),
]

DESCRIPTION_RULES = [
    FieldRule("div.WeS02d.fontBodyMedium"),
    FieldRule("div.PYvSYb"),
]

IMAGE_RULES = [
    FieldRule("img.loaded", http_url, attribute="src"),
    FieldRule("img[decoding='async']", http_url, attribute="src"),
    FieldRule("img.YQ4gaf", http_url, attribute="src"),
]

# Photos tab.  Tiles carry the image as an inline background-image style.
PHOTOS_TAB_SELECTORS = ["button[aria-label*='Photo']"]
PHOTO_TILE_SELECTORS = [
    "a[data-photo-index] div.U39Pmb",
    "div[role='img']",
]
# Leaves the photo gallery for the place overview.
BACK_SELECTORS = [
    "button[aria-label='Back']",
    "button[aria-label*='Overview']",
]

# About tab: one section per category (Accessibility, Amenities, ...),
# each a heading followed by a list of attributes.
ABOUT_TAB_SELECTORS = ["button[aria-label*='About']"]
ATTRIBUTE_SECTION_SELECTOR = "div.iP2t7d"
ATTRIBUTE_TITLE_RULES = [FieldRule("h2.fontTitleSmall"), FieldRule("h2")]
ATTRIBUTE_ITEM_SELECTOR = "ul > li"
# Icon-only items carry their text in an aria-label.
ATTRIBUTE_LABEL_RULES = [FieldRule("span[aria-label]", strip_icon_glyphs, attribute="aria-label")]

# Reviews panel.
REVIEWS_TAB_SELECTORS = [
    "button[role='tab'][aria-label*='Reviews']",
    "button:has-text('Reviews')",
]
REVIEW_ITEM_SELECTOR = "div[data-review-id]"
REVIEW_MORE_SELECTORS = [
    "button.w8nwRe.kyuRq[aria-label='See more']",
    "button[aria-label='See more']",
    "button:has-text('More')",
]
REVIEW_AUTHOR_RULES = [FieldRule("div.d4r55"), FieldRule(".d4qsdf")]
REVIEW_RATING_RULES = [
    FieldRule("span[role='img'][aria-label*='star']", clean_text, attribute="aria-label"),
    FieldRule("span.kvMYJc", clean_text, attribute="aria-label"),
]
REVIEW_TEXT_RULES = [FieldRule("span.wiI7pd"), FieldRule(".MyEned")]
REVIEW_DATE_RULES = [FieldRule("span.rsqaWe"), FieldRule(".p5KrLc")]
REVIEW_HELPFUL_RULES = [FieldRule("button[aria-label*='helpful']")]
SCROLL_REVIEWS_JS = """(el) => {
    let parent = el.parentElement;
    while (parent) {
        const style = window.getComputedStyle(parent);
        if (style.overflowY === 'auto' || style.overflowY === 'scroll') {
            parent.scrollTop = parent.scrollHeight;
            return true;
        }
        parent = parent.parentElement;
    }
    el.scrollIntoView();
    return false;
}"""

# ---------------------------------------------------------------------------
# Venue websites

# Anchor text or href containing one of these leads to the room list.
ROOM_LINK_KEYWORDS = [
    "rooms", "games", "experiences", "adventures", "escape rooms",
    "our rooms", "book", "booking", "play", "missions",
]

LINK_SCAN_JS = """(els) => els.map(a => ({
    text: (a.innerText || '').trim(),
    href: a.getAttribute('href') || ''
}))"""

# Repeated blocks that usually hold one room each.  The first selector
# producing a plausible room wins.
CARD_SELECTORS = [
    ".room-card",
    ".experience-card",
    ".game-card",
    "[class*='room']",
    "[class*='experience']",
    ".card",
    ".escape-room",
    "article",
]

CARD_SCAN_JS = """(cards) => cards.map(card => {
    const pick = (sel) => card.querySelector(sel);
    const text = (el) => el ? (el.innerText || '').trim() : '';
    const heading = pick('h1, h2, h3, h4, .title, .name, [class*="title"]');
    const desc = pick('p, .description, .desc, [class*="description"]');
    const theme = pick('[class*="theme"], [class*="genre"], [class*="category"]');
    const img = pick('img');
    return {
        name: text(heading),
        description: text(desc),
        theme: text(theme),
        imageUrl: img ? (img.getAttribute('src') || img.getAttribute('data-src') || '') : '',
        text: card.innerText || ''
    };
})"""

HEADING_SELECTOR = "h1, h2, h3, h4"

# For each heading, the closest paragraph and image under the same parent.
HEADING_SCAN_JS = """(headings) => headings.map(h => {
    const parent = h.parentElement;
    const nextOf = (sel) => {
        let sib = h.nextElementSibling;
        while (sib) {
            if (sib.matches(sel)) return sib;
            const inner = sib.querySelector(sel);
            if (inner) return inner;
            sib = sib.nextElementSibling;
        }
        return parent ? parent.querySelector(sel) : null;
    };
    const p = nextOf('p');
    const img = nextOf('img');
    return {
        name: (h.innerText || '').trim(),
        description: p ? (p.innerText || '').trim() : '',
        imageUrl: img ? (img.getAttribute('src') || img.getAttribute('data-src') || '') : ''
    };
})"""
