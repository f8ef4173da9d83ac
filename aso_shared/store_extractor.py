"""
Store listing extractor for ASO Report Generator.

Fetches public iOS App Store / Google Play listing pages and pulls out the
metadata the report prompt needs (title, subtitle, description, rating,
review count, icon, screenshots, developer, category).

Every field is driven by an ordered fallback chain: a tuple of small rule
functions, most specific first, most generic last. The first rule that
yields a non-empty value wins. Store markup changes often, so no single
rule is trusted on its own.

Failure handling:
- Fetch failures (timeout, non-2xx, connection errors) return "" and are
  logged, never raised
- A field with no matching rule is simply absent
- Any unexpected exception while extracting returns the zero-value record
"""

import re
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import requests
from bs4 import BeautifulSoup

from .text_utils import clean_text, parse_float, parse_int, truncate_description

PLATFORMS = ('ios', 'android')

FETCH_TIMEOUT_SECONDS = 10
MAX_SCREENSHOTS = 5

USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
BROWSER_HEADERS = {
    'User-Agent': USER_AGENT,
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
}

# Image CDN host fragments used for screenshot scans
SCREENSHOT_HOSTS = {
    'ios': 'mzstatic.com',
    'android': 'googleusercontent.com',
}

# Embedded JSON (ld+json / inline state) patterns
RATING_VALUE_RE = re.compile(r'"ratingValue":\s*"?([\d.]+)')
REVIEW_COUNT_RE = re.compile(r'"reviewCount":\s*"?(\d+)')
SELLER_NAME_RE = re.compile(r'"sellerName":\s*"([^"]+)"')
AUTHOR_NAME_RE = re.compile(r'"author":\s*"([^"]+)"')
APPLICATION_CATEGORY_RE = re.compile(r'"applicationCategory":\s*"([^"]+)"')
PLAY_CATEGORY_RE = re.compile(r'"applicationCategory":\s*"([A-Z][A-Z0-9_]*)"')

# Localized count text, e.g. "12,345 Ratings" / "1,024 reviews"
RATINGS_TEXT_RE = re.compile(r'(\d[\d,]*)\s*ratings', re.I)
REVIEWS_TEXT_RE = re.compile(r'(\d[\d,]*)\s*reviews', re.I)

LEADING_NUMBER_RE = re.compile(r'\s*(\d+(?:\.\d+)?)')
ITUNES_APP_ICON_RE = re.compile(r'icon=([^,\s]+)')

Rule = Callable[[str, BeautifulSoup], Optional[str]]


@dataclass(frozen=True)
class AppStoreData:
    """One store listing's scraped metadata. Absent optional fields are None."""
    title: str = ''
    description: str = ''
    screenshots: Tuple[str, ...] = ()
    subtitle: Optional[str] = None
    rating: Optional[float] = None
    reviews_count: Optional[int] = None
    icon_url: Optional[str] = None
    developer: Optional[str] = None
    category: Optional[str] = None

    def to_dict(self) -> dict:
        """Serialize, omitting absent optional fields."""
        data = {
            'title': self.title,
            'description': self.description,
            'screenshots': list(self.screenshots),
        }
        optional = {
            'subtitle': self.subtitle,
            'rating': self.rating,
            'reviews_count': self.reviews_count,
            'icon_url': self.icon_url,
            'developer': self.developer,
            'category': self.category,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data


# ============================================================================
# Page Fetcher
# ============================================================================

def _download_page(url: str, deadline: float, opened: list) -> str:
    """Stream one page body, giving up once the deadline has passed."""
    with requests.get(
        url,
        headers=BROWSER_HEADERS,
        timeout=FETCH_TIMEOUT_SECONDS,
        allow_redirects=True,
        stream=True
    ) as response:
        opened.append(response)
        response.raise_for_status()

        chunks = []
        for chunk in response.iter_content(chunk_size=8192):
            if time.monotonic() > deadline:
                raise requests.exceptions.Timeout(f"body not received within {FETCH_TIMEOUT_SECONDS}s")
            chunks.append(chunk)

        return b''.join(chunks).decode(response.encoding or 'utf-8', errors='replace')


def fetch_app_store_page(url: str) -> str:
    """
    Fetch a listing page. Returns the HTML, or "" on any failure.

    FETCH_TIMEOUT_SECONDS bounds the whole fetch, body included. The
    download runs on a worker thread; when the deadline passes the caller
    stops waiting and the in-flight response is closed.
    """
    deadline = time.monotonic() + FETCH_TIMEOUT_SECONDS
    opened = []
    executor = ThreadPoolExecutor(max_workers=1)

    try:
        future = executor.submit(_download_page, url, deadline, opened)
        try:
            return future.result(timeout=FETCH_TIMEOUT_SECONDS)
        except FuturesTimeoutError:
            for response in opened:
                response.close()
            raise requests.exceptions.Timeout(f"no complete response within {FETCH_TIMEOUT_SECONDS}s")

    except requests.exceptions.Timeout:
        print(f"[ASO] Error fetching page: request timed out after {FETCH_TIMEOUT_SECONDS}s ({url})")
    except requests.exceptions.HTTPError as e:
        print(f"[ASO] Error fetching page: HTTP {e.response.status_code} ({url})")
    except requests.exceptions.RequestException as e:
        print(f"[ASO] Error fetching page: {e} ({url})")
    except Exception as e:
        print(f"[ASO] Unexpected error fetching page: {e} ({url})")
    finally:
        executor.shutdown(wait=False)

    return ''


# ============================================================================
# Rule helpers
# ============================================================================

def _text(element) -> Optional[str]:
    if element is None:
        return None
    return element.get_text().strip() or None


def _meta_content(soup: BeautifulSoup, **attrs) -> Optional[str]:
    meta = soup.find('meta', attrs=attrs)
    if meta is None:
        return None
    return (meta.get('content') or '').strip() or None


def _regex_group(pattern: re.Pattern, html: str) -> Optional[str]:
    match = pattern.search(html)
    return match.group(1) if match else None


def _class_fragment(fragment: str) -> re.Pattern:
    return re.compile(re.escape(fragment))


# ============================================================================
# Shared rules (both platforms)
# ============================================================================

def og_title(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _meta_content(soup, property='og:title')


def og_description(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _meta_content(soup, property='og:description')


def meta_description(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _meta_content(soup, name='description')


def html_title(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _text(soup.find('title'))


def json_rating_value(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _regex_group(RATING_VALUE_RE, html)


def json_review_count(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _regex_group(REVIEW_COUNT_RE, html)


# ============================================================================
# iOS App Store rules
# ============================================================================

def ios_header_title(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _text(soup.find('h1', class_=_class_fragment('product-header__title')))


def ios_header_subtitle(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _text(soup.find('h2', class_=_class_fragment('product-header__subtitle')))


def ios_product_review_description(html: str, soup: BeautifulSoup) -> Optional[str]:
    """First paragraph inside the product-review container."""
    for container in soup.find_all('div', class_=_class_fragment('product-review')):
        text = _text(container.find('p'))
        if text:
            return text
    return None


def ios_section_description(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _text(soup.find('div', class_=_class_fragment('section__description')))


def ios_rating_badge(html: str, soup: BeautifulSoup) -> Optional[str]:
    for badge in soup.find_all('span', class_=_class_fragment('we-rating')):
        match = LEADING_NUMBER_RE.match(badge.get_text())
        if match:
            return match.group(1)
    return None


def ios_ratings_text(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _regex_group(RATINGS_TEXT_RE, html)


def ios_og_image_icon(html: str, soup: BeautifulSoup) -> Optional[str]:
    content = _meta_content(soup, property='og:image')
    if content and 'mzstatic.com' in content and 'icon' in content.lower():
        return content
    return None


def ios_header_icon(html: str, soup: BeautifulSoup) -> Optional[str]:
    """The header icon is either an <img> itself or a <picture> wrapping one."""
    element = soup.find(class_=_class_fragment('product-header__icon'))
    if element is None:
        return None
    image = element if element.name == 'img' else element.find('img')
    if image is None:
        return None
    return image.get('src') or None


def ios_itunes_app_meta_icon(html: str, soup: BeautifulSoup) -> Optional[str]:
    content = _meta_content(soup, name='apple-itunes-app')
    if not content:
        return None
    return _regex_group(ITUNES_APP_ICON_RE, content)


def ios_developer_link(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _text(soup.find('a', class_=_class_fragment('link'), href=re.compile('developer')))


def ios_json_seller_name(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _regex_group(SELLER_NAME_RE, html)


def ios_genre_link(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _text(soup.find('a', class_=_class_fragment('link'), href=re.compile('genre')))


def ios_json_category(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _regex_group(APPLICATION_CATEGORY_RE, html)


# ============================================================================
# Google Play rules
# ============================================================================

def android_itemprop_title(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _text(soup.find('h1', attrs={'itemprop': 'name'}))


def android_jsname_description(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _text(soup.find('div', attrs={'jsname': re.compile('sngebd')}))


def android_itemprop_description(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _text(soup.find('div', attrs={'itemprop': 'description'}))


def android_rating_badge(html: str, soup: BeautifulSoup) -> Optional[str]:
    for badge in soup.find_all('div', class_=_class_fragment('BHMmbe')):
        match = LEADING_NUMBER_RE.match(badge.get_text())
        if match:
            return match.group(1)
    return None


def android_reviews_text(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _regex_group(REVIEWS_TEXT_RE, html)


def android_itemprop_icon(html: str, soup: BeautifulSoup) -> Optional[str]:
    image = soup.find('img', attrs={'itemprop': 'image', 'src': True})
    return image['src'] if image else None


def android_og_image_icon(html: str, soup: BeautifulSoup) -> Optional[str]:
    content = _meta_content(soup, property='og:image')
    if content and 'googleusercontent.com' in content and 'icon' in content.lower():
        return content
    return None


def android_alt_icon(html: str, soup: BeautifulSoup) -> Optional[str]:
    image = soup.find('img', alt=re.compile('icon', re.I), src=True)
    return image['src'] if image else None


def android_author_link(html: str, soup: BeautifulSoup) -> Optional[str]:
    link = soup.find('a', attrs={'itemprop': 'author'})
    if link is None:
        return None
    return _text(link.find('span'))


def android_json_author(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _regex_group(AUTHOR_NAME_RE, html)


def android_genre_link(html: str, soup: BeautifulSoup) -> Optional[str]:
    return _text(soup.find('a', attrs={'itemprop': 'genre'}))


def android_json_category(html: str, soup: BeautifulSoup) -> Optional[str]:
    """Play ld+json categories are enum tokens, e.g. MAPS_AND_NAVIGATION."""
    return _regex_group(PLAY_CATEGORY_RE, html)


# ============================================================================
# Fallback chains
# ============================================================================

IOS_RULES: Dict[str, Tuple[Rule, ...]] = {
    'title': (ios_header_title, og_title, html_title),
    'subtitle': (ios_header_subtitle, og_description),
    'description': (ios_product_review_description, ios_section_description, meta_description),
    'rating': (json_rating_value, ios_rating_badge),
    'reviews_count': (json_review_count, ios_ratings_text),
    'icon_url': (ios_og_image_icon, ios_header_icon, ios_itunes_app_meta_icon),
    'developer': (ios_developer_link, ios_json_seller_name),
    'category': (ios_genre_link, ios_json_category),
}

ANDROID_RULES: Dict[str, Tuple[Rule, ...]] = {
    'title': (android_itemprop_title, og_title, html_title),
    'subtitle': (),
    'description': (android_jsname_description, android_itemprop_description, og_description),
    'rating': (json_rating_value, android_rating_badge),
    'reviews_count': (json_review_count, android_reviews_text),
    'icon_url': (android_itemprop_icon, android_og_image_icon, android_alt_icon),
    'developer': (android_author_link, android_json_author),
    'category': (android_genre_link, android_json_category),
}

PLATFORM_RULES = {
    'ios': IOS_RULES,
    'android': ANDROID_RULES,
}


def first_match(rules: Sequence[Rule], html: str, soup: BeautifulSoup,
                convert: Callable = None):
    """
    Evaluate rules in order and return the first usable value.

    Args:
        rules:   Ordered fallback chain
        html:    Raw page HTML (for regex rules)
        soup:    Parsed page (for DOM rules)
        convert: Optional parser applied to each candidate; a candidate
                 that converts to None does not count as a match

    Returns:
        The first non-empty (converted) value, or None
    """
    for rule in rules:
        value = rule(html, soup)
        if not value:
            continue
        if convert is None:
            return value
        converted = convert(value)
        if converted is not None:
            return converted
    return None


def collect_screenshots(soup: BeautifulSoup, host_fragment: str,
                        limit: int = MAX_SCREENSHOTS) -> List[str]:
    """Image URLs on the CDN host, in document order, deduplicated, capped."""
    screenshots = []
    for image in soup.find_all('img', src=True):
        if len(screenshots) >= limit:
            break
        src = image['src']
        if host_fragment in src and src not in screenshots:
            screenshots.append(src)
    return screenshots


def extract_fields(html: str, platform: str) -> AppStoreData:
    """
    Run the platform's fallback chains over a listing page.

    Raises:
        ValueError: platform is not 'ios' or 'android'
    """
    rules = PLATFORM_RULES.get(platform)
    if rules is None:
        raise ValueError(f"Unsupported platform: {platform!r}")

    soup = BeautifulSoup(html, 'html.parser')

    description = clean_text(first_match(rules['description'], html, soup)) or ''

    return AppStoreData(
        title=clean_text(first_match(rules['title'], html, soup)) or '',
        subtitle=clean_text(first_match(rules['subtitle'], html, soup)),
        description=truncate_description(description),
        rating=first_match(rules['rating'], html, soup, convert=parse_float),
        reviews_count=first_match(rules['reviews_count'], html, soup, convert=parse_int),
        icon_url=first_match(rules['icon_url'], html, soup),
        screenshots=tuple(collect_screenshots(soup, SCREENSHOT_HOSTS[platform])),
        developer=clean_text(first_match(rules['developer'], html, soup)),
        category=clean_text(first_match(rules['category'], html, soup)),
    )


# ============================================================================
# Extraction Orchestrator
# ============================================================================

def extract_app_store_data(url: str, platform: str) -> AppStoreData:
    """
    Fetch and extract one store listing.

    Never raises. An empty URL, a failed fetch, or any extraction error
    yields the zero-value record AppStoreData().
    """
    if not url:
        return AppStoreData()

    try:
        print(f"[ASO] Extracting data from {platform} URL: {url}")
        html = fetch_app_store_page(url)

        if not html:
            return AppStoreData()

        data = extract_fields(html, platform)

        print(f"[ASO] Extracted data for {platform}: title={data.title!r}, "
              f"screenshots={len(data.screenshots)}, rating={data.rating}, "
              f"reviews_count={data.reviews_count}")

        return data

    except Exception as e:
        print(f"[ASO] Error extracting {platform} data: {e}")
        return AppStoreData()
