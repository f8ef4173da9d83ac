"""
Pexels image enrichment for generated ASO reports.

Walks a report's cultural-insight facts, recommendations and benchmark
comparisons, and fills in `pexelsImageUrl` for entries that lack one.
Lookups are spaced by a fixed delay to stay under the Pexels free-tier
rate limit (200 requests/hour).
"""

import copy
import re
import time
from typing import Callable, Dict, List, Optional, Tuple

import requests

PEXELS_SEARCH_URL = 'https://api.pexels.com/v1/search'
PEXELS_TIMEOUT_SECONDS = 10
DEFAULT_DELAY_SECONDS = 2.0

MAX_QUERY_WORDS = 5

STOP_WORDS = {
    'el', 'la', 'los', 'las', 'de', 'del', 'en', 'y', 'o', 'a', 'un', 'una', 'es', 'son',
    'con', 'por', 'para', 'que', 'se', 'le', 'les', 'lo', 'al', 'unos', 'unas', 'este',
    'esta', 'estos', 'estas', 'ese', 'esa', 'esos', 'esas', 'aquel', 'aquella', 'aquellos',
    'aquellas', 'the', 'is', 'are', 'and', 'or', 'an', 'in', 'on', 'at', 'to', 'for', 'of',
    'with', 'by',
}

# Named places, most specific first
PLACE_PATTERNS = [
    re.compile(r'plaza\s+([a-záéíóúàèìòùñç]+)', re.I),
    re.compile(r'piazza\s+([a-záéíóúàèìòùñç]+)', re.I),
    re.compile(r'calle\s+([a-záéíóúàèìòùñç]+)', re.I),
    re.compile(r'carrer\s+([a-záéíóúàèìòùñç]+)', re.I),
    re.compile(r'via\s+([a-záéíóúàèìòùñç]+)', re.I),
    re.compile(r'zona\s+(azul|blava|blu|ztl|residenti)', re.I),
    re.compile(r'(sagrada\s+família|colosseo|duomo|plaza\s+mayor|gran\s+vía|passeig\s+de\s+gràcia)', re.I),
]

ZONE_PATTERNS = [
    re.compile(r'zona\s+azul', re.I),
    re.compile(r'zona\s+blava', re.I),
    re.compile(r'zona\s+blu', re.I),
    re.compile(r'ztl', re.I),
    re.compile(r'zona\s+residenti', re.I),
]

# Single-pass variants used for the shorter local-data facts
FACT_PLACE_RE = re.compile(
    r'(plaza\s+mayor|plaza\s+catalunya|gran\s+vía|plaza|piazza|calle|carrer|via|passeig|sagrada|colosseo|duomo)',
    re.I
)
FACT_ZONE_RE = re.compile(r'(zona\s+azul|zona\s+blava|zona\s+blu|ztl)', re.I)
BENCHMARK_PLACE_RE = re.compile(r'(plaza|piazza|via|street|avenue|boulevard)\s+([a-záéíóúàèìòù]+)', re.I)

ImageSearch = Callable[[str, str], Optional[Dict]]


def search_pexels_image(query: str, api_key: str) -> Optional[Dict]:
    """
    Search Pexels for one landscape photo.

    Returns:
        Dict with url, description, photographer; or None if nothing was
        found or the request failed
    """
    if not api_key or not query:
        print("[Pexels] Missing API key or query")
        return None

    try:
        response = requests.get(
            PEXELS_SEARCH_URL,
            params={'query': query, 'per_page': 1, 'orientation': 'landscape'},
            headers={'Authorization': api_key},
            timeout=PEXELS_TIMEOUT_SECONDS
        )
        response.raise_for_status()
        data = response.json()

        photos = data.get('photos') or []
        if not photos:
            return None

        photo = photos[0]
        src = photo.get('src') or {}
        url = src.get('large') or src.get('medium') or src.get('small')
        if not url:
            return None

        photographer = photo.get('photographer')
        return {
            'url': url,
            'description': f"Photo by {photographer}: {query}" if photographer else f"Image: {query}",
            'photographer': photographer,
        }
    except requests.exceptions.HTTPError as e:
        print(f"[Pexels] API error: {e.response.status_code}")
        return None
    except Exception as e:
        print(f"[Pexels] Error fetching image: {e}")
        return None


def _keywords(text: str, limit: int) -> List[str]:
    words = re.sub(r'[^\w\s]', ' ', text.lower()).split()
    return [word for word in words if len(word) > 3 and word not in STOP_WORDS][:limit]


def generate_pexels_query(fact: str, country: str, context: str = None) -> str:
    """
    Build a short search query from a local fact.

    Takes up to 3 meaningful words from the fact, the country, and up to
    2 meaningful words from the context, capped at 5 parts.

    Examples:
        >>> generate_pexels_query("Residents park their scooters downtown", "Italy")
        'residents park their Italy'
    """
    parts = _keywords(fact or '', 3)
    if country:
        parts.append(country)
    if context:
        parts.extend(_keywords(context, 2))

    return ' '.join(parts[:MAX_QUERY_WORDS]).strip()


def find_place(text: str) -> Optional[str]:
    """First named place (plaza, via, landmark...) mentioned in text."""
    for pattern in PLACE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def find_zone(text: str) -> Optional[str]:
    """First regulated parking zone (zona azul, ZTL...) mentioned in text."""
    for pattern in ZONE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def local_data_query(fact: str, country: str, context: str = None) -> str:
    """Query for a recommendation's local-data fact: place, else zone, else keywords."""
    place = FACT_PLACE_RE.search(fact)
    if place:
        return f"{place.group(0)} {country} parking"

    zone = FACT_ZONE_RE.search(fact)
    if zone:
        return f"{zone.group(0)} {country} parking sign"

    return generate_pexels_query(fact, country, context)


def _apply_image(entry: Dict, image: Optional[Dict], with_description: bool = True) -> bool:
    if not image:
        return False
    entry['pexelsImageUrl'] = image['url']
    if with_description:
        entry['pexelsImageDescription'] = image['description']
    return True


def enrich_report(report: Dict, country: str, api_key: str,
                  search: ImageSearch = None, delay_seconds: float = DEFAULT_DELAY_SECONDS) -> Tuple[Dict, int]:
    """
    Fill missing Pexels images throughout a report.

    Args:
        report: Generated ASO report (not modified)
        country: Target market, appended to every query
        api_key: Pexels API key
        search: Image lookup, defaults to search_pexels_image
        delay_seconds: Wait between consecutive lookups

    Returns:
        Tuple of (enriched copy of the report, number of lookups made)
    """
    search = search or search_pexels_image
    enriched = copy.deepcopy(report)
    lookups = 0

    def lookup(query: str) -> Optional[Dict]:
        nonlocal lookups
        if lookups and delay_seconds:
            time.sleep(delay_seconds)
        lookups += 1
        print(f"[Pexels] Searching for: {query}")
        image = search(query, api_key)
        if image:
            print(f"[Pexels] Found image: {image['url'][:50]}...")
        else:
            print(f"[Pexels] No image found for query: {query}")
        return image

    # Cultural insights local data
    cultural = enriched.get('culturalInsights') or {}
    for local_data in cultural.get('localData') or []:
        if local_data.get('pexelsImageUrl'):
            continue
        query = generate_pexels_query(local_data.get('fact', ''), country, local_data.get('relevance'))
        _apply_image(local_data, lookup(query))

    # Recommendations: suggested query, then place, then zone; then nested local data
    for rec in enriched.get('recommendations') or []:
        if not rec.get('pexelsImageUrl') and rec.get('pexelsQuerySuggestion'):
            _apply_image(rec, lookup(rec['pexelsQuerySuggestion']))

        if not rec.get('pexelsImageUrl'):
            search_text = ' '.join([
                rec.get('title') or '',
                rec.get('insight') or '',
                ' '.join(rec.get('localElements') or []),
            ]).lower()

            place = find_place(search_text)
            if place:
                _apply_image(rec, lookup(f"{place} {country} parking"))

            if not rec.get('pexelsImageUrl'):
                zone = find_zone(search_text)
                if zone:
                    _apply_image(rec, lookup(f"{zone} {country} parking sign"))

        for local_data in rec.get('localData') or []:
            if local_data.get('pexelsImageUrl'):
                continue
            query = local_data_query((local_data.get('fact') or '').lower(), country, rec.get('title'))
            _apply_image(local_data, lookup(query))

    # Benchmark comparisons: only entries naming a concrete place
    for benchmark in enriched.get('benchmarkComparisons') or []:
        if benchmark.get('pexelsImageUrl') or not benchmark.get('description'):
            continue
        place = BENCHMARK_PLACE_RE.search(benchmark['description'])
        if place:
            _apply_image(benchmark, lookup(f"{place.group(0)} {country}"), with_description=False)

    return enriched, lookups
