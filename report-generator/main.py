"""
Report Generator Cloud Function

Scrapes app store listings and turns them into an ASO (App Store
Optimization) report for the ASO dashboard.

Responsibilities:
- Extract listing metadata from iOS App Store / Google Play pages
- Build the report prompt from extracted data plus user context
- Generate the structured report with Gemini
- Validate the report shape
- Optionally enrich the report with Pexels images
- Generate keyword/competitor/market suggestions for an app profile
- Check that user-supplied API keys work
- Score saved app profiles (ASO health score)

Does NOT:
- Store reports or app profiles (dashboard's job)
- Handle retries (caller's job)
- Render reports (dashboard's job)
"""

import functions_framework
import requests
import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
import json
import os
import sys
import threading

# Add shared module to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
from aso_shared.store_extractor import AppStoreData, PLATFORMS, extract_app_store_data
from aso_shared.text_utils import clip
from aso_shared.report_utils import parse_llm_json, validate_aso_report
from aso_shared.image_enrichment import PEXELS_SEARCH_URL, enrich_report
from aso_shared.health_score import calculate_health_score, profile_metadata_from_app_data

# Configuration
GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY')
PEXELS_API_KEY = os.environ.get('PEXELS_API_KEY')
GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-2.0-flash')
PEXELS_DELAY_SECONDS = float(os.environ.get('PEXELS_DELAY_SECONDS', '2.0'))
EXTRACTION_MAX_WORKERS = int(os.environ.get('EXTRACTION_MAX_WORKERS', '4'))

MAX_KEYWORDS = 5
NOT_AVAILABLE = 'Not available'

# genai.configure is process-wide; hold this while configuring and calling with a per-request key
GENAI_LOCK = threading.Lock()

CORS_HEADERS = {'Access-Control-Allow-Origin': '*'}
PREFLIGHT_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'POST',
    'Access-Control-Allow-Headers': 'Content-Type',
    'Access-Control-Max-Age': '3600'
}

# Niche detection table (first match wins, order matters)
NICHE_KEYWORDS = {
    'parking': ['parking', 'park', 'aparcar', 'parcheggio', 'estacionamiento', 'zona azul', 'ztl'],
    'chess': ['chess', 'ajedrez', 'scacchi', 'schach', 'échecs', 'game', 'play'],
    'fitness': ['fitness', 'workout', 'exercise', 'gym', 'training', 'health'],
    'food': ['food', 'restaurant', 'comida', 'ristorante', 'delivery', 'order'],
    'travel': ['travel', 'trip', 'viaje', 'viaggio', 'hotel', 'booking'],
    'finance': ['finance', 'bank', 'money', 'payment', 'wallet', 'finanza'],
    'education': ['education', 'learn', 'study', 'curso', 'corso', 'aprender'],
    'social': ['social', 'chat', 'message', 'connect', 'community'],
    'productivity': ['productivity', 'task', 'todo', 'organize', 'manage'],
    'music': ['music', 'song', 'audio', 'playlist', 'stream'],
    'photo': ['photo', 'camera', 'image', 'picture', 'edit'],
}

NICHE_CONTEXTS = {
    'chess': (
        "This is a CHESS GAME application. Focus on chess-related terminology, chess pieces, chess boards, "
        "tournaments, strategies, and chess culture. Cities should be adapted to chess culture (famous chess "
        "clubs, tournaments, chess cafes). Local objects should be chess-related (chess sets, clocks, boards)."
    ),
    'parking': (
        "This is a PARKING/MOBILITY application. Focus on parking zones, traffic regulations, urban mobility, "
        "parking signs, and transportation. Cities should include famous streets and parking areas. Local "
        "objects should be transportation-related (scooters, cars, parking meters)."
    ),
    'fitness': (
        "This is a FITNESS/HEALTH application. Focus on gyms, workouts, exercises, health trends, and fitness "
        "culture. Cities should include famous gyms and fitness centers. Local objects should be "
        "fitness-related (weights, yoga mats, running paths)."
    ),
    'food': (
        "This is a FOOD/RESTAURANT application. Focus on local cuisine, restaurants, food delivery, and "
        "culinary culture. Cities should include famous restaurants and food markets. Local objects should "
        "be food-related (dishes, ingredients, cooking tools)."
    ),
}

REPORT_JSON_FORMAT = """{
  "hypothesis": [{"title": "", "description": "", "expectedOutcome": "", "screenshotUrl": "optional real screenshot URL", "visualExample": ""}],
  "culturalInsights": {
    "urbanMobility": "", "regulations": "", "lifestyle": "", "language": "", "seasonality": "", "regionalFocus": "",
    "localData": [{"fact": "", "source": "", "link": "", "relevance": ""}],
    "localMarketDetails": {"currency": "", "currencySymbol": "", "currencyFormat": "", "specificCities": [], "languageCharacteristics": {}, "localObjects": [], "legalSpecifics": []}
  },
  "competitorAnalysis": [{"name": "", "valueProp": "", "visualPatterns": [], "keywords": [], "comparison": "", "iconUrl": "", "screenshots": [], "rating": 0, "reviewsCount": 0}],
  "recommendations": [{"title": "", "insight": "", "visualElements": [], "copySuggestions": [], "localElements": [], "pexelsQuerySuggestion": "", "localData": [], "implementationDetails": ""}],
  "keywords": [{"category": "", "terms": [], "searchVolume": "", "competition": "", "localVariations": []}],
  "appColorPalette": {"name": "", "colors": [{"rgb": "", "hex": "", "usage": ""}], "description": ""},
  "appVisualAssets": {"iconUrl": "", "screenshots": [], "platforms": []},
  "visualSummary": "",
  "screenshotProposals": [],
  "messageClusters": [],
  "localTerminology": [{"term": "", "meaning": "", "context": "", "asoRelevance": ""}],
  "culturalElements": [],
  "competitorInsights": [],
  "benchmarkComparisons": [{"type": "icons|screenshots|colors|copy", "title": "", "description": "", "insights": [], "recommendations": []}],
  "experimentRoadmap": [{"name": "", "hypothesis": "", "variants": [], "kpi": "", "duration": "", "expectedSampleSize": ""}]
}"""


def _processed_at() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def _masked(key: str) -> str:
    return f"{key[:6]}..." if key else 'none'


# ============================================================================
# Extraction
# ============================================================================

def extract_many(jobs: list) -> list:
    """
    Extract several listings concurrently.

    Args:
        jobs: List of (url, platform) tuples

    Returns:
        AppStoreData records in the same order as jobs
    """
    if not jobs:
        return []

    workers = max(1, min(EXTRACTION_MAX_WORKERS, len(jobs)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(lambda job: extract_app_store_data(job[0], job[1]), jobs))


def extract_app_and_competitors(app_urls: dict, competitors: list) -> tuple:
    """
    Extract the primary app (per platform) and every competitor URL.

    Returns:
        Tuple of (ios_data or None, android_data or None, competitor records).
        Competitor records without a title are dropped.
    """
    app_urls = app_urls or {}
    jobs = []

    for platform in PLATFORMS:
        if app_urls.get(platform):
            jobs.append((app_urls[platform], platform))
    primary_count = len(jobs)

    for comp in competitors or []:
        if comp.get('ios_url'):
            jobs.append((comp['ios_url'], 'ios'))
        if comp.get('android_url'):
            jobs.append((comp['android_url'], 'android'))

    results = extract_many(jobs)

    primary = {job[1]: data for job, data in zip(jobs[:primary_count], results[:primary_count])}
    competitor_data = [data for data in results[primary_count:] if data.title]

    return primary.get('ios'), primary.get('android'), competitor_data


# ============================================================================
# Prompt construction
# ============================================================================

def detect_niche(title: str, description: str, category: str) -> str:
    """Detect the app's niche from its title, description and category."""
    title = (title or '').lower()
    description = (description or '').lower()
    category = (category or '').lower()

    for niche, keywords in NICHE_KEYWORDS.items():
        if any(kw in title or kw in description or kw in category for kw in keywords):
            return niche

    return 'general'


def niche_context(niche: str, category: str) -> str:
    """Prompt paragraph describing the detected niche."""
    if niche in NICHE_CONTEXTS:
        return NICHE_CONTEXTS[niche]
    return (
        f"This is a {(category or '').upper()} application. Adapt all cultural insights, cities, local "
        f"objects, and terminology to be relevant to this specific category and niche."
    )


def _rating_line(data: AppStoreData) -> str:
    rating = f"{data.rating}/5" if data.rating is not None else NOT_AVAILABLE
    if data.reviews_count is not None:
        rating += f" ({data.reviews_count} reviews)"
    return rating


def _numbered_urls(urls) -> str:
    return '\n'.join(f"  {idx}. {url}" for idx, url in enumerate(urls, start=1))


def format_store_listing(label: str, data: AppStoreData, app_name: str, category: str) -> str:
    """Prompt block for one primary-app listing."""
    lines = [
        f"**{label}:**",
        f"- Title: {data.title or app_name}",
    ]
    if data.subtitle:
        lines.append(f"- Subtitle: {data.subtitle}")
    lines.extend([
        f"- Description: {clip(data.description, 500) if data.description else NOT_AVAILABLE}",
        f"- Rating: {_rating_line(data)}",
        f"- Developer: {data.developer or NOT_AVAILABLE}",
        f"- Category: {data.category or category}",
        f"- Icon: {data.icon_url or NOT_AVAILABLE}",
        f"- Screenshots: {len(data.screenshots)} images provided",
        f"- Screenshot URLs:",
        _numbered_urls(data.screenshots),
    ])
    return '\n'.join(lines) + '\n\n'


def build_app_data_section(ios_data, android_data, app_name: str, category: str) -> str:
    """Prompt section with the real data of the app being analyzed."""
    section = "\n## CURRENT APP - REAL DATA:\n\n"
    if ios_data:
        section += format_store_listing('iOS App Store', ios_data, app_name, category)
    if android_data:
        section += format_store_listing('Google Play Store', android_data, app_name, category)
    return section


def build_visual_assets(ios_data, android_data, platforms: list) -> dict:
    """Icon (iOS first) and all screenshots of the app."""
    screenshots = []
    for data in (ios_data, android_data):
        if data:
            screenshots.extend(data.screenshots)

    icon_url = (ios_data.icon_url if ios_data else None) or (android_data.icon_url if android_data else None)

    return {
        'iconUrl': icon_url,
        'screenshots': screenshots,
        'platforms': list(platforms),
    }


def build_assets_section(assets: dict) -> str:
    return (
        "\n## APP VISUAL ASSETS - REAL DATA:\n\n"
        f"- Icon: {assets['iconUrl'] or NOT_AVAILABLE}\n"
        f"- Screenshots: {len(assets['screenshots'])} images provided\n"
        f"- Platforms: {', '.join(assets['platforms'])}\n"
        f"- Screenshot URLs:\n{_numbered_urls(assets['screenshots'])}\n\n"
    )


def build_competitor_section(competitor_data: list) -> str:
    """Prompt section with the real data of each competitor."""
    section = "\n## COMPETITORS - REAL DATA:\n\n"

    if not competitor_data:
        return section + "No competitors were provided. Identify the main local competitors automatically.\n\n"

    for idx, comp in enumerate(competitor_data, start=1):
        section += (
            f"**Competitor {idx}:**\n"
            f"- Title: {comp.title}\n"
            f"- Description: {clip(comp.description, 300) if comp.description else NOT_AVAILABLE}\n"
            f"- Rating: {_rating_line(comp)}\n"
            f"- Category: {comp.category or NOT_AVAILABLE}\n"
            f"- Icon: {comp.icon_url or NOT_AVAILABLE}\n"
            f"- Screenshots: {len(comp.screenshots)} images provided\n"
            f"- Screenshot URLs:\n{_numbered_urls(comp.screenshots)}\n\n"
            "**USE THIS REAL DATA** for the competitor analysis. Compare icons, screenshots and color "
            "palettes with the app's real data.\n\n"
        )

    return section


def build_report_prompt(app_name: str, platforms: list, country: str, language: str, category: str,
                        keywords: list, app_urls: dict, ios_data, android_data,
                        competitor_data: list, niche: str) -> str:
    """Assemble the full report prompt."""
    assets = build_visual_assets(ios_data, android_data, platforms)
    app_urls = app_urls or {}

    if keywords:
        target_keywords = ', '.join(keywords)
    else:
        target_keywords = "Automatically identify the best local keywords based on the category, niche, and market."

    url_lines = '\n'.join(
        f"- {label}: {app_urls[platform]}"
        for platform, label in (('ios', 'iOS'), ('android', 'Android'))
        if app_urls.get(platform)
    )

    return f"""You are a SENIOR ASO (App Store Optimization) consultant with 15+ years of experience generating ULTRA-DETAILED, PROFESSIONAL strategic reports to maximize the conversion rate of the app "{app_name}" on {' and '.join(platforms)} in the {country} market.

**REPORT LANGUAGE:** The report must be written in {language}.

**NICHE DETECTION:**
{niche_context(niche, category)}

**CRITICAL INSTRUCTION:** ALL sections (cultural context, cities, language, local objects, etc.) MUST be adapted to the app's niche ({niche}). Do NOT use generic examples.

{build_app_data_section(ios_data, android_data, app_name, category)}
{build_assets_section(assets)}
{build_competitor_section(competitor_data)}
**TARGET KEYWORDS:** {target_keywords}

**KEYWORD GENERATION REQUIREMENTS:**
- Generate 50-100 keywords and long-tail keywords
- Include niche-specific, location-based and long-tail (3-5 words) keywords
- Include keyword variations in the local language
- Estimate search volume and competition level for each keyword category

**APP URLS:**
{url_lines}

**INSTRUCTIONS:**
1. USE THE REAL EXTRACTED DATA above. Do not invent data; say when something is unavailable.
2. Analyze screenshots and colors: give 5-8 primary colors with RGB and HEX values and where each is used.
3. Provide ultra-specific local data for {country}, adapted to the {niche} niche: terminology, streets and landmarks, local objects, traditions and events, statistics with sources and links, regulations, currency and price format, cities, and language register (formal/informal forms).
4. For every local fact and recommendation, suggest a Pexels image search query (pexelsQuerySuggestion).
5. Generate 8-12 recommendations, 8-10 screenshot proposals, 5-7 A/B testing hypotheses.
6. When recommending icon changes, provide color palettes with RGB and HEX values, 3-5 variations, and a comparison with competitor icons.
7. All screenshot URLs and links must be real.

Respond ONLY with a JSON object in this exact shape:
{REPORT_JSON_FORMAT}
"""


# ============================================================================
# Gemini
# ============================================================================

def _gemini_model(api_key: str, temperature: float = 0.7, max_output_tokens: int = None):
    genai.configure(api_key=api_key)
    generation_config = {
        'temperature': temperature,
        'response_mime_type': 'application/json',
    }
    if max_output_tokens:
        generation_config['max_output_tokens'] = max_output_tokens
    return genai.GenerativeModel(GEMINI_MODEL, generation_config=generation_config)


def generate_report_with_gemini(prompt: str, api_key: str) -> dict:
    """
    Generate the ASO report.

    Returns:
        Dict with report (parsed dict or None) and error (str or None)
    """
    result = {'report': None, 'error': None}

    try:
        print(f"[ASO] Calling Gemini ({GEMINI_MODEL}), prompt length {len(prompt)}")
        with GENAI_LOCK:
            model = _gemini_model(api_key)
            response = model.generate_content(prompt)
        report = parse_llm_json(response.text)

        if report is None:
            result['error'] = 'Gemini did not return a valid JSON report'
        else:
            result['report'] = report

    except Exception as e:
        result['error'] = str(e)

    return result


def build_suggestion_prompt(app_data: dict) -> str:
    """Prompt asking for keywords, competitors and markets for one app."""
    def field(name):
        return app_data.get(name) or 'Not provided'

    return f"""You are an ASO (App Store Optimization) expert. Analyze the following app data and provide intelligent suggestions.

**APP DATA:**
- Name: {field('title')}
- Category: {field('category')}
- Description: {field('description')}
- Developer: {field('developer')}
- Rating: {field('rating')}
- Reviews: {field('reviews')}

**TASK:**
1. KEYWORDS (15-20): primary, long-tail, category-specific and competitor-brand combinations. For each: keyword, intent (informational, transactional, navigational), searchVolume (High/Medium/Low), competition (High/Medium/Low).
2. COMPETITORS (5-10): direct and indirect. For each: name, reason, and url if you can suggest a likely store URL.
3. MARKETS (3-5): countries with growth potential. For each: country, language, opportunity.
4. RECOMMENDATIONS: overall ASO strategy, category optimization, keyword strategy, market expansion.

Respond ONLY with JSON in this exact format:
{{
  "keywords": [{{"keyword": "", "intent": "", "searchVolume": "", "competition": ""}}],
  "competitors": [{{"name": "", "reason": "", "url": ""}}],
  "markets": [{{"country": "", "language": "", "opportunity": ""}}],
  "recommendations": ""
}}"""


def generate_suggestions(app_data: dict, api_key: str) -> dict:
    """
    Generate profile suggestions with Gemini.

    Unparseable output falls back to empty lists with the raw text kept
    as the recommendations.
    """
    with GENAI_LOCK:
        model = _gemini_model(api_key, max_output_tokens=2000)
        response = model.generate_content(build_suggestion_prompt(app_data))
    text = response.text.strip()

    parsed = parse_llm_json(text)
    if parsed is None:
        print("[AutoSuggest] Could not parse JSON from model output")
        parsed = {'keywords': [], 'competitors': [], 'markets': [], 'recommendations': text}

    return {
        'ai_keywords': parsed.get('keywords') or [],
        'ai_competitors': parsed.get('competitors') or [],
        'ai_markets': parsed.get('markets') or [],
        'recommendations': parsed.get('recommendations') or '',
    }


# ============================================================================
# API key checks
# ============================================================================

def check_gemini_key(api_key: str) -> dict:
    """Verify a Gemini key by listing models."""
    try:
        with GENAI_LOCK:
            genai.configure(api_key=api_key)
            models = list(genai.list_models())
        return {'status': 'success', 'message': f"API key is valid ({len(models)} models available)"}
    except (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied,
            google_exceptions.InvalidArgument):
        return {'status': 'error', 'message': 'Invalid API key. Please check your key and try again.'}
    except google_exceptions.ResourceExhausted:
        return {'status': 'error', 'message': 'Rate limit or quota exceeded. Try again later.'}
    except Exception as e:
        return {'status': 'error', 'message': f"Could not verify API key: {e}"}


def check_pexels_key(api_key: str) -> dict:
    """Verify a Pexels key with a one-result search."""
    try:
        response = requests.get(
            PEXELS_SEARCH_URL,
            params={'query': 'test', 'per_page': 1},
            headers={'Authorization': api_key},
            timeout=10
        )
    except requests.exceptions.RequestException as e:
        return {'status': 'error', 'message': f"Could not reach Pexels: {e}"}

    if response.status_code == 200:
        return {'status': 'success', 'message': 'API key is valid and working'}
    if response.status_code in (401, 403):
        return {'status': 'error', 'message': 'Invalid API key. Please check your key and try again.'}
    if response.status_code == 429:
        return {'status': 'error', 'message': 'Rate limit exceeded. Try again later.'}
    return {'status': 'error', 'message': f"Pexels API error: HTTP {response.status_code}"}


# ============================================================================
# HTTP entry points
# ============================================================================

@functions_framework.http
def extract_app_data(request):
    """
    Extract one store listing.

    Expected JSON input:
    {
        "url": "https://apps.apple.com/us/app/example/id123",
        "platform": "ios"
    }
    """
    if request.method == 'OPTIONS':
        return ('', 204, PREFLIGHT_HEADERS)

    headers = CORS_HEADERS

    try:
        request_json = request.get_json(silent=True) or {}
        url = request_json.get('url')
        platform = request_json.get('platform')

        if not url or not platform:
            return (json.dumps({'error': 'Missing url or platform'}), 400, headers)

        if platform not in PLATFORMS:
            return (json.dumps({'error': "Invalid platform. Must be 'ios' or 'android'"}), 400, headers)

        print(f"[ExtractAppData] Extracting data from: {url} ({platform})")
        data = extract_app_store_data(url, platform)

        return (json.dumps({
            'success': True,
            'data': {
                'title': data.title,
                'description': data.description,
                'subtitle': data.subtitle,
                'category': data.category,
                'icon': data.icon_url,
                'rating': data.rating,
                'reviews': data.reviews_count,
                'screenshots': list(data.screenshots),
                'developer': data.developer,
            }
        }), 200, headers)

    except Exception as e:
        print(f"[ExtractAppData] Error: {e}")
        return (json.dumps({
            'error': {
                'stage': 'processing',
                'message': str(e),
                'recoverable': False
            }
        }), 500, headers)


@functions_framework.http
def generate_aso_report(request):
    """
    Main report entry point.

    Expected JSON input:
    {
        "app_name": "ParkEasy",
        "platforms": ["ios", "android"],
        "app_urls": {"ios": "https://apps.apple.com/...", "android": "https://play.google.com/..."},
        "country": "Italy",
        "language": "English",
        "category": "Navigation",
        "keywords": ["parking", "ztl"],
        "competitors": [{"name": "EasyPark", "ios_url": "...", "android_url": "..."}],
        "enrich_images": false
    }
    """
    if request.method == 'OPTIONS':
        return ('', 204, PREFLIGHT_HEADERS)

    headers = CORS_HEADERS

    try:
        request_json = request.get_json(silent=True) or {}

        gemini_key = request_json.get('gemini_api_key') or GEMINI_API_KEY
        pexels_key = request_json.get('pexels_api_key') or PEXELS_API_KEY

        if not gemini_key:
            return (json.dumps({
                'error': 'Missing GEMINI_API_KEY. Please configure it in Settings.'
            }), 500, headers)

        app_name = request_json.get('app_name')
        platforms = request_json.get('platforms')
        country = request_json.get('country')
        language = request_json.get('language')
        category = request_json.get('category')

        if not app_name or not platforms or not country or not language or not category:
            return (json.dumps({'error': 'Missing required fields'}), 400, headers)

        if not isinstance(platforms, list) or any(p not in PLATFORMS for p in platforms):
            return (json.dumps({'error': "Invalid platforms. Each must be 'ios' or 'android'"}), 400, headers)

        keywords = request_json.get('keywords') or []
        if not isinstance(keywords, list) or not all(isinstance(kw, str) for kw in keywords):
            return (json.dumps({'error': 'Invalid keywords. Must be a list of strings'}), 400, headers)

        app_urls = request_json.get('app_urls') or {}
        keywords = keywords[:MAX_KEYWORDS]
        competitors = request_json.get('competitors') or []

        print(f"[ASO] Starting report generation for: {app_name} ({country}, {language})")

        ios_data, android_data, competitor_data = extract_app_and_competitors(app_urls, competitors)

        primary = ios_data or android_data
        niche = detect_niche(
            primary.title if primary and primary.title else app_name,
            primary.description if primary else '',
            category
        )

        prompt = build_report_prompt(
            app_name, platforms, country, language, category, keywords,
            app_urls, ios_data, android_data, competitor_data, niche
        )

        extracted = {
            'ios': ios_data.to_dict() if ios_data else None,
            'android': android_data.to_dict() if android_data else None,
            'competitors': [comp.to_dict() for comp in competitor_data],
        }

        ai_result = generate_report_with_gemini(prompt, gemini_key)
        report = ai_result['report']

        if report is None:
            return (json.dumps({
                'success': False,
                'niche': niche,
                'extracted': extracted,
                'error': {
                    'stage': 'ai_analysis',
                    'message': ai_result['error'],
                    'recoverable': True
                },
                'processed_at': _processed_at(),
            }), 200, headers)

        if not report.get('appVisualAssets'):
            report['appVisualAssets'] = build_visual_assets(ios_data, android_data, platforms)

        errors = []

        validation = validate_aso_report(report)
        if not validation['valid']:
            errors.extend(
                {'stage': 'validation', 'message': message, 'recoverable': True}
                for message in validation['errors']
            )
            print(f"[ASO] Validation errors: {validation['errors']}")

        enriched_images = 0
        if request_json.get('enrich_images') and pexels_key:
            try:
                report, enriched_images = enrich_report(
                    report, country, pexels_key, delay_seconds=PEXELS_DELAY_SECONDS
                )
            except Exception as e:
                errors.append({'stage': 'enrichment', 'message': str(e), 'recoverable': True})

        response_data = {
            'success': True,
            'app_name': app_name,
            'country': country,
            'niche': niche,
            'report': report,
            'extracted': extracted,
            'validation': {
                'valid': validation['valid'],
                'errors': validation['errors'],
                'warnings': validation['warnings'],
            },
            'image_lookups': enriched_images,
            'processed_at': _processed_at(),
        }

        if errors:
            response_data['errors'] = errors

        return (json.dumps(response_data), 200, headers)

    except Exception as e:
        print(f"[ASO] API Error: {e}")
        return (json.dumps({
            'error': {
                'stage': 'processing',
                'message': str(e),
                'recoverable': False
            }
        }), 500, headers)


@functions_framework.http
def auto_suggest(request):
    """
    Suggest keywords, competitors and markets for an app profile.

    Expected JSON input:
    {
        "app_data": {"title": "...", "category": "...", "description": "...", "developer": "...",
                     "rating": 4.5, "reviews": 1200}
    }
    """
    if request.method == 'OPTIONS':
        return ('', 204, PREFLIGHT_HEADERS)

    headers = CORS_HEADERS

    try:
        request_json = request.get_json(silent=True) or {}
        app_data = request_json.get('app_data')

        if not app_data:
            return (json.dumps({'error': 'Missing app data'}), 400, headers)

        gemini_key = request_json.get('gemini_api_key') or GEMINI_API_KEY
        if not gemini_key:
            return (json.dumps({'error': 'Missing GEMINI_API_KEY'}), 500, headers)

        print(f"[AutoSuggest] Generating suggestions for: {app_data.get('title')}")
        suggestions = generate_suggestions(app_data, gemini_key)

        print(f"[AutoSuggest] Suggestions generated: keywords={len(suggestions['ai_keywords'])}, "
              f"competitors={len(suggestions['ai_competitors'])}, markets={len(suggestions['ai_markets'])}")

        return (json.dumps({'success': True, 'suggestions': suggestions}), 200, headers)

    except Exception as e:
        print(f"[AutoSuggest] Error: {e}")
        return (json.dumps({
            'error': {
                'stage': 'ai_analysis',
                'message': str(e),
                'recoverable': False
            }
        }), 500, headers)


@functions_framework.http
def check_api_status(request):
    """
    Check user-supplied API keys.

    Expected JSON input:
    {
        "gemini_api_key": "...",
        "pexels_api_key": "..."
    }
    """
    if request.method == 'OPTIONS':
        return ('', 204, PREFLIGHT_HEADERS)

    headers = CORS_HEADERS

    try:
        request_json = request.get_json(silent=True) or {}
        results = {}

        gemini_key = request_json.get('gemini_api_key')
        if gemini_key:
            print(f"[API Status] Checking Gemini key {_masked(gemini_key)}")
            results['gemini'] = check_gemini_key(gemini_key)

        pexels_key = request_json.get('pexels_api_key')
        if pexels_key:
            print(f"[API Status] Checking Pexels key {_masked(pexels_key)}")
            results['pexels'] = check_pexels_key(pexels_key)

        return (json.dumps(results), 200, headers)

    except Exception as e:
        print(f"[API Status] Error: {e}")
        return (json.dumps({
            'error': {
                'stage': 'processing',
                'message': str(e),
                'recoverable': False
            }
        }), 500, headers)


@functions_framework.http
def app_health_score(request):
    """
    Score a saved app profile.

    When app_url/platform are given, the listing is scraped and its
    metadata fills any field the profile does not already carry.

    Expected JSON input:
    {
        "profile": {"metadata": {...}, "keywords": [...], "competitors": [...],
                    "auto_suggestions": {"ai_keywords": [...], "ai_competitors": [...]}},
        "app_url": "optional store URL",
        "platform": "ios"
    }
    """
    if request.method == 'OPTIONS':
        return ('', 204, PREFLIGHT_HEADERS)

    headers = CORS_HEADERS

    try:
        request_json = request.get_json(silent=True) or {}
        profile = request_json.get('profile')

        if not isinstance(profile, dict):
            return (json.dumps({'error': 'Missing profile'}), 400, headers)

        app_url = request_json.get('app_url')
        platform = request_json.get('platform')
        extracted = None

        if app_url:
            if platform not in PLATFORMS:
                return (json.dumps({'error': "Invalid platform. Must be 'ios' or 'android'"}), 400, headers)

            print(f"[HealthScore] Extracting metadata from: {app_url} ({platform})")
            data = extract_app_store_data(app_url, platform)
            extracted = data.to_dict()

            metadata = profile_metadata_from_app_data(data)
            saved = profile.get('metadata') or {}
            metadata.update({key: value for key, value in saved.items() if value is not None})
            profile = dict(profile, metadata=metadata)

        scores = calculate_health_score(profile)
        print(f"[HealthScore] Overall score: {scores['overall_score']}")

        return (json.dumps({
            'success': True,
            'scores': scores,
            'extracted': extracted,
        }), 200, headers)

    except Exception as e:
        print(f"[HealthScore] Error: {e}")
        return (json.dumps({
            'error': {
                'stage': 'processing',
                'message': str(e),
                'recoverable': False
            }
        }), 500, headers)
