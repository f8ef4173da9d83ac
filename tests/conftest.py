"""
Shared pytest fixtures for ASO Report Generator tests.
"""

import pytest
import sys
import importlib.util
from pathlib import Path

# Project root for finding Cloud Function modules
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def _load_module_from_path(module_name: str, file_path: Path):
    """Load a module from a specific file path."""
    spec = importlib.util.spec_from_file_location(module_name, file_path)
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module


# Load Cloud Function modules with unique names at module load time
_report_generator_module = _load_module_from_path(
    'report_generator_main',
    PROJECT_ROOT / 'report-generator' / 'main.py'
)

_image_enricher_module = _load_module_from_path(
    'image_enricher_main',
    PROJECT_ROOT / 'image-enricher' / 'main.py'
)


# ============================================================================
# Cloud Function module fixtures
# ============================================================================

@pytest.fixture
def report_generator():
    """Returns the loaded report-generator module."""
    return _report_generator_module


@pytest.fixture
def image_enricher():
    """Returns the loaded image-enricher module."""
    return _image_enricher_module


@pytest.fixture
def extract_app_data():
    """Returns extract_app_data entry point from report-generator."""
    return _report_generator_module.extract_app_data


@pytest.fixture
def generate_aso_report():
    """Returns generate_aso_report entry point from report-generator."""
    return _report_generator_module.generate_aso_report


@pytest.fixture
def auto_suggest():
    """Returns auto_suggest entry point from report-generator."""
    return _report_generator_module.auto_suggest


@pytest.fixture
def check_api_status():
    """Returns check_api_status entry point from report-generator."""
    return _report_generator_module.check_api_status


@pytest.fixture
def app_health_score():
    """Returns app_health_score entry point from report-generator."""
    return _report_generator_module.app_health_score


@pytest.fixture
def enrich_with_pexels():
    """Returns enrich_with_pexels entry point from image-enricher."""
    return _image_enricher_module.enrich_with_pexels


# ============================================================================
# Sample store pages
# ============================================================================

@pytest.fixture
def ios_listing_html():
    """A trimmed-down App Store listing page."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
        <title>ParkEasy on the App Store</title>
        <meta property="og:title" content="ParkEasy - Smart Parking">
        <meta property="og:description" content="Find parking fast">
        <meta property="og:image" content="https://is1-ssl.mzstatic.com/image/thumb/AppIcon-1x.png/1200x630wa.png">
        <meta name="description" content="Meta description of ParkEasy">
        <script type="application/ld+json">
        {"@type": "SoftwareApplication", "aggregateRating": {"ratingValue": 4.7, "reviewCount": 1532},
         "applicationCategory": "Navigation"}
        </script>
    </head>
    <body>
        <header>
            <h1 class="product-header__title app-header__title">ParkEasy <span class="badge">4+</span></h1>
            <h2 class="product-header__subtitle app-header__subtitle">Pay parking <b>in seconds</b></h2>
            <a class="link" href="https://apps.apple.com/us/developer/parkeasy-srl/id111">ParkEasy S.r.l.</a>
            <a class="link" href="https://apps.apple.com/us/genre/ios-navigation/id6010">Navigation</a>
        </header>
        <section>
            <div class="section__description"><p>Park anywhere in <i>Italy</i>.</p></div>
        </section>
        <img src="https://is1-ssl.mzstatic.com/image/thumb/shot1.png">
        <img src="https://is2-ssl.mzstatic.com/image/thumb/shot2.png">
        <img src="https://example.com/not-a-screenshot.png">
    </body>
    </html>
    """


@pytest.fixture
def android_listing_html():
    """A trimmed-down Google Play listing page."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
        <title>ParkEasy - Apps on Google Play</title>
        <meta property="og:title" content="ParkEasy - Apps on Google Play">
        <meta property="og:description" content="OG description of ParkEasy">
        <script type="application/ld+json">
        {"@type": "SoftwareApplication", "author": "ParkEasy S.r.l.",
         "aggregateRating": {"ratingValue": "4.3", "ratingCount": "9000"}}
        </script>
    </head>
    <body>
        <h1 itemprop="name"><span>ParkEasy</span></h1>
        <img itemprop="image" src="https://play-lh.googleusercontent.com/icon-512" alt="Icon image">
        <a itemprop="genre" href="/store/apps/category/MAPS_AND_NAVIGATION">Maps &amp; Navigation</a>
        <div jsname="sngebd">Pay for parking<br>from your phone.</div>
        <span>2,048 reviews</span>
        <img src="https://play-lh.googleusercontent.com/shot-a">
        <img src="https://play-lh.googleusercontent.com/shot-b">
    </body>
    </html>
    """


@pytest.fixture
def og_title_only_html():
    """Page carrying nothing but an og:title."""
    return '<meta property="og:title" content="Sample App"/>'


# ============================================================================
# Report fixtures
# ============================================================================

@pytest.fixture
def sample_report():
    """Minimal report that passes validation."""
    return {
        'hypothesis': [{'title': 'Local hero shot', 'description': 'd', 'expectedOutcome': '+10% CVR'}],
        'culturalInsights': {
            'urbanMobility': 'Scooters everywhere',
            'regulations': 'ZTL zones',
            'lifestyle': 'Aperitivo',
            'language': 'Informal tu',
            'seasonality': 'August holidays',
            'regionalFocus': 'Milan and Rome',
            'localData': [
                {'fact': 'Milan residents commute by scooter daily', 'relevance': 'Mobility habits matter'},
            ],
        },
        'competitorAnalysis': [{'name': 'EasyPark', 'valueProp': 'v', 'visualPatterns': [], 'comparison': 'c'}],
        'recommendations': [
            {
                'title': 'Show Piazza Duomo',
                'insight': 'Landmarks build trust',
                'visualElements': [],
                'copySuggestions': [],
                'localElements': ['tram giallo'],
            },
        ],
        'keywords': [{'category': 'core', 'terms': ['parcheggio']}],
    }


@pytest.fixture
def mock_flask_request():
    """Factory for creating mock Flask request objects."""
    class MockRequest:
        def __init__(self, json_data=None, method='POST'):
            self._json = json_data or {}
            self.method = method
            self.data = b''

        def get_json(self, force=False, silent=False):
            return self._json

    return MockRequest
