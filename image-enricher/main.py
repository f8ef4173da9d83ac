"""
Image Enricher Cloud Function

Fills missing Pexels images in a generated ASO report.

Responsibilities:
- Walk cultural-insight facts, recommendations and benchmark comparisons
- Search Pexels for entries without an image
- Space lookups to respect the Pexels rate limit

Does NOT:
- Generate or validate reports (report-generator's job)
- Persist enriched reports (dashboard's job)
"""

import functions_framework
import os
import sys
import json
import traceback

# Add shared module to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
from aso_shared.image_enrichment import enrich_report, search_pexels_image

# Configuration
PEXELS_API_KEY = os.environ.get('PEXELS_API_KEY')  # Optional: per-request key takes precedence
PEXELS_DELAY_SECONDS = float(os.environ.get('PEXELS_DELAY_SECONDS', '2.0'))


def resolve_pexels_key(request_json):
    """Per-request key, else environment."""
    return request_json.get('pexels_api_key') or PEXELS_API_KEY


@functions_framework.http
def enrich_with_pexels(request):
    """
    Main Cloud Function entry point.

    Expected JSON input:
    {
        "report": {...generated ASO report...},
        "country": "Italy",
        "pexels_api_key": "optional"
    }
    """
    # Handle CORS preflight
    if request.method == 'OPTIONS':
        headers = {
            'Access-Control-Allow-Origin': '*',
            'Access-Control-Allow-Methods': 'POST',
            'Access-Control-Allow-Headers': 'Content-Type',
        }
        return ('', 204, headers)

    headers = {'Access-Control-Allow-Origin': '*'}

    try:
        request_json = request.get_json(force=True, silent=True) or {}

        report = request_json.get('report')
        country = request_json.get('country') or ''

        if not report:
            return (json.dumps({'error': 'Report is required'}), 400, headers)

        pexels_key = resolve_pexels_key(request_json)
        if not pexels_key:
            print("[Pexels] No API key provided, skipping enrichment")
            return (json.dumps({'report': report, 'skipped': True}), 200, headers)

        print(f"[Pexels] Starting enrichment with API key: {pexels_key[:10]}...")

        enriched, lookups = enrich_report(
            report,
            country,
            pexels_key,
            search=search_pexels_image,
            delay_seconds=PEXELS_DELAY_SECONDS
        )

        print(f"[Pexels] Enrichment done: {lookups} lookups")

        return (json.dumps({'report': enriched, 'lookups': lookups}), 200, headers)

    except Exception as e:
        error_trace = traceback.format_exc()
        print(f"[Pexels] Error enriching report: {str(e)}\n{error_trace}")
        return (json.dumps({
            'error': {
                'stage': 'enrichment',
                'message': 'Failed to enrich report with Pexels images',
                'recoverable': False
            }
        }), 500, headers)
