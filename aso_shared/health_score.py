"""
ASO health score for saved app profiles.

Four 0-100 point counters (metadata, keyword coverage, competitor
strength, visual assets) and their rounded mean.
"""

from typing import Dict

from .store_extractor import AppStoreData


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def calculate_health_score(profile: Dict) -> Dict[str, int]:
    """
    Score an app profile.

    Args:
        profile: Dict with optional 'metadata', 'keywords', 'competitors'
                 and 'auto_suggestions' keys

    Returns:
        Dict with metadata_score, keyword_coverage_score,
        competitor_strength_score, visual_assets_score, overall_score
    """
    metadata = profile.get('metadata') or {}
    keywords = profile.get('keywords') or []
    competitors = profile.get('competitors') or []
    suggestions = profile.get('auto_suggestions') or {}
    ai_keywords = suggestions.get('ai_keywords') or []
    ai_competitors = suggestions.get('ai_competitors') or []
    screenshots = metadata.get('screenshots') or []

    metadata_score = 0
    if metadata.get('description_short'):
        metadata_score += 20
    if metadata.get('description_long'):
        metadata_score += 20
    if metadata.get('icon'):
        metadata_score += 20
    if metadata.get('rating') is not None:
        metadata_score += 20
    if len(screenshots) >= 3:
        metadata_score += 20

    keyword_coverage_score = 0
    for threshold in (1, 3, 5):
        if len(keywords) >= threshold:
            keyword_coverage_score += 20
    if ai_keywords:
        keyword_coverage_score += 20
    if len(ai_keywords) >= 10:
        keyword_coverage_score += 20

    competitor_strength_score = 0
    for threshold in (1, 3, 5):
        if len(competitors) >= threshold:
            competitor_strength_score += 25
    if ai_competitors:
        competitor_strength_score += 25

    visual_assets_score = 0
    if metadata.get('icon'):
        visual_assets_score += 30
    if len(screenshots) >= 1:
        visual_assets_score += 20
    if len(screenshots) >= 3:
        visual_assets_score += 25
    if len(screenshots) >= 5:
        visual_assets_score += 25

    overall_score = _round_half_up(
        (metadata_score + keyword_coverage_score + competitor_strength_score + visual_assets_score) / 4
    )

    return {
        'metadata_score': metadata_score,
        'keyword_coverage_score': keyword_coverage_score,
        'competitor_strength_score': competitor_strength_score,
        'visual_assets_score': visual_assets_score,
        'overall_score': overall_score,
    }


def profile_metadata_from_app_data(data: AppStoreData) -> Dict:
    """Map an extraction record into the profile 'metadata' shape."""
    metadata = {
        'icon': data.icon_url,
        'rating': data.rating,
        'reviews': data.reviews_count,
        'description_short': data.subtitle,
        'description_long': data.description or None,
        'screenshots': list(data.screenshots),
        'developer': data.developer,
    }
    return {key: value for key, value in metadata.items() if value is not None}
