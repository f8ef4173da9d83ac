"""Shared utilities for ASO Report Generator."""

from .text_utils import (
    DESCRIPTION_MAX_LENGTH,
    TRUNCATION_MARKER,
    strip_tags,
    clean_text,
    truncate_description,
    clip,
    parse_float,
    parse_int,
)

from .store_extractor import (
    PLATFORMS,
    MAX_SCREENSHOTS,
    FETCH_TIMEOUT_SECONDS,
    BROWSER_HEADERS,
    PLATFORM_RULES,
    AppStoreData,
    fetch_app_store_page,
    first_match,
    collect_screenshots,
    extract_fields,
    extract_app_store_data,
)

from .report_utils import (
    REQUIRED_REPORT_SECTIONS,
    REQUIRED_CULTURAL_FIELDS,
    parse_llm_json,
    validate_cultural_insights,
    validate_aso_report,
)

from .image_enrichment import (
    PEXELS_SEARCH_URL,
    search_pexels_image,
    generate_pexels_query,
    find_place,
    find_zone,
    enrich_report,
)

from .health_score import (
    calculate_health_score,
    profile_metadata_from_app_data,
)

__all__ = [
    # Text utilities
    'DESCRIPTION_MAX_LENGTH',
    'TRUNCATION_MARKER',
    'strip_tags',
    'clean_text',
    'truncate_description',
    'clip',
    'parse_float',
    'parse_int',
    # Store extraction
    'PLATFORMS',
    'MAX_SCREENSHOTS',
    'FETCH_TIMEOUT_SECONDS',
    'BROWSER_HEADERS',
    'PLATFORM_RULES',
    'AppStoreData',
    'fetch_app_store_page',
    'first_match',
    'collect_screenshots',
    'extract_fields',
    'extract_app_store_data',
    # Report utilities
    'REQUIRED_REPORT_SECTIONS',
    'REQUIRED_CULTURAL_FIELDS',
    'parse_llm_json',
    'validate_cultural_insights',
    'validate_aso_report',
    # Image enrichment
    'PEXELS_SEARCH_URL',
    'search_pexels_image',
    'generate_pexels_query',
    'find_place',
    'find_zone',
    'enrich_report',
    # Health score
    'calculate_health_score',
    'profile_metadata_from_app_data',
]
