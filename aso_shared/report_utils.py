"""
ASO report utilities for ASO Report Generator.

Parses and validates the structured JSON report returned by Gemini.
All required sections must be present, of the right shape, and non-empty.
"""

import json
import re
from typing import Dict, List, Optional

# Required top-level report sections and the container type each must have
REQUIRED_REPORT_SECTIONS = {
    'hypothesis': list,
    'culturalInsights': dict,
    'competitorAnalysis': list,
    'recommendations': list,
    'keywords': list,
}

# Fields every culturalInsights object must carry
REQUIRED_CULTURAL_FIELDS = [
    'urbanMobility',
    'regulations',
    'lifestyle',
    'language',
    'seasonality',
    'regionalFocus',
]

_FENCED_JSON_RE = re.compile(r'```(?:json)?\s*(\{[\s\S]*\})\s*```')
_BRACED_JSON_RE = re.compile(r'\{[\s\S]*\}')


def parse_llm_json(text: str) -> Optional[Dict]:
    """
    Parse a JSON object out of raw model output.

    Tries, in order:
    1. The whole text as JSON
    2. A ```json fenced block
    3. The outermost {...} span

    Returns:
        The parsed dict, or None if nothing parses to an object
    """
    if not text:
        return None

    candidates = [text.strip()]
    fenced = _FENCED_JSON_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    braced = _BRACED_JSON_RE.search(text)
    if braced:
        candidates.append(braced.group())

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    return None


def validate_cultural_insights(insights: Optional[Dict]) -> Dict:
    """
    Validate that culturalInsights carries every required text field.

    Returns:
        Dict with:
            valid: bool
            missing: list - Field names that are missing or empty
            errors: list
    """
    result = {
        'valid': True,
        'missing': [],
        'errors': []
    }

    if not isinstance(insights, dict):
        result['valid'] = False
        result['missing'] = REQUIRED_CULTURAL_FIELDS.copy()
        result['errors'].append('culturalInsights is missing or not an object')
        return result

    for field_name in REQUIRED_CULTURAL_FIELDS:
        value = insights.get(field_name)
        if not isinstance(value, str) or not value.strip():
            result['missing'].append(field_name)
            result['errors'].append(f"culturalInsights.{field_name} is missing or empty")
            result['valid'] = False

    return result


def validate_aso_report(report: Optional[Dict], required_sections: List[str] = None) -> Dict:
    """
    Validate a generated ASO report.

    Args:
        report: Parsed report dict from Gemini
        required_sections: Section names to require (uses defaults if None)

    Returns:
        Dict with:
            valid: bool - True if all required sections are present and non-empty
            missing: list - Section names that are missing
            empty: list - Section names that are present but empty
            wrong_type: list - Section names with the wrong container type
            errors: list - Error messages
            warnings: list - Non-fatal issues
    """
    if required_sections is None:
        required_sections = list(REQUIRED_REPORT_SECTIONS)

    result = {
        'valid': True,
        'missing': [],
        'empty': [],
        'wrong_type': [],
        'errors': [],
        'warnings': []
    }

    if not report:
        result['valid'] = False
        result['errors'].append('Report is missing or empty')
        result['missing'] = list(required_sections)
        return result

    for section_name in required_sections:
        if section_name not in report or report[section_name] is None:
            result['missing'].append(section_name)
            result['errors'].append(f"Missing required section: {section_name}")
            result['valid'] = False
            continue

        content = report[section_name]
        expected_type = REQUIRED_REPORT_SECTIONS.get(section_name)
        if expected_type and not isinstance(content, expected_type):
            result['wrong_type'].append(section_name)
            result['errors'].append(
                f"Section {section_name} must be a {expected_type.__name__}, got {type(content).__name__}"
            )
            result['valid'] = False
        elif not content:
            result['empty'].append(section_name)
            result['errors'].append(f"Section is empty: {section_name}")
            result['valid'] = False

    # Cultural insight fields are reported as warnings; the section itself is checked above
    if isinstance(report.get('culturalInsights'), dict):
        cultural = validate_cultural_insights(report['culturalInsights'])
        result['warnings'].extend(cultural['errors'])

    if len(report.get('recommendations') or []) < 8:
        result['warnings'].append('Fewer than 8 recommendations')

    return result
