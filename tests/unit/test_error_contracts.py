"""
Error Contract Tests - Defines what is considered an ERROR.

These tests serve as guardrails to ensure consistent error handling.

Error Classification:
====================

FATAL ERRORS (HTTP 400/500):
- Missing required fields (url, platform, app_name, report...)
- Invalid platform values
- Missing Gemini key for AI endpoints
- Unhandled exceptions (stage "processing", recoverable False)

STAGE ERRORS (HTTP 200, success False, error field):
- Gemini call failed or returned no JSON report (stage "ai_analysis")

PARTIAL FAILURES (HTTP 200 with errors array):
- Report failed shape validation (stage "validation")
- Image enrichment failed (stage "enrichment")

NOT ERRORS:
- A store page that could not be fetched: extraction returns an empty
  record and the report is generated from user context alone
"""

import json
import pytest
from unittest.mock import patch

from aso_shared.store_extractor import AppStoreData

VALID_STAGES = ['processing', 'extraction', 'ai_analysis', 'validation', 'enrichment']


def _report_request(**overrides):
    body = {
        'app_name': 'ParkEasy',
        'platforms': ['ios'],
        'country': 'Italy',
        'language': 'English',
        'category': 'Navigation',
        'gemini_api_key': 'test-key',
    }
    body.update(overrides)
    return body


class TestExtractAppDataErrors:
    """Error contracts for extract_app_data."""

    def test_missing_url_is_fatal_error(self, mock_flask_request, extract_app_data):
        request = mock_flask_request(json_data={'platform': 'ios'})
        response, status_code, headers = extract_app_data(request)

        assert status_code == 400
        assert json.loads(response) == {'error': 'Missing url or platform'}

    def test_missing_platform_is_fatal_error(self, mock_flask_request, extract_app_data):
        request = mock_flask_request(json_data={'url': 'https://apps.apple.com/x'})
        response, status_code, headers = extract_app_data(request)

        assert status_code == 400

    def test_invalid_platform_is_fatal_error(self, mock_flask_request, extract_app_data):
        request = mock_flask_request(json_data={'url': 'https://example.com', 'platform': 'windows'})
        response, status_code, headers = extract_app_data(request)

        assert status_code == 400
        assert 'ios' in json.loads(response)['error']

    def test_failed_fetch_is_not_an_error(self, mock_flask_request, extract_app_data, report_generator):
        request = mock_flask_request(json_data={'url': 'https://apps.apple.com/x', 'platform': 'ios'})
        with patch.object(report_generator, 'extract_app_store_data', return_value=AppStoreData()):
            response, status_code, headers = extract_app_data(request)

        data = json.loads(response)
        assert status_code == 200
        assert data['success'] is True
        assert data['data']['title'] == ''
        assert data['data']['screenshots'] == []

    def test_unhandled_exception_is_not_recoverable(self, mock_flask_request, extract_app_data, report_generator):
        request = mock_flask_request(json_data={'url': 'https://apps.apple.com/x', 'platform': 'ios'})
        with patch.object(report_generator, 'extract_app_store_data', side_effect=RuntimeError('boom')):
            response, status_code, headers = extract_app_data(request)

        data = json.loads(response)
        assert status_code == 500
        assert data['error'] == {'stage': 'processing', 'message': 'boom', 'recoverable': False}

    def test_preflight(self, mock_flask_request, extract_app_data):
        response, status_code, headers = extract_app_data(mock_flask_request(method='OPTIONS'))
        assert status_code == 204
        assert headers['Access-Control-Allow-Origin'] == '*'


class TestGenerateAsoReportErrors:
    """Error contracts for generate_aso_report."""

    def test_missing_gemini_key_is_server_error(self, mock_flask_request, generate_aso_report, report_generator):
        request = mock_flask_request(json_data=_report_request(gemini_api_key=None))
        with patch.object(report_generator, 'GEMINI_API_KEY', None):
            response, status_code, headers = generate_aso_report(request)

        assert status_code == 500
        assert 'GEMINI_API_KEY' in json.loads(response)['error']

    @pytest.mark.parametrize('field', ['app_name', 'platforms', 'country', 'language', 'category'])
    def test_missing_required_field_is_fatal_error(self, field, mock_flask_request, generate_aso_report):
        request = mock_flask_request(json_data=_report_request(**{field: None}))
        response, status_code, headers = generate_aso_report(request)

        assert status_code == 400
        assert json.loads(response) == {'error': 'Missing required fields'}

    def test_invalid_platform_is_fatal_error(self, mock_flask_request, generate_aso_report):
        request = mock_flask_request(json_data=_report_request(platforms=['ios', 'windows']))
        response, status_code, headers = generate_aso_report(request)

        assert status_code == 400

    @pytest.mark.parametrize('keywords', ['parking', [1, 2], {'k': 'parking'}])
    def test_non_list_keywords_is_fatal_error(self, keywords, mock_flask_request, generate_aso_report,
                                              report_generator):
        request = mock_flask_request(json_data=_report_request(keywords=keywords))
        with patch.object(report_generator, 'generate_report_with_gemini') as generate:
            response, status_code, headers = generate_aso_report(request)

        assert status_code == 400
        assert 'keywords' in json.loads(response)['error']
        generate.assert_not_called()

    def test_ai_failure_is_stage_error(self, mock_flask_request, generate_aso_report, report_generator):
        request = mock_flask_request(json_data=_report_request())
        with patch.object(report_generator, 'generate_report_with_gemini',
                          return_value={'report': None, 'error': 'quota exceeded'}):
            response, status_code, headers = generate_aso_report(request)

        data = json.loads(response)
        assert status_code == 200
        assert data['success'] is False
        assert data['error'] == {'stage': 'ai_analysis', 'message': 'quota exceeded', 'recoverable': True}

    def test_invalid_report_is_partial_failure(self, mock_flask_request, generate_aso_report, report_generator):
        request = mock_flask_request(json_data=_report_request())
        with patch.object(report_generator, 'generate_report_with_gemini',
                          return_value={'report': {'hypothesis': []}, 'error': None}):
            response, status_code, headers = generate_aso_report(request)

        data = json.loads(response)
        assert status_code == 200
        assert data['success'] is True
        assert data['validation']['valid'] is False
        assert all(error['stage'] == 'validation' for error in data['errors'])

    def test_enrichment_failure_is_partial_failure(self, mock_flask_request, generate_aso_report,
                                                   report_generator, sample_report):
        request = mock_flask_request(json_data=_report_request(enrich_images=True, pexels_api_key='px'))
        with patch.object(report_generator, 'generate_report_with_gemini',
                          return_value={'report': sample_report, 'error': None}), \
                patch.object(report_generator, 'enrich_report', side_effect=RuntimeError('pexels down')):
            response, status_code, headers = generate_aso_report(request)

        data = json.loads(response)
        assert status_code == 200
        assert data['success'] is True
        assert data['errors'] == [{'stage': 'enrichment', 'message': 'pexels down', 'recoverable': True}]

    def test_unhandled_exception_is_not_recoverable(self, mock_flask_request, generate_aso_report, report_generator):
        request = mock_flask_request(json_data=_report_request())
        with patch.object(report_generator, 'extract_app_and_competitors', side_effect=RuntimeError('crash')):
            response, status_code, headers = generate_aso_report(request)

        assert status_code == 500
        assert json.loads(response)['error']['recoverable'] is False


class TestAutoSuggestErrors:
    """Error contracts for auto_suggest."""

    def test_missing_app_data_is_fatal_error(self, mock_flask_request, auto_suggest):
        response, status_code, headers = auto_suggest(mock_flask_request(json_data={}))

        assert status_code == 400
        assert json.loads(response) == {'error': 'Missing app data'}

    def test_missing_gemini_key_is_server_error(self, mock_flask_request, auto_suggest, report_generator):
        request = mock_flask_request(json_data={'app_data': {'title': 'ParkEasy'}})
        with patch.object(report_generator, 'GEMINI_API_KEY', None):
            response, status_code, headers = auto_suggest(request)

        assert status_code == 500

    def test_model_failure_is_ai_stage(self, mock_flask_request, auto_suggest, report_generator):
        request = mock_flask_request(json_data={'app_data': {'title': 'ParkEasy'}, 'gemini_api_key': 'k'})
        with patch.object(report_generator, 'generate_suggestions', side_effect=RuntimeError('model error')):
            response, status_code, headers = auto_suggest(request)

        assert status_code == 500
        assert json.loads(response)['error']['stage'] == 'ai_analysis'


class TestAppHealthScoreErrors:
    """Error contracts for app_health_score."""

    def test_missing_profile_is_fatal_error(self, mock_flask_request, app_health_score):
        response, status_code, headers = app_health_score(mock_flask_request(json_data={}))

        assert status_code == 400
        assert json.loads(response) == {'error': 'Missing profile'}

    def test_invalid_platform_is_fatal_error(self, mock_flask_request, app_health_score):
        request = mock_flask_request(json_data={'profile': {}, 'app_url': 'https://x', 'platform': 'web'})
        response, status_code, headers = app_health_score(request)

        assert status_code == 400

    def test_unhandled_exception_is_not_recoverable(self, mock_flask_request, app_health_score, report_generator):
        request = mock_flask_request(json_data={'profile': {}, 'app_url': 'https://x', 'platform': 'ios'})
        with patch.object(report_generator, 'extract_app_store_data', side_effect=RuntimeError('boom')):
            response, status_code, headers = app_health_score(request)

        assert status_code == 500
        assert json.loads(response)['error'] == {'stage': 'processing', 'message': 'boom', 'recoverable': False}


class TestEnrichWithPexelsErrors:
    """Error contracts for image-enricher."""

    def test_missing_report_is_fatal_error(self, mock_flask_request, enrich_with_pexels):
        response, status_code, headers = enrich_with_pexels(mock_flask_request(json_data={'country': 'Italy'}))

        assert status_code == 400
        assert json.loads(response) == {'error': 'Report is required'}

    def test_missing_key_skips_enrichment(self, mock_flask_request, enrich_with_pexels, image_enricher, sample_report):
        request = mock_flask_request(json_data={'report': sample_report, 'country': 'Italy'})
        with patch.object(image_enricher, 'PEXELS_API_KEY', None):
            response, status_code, headers = enrich_with_pexels(request)

        data = json.loads(response)
        assert status_code == 200
        assert data['skipped'] is True
        assert data['report'] == sample_report

    def test_unhandled_exception_is_enrichment_stage(self, mock_flask_request, enrich_with_pexels,
                                                     image_enricher, sample_report):
        request = mock_flask_request(json_data={'report': sample_report, 'pexels_api_key': 'px'})
        with patch.object(image_enricher, 'enrich_report', side_effect=RuntimeError('boom')):
            response, status_code, headers = enrich_with_pexels(request)

        assert status_code == 500
        assert json.loads(response)['error']['stage'] == 'enrichment'


class TestErrorShape:
    """All stage errors share one shape."""

    def test_error_must_have_stage_message_recoverable(self):
        for stage in VALID_STAGES:
            error = {'stage': stage, 'message': 'test', 'recoverable': True}
            assert set(error) == {'stage', 'message', 'recoverable'}
