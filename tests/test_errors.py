"""
Tests for the shared JSON error handling
"""

import pytest

from errors import Conflict, RateLimitExceeded, ValidationError


@pytest.fixture(params=['auth_service', 'flowtime_service', 'gateway'])
def service_app(request):
    return request.getfixturevalue(request.param).app


class TestErrorHandlers:
    def test_uncaught_exception_is_generic_500(self, service_app):
        def explode():
            raise RuntimeError('secret detail: db password is hunter2')

        service_app.add_url_rule('/explode', 'explode', explode)
        response = service_app.test_client().get('/explode')

        assert response.status_code == 500
        assert response.get_json() == {'error': 'Internal server error'}
        assert b'secret detail' not in response.get_data()
        assert b'hunter2' not in response.get_data()

    def test_service_error_carries_its_status(self, service_app):
        def conflict():
            raise Conflict('Session already completed')

        service_app.add_url_rule('/conflict', 'conflict', conflict)
        response = service_app.test_client().get('/conflict')

        assert response.status_code == 409
        assert response.get_json() == {'error': 'Session already completed'}

    def test_rate_limit_error_sets_retry_after(self, service_app):
        def limited():
            raise RateLimitExceeded(retry_after=7)

        service_app.add_url_rule('/limited', 'limited', limited)
        response = service_app.test_client().get('/limited')

        assert response.status_code == 429
        assert response.get_json() == {'error': 'Rate limit exceeded'}
        assert response.headers['Retry-After'] == '7'

    def test_method_not_allowed_is_json(self, flowtime_client):
        response = flowtime_client.post('/health')
        assert response.status_code == 405
        assert response.get_json() == {'error': 'Method not allowed'}


def test_error_to_dict():
    assert ValidationError('Title is required').to_dict() == {'error': 'Title is required'}
    assert ValidationError('x').status_code == 400
