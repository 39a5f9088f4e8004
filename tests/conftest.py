"""
Shared fixtures for FlowTime backend tests
"""

from urllib.parse import urlsplit

import pytest
import requests

from config import TestingConfig
from tokens import TokenService
from auth_service.auth_service import AuthService
from flowtime_service.flowtime_service import FlowTimeService
from api_gateway import APIGateway

USER_ID = '123e4567-e89b-12d3-a456-426614174000'
OTHER_USER_ID = '9b2f4c1e-0000-4000-8000-000000000002'


@pytest.fixture
def token_service():
    return TokenService(TestingConfig.JWT_SECRET_KEY)


@pytest.fixture
def auth_service():
    return AuthService(TestingConfig)


@pytest.fixture
def auth_client(auth_service):
    return auth_service.app.test_client()


@pytest.fixture
def flowtime_service(tmp_path):
    return FlowTimeService(TestingConfig, FLOWTIME_DATABASE=str(tmp_path / 'flowtime.db'))


@pytest.fixture
def flowtime_client(flowtime_service):
    return flowtime_service.app.test_client()


@pytest.fixture
def gateway():
    return APIGateway(TestingConfig)


@pytest.fixture
def gateway_client(gateway):
    return gateway.app.test_client()


@pytest.fixture
def auth_headers(token_service):
    token = token_service.create_access_token(USER_ID, 'a@b.com')
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def other_headers(token_service):
    token = token_service.create_access_token(OTHER_USER_ID, 'c@d.com')
    return {'Authorization': f'Bearer {token}'}


class UpstreamResponse:
    """Minimal stand-in for requests.Response built from a Flask test response"""

    def __init__(self, response):
        self.status_code = response.status_code
        self.content = response.get_data()
        self.headers = dict(response.headers)


@pytest.fixture
def upstreams(auth_client, flowtime_client):
    """Map of netloc -> Flask test client standing in for the real services"""
    return {
        urlsplit(TestingConfig.AUTH_SERVICE_URL).netloc: auth_client,
        urlsplit(TestingConfig.FLOWTIME_SERVICE_URL).netloc: flowtime_client,
    }


@pytest.fixture
def dispatch(upstreams):
    """Replacement for requests.request that routes to in-process services"""
    def _dispatch(method, url, headers=None, data=None, timeout=None, allow_redirects=True):
        parts = urlsplit(url)
        client = upstreams.get(parts.netloc)
        if client is None:
            raise requests.exceptions.ConnectionError(f'Connection refused: {url}')
        response = client.open(
            parts.path,
            method=method,
            query_string=parts.query,
            headers=headers,
            data=data,
        )
        return UpstreamResponse(response)
    return _dispatch
