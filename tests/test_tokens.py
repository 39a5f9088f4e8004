"""
Tests for the bearer token lifecycle
"""

import jwt
import pytest

from errors import InvalidToken
from tokens import TokenService, ACCESS, REFRESH

USER_ID = '123e4567-e89b-12d3-a456-426614174000'
SECRET = 'flowtime-test-secret-key-0123456789abcdef'


def decode(token):
    return jwt.decode(token, SECRET, algorithms=['HS256'])


class TestIssue:
    def test_issue_signs_access_and_refresh_pair(self, token_service):
        tokens = token_service.issue({'id': USER_ID, 'email': 'a@b.com'})

        assert tokens['expires_in'] == 3600
        access = decode(tokens['access_token'])
        refresh = decode(tokens['refresh_token'])
        assert access['user_id'] == USER_ID
        assert access['sub'] == USER_ID
        assert access['type'] == ACCESS
        assert access['email'] == 'a@b.com'
        assert refresh['user_id'] == USER_ID
        assert refresh['type'] == REFRESH

    def test_token_lifetimes(self, token_service):
        tokens = token_service.issue({'id': USER_ID, 'email': 'a@b.com'})
        access = decode(tokens['access_token'])
        refresh = decode(tokens['refresh_token'])

        assert access['exp'] - access['iat'] == 3600
        assert refresh['exp'] - refresh['iat'] == 30 * 24 * 3600


class TestVerify:
    def test_verify_access_token(self, token_service):
        claims = token_service.verify(token_service.create_access_token(USER_ID, 'a@b.com'))
        assert claims['user_id'] == USER_ID

    def test_refresh_token_is_not_an_access_token(self, token_service):
        with pytest.raises(InvalidToken):
            token_service.verify(token_service.create_refresh_token(USER_ID))

    def test_expired_token_rejected(self):
        expired = TokenService(SECRET, access_expires=-60)
        with pytest.raises(InvalidToken, match='expired'):
            expired.verify(expired.create_access_token(USER_ID))

    def test_foreign_signature_rejected(self, token_service):
        forged = TokenService('another-secret-key-0123456789abcdef').create_access_token(USER_ID)
        with pytest.raises(InvalidToken):
            token_service.verify(forged)

    def test_tampered_signature_rejected_even_with_decodable_subject(self, token_service):
        header, payload, signature = token_service.create_access_token(USER_ID).split('.')
        tampered = f"{header}.{payload}.{'A' * len(signature)}"

        assert jwt.decode(tampered, options={'verify_signature': False})['user_id'] == USER_ID
        with pytest.raises(InvalidToken):
            token_service.verify(tampered)

    def test_garbage_rejected(self, token_service):
        with pytest.raises(InvalidToken):
            token_service.verify('not-a-jwt')


class TestRefresh:
    def test_refresh_mints_access_token_for_same_subject(self, token_service):
        refresh_token = token_service.create_refresh_token(USER_ID)
        result = token_service.refresh(refresh_token)

        assert result['refresh_token'] == refresh_token
        assert result['expires_in'] == 3600
        claims = token_service.verify(result['access_token'])
        assert claims['user_id'] == USER_ID
        assert claims['type'] == ACCESS

    def test_refresh_with_access_token_fails(self, token_service):
        with pytest.raises(InvalidToken, match='Invalid refresh token'):
            token_service.refresh(token_service.create_access_token(USER_ID))

    def test_refresh_with_expired_token_fails(self):
        expired = TokenService(SECRET, refresh_expires=-60)
        with pytest.raises(InvalidToken):
            expired.refresh(expired.create_refresh_token(USER_ID))


def test_revoke_is_a_no_op(token_service):
    token = token_service.create_access_token(USER_ID)
    assert token_service.revoke(token) is True
    assert token_service.verify(token)['user_id'] == USER_ID
