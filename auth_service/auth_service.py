#!/usr/bin/env python3
"""
FlowTime - Auth Service
Issues, verifies and refreshes bearer tokens for users held in memory.

Run from the repository root: python -m auth_service.auth_service
"""

from flask import Flask, request, jsonify, g
from flask_cors import CORS
import datetime
import logging
from functools import wraps

from config import get_config, configure_logging
from errors import Unauthenticated, ValidationError, NotFound, register_error_handlers
from tokens import TokenService, ACCESS
from auth_service.users import UserStore

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, config_class=None, **overrides):
        self.app = Flask(__name__)
        self.app.config.from_object(config_class or get_config())
        self.app.config.update(overrides)
        CORS(self.app)

        self.tokens = TokenService.from_config(self.app.config)
        self.users = UserStore()

        register_error_handlers(self.app)
        self.setup_routes()

    def require_auth(self, f):
        """Decorator to require a valid access token"""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth_header = request.headers.get('Authorization', '')
            if not auth_header.startswith('Bearer ') or not auth_header[7:].strip():
                raise Unauthenticated('Missing or invalid authorization header')

            g.claims = self.tokens.verify(auth_header[7:].strip(), token_type=ACCESS)
            return f(*args, **kwargs)
        return decorated_function

    def _json_body(self):
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError('Request body must be a JSON object')
        return data

    def _credentials(self):
        data = self._json_body()
        email = data.get('email')
        if email is not None and not isinstance(email, str):
            raise ValidationError('Email must be a string')
        if data.get('name') is not None and not isinstance(data['name'], str):
            raise ValidationError('Name must be a string')

        email = (email or '').strip()
        if not email:
            raise ValidationError('Email is required')
        return email, data

    def _session_response(self, user):
        response = {'user': user}
        response.update(self.tokens.issue(user))
        return response

    def setup_routes(self):
        """Setup API routes"""

        @self.app.route('/health', methods=['GET'])
        def health():
            return jsonify({
                'status': 'healthy',
                'service': 'auth',
                'timestamp': datetime.datetime.now(datetime.timezone.utc).isoformat()
            })

        @self.app.route('/auth/signup', methods=['POST'])
        def signup():
            email, data = self._credentials()
            user, created = self.users.get_or_create(email, data.get('name'))
            logger.info(f"Sign up for {email}: {'created' if created else 'existing'} user {user['id']}")
            return jsonify(self._session_response(user))

        @self.app.route('/auth/signin', methods=['POST'])
        def signin():
            # Passwords are not checked; any email signs in.
            email, data = self._credentials()
            user, created = self.users.get_or_create(email)
            logger.info(f"Sign in for {email}: user {user['id']}{' (registered)' if created else ''}")
            return jsonify(self._session_response(user))

        @self.app.route('/auth/refresh', methods=['POST'])
        def refresh():
            data = self._json_body()
            refresh_token = data.get('refresh_token')
            if not refresh_token:
                raise Unauthenticated('No refresh token provided')
            if not isinstance(refresh_token, str):
                raise ValidationError('refresh_token must be a string')

            result = self.tokens.refresh(refresh_token)
            logger.info("Access token refreshed")
            return jsonify(result)

        @self.app.route('/auth/signout', methods=['POST'])
        def signout():
            self.tokens.revoke()
            return jsonify({'message': 'Signed out successfully'})

        @self.app.route('/auth/validate', methods=['POST'])
        @self.require_auth
        def validate():
            return jsonify({
                'valid': True,
                'user': {
                    'user_id': g.claims['user_id'],
                    'email': g.claims.get('email')
                }
            })

        @self.app.route('/auth/me', methods=['GET'])
        @self.require_auth
        def me():
            user = self.users.get(g.claims['user_id'])
            if not user:
                raise NotFound('User not found')
            return jsonify(user)

    def run(self, host=None, port=None, debug=None):
        """Run the Auth Service"""
        host = host or self.app.config['HOST']
        port = port or self.app.config['AUTH_SERVICE_PORT']
        logger.info(f"Starting Auth Service on {host}:{port}")
        self.app.run(host=host, port=port, debug=self.app.config['DEBUG'] if debug is None else debug)


if __name__ == '__main__':
    configure_logging('auth-service')
    AuthService().run()
