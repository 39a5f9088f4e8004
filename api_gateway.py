#!/usr/bin/env python3
"""
FlowTime - API Gateway
Single entry point for client requests. Applies the cross-origin policy and a
per-client rate limit, then forwards each request to the auth or FlowTime
service by path prefix.
"""

from flask import Flask, request, jsonify, g, Response
from flask_cors import CORS
import logging
import uuid
import time
from collections import namedtuple
from datetime import datetime, timezone
import requests

from config import get_config, configure_logging
from errors import ServiceError, UpstreamUnavailable, RateLimitExceeded, register_error_handlers
from gateway_middleware import RateLimiter, RequestMetrics

logger = logging.getLogger(__name__)

ServiceRoute = namedtuple('ServiceRoute', ['prefix', 'service', 'url', 'strip_prefix'])

PROXY_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'HEAD']

# Gateway's own endpoints; never rate limited
GATEWAY_PATHS = {'/health', '/health/services', '/metrics'}

# Not forwarded in either direction
HOP_BY_HOP_HEADERS = {
    'connection', 'keep-alive', 'proxy-authenticate', 'proxy-authorization',
    'te', 'trailers', 'transfer-encoding', 'upgrade', 'host', 'content-length',
}
# requests decodes bodies, so the upstream encoding no longer applies
RESPONSE_EXCLUDED_HEADERS = HOP_BY_HOP_HEADERS | {'content-encoding'}


class NoRouteError(ServiceError):
    status_code = 502


def build_route_table(config):
    """Static prefix table, longest prefix first"""
    routes = [
        ServiceRoute('/api/flowtime', 'flowtime', config['FLOWTIME_SERVICE_URL'], True),
        ServiceRoute('/auth', 'auth', config['AUTH_SERVICE_URL'], False),
    ]
    return tuple(sorted(routes, key=lambda r: len(r.prefix), reverse=True))


def match_route(routes, path):
    """Return (route, upstream path) for a request path, or (None, None)"""
    for route in routes:
        if path == route.prefix or path.startswith(route.prefix + '/'):
            if route.strip_prefix:
                return route, path[len(route.prefix):] or '/'
            return route, path
    return None, None


class APIGateway:
    def __init__(self, config_class=None, **overrides):
        self.app = Flask(__name__)
        self.app.config.from_object(config_class or get_config())
        self.app.config.update(overrides)
        CORS(
            self.app,
            origins=self.app.config['CORS_ORIGINS'],
            send_wildcard=self.app.config['CORS_ORIGINS'] == '*',
            allow_headers=['Origin', 'X-Requested-With', 'Content-Type', 'Accept', 'Authorization'],
            expose_headers=['X-Request-ID', 'X-Response-Time', 'Retry-After'],
            methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'],
        )

        self.service_routes = build_route_table(self.app.config)
        self.rate_limiter = RateLimiter.from_config(self.app.config)
        self.metrics = RequestMetrics()

        register_error_handlers(self.app)
        self.setup_routes()
        self.setup_middleware()

    def setup_middleware(self):
        """Setup request logging, metrics, rate limiting and preflight handling"""

        @self.app.before_request
        def before_request():
            """Log incoming requests and add request ID"""
            g.request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
            g.start_time = time.time()
            route, _ = match_route(self.service_routes, request.path)
            g.service = route.service if route else 'gateway'
            self.metrics.request_started()

            logger.info(f"[{g.request_id}] {request.method} {request.path} from {request.remote_addr}")

            if request.method == 'OPTIONS':
                return Response(status=200)

            if self.app.config['RATE_LIMIT_ENABLED'] and request.path not in GATEWAY_PATHS:
                self.check_rate_limit()

        @self.app.after_request
        def after_request(response):
            """Log response and timing"""
            duration = time.time() - g.get('start_time', time.time())
            request_id = g.get('request_id', '-')
            logger.info(f"[{request_id}] Response: {response.status_code} in {duration:.3f}s")
            self.metrics.request_finished(f"{g.get('service', 'gateway')}:{request.method}",
                                          response.status_code, duration)
            response.headers['X-Request-ID'] = request_id
            response.headers['X-Response-Time'] = f'{duration * 1000:.0f}ms'
            return response

    def check_rate_limit(self):
        """Spend one request from the caller's budget for the target service"""
        key = f"ip:{request.remote_addr}:{g.service}"
        if not self.rate_limiter.allow(key):
            logger.warning(f"[{g.request_id}] Rate limit exceeded for {key} on {request.path}")
            raise RateLimitExceeded(retry_after=max(self.rate_limiter.retry_after(key), 1))

    def forward_headers(self):
        headers = {
            name: value for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS
        }
        headers['X-Request-ID'] = g.request_id
        forwarded_for = request.headers.get('X-Forwarded-For')
        remote = request.remote_addr or ''
        headers['X-Forwarded-For'] = f"{forwarded_for}, {remote}" if forwarded_for else remote
        return headers

    def proxy_request(self, route, path):
        """Forward the current request to a service and relay its response"""
        target_url = f"{route.url.rstrip('/')}{path}"
        query_string = request.query_string.decode('utf-8')
        if query_string:
            target_url = f"{target_url}?{query_string}"

        logger.info(f"Proxying {request.method} {request.path} to {route.service}: {target_url}")

        try:
            upstream = requests.request(
                request.method,
                target_url,
                headers=self.forward_headers(),
                data=request.get_data(),
                timeout=self.app.config['PROXY_TIMEOUT'],
                allow_redirects=False,
            )
        except requests.exceptions.Timeout:
            logger.error(f"Service timeout: {route.service} ({route.url})")
            raise UpstreamUnavailable(route.service, f'Service timeout: {route.service}')
        except requests.exceptions.RequestException as e:
            logger.error(f"Service unavailable: {route.service} ({route.url}): {e}")
            raise UpstreamUnavailable(route.service)

        headers = [
            (name, value) for name, value in upstream.headers.items()
            if name.lower() not in RESPONSE_EXCLUDED_HEADERS
            and not name.lower().startswith('access-control-')
        ]
        return Response(upstream.content, status=upstream.status_code, headers=headers)

    def check_service_health(self, route):
        """Call one upstream's /health endpoint"""
        started = time.time()
        health = {'url': route.url}
        try:
            response = requests.request(
                'GET',
                f"{route.url.rstrip('/')}/health",
                headers={'X-Request-ID': g.request_id},
                timeout=self.app.config['HEALTH_CHECK_TIMEOUT'],
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Health check failed for {route.service}: {e}")
            health.update(status='unhealthy', error=str(e))
        else:
            if response.status_code == 200:
                health['status'] = 'healthy'
            else:
                health.update(status='unhealthy', error=f'HTTP status {response.status_code}')
        health['response_time_ms'] = round((time.time() - started) * 1000, 3)
        return health

    def services_health(self):
        """Health of every upstream and the overall status: healthy, degraded or unhealthy"""
        services = {route.service: self.check_service_health(route) for route in self.service_routes}
        unhealthy = sum(1 for health in services.values() if health['status'] != 'healthy')
        if not unhealthy:
            status = 'healthy'
        elif unhealthy < len(services):
            status = 'degraded'
        else:
            status = 'unhealthy'
        return status, services

    def setup_routes(self):
        """Setup API routes"""

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint"""
            return jsonify({
                'status': 'healthy',
                'service': 'api-gateway',
                'timestamp': datetime.now(timezone.utc).isoformat(),
                'services': {route.prefix: route.service for route in self.service_routes}
            })

        @self.app.route('/health/services', methods=['GET'])
        def services_health():
            """Health of the gateway's upstream services"""
            status, services = self.services_health()
            return jsonify({
                'status': status,
                'timestamp': datetime.now(timezone.utc).isoformat(),
                'services': services
            }), 503 if status == 'unhealthy' else 200

        @self.app.route('/metrics', methods=['GET'])
        def metrics():
            return jsonify(self.metrics.snapshot())

        @self.app.route('/', defaults={'path': ''}, methods=PROXY_METHODS)
        @self.app.route('/<path:path>', methods=PROXY_METHODS)
        def route_request(path):
            route, upstream_path = match_route(self.service_routes, request.path)
            if route is None:
                raise NoRouteError(f'No upstream service for path: {request.path}')
            return self.proxy_request(route, upstream_path)

    def run(self, host=None, port=None, debug=None):
        """Run the API Gateway"""
        host = host or self.app.config['HOST']
        port = port or self.app.config['GATEWAY_PORT']
        logger.info(f"Starting FlowTime API Gateway on {host}:{port}")
        self.app.run(host=host, port=port, debug=self.app.config['DEBUG'] if debug is None else debug)


if __name__ == '__main__':
    configure_logging('api-gateway')

    gateway = APIGateway()
    gateway.run()
