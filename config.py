"""
Configuration for FlowTime backend services
"""
import os
import logging


class Config:
    # Security
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'flowtime-secret-change-in-production')
    JWT_ALGORITHM = 'HS256'
    ACCESS_TOKEN_EXPIRES = int(os.getenv('ACCESS_TOKEN_EXPIRES', '3600'))
    REFRESH_TOKEN_EXPIRES = int(os.getenv('REFRESH_TOKEN_EXPIRES', str(30 * 24 * 3600)))

    # Service URLs - update these based on your deployment
    AUTH_SERVICE_URL = os.getenv('AUTH_SERVICE_URL', 'http://localhost:8080')
    FLOWTIME_SERVICE_URL = os.getenv('FLOWTIME_SERVICE_URL', 'http://localhost:3000')

    # Listen settings
    HOST = os.getenv('HOST', '0.0.0.0')
    GATEWAY_PORT = int(os.getenv('GATEWAY_PORT', '8000'))
    AUTH_SERVICE_PORT = int(os.getenv('AUTH_SERVICE_PORT', '8080'))
    FLOWTIME_SERVICE_PORT = int(os.getenv('FLOWTIME_SERVICE_PORT', '3000'))
    DEBUG = False

    # Gateway settings
    PROXY_TIMEOUT = float(os.getenv('PROXY_TIMEOUT', '30'))
    HEALTH_CHECK_TIMEOUT = float(os.getenv('HEALTH_CHECK_TIMEOUT', '5'))
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')
    RATE_LIMIT_ENABLED = os.getenv('RATE_LIMIT_ENABLED', 'true').lower() in ('1', 'true', 'yes')
    RATE_LIMIT_REQUESTS_PER_MIN = int(os.getenv('RATE_LIMIT_REQUESTS_PER_MIN', '60'))
    RATE_LIMIT_BURST = int(os.getenv('RATE_LIMIT_BURST', '10'))
    RATE_LIMIT_IDLE_TIMEOUT = 600

    # FlowTime settings
    FLOWTIME_DATABASE = os.getenv(
        'FLOWTIME_DATABASE',
        os.path.join(os.path.dirname(os.path.abspath(__file__)), 'flowtime_service', 'flowtime.db')
    )
    DEFAULT_ENERGY_LEVEL = 70

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_DIR = os.getenv('LOG_DIR')


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    JWT_SECRET_KEY = 'flowtime-test-secret-key-0123456789abcdef'
    AUTH_SERVICE_URL = 'http://auth-service:8080'
    FLOWTIME_SERVICE_URL = 'http://flowtime-service:3000'
    PROXY_TIMEOUT = 5
    HEALTH_CHECK_TIMEOUT = 2
    RATE_LIMIT_ENABLED = True
    RATE_LIMIT_REQUESTS_PER_MIN = 60
    RATE_LIMIT_BURST = 10
    LOG_DIR = None


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config(name=None):
    """Return the config class selected by name or FLOWTIME_ENV"""
    name = name or os.getenv('FLOWTIME_ENV', 'default')
    return config.get(name, config['default'])


def configure_logging(service_name, config_class=None):
    """Configure root logging for a service: console always, file when LOG_DIR is set"""
    config_class = config_class or get_config()

    handlers = [logging.StreamHandler()]
    if config_class.LOG_DIR:
        os.makedirs(config_class.LOG_DIR, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(config_class.LOG_DIR, f'{service_name}.log')))

    logging.basicConfig(
        level=getattr(logging, str(config_class.LOG_LEVEL).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )
