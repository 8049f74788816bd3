"""Configuration module for the order entry application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _parse_tiers(raw: str) -> dict:
    """Parse 'count:amount' pairs (e.g. '1:1000,2:2000') into a tier table."""
    tiers = {}
    for chunk in raw.split(','):
        chunk = chunk.strip()
        if not chunk:
            continue
        count, amount = chunk.split(':', 1)
        tiers[int(count)] = int(amount)
    return tiers


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Backend REST API (orders, customers, products, discounts)
    BACKEND_API_URL = os.getenv('BACKEND_API_URL', 'http://localhost:5000/api')
    BACKEND_API_TOKEN = os.getenv('BACKEND_API_TOKEN')
    BACKEND_TIMEOUT = float(os.getenv('BACKEND_TIMEOUT', '10'))  # seconds
    PRODUCT_FETCH_LIMIT = int(os.getenv('PRODUCT_FETCH_LIMIT', '1000'))
    DISCOUNT_FETCH_LIMIT = int(os.getenv('DISCOUNT_FETCH_LIMIT', '50'))

    # Pricing
    DEFAULT_CURRENCY = os.getenv('DEFAULT_CURRENCY', 'RWF')
    TAX_RATE = os.getenv('TAX_RATE', '0.18')  # informational only, never added to total
    PARTIAL_PAYMENT_RATIO = os.getenv('PARTIAL_PAYMENT_RATIO', '0.5')
    BOTTLE_RETURN_TIERS = _parse_tiers(os.getenv('BOTTLE_RETURN_TIERS', '1:1000,2:2000,3:3000,4:4000'))

    # Customers / roles
    WALKIN_EMAIL_DOMAIN = os.getenv('WALKIN_EMAIL_DOMAIN', 'urutirose.com')
    PRIVILEGED_ROLES = {
        role.strip().lower()
        for role in os.getenv('PRIVILEGED_ROLES', 'admin').split(',')
        if role.strip()
    }

    # Open drafts (one per terminal session)
    DRAFT_IDLE_TIMEOUT = int(os.getenv('DRAFT_IDLE_TIMEOUT', str(8 * 60 * 60)))  # seconds
    MAX_OPEN_DRAFTS = int(os.getenv('MAX_OPEN_DRAFTS', '500'))

    # Redis Cache Configuration
    # Shared catalog snapshot between POS workers; degrades to direct backend loads
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_CATALOG_TTL = int(os.getenv('CACHE_CATALOG_TTL', '60'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'pos')
    CATALOG_SCOPE = os.getenv('CATALOG_SCOPE', 'default')  # shop or branch sharing one catalog


class TestConfig(Config):
    """Configuration used by the test suite."""
    TESTING = True
    DEBUG = False
    CACHE_ENABLED = False
    BACKEND_API_URL = 'http://backend.test/api'
    BACKEND_API_TOKEN = 'test-token'
    SECRET_KEY = 'test-secret'
