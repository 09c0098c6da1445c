import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")
    JWT_SECRET = os.environ.get("JWT_SECRET", os.environ.get("SECRET_KEY", "dev"))
    EZITT_API_BASE_URL = os.environ.get("EZITT_API_BASE_URL", "https://ezitt.whencefinancesystem.com")
    EZITT_API_TIMEOUT = float(os.environ.get("EZITT_API_TIMEOUT", 10))
    EZITT_MAX_WORKERS = int(os.environ.get("EZITT_MAX_WORKERS", 8))
    EZITT_CACHE_TTL = int(os.environ.get("EZITT_CACHE_TTL", 300))
    # Optional httpx transport, only set by tests
    EZITT_API_TRANSPORT = None
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    SESSION_LIFETIME_MINUTES = int(os.environ.get("SESSION_LIFETIME_MINUTES", 20))


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    JWT_SECRET = "test-jwt-secret-at-least-32-bytes-long"
    EZITT_API_BASE_URL = "https://api.test"
    EZITT_MAX_WORKERS = 2
