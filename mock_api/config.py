"""
Reference service configuration. Lab values only; override via environment.
"""
import os

# Base URL the service advertises in /metadata (used when running standalone with uvicorn)
BASE_URL = os.environ.get("MOCK_API_BASE_URL", "http://127.0.0.1:7500").rstrip("/")

# Public key accepted by /metadata and the endpoint key it hands out for /graphql
PUBLIC_API_KEY = os.environ.get("MOCK_API_PUBLIC_KEY", "public-api-key")
ENDPOINT_API_KEY = os.environ.get("MOCK_API_ENDPOINT_KEY", "endpoint-api-key")

# HS256 secret for access tokens
SIGNING_SECRET = os.environ.get("MOCK_API_SIGNING_SECRET", "mock-api-signing-secret-for-local-testing-only")

# Access token lifetime (seconds). Short-lived so renewal paths get exercised.
ACCESS_TOKEN_EXPIRES = int(os.environ.get("MOCK_API_ACCESS_TOKEN_EXPIRES", "900"))

# Refresh token lifetime (seconds)
REFRESH_TOKEN_EXPIRES = int(os.environ.get("MOCK_API_REFRESH_TOKEN_EXPIRES", "604800"))

# Seed user
SEED_USERNAME = os.environ.get("MOCK_API_SEED_USER", "demo")
SEED_EMAIL = os.environ.get("MOCK_API_SEED_EMAIL", "demo@example.com")
SEED_PASSWORD = os.environ.get("MOCK_API_SEED_PASSWORD", "demo-password")
