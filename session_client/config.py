"""
Session client configuration. Environment-to-endpoint mapping and token renewal tuning.
No secrets in this file; API keys are passed to SessionClient.init().
"""
import os

# Metadata hosts per environment; init() asks the host for the operation endpoint
ENVIRONMENTS = {
    "dev": "https://auth.dev.crudify.io",
    "stg": "https://auth.stg.crudify.io",
    "api": "https://auth.api.crudify.io",
}

DEFAULT_ENV = os.environ.get("SESSION_CLIENT_ENV", "api")

# Explicit metadata URL (e.g. a local mock_api at http://127.0.0.1:7500/metadata); wins over ENVIRONMENTS
METADATA_URL = os.environ.get("SESSION_CLIENT_METADATA_URL", "").rstrip("/") or None

# Transport timeout (seconds). A timeout is a dispatch failure, never an authorization failure.
REQUEST_TIMEOUT = float(os.environ.get("SESSION_CLIENT_TIMEOUT", "30"))

# Renewal lookahead per urgency tier (milliseconds before access token expiry)
BUFFER_CRITICAL_MS = int(os.environ.get("SESSION_CLIENT_BUFFER_CRITICAL_MS", "30000"))
BUFFER_HIGH_MS = int(os.environ.get("SESSION_CLIENT_BUFFER_HIGH_MS", "120000"))
BUFFER_NORMAL_MS = int(os.environ.get("SESSION_CLIENT_BUFFER_NORMAL_MS", "300000"))

# none | debug | info | warning | error
LOG_LEVEL = os.environ.get("SESSION_CLIENT_LOG_LEVEL", "none").lower()

# Remote operation names
METADATA_OPERATION = "getApiMetadata"
LOGIN_OPERATION = "login"
REFRESH_OPERATION = "refreshToken"


def metadata_url_for(env: str) -> str:
    """Metadata host for env; unknown environments fall back to production ("api")."""
    if METADATA_URL:
        return METADATA_URL
    return ENVIRONMENTS.get(env, ENVIRONMENTS["api"])
