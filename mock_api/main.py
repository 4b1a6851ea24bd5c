"""
Reference service speaking the session client's wire contract.
POST /metadata (endpoint discovery), POST /graphql (operation by name with variables).
In-memory state per app instance; for local runs and end-to-end tests (httpx.ASGITransport).
Port 7500 by default.
"""
import json
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any

from fastapi import Body, FastAPI, Header

from mock_api import config
from mock_api.tokens import TokenIssuer, TokenRejected

logger = logging.getLogger(__name__)

PROTECTED_OPERATIONS = {"createItem", "readItem", "updateItem", "deleteItem"}


@dataclass
class MockSettings:
    base_url: str = config.BASE_URL
    public_api_key: str = config.PUBLIC_API_KEY
    endpoint_api_key: str = config.ENDPOINT_API_KEY
    signing_secret: str = config.SIGNING_SECRET
    access_ttl: int = config.ACCESS_TOKEN_EXPIRES
    refresh_ttl: int = config.REFRESH_TOKEN_EXPIRES
    # username -> (email, password)
    users: dict[str, tuple[str, str]] = field(
        default_factory=lambda: {config.SEED_USERNAME: (config.SEED_EMAIL, config.SEED_PASSWORD)}
    )


@dataclass
class MockState:
    settings: MockSettings
    issuer: TokenIssuer
    items: dict[str, dict[str, dict]] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    def revoke_access_tokens(self) -> None:
        self.issuer.revoke_access_tokens()

    def find_user(self, variables: dict) -> str | None:
        email = variables.get("email")
        username = variables.get("username")
        for name, (user_email, password) in self.settings.users.items():
            if (username and username == name) or (email and email == user_email):
                if secrets.compare_digest(password.encode(), str(variables.get("password", "")).encode()):
                    return name
        return None


def _response(status: str, data: Any = None) -> dict:
    return {"data": {"response": {"status": status, "data": json.dumps(data) if data is not None else None}}}


def _errors(message: str, code: str) -> dict:
    return {"errors": [{"message": message, "extensions": {"code": code}}]}


def _login(state: MockState, variables: dict) -> dict:
    missing = []
    if not (variables.get("email") or variables.get("username")):
        missing.append({"path": ["email"], "message": "Email or username required"})
    if not variables.get("password"):
        missing.append({"path": ["password"], "message": "Password required"})
    if missing:
        return _response("FIELD_ERROR", missing)
    subject = state.find_user(variables)
    if subject is None:
        return _response("ERROR", {"message": "INVALID_CREDENTIALS"})
    return _response("OK", state.issuer.issue(subject))


def _refresh(state: MockState, variables: dict) -> dict:
    try:
        return _response("OK", state.issuer.rotate(variables.get("refreshToken")))
    except TokenRejected as e:
        return _response("ERROR", {"message": str(e)})


def _items(state: MockState, variables: dict) -> dict[str, dict]:
    return state.items.setdefault(str(variables.get("moduleKey", "")), {})


def _create_item(state: MockState, variables: dict) -> dict:
    data = variables.get("data")
    if not isinstance(data, dict) or not data:
        return _response("FIELD_ERROR", [{"path": ["data"], "message": "Item data required"}])
    item = {**data, "_id": secrets.token_hex(12)}
    _items(state, variables)[item["_id"]] = item
    return _response("OK", item)


def _read_item(state: MockState, variables: dict) -> dict:
    item_id = (variables.get("filter") or {}).get("_id") or variables.get("_id")
    item = _items(state, variables).get(str(item_id))
    if item is None:
        return _response("ITEM_NOT_FOUND")
    return _response("OK", item)


def _update_item(state: MockState, variables: dict) -> dict:
    data = variables.get("data") or {}
    items = _items(state, variables)
    item_id = str(data.get("_id", ""))
    if item_id not in items:
        return _response("ITEM_NOT_FOUND")
    items[item_id] = {**items[item_id], **data}
    return _response("OK", items[item_id])


def _delete_item(state: MockState, variables: dict) -> dict:
    item_id = str(variables.get("_id", ""))
    if _items(state, variables).pop(item_id, None) is None:
        return _response("ITEM_NOT_FOUND")
    return _response("OK", {"_id": item_id})


_HANDLERS = {
    "login": _login,
    "refreshToken": _refresh,
    "createItem": _create_item,
    "readItem": _read_item,
    "updateItem": _update_item,
    "deleteItem": _delete_item,
}


def _bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token:
        return None
    return token


def create_app(settings: MockSettings | None = None) -> FastAPI:
    """Build an app with its own users, tokens and items."""
    settings = settings or MockSettings()
    state = MockState(
        settings=settings,
        issuer=TokenIssuer(
            secret=settings.signing_secret,
            access_ttl=settings.access_ttl,
            refresh_ttl=settings.refresh_ttl,
        ),
    )
    app = FastAPI(title="Mock API", version="0.1.0")
    app.state.mock = state

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "mock_api"}

    @app.post("/metadata")
    def metadata(x_api_key: str | None = Header(None)):
        """Endpoint discovery for a public API key."""
        if x_api_key != settings.public_api_key:
            return {"errors": [{"message": "Invalid API key"}]}
        return {
            "data": {
                "response": {
                    "apiEndpoint": f"{settings.base_url}/graphql",
                    "apiKeyEndpoint": settings.endpoint_api_key,
                }
            }
        }

    @app.post("/graphql")
    def graphql(
        payload: dict = Body(...),
        x_api_key: str | None = Header(None),
        authorization: str | None = Header(None),
    ):
        """Execute one operation by name. Protected operations require a valid bearer token."""
        name = str(payload.get("operationName", ""))
        variables = payload.get("variables") or {}
        state.calls.append(name)

        if x_api_key != settings.endpoint_api_key:
            return _errors("Invalid API key", "BAD_API_KEY")
        handler = _HANDLERS.get(name)
        if handler is None:
            return _response("ERROR", {"message": "UNKNOWN_OPERATION"})

        if name in PROTECTED_OPERATIONS:
            token = _bearer(authorization)
            if token is None:
                return _errors("Unauthorized: missing token", "UNAUTHENTICATED")
            try:
                state.issuer.verify(token)
            except TokenRejected as e:
                logger.debug("Rejected bearer token for %s: %s", name, e)
                return _errors(f"Unauthorized: {e}", "UNAUTHENTICATED")
        return handler(state, variables)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mock_api.main:app",
        host="127.0.0.1",
        port=7500,
        reload=True,
    )
