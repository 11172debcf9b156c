from fastapi import Header, HTTPException, status

from .config import settings


def _accepted_credentials() -> tuple[set[str], set[str]]:
    token = (settings.API_TOKEN or "").strip()
    keys = {k.strip() for k in settings.API_KEYS.split(",") if k.strip()}
    return ({token} if token else set()) | keys, keys


def require_auth(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    bearers, keys = _accepted_credentials()
    if authorization and authorization.startswith("Bearer "):
        if authorization.split(" ", 1)[1].strip() in bearers:
            return
    if x_api_key and x_api_key in keys:
        return
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")
