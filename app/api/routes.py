"""
FastAPI routes for the guild onboarding service.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from app.dependencies import (
    get_app_settings,
    get_credential_lifecycle_service,
    get_discord_oauth_client,
    get_oauth_state_encoder,
)
from app.models import AuthorizationResult, FailureReason, RefreshResult
from app.schemas import (
    AuthorizationResponse,
    CredentialView,
    OAuthCallbackPayload,
    RefreshResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


_STATUS_CODES = {
    "fully_succeeded": HTTPStatus.OK,
    "joined_no_role": HTTPStatus.OK,
    "refreshed": HTTPStatus.OK,
    "exchange_error": HTTPStatus.BAD_REQUEST,
    "identity_error": HTTPStatus.BAD_GATEWAY,
    "refresh_error": HTTPStatus.BAD_GATEWAY,
    "join_failed": HTTPStatus.BAD_GATEWAY,
    "joined_role_failed": HTTPStatus.BAD_GATEWAY,
    "not_found": HTTPStatus.NOT_FOUND,
}


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _status_code(result: AuthorizationResult | RefreshResult) -> int:
    failure = result.failure
    if failure is not None and failure.reason is FailureReason.MISSING_REFRESH_TOKEN:
        return HTTPStatus.CONFLICT
    return _STATUS_CODES[result.status]


def _invalid_key(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))


def _allowed_redirect(target: str | None, settings: Any) -> str | None:
    """Return ``target`` only when it points under FRONTEND_BASE_URL."""
    base = settings.frontend_base_url
    if not target or base is None:
        return None
    allowed, candidate = urlsplit(str(base)), urlsplit(target)
    if (candidate.scheme, candidate.netloc) != (allowed.scheme, allowed.netloc):
        return None
    prefix = allowed.path.rstrip("/")
    if candidate.path != prefix and not candidate.path.startswith(f"{prefix}/"):
        return None
    return target


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/discord/authorize", status_code=HTTPStatus.OK)
async def start_discord_oauth_flow(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_discord_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    guild_id: str | None = Query(
        default=None,
        description="Guild to join after consent; defaults to DEFAULT_GUILD_ID.",
    ),
    redirect_to: str | None = Query(
        default=None,
        description="URL under FRONTEND_BASE_URL to return to after authentication.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Discord consent screen.",
    ),
) -> Any:
    """
    Kick off the OAuth flow by generating a state token and authorization URL.
    """
    if redirect_to and _allowed_redirect(redirect_to, settings) is None:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="redirect_to must point under FRONTEND_BASE_URL.",
        )

    state_payload = {
        "nonce": uuid.uuid4().hex,
        "guild_id": guild_id,
        "redirect_to": redirect_to,
        "issued_at": datetime.now(timezone.utc).isoformat(),
    }
    state = state_encoder.encode(state_payload)
    authorization_url = oauth_client.build_authorization_url(state=state)

    if redirect or _wants_html(request):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return {"authorization_url": authorization_url, "state": state}


@router.post("/auth/discord/callback", response_model=AuthorizationResponse)
async def handle_discord_oauth_callback(
    payload: OAuthCallbackPayload,
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    lifecycle: Annotated[Any, Depends(get_credential_lifecycle_service)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> JSONResponse:
    """Complete the OAuth exchange, store the credential, and join the guild."""
    state_data = state_encoder.decode(payload.state)

    issued_at_raw = state_data.get("issued_at")
    if not issued_at_raw:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing issued_at in state token.",
        )

    try:
        issued_at = datetime.fromisoformat(issued_at_raw)
    except ValueError as exc:  # pragma: no cover - defensive
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Invalid issued_at in state token.",
        ) from exc

    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)

    now = datetime.now(timezone.utc)
    if now - issued_at > timedelta(seconds=settings.oauth.state_ttl_seconds):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )

    result = await lifecycle.complete_authorization(
        payload.code, guild_id=state_data.get("guild_id")
    )
    logger.info("Authorization completed with status %s", result.status)

    redirect_to = _allowed_redirect(state_data.get("redirect_to"), settings)
    body = AuthorizationResponse.from_result(result, redirect_to=redirect_to)
    return JSONResponse(status_code=_status_code(result), content=body.model_dump(mode="json"))


@router.get("/auth/discord/callback", response_model=AuthorizationResponse)
async def handle_discord_oauth_callback_get(
    request: Request,
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    lifecycle: Annotated[Any, Depends(get_credential_lifecycle_service)],
    settings: Annotated[Any, Depends(get_app_settings)],
    state: str = Query(..., description="OAuth state token."),
    code: str | None = Query(default=None, description="Authorization code returned by Discord."),
    error: str | None = Query(default=None, description="Set by Discord when consent was denied."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    if error or not code:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Authorization was not granted: {error or 'missing code'}.",
        )

    response = await handle_discord_oauth_callback(
        payload=OAuthCallbackPayload(state=state, code=code),
        state_encoder=state_encoder,
        lifecycle=lifecycle,
        settings=settings,
    )
    if response.status_code != HTTPStatus.OK:
        return response

    redirect_target = (
        _allowed_redirect(state_encoder.decode(state).get("redirect_to"), settings)
        or settings.frontend_base_url
    )
    if redirect_target and (redirect or _wants_html(request)):
        return RedirectResponse(url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return response


@router.get("/credentials", response_model=CredentialView)
async def get_credential_status(
    lifecycle: Annotated[Any, Depends(get_credential_lifecycle_service)],
    user_id: str | None = Query(
        default=None, description="Discord user id; ignored with single-key addressing."
    ),
) -> CredentialView:
    """Report whether a credential is stored and when it expires, without secrets."""
    try:
        key = lifecycle.credential_key(user_id)
    except ValueError as exc:
        raise _invalid_key(exc) from exc

    credential = lifecycle.get_credential(key)
    if credential is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail="No credential stored. Complete authorization first.",
        )
    return CredentialView.from_credential(key, credential)


@router.post("/credentials/refresh", response_model=RefreshResponse)
async def refresh_credential(
    lifecycle: Annotated[Any, Depends(get_credential_lifecycle_service)],
    user_id: str | None = Query(
        default=None, description="Discord user id; ignored with single-key addressing."
    ),
) -> JSONResponse:
    """Mint a new access token from the stored refresh token."""
    try:
        result = await lifecycle.refresh_credential(user_id)
    except ValueError as exc:
        raise _invalid_key(exc) from exc

    body = RefreshResponse.from_result(result)
    return JSONResponse(status_code=_status_code(result), content=body.model_dump(mode="json"))
