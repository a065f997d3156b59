"""
FastAPI routes for marketplace account linking.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import RedirectResponse

from app.dependencies import get_account_link_flow, get_account_linker, get_current_user_id
from app.schemas import (
    AuthorizationUrlResponse,
    ErrorResponse,
    ExchangeResponse,
    LinkedAccountResponse,
    OAuthCallbackPayload,
)
from app.services import AccountLinker, AccountLinkFlow

router = APIRouter()

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    HTTPStatus.BAD_REQUEST.value: {"model": ErrorResponse},
    HTTPStatus.UNAUTHORIZED.value: {"model": ErrorResponse},
    HTTPStatus.INTERNAL_SERVER_ERROR.value: {"model": ErrorResponse},
}


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post(
    "/marketplace/auth",
    status_code=HTTPStatus.OK,
    response_model=AuthorizationUrlResponse,
    responses=_ERROR_RESPONSES,
)
async def begin_marketplace_link(
    owner_user_id: Annotated[str, Depends(get_current_user_id)],
    flow: Annotated[AccountLinkFlow, Depends(get_account_link_flow)],
) -> AuthorizationUrlResponse:
    """Issue a state-protected marketplace authorization URL for the caller."""
    authorization_url = flow.begin_link(owner_user_id)
    return AuthorizationUrlResponse(authorization_url=authorization_url)


@router.api_route(
    "/marketplace/callback",
    methods=["GET", "POST"],
    status_code=HTTPStatus.FOUND,
    response_class=RedirectResponse,
)
async def marketplace_redirect_callback(
    request: Request,
    flow: Annotated[AccountLinkFlow, Depends(get_account_link_flow)],
    code: Optional[str] = Query(default=None, description="Authorization code."),
    state: Optional[str] = Query(default=None, description="OAuth state token."),
    error: Optional[str] = Query(default=None),
    error_description: Optional[str] = Query(default=None),
    authorization: Annotated[Optional[str], Header()] = None,
) -> RedirectResponse:
    """
    Browser-facing callback. Always answers with a redirect to the dashboard,
    flagged with either success or a readable error message.
    """
    if request.method == "POST" and (not code or not state):
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = code or body.get("code")
            state = state or body.get("state")

    location = await flow.handle_redirect_callback(
        code,
        state,
        authorization=authorization,
        error=error,
        error_description=error_description,
    )
    return RedirectResponse(url=location, status_code=HTTPStatus.FOUND)


@router.post(
    "/marketplace/exchange",
    status_code=HTTPStatus.OK,
    response_model=ExchangeResponse,
    responses=_ERROR_RESPONSES,
)
async def exchange_marketplace_code(
    payload: OAuthCallbackPayload,
    owner_user_id: Annotated[str, Depends(get_current_user_id)],
    flow: Annotated[AccountLinkFlow, Depends(get_account_link_flow)],
) -> ExchangeResponse:
    """Complete the exchange for an authenticated single-page-app caller."""
    account = await flow.handle_exchange(owner_user_id, payload.code, payload.state)
    return ExchangeResponse(nickname=account.nickname)


@router.get(
    "/marketplace/accounts",
    status_code=HTTPStatus.OK,
    response_model=list[LinkedAccountResponse],
    responses=_ERROR_RESPONSES,
)
async def list_marketplace_accounts(
    owner_user_id: Annotated[str, Depends(get_current_user_id)],
    linker: Annotated[AccountLinker, Depends(get_account_linker)],
) -> list[LinkedAccountResponse]:
    """List the caller's linked seller accounts without token material."""
    return [
        LinkedAccountResponse(**summary.model_dump())
        for summary in linker.list_accounts(owner_user_id=owner_user_id)
    ]
