"""HTTP adapter exposing the identity use cases through FastAPI."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Union

import anyio
from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Settings, load_settings
from .flow import AuthFlow, LoginResult, RegisterResult, RetrieveResult, Unauthorized
from .passwords import CredentialHasher
from .registry import UserRegistry
from .tokens import TokenService

logger = logging.getLogger("identity.service")


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=1024)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=1024)


class UserResponse(BaseModel):
    id: str
    email: str
    name: str


class TokenResponse(BaseModel):
    token: str


class MessageResponse(BaseModel):
    message: str


def _to_response(result: Union[RegisterResult, LoginResult, RetrieveResult]) -> JSONResponse:
    headers: Optional[Dict[str, str]] = None
    if isinstance(result, Unauthorized):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=result.status_code, content=result.body(), headers=headers)


def build_flow(settings: Settings, *, hasher: CredentialHasher | None = None) -> AuthFlow:
    """Wire a fresh registry, hasher and token service from ``settings``."""

    return AuthFlow(
        UserRegistry(),
        hasher or CredentialHasher(),
        TokenService(settings.signing_key, ttl=settings.token_ttl),
        restrict_to_subject=settings.restrict_to_subject,
    )


def register_routes(app: FastAPI, flow: AuthFlow) -> None:
    """Expose the JSON endpoints on the provided FastAPI application."""

    error_responses = {
        401: {"model": MessageResponse},
        403: {"model": MessageResponse},
        404: {"model": MessageResponse},
        409: {"model": MessageResponse},
    }

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post(
        "/users",
        status_code=201,
        response_model=UserResponse,
        responses={409: error_responses[409]},
    )
    async def register(request: RegisterRequest) -> JSONResponse:
        # bcrypt is CPU bound; keep it off the event loop.
        result = await anyio.to_thread.run_sync(
            flow.register, request.email, request.name, request.password
        )
        return _to_response(result)

    @app.post(
        "/login",
        response_model=TokenResponse,
        responses={401: error_responses[401]},
    )
    async def login(request: LoginRequest) -> JSONResponse:
        result = await anyio.to_thread.run_sync(flow.login, request.email, request.password)
        return _to_response(result)

    @app.get(
        "/users/{user_id}",
        response_model=UserResponse,
        responses={code: error_responses[code] for code in (401, 403, 404)},
    )
    async def retrieve_user(
        user_id: str,
        authorization: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        result = flow.retrieve_protected_user(authorization, user_id)
        return _to_response(result)


def create_app(
    *,
    settings: Settings | None = None,
    flow: AuthFlow | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the identity service."""

    if flow is None:
        flow = build_flow(settings or load_settings())

    if not flow.restrict_to_subject:
        logger.warning(
            "Subject restriction is disabled; any authenticated caller may read any user."
        )

    app = FastAPI(
        title="Identity Service",
        version="0.1.0",
        description="User registration, login and bearer-token protected lookups.",
    )
    app.state.flow = flow

    register_routes(app, flow)
    return app


__all__ = ["create_app", "build_flow", "register_routes"]
