from __future__ import annotations

from fastapi import Depends, Request

from app.clients.backend_api import BackendGateway
from app.core.auth import bearer_token
from app.core.cache import QueryCache
from app.core.config import ClinicConfig
from app.core.realtime import ChangeFeed
from app.models.account import AuthUser
from app.services.auth import get_user


def get_gateway(request: Request) -> BackendGateway:
    return request.app.state.gateway


def get_cache(request: Request) -> QueryCache:
    return request.app.state.cache


def get_feed(request: Request) -> ChangeFeed:
    return request.app.state.feed


def get_clinic(request: Request) -> ClinicConfig:
    return request.app.state.clinic


async def current_user(
    request: Request, gateway: BackendGateway = Depends(get_gateway)
) -> AuthUser:
    """Bearer 토큰으로 현재 사용자를 확인

    Args:
        request: FastAPI 요청 객체
        gateway: 백엔드 게이트웨이

    Returns:
        인증 사용자

    Raises:
        AuthenticationError: 토큰이 없거나 유효하지 않을 때
    """
    return await get_user(gateway, bearer_token(request))
