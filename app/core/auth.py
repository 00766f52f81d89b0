from __future__ import annotations

import base64
import binascii

from fastapi import HTTPException, Request, status

from app.core.config import get_settings
from app.core.errors import AuthenticationError


def _basic_auth_failure(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Basic"},
    )


def require_admin(request: Request) -> None:
    """관리자 Basic 인증 검증

    Raises:
        HTTPException: 인증 실패 시(401)
    """
    settings = get_settings()
    scheme, _, encoded = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Basic" or not encoded.strip():
        raise _basic_auth_failure("인증 필요")
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise _basic_auth_failure("인증 정보 오류") from exc

    admin_id, sep, admin_password = decoded.partition(":")
    if not sep:
        raise _basic_auth_failure("인증 정보 오류")
    if admin_id != settings.admin_id or admin_password != settings.admin_password:
        raise _basic_auth_failure("인증 실패")


def bearer_token(request: Request) -> str:
    """Authorization 헤더에서 Bearer 토큰을 추출

    Raises:
        AuthenticationError: 토큰이 없을 때
    """
    credentials = request.headers.get("Authorization", "")
    if not credentials.startswith("Bearer "):
        raise AuthenticationError("AUTH_REQUIRED", "인증 필요")
    token = credentials.replace("Bearer ", "", 1).strip()
    if not token:
        raise AuthenticationError("AUTH_REQUIRED", "인증 필요")
    return token


def verify_webhook(request: Request) -> None:
    """변경 알림 웹훅 비밀값 검증(설정된 경우에만)

    Raises:
        AuthenticationError: 비밀값 불일치
    """
    secret = get_settings().webhook_secret
    if secret and request.headers.get("X-Webhook-Secret", "") != secret:
        raise AuthenticationError("WEBHOOK_SECRET_INVALID", "웹훅 인증 실패")
