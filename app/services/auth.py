from __future__ import annotations

from app.clients.backend_api import BackendGateway
from app.core.config import ClinicConfig
from app.core.errors import AuthenticationError, ValidationError
from app.core.logger import log_event
from app.models.account import AuthSession, AuthUser
from app.utils.parsing import require_text


def _to_user(data: dict) -> AuthUser:
    metadata = data.get("user_metadata") or {}
    return AuthUser(
        id=str(data.get("id", "")),
        email=data.get("email"),
        full_name=metadata.get("full_name") or None,
    )


async def sign_in(
    gateway: BackendGateway, clinic: ClinicConfig, email: str, password: str
) -> AuthSession:
    """이메일/비밀번호로 로그인

    Raises:
        ValidationError: 이메일 또는 비밀번호 누락
        AuthenticationError: 자격 증명 불일치
    """
    email = require_text(email, "email")
    password = require_text(password, "password")
    try:
        data = await gateway.sign_in(email, password)
    except AuthenticationError as exc:
        log_event(
            "sign_in_failed", "WARNING", clinic.clinic_id, "auth", exc.message,
            error_code=exc.code,
        )
        raise AuthenticationError(
            "AUTH_INVALID_CREDENTIALS", "อีเมลหรือรหัสผ่านไม่ถูกต้อง"
        ) from exc
    return AuthSession(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        expires_in=data.get("expires_in"),
        user=_to_user(data.get("user") or {}),
    )


async def sign_up(
    gateway: BackendGateway,
    clinic: ClinicConfig,
    email: str,
    password: str,
    full_name: str | None = None,
) -> AuthUser:
    """신규 사용자 등록(비밀번호 최소 길이 검증 후 백엔드 호출)

    Raises:
        ValidationError: 이메일 누락 또는 비밀번호 길이 부족
    """
    email = require_text(email, "email")
    if password is None or len(password) < clinic.min_password_length:
        raise ValidationError(
            "password", f"รหัสผ่านต้องมีอย่างน้อย {clinic.min_password_length} ตัวอักษร"
        )
    data = await gateway.sign_up(email, password, full_name)
    user = _to_user(data.get("user") or data)
    log_event("sign_up", "INFO", clinic.clinic_id, "auth", f"사용자 등록: {user.id}")
    return user


async def get_user(gateway: BackendGateway, access_token: str | None) -> AuthUser:
    """액세스 토큰의 사용자를 조회

    Raises:
        AuthenticationError: 토큰이 없거나 유효하지 않을 때
    """
    if not access_token:
        raise AuthenticationError("AUTH_REQUIRED", "인증 필요")
    data = await gateway.get_user(access_token)
    return _to_user(data)
