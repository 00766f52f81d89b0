from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class VerifiedPatient(BaseModel):
    """가입 검증 프로시저 결과"""

    patient_id: str = Field(..., description="환자 식별자")
    first_name: str = Field(..., description="이름")
    last_name: str = Field(..., description="성")


class PatientAccount(BaseModel):
    """인증 사용자와 환자의 연결"""

    id: str = Field(..., description="연결 식별자")
    user_id: str = Field(..., description="인증 사용자 식별자")
    patient_id: str = Field(..., description="환자 식별자")
    created_at: datetime | None = Field(default=None, description="생성 시각")


class AuthUser(BaseModel):
    """인증 사용자"""

    id: str = Field(..., description="사용자 식별자")
    email: str | None = Field(default=None, description="이메일")
    full_name: str | None = Field(default=None, description="전체 이름")


class AuthSession(BaseModel):
    """로그인 세션 토큰"""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    user: AuthUser
