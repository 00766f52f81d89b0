from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, model_validator

from app.api.deps import current_user, get_cache, get_clinic, get_gateway
from app.clients.backend_api import BackendGateway
from app.core.cache import QueryCache
from app.core.config import ClinicConfig
from app.models.account import AuthUser, PatientAccount, VerifiedPatient
from app.services.accounts import (
    get_patient_account,
    link_account,
    link_account_by_national_id,
    verify_patient_for_signup,
)

router = APIRouter()


class VerifySignupRequest(BaseModel):
    national_id: str
    dob: str
    phone: str


class LinkRequest(BaseModel):
    national_id: str | None = None
    patient_id: str | None = None

    @model_validator(mode="after")
    def _one_identifier(self) -> "LinkRequest":
        if not self.national_id and not self.patient_id:
            raise ValueError("national_id 또는 patient_id 필요")
        return self


@router.post("/accounts/verify-signup", response_model=VerifiedPatient)
async def post_verify_signup(
    body: VerifySignupRequest, gateway: BackendGateway = Depends(get_gateway)
) -> VerifiedPatient:
    """가입 전 환자 본인 확인"""
    return await verify_patient_for_signup(gateway, body.national_id, body.dob, body.phone)


@router.get("/accounts/me", response_model=PatientAccount | None)
async def get_my_account(
    user: AuthUser = Depends(current_user),
    gateway: BackendGateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_cache),
) -> PatientAccount | None:
    """현재 사용자의 환자 연결을 반환"""
    return await get_patient_account(gateway, cache, user.id)


@router.post("/accounts/link", response_model=PatientAccount, status_code=201)
async def post_link(
    body: LinkRequest,
    user: AuthUser = Depends(current_user),
    gateway: BackendGateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_cache),
    clinic: ClinicConfig = Depends(get_clinic),
) -> PatientAccount:
    """현재 사용자를 환자 기록에 연결

    Args:
        body: 주민등록번호 또는 환자 식별자
        user: 인증 사용자
        gateway: 백엔드 게이트웨이
        cache: 조회 캐시
        clinic: 클리닉 설정

    Returns:
        생성된 연결
    """
    if body.national_id:
        return await link_account_by_national_id(
            gateway, cache, clinic, user.id, body.national_id
        )
    return await link_account(gateway, cache, clinic, user.id, body.patient_id)
