from __future__ import annotations

from app.clients.backend_api import BackendGateway
from app.core.cache import QueryCache
from app.core.config import ClinicConfig
from app.core.errors import AuthenticationError, NotFoundError
from app.core.logger import log_event
from app.models.account import PatientAccount, VerifiedPatient
from app.utils.parsing import parse_date, parse_national_id, parse_phone, require_text

PATIENT_NOT_FOUND_MESSAGE = "ไม่พบข้อมูลผู้ป่วย กรุณาตรวจสอบเลขบัตรประชาชน"


async def verify_patient_for_signup(
    gateway: BackendGateway, national_id: str, dob: str, phone: str
) -> VerifiedPatient:
    """주민등록번호, 생년월일, 전화번호가 모두 일치하는 환자를 확인

    Args:
        gateway: 백엔드 게이트웨이
        national_id: 주민등록번호
        dob: 생년월일
        phone: 전화번호

    Returns:
        검증된 환자

    Raises:
        ValidationError: 필수 항목 누락 또는 형식 오류
        NotFoundError: 일치하는 환자가 없을 때
    """
    params = {
        "p_national_id": parse_national_id(national_id),
        "p_dob": parse_date(dob, "dob").isoformat(),
        "p_phone": parse_phone(phone),
    }
    result = await gateway.rpc("verify_patient_for_signup", params)
    if isinstance(result, list):
        if len(result) > 1:
            raise NotFoundError("PATIENT_NOT_UNIQUE", PATIENT_NOT_FOUND_MESSAGE)
        result = result[0] if result else None
    if not result or not result.get("patient_id"):
        raise NotFoundError("PATIENT_NOT_FOUND", PATIENT_NOT_FOUND_MESSAGE)
    return VerifiedPatient(**result)


async def verify_patient_by_national_id(gateway: BackendGateway, national_id: str) -> str:
    """주민등록번호로 환자 식별자를 조회

    Raises:
        ValidationError: 주민등록번호 형식 오류
        NotFoundError: 일치하는 환자가 없을 때
    """
    patient_id = await gateway.rpc(
        "verify_patient_by_national_id",
        {"p_national_id": parse_national_id(national_id)},
    )
    if not patient_id:
        raise NotFoundError("PATIENT_NOT_FOUND", PATIENT_NOT_FOUND_MESSAGE)
    return str(patient_id)


async def get_patient_account(
    gateway: BackendGateway, cache: QueryCache, user_id: str | None
) -> PatientAccount | None:
    """사용자의 환자 연결을 조회(없으면 None)"""
    if not user_id:
        return None

    async def _load() -> PatientAccount | None:
        row = await gateway.select_one(
            "patient_accounts", filters={"user_id": user_id}, maybe=True
        )
        return PatientAccount(**row) if row else None

    return await cache.fetch(("patient-account", user_id), _load)


async def link_account(
    gateway: BackendGateway,
    cache: QueryCache,
    clinic: ClinicConfig,
    user_id: str | None,
    patient_id: str,
) -> PatientAccount:
    """인증 사용자와 환자를 연결

    Args:
        gateway: 백엔드 게이트웨이
        cache: 조회 캐시
        clinic: 클리닉 설정
        user_id: 인증 사용자 식별자
        patient_id: 환자 식별자

    Returns:
        생성된 연결

    Raises:
        AuthenticationError: 인증되지 않은 사용자
        ConflictError: 이미 연결된 사용자
    """
    if not user_id:
        raise AuthenticationError("AUTH_REQUIRED", "Not authenticated")
    patient_id = require_text(patient_id, "patient_id")
    row = await gateway.insert(
        "patient_accounts", {"user_id": user_id, "patient_id": patient_id}
    )
    cache.invalidate(("patient-account",))
    log_event(
        "account_linked",
        "INFO",
        clinic.clinic_id,
        "account",
        f"환자 계정 연결: user={user_id} patient={patient_id}",
    )
    return PatientAccount(**row)


async def link_account_by_national_id(
    gateway: BackendGateway,
    cache: QueryCache,
    clinic: ClinicConfig,
    user_id: str | None,
    national_id: str,
) -> PatientAccount:
    """주민등록번호 검증 후 사용자와 환자를 연결"""
    if not user_id:
        raise AuthenticationError("AUTH_REQUIRED", "Not authenticated")
    patient_id = await verify_patient_by_national_id(gateway, national_id)
    return await link_account(gateway, cache, clinic, user_id, patient_id)
