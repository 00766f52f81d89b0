from fastapi import APIRouter, Depends

from app.api.deps import get_cache, get_clinic, get_gateway
from app.clients.backend_api import BackendGateway
from app.core.cache import QueryCache
from app.core.config import ClinicConfig
from app.services.patients import get_patient_detail
from app.utils.parsing import today_in

router = APIRouter()


@router.get("/patients/{patient_id}")
async def get_patient(
    patient_id: str,
    gateway: BackendGateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_cache),
    clinic: ClinicConfig = Depends(get_clinic),
) -> dict:
    """환자 상세와 내원 이력을 반환

    Args:
        patient_id: 환자 식별자
        gateway: 백엔드 게이트웨이
        cache: 조회 캐시
        clinic: 클리닉 설정

    Returns:
        환자 상세(나이, 알레르기 여부 포함)
    """
    detail = await get_patient_detail(gateway, cache, patient_id)
    data = detail.model_dump(mode="json")
    data["age"] = detail.age_on(today_in(clinic.timezone))
    data["has_allergies"] = detail.has_allergies
    return data
