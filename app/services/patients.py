from __future__ import annotations

from app.clients.backend_api import BackendGateway
from app.core.cache import QueryCache
from app.core.errors import NotFoundError
from app.models.patient import PatientDetail
from app.utils.parsing import require_text

PATIENT_DETAIL_COLUMNS = (
    "*, visits (id, visit_date, status, chief_complaint, queue_number, "
    "diagnoses (id, icd10_code, description, diagnosis_type), "
    "prescriptions (id, quantity, usage_instruction, "
    "medicine:medicines(name_thai, name_english)), "
    "treatment_plans (id, plan_details, duration, follow_up_date))"
)


async def get_patient_detail(
    gateway: BackendGateway, cache: QueryCache, patient_id: str
) -> PatientDetail:
    """내원 이력(최근 순)을 포함한 환자 상세를 조회

    Args:
        gateway: 백엔드 게이트웨이
        cache: 조회 캐시
        patient_id: 환자 식별자

    Returns:
        환자 상세

    Raises:
        NotFoundError: 환자가 없을 때
    """
    patient_id = require_text(patient_id, "patient_id")

    async def _load() -> PatientDetail:
        row = await gateway.select_one(
            "patients",
            columns=PATIENT_DETAIL_COLUMNS,
            filters={"id": patient_id},
            extra_params={"visits.order": "visit_date.desc"},
            maybe=True,
        )
        if row is None:
            raise NotFoundError("PATIENT_NOT_FOUND", f"환자 없음: {patient_id}")
        detail = PatientDetail(**row)
        detail.visits.sort(key=lambda visit: visit.visit_date, reverse=True)
        return detail

    return await cache.fetch(("patient-detail", patient_id), _load)
