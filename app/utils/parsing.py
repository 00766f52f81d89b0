from __future__ import annotations

from datetime import date, datetime
from typing import Iterable
from zoneinfo import ZoneInfo

from app.core.errors import ValidationError

DATE_FORMATS = ["%Y-%m-%d", "%Y%m%d", "%d/%m/%Y"]


def today_in(timezone: str) -> date:
    """클리닉 시간대 기준 오늘 날짜

    Args:
        timezone: IANA 시간대 이름

    Returns:
        오늘 날짜
    """
    return datetime.now(ZoneInfo(timezone)).date()


def require_text(value: str | None, field: str) -> str:
    """필수 문자열 값을 정리

    Args:
        value: 원본 값
        field: 에러 메시지에 사용할 필드명

    Returns:
        공백이 제거된 문자열

    Raises:
        ValidationError: 값이 비어 있을 때
    """
    if value is None or str(value).strip() == "":
        raise ValidationError(field, "값이 필요함")
    return str(value).strip()


def parse_date(value: str | date | None, field: str, formats: Iterable[str] = DATE_FORMATS) -> date:
    """날짜 값을 파싱

    Args:
        value: 원본 날짜 값
        field: 에러 메시지에 사용할 필드명
        formats: 허용 포맷 목록

    Returns:
        날짜

    Raises:
        ValidationError: 파싱 실패 시
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = require_text(value, field)
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValidationError(field, f"지원하지 않는 날짜 형식: {value}")


def parse_national_id(value: str | None) -> str:
    """13자리 주민등록번호를 숫자만 남겨 정규화

    Raises:
        ValidationError: 13자리 숫자가 아닐 때
    """
    digits = "".join(ch for ch in require_text(value, "national_id") if ch.isdigit())
    if len(digits) != 13:
        raise ValidationError("national_id", f"13자리 숫자가 아님: {value}")
    return digits


def parse_phone(value: str | None) -> str:
    """전화번호를 숫자만 남겨 정규화

    Raises:
        ValidationError: 9~10자리 숫자가 아닐 때
    """
    digits = "".join(ch for ch in require_text(value, "phone") if ch.isdigit())
    if not 9 <= len(digits) <= 10:
        raise ValidationError("phone", f"전화번호 형식 오류: {value}")
    return digits
