import logging

_RECORD_DEFAULTS = {"event": "system", "clinic_id": "-", "stage": "-"}

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s "
    "event=%(event)s clinic_id=%(clinic_id)s stage=%(stage)s %(message)s"
)


class _SafeFormatter(logging.Formatter):
    """log_event 외부 로거의 레코드에도 공통 필드를 채운다"""

    def format(self, record: logging.LogRecord) -> str:
        for name, default in _RECORD_DEFAULTS.items():
            if not hasattr(record, name):
                setattr(record, name, default)
        return super().format(record)


def configure_logging(level: str) -> None:
    """애플리케이션 로깅을 설정

    Args:
        level: 로깅 레벨 문자열
    """
    handler = logging.StreamHandler()
    handler.setFormatter(_SafeFormatter(LOG_FORMAT))
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)
    # 백엔드 요청마다 INFO 로그를 남기므로 상향
    logging.getLogger("httpx").setLevel(logging.WARNING)
