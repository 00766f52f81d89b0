class ClinicError(Exception):
    """클리닉 코어 예외의 기본 클래스"""

    status_code = 500

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ValidationError(ClinicError):
    """백엔드 호출 전 로컬 검증 실패 시 발생"""

    status_code = 422

    def __init__(self, field: str, message: str) -> None:
        super().__init__("VALIDATION_001", f"{field}: {message}")
        self.field = field


class NotFoundError(ClinicError):
    """필수 결과가 비어 있을 때 발생"""

    status_code = 404


class ConflictError(ClinicError):
    """제약 조건 위반 또는 상태 전이 충돌 시 발생"""

    status_code = 409


class AuthenticationError(ClinicError):
    """인증 정보가 없거나 잘못된 경우 발생"""

    status_code = 401


class BackendError(ClinicError):
    """백엔드가 오류 응답을 반환한 경우 발생"""

    status_code = 502


class BackendUnavailableError(BackendError):
    """백엔드 연결 실패 또는 타임아웃 시 발생"""

    status_code = 503
