from __future__ import annotations

from typing import Any

import httpx

from app.core.config import Settings, get_settings
from app.core.errors import (
    AuthenticationError,
    BackendError,
    BackendUnavailableError,
    ConflictError,
    NotFoundError,
)

UNIQUE_VIOLATION = "23505"


def _filter_params(filters: dict | None) -> dict[str, str]:
    """필터 딕셔너리를 PostgREST 쿼리 파라미터로 변환

    리스트 값은 in 필터, 그 외 값은 eq 필터가 된다.

    Args:
        filters: 컬럼별 필터 값

    Returns:
        쿼리 파라미터 딕셔너리
    """
    params: dict[str, str] = {}
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set, frozenset)):
            joined = ",".join(str(getattr(item, "value", item)) for item in value)
            params[column] = f"in.({joined})"
        elif value is None:
            params[column] = "is.null"
        else:
            params[column] = f"eq.{getattr(value, 'value', value)}"
    return params


def _error_message(response: httpx.Response) -> tuple[str | None, str]:
    """오류 응답에서 코드와 메시지를 추출"""
    try:
        body = response.json()
    except ValueError:
        return None, response.text or response.reason_phrase
    if not isinstance(body, dict):
        return None, str(body)
    code = body.get("error_code") or body.get("code") or body.get("error")
    message = (
        body.get("message")
        or body.get("msg")
        or body.get("error_description")
        or response.reason_phrase
    )
    return (str(code) if code is not None else None), str(message)


def _raise_for_response(response: httpx.Response) -> None:
    """백엔드 오류 응답을 코어 예외로 변환

    Args:
        response: 백엔드 응답

    Raises:
        ConflictError: 고유 제약 위반
        AuthenticationError: 인증 실패
        NotFoundError: 대상 없음
        BackendError: 그 외 오류
    """
    if response.is_success:
        return
    code, message = _error_message(response)
    if response.status_code == 409 or code == UNIQUE_VIOLATION:
        raise ConflictError("BACKEND_CONFLICT", message)
    if response.status_code in {400, 401, 403} and code in {
        "invalid_grant",
        "invalid_credentials",
        "bad_jwt",
        "PGRST301",
    }:
        raise AuthenticationError("AUTH_INVALID", message)
    if response.status_code == 401:
        raise AuthenticationError("AUTH_REQUIRED", message)
    if response.status_code == 404:
        raise NotFoundError("BACKEND_NOT_FOUND", message)
    raise BackendError(f"BACKEND_{response.status_code}", message)


class BackendGateway:
    """관리형 백엔드(PostgREST/GoTrue 호환) 비동기 게이트웨이"""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        headers = {"Content-Type": "application/json"}
        if settings.backend_api_key:
            headers["apikey"] = settings.backend_api_key
            headers["Authorization"] = f"Bearer {settings.backend_api_key}"
        self._client = httpx.AsyncClient(
            base_url=settings.backend_base_url,
            headers=headers,
            timeout=settings.backend_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict | None = None,
        json: Any = None,
        headers: dict | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method, url, params=params, json=json, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise BackendUnavailableError("BACKEND_TIMEOUT", str(exc)) from exc
        except httpx.TransportError as exc:
            raise BackendUnavailableError("BACKEND_UNREACHABLE", str(exc)) from exc
        _raise_for_response(response)
        if not response.content:
            return None
        return response.json()

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict | None = None,
        order: str | None = None,
        limit: int | None = None,
        extra_params: dict | None = None,
    ) -> list[dict]:
        """테이블 행을 조회

        Args:
            table: 테이블 이름
            columns: select 절(조인 구문 포함)
            filters: 컬럼별 필터
            order: 정렬(예: queue_number.asc)
            limit: 최대 행 수
            extra_params: 추가 쿼리 파라미터(조인 테이블 정렬 등)

        Returns:
            행 목록(없으면 빈 목록)
        """
        params = {"select": columns, **_filter_params(filters)}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        if extra_params:
            params.update(extra_params)
        rows = await self._request("GET", f"/rest/v1/{table}", params=params)
        return rows or []

    async def select_one(
        self,
        table: str,
        columns: str = "*",
        filters: dict | None = None,
        order: str | None = None,
        maybe: bool = False,
        extra_params: dict | None = None,
    ) -> dict | None:
        """단일 행을 조회

        Args:
            table: 테이블 이름
            columns: select 절
            filters: 컬럼별 필터
            order: 정렬
            maybe: True면 행이 없을 때 None 반환
            extra_params: 추가 쿼리 파라미터

        Returns:
            행 또는 None

        Raises:
            BackendError: 둘 이상의 행이 일치할 때
            NotFoundError: 행이 없고 maybe가 아닐 때
        """
        rows = await self.select(
            table,
            columns=columns,
            filters=filters,
            order=order,
            limit=2,
            extra_params=extra_params,
        )
        if len(rows) > 1:
            raise BackendError("BACKEND_MULTIPLE_ROWS", f"{table}: 둘 이상의 행이 일치함")
        if not rows:
            if maybe:
                return None
            raise NotFoundError("ROW_NOT_FOUND", f"{table}: 일치하는 행 없음")
        return rows[0]

    async def insert(self, table: str, values: dict) -> dict:
        """행을 삽입하고 생성된 행을 반환"""
        rows = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=values,
            headers={"Prefer": "return=representation"},
        )
        if isinstance(rows, list):
            if not rows:
                raise BackendError("BACKEND_EMPTY_INSERT", f"{table}: 삽입 결과 없음")
            return rows[0]
        return rows

    async def update(self, table: str, filters: dict, values: dict) -> dict:
        """조건에 맞는 행을 갱신

        Args:
            table: 테이블 이름
            filters: 컬럼별 필터
            values: 갱신할 값

        Returns:
            갱신된 행

        Raises:
            NotFoundError: 일치하는 행이 없을 때
        """
        rows = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=_filter_params(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise NotFoundError("ROW_NOT_FOUND", f"{table}: 갱신 대상 없음")
        return rows[0] if isinstance(rows, list) else rows

    async def rpc(self, procedure: str, params: dict) -> Any:
        """권한 프로시저를 호출"""
        return await self._request("POST", f"/rest/v1/rpc/{procedure}", json=params)

    async def sign_in(self, email: str, password: str) -> dict:
        """이메일/비밀번호로 세션을 발급"""
        return await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )

    async def sign_up(self, email: str, password: str, full_name: str | None) -> dict:
        """신규 사용자를 등록"""
        return await self._request(
            "POST",
            "/auth/v1/signup",
            json={
                "email": email,
                "password": password,
                "data": {"full_name": full_name or ""},
            },
        )

    async def get_user(self, access_token: str) -> dict:
        """액세스 토큰으로 사용자를 조회"""
        return await self._request(
            "GET",
            "/auth/v1/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
