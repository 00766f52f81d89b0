from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChangeEvent(BaseModel):
    """백엔드 테이블 변경 알림(데이터베이스 웹훅 페이로드)"""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["INSERT", "UPDATE", "DELETE"] = Field(..., description="변경 종류")
    table: str = Field(..., description="테이블 이름")
    schema_name: str = Field(default="public", alias="schema", description="스키마")
    record: dict | None = Field(default=None, description="변경 후 행")
    old_record: dict | None = Field(default=None, description="변경 전 행")
    commit_timestamp: str | None = Field(default=None, description="커밋 시각")
