from functools import lru_cache
from typing import Literal

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """환경 변수에서 애플리케이션 설정을 로드"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    environment: Literal["local", "dev", "prod"] = "local"
    version: str = "0.1.0"
    log_level: str = "INFO"
    admin_id: str = "admin"
    admin_password: str = "admin"
    backend_base_url: str = "http://localhost:54321"
    backend_api_key: str = ""
    backend_timeout: float = 10.0
    config_path: str = "clinic.yaml"
    duckdb_path: str = "data/telemetry.duckdb"
    scheduler_enabled: bool = True
    webhook_secret: str = ""


class ClinicConfig(BaseModel):
    """클리닉 설정 항목을 정의"""

    clinic_id: str
    name: str
    timezone: str = "Asia/Bangkok"
    queue_channel: str = "visits-queue"
    min_password_length: int = 6
    queue_number_retries: int = 3


class AppConfig(BaseModel):
    """단일 클리닉 설정 래퍼"""

    clinic: ClinicConfig


@lru_cache
def get_settings() -> Settings:
    """캐시된 설정 인스턴스를 반환"""
    return Settings()


@lru_cache
def load_app_config() -> AppConfig:
    """설정 파일(YAML)에서 클리닉 설정 로드

    Returns:
        클리닉 설정 인스턴스
    """
    settings = get_settings()
    with open(settings.config_path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return AppConfig(**data)


def reload_app_config() -> AppConfig:
    """설정 캐시를 초기화하고 다시 로드

    Returns:
        클리닉 설정 인스턴스
    """
    load_app_config.cache_clear()
    return load_app_config()
