from __future__ import annotations

from pathlib import Path

import duckdb

from app.core.config import get_settings

LOG_COLUMNS = (
    "timestamp",
    "level",
    "event",
    "clinic_id",
    "stage",
    "error_code",
    "message",
    "duration_ms",
    "record_count",
)

SYNC_COLUMNS = (
    "channel",
    "clinic_id",
    "state",
    "opened_at",
    "last_event_at",
    "last_event_type",
    "invalidation_count",
)


def _insert_sql(table: str, columns: tuple[str, ...]) -> str:
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"


class TelemetryStore:
    """로그와 대기열 동기화 채널 상태를 보관하는 DuckDB 저장소

    프로세스 내 단일 인스턴스로 동작하며, 테스트에서는 ``_instance``를
    비워 새 파일로 다시 연다.
    """

    _instance: "TelemetryStore | None" = None

    def __new__(cls) -> "TelemetryStore":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._init_db()
        return cls._instance

    def _init_db(self) -> None:
        settings = get_settings()
        Path(settings.duckdb_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(settings.duckdb_path)
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS logs (
                timestamp TIMESTAMP,
                level VARCHAR,
                event VARCHAR,
                clinic_id VARCHAR,
                stage VARCHAR,
                error_code VARCHAR,
                message VARCHAR,
                duration_ms INTEGER,
                record_count INTEGER
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS sync_status (
                channel VARCHAR PRIMARY KEY,
                clinic_id VARCHAR,
                state VARCHAR,
                opened_at TIMESTAMP,
                last_event_at TIMESTAMP,
                last_event_type VARCHAR,
                invalidation_count INTEGER
            )
            """
        )

    def insert_log(self, record: dict) -> None:
        """로그 레코드 한 건을 저장"""
        self._conn.execute(
            _insert_sql("logs", LOG_COLUMNS),
            [record.get(column) for column in LOG_COLUMNS],
        )

    def update_sync_status(self, status: dict) -> None:
        """채널별 상태 행을 교체

        Args:
            status: 채널 상태(채널명이 키)
        """
        self._conn.execute("DELETE FROM sync_status WHERE channel = ?", [status["channel"]])
        self._conn.execute(
            _insert_sql("sync_status", SYNC_COLUMNS),
            [status.get(column) for column in SYNC_COLUMNS],
        )

    def query_logs(self, event: str | None = None, limit: int = 200) -> list[dict]:
        """최근 로그부터 조회

        Args:
            event: 이벤트 이름 필터(선택)
            limit: 최대 행 수

        Returns:
            로그 딕셔너리 목록
        """
        query = f"SELECT {', '.join(LOG_COLUMNS)} FROM logs"
        params: list = []
        if event:
            query += " WHERE event = ?"
            params.append(event)
        query += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)
        rows = self._conn.execute(query, params).fetchall()
        return [dict(zip(LOG_COLUMNS, row)) for row in rows]

    def query_sync_status(self) -> list[dict]:
        rows = self._conn.execute(
            f"SELECT {', '.join(SYNC_COLUMNS)} FROM sync_status ORDER BY channel"
        ).fetchall()
        return [dict(zip(SYNC_COLUMNS, row)) for row in rows]
