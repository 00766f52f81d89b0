from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest

from app.core.config import ClinicConfig, get_settings, load_app_config
from app.core.errors import AuthenticationError, ConflictError, NotFoundError
from app.core.telemetry import TelemetryStore

PATIENT_SUMMARY_FIELDS = ("id", "hn", "first_name", "last_name", "dob", "allergies")
UNIQUE_KEYS = {
    "visits": [("visit_date", "queue_number")],
    "patient_accounts": [("user_id",)],
}


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    config_path = tmp_path / "clinic.yaml"
    config_path.write_text(
        """clinic:\n  clinic_id: TEST_CLINIC\n  name: Test Clinic\n  timezone: Asia/Bangkok\n  queue_channel: visits-queue\n""",
        encoding="utf-8",
    )
    monkeypatch.setenv("CONFIG_PATH", str(config_path))
    monkeypatch.setenv("DUCKDB_PATH", str(tmp_path / "telemetry.duckdb"))
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("WEBHOOK_SECRET", "")
    get_settings.cache_clear()
    load_app_config.cache_clear()
    TelemetryStore._instance = None
    yield
    TelemetryStore._instance = None
    get_settings.cache_clear()
    load_app_config.cache_clear()


@pytest.fixture
def clinic() -> ClinicConfig:
    return ClinicConfig(clinic_id="TEST_CLINIC", name="Test Clinic", timezone="Asia/Bangkok")


def _matches(row: dict, filters: dict | None) -> bool:
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set, frozenset)):
            if row.get(column) not in {getattr(v, "value", v) for v in value}:
                return False
        elif row.get(column) != getattr(value, "value", value):
            return False
    return True


class FakeGateway:
    """BackendGateway와 같은 인터페이스의 메모리 백엔드"""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {
            "visits": [],
            "patients": [],
            "patient_accounts": [],
        }
        self.calls: list[tuple[str, str]] = []
        self.tokens: dict[str, dict] = {}
        self.users: dict[str, dict] = {}
        self.before_insert = None

    def add_patient(self, **values) -> dict:
        row = {
            "id": str(uuid.uuid4()),
            "hn": "HN0001",
            "first_name": "สมชาย",
            "last_name": "ใจดี",
            "dob": "1990-01-01",
            "gender": "male",
            "national_id": "1111111111111",
            "phone": "0800000000",
            "address": None,
            "allergies": [],
        }
        row.update(values)
        self.tables["patients"].append(row)
        return row

    def add_visit(self, **values) -> dict:
        row = {
            "id": str(uuid.uuid4()),
            "patient_id": None,
            "doctor_id": None,
            "visit_date": None,
            "queue_number": None,
            "vital_signs": {},
            "chief_complaint": None,
            "physical_exam_note": None,
            "status": "InQueue",
        }
        row.update(values)
        self.tables["visits"].append(row)
        return row

    def add_user(self, token: str, user_id: str, email: str = "user@example.com") -> None:
        self.tokens[token] = {"id": user_id, "email": email, "user_metadata": {}}

    def count(self, method: str, table: str) -> int:
        return self.calls.count((method, table))

    def _joined(self, table: str, row: dict, columns: str) -> dict:
        result = dict(row)
        if table == "visits" and "patients (" in columns:
            patient = next(
                (p for p in self.tables["patients"] if p["id"] == row["patient_id"]),
                None,
            )
            result["patients"] = (
                {key: patient[key] for key in PATIENT_SUMMARY_FIELDS} if patient else None
            )
        if table == "patients" and "visits (" in columns:
            result["visits"] = [
                {
                    "id": visit["id"],
                    "visit_date": visit["visit_date"],
                    "status": visit["status"],
                    "chief_complaint": visit.get("chief_complaint"),
                    "queue_number": visit["queue_number"],
                    "diagnoses": visit.get("diagnoses", []),
                    "prescriptions": visit.get("prescriptions", []),
                    "treatment_plans": visit.get("treatment_plans", []),
                }
                for visit in self.tables["visits"]
                if visit["patient_id"] == row["id"]
            ]
        return result

    async def select(self, table, columns="*", filters=None, order=None, limit=None, extra_params=None):
        self.calls.append(("select", table))
        rows = [self._joined(table, r, columns) for r in self.tables[table] if _matches(r, filters)]
        if order:
            parts = order.split(".")
            column, descending = parts[0], len(parts) > 1 and parts[1] == "desc"
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present.sort(key=lambda r: r[column], reverse=descending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def select_one(self, table, columns="*", filters=None, order=None, maybe=False, extra_params=None):
        rows = await self.select(table, columns, filters, order, 2, extra_params)
        if len(rows) > 1:
            raise AssertionError("multiple rows")
        if not rows:
            if maybe:
                return None
            raise NotFoundError("ROW_NOT_FOUND", table)
        return rows[0]

    async def insert(self, table, values):
        self.calls.append(("insert", table))
        if self.before_insert is not None:
            self.before_insert(table, values)
        for columns in UNIQUE_KEYS.get(table, []):
            for row in self.tables[table]:
                if all(row.get(c) == values.get(c) for c in columns):
                    raise ConflictError(
                        "BACKEND_CONFLICT", "duplicate key value violates unique constraint"
                    )
        now = datetime.now(timezone.utc).isoformat()
        row = {"id": str(uuid.uuid4()), "created_at": now, **values}
        if table == "visits":
            row.setdefault("vital_signs", {})
            row["updated_at"] = now
        self.tables[table].append(row)
        return dict(row)

    async def update(self, table, filters, values):
        self.calls.append(("update", table))
        matched = [r for r in self.tables[table] if _matches(r, filters)]
        if not matched:
            raise NotFoundError("ROW_NOT_FOUND", table)
        for row in matched:
            row.update(values)
        return dict(matched[0])

    async def rpc(self, procedure, params):
        self.calls.append(("rpc", procedure))
        patients = self.tables["patients"]
        if procedure == "verify_patient_for_signup":
            found = [
                p
                for p in patients
                if p["national_id"] == params["p_national_id"]
                and p["dob"] == params["p_dob"]
                and p["phone"] == params["p_phone"]
            ]
            if len(found) != 1:
                return None
            p = found[0]
            return {"patient_id": p["id"], "first_name": p["first_name"], "last_name": p["last_name"]}
        if procedure == "verify_patient_by_national_id":
            found = [p for p in patients if p["national_id"] == params["p_national_id"]]
            return found[0]["id"] if len(found) == 1 else None
        raise NotFoundError("RPC_NOT_FOUND", procedure)

    async def sign_in(self, email, password):
        self.calls.append(("auth", "sign_in"))
        user = self.users.get(email)
        if user is None or user["password"] != password:
            raise AuthenticationError("AUTH_INVALID", "Invalid login credentials")
        return {"access_token": f"token-{user['id']}", "user": user["user"]}

    async def sign_up(self, email, password, full_name):
        self.calls.append(("auth", "sign_up"))
        user = {"id": str(uuid.uuid4()), "email": email, "user_metadata": {"full_name": full_name}}
        self.users[email] = {"id": user["id"], "password": password, "user": user}
        return user

    async def get_user(self, access_token):
        user = self.tokens.get(access_token)
        if user is None:
            raise AuthenticationError("AUTH_INVALID", "invalid JWT")
        return user

    async def aclose(self):
        return None


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
