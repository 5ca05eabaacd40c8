import uuid
from datetime import date, datetime, time
from typing import Optional, List

# Mock stores standing in for the hosted tables: pontos, profiles, expedientes
mock_profiles = [
    {
        "id": "admin-1",
        "first_name": "Administrador",
        "last_name": "",
        "email": "admin@example.com",
        "role": "admin",
        "avatar_url": None,
        "updated_at": None,
    }
]

mock_pontos = []
mock_expedientes = []


class EventSourceError(Exception):
    """Raised when a store cannot answer a query; never means "no rows"."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


def new_id() -> str:
    return str(uuid.uuid4())


def day_bounds(date_from: Optional[date], date_to: Optional[date]):
    if date_from is None:
        return None, None
    end_day = date_to or date_from
    return datetime.combine(date_from, time.min), datetime.combine(end_day, time.max)


def wall_clock(value: datetime) -> datetime:
    return value.replace(tzinfo=None)


def get_profile(user_id: str) -> Optional[dict]:
    for profile in mock_profiles:
        if profile["id"] == user_id:
            return profile
    return None


def get_profile_by_email(email: str) -> Optional[dict]:
    for profile in mock_profiles:
        if profile["email"].lower() == email.lower():
            return profile
    return None


def list_profiles() -> List[dict]:
    return sorted(mock_profiles, key=lambda p: (p["first_name"] or "", p["last_name"] or ""))


def get_profiles_by_ids(user_ids) -> List[dict]:
    wanted = set(user_ids)
    return [p for p in mock_profiles if p["id"] in wanted]


def insert_profile(profile: dict) -> dict:
    mock_profiles.append(profile)
    return profile


def update_profile(user_id: str, fields: dict) -> Optional[dict]:
    profile = get_profile(user_id)
    if profile:
        profile.update(fields)
    return profile


def delete_profile(user_id: str) -> bool:
    profile = get_profile(user_id)
    if not profile:
        return False
    mock_profiles.remove(profile)
    return True


def get_ponto(ponto_id: str) -> Optional[dict]:
    for ponto in mock_pontos:
        if ponto["id"] == ponto_id:
            return ponto
    return None


def get_pontos(user_id: Optional[str] = None, status: Optional[str] = None,
               date_from: Optional[date] = None, date_to: Optional[date] = None) -> List[dict]:
    start, end = day_bounds(date_from, date_to)
    rows = []
    for ponto in mock_pontos:
        if user_id is not None and ponto["user_id"] != user_id:
            continue
        if status is not None and ponto["status"] != status:
            continue
        if start is not None and not start <= wall_clock(ponto["timestamp_solicitado"]) <= end:
            continue
        rows.append(ponto)
    return sorted(rows, key=lambda x: wall_clock(x["timestamp_solicitado"]))


def insert_ponto(ponto: dict) -> dict:
    mock_pontos.append(ponto)
    return ponto


def update_ponto(ponto_id: str, fields: dict) -> Optional[dict]:
    ponto = get_ponto(ponto_id)
    if ponto:
        ponto.update(fields)
    return ponto


def get_expedientes(user_id: str) -> List[dict]:
    return sorted([
        e for e in mock_expedientes if e["user_id"] == user_id
    ], key=lambda x: x["day_of_week"])


def delete_expedientes(user_id: str) -> int:
    before = len(mock_expedientes)
    mock_expedientes[:] = [e for e in mock_expedientes if e["user_id"] != user_id]
    return before - len(mock_expedientes)


def insert_expediente(expediente: dict) -> dict:
    mock_expedientes.append(expediente)
    return expediente
