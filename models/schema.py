import re
from datetime import datetime, date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, field_validator, model_validator

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class EventKind(str, Enum):
    ENTRADA = "entrada"
    SAIDA = "saida"
    SAIDA_ALMOCO = "saida_almoco"
    VOLTA_ALMOCO = "volta_almoco"


class ApprovalStatus(str, Enum):
    PENDENTE = "pendente"
    APROVADO = "aprovado"
    REJEITADO = "rejeitado"


class Role(str, Enum):
    EMPLOYEE = "employee"
    ADMIN = "admin"


class LunchPolicy(str, Enum):
    EXPLICIT = "explicit"
    FLAT_DEDUCTION = "flat_deduction"


def _normalize_kind(value):
    # older rows spell the exit kind with an accent
    if isinstance(value, str) and value == "saída":
        return EventKind.SAIDA.value
    return value


class ClockEvent(BaseModel):
    id: str
    user_id: str
    tipo_batida: EventKind
    timestamp_solicitado: datetime
    status: ApprovalStatus = ApprovalStatus.PENDENTE
    timestamp_aprovado: Optional[datetime] = None
    admin_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    foto_url: Optional[str] = None
    created_at: Optional[datetime] = None

    normalize_kind = field_validator("tipo_batida", mode="before")(_normalize_kind)


class ClockEventIn(BaseModel):
    user_id: str
    tipo_batida: EventKind
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    foto_url: Optional[str] = None

    normalize_kind = field_validator("tipo_batida", mode="before")(_normalize_kind)


class DailySummary(BaseModel):
    date: date
    total_minutes: int
    total_hours: str


class ClockReport(BaseModel):
    daily_summaries: List[DailySummary] = []
    total_minutes: int = 0
    total_hours: str = "0h 0m"


class ClockStatus(BaseModel):
    is_clocked_in: bool = False
    is_on_lunch: bool = False
    has_clocked_in_today: bool = False
    has_clocked_out_today: bool = False
    last_action_time: Optional[str] = None
    next_actions: List[EventKind] = [EventKind.ENTRADA]


class EmployeeProfile(BaseModel):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    role: Role = Role.EMPLOYEE
    avatar_url: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class EmployeeForm(BaseModel):
    name: str
    email: str
    role: Role = Role.EMPLOYEE

    def split_name(self):
        first_name, _, last_name = self.name.strip().partition(" ")
        return first_name, last_name.strip()


class Expediente(BaseModel):
    id: str
    user_id: str
    day_of_week: int
    start_time: str
    end_time: str


class WeeklyScheduleForm(BaseModel):
    weekday_start_time: str = "09:00"
    weekday_end_time: str = "18:00"
    saturday_enabled: bool = False
    saturday_start_time: Optional[str] = "09:00"
    saturday_end_time: Optional[str] = "13:00"
    sunday_enabled: bool = False
    sunday_start_time: Optional[str] = "09:00"
    sunday_end_time: Optional[str] = "13:00"

    @field_validator(
        "weekday_start_time", "weekday_end_time",
        "saturday_start_time", "saturday_end_time",
        "sunday_start_time", "sunday_end_time",
    )
    @classmethod
    def check_time_format(cls, value):
        if value is not None and not TIME_PATTERN.match(value):
            raise ValueError("Formato de hora inválido (HH:MM)")
        return value

    @model_validator(mode="after")
    def check_weekend_times(self):
        if self.saturday_enabled and not (self.saturday_start_time and self.saturday_end_time):
            raise ValueError("Horas de início e fim são obrigatórias para sábado.")
        if self.sunday_enabled and not (self.sunday_start_time and self.sunday_end_time):
            raise ValueError("Horas de início e fim são obrigatórias para domingo.")
        return self
