import logging
from datetime import datetime, date, timedelta
from typing import Dict, Iterable, List, Optional

from config import (
    ALLOW_OVERNIGHT_SEGMENTS,
    FLAT_LUNCH_DEDUCTION_MINUTES,
    FLAT_LUNCH_THRESHOLD_MINUTES,
    LUNCH_POLICY,
    REPORT_STATUSES,
)
from models.schema import (
    ApprovalStatus,
    ClockEvent,
    ClockReport,
    ClockStatus,
    DailySummary,
    EmployeeForm,
    EmployeeProfile,
    EventKind,
    LunchPolicy,
    Role,
    WeeklyScheduleForm,
)
from utils import bus
from utils.helper import (
    EventSourceError,
    day_bounds,
    delete_expedientes,
    delete_profile,
    get_expedientes,
    get_ponto,
    get_pontos,
    get_profile,
    get_profile_by_email,
    get_profiles_by_ids,
    insert_expediente,
    insert_ponto,
    insert_profile,
    list_profiles,
    new_id,
    update_ponto,
    update_profile,
    wall_clock,
)

LUNCH_KINDS = (EventKind.SAIDA_ALMOCO, EventKind.VOLTA_ALMOCO)
WEEKDAYS = (1, 2, 3, 4, 5)
SATURDAY = 6
SUNDAY = 0


def format_minutes(total_minutes: int) -> str:
    if total_minutes < 0:
        return "0h 0m"
    return f"{total_minutes // 60}h {total_minutes % 60}m"


def _as_event(event) -> ClockEvent:
    if isinstance(event, ClockEvent):
        return event
    return ClockEvent.model_validate(event)


def _credit(daily_minutes: Dict[date, int], day_key: date, start: datetime, end: datetime) -> None:
    minutes = max(0, int((end - start).total_seconds() // 60))
    daily_minutes[day_key] = daily_minutes.get(day_key, 0) + minutes


def aggregate(events: Iterable, statuses: Optional[Iterable[ApprovalStatus]] = None,
              lunch_policy: LunchPolicy = LunchPolicy.EXPLICIT,
              allow_overnight: bool = False) -> ClockReport:
    """Turn raw clock events into worked minutes per calendar day.

    Events are walked in chronological order (ties broken by id). Only closed
    segments are credited, always to the day of the entrada that opened them:

    - entrada opens a segment, restarting any segment still open;
    - the first saida_almoco of a span credits the pre-lunch part and opens lunch;
    - volta_almoco ends the lunch and reopens the segment, the lunch itself is never credited;
    - saida credits the open segment and closes the span.

    Anything else is ignored. Unless ``allow_overnight`` is set, an event falling
    on another calendar day than the open entrada abandons that span uncredited.
    With ``LunchPolicy.FLAT_DEDUCTION`` lunch events are skipped and a day
    reaching FLAT_LUNCH_THRESHOLD_MINUTES loses FLAT_LUNCH_DEDUCTION_MINUTES.

    Timestamps are compared as wall-clock time, so aware and naive rows mix.

    ``statuses`` restricts the events considered; None or empty keeps every status.
    """
    wanted = set(ApprovalStatus(s) for s in statuses) if statuses else None
    ordered = sorted(
        (e for e in map(_as_event, events) if wanted is None or e.status in wanted),
        key=lambda e: (wall_clock(e.timestamp_solicitado), e.id),
    )
    explicit_lunch = lunch_policy == LunchPolicy.EXPLICIT

    daily_minutes: Dict[date, int] = {}
    segment_start = None
    day_key = None
    on_lunch = False
    lunch_used = False

    for event in ordered:
        kind = event.tipo_batida
        moment = wall_clock(event.timestamp_solicitado)

        if kind in LUNCH_KINDS and not explicit_lunch:
            continue

        if kind == EventKind.ENTRADA:
            segment_start, day_key = moment, moment.date()
            on_lunch = lunch_used = False
            continue

        if day_key is None:
            continue

        if moment.date() != day_key and not allow_overnight:
            segment_start = day_key = None
            on_lunch = lunch_used = False
            continue

        if kind == EventKind.SAIDA_ALMOCO:
            if not on_lunch and not lunch_used:
                _credit(daily_minutes, day_key, segment_start, moment)
                on_lunch = lunch_used = True
        elif kind == EventKind.VOLTA_ALMOCO:
            if on_lunch:
                segment_start = moment
                on_lunch = False
        elif kind == EventKind.SAIDA:
            if not on_lunch:
                _credit(daily_minutes, day_key, segment_start, moment)
            segment_start = day_key = None
            on_lunch = lunch_used = False

    if not explicit_lunch:
        for day, minutes in daily_minutes.items():
            if minutes >= FLAT_LUNCH_THRESHOLD_MINUTES:
                daily_minutes[day] = max(0, minutes - FLAT_LUNCH_DEDUCTION_MINUTES)

    summaries = [
        DailySummary(date=day, total_minutes=minutes, total_hours=format_minutes(minutes))
        for day, minutes in sorted(daily_minutes.items())
    ]
    total = sum(s.total_minutes for s in summaries)
    return ClockReport(daily_summaries=summaries, total_minutes=total, total_hours=format_minutes(total))


def filter_by_date_range(events: Iterable, date_from: Optional[date] = None,
                         date_to: Optional[date] = None) -> List[ClockEvent]:
    events = [_as_event(e) for e in events]
    start, end = day_bounds(date_from, date_to)
    if start is None:
        return events
    return [e for e in events if start <= wall_clock(e.timestamp_solicitado) <= end]


def build_clock_report(user_id: Optional[str] = None, date_from: Optional[date] = None,
                       date_to: Optional[date] = None,
                       statuses: Optional[Iterable[ApprovalStatus]] = None,
                       lunch_policy: Optional[LunchPolicy] = None,
                       allow_overnight: Optional[bool] = None) -> ClockReport:
    try:
        rows = get_pontos(user_id=user_id, date_from=date_from, date_to=date_to)
    except EventSourceError as e:
        logging.error(f"Could not load clock events for report (user_id: {user_id}): {e}")
        raise

    return aggregate(
        filter_by_date_range(rows, date_from, date_to),
        statuses=statuses if statuses is not None else REPORT_STATUSES,
        lunch_policy=lunch_policy or LUNCH_POLICY,
        allow_overnight=ALLOW_OVERNIGHT_SEGMENTS if allow_overnight is None else allow_overnight,
    )


def get_clock_status(user_id: str, day: Optional[date] = None) -> ClockStatus:
    day = day or date.today()
    events = [_as_event(p) for p in get_pontos(user_id=user_id, date_from=day)]
    if not events:
        return ClockStatus()

    lunch_used = False
    for event in events:
        if event.tipo_batida in (EventKind.ENTRADA, EventKind.SAIDA):
            lunch_used = False
        elif event.tipo_batida == EventKind.SAIDA_ALMOCO:
            lunch_used = True

    last = events[-1]
    is_clocked_in = last.tipo_batida != EventKind.SAIDA
    is_on_lunch = last.tipo_batida == EventKind.SAIDA_ALMOCO

    if not is_clocked_in:
        next_actions = [EventKind.ENTRADA]
    elif is_on_lunch:
        next_actions = [EventKind.VOLTA_ALMOCO]
    elif lunch_used:
        next_actions = [EventKind.SAIDA]
    else:
        next_actions = [EventKind.SAIDA_ALMOCO, EventKind.SAIDA]

    return ClockStatus(
        is_clocked_in=is_clocked_in,
        is_on_lunch=is_on_lunch,
        has_clocked_in_today=any(e.tipo_batida == EventKind.ENTRADA for e in events),
        has_clocked_out_today=any(e.tipo_batida == EventKind.SAIDA for e in events),
        last_action_time=last.timestamp_solicitado.strftime("%H:%M:%S"),
        next_actions=next_actions,
    )


def record_clock_event(user_id: str, tipo_batida, latitude: Optional[float],
                       longitude: Optional[float], foto_url: Optional[str],
                       timestamp: Optional[datetime] = None) -> Optional[Dict]:
    if not get_profile(user_id):
        logging.error(f"Unknown user_id: {user_id}")
        return None

    if latitude is None or longitude is None or not foto_url:
        logging.warning(f"Missing location or photo for user_id: {user_id}")
        return None

    kind = EventKind(tipo_batida)
    timestamp = timestamp or datetime.now()

    status = get_clock_status(user_id, timestamp.date())
    allowed = list(status.next_actions)
    if ALLOW_OVERNIGHT_SEGMENTS and status.last_action_time is None:
        # a span opened before midnight can still be continued the next day
        previous = get_clock_status(user_id, timestamp.date() - timedelta(days=1))
        if previous.is_clocked_in:
            allowed += previous.next_actions
    if kind not in allowed:
        logging.warning(f"Out-of-sequence {kind.value} punch for user_id: {user_id}")
        return None

    new_ponto = {
        "id": new_id(),
        "user_id": user_id,
        "tipo_batida": kind.value,
        "timestamp_solicitado": timestamp,
        "status": ApprovalStatus.PENDENTE.value,
        "timestamp_aprovado": None,
        "admin_id": None,
        "latitude": latitude,
        "longitude": longitude,
        "foto_url": foto_url,
        "created_at": datetime.now(),
    }
    insert_ponto(new_ponto)
    logging.info(f"Recorded {kind.value} punch for user_id: {user_id}")
    bus.publish("ponto_registrado", ponto_id=new_ponto["id"], user_id=user_id)
    return new_ponto


def _require_admin(admin_id: str) -> dict:
    profile = get_profile(admin_id)
    if not profile or profile["role"] != Role.ADMIN.value:
        logging.warning(f"Admin action refused for user_id: {admin_id}")
        raise PermissionError("Apenas administradores podem realizar esta ação.")
    return profile


def list_pending_events(admin_id: str) -> List[Dict]:
    _require_admin(admin_id)
    pending = get_pontos(status=ApprovalStatus.PENDENTE.value)
    names = {
        p["id"]: EmployeeProfile.model_validate(p).full_name
        for p in get_profiles_by_ids({row["user_id"] for row in pending})
    }
    return [dict(row, employee_name=names.get(row["user_id"]) or row["user_id"]) for row in pending]


def review_clock_event(ponto_id: str, admin_id: str, status) -> Dict:
    _require_admin(admin_id)
    status = ApprovalStatus(status)
    if status == ApprovalStatus.PENDENTE:
        raise ValueError("Status de revisão deve ser 'aprovado' ou 'rejeitado'.")

    if not get_ponto(ponto_id):
        raise LookupError(f"Ponto {ponto_id} não encontrado.")

    ponto = update_ponto(ponto_id, {
        "status": status.value,
        "timestamp_aprovado": datetime.now(),
        "admin_id": admin_id,
    })
    logging.info(f"Ponto {ponto_id} {status.value} by admin_id: {admin_id}")
    bus.publish("ponto_revisado", ponto_id=ponto_id, status=status.value)
    return ponto


def list_employees(admin_id: str) -> List[Dict]:
    _require_admin(admin_id)
    return list_profiles()


def create_employee(admin_id: str, form: EmployeeForm) -> Dict:
    _require_admin(admin_id)
    first_name, last_name = form.split_name()
    if not form.email or not first_name:
        raise ValueError("email, first_name e role são obrigatórios.")
    if get_profile_by_email(form.email):
        raise ValueError(f"O email '{form.email}' já está em uso.")

    profile = insert_profile({
        "id": new_id(),
        "first_name": first_name,
        "last_name": last_name,
        "email": form.email,
        "role": form.role.value,
        "avatar_url": None,
        "updated_at": datetime.now(),
    })
    logging.info(f"Employee {profile['id']} created by admin_id: {admin_id}")
    bus.publish("funcionario_criado", user_id=profile["id"])
    return profile


def update_employee(admin_id: str, user_id: str, form: EmployeeForm) -> Dict:
    _require_admin(admin_id)
    if not get_profile(user_id):
        raise LookupError(f"Funcionário {user_id} não encontrado.")

    first_name, last_name = form.split_name()
    if not form.email or not first_name:
        raise ValueError("email, first_name e role são obrigatórios.")
    owner = get_profile_by_email(form.email)
    if owner and owner["id"] != user_id:
        raise ValueError(f"O email '{form.email}' já está em uso.")

    profile = update_profile(user_id, {
        "first_name": first_name,
        "last_name": last_name,
        "email": form.email,
        "role": form.role.value,
        "updated_at": datetime.now(),
    })
    bus.publish("funcionario_atualizado", user_id=user_id)
    return profile


def delete_employee(admin_id: str, user_id: str) -> None:
    _require_admin(admin_id)
    if not delete_profile(user_id):
        raise LookupError(f"Funcionário {user_id} não encontrado.")
    removed = delete_expedientes(user_id)
    logging.info(f"Employee {user_id} deleted with {removed} schedule rows by admin_id: {admin_id}")
    bus.publish("funcionario_removido", user_id=user_id)


def get_schedules(user_id: str) -> List[Dict]:
    return get_expedientes(user_id)


def save_weekly_schedule(admin_id: str, user_id: str, form: WeeklyScheduleForm) -> List[Dict]:
    _require_admin(admin_id)
    if not get_profile(user_id):
        raise LookupError(f"Funcionário {user_id} não encontrado.")

    rows = [(day, form.weekday_start_time, form.weekday_end_time) for day in WEEKDAYS]
    if form.saturday_enabled:
        rows.append((SATURDAY, form.saturday_start_time, form.saturday_end_time))
    if form.sunday_enabled:
        rows.append((SUNDAY, form.sunday_start_time, form.sunday_end_time))

    delete_expedientes(user_id)
    for day, start, end in rows:
        insert_expediente({
            "id": new_id(),
            "user_id": user_id,
            "day_of_week": day,
            "start_time": f"{start}:00",
            "end_time": f"{end}:00",
        })
    logging.info(f"Saved {len(rows)} schedule rows for user_id: {user_id}")
    bus.publish("expediente_salvo", user_id=user_id)
    return get_expedientes(user_id)
