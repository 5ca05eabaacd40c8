import logging
from datetime import date
from typing import List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from config import LOG_LEVEL
from main import (
    build_clock_report,
    create_employee,
    delete_employee,
    get_clock_status,
    get_schedules,
    list_employees,
    list_pending_events,
    record_clock_event,
    review_clock_event,
    save_weekly_schedule,
    update_employee,
)
from models.schema import (
    ApprovalStatus,
    ClockEvent,
    ClockEventIn,
    ClockReport,
    ClockStatus,
    EmployeeForm,
    EmployeeProfile,
    Expediente,
    LunchPolicy,
    WeeklyScheduleForm,
)
from utils.helper import EventSourceError, get_pontos

logging.basicConfig(level=LOG_LEVEL)
app = FastAPI(title="Ponto")


@app.exception_handler(PermissionError)
def permission_error_handler(request: Request, exc: PermissionError):
    return JSONResponse(status_code=403, content={"error": str(exc)})


@app.exception_handler(LookupError)
def lookup_error_handler(request: Request, exc: LookupError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(ValueError)
def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(EventSourceError)
def event_source_error_handler(request: Request, exc: EventSourceError):
    logging.error(f"Event source failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={
        "error": "Event source unavailable",
        "source": exc.source,
        "detail": exc.message,
    })


@app.post("/pontos", response_model=ClockEvent)
def receive_ponto(ponto: ClockEventIn):
    new_ponto = record_clock_event(
        ponto.user_id, ponto.tipo_batida, ponto.latitude, ponto.longitude, ponto.foto_url
    )
    if new_ponto is None:
        return JSONResponse(status_code=400, content={"error": "Ponto não registrado."})
    return new_ponto


@app.get("/pontos", response_model=List[ClockEvent])
def read_pontos(user_id: Optional[str] = None, status: Optional[ApprovalStatus] = None,
                date_from: Optional[date] = None, date_to: Optional[date] = None):
    return get_pontos(
        user_id=user_id,
        status=status.value if status else None,
        date_from=date_from,
        date_to=date_to,
    )


@app.get("/pontos/pendentes")
def read_pending_pontos(admin_id: str):
    return list_pending_events(admin_id)


@app.post("/pontos/{ponto_id}/aprovar", response_model=ClockEvent)
def approve_ponto(ponto_id: str, admin_id: str):
    return review_clock_event(ponto_id, admin_id, ApprovalStatus.APROVADO)


@app.post("/pontos/{ponto_id}/rejeitar", response_model=ClockEvent)
def reject_ponto(ponto_id: str, admin_id: str):
    return review_clock_event(ponto_id, admin_id, ApprovalStatus.REJEITADO)


@app.get("/status/{user_id}", response_model=ClockStatus)
def read_clock_status(user_id: str, day: Optional[date] = None):
    return get_clock_status(user_id, day)


@app.get("/relatorio", response_model=ClockReport)
def read_clock_report(user_id: Optional[str] = None, date_from: Optional[date] = None,
                      date_to: Optional[date] = None,
                      status: Optional[List[ApprovalStatus]] = Query(None),
                      lunch_policy: Optional[LunchPolicy] = None):
    return build_clock_report(
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        statuses=status,
        lunch_policy=lunch_policy,
    )


@app.get("/funcionarios", response_model=List[EmployeeProfile])
def read_employees(admin_id: str):
    return list_employees(admin_id)


@app.post("/funcionarios", response_model=EmployeeProfile)
def add_employee(form: EmployeeForm, admin_id: str):
    return create_employee(admin_id, form)


@app.put("/funcionarios/{user_id}", response_model=EmployeeProfile)
def edit_employee(user_id: str, form: EmployeeForm, admin_id: str):
    return update_employee(admin_id, user_id, form)


@app.delete("/funcionarios/{user_id}")
def remove_employee(user_id: str, admin_id: str):
    delete_employee(admin_id, user_id)
    return {"status": "Funcionário removido."}


@app.get("/funcionarios/{user_id}/expedientes", response_model=List[Expediente])
def read_schedules(user_id: str):
    return get_schedules(user_id)


@app.put("/funcionarios/{user_id}/expedientes", response_model=List[Expediente])
def write_schedules(user_id: str, form: WeeklyScheduleForm, admin_id: str):
    return save_weekly_schedule(admin_id, user_id, form)
