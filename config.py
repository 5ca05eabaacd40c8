import os
from pathlib import Path

from dotenv import load_dotenv

from models.schema import ApprovalStatus, LunchPolicy

load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env", override=False)


def _to_int(value, default):
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _to_bool(value, default):
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _to_lunch_policy(value):
    try:
        return LunchPolicy((value or "").strip().lower())
    except ValueError:
        return LunchPolicy.EXPLICIT


def _to_statuses(value):
    # empty means every status counts towards the report
    statuses = []
    for item in (value or "").split(","):
        item = item.strip().lower()
        if item in ApprovalStatus._value2member_map_:
            statuses.append(ApprovalStatus(item))
    return statuses or None


LUNCH_POLICY = _to_lunch_policy(os.getenv("LUNCH_POLICY"))
ALLOW_OVERNIGHT_SEGMENTS = _to_bool(os.getenv("ALLOW_OVERNIGHT_SEGMENTS"), False)
FLAT_LUNCH_THRESHOLD_MINUTES = _to_int(os.getenv("FLAT_LUNCH_THRESHOLD_MINUTES"), 360)
FLAT_LUNCH_DEDUCTION_MINUTES = _to_int(os.getenv("FLAT_LUNCH_DEDUCTION_MINUTES"), 60)
REPORT_STATUSES = _to_statuses(os.getenv("REPORT_STATUSES"))
LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
