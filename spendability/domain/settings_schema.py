"""
Versioned settings document: validation, migration and safe merging.

The settings document is a plain JSON-like dict stored once per user.
Each migration step N -> N+1 is a pure function; migrate() applies every
step from the document's version up to CURRENT_SCHEMA_VERSION in order.

Protected fields (pay amounts, last pay date, linked bank accounts, names)
are never erased by a merge that happens to carry an empty value for them.
"""

import copy
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

from spendability.domain.models import (
    BIWEEKLY,
    PAY_CADENCES,
    SEMIMONTHLY,
    EarlyDepositConfig,
    PaySchedule,
    ValidationResult,
)
from spendability.domain.schedule import LAST_DAY_OF_MONTH, normalize_cadence
from spendability.utils.date_utils import parse_date

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 3

REQUIRED_FIELDS: Dict[str, type] = {
    "paySchedules.yours.lastPaydate": str,
    "paySchedules.yours.amount": Decimal,
    "personalInfo.yourName": str,
}

DATE_FIELDS = frozenset({"paySchedules.yours.lastPaydate"})

PROTECTED_FIELDS: Tuple[str, ...] = (
    "paySchedules.yours.lastPaydate",
    "paySchedules.yours.amount",
    "paySchedules.spouse.amount",
    "spousePayAmount",
    "lastPayDate",
    "payAmount",
    "plaidAccounts",
    "personalInfo.yourName",
    "personalInfo.spouseName",
)

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "safetyBuffer": 100,
    "weeklyEssentials": 100,
    "billSortOrder": "dueDate",
    "urgentDays": 7,
    "warningDays": 14,
    "dueDateAlerts": True,
}

DEFAULT_SPOUSE_DATES = [15, 30]

_MISSING = object()

Document = Dict[str, Any]


def is_empty(value: Any) -> bool:
    """None, missing, empty string and empty collections all count as empty"""
    if value is None or value is _MISSING:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict, tuple)):
        return len(value) == 0
    return False


def get_path(doc: Optional[Document], path: str, default: Any = None) -> Any:
    """Read a dot-notation path, returning default when any segment is missing"""
    current: Any = doc
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def set_path(doc: Document, path: str, value: Any) -> None:
    """Write a dot-notation path, creating intermediate dicts as needed"""
    keys = path.split(".")
    target = doc
    for key in keys[:-1]:
        if not isinstance(target.get(key), dict):
            target[key] = {}
        target = target[key]
    target[keys[-1]] = value


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _days_of_month(value: Any) -> Optional[Tuple[int, ...]]:
    """Spouse pay days as integers 1-31, None when any entry is unusable"""
    if not isinstance(value, list) or not value:
        return None
    days = tuple(_to_int(day) for day in value)
    if any(day is None or not 1 <= day <= 31 for day in days):
        return None
    return days


def _end_of_month_day(day: int) -> int:
    """Stored spouse dates say 30 for the month-end payroll; 30 and 31 both mean the last day"""
    return LAST_DAY_OF_MONTH if day >= 30 else day


def _pay_cadence(value: Any, default: str) -> Optional[str]:
    """Canonical pay cadence, None for a value no pay schedule supports"""
    if is_empty(value):
        return default
    if not isinstance(value, str):
        return None
    cadence = normalize_cadence(value)
    return cadence if cadence in PAY_CADENCES else None


def get_defaults() -> Document:
    """Default settings document at the current schema version"""
    return {
        "schemaVersion": CURRENT_SCHEMA_VERSION,
        "personalInfo": {"yourName": "", "spouseName": ""},
        "paySchedules": {
            "yours": {
                "type": "bi-weekly",
                "amount": 0,
                "lastPaydate": "",
                "bankSplit": {
                    "fixedAmount": {"bank": "", "amount": 0},
                    "remainder": {"bank": ""},
                },
            },
            "spouse": {"type": "bi-monthly", "amount": 0, "dates": list(DEFAULT_SPOUSE_DATES)},
        },
        "plaidAccounts": [],
        "preferences": dict(DEFAULT_PREFERENCES),
        "lastPayDate": "",
        "payAmount": 0,
        "spousePayAmount": 0,
    }


def _first_populated(*values: Any, default: Any = None) -> Any:
    for value in values:
        if not is_empty(value):
            return value
    return default


def _migrate_v1_to_v2(doc: Document) -> Document:
    """Flat pay fields become nested paySchedules; flat fields stay for old readers"""
    migrated = dict(doc)

    if not isinstance(migrated.get("paySchedules"), dict):
        migrated["paySchedules"] = {
            "yours": {
                "type": "bi-weekly",
                "amount": _first_populated(migrated.get("yourPayAmount"), migrated.get("payAmount"), default=0),
                "lastPaydate": _first_populated(migrated.get("lastPayDate"), default=""),
                "bankSplit": migrated.get("bankSplit")
                or {"fixedAmount": {"bank": "", "amount": 0}, "remainder": {"bank": ""}},
            },
            "spouse": {
                "type": "bi-monthly",
                "amount": _first_populated(migrated.get("spousePayAmount"), default=0),
                "dates": list(DEFAULT_SPOUSE_DATES),
            },
        }

    schedules = migrated["paySchedules"]
    migrated["lastPayDate"] = _first_populated(migrated.get("lastPayDate"), get_path(schedules, "yours.lastPaydate"), default="")
    migrated["payAmount"] = _first_populated(migrated.get("payAmount"), get_path(schedules, "yours.amount"), default=0)
    migrated["spousePayAmount"] = _first_populated(
        migrated.get("spousePayAmount"), get_path(schedules, "spouse.amount"), default=0
    )

    migrated["schemaVersion"] = 2
    return migrated


def _migrate_v2_to_v3(doc: Document) -> Document:
    """Add personalInfo, fill preference defaults, give the spouse schedule its dates"""
    migrated = dict(doc)

    if not isinstance(migrated.get("personalInfo"), dict):
        migrated["personalInfo"] = {"yourName": "", "spouseName": ""}

    migrated["preferences"] = {**DEFAULT_PREFERENCES, **(migrated.get("preferences") or {})}

    spouse = get_path(migrated, "paySchedules.spouse")
    if isinstance(spouse, dict) and not spouse.get("dates"):
        spouse["dates"] = list(DEFAULT_SPOUSE_DATES)
        spouse["type"] = spouse.get("type") or "bi-monthly"

    migrated["schemaVersion"] = 3
    return migrated


MIGRATIONS: Dict[int, Callable[[Document], Document]] = {
    1: _migrate_v1_to_v2,
    2: _migrate_v2_to_v3,
}


def migrate(doc: Optional[Document]) -> Document:
    """
    Bring a settings document up to CURRENT_SCHEMA_VERSION.

    Every step from the stored version (1 when absent) is applied in order,
    even if the fields it touches already look correct. The input is never
    mutated. Applying migrate twice gives the same result as applying it once.
    """
    if doc is None:
        logger.warning("Cannot migrate missing settings, using defaults")
        return get_defaults()

    migrated = copy.deepcopy(doc)
    start_version = _to_int(migrated.get("schemaVersion")) or 1

    for version in range(start_version, CURRENT_SCHEMA_VERSION):
        step = MIGRATIONS.get(version)
        if step is None:
            logger.warning("No migration path", extra={"from_version": version, "to_version": version + 1})
            continue
        migrated = step(migrated)

    if start_version < CURRENT_SCHEMA_VERSION:
        logger.info(
            "Settings migrated",
            extra={"from_version": start_version, "to_version": CURRENT_SCHEMA_VERSION},
        )

    migrated["schemaVersion"] = max(start_version, CURRENT_SCHEMA_VERSION)
    return migrated


def validate(doc: Optional[Document]) -> ValidationResult:
    """
    Check required fields and types plus the conditional spouse rule.

    A spouse name is only required when a spouse pay amount greater than
    zero is present; no secondary income never produces an error.
    """
    errors: List[str] = []
    warnings: List[str] = []

    if doc is None:
        return ValidationResult(valid=False, errors=["Settings document is missing"], warnings=warnings)

    version = _to_int(doc.get("schemaVersion"))
    if not version:
        warnings.append("No schema version found - settings may need migration")
    elif version < CURRENT_SCHEMA_VERSION:
        warnings.append(f"Settings are outdated (v{version}). Current version is v{CURRENT_SCHEMA_VERSION}")

    for path, expected in REQUIRED_FIELDS.items():
        value = get_path(doc, path, _MISSING)
        if is_empty(value):
            errors.append(f"Required field missing or empty: {path}")
            continue
        if expected is Decimal:
            if _to_decimal(value) is None:
                errors.append(f"Field {path} must be a valid number, got: {value!r}")
        elif not isinstance(value, expected):
            errors.append(f"Field {path} has wrong type. Expected {expected.__name__}, got {type(value).__name__}")
        elif path in DATE_FIELDS and parse_date(value) is None:
            errors.append(f"Field {path} must be a YYYY-MM-DD date, got: {value!r}")

    spouse_amount = _to_decimal(get_path(doc, "paySchedules.spouse.amount"))
    if spouse_amount is not None and spouse_amount > 0:
        if is_empty(get_path(doc, "personalInfo.spouseName")):
            errors.append("Spouse name is required when spouse pay amount is entered")

    dates = get_path(doc, "paySchedules.spouse.dates", _MISSING)
    if dates is not _MISSING and dates is not None:
        if not isinstance(dates, list):
            errors.append("paySchedules.spouse.dates must be a list")
        elif len(dates) == 0:
            errors.append("paySchedules.spouse.dates cannot be empty")
        elif _days_of_month(dates) is None:
            errors.append(f"paySchedules.spouse.dates must hold days of the month (1-31), got: {dates!r}")

    for owner in ("yours", "spouse"):
        cadence = get_path(doc, f"paySchedules.{owner}.type")
        if _pay_cadence(cadence, BIWEEKLY) is None:
            errors.append(f"Field paySchedules.{owner}.type is not a supported pay frequency, got: {cadence!r}")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def merge_safely(existing: Optional[Document], incoming: Optional[Document]) -> Document:
    """
    Start from incoming, restoring protected fields it emptied.

    For each protected path: if existing holds a non-empty value and incoming
    is empty or missing there, the existing value is put back. This guards
    against partial updates wiping pay amounts, the last pay date or the
    linked bank account list.
    """
    if not existing:
        return copy.deepcopy(incoming or {})
    if not incoming:
        return copy.deepcopy(existing)

    merged = copy.deepcopy(incoming)
    for path in PROTECTED_FIELDS:
        existing_value = get_path(existing, path, _MISSING)
        incoming_value = get_path(incoming, path, _MISSING)
        if not is_empty(existing_value) and is_empty(incoming_value):
            logger.info("Protected field preserved", extra={"field": path})
            set_path(merged, path, copy.deepcopy(existing_value))

    return merged


def ensure_required_fields(doc: Optional[Document]) -> Document:
    """Fill still-missing required paths and core structures with defaults; populated fields are untouched"""
    defaults = get_defaults()
    if doc is None:
        logger.warning("Settings missing, using defaults")
        return defaults

    ensured = copy.deepcopy(doc)

    for path in REQUIRED_FIELDS:
        if is_empty(get_path(ensured, path, _MISSING)):
            default_value = get_path(defaults, path)
            logger.info("Required field missing, using default", extra={"field": path})
            set_path(ensured, path, copy.deepcopy(default_value))

    preferences = ensured.get("preferences")
    ensured["preferences"] = {**DEFAULT_PREFERENCES, **(preferences if isinstance(preferences, dict) else {})}

    if not get_path(ensured, "paySchedules.spouse.dates"):
        set_path(ensured, "paySchedules.spouse.dates", list(DEFAULT_SPOUSE_DATES))
        if not get_path(ensured, "paySchedules.spouse.type"):
            set_path(ensured, "paySchedules.spouse.type", "bi-monthly")

    if not ensured.get("schemaVersion"):
        ensured["schemaVersion"] = CURRENT_SCHEMA_VERSION

    return ensured


def preference_amount(doc: Document, key: str) -> Decimal:
    """Monetary preference as a Decimal, falling back to the schema default"""
    value = _to_decimal(get_path(doc, f"preferences.{key}"))
    if value is None:
        value = Decimal(str(DEFAULT_PREFERENCES.get(key, 0)))
    return value


def _early_deposit(split: Any, schedule_destination: str) -> Optional[EarlyDepositConfig]:
    if not isinstance(split, dict):
        return None
    amount = _to_decimal(get_path(split, "fixedAmount.amount"))
    if amount is None or amount <= 0:
        return None
    return EarlyDepositConfig(
        enabled=bool(split.get("enabled", True)),
        amount=amount,
        days_before_main=_to_int(split.get("daysBeforeMain", 2)) or 0,
        early_destination=get_path(split, "fixedAmount.bank") or "",
        main_destination=get_path(split, "remainder.bank") or schedule_destination,
    )


def pay_schedules_from_settings(doc: Document) -> Tuple[Optional[PaySchedule], Optional[PaySchedule]]:
    """
    Build the primary and secondary PaySchedule from a migrated settings document.

    A schedule with no positive amount, an unsupported pay frequency or (for
    anchored cadences) no usable anchor date is treated as absent. Unusable
    spouse pay days fall back to the defaults. validate() reports the same
    problems as errors.
    """
    primary_doc = get_path(doc, "paySchedules.yours") or {}
    spouse_doc = get_path(doc, "paySchedules.spouse") or {}

    primary = None
    amount = _to_decimal(primary_doc.get("amount"))
    anchor = parse_date(primary_doc.get("lastPaydate"))
    cadence = _pay_cadence(primary_doc.get("type"), BIWEEKLY)
    if cadence is None:
        logger.warning(
            "Unsupported pay frequency, ignoring schedule", extra={"owner": "yours", "type": primary_doc.get("type")}
        )
    elif amount is not None and amount > 0 and anchor is not None:
        destination = get_path(primary_doc, "bankSplit.remainder.bank") or ""
        primary = PaySchedule(
            cadence=cadence,
            amount=amount,
            anchor_date=anchor,
            destination=destination,
            owner="yours",
            early_deposit=_early_deposit(primary_doc.get("bankSplit"), destination),
        )

    secondary = None
    spouse_amount = _to_decimal(spouse_doc.get("amount"))
    if spouse_amount is not None and spouse_amount > 0:
        cadence = _pay_cadence(spouse_doc.get("type"), SEMIMONTHLY)
        spouse_anchor = parse_date(spouse_doc.get("lastPaydate"))
        if spouse_anchor is None and cadence == SEMIMONTHLY:
            spouse_anchor = date.min
        days = _days_of_month(spouse_doc.get("dates"))
        if days is None:
            if spouse_doc.get("dates"):
                logger.warning("Unusable spouse pay days, using defaults", extra={"dates": spouse_doc.get("dates")})
            days = tuple(DEFAULT_SPOUSE_DATES)
        if cadence is None:
            logger.warning(
                "Unsupported pay frequency, ignoring schedule", extra={"owner": "spouse", "type": spouse_doc.get("type")}
            )
        elif spouse_anchor is not None:
            secondary = PaySchedule(
                cadence=cadence,
                amount=spouse_amount,
                anchor_date=spouse_anchor,
                anchor_days_of_month=(days[0], _end_of_month_day(days[-1])),
                destination=spouse_doc.get("destination") or "",
                owner="spouse",
                weekend_adjust=bool(spouse_doc.get("weekendAdjust", cadence == SEMIMONTHLY)),
            )

    return primary, secondary
