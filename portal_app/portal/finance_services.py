from __future__ import annotations

import datetime
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction

from portal import live
from portal.activity_log import actor_identity, log_finance_action
from portal.models import FinancialRecord

logger = logging.getLogger(__name__)

INCOME_CATEGORIES: tuple[str, ...] = (
    "Membership Fees",
    "Donations",
    "Grants",
    "Event Revenue",
    "Sponsorships",
    "Other Income",
)

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Office Supplies",
    "Events & Activities",
    "Travel & Transportation",
    "Professional Development",
    "Equipment",
    "Utilities",
    "Salaries & Honorarium",
    "Miscellaneous",
)

_CATEGORIES_BY_TYPE: dict[str, tuple[str, ...]] = {
    FinancialRecord.Type.income: INCOME_CATEGORIES,
    FinancialRecord.Type.expense: EXPENSE_CATEGORIES,
}

_CENT = Decimal("0.01")
_MAX_AMOUNT = Decimal("9999999999.99")

_EDITABLE_FIELDS = ("type", "description", "amount", "category", "transaction_date", "reference_number")


class FinanceError(Exception):
    pass


class FinanceValidationError(FinanceError):
    pass


@dataclass(frozen=True)
class FinancialReport:
    start: datetime.date
    end: datetime.date
    records: list[FinancialRecord]

    @property
    def income_records(self) -> list[FinancialRecord]:
        return [r for r in self.records if r.type == FinancialRecord.Type.income]

    @property
    def expense_records(self) -> list[FinancialRecord]:
        return [r for r in self.records if r.type == FinancialRecord.Type.expense]

    @property
    def total_income(self) -> Decimal:
        return sum((r.amount for r in self.income_records), Decimal("0.00"))

    @property
    def total_expense(self) -> Decimal:
        return sum((r.amount for r in self.expense_records), Decimal("0.00"))

    @property
    def net_balance(self) -> Decimal:
        return self.total_income - self.total_expense


def format_currency(amount: Decimal | int | float) -> str:
    value = Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}{settings.FINANCE_CURRENCY_SYMBOL}{abs(value):,.2f}"


def parse_date(value: object, *, label: str = "Date") -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    text = str(value or "").strip()
    if not text:
        raise FinanceValidationError(f"{label} is required")
    try:
        return datetime.date.fromisoformat(text[:10])
    except ValueError as exc:
        raise FinanceValidationError(f"{label} must be a date (YYYY-MM-DD)") from exc


def _clean_amount(value: object) -> Decimal:
    if isinstance(value, bool):
        raise FinanceValidationError("Amount must be a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise FinanceValidationError("Amount must be a number") from exc
    if not amount.is_finite():
        raise FinanceValidationError("Amount must be a number")
    if amount > _MAX_AMOUNT:
        raise FinanceValidationError("Amount is too large")
    amount = amount.quantize(_CENT, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise FinanceValidationError("Amount must be greater than zero")
    return amount


def _clean_fields(fields: Mapping[str, object]) -> dict[str, object]:
    record_type = str(fields.get("type") or "").strip().lower()
    description = str(fields.get("description") or "").strip()
    category = str(fields.get("category") or "").strip()
    raw_amount = fields.get("amount")

    if not description or raw_amount in (None, "") or not category:
        raise FinanceValidationError("Please fill in all required fields.")
    if record_type not in _CATEGORIES_BY_TYPE:
        raise FinanceValidationError("Type must be income or expense")
    if category not in _CATEGORIES_BY_TYPE[record_type]:
        raise FinanceValidationError(f"Unknown {record_type} category: {category}")

    return {
        "type": record_type,
        "description": description,
        "amount": _clean_amount(raw_amount),
        "category": category,
        "transaction_date": parse_date(fields.get("transaction_date"), label="Transaction date"),
        "reference_number": str(fields.get("reference_number") or "").strip(),
    }


@transaction.atomic
def create_financial_record(*, fields: Mapping[str, object], actor: object | None = None) -> FinancialRecord:
    cleaned = _clean_fields(fields)
    recorded_by, recorded_by_name = actor_identity(actor)
    record = FinancialRecord.objects.create(**cleaned, recorded_by=recorded_by, recorded_by_name=recorded_by_name)

    log_finance_action(
        action="income_added" if record.type == FinancialRecord.Type.income else "expense_added",
        record_description=record.description,
        amount_display=format_currency(record.amount),
        actor=actor,
        metadata={"record_id": record.id, "amount": str(record.amount)},
    )
    live.publish(live.financial_records_changed, record_id=record.id)
    return record


@transaction.atomic
def update_financial_record(
    *,
    record: FinancialRecord,
    changes: Mapping[str, object],
    actor: object | None = None,
) -> FinancialRecord:
    """Apply a partial update; omitted fields keep their current values."""

    locked = FinancialRecord.objects.select_for_update().get(pk=record.pk)
    merged: dict[str, object] = {name: getattr(locked, name) for name in _EDITABLE_FIELDS}
    merged.update({name: value for name, value in changes.items() if name in _EDITABLE_FIELDS})
    cleaned = _clean_fields(merged)

    for name, value in cleaned.items():
        setattr(locked, name, value)
    locked.save(update_fields=[*cleaned.keys(), "updated_at"])

    log_finance_action(
        action="record_updated",
        record_description=locked.description,
        amount_display=format_currency(locked.amount),
        actor=actor,
        metadata={"record_id": locked.id, "amount": str(locked.amount)},
    )
    live.publish(live.financial_records_changed, record_id=locked.id)
    return locked


@transaction.atomic
def delete_financial_record(*, record: FinancialRecord, actor: object | None = None) -> None:
    record_id = record.id
    description = record.description
    amount = record.amount
    FinancialRecord.objects.filter(pk=record_id).delete()

    log_finance_action(
        action="record_deleted",
        record_description=description,
        amount_display=format_currency(amount),
        actor=actor,
        metadata={"record_id": record_id, "amount": str(amount)},
    )
    live.publish(live.financial_records_changed, record_id=record_id)


def list_financial_records() -> list[FinancialRecord]:
    return list(FinancialRecord.objects.order_by("-transaction_date", "-id"))


def records_by_date_range(*, start: datetime.date, end: datetime.date) -> list[FinancialRecord]:
    """Records dated within [start, end], both days included, newest first."""

    if start > end:
        raise FinanceValidationError("Start date must be before end date.")
    return list(
        FinancialRecord.objects.filter(transaction_date__gte=start, transaction_date__lte=end).order_by(
            "-transaction_date", "-id"
        )
    )


def financial_report(*, start: datetime.date, end: datetime.date) -> FinancialReport:
    report = FinancialReport(start=start, end=end, records=records_by_date_range(start=start, end=end))
    logger.info(
        "Financial report start=%s end=%s records=%s net=%s",
        start,
        end,
        len(report.records),
        report.net_balance,
    )
    return report


def serialize_financial_record(record: FinancialRecord) -> dict[str, object]:
    return {
        "id": record.id,
        "type": record.type,
        "description": record.description,
        "amount": str(record.amount),
        "amount_display": format_currency(record.amount),
        "category": record.category,
        "transaction_date": record.transaction_date.isoformat(),
        "reference_number": record.reference_number,
        "recorded_by": record.recorded_by,
        "recorded_by_name": record.recorded_by_name,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
    }


def serialize_financial_report(report: FinancialReport) -> dict[str, object]:
    return {
        "start": report.start.isoformat(),
        "end": report.end.isoformat(),
        "total_income": str(report.total_income),
        "total_expense": str(report.total_expense),
        "net_balance": str(report.net_balance),
        "total_income_display": format_currency(report.total_income),
        "total_expense_display": format_currency(report.total_expense),
        "net_balance_display": format_currency(report.net_balance),
        "income": [serialize_financial_record(r) for r in report.income_records],
        "expenses": [serialize_financial_record(r) for r in report.expense_records],
    }


def subscribe_financial_records(callback: Callable[[list[FinancialRecord]], None]) -> live.Subscription:
    return live.subscribe(
        signal=live.financial_records_changed,
        snapshot=list_financial_records,
        callback=callback,
    )
