from __future__ import annotations

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from portal import finance_services
from portal.finance_services import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    FinanceError,
    parse_date,
    serialize_financial_record,
    serialize_financial_report,
)
from portal.models import FinancialRecord
from portal.permissions import (
    PORTAL_ADD_FINANCIALRECORD,
    PORTAL_CHANGE_FINANCIALRECORD,
    PORTAL_DELETE_FINANCIALRECORD,
    PORTAL_VIEW_FINANCIALRECORD,
    json_login_required,
    json_permission_required,
)
from portal.views_utils import _normalize_str, json_error, json_not_found, request_data


@require_http_methods(["GET", "POST"])
@json_login_required
def financial_records_collection(request: HttpRequest) -> JsonResponse:
    if request.method == "POST":
        return _financial_record_create(request)
    return _financial_records_list(request)


@json_permission_required(PORTAL_VIEW_FINANCIALRECORD)
def _financial_records_list(request: HttpRequest) -> JsonResponse:
    start = _normalize_str(request.GET.get("start"))
    end = _normalize_str(request.GET.get("end"))
    try:
        if start or end:
            records = finance_services.records_by_date_range(
                start=parse_date(start, label="Start date"),
                end=parse_date(end, label="End date"),
            )
        else:
            records = finance_services.list_financial_records()
    except FinanceError as exc:
        return json_error(str(exc))

    return JsonResponse(
        {
            "ok": True,
            "records": [serialize_financial_record(r) for r in records],
            "categories": {"income": list(INCOME_CATEGORIES), "expense": list(EXPENSE_CATEGORIES)},
        }
    )


@json_permission_required(PORTAL_ADD_FINANCIALRECORD)
def _financial_record_create(request: HttpRequest) -> JsonResponse:
    try:
        data = request_data(request)
        record = finance_services.create_financial_record(fields=data, actor=request.user)
    except (ValueError, FinanceError) as exc:
        return json_error(str(exc))
    return JsonResponse({"ok": True, "record": serialize_financial_record(record)}, status=201)


@require_POST
@json_permission_required(PORTAL_CHANGE_FINANCIALRECORD)
def financial_record_update(request: HttpRequest, record_id: int) -> JsonResponse:
    record = FinancialRecord.objects.filter(pk=record_id).first()
    if record is None:
        return json_not_found()

    try:
        data = request_data(request)
        record = finance_services.update_financial_record(record=record, changes=data, actor=request.user)
    except (ValueError, FinanceError) as exc:
        return json_error(str(exc))
    return JsonResponse({"ok": True, "record": serialize_financial_record(record)})


@require_POST
@json_permission_required(PORTAL_DELETE_FINANCIALRECORD)
def financial_record_delete(request: HttpRequest, record_id: int) -> JsonResponse:
    record = FinancialRecord.objects.filter(pk=record_id).first()
    if record is None:
        return json_not_found()

    finance_services.delete_financial_record(record=record, actor=request.user)
    return JsonResponse({"ok": True, "record_id": record_id})


@require_GET
@json_permission_required(PORTAL_VIEW_FINANCIALRECORD)
def financial_report(request: HttpRequest) -> JsonResponse:
    try:
        report = finance_services.financial_report(
            start=parse_date(request.GET.get("start"), label="Start date"),
            end=parse_date(request.GET.get("end"), label="End date"),
        )
    except FinanceError as exc:
        return json_error(str(exc))

    return JsonResponse({"ok": True, "report": serialize_financial_report(report)})
