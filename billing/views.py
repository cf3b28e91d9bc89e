"""
Finance JSON API for staff: dashboard, revenue, commission schedules, payouts.
"""
import json
import logging

from django.contrib.admin.views.decorators import staff_member_required
from django.core.paginator import Paginator
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods

from accounts.models import PsychologistProfile
from billing import config
from billing.forms import (
    CommissionScheduleForm,
    MarkPaidForm,
    PayoutListForm,
    PendingPayoutsForm,
    PeriodForm,
    SettlePayoutForm,
)
from billing.models import Payout
from billing.services.commission_schedule_service import InvalidCommissionAmount, schedule_as_dict, update_schedule
from billing.services.payout_aggregator import (
    aggregate_revenue,
    commission_overview,
    dashboard_summary,
    pending_payouts_by_psychologist,
)
from billing.services.payout_settlement_service import (
    ConcurrentSettlementConflict,
    NothingPendingToSettle,
    PayoutError,
    mark_as_paid,
    payout_as_dict,
    payout_history,
    settle_payout,
)

logger = logging.getLogger(__name__)


def _invalid(form):
    return JsonResponse({"success": False, "error": "Validation failed.", "errors": form.errors.get_json_data()}, status=400)


def _json_body(request):
    """Decoded JSON object from the request body, or None if it is not one."""
    try:
        data = json.loads(request.body or b"{}")
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _bad_json():
    return JsonResponse({"success": False, "error": "Request body must be a JSON object."}, status=400)


def _psychologist_or_404(psychologist_id):
    if psychologist_id is None:
        return None
    return get_object_or_404(PsychologistProfile.objects.select_related("user"), pk=psychologist_id)


def _nothing_pending(exc):
    return JsonResponse({"success": True, "settled": False, "reason": "nothing_pending", "message": str(exc)})


def _conflict(exc):
    return JsonResponse({"success": False, "error": str(exc), "reason": "conflict"}, status=409)


@staff_member_required
@require_http_methods(["GET"])
def dashboard(request):
    """
    GET /api/finance/dashboard/?date_from=&date_to=&psychologist_id=
    Revenue and session counts by scheduled date, completed payout by completion date,
    pending payout as the outstanding balance regardless of period.
    """
    form = PeriodForm(request.GET)
    if not form.is_valid():
        return _invalid(form)
    psychologist = _psychologist_or_404(form.cleaned_data.get("psychologist_id"))
    return JsonResponse({"success": True, **dashboard_summary(form.period(), psychologist)})


@staff_member_required
@require_http_methods(["GET"])
def revenue(request):
    """GET /api/finance/revenue/?date_from=&date_to=&psychologist_id="""
    form = PeriodForm(request.GET)
    if not form.is_valid():
        return _invalid(form)
    psychologist = _psychologist_or_404(form.cleaned_data.get("psychologist_id"))
    return JsonResponse({"success": True, **aggregate_revenue(form.period(), psychologist)})


@staff_member_required
@require_http_methods(["GET"])
def commissions(request):
    """GET /api/finance/commissions/?psychologist_id= : schedule plus lifetime totals per psychologist."""
    psychologist_id = request.GET.get("psychologist_id")
    if psychologist_id and not psychologist_id.isdigit():
        return JsonResponse({"success": False, "error": "psychologist_id must be an integer."}, status=400)
    psychologist = _psychologist_or_404(int(psychologist_id) if psychologist_id else None)
    return JsonResponse({"success": True, "commissions": commission_overview(psychologist)})


@staff_member_required
@require_http_methods(["GET", "PUT"])
def commission_schedule(request, psychologist_id):
    """
    GET /api/finance/commissions/<psychologist_id>/
    PUT /api/finance/commissions/<psychologist_id>/ with a JSON body: deactivates the
    active schedule and creates a new one effective from effective_from (default today).
    """
    psychologist = _psychologist_or_404(psychologist_id)
    if request.method == "GET":
        return JsonResponse({"success": True, **commission_overview(psychologist)[0]})

    data = _json_body(request)
    if data is None:
        return _bad_json()
    form = CommissionScheduleForm(data)
    if not form.is_valid():
        return _invalid(form)
    try:
        schedule = update_schedule(psychologist, created_by=request.user, **form.cleaned_data)
    except InvalidCommissionAmount as exc:
        return JsonResponse({"success": False, "error": str(exc)}, status=400)
    return JsonResponse({"success": True, "schedule": schedule_as_dict(schedule)})


@staff_member_required
@require_http_methods(["GET", "POST"])
def payouts(request):
    """
    GET  /api/finance/payouts/ : payout history, paginated.
    POST /api/finance/payouts/ : settle finalized pending commission into one payout.
    """
    if request.method == "POST":
        return _settle(request)

    form = PayoutListForm(request.GET)
    if not form.is_valid():
        return _invalid(form)
    psychologist = _psychologist_or_404(form.cleaned_data.get("psychologist_id"))
    period = form.period()
    queryset = payout_history(
        psychologist,
        date_from=period.start if period else None,
        date_to=period.end if period else None,
    )
    paginator = Paginator(queryset, form.cleaned_data.get("page_size") or config.PAYOUTS_PAGE_SIZE)
    page_obj = paginator.get_page(form.cleaned_data.get("page") or 1)
    return JsonResponse({
        "success": True,
        "payouts": [payout_as_dict(payout) for payout in page_obj],
        "page": page_obj.number,
        "num_pages": paginator.num_pages,
        "total": paginator.count,
    })


def _settle(request):
    data = _json_body(request)
    if data is None:
        return _bad_json()
    form = SettlePayoutForm(data)
    if not form.is_valid():
        return _invalid(form)
    psychologist = _psychologist_or_404(form.cleaned_data["psychologist_id"])
    try:
        payout = settle_payout(
            psychologist,
            form.period(),
            payment_method=form.cleaned_data["payment_method"],
            payment_details=form.payment_details(),
            tds_percentage=form.cleaned_data.get("tds_percentage") or 0,
            expected_net_payout=form.cleaned_data.get("expected_net_payout"),
            processed_by=request.user,
            notes=form.cleaned_data.get("notes") or "",
        )
    except NothingPendingToSettle as exc:
        return _nothing_pending(exc)
    except ConcurrentSettlementConflict as exc:
        return _conflict(exc)
    except PayoutError as exc:
        return JsonResponse({"success": False, "error": str(exc)}, status=400)
    return JsonResponse({"success": True, "settled": True, "payout": payout_as_dict(payout)}, status=201)


@staff_member_required
@require_http_methods(["GET"])
def pending_payouts(request):
    """GET /api/finance/payouts/pending/?date_from=&date_to= : pending line items grouped per psychologist."""
    form = PendingPayoutsForm(request.GET)
    if not form.is_valid():
        return _invalid(form)
    period = form.period()
    return JsonResponse({
        "success": True,
        "period": period.as_dict() if period else None,
        "payouts": pending_payouts_by_psychologist(period),
    })


@staff_member_required
@require_http_methods(["POST"])
def mark_paid(request):
    """POST /api/finance/payouts/mark-paid/ {psychologist_id, date_from?, date_to?} (default current month)."""
    data = _json_body(request)
    if data is None:
        return _bad_json()
    form = MarkPaidForm(data)
    if not form.is_valid():
        return _invalid(form)
    psychologist = _psychologist_or_404(form.cleaned_data["psychologist_id"])
    try:
        payout = mark_as_paid(psychologist, form.period(), processed_by=request.user)
    except NothingPendingToSettle as exc:
        return _nothing_pending(exc)
    except ConcurrentSettlementConflict as exc:
        return _conflict(exc)
    return JsonResponse({"success": True, "settled": True, "payout": payout_as_dict(payout)}, status=201)


@staff_member_required
@require_http_methods(["GET"])
def payout_detail(request, payout_id):
    """GET /api/finance/payouts/<payout_id>/ with the commission entries it settled."""
    payout = get_object_or_404(Payout.objects.select_related("psychologist__user", "processed_by"), pk=payout_id)
    return JsonResponse({"success": True, "payout": payout_as_dict(payout, include_entries=True)})
