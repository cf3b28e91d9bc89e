from django.contrib import admin
from .models import CommissionHistory, CommissionSchedule, Payout


class ReadOnlyAdmin(admin.ModelAdmin):
    """Finance rows are written by the services only."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CommissionSchedule)
class CommissionScheduleAdmin(ReadOnlyAdmin):
    list_display = ("id", "psychologist", "effective_from", "effective_to", "is_active", "individual_amount", "created_at")
    list_filter = ("is_active",)
    search_fields = ("psychologist__first_name", "psychologist__last_name", "psychologist__user__email")


@admin.register(CommissionHistory)
class CommissionHistoryAdmin(ReadOnlyAdmin):
    list_display = (
        "id", "psychologist", "client", "unit_kind", "package_type", "gross_amount",
        "commission_amount", "provider_amount", "payment_status", "payout", "completed_at",
    )
    list_filter = ("payment_status", "unit_kind", "package_type")
    search_fields = ("psychologist__first_name", "psychologist__last_name", "client__user__email")
    date_hierarchy = "completed_at"


@admin.register(Payout)
class PayoutAdmin(ReadOnlyAdmin):
    list_display = ("id", "psychologist", "payout_date", "gross_provider_amount", "tds_amount", "net_payout", "payment_method", "processed_by")
    list_filter = ("payment_method", "status")
    search_fields = ("psychologist__first_name", "psychologist__last_name", "transaction_id", "reference_number")
    fieldsets = (
        (None, {"fields": ("psychologist", "payout_date", "period_start", "period_end", "status")}),
        ("Amounts", {"fields": ("gross_provider_amount", "total_commission", "tds_percentage", "tds_amount", "net_payout", "currency")}),
        ("Payment", {"fields": ("payment_method", "bank_account_number", "ifsc_code", "upi_id", "cheque_number", "transaction_id", "reference_number", "notes")}),
        ("Audit", {"fields": ("processed_by", "processed_at", "created_at")}),
    )
