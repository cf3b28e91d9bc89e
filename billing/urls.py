from django.urls import path
from . import views

app_name = "billing"

urlpatterns = [
    path("dashboard/", views.dashboard, name="dashboard"),
    path("revenue/", views.revenue, name="revenue"),
    path("commissions/", views.commissions, name="commissions"),
    path("commissions/<int:psychologist_id>/", views.commission_schedule, name="commission_schedule"),
    path("payouts/", views.payouts, name="payouts"),
    path("payouts/pending/", views.pending_payouts, name="pending_payouts"),
    path("payouts/mark-paid/", views.mark_paid, name="mark_paid"),
    path("payouts/<int:payout_id>/", views.payout_detail, name="payout_detail"),
]
