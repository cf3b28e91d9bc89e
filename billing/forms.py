from django import forms

from billing import config
from billing.models import Payout
from billing.services.payout_settlement_service import PAYMENT_DETAIL_FIELDS
from billing.services.periods import Period


class PeriodForm(forms.Form):
    """
    Optional date_from/date_to pair. Both or neither; neither means the current month,
    or no period at all when the form is built with default_to_current_month=False.
    """
    date_from = forms.DateField(required=False)
    date_to = forms.DateField(required=False)
    psychologist_id = forms.IntegerField(required=False, min_value=1)

    default_to_current_month = True

    def clean(self):
        cleaned_data = super().clean()
        date_from = cleaned_data.get("date_from")
        date_to = cleaned_data.get("date_to")
        if bool(date_from) != bool(date_to):
            raise forms.ValidationError("date_from and date_to must be given together.")
        if date_from and date_to and date_from > date_to:
            raise forms.ValidationError("date_from must not be after date_to.")
        return cleaned_data

    def period(self) -> Period | None:
        date_from = self.cleaned_data.get("date_from")
        date_to = self.cleaned_data.get("date_to")
        if date_from and date_to:
            return Period(date_from, date_to)
        return Period.current_month() if self.default_to_current_month else None


class PendingPayoutsForm(PeriodForm):
    default_to_current_month = False


class PayoutListForm(PeriodForm):
    default_to_current_month = False

    page = forms.IntegerField(required=False, min_value=1)
    page_size = forms.IntegerField(required=False, min_value=1, max_value=config.PAYOUTS_MAX_PAGE_SIZE)


class CommissionScheduleForm(forms.Form):
    # Amounts are validated for sign by the schedule service; the form only parses.
    commission_amounts = forms.JSONField(required=False)
    first_session_individual_amount = forms.DecimalField(required=False, max_digits=12, decimal_places=2)
    followup_individual_amount = forms.DecimalField(required=False, max_digits=12, decimal_places=2)
    first_session_package_amounts = forms.JSONField(required=False)
    followup_package_amounts = forms.JSONField(required=False)
    effective_from = forms.DateField(required=False)
    notes = forms.CharField(required=False)

    def clean(self):
        cleaned_data = super().clean()
        for name in ("commission_amounts", "first_session_package_amounts", "followup_package_amounts"):
            value = cleaned_data.get(name)
            if value is not None and not isinstance(value, dict):
                self.add_error(name, "Expected an object keyed by package type.")
        return cleaned_data


class SettlePayoutForm(PeriodForm):
    default_to_current_month = False

    psychologist_id = forms.IntegerField(min_value=1)
    payment_method = forms.ChoiceField(choices=Payout.PAYMENT_METHOD_CHOICES)
    tds_percentage = forms.DecimalField(required=False, min_value=0, max_value=100, max_digits=5, decimal_places=2)
    expected_net_payout = forms.DecimalField(required=False, max_digits=12, decimal_places=2)
    notes = forms.CharField(required=False)
    bank_account_number = forms.CharField(required=False, max_length=64)
    ifsc_code = forms.CharField(required=False, max_length=20)
    upi_id = forms.CharField(required=False, max_length=100)
    cheque_number = forms.CharField(required=False, max_length=64)
    transaction_id = forms.CharField(required=False, max_length=128)
    reference_number = forms.CharField(required=False, max_length=128)

    def payment_details(self) -> dict:
        return {name: self.cleaned_data.get(name) or "" for name in PAYMENT_DETAIL_FIELDS}


class MarkPaidForm(PeriodForm):
    psychologist_id = forms.IntegerField(min_value=1)
