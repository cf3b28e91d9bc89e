from django.contrib import admin
from .models import Package, Session


class PackageAdmin(admin.ModelAdmin):
    list_display = ('name', 'psychologist', 'package_type', 'session_count', 'price')
    list_filter = ('package_type',)
    search_fields = ('name', 'psychologist__user__email')


class SessionAdmin(admin.ModelAdmin):
    list_display = ('id', 'scheduled_date', 'psychologist', 'client', 'package', 'price', 'status', 'payment_captured_at', 'completed_at')
    list_filter = ('status', 'session_type', 'scheduled_date')
    search_fields = ('psychologist__user__email', 'client__user__email')
    raw_id_fields = ('psychologist', 'client', 'package')


admin.site.register(Package, PackageAdmin)
admin.site.register(Session, SessionAdmin)
