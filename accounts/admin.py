from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import Group
from .models import CustomUser, ClientProfile, PsychologistProfile

# Hide Authentication and Authorization groups
admin.site.unregister(Group)

class UserAdmin(BaseUserAdmin):
    model = CustomUser
    list_display = ("email", "is_staff", "is_superuser", "is_active")
    list_filter = ("is_staff", "is_superuser", "is_active")
    search_fields = ("email",)
    ordering = ("email",)
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Permissions", {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")}),
        ("Important dates", {"fields": ("last_login", "date_joined")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "password1", "password2")}),
    )


class ClientProfileAdmin(admin.ModelAdmin):
    list_display = ('first_name', 'last_name', 'email_display', 'phone', 'created_at')
    search_fields = ('first_name', 'last_name', 'user__email', 'phone')
    readonly_fields = ('role', 'created_at')

    def email_display(self, obj):
        return obj.user.email
    email_display.short_description = 'Email'


class PsychologistProfileAdmin(admin.ModelAdmin):
    list_display = ('first_name', 'last_name', 'email_display', 'individual_session_price', 'created_at')
    search_fields = ('first_name', 'last_name', 'user__email')
    readonly_fields = ('role', 'created_at')

    fieldsets = (
        ('User Information', {
            'fields': ('user', 'role')
        }),
        ('Basic Information', {
            'fields': ('first_name', 'last_name', 'phone', 'experience_years', 'individual_session_price')
        }),
        ('Payout Details', {
            'fields': ('billing',),
            'classes': ('collapse',),
            'description': 'Bank / UPI details used when settling payouts. Stored as-is.'
        }),
        ('Dates', {
            'fields': ('created_at',),
        }),
    )

    def email_display(self, obj):
        return obj.user.email
    email_display.short_description = 'Email'


admin.site.register(CustomUser, UserAdmin)
admin.site.register(ClientProfile, ClientProfileAdmin)
admin.site.register(PsychologistProfile, PsychologistProfileAdmin)
