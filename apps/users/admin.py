"""Admin registrations for the users domain."""

from __future__ import annotations

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import ClientTeam, ClientTeamMember, CustomUser, MembershipSetting


@admin.register(CustomUser)
class CustomUserAdmin(BaseUserAdmin):
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        (
            _("Personal info"),
            {"fields": ("username", "first_name", "last_name", "phone", "company_name")},
        ),
        (
            _("Role and membership"),
            {"fields": ("role", "membership_tier")},
        ),
        (
            _("Permissions"),
            {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")},
        ),
        (_("Important dates"), {"fields": ("last_login", "date_joined", "created_at", "updated_at")}),
    )
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": (
                    "email",
                    "password1",
                    "password2",
                    "first_name",
                    "last_name",
                    "company_name",
                    "role",
                    "membership_tier",
                ),
            },
        ),
    )
    list_display = ("email", "display_name", "role", "membership_tier", "company_name", "is_active")
    list_filter = ("role", "membership_tier", "is_active", "is_staff")
    search_fields = ("email", "phone", "first_name", "last_name", "company_name")
    ordering = ("email",)
    readonly_fields = ("created_at", "updated_at", "date_joined")


class ClientTeamMemberInline(admin.TabularInline):
    model = ClientTeamMember
    extra = 0
    autocomplete_fields = ("user",)


@admin.register(ClientTeam)
class ClientTeamAdmin(admin.ModelAdmin):
    list_display = ("name", "created_by", "created_at")
    search_fields = ("name",)
    inlines = [ClientTeamMemberInline]


@admin.register(MembershipSetting)
class MembershipSettingAdmin(admin.ModelAdmin):
    list_display = ("tier", "discount_percent", "updated_at")
