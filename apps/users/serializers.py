"""Serializers for user-related API endpoints."""

from __future__ import annotations

from django.contrib.auth import get_user_model  # type: ignore
from rest_framework import serializers  # type: ignore

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "username",
            "first_name",
            "last_name",
            "display_name",
            "phone",
            "company_name",
            "role",
            "membership_tier",
            "created_at",
            "updated_at",
        ]
        # Role and tier are granted by platform admins only
        read_only_fields = [
            "id",
            "email",
            "role",
            "membership_tier",
            "created_at",
            "updated_at",
        ]
