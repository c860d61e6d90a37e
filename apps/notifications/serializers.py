"""Serializers for notifications."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'event_type', 'booking', 'title', 'message', 'is_read', 'created_at']
        read_only_fields = ['event_type', 'booking', 'title', 'message', 'created_at']
