"""Notification model.

In-app notification about a booking event. Notifications are created by
the booking event handlers (status changes, proposed drop-off dates,
approval requests and answers) and can be marked as read.
"""

from __future__ import annotations

from django.db import models  # type: ignore


class Notification(models.Model):
    """A message sent to a user about some event."""

    user = models.ForeignKey(
        'users.CustomUser', on_delete=models.CASCADE, related_name='notifications'
    )
    event_type = models.CharField(max_length=64, blank=True)
    booking = models.ForeignKey(
        'bookings.Booking',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='notifications',
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"Notification to {self.user_id}: {self.title}"
