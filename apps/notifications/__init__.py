"""Notifications app package.

Stores in-app notifications and sends e-mail about booking events. The
booking event handlers enqueue the delivery as Celery tasks, so a slow
or failing mail server never holds up a booking.
"""
