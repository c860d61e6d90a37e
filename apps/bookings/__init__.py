"""Bookings app package.

The booking lifecycle and pricing engine: the pricing calculator, the
booking state machine, drop-off time-slot negotiation and the approval
workflow for bookings made on someone's behalf. ``domain`` and
``application`` are plain Python; the rest of the package adapts them
to Django, DRF and Celery.
"""
