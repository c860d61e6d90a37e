"""Warehouses app package.

Warehouses publish their prices, free-storage rules, add-on services,
working days and acceptance hours. The booking core reads them through
the gateways in ``apps.warehouses.services``.
"""
