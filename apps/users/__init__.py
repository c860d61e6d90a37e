"""Users app package.

Defines the custom user model (customers, warehouse staff and platform
admins), membership tiers and client teams. Use
``apps.users.models.CustomUser`` as the AUTH_USER_MODEL throughout
the project.
"""
