"""
Shared django-ninja building blocks. Routers live in the apps which own them
and are mounted in ``laurel.urls``.
"""
