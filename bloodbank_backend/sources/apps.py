# sources/apps.py

"""
SOURCES APP CONFIG

Blood-supplying entities:
- Organizations (blood banks, NGOs)
- Hospitals

Every purchase order points at exactly one of them, and every
org/hospital administrator is scoped to exactly one of them.
"""

from django.apps import AppConfig


class SourcesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "sources"
    verbose_name = "Blood Sources"
