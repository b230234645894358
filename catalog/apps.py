"""Django app configuration for catalog."""

from django.apps import AppConfig


class CatalogConfig(AppConfig):
    """Product catalog consulted by the cart."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "catalog"
