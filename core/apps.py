from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'
    verbose_name = 'Accounts'

    def ready(self):
        # Create profile + wallet for every new user
        import core.signals  # noqa: F401
