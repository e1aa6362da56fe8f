from django.core.management.base import BaseCommand

from nemesis.env import load_config, map_env_variables, validate_env


class Command(BaseCommand):
    help = "Validate required environment variables and print the resolved mode."

    def handle(self, *args, **options):
        environ = map_env_variables()
        validate_env(environ)
        config = load_config(environ)
        self.stdout.write(self.style.SUCCESS(
            f"Environment OK ({config.app_env}, production={config.is_production})"
        ))
