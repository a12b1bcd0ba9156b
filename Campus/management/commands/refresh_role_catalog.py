from django.core.management.base import BaseCommand, CommandError

from Campus.access.contracts import Principal
from Campus.access.exceptions import AccessError
from Campus.access.runtime import get_runtime
from Campus.access.settings import get_access_settings


class Command(BaseCommand):
    help = "Refetch the role hierarchy from the access backend and print it."

    def add_arguments(self, parser):
        parser.add_argument("--token", default="", help="Bearer token to use instead of CAMPUS_ACCESS_SERVICE_TOKEN.")

    def handle(self, *args, **options):
        token = (options["token"] or get_access_settings().service_token).strip()
        if not token:
            raise CommandError("No token given and CAMPUS_ACCESS_SERVICE_TOKEN is not set.")

        try:
            hierarchy = get_runtime().roles.refresh(Principal(id="service", token=token))
        except AccessError as exc:
            raise CommandError(f"Role hierarchy refresh failed: {exc}") from exc

        for role in hierarchy.roles:
            self.stdout.write(f"{role.level:>3}  {role.name:<14} {len(role.permissions)} permissions")
        self.stdout.write(
            self.style.SUCCESS(
                f"Role hierarchy refreshed: {len(hierarchy.roles)} roles, {len(hierarchy.permissions)} permissions."
            )
        )
