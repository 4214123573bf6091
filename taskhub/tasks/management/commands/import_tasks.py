import json
from pathlib import Path

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.core.management.base import CommandError
from django.db.models import Q
from django.utils.translation import gettext as _

from taskhub.audit.utils import log_action
from taskhub.tasks.api.serializers import TaskImportBatchSerializer
from taskhub.tasks.services import import_tasks


class Command(BaseCommand):
    help = _("Import tasks for a user from an exported JSON file")

    def add_arguments(self, parser):
        parser.add_argument(
            "path",
            help=_("JSON file holding a list of tasks or an export document"),
        )
        parser.add_argument(
            "--user",
            required=True,
            help=_("Username or email of the owner"),
        )

    def handle(self, *args, **options):
        owner = self._resolve_owner(options["user"])
        entries = self._load(Path(options["path"]))

        serializer = TaskImportBatchSerializer(data={"tasks": entries})
        if not serializer.is_valid():
            raise CommandError(json.dumps(serializer.errors))

        created, skipped = import_tasks(owner, serializer.validated_data["tasks"])
        log_action(
            "tasks_imported",
            actor=owner,
            message=f"Imported {len(created)} tasks ({skipped} skipped) from CLI",
            model_name="Task",
        )
        self.stdout.write(
            self.style.SUCCESS(
                _("Imported %(created)d tasks, skipped %(skipped)d")
                % {"created": len(created), "skipped": skipped}
            )
        )

    def _resolve_owner(self, identifier):
        user_model = get_user_model()
        try:
            return user_model.objects.get(
                Q(username__iexact=identifier) | Q(email__iexact=identifier)
            )
        except user_model.DoesNotExist as exc:
            msg = _("User %(user)s not found") % {"user": identifier}
            raise CommandError(msg) from exc

    def _load(self, path):
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise CommandError(str(exc)) from exc
        except json.JSONDecodeError as exc:
            msg = _("Invalid JSON in %(path)s: %(error)s") % {
                "path": path,
                "error": exc,
            }
            raise CommandError(msg) from exc
        if isinstance(data, dict):
            data = data.get("tasks", [])
        if not isinstance(data, list):
            raise CommandError(_("Expected a list of tasks"))
        return data
