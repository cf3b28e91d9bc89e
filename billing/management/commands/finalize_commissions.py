from django.core.management.base import BaseCommand, CommandError

from accounts.models import PsychologistProfile
from billing.services.commission_history_service import finalize_outstanding


class Command(BaseCommand):
    help = "Finalize commission history for completed sessions and packages that do not have it yet."

    def add_arguments(self, parser):
        parser.add_argument(
            "--psychologist",
            type=int,
            help="Only finalize work for this psychologist profile id.",
        )

    def handle(self, *args, **options):
        psychologist = None
        if options.get("psychologist"):
            try:
                psychologist = PsychologistProfile.objects.get(pk=options["psychologist"])
            except PsychologistProfile.DoesNotExist:
                raise CommandError(f"Psychologist {options['psychologist']} does not exist.")

        report = finalize_outstanding(psychologist)
        self.stdout.write(self.style.SUCCESS(f"Finalized {len(report['finalized'])} commission entries."))
        if report["deferred"]:
            self.stdout.write(f"Deferred (package incomplete): {len(report['deferred'])}")
        for failure in report["failed"]:
            self.stdout.write(self.style.WARNING(f"Session {failure['session_id']}: {failure['reason']}"))
