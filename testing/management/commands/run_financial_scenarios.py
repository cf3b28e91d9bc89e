from django.core.management.base import BaseCommand, CommandError

from testing.financial.base import ScenarioError
from testing.financial.runner import AVAILABLE_SCENARIOS, run_all, run_scenario


class Command(BaseCommand):
    help = (
        "Exercise commission finalization and payout settlement end to end against the configured "
        "database, using throwaway psychologists. Refuses to run unless ALLOW_TEST_SCENARIOS is set."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--scenario",
            type=str,
            help="Name of a single payout scenario to run instead of the full suite.",
        )
        parser.add_argument(
            "--list",
            action="store_true",
            help="Print the registered payout scenarios and exit without touching the database.",
        )

    def handle(self, *args, **options):
        if options.get("list"):
            for name, module in AVAILABLE_SCENARIOS.items():
                self.stdout.write(f"{name}\t{module.NAME}")
            return

        scenario = options.get("scenario")
        self.stdout.write(self.style.WARNING("Payout scenarios: commission finalization and settlement checks"))
        try:
            if scenario:
                run_scenario(scenario)
                ran = [scenario]
            else:
                ran = run_all()
        except ScenarioError as exc:
            raise CommandError(f"Payout scenario check failed: {exc}")
        self.stdout.write(self.style.SUCCESS(f"{len(ran)} payout scenario(s) passed: {', '.join(ran)}"))
