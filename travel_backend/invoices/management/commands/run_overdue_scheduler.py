# invoices/management/commands/run_overdue_scheduler.py

from django.core.management.base import BaseCommand

from invoices.services.overdue_scheduler import OverdueScheduler, run_sweep


class Command(BaseCommand):
    help = "Block invoices whose DP grace window expired, once or on a fixed interval"

    def add_arguments(self, parser):
        parser.add_argument(
            "--once",
            action="store_true",
            help="Run a single sweep and exit.",
        )
        parser.add_argument(
            "--interval",
            type=int,
            default=None,
            help="Seconds between sweeps (default: INVOICE_OVERDUE_SWEEP_SECONDS).",
        )

    def handle(self, *args, **options):
        if options["once"]:
            result = run_sweep()
            self._report(result)
            return

        scheduler = OverdueScheduler(interval_seconds=options["interval"])
        self.stdout.write(f"Sweeping overdue invoices every {scheduler.interval}s (Ctrl+C to stop)")
        try:
            scheduler.run_forever()
        except KeyboardInterrupt:
            self.stdout.write("Stopping...")
        finally:
            scheduler.stop()

    def _report(self, result):
        if result["skipped"]:
            self.stdout.write("Another sweep is running; nothing done")
            return
        self.stdout.write(
            self.style.SUCCESS(
                f"Blocked {result['blocked']}, canceled {result['canceled']}, "
                f"failed {result['failed']}"
            )
        )
