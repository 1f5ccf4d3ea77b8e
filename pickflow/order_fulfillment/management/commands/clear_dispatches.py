from django.core.management.base import BaseCommand, CommandError

from order_fulfillment.exceptions import BusinessException
from order_fulfillment.models import Order
from order_fulfillment.services import DispatchService, ResetService


class Command(BaseCommand):
    help = "Clears ERP delivery notes so orders can be dispatched again."

    def add_arguments(self, parser):
        parser.add_argument(
            "order_numbers",
            nargs="*",
            type=str,
            help="Orders to clear. Without any, every fulfilled order with a committed note is cleared.",
        )

    def handle(self, *args, **options):
        order_numbers = options["order_numbers"]

        if not order_numbers:
            result = ResetService.clear_fulfilled_dispatches()
            self.stdout.write(self.style.SUCCESS(result["message"]))
            for note_id in result["cleared_note_ids"]:
                self.stdout.write(f"  {note_id}")
            return

        failures = 0
        for order_number in order_numbers:
            order = Order.objects.filter(order_number=order_number).first()
            if order is None:
                self.stderr.write(f"{order_number}: not found")
                failures += 1
                continue
            try:
                result = DispatchService.clear_dispatch(order.id, notes="Cleared from command line")
            except BusinessException as exc:
                self.stderr.write(f"{order_number}: {exc.message}")
                failures += 1
                continue
            self.stdout.write(self.style.SUCCESS(f"{order_number}: {result['message']}"))

        if failures:
            raise CommandError(f"{failures} orders could not be cleared.")
