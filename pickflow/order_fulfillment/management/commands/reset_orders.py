from django.core.management.base import BaseCommand, CommandError

from order_fulfillment.exceptions import BusinessException
from order_fulfillment.models import Order
from order_fulfillment.services import ResetService


class Command(BaseCommand):
    help = "Resets picking and dispatch state of one order, or of every order."

    def add_arguments(self, parser):
        parser.add_argument(
            "--order",
            type=str,
            help="Order number to reset. Without it every order is reset.",
        )
        parser.add_argument(
            "--yes",
            action="store_true",
            help="Do not ask for confirmation before resetting every order.",
        )

    def handle(self, *args, **options):
        order_number = options["order"]

        if order_number:
            try:
                order = Order.objects.get(order_number=order_number)
            except Order.DoesNotExist:
                raise CommandError(f"Order {order_number} not found.")
            try:
                result = ResetService.reset_order(order.id)
            except BusinessException as exc:
                raise CommandError(exc.message) from exc
            self.stdout.write(
                self.style.SUCCESS(
                    f"{result['message']}: {result['scans_deleted']} scans and "
                    f"{result['picks_deleted']} picks removed."
                )
            )
            return

        if not options["yes"]:
            answer = input("Reset picking and dispatch state of ALL orders? [y/N] ")
            if answer.strip().lower() not in ("y", "yes"):
                self.stdout.write("Aborted.")
                return

        result = ResetService.reset_all_orders()
        self.stdout.write(self.style.SUCCESS(result["message"]))
        self.stdout.write(f"Orders demoted to open: {result['orders_demoted']}")
        self.stdout.write(f"Delivery notes cleared: {result['dispatches_cleared']}")
        self.stdout.write(f"Scans deleted: {result['scans_deleted']}")
        self.stdout.write(f"Items reset: {result['items_reset']}")
