from django.core.management.base import BaseCommand

from marketplace.featured import EXPIRED_FIELDS, LISTING_KINDS
from marketplace import clock


class Command(BaseCommand):
    help = "Clears lapsed featured promotions in bulk (the same correction lazy expiry applies on read)."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Only report what would expire.")

    def handle(self, *args, **options):
        now = clock.now()
        total = 0
        for entry in LISTING_KINDS.values():
            lapsed = entry.model.objects.filter(featured=True).exclude(featured_until__gt=now)
            count = lapsed.count()
            if count and not options["dry_run"]:
                lapsed.update(**EXPIRED_FIELDS)
            total += count
            self.stdout.write(f"{entry.model.__name__}: {count} expired")
        verb = "Would expire" if options["dry_run"] else "Expired"
        self.stdout.write(self.style.SUCCESS(f"{verb} {total} featured listings."))
