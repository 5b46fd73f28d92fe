"""Featured-listing lifecycle: promotion, lazy expiry, retrieval and interleaved ranking.

Every expiry comparison reads the time from an injectable ``clock`` (a zero-argument
callable returning an aware datetime), so callers and tests can pin "now".

``check_featured_status`` and ``refresh_featured_status`` are not pure: observing an
expired promotion persists the correction back to the listing row.
"""
import logging
from collections import namedtuple
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db import DatabaseError

from . import clock as clocks
from .exceptions import ListingNotFound
from .models import Billboard, DigitalScreen, Job, ListingKind, PaymentStatus
from .plans import get_plan

logger = logging.getLogger(__name__)

# Every Nth displayed position is reserved for a featured listing
FEATURED_INTERVAL = 7

KindEntry = namedtuple("KindEntry", ["model", "probe"])

LISTING_KINDS = {
    ListingKind.BILLBOARD: KindEntry(Billboard, (Billboard, DigitalScreen)),
    ListingKind.DIGITAL_SCREEN: KindEntry(DigitalScreen, (DigitalScreen, Billboard)),
    ListingKind.JOB: KindEntry(Job, (Job,)),
}

EXPIRED_FIELDS = {
    "featured": False,
    "featured_until": None,
    "featured_at": None,
    "featured_plan": None,
    "featured_price": None,
    "payment_status": PaymentStatus.EXPIRED,
}


def model_for(kind):
    return LISTING_KINDS[ListingKind(kind)].model


def resolve_listing(listing_id, kind):
    """Find a listing by probing the kind's candidate tables in order."""
    for model in LISTING_KINDS[ListingKind(kind)].probe:
        try:
            listing = model.objects.filter(pk=listing_id).first()
        except ValidationError:
            # Not a UUID, so it cannot exist in any table
            break
        if listing is not None:
            return listing
    raise ListingNotFound(f"{ListingKind(kind).label} {listing_id} not found.")


def is_currently_featured(listing, now):
    return listing.is_featured_at(now)


def promote_listing(listing_id, plan_id, kind, clock=None):
    plan = get_plan(plan_id)
    listing = resolve_listing(listing_id, kind)

    weeks = 1 if plan.id == "1_week" else 3
    now = clocks.resolve(clock)
    listing.featured = True
    listing.featured_until = now + timedelta(days=7 * weeks)
    listing.featured_at = now
    listing.featured_plan = plan.name
    listing.featured_price = plan.price
    listing.payment_status = PaymentStatus.COMPLETED
    listing.save(update_fields=[
        "featured",
        "featured_until",
        "featured_at",
        "featured_plan",
        "featured_price",
        "payment_status",
        "updated_at",
    ])
    logger.info(
        "Featured %s %s with plan %s until %s",
        listing.kind, listing.pk, plan.id, listing.featured_until.isoformat(),
    )
    return listing


def refresh_featured_status(listing, now):
    """Return whether ``listing`` is featured at ``now``, persisting the expiry if it lapsed.

    A failed corrective write is logged and ignored; the next read retries it.
    """
    if is_currently_featured(listing, now):
        return True
    if listing.featured:
        for field, value in EXPIRED_FIELDS.items():
            setattr(listing, field, value)
        try:
            type(listing).objects.filter(pk=listing.pk).update(**EXPIRED_FIELDS)
        except DatabaseError:
            logger.warning("Could not persist featured expiry for %s %s", listing.kind, listing.pk, exc_info=True)
        else:
            logger.info("Featured promotion expired for %s %s", listing.kind, listing.pk)
    return False


def check_featured_status(listing_id, kind, clock=None):
    listing = resolve_listing(listing_id, kind)
    return refresh_featured_status(listing, clocks.resolve(clock))


def _featured_sort_key(listing):
    # Listings without a start time sort after every dated one
    return (listing.featured_at is not None, listing.featured_at)


def get_featured_listings(kinds=None, clock=None):
    """Currently valid featured listings of the given kinds, most recently promoted first."""
    now = clocks.resolve(clock)
    kinds = [ListingKind(k) for k in kinds] if kinds else list(LISTING_KINDS)
    candidates = []
    for kind in kinds:
        candidates.extend(model_for(kind).objects.filter(featured=True))
    active = [listing for listing in candidates if is_currently_featured(listing, now)]
    active.sort(key=_featured_sort_key, reverse=True)
    return active


def interleave_featured(regular, featured, interval=FEATURED_INTERVAL):
    """Place one featured item at every ``interval``-th position among regular items.

    Featured items left over once the regular ones run out are appended in order.
    """
    result = []
    regular_index = 0
    featured_index = 0
    for i in range(len(regular) + len(featured)):
        if (i + 1) % interval == 0 and featured_index < len(featured):
            result.append(featured[featured_index])
            featured_index += 1
        elif regular_index < len(regular):
            result.append(regular[regular_index])
            regular_index += 1
        else:
            result.append(featured[featured_index])
            featured_index += 1
    return result


def rank_with_featured(listings, now, interval=FEATURED_INTERVAL):
    featured = []
    regular = []
    for listing in listings:
        if is_currently_featured(listing, now):
            listing.featured_position = True
            featured.append(listing)
        else:
            listing.featured_position = False
            regular.append(listing)
    featured.sort(key=lambda obj: obj.created_at, reverse=True)
    regular.sort(key=lambda obj: obj.created_at, reverse=True)
    return interleave_featured(regular, featured, interval)


def get_listings_with_featured(kind, clock=None):
    return rank_with_featured(model_for(kind).objects.all(), clocks.resolve(clock))
