"""Stripe checkout for featured plans and handling of its completion webhook."""
import json
import logging

import stripe
from django.conf import settings

from .featured import promote_listing
from .models import ListingKind

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
REQUIRED_METADATA = ("contentId", "contentType", "planId")


class WebhookRejected(Exception):
    """The event is well-formed but cannot be acted on (missing metadata, unpaid session)."""


def content_kind(content_type):
    # Billboard probing also covers digital screens
    return ListingKind.JOB if content_type == "job" else ListingKind.BILLBOARD


CONTENT_LABELS = {
    "job": ("Job", "job posting"),
    "digital_screen": ("Digital Screen", "digital screen"),
    "billboard": ("Billboard", "billboard"),
}


def _content_label(content_type):
    return CONTENT_LABELS.get(content_type, CONTENT_LABELS["billboard"])


def create_checkout_session(plan, listing, content_type, user, title=None):
    stripe.api_key = settings.STRIPE_SECRET_KEY
    base_url = settings.FRONTEND_BASE_URL.rstrip("/")
    title = title or listing.title or "Untitled"
    label, noun = _content_label(content_type)
    metadata = {
        "contentId": str(listing.pk),
        "contentType": content_type,
        "planId": plan.id,
        "userId": str(user.pk),
        "title": title,
    }
    session = stripe.checkout.Session.create(
        payment_method_types=["card"],
        line_items=[
            {
                "price_data": {
                    "currency": settings.STRIPE_CURRENCY,
                    "product_data": {
                        "name": f"{plan.name} - {label} Feature",
                        "description": f"Feature your {noun}: {title}",
                    },
                    "unit_amount": plan.price,
                },
                "quantity": 1,
            }
        ],
        mode="payment",
        success_url=(
            f"{base_url}/feature-my-ads/success?session_id={{CHECKOUT_SESSION_ID}}"
            f"&plan={plan.id}&type={content_type}&ad_id={listing.pk}&user_id={user.pk}"
        ),
        cancel_url=f"{base_url}/feature-my-ads/plans?cancelled=true",
        metadata=metadata,
    )
    logger.info("Created checkout session %s for %s %s (%s)", session.id, content_type, listing.pk, plan.id)
    return session, metadata


def construct_event(payload, signature):
    """Verify the Stripe signature and decode the event into plain dicts.

    Raises stripe.SignatureVerificationError for a bad signature and ValueError for a bad body.
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    stripe.WebhookSignature.verify_header(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
    return json.loads(payload)


def handle_checkout_completed(session):
    metadata = session.get("metadata") or {}
    missing = [key for key in REQUIRED_METADATA if not metadata.get(key)]
    if missing:
        raise WebhookRejected(f"Missing metadata: {', '.join(missing)}")
    if session.get("payment_status") != "paid":
        raise WebhookRejected(f"Payment not completed: {session.get('payment_status')}")

    content_type = metadata["contentType"]
    listing = promote_listing(metadata["contentId"], metadata["planId"], content_kind(content_type))
    logger.info("Checkout %s featured %s %s", session.get("id"), content_type, listing.pk)
    return listing
