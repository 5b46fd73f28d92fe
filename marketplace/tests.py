import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone as dt_timezone
from io import StringIO
from types import SimpleNamespace
from unittest import mock

from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.conf import settings
from django.contrib.auth.models import User
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.db import DatabaseError
from django.db.models.query import QuerySet
from django.test import SimpleTestCase, TestCase, TransactionTestCase, override_settings
from django.utils import timezone
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from .chat import post_message, start_chat
from .exceptions import InvalidPlan, ListingNotFound
from .featured import (
    check_featured_status,
    get_featured_listings,
    get_listings_with_featured,
    interleave_featured,
    promote_listing,
    rank_with_featured,
)
from .middleware import TokenAuthMiddlewareStack
from .models import Billboard, Chat, ChatMessage, DigitalScreen, Job, ListingKind, PaymentStatus, SavedAd
from .plans import FEATURED_PLANS, duration_display, get_plan, price_display
from .routing import websocket_urlpatterns

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=dt_timezone.utc)


def fixed_clock(moment=NOW):
    return lambda: moment


def make_billboard(user, title="Mall Road Billboard", created_at=None, featured_until=None, model=Billboard, **extra):
    listing = model.objects.create(user=user, title=title, city="Lahore", price=50000, **extra)
    updates = {}
    if created_at is not None:
        updates["created_at"] = created_at
    if featured_until is not None:
        updates.update(featured=True, featured_until=featured_until, featured_at=featured_until - timedelta(days=7))
    if updates:
        model.objects.filter(pk=listing.pk).update(**updates)
        listing.refresh_from_db()
    return listing


def make_job(user, title="Backend Engineer", featured_until=None):
    job = Job.objects.create(
        user=user, title=title, city="Karachi", company_name="Acme", job_type="Full-time", salary="PKR 150,000"
    )
    if featured_until is not None:
        Job.objects.filter(pk=job.pk).update(featured=True, featured_until=featured_until, featured_at=featured_until - timedelta(days=7))
        job.refresh_from_db()
    return job


class PlanCatalogTests(SimpleTestCase):
    def test_catalog_has_week_and_three_week_plans(self):
        self.assertEqual([p.id for p in FEATURED_PLANS], ["1_week", "3_weeks"])
        self.assertEqual(get_plan("1_week").duration_days, 7)
        self.assertEqual(get_plan("3_weeks").duration_days, 21)
        self.assertTrue(get_plan("3_weeks").popular)

    def test_unknown_plan_raises(self):
        with self.assertRaises(InvalidPlan):
            get_plan("1_month")

    def test_display_strings(self):
        self.assertEqual(price_display("1_week"), "PKR 999")
        self.assertEqual(price_display("3_weeks"), "PKR 2,499")
        self.assertEqual(duration_display("3_weeks"), "21 days")
        self.assertEqual(price_display("nope"), "N/A")
        self.assertEqual(duration_display("nope"), "N/A")


class InterleaveTests(SimpleTestCase):
    def test_no_featured_keeps_regular_order(self):
        regular = [f"r{i}" for i in range(10)]
        self.assertEqual(interleave_featured(regular, []), regular)

    def test_featured_fill_every_seventh_position(self):
        regular = [f"r{i}" for i in range(20)]
        featured = ["f0", "f1"]
        result = interleave_featured(regular, featured)
        self.assertEqual(len(result), 22)
        # 1-indexed positions 7 and 14
        self.assertEqual(result[6], "f0")
        self.assertEqual(result[13], "f1")
        self.assertEqual([x for x in result if x.startswith("r")], regular)

    def test_leftover_featured_appended_when_regular_runs_out(self):
        regular = ["r0", "r1", "r2"]
        featured = [f"f{i}" for i in range(5)]
        result = interleave_featured(regular, featured)
        self.assertEqual(result, ["r0", "r1", "r2", "f0", "f1", "f2", "f3", "f4"])

    def test_only_featured(self):
        featured = [f"f{i}" for i in range(9)]
        self.assertEqual(interleave_featured([], featured), featured)

    def test_excess_featured_after_regular(self):
        regular = [f"r{i}" for i in range(8)]
        featured = [f"f{i}" for i in range(4)]
        result = interleave_featured(regular, featured)
        self.assertEqual(result[6], "f0")
        self.assertEqual(result[7:], ["r6", "r7", "f1", "f2", "f3"])
        self.assertEqual(sorted(result), sorted(regular + featured))


class RankWithFeaturedTests(SimpleTestCase):
    def _job(self, title, age_hours, featured_until=None):
        return Job(
            title=title,
            created_at=NOW - timedelta(hours=age_hours),
            featured=featured_until is not None,
            featured_until=featured_until,
        )

    def test_partitions_and_sorts_by_recency(self):
        old_featured = self._job("old-featured", 50, featured_until=NOW + timedelta(days=3))
        new_featured = self._job("new-featured", 1, featured_until=NOW + timedelta(days=3))
        regular = [self._job(f"regular-{i}", i + 2) for i in range(12)]
        ranked = rank_with_featured([old_featured] + list(reversed(regular)) + [new_featured], NOW)

        self.assertEqual(ranked[6].title, "new-featured")
        self.assertEqual(ranked[13].title, "old-featured")
        self.assertTrue(ranked[6].featured_position)
        regular_titles = [obj.title for obj in ranked if not obj.featured_position]
        self.assertEqual(regular_titles, [f"regular-{i}" for i in range(12)])

    def test_expired_flag_is_treated_as_regular(self):
        stale = self._job("stale", 0, featured_until=NOW - timedelta(seconds=1))
        boundary = self._job("boundary", 1, featured_until=NOW)
        ranked = rank_with_featured([stale, boundary], NOW)
        self.assertEqual([obj.title for obj in ranked], ["stale", "boundary"])
        self.assertFalse(any(obj.featured_position for obj in ranked))


class PromoteListingTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="owner", password="pass1234")
        self.billboard = make_billboard(self.user)
        self.screen = make_billboard(self.user, title="LED Screen", model=DigitalScreen)
        self.job = make_job(self.user)

    def test_one_week_plan_sets_exact_window(self):
        listing = promote_listing(self.billboard.pk, "1_week", ListingKind.BILLBOARD, clock=fixed_clock())
        listing.refresh_from_db()
        self.assertTrue(listing.featured)
        self.assertEqual(listing.featured_at, NOW)
        self.assertEqual(listing.featured_until - listing.featured_at, timedelta(days=7))
        self.assertEqual(listing.featured_plan, "1 Week Feature")
        self.assertEqual(listing.featured_price, 99900)
        self.assertEqual(listing.payment_status, PaymentStatus.COMPLETED)

    def test_three_week_plan_sets_exact_window(self):
        promote_listing(self.job.pk, "3_weeks", ListingKind.JOB, clock=fixed_clock())
        self.job.refresh_from_db()
        self.assertEqual(self.job.featured_until - self.job.featured_at, timedelta(days=21))

    def test_billboard_kind_falls_back_to_digital_screens(self):
        listing = promote_listing(self.screen.pk, "1_week", ListingKind.BILLBOARD, clock=fixed_clock())
        self.assertIsInstance(listing, DigitalScreen)
        self.screen.refresh_from_db()
        self.assertTrue(self.screen.featured)

    def test_invalid_plan_performs_no_write(self):
        with self.assertNumQueries(0):
            with self.assertRaises(InvalidPlan):
                promote_listing(self.billboard.pk, "2_weeks", ListingKind.BILLBOARD)
        self.billboard.refresh_from_db()
        self.assertFalse(self.billboard.featured)

    def test_unknown_listing_performs_no_write(self):
        # One probe per candidate table, no update
        with self.assertNumQueries(2):
            with self.assertRaises(ListingNotFound):
                promote_listing("3f1c2d9e-0000-4000-8000-000000000000", "1_week", ListingKind.BILLBOARD)

    def test_job_kind_does_not_probe_billboards(self):
        with self.assertRaises(ListingNotFound):
            promote_listing(self.billboard.pk, "1_week", ListingKind.JOB)

    def test_malformed_id_is_not_found(self):
        with self.assertRaises(ListingNotFound):
            promote_listing("not-a-uuid", "1_week", ListingKind.JOB)

    def test_promoting_again_resets_window(self):
        promote_listing(self.job.pk, "3_weeks", ListingKind.JOB, clock=fixed_clock())
        later = NOW + timedelta(days=2)
        promote_listing(self.job.pk, "1_week", ListingKind.JOB, clock=fixed_clock(later))
        self.job.refresh_from_db()
        self.assertEqual(self.job.featured_at, later)
        self.assertEqual(self.job.featured_until, later + timedelta(days=7))


class FeaturedStatusTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="owner", password="pass1234")

    def test_active_promotion_is_featured(self):
        listing = make_billboard(self.user, featured_until=NOW + timedelta(hours=1))
        self.assertTrue(check_featured_status(listing.pk, ListingKind.BILLBOARD, clock=fixed_clock()))
        listing.refresh_from_db()
        self.assertTrue(listing.featured)
        self.assertEqual(listing.featured_until, NOW + timedelta(hours=1))

    def test_expired_promotion_is_cleared_on_read(self):
        listing = make_billboard(self.user, featured_until=NOW - timedelta(minutes=1))
        self.assertFalse(check_featured_status(listing.pk, ListingKind.BILLBOARD, clock=fixed_clock()))
        listing.refresh_from_db()
        self.assertFalse(listing.featured)
        self.assertIsNone(listing.featured_until)
        self.assertIsNone(listing.featured_at)
        self.assertEqual(listing.payment_status, PaymentStatus.EXPIRED)

    def test_expiry_boundary_is_not_featured(self):
        job = make_job(self.user, featured_until=NOW)
        self.assertFalse(check_featured_status(job.pk, ListingKind.JOB, clock=fixed_clock()))

    def test_featured_flag_without_end_is_corrected(self):
        job = make_job(self.user)
        Job.objects.filter(pk=job.pk).update(featured=True)
        self.assertFalse(check_featured_status(job.pk, ListingKind.JOB, clock=fixed_clock()))
        job.refresh_from_db()
        self.assertFalse(job.featured)

    def test_never_featured_listing_is_left_alone(self):
        listing = make_billboard(self.user)
        with self.assertNumQueries(1):
            self.assertFalse(check_featured_status(listing.pk, ListingKind.BILLBOARD, clock=fixed_clock()))
        listing.refresh_from_db()
        self.assertEqual(listing.payment_status, "")

    def test_unknown_listing_raises(self):
        with self.assertRaises(ListingNotFound):
            check_featured_status("3f1c2d9e-0000-4000-8000-000000000000", ListingKind.JOB)

    def test_failed_correction_is_logged_and_ignored(self):
        listing = make_billboard(self.user, featured_until=NOW - timedelta(days=1))
        with mock.patch.object(QuerySet, "update", side_effect=DatabaseError("store unavailable")):
            with self.assertLogs("marketplace.featured", level="WARNING"):
                featured = check_featured_status(listing.pk, ListingKind.BILLBOARD, clock=fixed_clock())
        self.assertFalse(featured)
        listing.refresh_from_db()
        # Next read retries
        self.assertTrue(listing.featured)

    def test_featured_implies_future_end(self):
        moments = [NOW - timedelta(days=1), NOW, NOW + timedelta(seconds=1), NOW + timedelta(days=30)]
        for until in moments:
            listing = make_billboard(self.user, featured_until=until)
            if check_featured_status(listing.pk, ListingKind.BILLBOARD, clock=fixed_clock()):
                self.assertGreater(listing.featured_until, NOW)


class FeaturedRetrievalTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="owner", password="pass1234")
        now = timezone.now()
        self.older = make_billboard(self.user, title="older", featured_until=now + timedelta(days=1))
        self.newer = make_billboard(self.user, title="newer", model=DigitalScreen, featured_until=now + timedelta(days=10))
        self.stale = make_billboard(self.user, title="stale", featured_until=now - timedelta(days=1))
        self.job = make_job(self.user, featured_until=now + timedelta(days=3))
        make_billboard(self.user, title="regular")

    def test_all_kinds_sorted_by_featured_at(self):
        titles = [obj.title for obj in get_featured_listings()]
        self.assertEqual(titles, ["newer", "Backend Engineer", "older"])

    def test_kind_filter(self):
        titles = [obj.title for obj in get_featured_listings([ListingKind.BILLBOARD])]
        self.assertEqual(titles, ["older"])

    def test_stale_flag_is_filtered_without_write(self):
        get_featured_listings()
        self.stale.refresh_from_db()
        self.assertTrue(self.stale.featured)

    def test_listings_with_featured_for_one_collection(self):
        ranked = get_listings_with_featured(ListingKind.BILLBOARD)
        self.assertEqual(len(ranked), 3)
        self.assertEqual(
            [obj.title for obj in ranked if obj.featured_position],
            ["older"],
        )


class AuthenticatedAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.owner = User.objects.create_user(username="owner", password="pass1234")
        self.other = User.objects.create_user(username="buyer", password="pass1234")

    def login(self, user):
        token, _ = Token.objects.get_or_create(user=user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token.key}")


class ListingsEndpointTests(AuthenticatedAPITestCase):
    def test_list_interleaves_featured_at_seventh_position(self):
        base = timezone.now() - timedelta(days=1)
        for i in range(8):
            make_billboard(self.owner, title=f"Regular {i}", created_at=base + timedelta(minutes=i))
        make_billboard(self.owner, title="Promoted", created_at=base, featured_until=timezone.now() + timedelta(days=2))

        response = self.client.get("/api/billboards/")
        self.assertEqual(response.status_code, 200, msg=response.content)
        results = response.data["results"]
        self.assertEqual(response.data["count"], 9)
        self.assertEqual(results[6]["title"], "Promoted")
        self.assertTrue(results[6]["featured_position"])
        self.assertEqual(results[0]["title"], "Regular 7")
        self.assertFalse(results[0]["featured_position"])

    def test_list_filters_by_city(self):
        make_billboard(self.owner, title="In Lahore")
        Billboard.objects.create(user=self.owner, title="In Karachi", city="Karachi", price=1000)
        response = self.client.get("/api/billboards/", {"city": "karachi"})
        self.assertEqual([r["title"] for r in response.data["results"]], ["In Karachi"])

    def test_create_requires_auth_and_ignores_featured_fields(self):
        payload = {"title": "Canal Bank", "city": "Lahore", "price": "25000.00", "featured": True}
        response = self.client.post("/api/billboards/", payload, format="json")
        self.assertEqual(response.status_code, 401)

        self.login(self.owner)
        response = self.client.post("/api/billboards/", payload, format="json")
        self.assertEqual(response.status_code, 201, msg=response.content)
        self.assertFalse(response.data["featured"])
        self.assertEqual(response.data["kind"], "billboard")
        self.assertEqual(response.data["user"], "owner")

    def test_only_owner_can_edit(self):
        job = make_job(self.owner)
        self.login(self.other)
        response = self.client.patch(f"/api/jobs/{job.pk}/", {"title": "Hijacked"}, format="json")
        self.assertEqual(response.status_code, 403)
        self.login(self.owner)
        response = self.client.patch(f"/api/jobs/{job.pk}/", {"title": "Senior Engineer"}, format="json")
        self.assertEqual(response.status_code, 200, msg=response.content)

    def test_featured_status_endpoint_expires_listing(self):
        screen = make_billboard(self.owner, model=DigitalScreen, featured_until=timezone.now() - timedelta(hours=1))
        response = self.client.get(f"/api/digital-screens/{screen.pk}/featured-status/")
        self.assertEqual(response.status_code, 200, msg=response.content)
        self.assertFalse(response.data["featured"])
        screen.refresh_from_db()
        self.assertFalse(screen.featured)
        self.assertEqual(screen.payment_status, PaymentStatus.EXPIRED)

    def test_featured_status_unknown_listing_is_404(self):
        response = self.client.get("/api/jobs/3f1c2d9e-0000-4000-8000-000000000000/featured-status/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["detail"].code, "not_found")

    def test_featured_endpoint_and_kind_validation(self):
        make_job(self.owner, featured_until=timezone.now() + timedelta(days=1))
        response = self.client.get("/api/featured/", {"kind": "job"})
        self.assertEqual(response.status_code, 200, msg=response.content)
        self.assertEqual(len(response.data["results"]), 1)
        self.assertEqual(response.data["results"][0]["kind"], "job")
        response = self.client.get("/api/featured/", {"kind": "flyer"})
        self.assertEqual(response.status_code, 400)

    def test_store_errors_surface_as_503(self):
        with mock.patch("marketplace.views.get_featured_listings", side_effect=DatabaseError("timeout")):
            with self.assertLogs("marketplace.exceptions", level="ERROR"):
                response = self.client.get("/api/featured/")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["detail"].code, "remote_store_error")

    def test_plans_endpoint(self):
        response = self.client.get("/api/featured/plans/")
        self.assertEqual(response.status_code, 200)
        plans = {p["id"]: p for p in response.data["results"]}
        self.assertEqual(plans["1_week"]["price_display"], "PKR 999")
        self.assertEqual(plans["3_weeks"]["duration_display"], "21 days")

    def test_my_ads_refreshes_featured_status(self):
        expired = make_billboard(self.owner, title="Expired", featured_until=timezone.now() - timedelta(days=1))
        make_job(self.owner, featured_until=timezone.now() + timedelta(days=1))
        make_billboard(self.other, title="Not mine")

        response = self.client.get("/api/my-ads/")
        self.assertEqual(response.status_code, 401)

        self.login(self.owner)
        response = self.client.get("/api/my-ads/")
        self.assertEqual(response.status_code, 200, msg=response.content)
        by_title = {r["title"]: r for r in response.data["results"]}
        self.assertEqual(set(by_title), {"Expired", "Backend Engineer"})
        self.assertFalse(by_title["Expired"]["is_featured"])
        self.assertEqual(by_title["Expired"]["payment_status"], "expired")
        self.assertTrue(by_title["Backend Engineer"]["is_featured"])
        expired.refresh_from_db()
        self.assertFalse(expired.featured)

    def test_me_counts_listings(self):
        make_billboard(self.owner)
        make_job(self.owner)
        self.login(self.owner)
        response = self.client.get("/api/auth/me/")
        self.assertEqual(response.data["listings_count"], 2)


@override_settings(STRIPE_SECRET_KEY="sk_test_123", FRONTEND_BASE_URL="https://ads.example.com")
class CheckoutSessionTests(AuthenticatedAPITestCase):
    def setUp(self):
        super().setUp()
        self.billboard = make_billboard(self.owner)

    @mock.patch("stripe.checkout.Session.create")
    def test_creates_session_with_plan_price_and_metadata(self, create):
        create.return_value = SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")
        self.login(self.owner)
        response = self.client.post(
            "/api/checkout/session/",
            {"planId": "3_weeks", "contentId": str(self.billboard.pk), "contentType": "billboard"},
            format="json",
        )
        self.assertEqual(response.status_code, 200, msg=response.content)
        self.assertEqual(response.data["sessionId"], "cs_test_1")
        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["line_items"][0]["price_data"]["unit_amount"], 249900)
        self.assertEqual(kwargs["line_items"][0]["price_data"]["currency"], "pkr")
        self.assertEqual(kwargs["metadata"]["contentId"], str(self.billboard.pk))
        self.assertEqual(kwargs["metadata"]["planId"], "3_weeks")
        self.assertEqual(kwargs["metadata"]["title"], "Mall Road Billboard")
        self.assertTrue(kwargs["cancel_url"].startswith("https://ads.example.com/"))

    @mock.patch("stripe.checkout.Session.create")
    def test_rejects_invalid_plan_and_foreign_listing(self, create):
        self.login(self.owner)
        response = self.client.post(
            "/api/checkout/session/",
            {"planId": "forever", "contentId": str(self.billboard.pk), "contentType": "billboard"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["detail"].code, "invalid_plan")

        self.login(self.other)
        response = self.client.post(
            "/api/checkout/session/",
            {"planId": "1_week", "contentId": str(self.billboard.pk), "contentType": "billboard"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
        create.assert_not_called()

    @mock.patch("stripe.checkout.Session.create")
    def test_digital_screen_product_is_labelled_as_screen(self, create):
        create.return_value = SimpleNamespace(id="cs_test_2", url="https://checkout.stripe.test/cs_test_2")
        screen = make_billboard(self.owner, title="Liberty LED", model=DigitalScreen)
        self.login(self.owner)
        response = self.client.post(
            "/api/checkout/session/",
            {"planId": "1_week", "contentId": str(screen.pk), "contentType": "digital_screen"},
            format="json",
        )
        self.assertEqual(response.status_code, 200, msg=response.content)
        product = create.call_args.kwargs["line_items"][0]["price_data"]["product_data"]
        self.assertEqual(product["name"], "1 Week Feature - Digital Screen Feature")
        self.assertEqual(product["description"], "Feature your digital screen: Liberty LED")

    def test_requires_authentication(self):
        response = self.client.post("/api/checkout/session/", {}, format="json")
        self.assertEqual(response.status_code, 401)


WEBHOOK_SECRET = "whsec_test_secret"


def stripe_signature(payload, secret=WEBHOOK_SECRET, timestamp=None):
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@override_settings(STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET)
class StripeWebhookTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username="owner", password="pass1234")
        self.screen = make_billboard(self.user, model=DigitalScreen)
        self.job = make_job(self.user)

    def _event(self, metadata, payment_status="paid", event_type="checkout.session.completed"):
        return json.dumps({
            "id": "evt_1",
            "type": event_type,
            "data": {"object": {"id": "cs_1", "payment_status": payment_status, "metadata": metadata}},
        })

    def _post(self, payload, signature=None):
        return self.client.post(
            "/api/stripe/webhook/",
            data=payload,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=signature or stripe_signature(payload),
        )

    def test_completed_checkout_features_digital_screen(self):
        payload = self._event({"contentId": str(self.screen.pk), "contentType": "billboard", "planId": "1_week", "userId": "1"})
        response = self._post(payload)
        self.assertEqual(response.status_code, 200, msg=response.content)
        self.assertTrue(response.data["success"])
        self.screen.refresh_from_db()
        self.assertTrue(self.screen.featured)
        self.assertEqual(self.screen.featured_until - self.screen.featured_at, timedelta(days=7))

    def test_completed_checkout_features_job(self):
        payload = self._event({"contentId": str(self.job.pk), "contentType": "job", "planId": "3_weeks"})
        response = self._post(payload)
        self.assertEqual(response.status_code, 200, msg=response.content)
        self.job.refresh_from_db()
        self.assertEqual(self.job.featured_until - self.job.featured_at, timedelta(days=21))

    def test_bad_signature_is_rejected(self):
        payload = self._event({"contentId": str(self.job.pk), "contentType": "job", "planId": "1_week"})
        response = self._post(payload, signature=stripe_signature(payload, secret="whsec_wrong"))
        self.assertEqual(response.status_code, 400)
        self.job.refresh_from_db()
        self.assertFalse(self.job.featured)

    def test_unpaid_session_is_rejected(self):
        payload = self._event({"contentId": str(self.job.pk), "contentType": "job", "planId": "1_week"}, payment_status="unpaid")
        response = self._post(payload)
        self.assertEqual(response.status_code, 400)
        self.job.refresh_from_db()
        self.assertFalse(self.job.featured)

    def test_missing_metadata_is_rejected(self):
        response = self._post(self._event({"contentType": "job"}))
        self.assertEqual(response.status_code, 400)

    def test_unknown_listing_asks_stripe_to_retry(self):
        payload = self._event({"contentId": "3f1c2d9e-0000-4000-8000-000000000000", "contentType": "job", "planId": "1_week"})
        response = self._post(payload)
        self.assertEqual(response.status_code, 500)

    def test_other_events_are_acknowledged(self):
        response = self._post(self._event({}, event_type="payment_intent.created"))
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["received"])

    def test_signed_event_without_type_is_acknowledged(self):
        payload = json.dumps({"id": "evt_2", "data": {"object": {}}})
        response = self._post(payload)
        self.assertEqual(response.status_code, 200, msg=response.content)
        self.assertTrue(response.data["received"])


class FeatureTestEndpointTests(AuthenticatedAPITestCase):
    def test_disabled_returns_404(self):
        self.login(self.owner)
        job = make_job(self.owner)
        with override_settings(FEATURE_TEST_ENDPOINT_ENABLED=False):
            response = self.client.post("/api/featured/test/", {"contentId": str(job.pk), "contentType": "job", "planId": "1_week"}, format="json")
        self.assertEqual(response.status_code, 404)

    def test_enabled_promotes_without_payment(self):
        self.login(self.owner)
        job = make_job(self.owner)
        with override_settings(FEATURE_TEST_ENDPOINT_ENABLED=True):
            response = self.client.post("/api/featured/test/", {"contentId": str(job.pk), "contentType": "job", "planId": "1_week"}, format="json")
        self.assertEqual(response.status_code, 200, msg=response.content)
        job.refresh_from_db()
        self.assertTrue(job.featured)

    def test_off_unless_configured(self):
        self.assertFalse(settings.FEATURE_TEST_ENDPOINT_ENABLED)
        self.login(self.owner)
        job = make_job(self.owner)
        response = self.client.post("/api/featured/test/", {"contentId": str(job.pk), "contentType": "job", "planId": "3_weeks"}, format="json")
        self.assertEqual(response.status_code, 404)
        job.refresh_from_db()
        self.assertFalse(job.featured)

    def test_only_owner_can_promote(self):
        job = make_job(self.owner)
        self.login(self.other)
        with override_settings(FEATURE_TEST_ENDPOINT_ENABLED=True):
            response = self.client.post("/api/featured/test/", {"contentId": str(job.pk), "contentType": "job", "planId": "3_weeks"}, format="json")
        self.assertEqual(response.status_code, 403)
        job.refresh_from_db()
        self.assertFalse(job.featured)

    def test_invalid_plan_is_rejected_before_lookup(self):
        self.login(self.other)
        with override_settings(FEATURE_TEST_ENDPOINT_ENABLED=True):
            response = self.client.post("/api/featured/test/", {"contentId": "missing", "contentType": "job", "planId": "forever"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["detail"].code, "invalid_plan")


class SavedAdsTests(AuthenticatedAPITestCase):
    def test_save_check_and_unsave(self):
        billboard = make_billboard(self.owner, photos=["https://img.example.com/1.jpg"])
        self.login(self.other)
        response = self.client.post("/api/saved-ads/", {"kind": "billboard", "listing_id": str(billboard.pk)}, format="json")
        self.assertEqual(response.status_code, 201, msg=response.content)
        self.assertEqual(response.data["title"], "Mall Road Billboard")
        self.assertEqual(response.data["photos"], ["https://img.example.com/1.jpg"])

        response = self.client.post("/api/saved-ads/", {"kind": "billboard", "listing_id": str(billboard.pk)}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(SavedAd.objects.filter(user=self.other).count(), 1)

        response = self.client.get(f"/api/saved-ads/billboard/{billboard.pk}/")
        self.assertTrue(response.data["saved"])
        response = self.client.delete(f"/api/saved-ads/billboard/{billboard.pk}/")
        self.assertEqual(response.status_code, 204)
        response = self.client.get(f"/api/saved-ads/billboard/{billboard.pk}/")
        self.assertFalse(response.data["saved"])

    def test_save_unknown_listing(self):
        self.login(self.other)
        response = self.client.post("/api/saved-ads/", {"kind": "job", "listing_id": "3f1c2d9e-0000-4000-8000-000000000000"}, format="json")
        self.assertEqual(response.status_code, 404)


class PhotoUploadTests(AuthenticatedAPITestCase):
    @mock.patch("cloudinary.uploader.upload")
    def test_upload_returns_hosted_url(self, upload):
        upload.return_value = {"secure_url": "https://res.cloudinary.com/demo/image/upload/board.png"}
        self.login(self.owner)
        image = SimpleUploadedFile("board.png", b"\x89PNG\r\n", content_type="image/png")
        response = self.client.post("/api/photos/upload/", {"image": image}, format="multipart")
        self.assertEqual(response.status_code, 201, msg=response.content)
        self.assertEqual(response.data["url"], "https://res.cloudinary.com/demo/image/upload/board.png")

    @mock.patch("cloudinary.uploader.upload")
    def test_rejects_unsupported_extension(self, upload):
        self.login(self.owner)
        doc = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")
        response = self.client.post("/api/photos/upload/", {"image": doc}, format="multipart")
        self.assertEqual(response.status_code, 400)
        upload.assert_not_called()


class ChatTests(AuthenticatedAPITestCase):
    def test_chat_key_is_sorted_string_ids(self):
        self.assertEqual(Chat.key_for(9, 10), "10_9")
        self.assertEqual(Chat.key_for("b", "a"), "a_b")

    def test_start_chat_is_idempotent(self):
        self.login(self.other)
        response = self.client.post("/api/chats/start/", {"user_id": self.owner.id}, format="json")
        self.assertEqual(response.status_code, 201, msg=response.content)
        self.assertEqual(response.data["key"], Chat.key_for(self.other.id, self.owner.id))
        self.assertEqual(response.data["other_user"]["username"], "owner")

        self.login(self.owner)
        response = self.client.post("/api/chats/start/", {"user_id": self.other.id}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["created"])

    def test_cannot_chat_with_self(self):
        self.login(self.owner)
        response = self.client.post("/api/chats/start/", {"user_id": self.owner.id}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_send_list_and_mark_read(self):
        self.login(self.other)
        key = self.client.post("/api/chats/start/", {"user_id": self.owner.id}, format="json").data["key"]
        response = self.client.post(f"/api/chats/{key}/messages/", {"message": "Is the billboard free in May?"}, format="json")
        self.assertEqual(response.status_code, 201, msg=response.content)
        self.assertEqual(response.data["receiver_id"], self.owner.id)

        # Sender's own message does not flip the read flag
        response = self.client.post(f"/api/chats/{key}/mark-read/")
        self.assertFalse(response.data["updated"])

        self.login(self.owner)
        response = self.client.get(f"/api/chats/{key}/messages/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data["results"]), 1)
        response = self.client.post(f"/api/chats/{key}/mark-read/")
        self.assertTrue(response.data["updated"])
        self.assertTrue(Chat.objects.get(key=key).read)

        response = self.client.get("/api/chats/")
        self.assertEqual(response.data[0]["last_message"], "Is the billboard free in May?")

    def test_non_participant_is_forbidden(self):
        outsider = User.objects.create_user(username="outsider", password="pass1234")
        self.login(self.other)
        key = self.client.post("/api/chats/start/", {"user_id": self.owner.id}, format="json").data["key"]
        self.login(outsider)
        response = self.client.get(f"/api/chats/{key}/messages/")
        self.assertEqual(response.status_code, 403)

    def test_image_message_requires_url(self):
        self.login(self.other)
        key = self.client.post("/api/chats/start/", {"user_id": self.owner.id}, format="json").data["key"]
        response = self.client.post(f"/api/chats/{key}/messages/", {"message": "Sent an image", "message_type": "image"}, format="json")
        self.assertEqual(response.status_code, 400)


class ExpireFeaturedCommandTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="owner", password="pass1234")
        now = timezone.now()
        self.lapsed = make_billboard(self.user, featured_until=now - timedelta(days=1))
        self.active = make_job(self.user, featured_until=now + timedelta(days=1))

    def test_dry_run_reports_without_writing(self):
        out = StringIO()
        call_command("expire_featured", "--dry-run", stdout=out)
        self.assertIn("Would expire 1 featured listings.", out.getvalue())
        self.lapsed.refresh_from_db()
        self.assertTrue(self.lapsed.featured)

    def test_sweep_expires_lapsed_only(self):
        out = StringIO()
        call_command("expire_featured", stdout=out)
        self.assertIn("Expired 1 featured listings.", out.getvalue())
        self.lapsed.refresh_from_db()
        self.active.refresh_from_db()
        self.assertFalse(self.lapsed.featured)
        self.assertEqual(self.lapsed.payment_status, PaymentStatus.EXPIRED)
        self.assertTrue(self.active.featured)


class MigrationStateTests(TestCase):
    def test_models_have_no_pending_migrations(self):
        out = StringIO()
        # Exits non-zero when the models drift from the migration files
        call_command("makemigrations", "marketplace", "--check", "--dry-run", stdout=out)
        self.assertIn("No changes detected", out.getvalue())


IN_MEMORY_LAYERS ={"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}

websocket_application = TokenAuthMiddlewareStack(URLRouter(websocket_urlpatterns))


@override_settings(CHANNEL_LAYERS=IN_MEMORY_LAYERS)
class ChatSocketTests(TransactionTestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username="owner", password="pass1234")
        self.buyer = User.objects.create_user(username="buyer", password="pass1234")
        self.outsider = User.objects.create_user(username="outsider", password="pass1234")
        self.tokens = {user.pk: Token.objects.create(user=user).key for user in (self.owner, self.buyer, self.outsider)}
        self.chat, _ = start_chat(self.buyer, self.owner)

    def socket(self, path, user=None):
        query = f"?token={self.tokens[user.pk]}" if user else ""
        return WebsocketCommunicator(websocket_application, f"{path}{query}")

    def chat_socket(self, user=None):
        return self.socket(f"/ws/chats/{self.chat.key}/", user)

    async def test_participant_connects_with_token(self):
        communicator = self.chat_socket(self.buyer)
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        await communicator.disconnect()

    async def test_non_participant_is_rejected(self):
        communicator = self.chat_socket(self.outsider)
        connected, code = await communicator.connect()
        self.assertFalse(connected)
        self.assertEqual(code, 4403)
        await communicator.disconnect()

    async def test_missing_or_unknown_token_is_rejected(self):
        for path in (f"/ws/chats/{self.chat.key}/", f"/ws/chats/{self.chat.key}/?token=bogus", "/ws/notifications/"):
            communicator = WebsocketCommunicator(websocket_application, path)
            connected, code = await communicator.connect()
            self.assertFalse(connected)
            self.assertEqual(code, 4403)
            await communicator.disconnect()

    async def test_message_is_stored_broadcast_and_notified(self):
        notifications = self.socket("/ws/notifications/", self.owner)
        connected, _ = await notifications.connect()
        self.assertTrue(connected)
        communicator = self.chat_socket(self.buyer)
        await communicator.connect()

        await communicator.send_json_to({"action": "message", "message": "  Is the LED screen free in June?  "})
        event = await communicator.receive_json_from()
        self.assertEqual(event["event"], "message.created")
        self.assertEqual(event["message"]["message"], "Is the LED screen free in June?")
        self.assertEqual(event["message"]["receiver_id"], self.owner.pk)

        notice = await notifications.receive_json_from()
        self.assertEqual(notice, {"event": "chat.updated", "chat_key": self.chat.key})

        stored = await database_sync_to_async(
            ChatMessage.objects.filter(chat=self.chat, sender=self.buyer, receiver=self.owner).count
        )()
        self.assertEqual(stored, 1)
        chat = await database_sync_to_async(Chat.objects.get)(pk=self.chat.pk)
        self.assertEqual(chat.last_message, "Is the LED screen free in June?")
        self.assertFalse(chat.read)

        await communicator.disconnect()
        await notifications.disconnect()

    async def test_blank_message_is_ignored(self):
        communicator = self.chat_socket(self.buyer)
        await communicator.connect()
        await communicator.send_json_to({"action": "message", "message": "   "})
        self.assertTrue(await communicator.receive_nothing())
        stored = await database_sync_to_async(ChatMessage.objects.filter(chat=self.chat).count)()
        self.assertEqual(stored, 0)
        await communicator.disconnect()

    async def test_typing_is_relayed_to_the_room(self):
        owner_socket = self.chat_socket(self.owner)
        await owner_socket.connect()
        buyer_socket = self.chat_socket(self.buyer)
        await buyer_socket.connect()

        await buyer_socket.send_json_to({"action": "typing", "is_typing": True})
        event = await owner_socket.receive_json_from()
        self.assertEqual(event, {"event": "typing", "user_id": self.buyer.pk, "is_typing": True})

        await buyer_socket.disconnect()
        await owner_socket.disconnect()

    async def test_read_marks_chat_read(self):
        await database_sync_to_async(post_message)(self.chat, self.buyer, "Still available?")
        communicator = self.chat_socket(self.owner)
        await communicator.connect()

        await communicator.send_json_to({"action": "read"})
        event = await communicator.receive_json_from()
        self.assertEqual(event, {"event": "read", "user_id": self.owner.pk})
        chat = await database_sync_to_async(Chat.objects.get)(pk=self.chat.pk)
        self.assertTrue(chat.read)

        await communicator.disconnect()

    async def test_sender_reading_own_message_changes_nothing(self):
        await database_sync_to_async(post_message)(self.chat, self.buyer, "Still available?")
        communicator = self.chat_socket(self.buyer)
        await communicator.connect()

        await communicator.send_json_to({"action": "read"})
        self.assertTrue(await communicator.receive_nothing())
        chat = await database_sync_to_async(Chat.objects.get)(pk=self.chat.pk)
        self.assertFalse(chat.read)

        await communicator.disconnect()
