import logging

import cloudinary.exceptions
import cloudinary.uploader
import stripe
from django.conf import settings
from django.contrib.auth.models import User
from django.db import IntegrityError
from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import generics, permissions, status
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView
from django_filters.rest_framework import DjangoFilterBackend

from . import clock as clocks
from .chat import mark_chat_read, message_payload, post_message, start_chat
from .exceptions import InvalidPlan, ListingNotFound
from .featured import (
    LISTING_KINDS,
    get_featured_listings,
    promote_listing,
    rank_with_featured,
    refresh_featured_status,
    resolve_listing,
)
from .filters import BillboardFilter, DigitalScreenFilter, JobFilter
from .models import Billboard, Chat, DigitalScreen, Job, ListingKind, SavedAd
from .payments import (
    CHECKOUT_COMPLETED,
    WebhookRejected,
    construct_event,
    content_kind,
    create_checkout_session,
    handle_checkout_completed,
)
from .permissions import IsOwnerOrReadOnly
from .plans import FEATURED_PLANS, get_plan
from .serializers import (
    UserSerializer,
    BillboardSerializer,
    DigitalScreenSerializer,
    JobSerializer,
    FeaturedPlanSerializer,
    CheckoutRequestSerializer,
    SavedAdSerializer,
    ChatSerializer,
    ChatMessageSerializer,
    serialize_listing,
)
from .ws_events import broadcast_chat_message, broadcast_chat_read, notify_user

logger = logging.getLogger(__name__)


def parse_kind(value):
    try:
        return ListingKind(value)
    except ValueError:
        raise ValidationError({"kind": f"Unknown listing kind: {value!r}"})


# View for User Registration
class RegisterView(generics.CreateAPIView):
    queryset = User.objects.all()
    permission_classes = (permissions.AllowAny,)
    serializer_class = UserSerializer


class MeView(APIView):
    """Return basic authenticated user info."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        user = request.user
        return Response(
            {
                "id": user.id,
                "username": user.username,
                "email": user.email,
                "listings_count": sum(
                    entry.model.objects.filter(user=user).count() for entry in LISTING_KINDS.values()
                ),
            }
        )

    def patch(self, request):
        serializer = UserSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        data = dict(serializer.data)
        data.pop("password", None)
        return Response(data)


class ListingsPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100


class FeaturedInterleavedListCreateView(generics.ListCreateAPIView):
    """List one listing kind with featured listings interleaved every 7th position.

    Filters narrow the collection first; ranking runs over the filtered set and
    pagination slices the ranked sequence.
    """

    permission_classes = [permissions.IsAuthenticatedOrReadOnly]
    pagination_class = ListingsPagination
    filter_backends = [DjangoFilterBackend]
    model = None

    def get_queryset(self):
        return self.model.objects.select_related("user")

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        ranked = rank_with_featured(queryset, clocks.now())
        page = self.paginate_queryset(ranked)
        if page is not None:
            serializer = self.get_serializer(page, many=True)
            return self.get_paginated_response(serializer.data)
        return Response(self.get_serializer(ranked, many=True).data)


class BillboardListCreateView(FeaturedInterleavedListCreateView):
    model = Billboard
    serializer_class = BillboardSerializer
    filterset_class = BillboardFilter


class DigitalScreenListCreateView(FeaturedInterleavedListCreateView):
    model = DigitalScreen
    serializer_class = DigitalScreenSerializer
    filterset_class = DigitalScreenFilter


class JobListCreateView(FeaturedInterleavedListCreateView):
    model = Job
    serializer_class = JobSerializer
    filterset_class = JobFilter


class BillboardDetailView(generics.RetrieveUpdateDestroyAPIView):
    queryset = Billboard.objects.select_related("user")
    serializer_class = BillboardSerializer
    permission_classes = [permissions.IsAuthenticatedOrReadOnly, IsOwnerOrReadOnly]


class DigitalScreenDetailView(generics.RetrieveUpdateDestroyAPIView):
    queryset = DigitalScreen.objects.select_related("user")
    serializer_class = DigitalScreenSerializer
    permission_classes = [permissions.IsAuthenticatedOrReadOnly, IsOwnerOrReadOnly]


class JobDetailView(generics.RetrieveUpdateDestroyAPIView):
    queryset = Job.objects.select_related("user")
    serializer_class = JobSerializer
    permission_classes = [permissions.IsAuthenticatedOrReadOnly, IsOwnerOrReadOnly]


class FeaturedStatusView(APIView):
    """Is this listing featured right now? Expired promotions are cleared as a side effect."""

    permission_classes = [permissions.AllowAny]
    kind = None

    def get(self, request, pk):
        listing = resolve_listing(pk, self.kind)
        featured = refresh_featured_status(listing, clocks.now())
        return Response(
            {
                "id": str(listing.pk),
                "kind": str(listing.kind),
                "featured": featured,
                "featured_until": listing.featured_until,
            }
        )


class FeaturedListingsView(APIView):
    """Currently featured listings for marketing sections. ?kind= may repeat."""

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        kinds = [parse_kind(k) for k in request.query_params.getlist("kind")]
        listings = get_featured_listings(kinds or None)
        context = {"request": request}
        return Response({"results": [serialize_listing(obj, context) for obj in listings]})


class FeaturedPlanListView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response({"results": FeaturedPlanSerializer(FEATURED_PLANS, many=True).data})


class MyAdsView(APIView):
    """Owner dashboard: every listing the user posted, with featured status re-checked."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        now = clocks.now()
        listings = []
        for entry in LISTING_KINDS.values():
            listings.extend(entry.model.objects.filter(user=request.user))
        listings.sort(key=lambda obj: obj.created_at, reverse=True)
        context = {"request": request}
        results = []
        for listing in listings:
            is_featured = refresh_featured_status(listing, now)
            data = dict(serialize_listing(listing, context))
            data["is_featured"] = is_featured
            results.append(data)
        return Response({"results": results})


class PhotoUploadView(APIView):
    """Upload an image to Cloudinary and return its hosted URL."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        image = request.FILES.get("image")
        if image is None:
            return Response({"error": "image file is required."}, status=status.HTTP_400_BAD_REQUEST)
        name = getattr(image, "name", "") or ""
        ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
        if ext not in settings.ALLOWED_IMAGE_EXTENSIONS:
            return Response({"error": f"Unsupported image type: {ext or 'unknown'}"}, status=status.HTTP_400_BAD_REQUEST)
        try:
            result = cloudinary.uploader.upload(image, folder=settings.CLOUDINARY_UPLOAD_FOLDER)
        except cloudinary.exceptions.Error as exc:
            logger.warning("Image upload failed for user %s: %s", request.user.id, exc)
            return Response({"error": "Image upload failed"}, status=status.HTTP_502_BAD_GATEWAY)
        return Response({"url": result["secure_url"]}, status=status.HTTP_201_CREATED)


class CheckoutSessionView(APIView):
    """Start a Stripe Checkout payment for featuring one of the user's listings."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        plan = get_plan(data["planId"])
        content_type = data["contentType"]
        listing = resolve_listing(data["contentId"], content_kind(content_type))
        if listing.user_id != request.user.id:
            raise PermissionDenied("You can only feature your own listings.")
        try:
            session, metadata = create_checkout_session(plan, listing, content_type, request.user, data.get("title"))
        except stripe.StripeError as exc:
            logger.error("Stripe checkout creation failed: %s", exc)
            return Response({"error": "Failed to create checkout session"}, status=status.HTTP_502_BAD_GATEWAY)
        return Response({"sessionId": session.id, "url": session.url, "metadata": metadata})


@method_decorator(csrf_exempt, name="dispatch")
class StripeWebhookView(APIView):
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        payload = request.body
        signature = request.META.get("HTTP_STRIPE_SIGNATURE", "")
        try:
            event = construct_event(payload, signature)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("Webhook signature verification failed: %s", exc)
            return Response({"error": f"Webhook Error: {exc}"}, status=status.HTTP_400_BAD_REQUEST)

        event_type = event.get("type")
        logger.info("Webhook received: %s %s", event_type, event.get("id"))
        if event_type != CHECKOUT_COMPLETED:
            return Response({"received": True})

        session = event["data"]["object"]
        try:
            listing = handle_checkout_completed(session)
        except WebhookRejected as exc:
            logger.error("Rejected checkout %s: %s", session.get("id"), exc)
            return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except (ListingNotFound, InvalidPlan) as exc:
            # 5xx so Stripe retries delivery
            logger.error("Failed to feature listing for checkout %s: %s", session.get("id"), exc)
            return Response(
                {"error": "Failed to process payment", "details": str(exc.detail)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        metadata = session["metadata"]
        return Response(
            {
                "success": True,
                "message": f"{metadata['contentType']} featured successfully",
                "contentId": str(listing.pk),
                "planId": metadata["planId"],
            }
        )


class FeatureTestView(APIView):
    """Promote one of the user's own listings without payment.

    Off unless FEATURE_TEST_ENDPOINT_ENABLED is set, for staging deployments.
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        if not settings.FEATURE_TEST_ENDPOINT_ENABLED:
            return Response(status=status.HTTP_404_NOT_FOUND)
        content_id = request.data.get("contentId")
        content_type = request.data.get("contentType")
        plan_id = request.data.get("planId")
        if not content_id or not content_type or not plan_id:
            return Response({"error": "Missing required fields"}, status=status.HTTP_400_BAD_REQUEST)
        kind = content_kind(content_type)
        get_plan(plan_id)
        if resolve_listing(content_id, kind).user_id != request.user.id:
            raise PermissionDenied("You can only feature your own listings.")
        listing = promote_listing(content_id, plan_id, kind)
        return Response(
            {
                "success": True,
                "kind": str(listing.kind),
                "endDate": listing.featured_until,
            }
        )


class SavedAdListCreateView(generics.ListCreateAPIView):
    serializer_class = SavedAdSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return SavedAd.objects.filter(user=self.request.user)

    def create(self, request, *args, **kwargs):
        kind = parse_kind(request.data.get("kind"))
        listing = resolve_listing(request.data.get("listing_id"), kind)
        saved, created = SavedAd.objects.get_or_create(
            user=request.user,
            kind=listing.kind,
            object_id=listing.pk,
            defaults={
                "title": listing.title or "Untitled",
                "city": listing.city or "",
                "price": getattr(listing, "price", None),
                "photos": list(listing.photos or []),
            },
        )
        return Response(
            SavedAdSerializer(saved).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class SavedAdDetailView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, kind, pk):
        saved = SavedAd.objects.filter(user=request.user, kind=parse_kind(kind), object_id=pk).exists()
        return Response({"saved": saved})

    def delete(self, request, kind, pk):
        SavedAd.objects.filter(user=request.user, kind=parse_kind(kind), object_id=pk).delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


class ChatListView(generics.ListAPIView):
    serializer_class = ChatSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return (
            self.request.user.chats.prefetch_related("participants")
            .select_related("last_sender")
            .order_by("-last_timestamp", "-created_at")
        )


class StartChatView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        other_id = request.data.get("user_id")
        try:
            other_id = int(other_id)
        except (TypeError, ValueError):
            return Response({"error": "user_id is required."}, status=status.HTTP_400_BAD_REQUEST)
        other = get_object_or_404(User, pk=other_id)
        if other.pk == request.user.pk:
            return Response(
                {"error": "You cannot start a chat with yourself."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            chat, created = start_chat(request.user, other)
        except IntegrityError:
            # Lost a race with the other participant creating the same chat
            chat, created = Chat.objects.get(key=Chat.key_for(request.user.pk, other.pk)), False
        payload = dict(ChatSerializer(chat, context={"request": request}).data)
        payload["created"] = created
        return Response(payload, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


def get_participant_chat(request, chat_key):
    chat = get_object_or_404(Chat, key=chat_key)
    if not chat.participants.filter(pk=request.user.pk).exists():
        raise PermissionDenied("You are not a participant in this chat.")
    return chat


class ChatMessagesPagination(PageNumberPagination):
    page_size = 30
    page_size_query_param = "page_size"
    max_page_size = 100


class ChatMessagesView(generics.ListCreateAPIView):
    """GET: paginated messages, oldest first. POST: send a message to the other participant."""

    serializer_class = ChatMessageSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = ChatMessagesPagination

    def get_queryset(self):
        chat = get_participant_chat(self.request, self.kwargs["chat_key"])
        return chat.messages.select_related("sender", "receiver").order_by("timestamp")

    def perform_create(self, serializer):
        chat = get_participant_chat(self.request, self.kwargs["chat_key"])
        data = serializer.validated_data
        msg = post_message(
            chat,
            self.request.user,
            data["message"],
            message_type=data.get("message_type", "text"),
            file_url=data.get("file_url", ""),
            file_name=data.get("file_name", ""),
        )
        serializer.instance = msg
        try:
            broadcast_chat_message(chat.key, message_payload(msg))
            notify_user(msg.receiver_id, {"event": "chat.updated", "chat_key": chat.key})
        except Exception:
            # REST delivery already succeeded; websocket fan-out is best effort
            logger.warning("Chat broadcast failed for %s", chat.key, exc_info=True)


class MarkChatReadView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, chat_key):
        chat = get_participant_chat(request, chat_key)
        updated = mark_chat_read(chat, request.user)
        if updated:
            try:
                broadcast_chat_read(chat.key, request.user.id)
            except Exception:
                logger.warning("Read receipt broadcast failed for %s", chat.key, exc_info=True)
        return Response({"updated": updated, "read": chat.read})
