from django.urls import path
from rest_framework.authtoken.views import obtain_auth_token
from .models import ListingKind
from .views import (
    RegisterView,
    MeView,
    BillboardListCreateView,
    BillboardDetailView,
    DigitalScreenListCreateView,
    DigitalScreenDetailView,
    JobListCreateView,
    JobDetailView,
    FeaturedStatusView,
    FeaturedListingsView,
    FeaturedPlanListView,
    FeatureTestView,
    MyAdsView,
    PhotoUploadView,
    CheckoutSessionView,
    StripeWebhookView,
    SavedAdListCreateView,
    SavedAdDetailView,
    ChatListView,
    StartChatView,
    ChatMessagesView,
    MarkChatReadView,
)

urlpatterns = [
    # Authentication
    path("auth/register/", RegisterView.as_view(), name="register"),
    path("auth/login/", obtain_auth_token, name="login"),
    path("auth/me/", MeView.as_view(), name="me"),
    # Listings
    path("billboards/", BillboardListCreateView.as_view(), name="billboard-list-create"),
    path("billboards/<uuid:pk>/", BillboardDetailView.as_view(), name="billboard-detail"),
    path(
        "billboards/<uuid:pk>/featured-status/",
        FeaturedStatusView.as_view(kind=ListingKind.BILLBOARD),
        name="billboard-featured-status",
    ),
    path("digital-screens/", DigitalScreenListCreateView.as_view(), name="digital-screen-list-create"),
    path("digital-screens/<uuid:pk>/", DigitalScreenDetailView.as_view(), name="digital-screen-detail"),
    path(
        "digital-screens/<uuid:pk>/featured-status/",
        FeaturedStatusView.as_view(kind=ListingKind.DIGITAL_SCREEN),
        name="digital-screen-featured-status",
    ),
    path("jobs/", JobListCreateView.as_view(), name="job-list-create"),
    path("jobs/<uuid:pk>/", JobDetailView.as_view(), name="job-detail"),
    path(
        "jobs/<uuid:pk>/featured-status/",
        FeaturedStatusView.as_view(kind=ListingKind.JOB),
        name="job-featured-status",
    ),
    path("my-ads/", MyAdsView.as_view(), name="my-ads"),
    path("photos/upload/", PhotoUploadView.as_view(), name="photo-upload"),
    # Featured promotion
    path("featured/", FeaturedListingsView.as_view(), name="featured-list"),
    path("featured/plans/", FeaturedPlanListView.as_view(), name="featured-plans"),
    path("featured/test/", FeatureTestView.as_view(), name="featured-test"),
    path("checkout/session/", CheckoutSessionView.as_view(), name="checkout-session"),
    path("stripe/webhook/", StripeWebhookView.as_view(), name="stripe-webhook"),
    # Saved ads
    path("saved-ads/", SavedAdListCreateView.as_view(), name="saved-ad-list-create"),
    path("saved-ads/<str:kind>/<uuid:pk>/", SavedAdDetailView.as_view(), name="saved-ad-detail"),
    # Chat
    path("chats/", ChatListView.as_view(), name="chat-list"),
    path("chats/start/", StartChatView.as_view(), name="chat-start"),
    path("chats/<str:chat_key>/messages/", ChatMessagesView.as_view(), name="chat-messages"),
    path("chats/<str:chat_key>/mark-read/", MarkChatReadView.as_view(), name="chat-mark-read"),
]
