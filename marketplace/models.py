import uuid

from django.db import models
from django.contrib.auth.models import User


class ListingKind(models.TextChoices):
    BILLBOARD = "billboard", "Billboard"
    DIGITAL_SCREEN = "digital_screen", "Digital Screen"
    JOB = "job", "Job"


class PaymentStatus(models.TextChoices):
    COMPLETED = "completed", "Completed"
    EXPIRED = "expired", "Expired"


class FeaturableListing(models.Model):
    """Fields shared by every listing kind, including the paid "featured" promotion state.

    ``featured`` is only meaningful while ``featured_until`` lies in the future;
    readers must go through ``is_featured_at`` rather than trusting the stored flag.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, related_name="%(class)ss", on_delete=models.CASCADE)
    title = models.CharField(max_length=255)
    city = models.CharField(max_length=120, db_index=True)
    description = models.TextField(blank=True)
    # Hosted image URLs (uploaded through /api/photos/upload/)
    photos = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    # Promotion state
    featured = models.BooleanField(default=False, db_index=True)
    featured_until = models.DateTimeField(null=True, blank=True)
    featured_at = models.DateTimeField(null=True, blank=True)
    featured_plan = models.CharField(max_length=80, null=True, blank=True)
    featured_price = models.PositiveIntegerField(null=True, blank=True, help_text="Minor currency units")
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, blank=True, default="")

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self):
        return self.title

    def is_featured_at(self, now):
        return bool(self.featured and self.featured_until and self.featured_until > now)


class AdSpace(FeaturableListing):
    address = models.CharField(max_length=255, blank=True)
    state = models.CharField(max_length=120, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    facilities = models.JSONField(default=list, blank=True)
    ad_type = models.CharField(max_length=80, blank=True)  # e.g. Standard Billboard, LED
    size = models.CharField(max_length=60, blank=True)
    width = models.CharField(max_length=30, blank=True)
    height = models.CharField(max_length=30, blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    class Meta(FeaturableListing.Meta):
        abstract = True


class Billboard(AdSpace):
    kind = ListingKind.BILLBOARD


class DigitalScreen(AdSpace):
    kind = ListingKind.DIGITAL_SCREEN


class Job(FeaturableListing):
    JOB_TYPES = [
        ("Full-time", "Full-time"),
        ("Part-time", "Part-time"),
        ("Contract", "Contract"),
        ("Freelance", "Freelance"),
        ("Internship", "Internship"),
        ("Remote", "Remote"),
        ("Hybrid", "Hybrid"),
        ("On-site", "On-site"),
    ]

    kind = ListingKind.JOB

    company_name = models.CharField(max_length=255)
    job_type = models.CharField(max_length=30, choices=JOB_TYPES, db_index=True)
    # Free text, e.g. "PKR 80,000 - 120,000"
    salary = models.CharField(max_length=120, blank=True)
    requirements = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)


class SavedAd(models.Model):
    """A user's bookmark of a listing, with a display snapshot taken at save time."""

    user = models.ForeignKey(User, related_name="saved_ads", on_delete=models.CASCADE)
    kind = models.CharField(max_length=20, choices=ListingKind.choices)
    object_id = models.UUIDField()
    title = models.CharField(max_length=255)
    city = models.CharField(max_length=120, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    photos = models.JSONField(default=list, blank=True)
    saved_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("user", "kind", "object_id")
        ordering = ["-saved_at"]

    def __str__(self):
        return f"Saved {self.kind}:{self.object_id} by {self.user_id}"


class Chat(models.Model):
    """Two-party conversation. ``key`` is both user ids sorted and joined by "_"."""

    key = models.CharField(max_length=64, unique=True)
    participants = models.ManyToManyField(User, related_name="chats")
    last_message = models.TextField(blank=True)
    last_timestamp = models.DateTimeField(null=True, blank=True, db_index=True)
    last_sender = models.ForeignKey(
        User, related_name="+", null=True, blank=True, on_delete=models.SET_NULL
    )
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Chat {self.key}"

    @staticmethod
    def key_for(user_id_1, user_id_2):
        return "_".join(sorted([str(user_id_1), str(user_id_2)]))

    def other_participant(self, user):
        return self.participants.exclude(pk=user.pk).first()


class ChatMessage(models.Model):
    TYPE_TEXT = "text"
    TYPE_IMAGE = "image"
    TYPE_FILE = "file"
    MESSAGE_TYPES = [
        (TYPE_TEXT, "Text"),
        (TYPE_IMAGE, "Image"),
        (TYPE_FILE, "File"),
    ]

    chat = models.ForeignKey(Chat, related_name="messages", on_delete=models.CASCADE)
    sender = models.ForeignKey(User, related_name="sent_chat_messages", on_delete=models.CASCADE)
    receiver = models.ForeignKey(User, related_name="received_chat_messages", on_delete=models.CASCADE)
    message = models.TextField()
    message_type = models.CharField(max_length=10, choices=MESSAGE_TYPES, default=TYPE_TEXT)
    file_url = models.URLField(max_length=500, blank=True)
    file_name = models.CharField(max_length=255, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["timestamp"]

    def __str__(self):
        return f"Message from {self.sender.username} at {self.timestamp}"
