from rest_framework import serializers
from django.contrib.auth.models import User
from .models import (
    Billboard,
    DigitalScreen,
    Job,
    SavedAd,
    Chat,
    ChatMessage,
    ListingKind,
)
from .plans import price_display, duration_display


# Serializer for User Registration
class UserSerializer(serializers.ModelSerializer):
    email = serializers.EmailField(required=False, allow_blank=True)

    class Meta:
        model = User
        fields = ["id", "username", "password", "email"]
        extra_kwargs = {"password": {"write_only": True}, "email": {"required": False}}

    def create(self, validated_data):
        password = validated_data.pop("password")
        user = User.objects.create_user(password=password, **validated_data)
        return user

    def update(self, instance, validated_data):
        password = validated_data.pop("password", None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance


FEATURED_FIELDS = [
    "featured",
    "featured_until",
    "featured_at",
    "featured_plan",
    "featured_price",
    "payment_status",
]


class ListingSerializer(serializers.ModelSerializer):
    """Base for every listing kind. Promotion fields are only ever written by the featured service."""

    user = serializers.ReadOnlyField(source="user.username")
    user_id = serializers.ReadOnlyField(source="user.id")
    kind = serializers.SerializerMethodField()
    # Set by rank_with_featured; absent on plain querysets
    featured_position = serializers.SerializerMethodField()
    photos = serializers.ListField(child=serializers.URLField(), required=False)

    common_fields = [
        "id",
        "kind",
        "title",
        "city",
        "description",
        "photos",
        "user",
        "user_id",
        "created_at",
        "updated_at",
        *FEATURED_FIELDS,
        "featured_position",
    ]

    def get_kind(self, obj):
        return str(obj.kind)

    def get_featured_position(self, obj):
        return bool(getattr(obj, "featured_position", False))


class AdSpaceSerializer(ListingSerializer):
    facilities = serializers.ListField(child=serializers.CharField(max_length=80), required=False)

    ad_space_fields = ListingSerializer.common_fields + [
        "address",
        "state",
        "price",
        "facilities",
        "ad_type",
        "size",
        "width",
        "height",
        "latitude",
        "longitude",
    ]


class BillboardSerializer(AdSpaceSerializer):
    class Meta:
        model = Billboard
        fields = AdSpaceSerializer.ad_space_fields
        read_only_fields = ["user", "created_at", "updated_at", *FEATURED_FIELDS]


class DigitalScreenSerializer(AdSpaceSerializer):
    class Meta:
        model = DigitalScreen
        fields = AdSpaceSerializer.ad_space_fields
        read_only_fields = ["user", "created_at", "updated_at", *FEATURED_FIELDS]


class JobSerializer(ListingSerializer):
    class Meta:
        model = Job
        fields = ListingSerializer.common_fields + [
            "company_name",
            "job_type",
            "salary",
            "requirements",
            "is_active",
            "latitude",
            "longitude",
        ]
        read_only_fields = ["user", "created_at", "updated_at", *FEATURED_FIELDS]


SERIALIZERS_BY_KIND = {
    ListingKind.BILLBOARD: BillboardSerializer,
    ListingKind.DIGITAL_SCREEN: DigitalScreenSerializer,
    ListingKind.JOB: JobSerializer,
}


def serialize_listing(listing, context=None):
    return SERIALIZERS_BY_KIND[listing.kind](listing, context=context or {}).data


class FeaturedPlanSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    duration_days = serializers.IntegerField()
    price = serializers.IntegerField()
    popular = serializers.BooleanField()
    price_display = serializers.SerializerMethodField()
    duration_display = serializers.SerializerMethodField()

    def get_price_display(self, obj):
        return price_display(obj.id)

    def get_duration_display(self, obj):
        return duration_display(obj.id)


class CheckoutRequestSerializer(serializers.Serializer):
    planId = serializers.CharField()
    contentId = serializers.CharField()
    contentType = serializers.ChoiceField(choices=["billboard", "digital_screen", "job"])
    title = serializers.CharField(required=False, allow_blank=True)


class SavedAdSerializer(serializers.ModelSerializer):
    class Meta:
        model = SavedAd
        fields = ["id", "kind", "object_id", "title", "city", "price", "photos", "saved_at"]
        read_only_fields = fields


class ChatMessageSerializer(serializers.ModelSerializer):
    sender = serializers.ReadOnlyField(source="sender.username")
    sender_id = serializers.ReadOnlyField(source="sender.id")
    receiver_id = serializers.ReadOnlyField(source="receiver.id")

    class Meta:
        model = ChatMessage
        fields = [
            "id",
            "sender",
            "sender_id",
            "receiver_id",
            "message",
            "message_type",
            "file_url",
            "file_name",
            "timestamp",
        ]
        read_only_fields = ["timestamp"]

    def validate(self, attrs):
        if attrs.get("message_type", ChatMessage.TYPE_TEXT) != ChatMessage.TYPE_TEXT and not attrs.get("file_url"):
            raise serializers.ValidationError({"file_url": "Required for image and file messages."})
        return attrs


class ChatSerializer(serializers.ModelSerializer):
    participants = serializers.StringRelatedField(many=True)
    other_user = serializers.SerializerMethodField()
    last_sender_id = serializers.ReadOnlyField(source="last_sender.id")

    class Meta:
        model = Chat
        fields = [
            "id",
            "key",
            "participants",
            "other_user",
            "last_message",
            "last_timestamp",
            "last_sender_id",
            "read",
            "created_at",
        ]

    def get_other_user(self, obj):
        request = self.context.get("request")
        if not request or not request.user.is_authenticated:
            return None
        other = obj.other_participant(request.user)
        if other is None:
            return None
        return {"id": other.id, "username": other.username}
