from django.contrib import admin
from .models import Billboard, DigitalScreen, Job, SavedAd, Chat, ChatMessage


class FeaturableListingAdmin(admin.ModelAdmin):
    list_display = ["title", "city", "user", "featured", "featured_until", "payment_status", "created_at"]
    list_filter = ["featured", "payment_status", "city"]
    search_fields = ["title", "description", "city"]
    readonly_fields = ["featured_at", "featured_plan", "featured_price"]


admin.site.register(Billboard, FeaturableListingAdmin)
admin.site.register(DigitalScreen, FeaturableListingAdmin)
admin.site.register(Job, FeaturableListingAdmin)
admin.site.register(SavedAd)
admin.site.register(Chat)
admin.site.register(ChatMessage)
