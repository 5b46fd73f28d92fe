from django.db.models import Q
from django_filters import rest_framework as filters
from .models import Billboard, DigitalScreen, Job


class ListingFilterMixin(filters.FilterSet):
    # Exact city match, case-insensitive (?city=Lahore)
    city = filters.CharFilter(field_name="city", lookup_expr="iexact")
    search = filters.CharFilter(method="filter_by_search_text")

    def filter_by_search_text(self, queryset, name, value):
        return queryset.filter(
            Q(title__icontains=value) | Q(description__icontains=value)
        )


class AdSpaceFilter(ListingFilterMixin):
    min_price = filters.NumberFilter(field_name="price", lookup_expr="gte")
    max_price = filters.NumberFilter(field_name="price", lookup_expr="lte")
    ad_type = filters.CharFilter(field_name="ad_type", lookup_expr="iexact")


class BillboardFilter(AdSpaceFilter):
    class Meta:
        model = Billboard
        fields = ["city", "ad_type"]


class DigitalScreenFilter(AdSpaceFilter):
    class Meta:
        model = DigitalScreen
        fields = ["city", "ad_type"]


class JobFilter(ListingFilterMixin):
    job_type = filters.CharFilter(field_name="job_type", lookup_expr="iexact")

    class Meta:
        model = Job
        fields = ["city", "job_type", "is_active"]
