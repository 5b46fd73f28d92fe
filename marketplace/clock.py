from django.utils import timezone


def now():
    """Default time source for expiry checks. Services accept any zero-arg callable in its place."""
    return timezone.now()


def resolve(clock=None):
    return (clock or now)()
