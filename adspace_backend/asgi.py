"""
ASGI config for adspace_backend project.

HTTP goes to Django, websockets to the chat consumers in ``marketplace.routing``.
"""

import os

# Configure settings before importing Django/Channels components
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'adspace_backend.settings')

from django.core.asgi import get_asgi_application
from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator

# Initialize Django first so app registry is ready before importing modules that access models
django_asgi_app = get_asgi_application()

from marketplace.middleware import TokenAuthMiddlewareStack  # noqa: E402
import marketplace.routing  # noqa: E402

application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AllowedHostsOriginValidator(
        TokenAuthMiddlewareStack(
            URLRouter(
                marketplace.routing.websocket_urlpatterns
            )
        )
    ),
})
