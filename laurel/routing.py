import os

from channels.auth import AuthMiddlewareStack
from channels.routing import ProtocolTypeRouter, URLRouter
from django.core.asgi import get_asgi_application
from django.urls import path

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "laurel.settings_template")
django_asgi_app = get_asgi_application()

# Consumers import models, so the app registry has to be ready first
from importer.consumers import ImportProgressConsumer  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AuthMiddlewareStack(
            URLRouter(
                [path("ws/imports/progress/", ImportProgressConsumer.as_asgi())]
            )
        ),
    }
)
