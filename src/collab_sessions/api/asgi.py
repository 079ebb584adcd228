"""ASGI entrypoint for the collaborative sessions API."""

from collab_sessions.api.app import create_app
from collab_sessions.containers import build_container

app = create_app(build_container())
