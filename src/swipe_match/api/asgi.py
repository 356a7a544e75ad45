"""ASGI entrypoint for the swipe match API."""

from swipe_match.api.app import create_app
from swipe_match.containers import build_container

app = create_app(build_container())
