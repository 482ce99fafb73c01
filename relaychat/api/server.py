"""ASGI entrypoint that delegates to create_app()."""

from relaychat.api.app import create_app

app = create_app()
