"""Tests for container wiring."""

import asyncio

from collab_sessions.adapters.control_plane_client import HttpxControlPlaneClient
from collab_sessions.config import Settings
from collab_sessions.containers import build_container


def test_build_container_without_control_plane(settings: Settings) -> None:
    container = build_container(settings)

    assert container.gateway is not None
    assert container.gateway.control_plane_client is None
    asyncio.run(container.close_resources())


def test_build_container_with_control_plane(settings: Settings) -> None:
    settings.control_plane_url = " https://control.test/ "
    settings.control_plane_timeout_seconds = 5.0

    container = build_container(settings)

    client = container.gateway.control_plane_client
    assert isinstance(client, HttpxControlPlaneClient)
    assert client.base_url == "https://control.test"
    assert client.timeout == 5.0
    asyncio.run(container.close_resources())
