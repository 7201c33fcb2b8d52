from __future__ import annotations

from lxd_vault.core.client import create_catalog_client, create_lxd_client
from lxd_vault.core.config import Settings, get_settings
from lxd_vault.services.image_vault import LXDImageVault
from lxd_vault.services.lxd_request import LXDRequestClient
from lxd_vault.services.operations import OperationPoller
from lxd_vault.services.simplestream import SimpleStreamsImageHost


def build_image_vault(settings: Settings | None = None) -> LXDImageVault:
    """Wire an LXD image vault from settings."""

    settings = settings or get_settings()

    client = LXDRequestClient(
        create_lxd_client(settings),
        base_url=settings.lxd_base_url,
        timeout=settings.lxd_request_timeout,
    )
    host = SimpleStreamsImageHost(
        settings.remotes,
        create_catalog_client(settings),
        arch=settings.image_arch,
        default_remote=settings.default_image_remote,
    )
    poller = OperationPoller(
        client,
        poll_timeout=settings.operation_poll_timeout,
        poll_interval=settings.operation_poll_interval,
    )
    return LXDImageVault([host], client, poller=poller)
