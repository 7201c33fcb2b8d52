import httpx

from lxd_vault.core.config import Settings, get_settings


def create_lxd_client(settings: Settings | None = None) -> httpx.Client:
    """Return an HTTP client bound to the LXD unix socket."""

    settings = settings or get_settings()
    transport = httpx.HTTPTransport(uds=str(settings.socket_path))
    return httpx.Client(
        transport=transport,
        timeout=settings.lxd_request_timeout,
        headers={"User-Agent": settings.user_agent},
    )


def create_catalog_client(settings: Settings | None = None) -> httpx.Client:
    """Return an HTTP client for fetching remote image catalogs."""

    settings = settings or get_settings()
    return httpx.Client(
        timeout=settings.upstream_request_timeout,
        headers={"User-Agent": settings.user_agent},
        follow_redirects=True,
    )
