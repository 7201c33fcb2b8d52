"""Image hosts and query resolution."""

from __future__ import annotations

from typing import Iterable, Protocol

from lxd_vault.schemas.image import ImageInfo, Query


class ImageNotFoundError(Exception):
    """Raised when no image host can satisfy a query."""


class RemoteUnknownError(ImageNotFoundError):
    """Raised when a query names a remote no host serves."""


class AliasUnknownError(ImageNotFoundError):
    """Raised when no catalog has an image for the queried alias."""


class ImageHost(Protocol):
    def supported_remotes(self) -> list[str]:
        ...

    def info_for(self, query: Query) -> ImageInfo | None:
        ...

    def info_for_full_hash(self, full_hash: str) -> ImageInfo | None:
        ...


class ImageResolver:
    """Resolves queries against an ordered list of image hosts."""

    def __init__(self, hosts: Iterable[ImageHost]) -> None:
        self._hosts = list(hosts)
        self._remote_hosts: dict[str, ImageHost] = {}
        for host in self._hosts:
            for remote in host.supported_remotes():
                self._remote_hosts.setdefault(remote, host)

    def resolve(self, query: Query) -> ImageInfo:
        """Return the catalog entry for ``query`` or raise ImageNotFoundError."""

        if query.remote:
            host = self._remote_hosts.get(query.remote)
            if host is None:
                raise RemoteUnknownError(f'Remote "{query.remote}" is unknown.')
            info = host.info_for(query)
        else:
            info = None
            for host in self._hosts:
                info = host.info_for(query)
                if info is not None:
                    break

        if info is None:
            raise AliasUnknownError(f'Unable to find an image matching "{query.release}"')
        return info

    def info_for_full_hash(self, full_hash: str) -> ImageInfo | None:
        for host in self._hosts:
            info = host.info_for_full_hash(full_hash)
            if info is not None:
                return info
        return None
