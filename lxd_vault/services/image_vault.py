from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Protocol

from lxd_vault.schemas.image import ImageInfo, Query, VMImage
from lxd_vault.services.image_host import ImageHost, ImageResolver
from lxd_vault.services.lxd_request import LXDNotFoundError, LXDRequestClient
from lxd_vault.services.operations import OperationPoller, ProgressMonitor, parse_operation
from lxd_vault.utils.enums import FetchType, QueryType
from lxd_vault.utils.logging import trace

logger = logging.getLogger(__name__)

PrepareAction = Callable[[VMImage], VMImage]


class UnsupportedQueryTypeError(Exception):
    """Raised when a vault cannot service the type of a query."""


class VMImageVault(Protocol):
    """Operations every hypervisor backend's image vault provides."""

    def fetch_image(
        self, fetch_type: FetchType, query: Query, prepare: PrepareAction, monitor: ProgressMonitor
    ) -> VMImage:
        ...

    def remove(self, instance_name: str) -> None:
        ...

    def has_record_for(self, instance_name: str) -> bool:
        ...

    def prune_expired_images(self) -> None:
        ...

    def update_images(self, fetch_type: FetchType, prepare: PrepareAction, monitor: ProgressMonitor) -> None:
        ...

    def minimum_image_size_for(self, image_id: str) -> int:
        ...


class LXDImageVault(VMImageVault):
    """Image vault whose images and instances live in an LXD daemon."""

    def __init__(
        self,
        image_hosts: Iterable[ImageHost],
        client: LXDRequestClient,
        poller: OperationPoller | None = None,
    ) -> None:
        self._resolver = ImageResolver(image_hosts)
        self._client = client
        self._poller = poller or OperationPoller(client)

    def fetch_image(
        self, fetch_type: FetchType, query: Query, prepare: PrepareAction, monitor: ProgressMonitor
    ) -> VMImage:
        """Return the image for ``query``, downloading it into LXD if needed."""

        if query.query_type != QueryType.ALIAS:
            raise UnsupportedQueryTypeError("http and file based images are not supported")

        if query.instance_name:
            instance = self._instance_info(query.instance_name)
            if instance is not None:
                return self._image_for_instance(instance)

        info = self._resolver.resolve(query)

        if self._image_exists(info.id):
            return prepare(_image_from_info(info))

        return prepare(self._download_image(info, monitor))

    def remove(self, instance_name: str) -> None:
        """Delete the named instance, tolerating one that does not exist."""

        try:
            self._client.request("DELETE", self._client.url_for("virtual-machines", instance_name))
        except LXDNotFoundError:
            logger.warning("Instance '%s' does not exist: not removing", instance_name)

    def has_record_for(self, instance_name: str) -> bool:
        return self._instance_info(instance_name) is not None

    def prune_expired_images(self) -> None:
        trace(logger, "Pruning expired images not implemented")

    def update_images(self, fetch_type: FetchType, prepare: PrepareAction, monitor: ProgressMonitor) -> None:
        trace(logger, "Updating images not implemented")

    def minimum_image_size_for(self, image_id: str) -> int:
        """Return the size in bytes LXD reports for a stored image."""

        reply = self._client.request("GET", self._client.url_for("images", image_id))
        return int((reply.get("metadata") or {}).get("size", 0))

    def _instance_info(self, instance_name: str) -> dict[str, Any] | None:
        try:
            return self._client.request("GET", self._client.url_for("virtual-machines", instance_name))
        except LXDNotFoundError:
            return None

    def _image_exists(self, image_id: str) -> bool:
        try:
            self._client.request("GET", self._client.url_for("images", image_id))
        except LXDNotFoundError:
            return False
        return True

    def _image_for_instance(self, instance: dict[str, Any]) -> VMImage:
        config = (instance.get("metadata") or {}).get("config") or {}
        base_image = config.get("volatile.base_image", "")

        info = self._resolver.info_for_full_hash(base_image) if base_image else None
        if info is not None:
            return _image_from_info(info)

        return VMImage(
            id=base_image,
            original_release=config.get("image.description", ""),
            release_date=config.get("image.serial", ""),
        )

    def _download_image(self, info: ImageInfo, monitor: ProgressMonitor) -> VMImage:
        payload = {
            "source": {
                "type": "image",
                "mode": "pull",
                "server": info.server,
                "protocol": "simplestreams",
                "image_type": "virtual-machine",
                "fingerprint": info.id,
            },
            "properties": {
                key: value
                for key, value in {
                    "os": info.os,
                    "release": info.release,
                    "release_title": info.release_title,
                    "version": info.version,
                }.items()
                if value
            },
        }

        reply = self._client.request("POST", self._client.url_for("images"), json_data=payload)
        operation_id = parse_operation(reply).id
        logger.info("Downloading image %s (operation %s)", info.id, operation_id)

        operation = self._poller.wait_for_operation(operation_id, monitor)

        # LXD reports only fingerprint and size for a finished download.
        image = _image_from_info(info)
        fingerprint = operation.metadata.get("fingerprint")
        if fingerprint and fingerprint != image.id:
            image = image.model_copy(update={"id": fingerprint})
        return image


def _image_from_info(info: ImageInfo) -> VMImage:
    return VMImage(
        id=info.id,
        stream_location=info.stream_location,
        original_release=info.release_title,
        release_date=info.version,
        aliases=list(info.aliases),
    )
