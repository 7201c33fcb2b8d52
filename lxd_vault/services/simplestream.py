from __future__ import annotations

import logging
from typing import Any, Mapping
from urllib.parse import urljoin

import httpx

from lxd_vault.core.config import get_settings
from lxd_vault.schemas.image import ImageInfo, Query

logger = logging.getLogger(__name__)

settings = get_settings()

INDEX_PATH = "streams/v1/index.json"
DISK_ITEMS = ("disk-kvm.img", "disk1.img", "uefi1.img")
LXD_ITEM = "lxd.tar.xz"


class SimpleStreamsError(Exception):
    """Raised when a simplestreams catalog cannot be read."""


class SimpleStreamsImageHost:
    """Image host backed by one simplestreams catalog per remote."""

    def __init__(
        self,
        remotes: Mapping[str, str],
        client: httpx.Client,
        arch: str | None = None,
        default_remote: str | None = None,
    ) -> None:
        self._remotes = {name: _as_root(url) for name, url in remotes.items()}
        self._client = client
        self.arch = arch or settings.image_arch
        self.default_remote = default_remote or settings.default_image_remote
        self._manifests: dict[str, list[ImageInfo]] = {}

    def supported_remotes(self) -> list[str]:
        return list(self._remotes)

    def info_for(self, query: Query) -> ImageInfo | None:
        """Return the newest image whose aliases include ``query.release``."""

        remote = query.remote or self.default_remote
        if remote not in self._remotes:
            return None
        for info in self._manifest(remote):
            if query.release in info.aliases:
                return info
        return None

    def info_for_full_hash(self, full_hash: str) -> ImageInfo | None:
        for remote in self._remotes:
            for info in self._manifest(remote):
                if info.id == full_hash:
                    return info
        return None

    def _manifest(self, remote: str) -> list[ImageInfo]:
        if remote in self._manifests:
            return self._manifests[remote]

        root = self._remotes[remote]
        index_url = urljoin(root, INDEX_PATH)
        streams = _ensure_stream_structure(self._fetch_json(index_url))

        infos: list[ImageInfo] = []
        for stream_id, entry in streams.items():
            if entry.get("datatype") != "image-downloads":
                continue
            product_path = entry.get("path")
            if not product_path:
                raise SimpleStreamsError(f"Stream '{stream_id}' is missing a product path")

            payload = self._fetch_json(urljoin(root, product_path))
            for _, meta in sorted(payload.get("products", {}).items()):
                info = _product_info(meta, root, self.arch)
                if info is not None:
                    infos.append(info)

        logger.debug("Loaded %d images for remote %s", len(infos), remote)
        self._manifests[remote] = infos
        return infos

    def _fetch_json(self, url: str) -> dict[str, Any]:
        try:
            response = self._client.get(url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SimpleStreamsError(f"Failed to fetch '{url}': {exc}") from exc
        if not isinstance(payload, dict):
            raise SimpleStreamsError(f"Invalid simplestream document at '{url}'")
        return payload


def _ensure_stream_structure(index: dict[str, Any]) -> dict[str, Any]:
    if "index" not in index:
        raise SimpleStreamsError("Invalid simplestream index: missing 'index' key")
    return index["index"]


def _product_info(meta: dict[str, Any], root: str, arch: str) -> ImageInfo | None:
    if meta.get("arch") != arch:
        return None

    latest = _latest_version(meta.get("versions", {}))
    if latest is None:
        return None
    version_key, version_data = latest

    items = version_data.get("items", {})
    disk = next((items[name] for name in DISK_ITEMS if name in items), None)
    if disk is None:
        return None

    image_id = items.get(LXD_ITEM, {}).get("combined_disk-kvm-img_sha256") or disk.get("sha256")
    if not image_id:
        return None

    return ImageInfo(
        id=image_id,
        aliases=_aliases(meta),
        os=meta.get("os"),
        release=meta.get("release"),
        release_title=meta.get("release_title") or meta.get("release") or "",
        version=version_key,
        stream_location=disk.get("path", ""),
        server=root,
        size=disk.get("size"),
        supported=bool(meta.get("supported", True)),
    )


def _aliases(meta: dict[str, Any]) -> list[str]:
    aliases = [alias.strip() for alias in meta.get("aliases", "").split(",") if alias.strip()]
    for extra in (meta.get("release"), meta.get("version")):
        if extra and extra not in aliases:
            aliases.append(extra)
    return aliases


def _latest_version(versions: dict[str, Any]) -> tuple[str, dict[str, Any]] | None:
    if not versions:
        return None
    latest_key = max(versions.keys())
    return latest_key, versions[latest_key]


def _as_root(url: str) -> str:
    return url if url.endswith("/") else f"{url}/"
