from pydantic import BaseModel, ConfigDict

from lxd_vault.utils.enums import QueryType


class Query(BaseModel):
    """Request for an image, optionally on behalf of a named instance."""

    instance_name: str = ""
    release: str
    persistent: bool = False
    remote: str = ""
    query_type: QueryType = QueryType.ALIAS

    model_config = ConfigDict(frozen=True)


class ImageInfo(BaseModel):
    """Catalog entry an image host resolved a query to."""

    id: str
    aliases: list[str] = []
    os: str | None = None
    release: str | None = None
    release_title: str = ""
    version: str = ""
    stream_location: str = ""
    server: str = ""
    size: int | None = None
    supported: bool = True


class VMImage(BaseModel):
    """Image materialized by a vault."""

    id: str
    stream_location: str = ""
    original_release: str = ""
    release_date: str = ""
    aliases: list[str] = []

    model_config = ConfigDict(frozen=True)
