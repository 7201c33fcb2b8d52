from typing import Any

from pydantic import BaseModel

from lxd_vault.utils.enums import OperationStatus


class Operation(BaseModel):
    """Snapshot of a daemon-side asynchronous operation."""

    id: str
    status: OperationStatus
    status_code: int | None = None
    progress: int | None = None
    err: str = ""
    metadata: dict[str, Any] = {}
