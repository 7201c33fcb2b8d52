from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable

from lxd_vault.core.config import get_settings
from lxd_vault.schemas.operation import Operation
from lxd_vault.services.lxd_request import LXDRequestClient, LXDRequestError
from lxd_vault.utils.enums import OperationStatus, ProgressStage

logger = logging.getLogger(__name__)

settings = get_settings()

ProgressMonitor = Callable[[ProgressStage, int], bool]

INDETERMINATE_PROGRESS = -1

_STATUS_CODES = {
    100: OperationStatus.CREATED,
    101: OperationStatus.RUNNING,
    103: OperationStatus.RUNNING,
    105: OperationStatus.RUNNING,
    106: OperationStatus.RUNNING,
    200: OperationStatus.SUCCESS,
    400: OperationStatus.FAILURE,
    401: OperationStatus.CANCELLED,
}

_percent_re = re.compile(r"(\d+)%")


class OperationFailedError(Exception):
    """Raised when the daemon reports that an operation failed."""


class AbortedDownloadError(Exception):
    """Raised when a progress monitor asked to stop a download."""


class OperationPoller:
    """Polls an LXD operation until it reaches a terminal state."""

    def __init__(
        self,
        client: LXDRequestClient,
        poll_timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> None:
        self._client = client
        self.poll_timeout = poll_timeout if poll_timeout is not None else settings.operation_poll_timeout
        self.poll_interval = poll_interval if poll_interval is not None else settings.operation_poll_interval

    def wait_for_operation(self, operation_id: str, monitor: ProgressMonitor) -> Operation:
        """Block until the operation succeeds, fails or the monitor aborts it."""

        url = self._client.url_for("operations", operation_id)
        while True:
            reply = self._client.request("GET", url, timeout=self.poll_timeout)
            operation = parse_operation(reply)

            percent = operation.progress if operation.progress is not None else INDETERMINATE_PROGRESS
            if not monitor(ProgressStage.IMAGE, percent):
                self._cancel(operation_id, url)
                raise AbortedDownloadError("Aborted download")

            if operation.status == OperationStatus.SUCCESS:
                return operation

            if operation.status.is_terminal:
                detail = operation.err or f"operation {operation_id} {operation.status.value.lower()}"
                raise OperationFailedError(detail)

            if self.poll_interval > 0:
                time.sleep(self.poll_interval)

    def _cancel(self, operation_id: str, url: str) -> None:
        try:
            self._client.request("DELETE", url)
        except LXDRequestError as exc:
            logger.warning("Failed to cancel operation %s: %s", operation_id, exc)


def parse_operation(reply: dict[str, Any]) -> Operation:
    """Build an Operation from an LXD operation reply envelope."""

    meta = reply.get("metadata") or {}
    result = meta.get("metadata") or {}
    status_code = meta.get("status_code")

    return Operation(
        id=meta.get("id") or _id_from_path(reply.get("operation", "")),
        status=_parse_status(meta.get("status"), status_code),
        status_code=status_code,
        progress=parse_download_progress(result.get("download_progress")),
        err=meta.get("err") or "",
        metadata=result,
    )


def parse_download_progress(value: str | None) -> int | None:
    """Return the percent of a ``"<stage>: <n>% (<rate>)"`` string.

    The metadata stage carries no meaningful byte progress and yields None.
    """

    if not value:
        return None
    stage, _, rest = value.partition(":")
    if stage.strip() == "metadata":
        return None
    match = _percent_re.search(rest)
    if not match:
        return None
    return int(match.group(1))


def _parse_status(status: str | None, status_code: int | None) -> OperationStatus:
    if status:
        try:
            return OperationStatus(status)
        except ValueError:
            pass
    return _STATUS_CODES.get(status_code, OperationStatus.RUNNING)


def _id_from_path(path: str) -> str:
    return path.rstrip("/").rpartition("/")[2]
