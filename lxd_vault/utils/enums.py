from enum import Enum


class QueryType(str, Enum):
    """Ways a caller can identify the image it wants."""

    ALIAS = "alias"
    HTTP_DOWNLOAD = "http_download"
    LOCAL_FILE = "local_file"


class FetchType(str, Enum):
    """What a vault should materialize for an image."""

    IMAGE_ONLY = "image_only"
    IMAGE_KERNEL_AND_INITRD = "image_kernel_and_initrd"


class OperationStatus(str, Enum):
    """Lifecycle states of a daemon-side operation."""

    CREATED = "Created"
    RUNNING = "Running"
    SUCCESS = "Success"
    FAILURE = "Failure"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.SUCCESS, OperationStatus.FAILURE, OperationStatus.CANCELLED)


class ProgressStage(str, Enum):
    """Stage labels reported to progress monitors."""

    IMAGE = "image"
