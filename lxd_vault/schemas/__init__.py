"""Vault data schemas."""

from lxd_vault.schemas.image import ImageInfo, Query, VMImage
from lxd_vault.schemas.operation import Operation

__all__ = ["ImageInfo", "Operation", "Query", "VMImage"]
