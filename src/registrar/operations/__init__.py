"""Registration operations, one per registration surface."""

from .assembly_folders import AssemblyFoldersOperation
from .base import (
    INVARIANT_NAME,
    PROJECT_NAME,
    OperationAborted,
    RegistrationOperation,
    StoreWriter,
    VsPackageInfo,
    format_id,
)
from .ide_data_provider import IdeDataProviderOperation
from .ide_data_source import IdeDataSourceOperation
from .ide_package import IdePackageOperation
from .ide_setup import IdeSetupOperation
from .provider_factory import ProviderFactoryOperation
from .shared_cache import SharedCachePublisher

__all__ = [
    "RegistrationOperation",
    "StoreWriter",
    "OperationAborted",
    "VsPackageInfo",
    "format_id",
    "PROJECT_NAME",
    "INVARIANT_NAME",
    "AssemblyFoldersOperation",
    "ProviderFactoryOperation",
    "IdePackageOperation",
    "IdeDataSourceOperation",
    "IdeDataProviderOperation",
    "IdeSetupOperation",
    "SharedCachePublisher",
]
