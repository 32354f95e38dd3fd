"""proofkeeper: payment proof resolution and receipt bucket reconciliation."""

__version__ = "0.3.0"

from proofkeeper.config import ProofkeeperConfig, config_from_env
from proofkeeper.errors import (
    MigrationError,
    ProofkeeperError,
    RegistrationUpdateError,
    StorageBackendError,
    UnsupportedStorageError,
    ValidationError,
)
from proofkeeper.migration import BucketMigrator, FileError, FileState, MigrationReport
from proofkeeper.registrations import (
    RegistrationStore,
    SqliteRegistrationStore,
    open_registrations,
)
from proofkeeper.resolver import ProofResolver, resolve_latest_proof_url
from proofkeeper.storage import (
    MemoryStorage,
    ObjectStorage,
    ResolvedFile,
    StoredFile,
    open_storage,
)

__all__ = [
    "__version__",
    "ProofkeeperConfig",
    "config_from_env",
    "ProofkeeperError",
    "StorageBackendError",
    "UnsupportedStorageError",
    "RegistrationUpdateError",
    "MigrationError",
    "ValidationError",
    "ObjectStorage",
    "StoredFile",
    "ResolvedFile",
    "MemoryStorage",
    "open_storage",
    "RegistrationStore",
    "SqliteRegistrationStore",
    "open_registrations",
    "ProofResolver",
    "resolve_latest_proof_url",
    "BucketMigrator",
    "MigrationReport",
    "FileError",
    "FileState",
]
