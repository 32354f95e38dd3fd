"""CLI helpers for backend construction from global options."""

from __future__ import annotations

from proofkeeper.config import ProofkeeperConfig, config_from_env
from proofkeeper.registrations import RegistrationStore, open_registrations
from proofkeeper.storage import ObjectStorage, open_storage


def cli_config() -> ProofkeeperConfig:
    return config_from_env()


def open_cli_storage(config: ProofkeeperConfig) -> ObjectStorage:
    """Open object storage using the global --storage-uri selection."""
    from proofkeeper.cli import state

    return open_storage(state.storage_uri, config=config)


def open_cli_registrations(config: ProofkeeperConfig) -> RegistrationStore | None:
    """Open the registrations store, or None when --registrations-uri is unset."""
    from proofkeeper.cli import state

    if not state.registrations_uri:
        return None
    return open_registrations(state.registrations_uri, config=config)
