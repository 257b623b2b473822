"""Dependency injection singletons for Keylock."""

from keylock.common.config import KeylockSettings, get_settings
from keylock.common.security import SignedTokenAuthenticator
from keylock.distribution.registry import VersionRegistry
from keylock.licensing.binding import BindingManager
from keylock.licensing.service import LicensingService
from keylock.storage.base import LicenseStore

_store: LicenseStore | None = None
_registry: VersionRegistry | None = None
_binding: BindingManager | None = None
_licensing: LicensingService | None = None
_authenticator: SignedTokenAuthenticator | None = None


def build_store(settings: KeylockSettings) -> LicenseStore:
    """Instantiate the storage backend named by ``settings.storage_backend``."""
    if settings.storage_backend == "memory":
        from keylock.storage.memory import MemoryLicenseStore
        return MemoryLicenseStore()
    if settings.storage_backend == "sql":
        from keylock.common.database import DatabaseManager
        from keylock.storage.sql import SqlLicenseStore
        return SqlLicenseStore(DatabaseManager(settings))
    from keylock.storage.json_file import JsonFileLicenseStore
    return JsonFileLicenseStore(settings.data_file)


def get_store() -> LicenseStore:
    global _store
    if _store is None:
        _store = build_store(get_settings())
    return _store


def get_registry() -> VersionRegistry:
    global _registry
    if _registry is None:
        _registry = VersionRegistry(get_store())
    return _registry


def get_binding_manager() -> BindingManager:
    global _binding
    if _binding is None:
        _binding = BindingManager(get_store(), get_registry())
    return _binding


def get_licensing_service() -> LicensingService:
    global _licensing
    if _licensing is None:
        _licensing = LicensingService(
            get_settings(), get_binding_manager(), get_registry()
        )
    return _licensing


def get_authenticator() -> SignedTokenAuthenticator:
    global _authenticator
    if _authenticator is None:
        settings = get_settings()
        _authenticator = SignedTokenAuthenticator(
            settings.secret_key,
            settings.admin_username,
            settings.admin_password,
            max_age=settings.admin_token_max_age,
        )
    return _authenticator


async def initialize_store() -> LicenseStore:
    """Run the store's one-time load_or_initialize step with configured defaults."""
    from keylock.licensing.records import DistributionMeta

    settings = get_settings()
    store = get_store()
    await store.load_or_initialize(DistributionMeta(
        current_version=settings.default_version,
        update_message=settings.default_update_message,
    ))
    return store


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _store, _registry, _binding, _licensing, _authenticator
    _store = None
    _registry = None
    _binding = None
    _licensing = None
    _authenticator = None
