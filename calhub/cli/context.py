"""Wiring of the store, expander, credentials and sync components for the CLI."""

from dataclasses import dataclass

from ..config.settings import CalHubSettings
from ..expansion.cache import ExpansionCache
from ..expansion.expander import RecurrenceExpander
from ..google.credentials import CredentialVault
from ..sources.google_source import GoogleSyncAdapter
from ..sources.ics_source import IcsSyncAdapter
from ..sources.orchestrator import SyncOrchestrator
from ..store.database import EventStore


@dataclass
class AppContext:
    """Components shared by every command."""

    settings: CalHubSettings
    store: EventStore
    cache: ExpansionCache
    expander: RecurrenceExpander
    vault: CredentialVault
    orchestrator: SyncOrchestrator


def create_context(settings: CalHubSettings) -> AppContext:
    """Build all components from settings. No I/O happens here."""
    store = EventStore(settings.database_file)
    cache = ExpansionCache(
        maxsize=settings.expansion_cache_size, ttl=settings.expansion_cache_ttl
    )
    vault = CredentialVault(store, settings)
    orchestrator = SyncOrchestrator(
        store,
        settings,
        google_adapter=GoogleSyncAdapter(store, settings, vault=vault),
        ics_adapter=IcsSyncAdapter(store, settings),
    )
    return AppContext(
        settings=settings,
        store=store,
        cache=cache,
        expander=RecurrenceExpander(store, cache),
        vault=vault,
        orchestrator=orchestrator,
    )
