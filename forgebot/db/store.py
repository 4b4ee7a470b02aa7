"""Persistence interface used by the flows, and backend selection."""

from typing import List, Optional, Protocol

from forgebot.config import settings
from forgebot.core.execution.models import WalletHandle
from forgebot.core.flow.models import UserSettings

from .models import TransactionRecord


class Store(Protocol):
    async def save_transaction(self, record: TransactionRecord) -> None: ...

    async def get_unique_tokens_by_user(self, user_id: str) -> List[str]: ...

    async def get_transactions_by_user(self, user_id: str) -> List[TransactionRecord]: ...

    async def get_user_settings(self, user_id: str) -> Optional[UserSettings]: ...

    async def save_user_settings(self, user_id: str, user_settings: UserSettings) -> None: ...

    async def get_wallet(self, user_id: str) -> Optional[WalletHandle]: ...


_store: Optional[Store] = None


def get_store() -> Store:
    """Get the configured store singleton (``STORE_BACKEND``: memory or convex)."""
    global _store
    if _store is None:
        if settings.uses_convex:
            from .convex_store import ConvexStore

            _store = ConvexStore()
        else:
            from .memory_store import InMemoryStore

            _store = InMemoryStore()
    return _store
