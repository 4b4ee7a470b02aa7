"""In-process store for development and tests."""

import asyncio
from typing import Dict, List, Optional

from forgebot.core.execution.models import WalletHandle
from forgebot.core.flow.errors import ExternalServiceError
from forgebot.core.flow.models import UserSettings
from forgebot.core.tokens import is_native

from .models import TransactionRecord


class InMemoryStore:
    def __init__(self, wallets: Optional[Dict[str, WalletHandle]] = None):
        self.wallets: Dict[str, WalletHandle] = dict(wallets or {})
        self.transactions: List[TransactionRecord] = []
        self.settings: Dict[str, UserSettings] = {}
        self._lock = asyncio.Lock()

    def add_wallet(self, user_id: str, wallet: WalletHandle) -> None:
        self.wallets[user_id] = wallet

    async def save_transaction(self, record: TransactionRecord) -> None:
        async with self._lock:
            if any(existing.hash == record.hash for existing in self.transactions):
                raise ExternalServiceError(f"transaction {record.hash} already recorded", provider="store")
            self.transactions.append(record)

    async def get_transactions_by_user(self, user_id: str) -> List[TransactionRecord]:
        return [record for record in self.transactions if record.user_id == user_id]

    async def get_unique_tokens_by_user(self, user_id: str) -> List[str]:
        """ERC-20 addresses from the user's swaps, first-seen order, native excluded."""
        seen: Dict[str, str] = {}
        for record in self.transactions:
            if record.user_id != user_id:
                continue
            for token in (record.token_in, record.token_out):
                if token and not is_native(token) and token.lower() not in seen:
                    seen[token.lower()] = token
        return list(seen.values())

    async def get_user_settings(self, user_id: str) -> Optional[UserSettings]:
        return self.settings.get(user_id)

    async def save_user_settings(self, user_id: str, user_settings: UserSettings) -> None:
        self.settings[user_id] = user_settings

    async def get_wallet(self, user_id: str) -> Optional[WalletHandle]:
        return self.wallets.get(user_id)
