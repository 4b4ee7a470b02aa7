"""
Capabilities injected into the flow engine, and the per-turn handler context.
"""

from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional, Protocol, Type, TypeVar

from forgebot.core.execution.gateway import ExecutorGateway
from forgebot.core.execution.models import GasParams, WalletHandle
from forgebot.core.recovery import RetryConfig, retry_read
from forgebot.core.swap.allowance import AllowanceReader
from forgebot.core.swap.models import Quote, SwapTransaction
from forgebot.core.tokens import TokenInfo
from forgebot.db.store import Store

from .errors import SessionExpired
from .models import FlowState, Session, Turn

T = TypeVar("T")
S = TypeVar("S", bound=FlowState)


class WalletProvider(Protocol):
    async def get_wallet(self, user_id: str) -> Optional[WalletHandle]: ...


class ChainReader(AllowanceReader, Protocol):
    async def get_native_balance(self, address: str) -> int: ...

    async def get_token_balance(self, token: str, owner: str) -> int: ...

    async def get_token_info(self, token: str) -> TokenInfo: ...


class QuoteProvider(Protocol):
    async def quote(
        self, token_in: str, token_out: str, amount: str, gas_price_gwei: Optional[str] = None
    ) -> Quote: ...

    async def swap(
        self,
        token_in: str,
        token_out: str,
        amount: str,
        gas_price_gwei: str,
        slippage: str,
        account: str,
    ) -> SwapTransaction: ...


class GasProvider(Protocol):
    async def gas_params(self, priority: str = "medium") -> GasParams: ...


@dataclass
class FlowServices:
    """Everything a flow handler may touch outside the session."""

    wallets: WalletProvider
    chain: ChainReader
    quotes: QuoteProvider
    gas: GasProvider
    executor: ExecutorGateway
    store: Store
    retry: Optional[RetryConfig] = None

    async def read(self, name: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Idempotent read with bounded retry."""
        return await retry_read(operation, name=name, config=self.retry)


@dataclass
class TurnContext:
    services: FlowServices
    session: Session
    turn: Turn

    @property
    def user_id(self) -> str:
        return self.session.user_id

    @property
    def value(self) -> str:
        return self.turn.value.strip()

    def with_session(self, session: Session) -> "TurnContext":
        return replace(self, session=session)

    def flow_as(self, state_type: Type[S]) -> S:
        """The current flow state, which must be of ``state_type``."""
        if not isinstance(self.session.flow, state_type):
            raise SessionExpired(
                f"{self.session.current_action} expects {state_type.__name__}, "
                f"got {type(self.session.flow).__name__}"
            )
        return self.session.flow

    async def require_wallet(self, expected_address: Optional[str] = None) -> WalletHandle:
        """The user's wallet; it must still be the one the flow started with."""
        wallet = await self.services.wallets.get_wallet(self.user_id)
        if wallet is None:
            raise SessionExpired(
                f"no wallet for {self.user_id}",
                user_message="❌ Wallet not found. Please create or import a wallet first.",
            )
        if expected_address and wallet.address.lower() != expected_address.lower():
            raise SessionExpired(f"wallet changed during flow for {self.user_id}")
        return wallet
