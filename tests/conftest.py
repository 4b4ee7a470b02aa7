"""
Shared fixtures: in-memory fakes for every collaborator the flows touch.

Nothing here opens a socket; providers that speak HTTP are tested separately
against ``httpx.MockTransport``.
"""

import itertools
import json
from typing import Dict, List, Optional, Tuple

import pytest

from forgebot.core.execution.models import GasParams, Receipt, ReceiptStatus, TransactionRequest, WalletHandle
from forgebot.core.flow.codec import encode_session
from forgebot.core.flow.errors import ExternalServiceError
from forgebot.core.flow.models import Turn
from forgebot.core.flow.services import FlowServices
from forgebot.core.flow.state_machine import FlowEngine
from forgebot.core.recovery import RetryConfig
from forgebot.core.swap.models import Quote, SwapTransaction
from forgebot.core.tokens import MAX_UINT256, TokenInfo, is_native
from forgebot.db.memory_store import InMemoryStore
from forgebot.types.requests import WireSettings

USER_ID = "1234"
WALLET_ADDRESS = "0x1111111111111111111111111111111111111111"
ROUTER_ADDRESS = "0x6352a56caadC4F1E25CD6c75970Fa768A3304e64"
DESTINATION = "0x2222222222222222222222222222222222222222"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"

ONE_GWEI = 10**9


class FakeChain:
    """Balances, allowances and token metadata keyed by lowercased address."""

    def __init__(self) -> None:
        self.native: Dict[str, int] = {}
        self.tokens: Dict[Tuple[str, str], int] = {}
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self.infos: Dict[str, TokenInfo] = {}
        self.broken: set = set()
        self.allowance_reads = 0

    def set_native(self, owner: str, amount: int) -> None:
        self.native[owner.lower()] = amount

    def set_token(self, info: TokenInfo, owner: str, balance: int) -> None:
        self.infos[info.address.lower()] = info
        self.tokens[(info.address.lower(), owner.lower())] = balance

    def set_allowance(self, token: str, owner: str, spender: str, amount: int) -> None:
        self.allowances[(token.lower(), owner.lower(), spender.lower())] = amount

    async def get_native_balance(self, address: str) -> int:
        return self.native.get(address.lower(), 0)

    async def get_token_balance(self, token: str, owner: str) -> int:
        if token.lower() in self.broken:
            raise ExternalServiceError(f"balanceOf reverted for {token}")
        if is_native(token):
            return await self.get_native_balance(owner)
        return self.tokens.get((token.lower(), owner.lower()), 0)

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        self.allowance_reads += 1
        if is_native(token):
            return MAX_UINT256
        return self.allowances.get((token.lower(), owner.lower(), spender.lower()), 0)

    async def get_token_info(self, token: str) -> TokenInfo:
        info = self.infos.get(token.lower())
        if info is None:
            raise ExternalServiceError(f"no contract at {token}")
        return info


class FakeQuotes:
    def __init__(self, out_amount: int = 0) -> None:
        self.out_amount = out_amount
        self.quote_calls: List[tuple] = []
        self.swap_calls: List[tuple] = []
        self.fail_quote = False

    async def quote(self, token_in, token_out, amount, gas_price_gwei=None) -> Quote:
        self.quote_calls.append((token_in, token_out, amount, gas_price_gwei))
        if self.fail_quote:
            raise ExternalServiceError("quote API unavailable", provider="openocean")
        return Quote(out_amount=self.out_amount, estimated_gas=150000)

    async def swap(self, token_in, token_out, amount, gas_price_gwei, slippage, account) -> SwapTransaction:
        self.swap_calls.append((token_in, token_out, amount, gas_price_gwei, slippage, account))
        return SwapTransaction(
            to=ROUTER_ADDRESS,
            data="0x90411a32",
            value=0,
            in_amount=0,
            out_amount=self.out_amount,
            gas_price=ONE_GWEI,
            price_impact="-0.01%",
        )


class FakeGas:
    def __init__(self, params: Optional[GasParams] = None) -> None:
        self.params = params or GasParams(
            fee_per_unit=ONE_GWEI, max_fee_per_unit=ONE_GWEI, max_priority_fee_per_unit=ONE_GWEI // 10
        )
        self.priorities: List[str] = []

    async def gas_params(self, priority: str = "medium") -> GasParams:
        self.priorities.append(priority)
        return self.params


class FakeExecutor:
    """Records every request; approvals also raise the allowance on ``chain``."""

    def __init__(self, chain: FakeChain, status: ReceiptStatus = ReceiptStatus.SUCCESS) -> None:
        self.chain = chain
        self.status = status
        self.requests: List[TransactionRequest] = []
        self._hashes = itertools.count(1)

    async def execute(self, signer: WalletHandle, request: TransactionRequest) -> Receipt:
        self.requests.append(request)
        if request.data.startswith("0x095ea7b3") and self.status == ReceiptStatus.SUCCESS:
            spender = "0x" + request.data[10 + 24:10 + 64]
            self.chain.set_allowance(request.to, signer.address, spender, MAX_UINT256)
        return Receipt(
            hash=f"0x{next(self._hashes):064x}",
            status=self.status,
            gas_used=21000,
            effective_fee_per_unit=ONE_GWEI,
            block_number=100,
        )

    @property
    def approvals(self) -> List[TransactionRequest]:
        return [r for r in self.requests if r.data.startswith("0x095ea7b3")]


@pytest.fixture
def wallet() -> WalletHandle:
    return WalletHandle(address=WALLET_ADDRESS, signer_ref="wallet-ref-1")


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def quotes() -> FakeQuotes:
    return FakeQuotes()


@pytest.fixture
def gas() -> FakeGas:
    return FakeGas()


@pytest.fixture
def executor(chain: FakeChain) -> FakeExecutor:
    return FakeExecutor(chain)


@pytest.fixture
def store(wallet: WalletHandle) -> InMemoryStore:
    return InMemoryStore(wallets={USER_ID: wallet})


@pytest.fixture
def services(store, chain, quotes, gas, executor) -> FlowServices:
    return FlowServices(
        wallets=store,
        chain=chain,
        quotes=quotes,
        gas=gas,
        executor=executor,
        store=store,
        retry=RetryConfig(max_attempts=1, jitter=False),
    )


@pytest.fixture
def engine(services: FlowServices) -> FlowEngine:
    return FlowEngine(services)


def follow(result, value: str, callback: bool = False, user_id: str = USER_ID):
    """Next turn carrying ``result``'s state through the JSON wire form, as a client would."""
    action, temp_data, wire_settings = encode_session(result.session)
    state = {
        "current_action": action,
        "temp_data": json.loads(json.dumps(temp_data)),
        "settings": WireSettings.model_validate(wire_settings.model_dump(mode="json", by_alias=True)),
    }
    if callback:
        return Turn.from_callback(user_id, value, **state)
    return Turn.from_action(user_id, value, **state)
