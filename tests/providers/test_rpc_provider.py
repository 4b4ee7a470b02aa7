"""
Tests for the JSON-RPC chain reader against a mocked transport.
"""

import json

import httpx
import pytest

from forgebot.core.flow.errors import ExternalServiceError
from forgebot.core.tokens import MAX_UINT256, NATIVE_TOKEN_ADDRESS
from forgebot.providers.rpc import (
    ALLOWANCE_SELECTOR,
    BALANCE_OF_SELECTOR,
    DECIMALS_SELECTOR,
    SYMBOL_SELECTOR,
    ChainRpcProvider,
    decode_symbol,
)

TOKEN = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
OWNER = "0x1111111111111111111111111111111111111111"
SPENDER = "0x2222222222222222222222222222222222222222"


def word(value: int) -> str:
    return f"{value:064x}"


def abi_string(text: str) -> str:
    data = text.encode().hex()
    return "0x" + word(32) + word(len(text)) + data.ljust(64, "0")


class RpcStub:
    """Answers eth_call by selector; records every payload."""

    def __init__(self, calls=None, balance=0):
        self.call_results = calls or {}
        self.balance = balance
        self.payloads = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.payloads.append(payload)
        method = payload["method"]
        if method == "eth_getBalance":
            result = hex(self.balance)
        elif method == "eth_call":
            result = self.call_results.get(payload["params"][0]["data"][:10], "0x")
        elif method == "eth_feeHistory":
            result = {"baseFeePerGas": ["0x1"], "reward": [["0x1"]]}
        else:
            result = None
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})


def provider_for(handler) -> ChainRpcProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChainRpcProvider(rpc_url="https://rpc.test", client=client)


class TestReads:

    @pytest.mark.asyncio
    async def test_native_balance_beyond_float_precision(self):
        stub = RpcStub(balance=2**80 + 1)

        assert await provider_for(stub).get_native_balance(OWNER) == 2**80 + 1
        assert stub.payloads[0]["params"] == [OWNER, "latest"]

    @pytest.mark.asyncio
    async def test_token_balance_calls_balance_of(self):
        stub = RpcStub({BALANCE_OF_SELECTOR: "0x" + word(5_000_000)})

        balance = await provider_for(stub).get_token_balance(TOKEN, OWNER)

        assert balance == 5_000_000
        call = stub.payloads[0]["params"][0]
        assert call["to"] == TOKEN
        assert call["data"] == BALANCE_OF_SELECTOR + OWNER[2:].zfill(64)

    @pytest.mark.asyncio
    async def test_native_token_balance_uses_get_balance(self):
        stub = RpcStub(balance=7)

        assert await provider_for(stub).get_token_balance(NATIVE_TOKEN_ADDRESS, OWNER) == 7
        assert stub.payloads[0]["method"] == "eth_getBalance"

    @pytest.mark.asyncio
    async def test_allowance(self):
        stub = RpcStub({ALLOWANCE_SELECTOR: "0x" + word(42)})

        assert await provider_for(stub).get_allowance(TOKEN, OWNER, SPENDER) == 42
        data = stub.payloads[0]["params"][0]["data"]
        assert data.endswith(SPENDER[2:].zfill(64))

    @pytest.mark.asyncio
    async def test_native_allowance_is_unlimited_without_a_call(self):
        stub = RpcStub()

        assert await provider_for(stub).get_allowance(NATIVE_TOKEN_ADDRESS, OWNER, SPENDER) == MAX_UINT256
        assert stub.payloads == []

    @pytest.mark.asyncio
    async def test_token_info(self):
        stub = RpcStub({DECIMALS_SELECTOR: "0x" + word(6), SYMBOL_SELECTOR: abi_string("USDC")})

        info = await provider_for(stub).get_token_info(TOKEN)

        assert (info.symbol, info.decimals) == ("USDC", 6)

    @pytest.mark.asyncio
    async def test_token_info_without_contract_fails(self):
        with pytest.raises(ExternalServiceError):
            await provider_for(RpcStub()).get_token_info(TOKEN)

    @pytest.mark.asyncio
    async def test_fee_history_params(self):
        stub = RpcStub()

        await provider_for(stub).fee_history([50], 5)

        assert stub.payloads[0]["params"] == ["0x5", "latest", [50]]


class TestErrors:

    @pytest.mark.asyncio
    async def test_node_error_object(self):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "x"}})

        with pytest.raises(ExternalServiceError) as excinfo:
            await provider_for(handler).get_native_balance(OWNER)
        assert excinfo.value.provider == "rpc"

    @pytest.mark.asyncio
    async def test_http_error(self):
        with pytest.raises(ExternalServiceError):
            await provider_for(lambda request: httpx.Response(429)).get_native_balance(OWNER)

    @pytest.mark.asyncio
    async def test_missing_url(self):
        provider = ChainRpcProvider(rpc_url="", client=httpx.AsyncClient())
        provider.rpc_url = ""

        with pytest.raises(ExternalServiceError):
            await provider.get_native_balance(OWNER)


class TestDecodeSymbol:

    def test_abi_string(self):
        assert decode_symbol(abi_string("WETH")) == "WETH"

    def test_bytes32(self):
        assert decode_symbol("0x" + "MKR".encode().hex().ljust(64, "0")) == "MKR"

    def test_empty(self):
        with pytest.raises(ExternalServiceError):
            decode_symbol("0x")
