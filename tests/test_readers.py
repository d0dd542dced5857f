from __future__ import annotations

import pytest
import requests
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput

from fakes import TOKEN0, TOKEN1, USER_1, USER_2, VAULT_A, VAULT_B
from vault_tvl.errors import RpcUnavailableError, SubgraphError
from vault_tvl.readers import web3_reader
from vault_tvl.readers.subgraph import SubgraphShareBalanceSource
from vault_tvl.readers.web3_reader import Web3SnapshotReader, get_provider
from vault_tvl.types import LiquidityPosition

MKR = "0x" + "77" * 20
ABIS = {name: [name] for name in ("vault", "erc20", "erc20_bytes32")}


class FakeResponse:
    def __init__(self, payload: dict, status: int = 200):
        self.payload = payload
        self.status = status

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise requests.exceptions.HTTPError(f"{self.status} error")

    def json(self) -> dict:
        return self.payload


class FakeSession:
    def __init__(self, responses: list[FakeResponse]):
        self.responses = responses
        self.requests: list[dict] = []

    def post(self, url: str, json: dict, timeout: int) -> FakeResponse:
        self.requests.append(json)
        return self.responses.pop(0)


def _entry(owner: str, vault: str, amount: str) -> dict:
    return {"id": f"{vault}-{owner}", "owner": owner, "vault": {"id": vault}, "balance": amount}


def test_subgraph_source_pages_until_short_page():
    session = FakeSession(
        [
            FakeResponse({"data": {"vaultShareBalances": [_entry(USER_1, VAULT_A, "30"), _entry(USER_2, VAULT_A, "5")]}}),
            FakeResponse({"data": {"vaultShareBalances": [_entry(USER_1.upper().replace("0X", "0x"), VAULT_B, "7")]}}),
        ]
    )
    source = SubgraphShareBalanceSource("https://subgraph", page_size=2, session=session)

    balances = source.fetch_balances([VAULT_A, VAULT_B], 100)

    assert [(b.user, b.vault, b.balance, b.block_number) for b in balances] == [
        (USER_1, VAULT_A, 30, 100),
        (USER_2, VAULT_A, 5, 100),
        (USER_1, VAULT_B, 7, 100),
    ]
    assert [r["variables"]["skip"] for r in session.requests] == [0, 2]
    assert session.requests[0]["variables"]["block"] == 100


def test_subgraph_source_drops_unconfigured_vaults():
    session = FakeSession([FakeResponse({"data": {"vaultShareBalances": [_entry(USER_1, VAULT_B, "1")]}})])
    source = SubgraphShareBalanceSource("https://subgraph", session=session)

    assert source.fetch_balances([VAULT_A], 100) == []


def test_subgraph_source_raises_on_graphql_errors():
    session = FakeSession([FakeResponse({"errors": [{"message": "indexing error"}]})])
    source = SubgraphShareBalanceSource("https://subgraph", session=session)

    with pytest.raises(SubgraphError, match="indexing error"):
        source.fetch_balances([VAULT_A], 100)


def test_subgraph_source_wraps_http_errors():
    session = FakeSession([FakeResponse({}, status=502)])
    source = SubgraphShareBalanceSource("https://subgraph", session=session)

    with pytest.raises(SubgraphError):
        source.fetch_balances([VAULT_A], 100)


class FakeCall:
    def __init__(self, result, log: list, name: str, args: tuple):
        self.result = result
        self.log = log
        self.name = name
        self.args = args

    def call(self, block_identifier=None):
        self.log.append((self.name, self.args, block_identifier))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeFunctions:
    def __init__(self, results: dict, log: list):
        self._results = results
        self._log = log

    def __getattr__(self, name: str):
        return lambda *args: FakeCall(self._results[name], self._log, name, args)


class FakeContract:
    def __init__(self, results: dict, log: list):
        self.functions = FakeFunctions(results, log)


class FakeEth:
    def __init__(self, contracts: dict):
        self.contracts = contracts
        self.log: list = []
        self.block_number = 123

    def contract(self, address: str, abi: list):
        return FakeContract(self.contracts[(address.lower(), abi[0])], self.log)

    def get_block(self, block_number: int) -> dict:
        return {"number": block_number, "timestamp": 1714000000 + block_number}


class FakeWeb3:
    def __init__(self, contracts: dict):
        self.eth = FakeEth(contracts)


class FakeShareSource:
    def __init__(self):
        self.calls = []

    def fetch_balances(self, vaults, block_number):
        self.calls.append((list(vaults), block_number))
        return []


def _reader() -> tuple[Web3SnapshotReader, FakeWeb3, FakeShareSource]:
    w3 = FakeWeb3(
        {
            (VAULT_A, "vault"): {
                "getAllPositions": [(0, 20, 100), (20, 30, 50)],
                "getPoolInfo": (
                    Web3.to_checksum_address(TOKEN0),
                    Web3.to_checksum_address(TOKEN1),
                    18,
                    6,
                    500,
                    2**96,
                    10,
                ),
                "getAmountsForLiquidity": (200, 400),
                "totalSupply": 1000,
            },
            (TOKEN0, "erc20"): {"symbol": "WETH"},
            (MKR, "erc20"): {"symbol": BadFunctionCallOutput("could not decode")},
            (MKR, "erc20_bytes32"): {"symbol": b"MKR" + b"\x00" * 29},
        }
    )
    source = FakeShareSource()
    return Web3SnapshotReader(w3, [VAULT_A.upper().replace("0X", "0x")], ABIS, source), w3, source


def test_web3_reader_reads_positions_at_block():
    reader, w3, _ = _reader()

    positions = reader.get_positions(VAULT_A, 55)

    assert positions == [LiquidityPosition(0, 20, 100), LiquidityPosition(20, 30, 50)]
    assert w3.eth.log == [("getAllPositions", (), 55)]


def test_web3_reader_pool_snapshot_reads_tick_and_tokens_from_pool_info():
    reader, w3, _ = _reader()

    pool = reader.get_pool_snapshot(VAULT_A, 55)

    assert (pool.tick, pool.token0, pool.token1) == (10, TOKEN0, TOKEN1)
    assert w3.eth.log == [("getPoolInfo", (), 55)]


def test_web3_reader_amounts_supply_and_timestamp():
    reader, w3, _ = _reader()

    assert reader.get_underlying_amounts(VAULT_A, 0, 20, 100, 55) == (200, 400)
    assert reader.get_total_supply(VAULT_A, 55) == 1000
    assert reader.get_timestamp(55) == 1714000055
    assert ("getAmountsForLiquidity", (0, 20, 100), 55) in w3.eth.log


def test_web3_reader_symbol_falls_back_to_bytes32():
    reader, _, _ = _reader()

    assert reader.get_symbol(TOKEN0) == "WETH"
    assert reader.get_symbol(MKR) == "MKR"


def test_web3_reader_delegates_share_balances_with_normalized_vaults():
    reader, _, source = _reader()

    reader.get_share_balances(77)

    assert source.calls == [([VAULT_A], 77)]


def test_get_provider_falls_back_to_next_rpc(monkeypatch):
    class BrokenEth:
        @property
        def block_number(self):
            raise ConnectionError("refused")

    class WorkingEth:
        block_number = 1

    class FakeWeb3Class:
        @staticmethod
        def HTTPProvider(url):
            return url

        def __init__(self, provider):
            self.provider = provider
            self.eth = BrokenEth() if "bad" in provider else WorkingEth()

    monkeypatch.setattr(web3_reader, "Web3", FakeWeb3Class)

    w3 = get_provider(["https://bad.rpc", "https://good.rpc"])

    assert w3.provider == "https://good.rpc"


def test_get_provider_raises_when_all_rpcs_fail(monkeypatch):
    class FakeWeb3Class:
        @staticmethod
        def HTTPProvider(url):
            raise ValueError("bad url")

    monkeypatch.setattr(web3_reader, "Web3", FakeWeb3Class)

    with pytest.raises(RpcUnavailableError):
        get_provider(["https://bad.rpc"])


def test_bundled_abis_expose_the_functions_the_reader_calls():
    from vault_tvl.abi_loader import load_all_abis

    abis = load_all_abis()

    vault_functions = {item["name"] for item in abis["vault"]}
    assert vault_functions == {"getAllPositions", "getPoolInfo", "getAmountsForLiquidity", "totalSupply"}
    positions = next(item for item in abis["vault"] if item["name"] == "getAllPositions")
    assert positions["outputs"][0]["type"] == "tuple[]"
    assert [c["name"] for c in positions["outputs"][0]["components"]] == ["tickLower", "tickUpper", "liquidity"]
    pool_info = next(item for item in abis["vault"] if item["name"] == "getPoolInfo")
    assert [o["type"] for o in pool_info["outputs"]][:2] == ["address", "address"]
    assert pool_info["outputs"][6]["type"] == "int24"
    assert set(abis) == {"vault", "erc20", "erc20_bytes32"}
    assert abis["erc20_bytes32"][0]["outputs"][0]["type"] == "bytes32"


def test_bundled_vault_abi_binds_to_a_web3_contract():
    from vault_tvl.abi_loader import load_all_abis

    contract = Web3().eth.contract(address=Web3.to_checksum_address(VAULT_A), abi=load_all_abis()["vault"])

    assert contract.functions.getAllPositions().fn_name == "getAllPositions"
    assert contract.functions.getPoolInfo().fn_name == "getPoolInfo"
    assert contract.functions.getAmountsForLiquidity(-10, 10, 5).fn_name == "getAmountsForLiquidity"


def test_missing_abi_directory_raises(tmp_path):
    from vault_tvl.abi_loader import load_all_abis

    with pytest.raises(FileNotFoundError):
        load_all_abis(tmp_path / "missing")
