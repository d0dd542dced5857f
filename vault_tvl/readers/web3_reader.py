import logging
from typing import Dict, List, Sequence, Tuple

from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from vault_tvl.errors import RpcUnavailableError
from vault_tvl.readers.base import ShareBalanceSource, SnapshotReader
from vault_tvl.types import LiquidityPosition, PoolSnapshot, ShareBalance, normalize_address

logger = logging.getLogger(__name__)


def get_provider(rpc_urls: Sequence[str]) -> Web3:
    for rpc in rpc_urls:
        try:
            w3 = Web3(Web3.HTTPProvider(rpc))
            _ = w3.eth.block_number
            logger.info("Connected to RPC: %s", rpc)
            return w3
        except Exception as exc:
            logger.warning("RPC failed (%s): %s", rpc, exc)
    raise RpcUnavailableError("All RPC endpoints failed.")


class Web3SnapshotReader(SnapshotReader):
    def __init__(
        self,
        web3: Web3,
        vaults: Sequence[str],
        abis: Dict[str, List[dict]],
        share_source: ShareBalanceSource,
    ):
        self.web3 = web3
        self.vaults = [normalize_address(v) for v in vaults]
        self.abis = abis
        self.share_source = share_source
        self._vault_contracts: Dict[str, object] = {}

    def _vault(self, vault: str):
        key = normalize_address(vault)
        contract = self._vault_contracts.get(key)
        if contract is None:
            contract = self.web3.eth.contract(
                address=Web3.to_checksum_address(key), abi=self.abis["vault"]
            )
            self._vault_contracts[key] = contract
        return contract

    def get_positions(self, vault: str, block_number: int) -> List[LiquidityPosition]:
        # Position[] structs decode as (tickLower, tickUpper, liquidity)
        positions = self._vault(vault).functions.getAllPositions().call(block_identifier=block_number)
        return [
            LiquidityPosition(tick_lower=int(lower), tick_upper=int(upper), liquidity=int(liquidity))
            for lower, upper, liquidity in positions
        ]

    def get_pool_snapshot(self, vault: str, block_number: int) -> PoolSnapshot:
        # (token0, token1, decimals0, decimals1, feeTier, sqrtPriceX96, tick)
        pool_info = self._vault(vault).functions.getPoolInfo().call(block_identifier=block_number)
        return PoolSnapshot(tick=int(pool_info[6]), token0=pool_info[0], token1=pool_info[1])

    def get_underlying_amounts(
        self, vault: str, tick_lower: int, tick_upper: int, liquidity: int, block_number: int
    ) -> Tuple[int, int]:
        amount0, amount1 = (
            self._vault(vault)
            .functions.getAmountsForLiquidity(tick_lower, tick_upper, liquidity)
            .call(block_identifier=block_number)
        )
        return int(amount0), int(amount1)

    def get_share_balances(self, block_number: int) -> List[ShareBalance]:
        return self.share_source.fetch_balances(self.vaults, block_number)

    def get_total_supply(self, vault: str, block_number: int) -> int:
        return int(self._vault(vault).functions.totalSupply().call(block_identifier=block_number))

    def get_symbol(self, token: str) -> str:
        address = Web3.to_checksum_address(token)
        try:
            token_contract = self.web3.eth.contract(address=address, abi=self.abis["erc20"])
            return token_contract.functions.symbol().call()
        except (BadFunctionCallOutput, ContractLogicError):
            # older tokens (MKR, SAI) return bytes32 instead of string
            token_contract = self.web3.eth.contract(address=address, abi=self.abis["erc20_bytes32"])
            raw = token_contract.functions.symbol().call()
            return raw.rstrip(b"\x00").decode("utf-8", errors="replace")

    def get_timestamp(self, block_number: int) -> int:
        return int(self.web3.eth.get_block(block_number)["timestamp"])
