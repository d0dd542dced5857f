import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

from vault_tvl.allocation import AllocationState, TokenSymbolCache, allocate_vault
from vault_tvl.emitter import emit_rows
from vault_tvl.errors import ZeroTotalSupplyError
from vault_tvl.readers.base import SnapshotReader
from vault_tvl.types import BlockData, OutputRow, ShareBalance, VaultAllocation, normalize_address

logger = logging.getLogger(__name__)


class VaultTVLReport:
    def __init__(
        self,
        reader: SnapshotReader,
        vaults: Sequence[str],
        symbols: Optional[TokenSymbolCache] = None,
    ):
        self.reader = reader
        self.vaults = [normalize_address(v) for v in vaults]
        self.symbols = symbols or TokenSymbolCache()
        self.share_balances: List[ShareBalance] = []
        self.rows_per_block: Dict[int, int] = {}
        self.block_timestamps: Dict[int, int] = {}
        # (vault, block_number) pairs that could not be allocated
        self.failed_vaults: List[Tuple[str, int]] = []

    def _process_vault(
        self, vault: str, block_number: int, rows: List[ShareBalance]
    ) -> Optional[VaultAllocation]:
        positions = self.reader.get_positions(vault, block_number)
        pool = self.reader.get_pool_snapshot(vault, block_number)
        return allocate_vault(
            vault,
            block_number,
            positions,
            pool,
            rows,
            total_supply=lambda: self.reader.get_total_supply(vault, block_number),
            amounts_for=lambda p: self.reader.get_underlying_amounts(
                vault, p.tick_lower, p.tick_upper, p.liquidity, block_number
            ),
        )

    def compute_vault_tvl(self, block_number: int, timestamp: int) -> List[OutputRow]:
        state = AllocationState()
        state.share_rows = [
            replace(balance, block_number=block_number, timestamp=timestamp, is_active=True)
            for balance in self.reader.get_share_balances(block_number)
        ]
        self.share_balances.extend(state.share_rows)

        for vault in self.vaults:
            logger.info("Processing vault %s at block %s", vault, block_number)
            try:
                allocation = self._process_vault(vault, block_number, state.share_rows)
            except ZeroTotalSupplyError as exc:
                logger.error("%s", exc)
                self.failed_vaults.append((exc.vault, exc.block_number))
                continue
            except Exception:
                logger.exception("Error processing vault %s at block %s", vault, block_number)
                continue
            if allocation is None:
                continue
            state.apply(allocation)
            self.symbols.resolve(allocation.pool.token0, self.reader.get_symbol)
            self.symbols.resolve(allocation.pool.token1, self.reader.get_symbol)

        rows = emit_rows(BlockData(block_number=block_number, timestamp=timestamp), state, self.symbols)
        self.rows_per_block[block_number] = len(rows)
        self.block_timestamps[block_number] = timestamp
        return rows

    def run(self, blocks: Sequence[int]) -> List[OutputRow]:
        rows: List[OutputRow] = []
        for block_number in blocks:
            timestamp = self.reader.get_timestamp(block_number)
            rows.extend(self.compute_vault_tvl(block_number, timestamp))
        return rows
