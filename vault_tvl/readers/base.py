from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple

from vault_tvl.types import LiquidityPosition, PoolSnapshot, ShareBalance


class ShareBalanceSource(ABC):
    @abstractmethod
    def fetch_balances(self, vaults: Sequence[str], block_number: int) -> List[ShareBalance]:
        ...


class SnapshotReader(ABC):
    """Read-only view of vault state at a historical block."""

    @abstractmethod
    def get_positions(self, vault: str, block_number: int) -> List[LiquidityPosition]:
        ...

    @abstractmethod
    def get_pool_snapshot(self, vault: str, block_number: int) -> PoolSnapshot:
        ...

    @abstractmethod
    def get_underlying_amounts(
        self, vault: str, tick_lower: int, tick_upper: int, liquidity: int, block_number: int
    ) -> Tuple[int, int]:
        ...

    @abstractmethod
    def get_share_balances(self, block_number: int) -> List[ShareBalance]:
        ...

    @abstractmethod
    def get_total_supply(self, vault: str, block_number: int) -> int:
        ...

    @abstractmethod
    def get_symbol(self, token: str) -> str:
        ...

    @abstractmethod
    def get_timestamp(self, block_number: int) -> int:
        ...
