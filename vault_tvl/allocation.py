"""Proportional allocation of vault reserves to share-token holders.

The allocation functions do no I/O of their own; chain reads come in as
callables. Amounts are Python ints and every division truncates.
"""
import enum
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from vault_tvl.errors import InvalidPositionError, ZeroTotalSupplyError
from vault_tvl.types import (
    LiquidityPosition,
    PoolSnapshot,
    ShareBalance,
    UserTokenAmounts,
    VaultAllocation,
    normalize_address,
)

logger = logging.getLogger(__name__)

AmountsLookup = Callable[[LiquidityPosition], Tuple[int, int]]


class SkipReason(enum.Enum):
    NO_LIQUIDITY = "no liquidity"
    NO_ACTIVE_POSITIONS = "no in-range positions"


@dataclass(frozen=True)
class LiquiditySplit:
    active: List[LiquidityPosition]
    inactive: List[LiquidityPosition]
    active_liquidity: int
    inactive_liquidity: int

    @property
    def total_liquidity(self) -> int:
        return self.active_liquidity + self.inactive_liquidity

    @property
    def skip_reason(self) -> Optional[SkipReason]:
        # checked before total_liquidity is ever used as a divisor
        if self.total_liquidity == 0:
            return SkipReason.NO_LIQUIDITY
        if not self.active:
            return SkipReason.NO_ACTIVE_POSITIONS
        return None


def validate_position(position: LiquidityPosition) -> None:
    if position.tick_lower >= position.tick_upper:
        raise InvalidPositionError(
            f"tickLower {position.tick_lower} must be below tickUpper {position.tick_upper}"
        )
    if position.liquidity < 0:
        raise InvalidPositionError(f"negative liquidity {position.liquidity}")


def is_active(position: LiquidityPosition, pool_tick: int) -> bool:
    """Half-open range test: ``tick_lower <= pool_tick < tick_upper``."""
    return position.tick_lower <= pool_tick < position.tick_upper


def split_liquidity(positions: Sequence[LiquidityPosition], pool_tick: int) -> LiquiditySplit:
    active: List[LiquidityPosition] = []
    inactive: List[LiquidityPosition] = []
    for position in positions:
        validate_position(position)
        if is_active(position, pool_tick):
            active.append(position)
        else:
            inactive.append(position)
    return LiquiditySplit(
        active=active,
        inactive=inactive,
        active_liquidity=sum(p.liquidity for p in active),
        inactive_liquidity=sum(p.liquidity for p in inactive),
    )


def split_share_balances(
    rows: Sequence[ShareBalance],
    vault: str,
    active_liquidity: int,
    total_liquidity: int,
) -> List[ShareBalance]:
    """Return a new row list with this vault's balances split by liquidity ratio.

    Each input row keeps the active part. The inactive remainder becomes a
    second row tagged inactive, unless it is zero. Rows for other vaults, and
    zero balances, pass through untouched.
    """
    vault = normalize_address(vault)
    result: List[ShareBalance] = []
    extra: List[ShareBalance] = []
    for row in rows:
        if row.vault != vault or row.balance <= 0:
            result.append(row)
            continue
        active_balance = row.balance * active_liquidity // total_liquidity
        inactive_balance = row.balance - active_balance
        result.append(replace(row, balance=active_balance, is_active=True))
        if inactive_balance != 0:
            extra.append(replace(row, balance=inactive_balance, is_active=False))
    return result + extra


def sum_underlying_amounts(
    positions: Iterable[LiquidityPosition], lookup: AmountsLookup
) -> Tuple[int, int]:
    amount0 = 0
    amount1 = 0
    for position in positions:
        a0, a1 = lookup(position)
        amount0 += int(a0)
        amount1 += int(a1)
    return amount0, amount1


def distribute_token_amounts(
    rows: Sequence[ShareBalance],
    vault: str,
    block_number: int,
    pool: PoolSnapshot,
    total_supply: int,
    totals: Tuple[int, int, int, int],
    active_amounts: UserTokenAmounts,
    inactive_amounts: UserTokenAmounts,
) -> None:
    """Credit each of the vault's share rows with its cut of the vault totals.

    ``totals`` is ``(active0, active1, inactive0, inactive1)``. Every row with a
    positive balance, whichever tag it carries, receives all four amounts.
    """
    if total_supply == 0:
        raise ZeroTotalSupplyError(vault, block_number)
    active0, active1, inactive0, inactive1 = totals
    vault = normalize_address(vault)
    for row in rows:
        if row.vault != vault or row.balance <= 0:
            continue
        active_amounts.initialize(row.user, pool.token0, pool.token1)
        inactive_amounts.initialize(row.user, pool.token0, pool.token1)
        active_amounts.add(row.user, pool.token0, row.balance * active0 // total_supply)
        active_amounts.add(row.user, pool.token1, row.balance * active1 // total_supply)
        inactive_amounts.add(row.user, pool.token0, row.balance * inactive0 // total_supply)
        inactive_amounts.add(row.user, pool.token1, row.balance * inactive1 // total_supply)


def allocate_vault(
    vault: str,
    block_number: int,
    positions: Sequence[LiquidityPosition],
    pool: PoolSnapshot,
    rows: Sequence[ShareBalance],
    total_supply: Callable[[], int],
    amounts_for: AmountsLookup,
) -> Optional[VaultAllocation]:
    """Run the full allocation for one vault at one block.

    Returns None when the vault is skipped. ``total_supply`` and ``amounts_for``
    are only called once the vault is known to hold in-range liquidity.
    Nothing outside the returned allocation is modified.
    """
    split = split_liquidity(positions, pool.tick)
    reason = split.skip_reason
    if reason is not None:
        logger.info("Skipping vault %s at block %s: %s", vault, block_number, reason.value)
        return None
    if not split.inactive:
        logger.info("No out-of-range positions found for vault %s at block %s", vault, block_number)

    share_rows = split_share_balances(rows, vault, split.active_liquidity, split.total_liquidity)
    active0, active1 = sum_underlying_amounts(split.active, amounts_for)
    inactive0, inactive1 = sum_underlying_amounts(split.inactive, amounts_for)

    allocation = VaultAllocation(
        vault=normalize_address(vault),
        pool=pool,
        share_rows=share_rows,
        active_liquidity=split.active_liquidity,
        inactive_liquidity=split.inactive_liquidity,
        total_active_amount0=active0,
        total_active_amount1=active1,
        total_inactive_amount0=inactive0,
        total_inactive_amount1=inactive1,
    )
    distribute_token_amounts(
        share_rows,
        vault,
        block_number,
        pool,
        total_supply(),
        (active0, active1, inactive0, inactive1),
        allocation.active_amounts,
        allocation.inactive_amounts,
    )
    return allocation


@dataclass
class AllocationState:
    """Working state for one block, owned by the caller."""

    share_rows: List[ShareBalance] = field(default_factory=list)
    active_amounts: UserTokenAmounts = field(default_factory=UserTokenAmounts)
    inactive_amounts: UserTokenAmounts = field(default_factory=UserTokenAmounts)

    def apply(self, allocation: VaultAllocation) -> None:
        self.share_rows = list(allocation.share_rows)
        self.active_amounts.merge(allocation.active_amounts)
        self.inactive_amounts.merge(allocation.inactive_amounts)


class TokenSymbolCache:
    def __init__(self) -> None:
        self._symbols: Dict[str, str] = {}

    def resolve(self, token: str, lookup: Callable[[str], str]) -> str:
        token = normalize_address(token)
        if token in self._symbols:
            return self._symbols[token]
        try:
            symbol = lookup(token) or ""
        except Exception:
            logger.warning("Unable to resolve symbol for token %s", token, exc_info=True)
            symbol = ""
        self._symbols[token] = symbol
        return symbol

    def get(self, token: str) -> str:
        return self._symbols.get(normalize_address(token), "")
