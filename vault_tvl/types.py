from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Tuple


def normalize_address(address: str) -> str:
    return address.lower()


@dataclass(frozen=True)
class LiquidityPosition:
    tick_lower: int
    tick_upper: int
    liquidity: int


@dataclass(frozen=True)
class PoolSnapshot:
    tick: int
    token0: str
    token1: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "token0", normalize_address(self.token0))
        object.__setattr__(self, "token1", normalize_address(self.token1))


@dataclass(frozen=True)
class ShareBalance:
    block_number: int
    timestamp: int
    user: str
    vault: str
    balance: int
    is_active: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "user", normalize_address(self.user))
        object.__setattr__(self, "vault", normalize_address(self.vault))


@dataclass(frozen=True)
class BlockData:
    block_number: int
    timestamp: int


@dataclass(frozen=True)
class OutputRow:
    block_number: int
    timestamp: int
    user_address: str
    token_address: str
    token_balance: int
    token_symbol: str  # empty string when the symbol is not available
    in_active: bool


class UserTokenAmounts:
    """Per-user, per-token running totals.

    Users and tokens are kept in first-seen order and their addresses are
    lower-cased on insert, so mixed-case duplicates collapse to one entry.
    """

    def __init__(self) -> None:
        self._amounts: Dict[str, Dict[str, int]] = {}

    def initialize(self, user: str, *tokens: str) -> None:
        per_user = self._amounts.setdefault(normalize_address(user), {})
        for token in tokens:
            per_user.setdefault(normalize_address(token), 0)

    def add(self, user: str, token: str, amount: int) -> None:
        self.initialize(user, token)
        self._amounts[normalize_address(user)][normalize_address(token)] += amount

    def get(self, user: str, token: str) -> int:
        return self._amounts.get(normalize_address(user), {}).get(normalize_address(token), 0)

    def users(self) -> List[str]:
        return list(self._amounts)

    def tokens_for(self, user: str) -> Iterator[Tuple[str, int]]:
        yield from self._amounts.get(normalize_address(user), {}).items()

    def merge(self, other: "UserTokenAmounts") -> None:
        for user in other.users():
            for token, amount in other.tokens_for(user):
                self.add(user, token, amount)


@dataclass
class VaultAllocation:
    vault: str
    pool: PoolSnapshot
    share_rows: List[ShareBalance]
    active_liquidity: int
    inactive_liquidity: int
    total_active_amount0: int
    total_active_amount1: int
    total_inactive_amount0: int
    total_inactive_amount1: int
    active_amounts: UserTokenAmounts = field(default_factory=UserTokenAmounts)
    inactive_amounts: UserTokenAmounts = field(default_factory=UserTokenAmounts)
