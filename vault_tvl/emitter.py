from typing import Iterator, List

from vault_tvl.allocation import AllocationState, TokenSymbolCache
from vault_tvl.types import BlockData, OutputRow


def _ordered_users(state: AllocationState) -> List[str]:
    users = state.active_amounts.users()
    seen = set(users)
    for user in state.inactive_amounts.users():
        if user not in seen:
            users.append(user)
            seen.add(user)
    return users


def iter_rows(block: BlockData, state: AllocationState, symbols: TokenSymbolCache) -> Iterator[OutputRow]:
    """Yield one row per (user, token, flag).

    Active amounts are always emitted, zero included. Inactive amounts of
    exactly zero are dropped.
    """
    for user in _ordered_users(state):
        for token, amount in state.active_amounts.tokens_for(user):
            yield OutputRow(
                block_number=block.block_number,
                timestamp=block.timestamp,
                user_address=user,
                token_address=token,
                token_balance=amount,
                token_symbol=symbols.get(token),
                in_active=True,
            )
        for token, amount in state.inactive_amounts.tokens_for(user):
            if amount == 0:
                continue
            yield OutputRow(
                block_number=block.block_number,
                timestamp=block.timestamp,
                user_address=user,
                token_address=token,
                token_balance=amount,
                token_symbol=symbols.get(token),
                in_active=False,
            )


def emit_rows(block: BlockData, state: AllocationState, symbols: TokenSymbolCache) -> List[OutputRow]:
    return list(iter_rows(block, state, symbols))
