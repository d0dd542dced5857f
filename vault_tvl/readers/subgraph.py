import logging
from typing import List, Optional, Sequence

import requests

from vault_tvl.errors import SubgraphError
from vault_tvl.readers.base import ShareBalanceSource
from vault_tvl.types import ShareBalance, normalize_address

logger = logging.getLogger(__name__)

QUERY = """
query getShareBalances($vaults: [String!], $block: Int!, $skip: Int!, $first: Int!) {
  vaultShareBalances(
    first: $first,
    skip: $skip,
    where: { vault_in: $vaults, balance_gt: 0 },
    block: { number: $block }
    orderBy: id
  ) {
    id
    owner
    vault { id }
    balance
  }
}
"""


class SubgraphShareBalanceSource(ShareBalanceSource):
    def __init__(
        self,
        url: str,
        page_size: int = 1000,
        timeout: int = 60,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.page_size = page_size
        self.timeout = timeout
        self.session = session or requests.Session()

    def _fetch_page(self, vaults: Sequence[str], block_number: int, skip: int) -> list:
        variables = {
            "vaults": list(vaults),
            "block": block_number,
            "skip": skip,
            "first": self.page_size,
        }
        try:
            resp = self.session.post(
                self.url, json={"query": QUERY, "variables": variables}, timeout=self.timeout
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.exceptions.RequestException as exc:
            raise SubgraphError(f"Could not fetch share balances from {self.url}: {exc}") from exc
        if payload.get("errors"):
            raise SubgraphError(f"Subgraph returned errors: {payload['errors']}")
        return (payload.get("data") or {}).get("vaultShareBalances", [])

    def fetch_balances(self, vaults: Sequence[str], block_number: int) -> List[ShareBalance]:
        vaults = [normalize_address(v) for v in vaults]
        balances: List[ShareBalance] = []
        skip = 0
        while True:
            logger.debug("Fetching share balances at block %s (offset: %s)", block_number, skip)
            entries = self._fetch_page(vaults, block_number, skip)
            for entry in entries:
                vault = normalize_address(entry["vault"]["id"])
                if vault not in vaults:
                    continue
                balances.append(
                    ShareBalance(
                        block_number=block_number,
                        timestamp=0,
                        user=entry["owner"],
                        vault=vault,
                        balance=int(entry["balance"]),
                    )
                )
            if len(entries) < self.page_size:
                break
            skip += self.page_size
        logger.info("Fetched %d share balances at block %s", len(balances), block_number)
        return balances
