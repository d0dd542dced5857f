class VaultTVLError(Exception):
    pass


class ConfigError(VaultTVLError):
    pass


class InvalidPositionError(VaultTVLError):
    pass


class RpcUnavailableError(VaultTVLError):
    pass


class SubgraphError(VaultTVLError):
    pass


class ZeroTotalSupplyError(VaultTVLError):
    def __init__(self, vault: str, block_number: int):
        super().__init__(f"Share token total supply is zero for vault {vault} at block {block_number}")
        self.vault = vault
        self.block_number = block_number
