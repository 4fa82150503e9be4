"""Configuration management for the gateway bridge."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
from eth_utils import is_hex_address

from core.errors import ConfigurationError
from core.types import PRIMARY_CHAIN_ID, Address, Asset, TokenKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkConfig:
    """A chain the bridge talks to.

    ``chain_id`` qualifies addresses (``"eth"`` on the primary chain, the
    sidechain's name on the secondary). ``network_id`` is the numeric id
    transactions are signed for and the node is checked against.
    """
    name: str
    chain_id: str
    network_id: int
    rpc_url: str = ""
    ws_url: str = ""


PRIMARY_NETWORKS: Dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig(name="mainnet", chain_id=PRIMARY_CHAIN_ID, network_id=1),
    "rinkeby": NetworkConfig(name="rinkeby", chain_id=PRIMARY_CHAIN_ID, network_id=4),
}

SECONDARY_NETWORKS: Dict[str, NetworkConfig] = {
    "plasma": NetworkConfig(
        name="plasma",
        chain_id="default",
        network_id=13654820909954,
        rpc_url="https://plasma.dappchains.com/eth",
        ws_url="wss://plasma.dappchains.com/eth",
    ),
    "extdev": NetworkConfig(
        name="extdev",
        chain_id="extdev-plasma-us1",
        network_id=9545242630824,
        rpc_url="https://extdev-plasma-us1.dappchains.com/eth",
        ws_url="wss://extdev-plasma-us1.dappchains.com/eth",
    ),
}


@dataclass
class AssetConfig:
    """An ERC20 pair the bridge may move."""
    symbol: str
    primary_contract: str
    secondary_contract: str


def parse_assets(value: str) -> List[AssetConfig]:
    """Parse ``SYMBOL:0xprimary:0xsecondary`` entries separated by commas."""
    assets = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(":")
        if len(parts) != 3:
            raise ConfigurationError(f"Invalid asset entry: {entry}")
        assets.append(AssetConfig(symbol=parts[0].upper(), primary_contract=parts[1], secondary_contract=parts[2]))
    return assets


def _optional_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value else None


@dataclass
class BridgeConfig:
    """Main bridge configuration."""

    # Networks
    primary_network: str = "mainnet"
    secondary_network: str = "plasma"

    # Endpoints (empty means the network preset)
    primary_rpc_url: str = ""
    primary_ws_url: str = ""
    secondary_rpc_url: str = ""
    secondary_ws_url: str = ""

    # Contract addresses
    primary_gateway_address: str = ""
    primary_gateway_tx_hash: str = ""
    primary_gateway_block: Optional[int] = None
    secondary_gateway_address: str = ""
    address_mapper_address: str = ""
    native_coin_address: str = ""  # ETH's ERC20 representation on the secondary chain

    # Keys: a mnemonic, explicit private keys, or external wallets
    mnemonic: str = ""
    primary_private_key: str = ""
    secondary_private_key: str = ""
    primary_wallet_url: str = ""
    primary_address: str = ""
    secondary_wallet_url: str = ""
    secondary_address: str = ""

    # Bridge settings
    withdrawal_timeout: float = 120.0
    confirmations: int = 1
    poll_interval: int = 60
    log_poll_interval: float = 5.0
    journal_path: str = "withdrawals.db"

    assets: List[AssetConfig] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        """Load configuration from environment variables."""
        return cls(
            primary_network=os.getenv("PRIMARY_NETWORK", "mainnet"),
            secondary_network=os.getenv("SECONDARY_NETWORK", "plasma"),
            primary_rpc_url=os.getenv("PRIMARY_RPC_URL", ""),
            primary_ws_url=os.getenv("PRIMARY_WS_URL", ""),
            secondary_rpc_url=os.getenv("SECONDARY_RPC_URL", ""),
            secondary_ws_url=os.getenv("SECONDARY_WS_URL", ""),
            primary_gateway_address=os.getenv("PRIMARY_GATEWAY_ADDRESS", ""),
            primary_gateway_tx_hash=os.getenv("PRIMARY_GATEWAY_TX_HASH", ""),
            primary_gateway_block=_optional_int(os.getenv("PRIMARY_GATEWAY_BLOCK")),
            secondary_gateway_address=os.getenv("SECONDARY_GATEWAY_ADDRESS", ""),
            address_mapper_address=os.getenv("ADDRESS_MAPPER_ADDRESS", ""),
            native_coin_address=os.getenv("NATIVE_COIN_ADDRESS", ""),
            mnemonic=os.getenv("BRIDGE_MNEMONIC", ""),
            primary_private_key=os.getenv("PRIMARY_PRIVATE_KEY", ""),
            secondary_private_key=os.getenv("SECONDARY_PRIVATE_KEY", ""),
            primary_wallet_url=os.getenv("PRIMARY_WALLET_URL", ""),
            primary_address=os.getenv("PRIMARY_ADDRESS", ""),
            secondary_wallet_url=os.getenv("SECONDARY_WALLET_URL", ""),
            secondary_address=os.getenv("SECONDARY_ADDRESS", ""),
            withdrawal_timeout=float(os.getenv("WITHDRAWAL_TIMEOUT", "120")),
            confirmations=int(os.getenv("CONFIRMATIONS", "1")),
            poll_interval=int(os.getenv("POLL_INTERVAL", "60")),
            log_poll_interval=float(os.getenv("LOG_POLL_INTERVAL", "5")),
            journal_path=os.getenv("JOURNAL_PATH", "withdrawals.db"),
            assets=parse_assets(os.getenv("BRIDGE_ASSETS", "")),
        )

    @classmethod
    def from_file(cls, config_path: Path) -> "BridgeConfig":
        """Load configuration from TOML file.

        Args:
            config_path: Path to configuration file

        Returns:
            BridgeConfig instance

        Raises:
            ConfigurationError: If config is invalid
        """
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        logger.info(f"Loading configuration from {config_path}")

        try:
            with open(config_path, "r") as f:
                config_data: Dict[str, Any] = toml.load(f)
        except Exception as e:
            raise ConfigurationError(f"Failed to parse configuration file: {e}")

        try:
            assets = [
                AssetConfig(
                    symbol=entry["symbol"].upper(),
                    primary_contract=entry["primary_contract"],
                    secondary_contract=entry["secondary_contract"],
                )
                for entry in config_data.pop("assets", [])
            ]
            known = set(cls.__dataclass_fields__)
            unknown = set(config_data) - known
            if unknown:
                raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
            return cls(assets=assets, **config_data)
        except KeyError as e:
            raise ConfigurationError(f"Missing required configuration key: {e}")
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @property
    def primary(self) -> NetworkConfig:
        """The primary network with endpoint overrides applied."""
        return self._resolve(PRIMARY_NETWORKS, self.primary_network, self.primary_rpc_url, self.primary_ws_url)

    @property
    def secondary(self) -> NetworkConfig:
        """The secondary network with endpoint overrides applied."""
        return self._resolve(
            SECONDARY_NETWORKS, self.secondary_network, self.secondary_rpc_url, self.secondary_ws_url
        )

    @staticmethod
    def _resolve(presets: Dict[str, NetworkConfig], name: str, rpc_url: str, ws_url: str) -> NetworkConfig:
        if name not in presets:
            raise ConfigurationError(f"Unknown network '{name}', expected one of {', '.join(presets)}")
        preset = presets[name]
        return NetworkConfig(
            name=preset.name,
            chain_id=preset.chain_id,
            network_id=preset.network_id,
            rpc_url=rpc_url or preset.rpc_url,
            ws_url=ws_url or preset.ws_url,
        )

    def build_assets(self) -> List[Asset]:
        """Assets the bridge moves: ETH first, then the configured ERC20 pairs."""
        primary_chain = self.primary.chain_id
        secondary_chain = self.secondary.chain_id
        assets = [
            Asset(
                symbol="ETH",
                kind=TokenKind.ETH,
                primary_contract=Address.zero(primary_chain),
                secondary_contract=Address.from_hex(secondary_chain, self.native_coin_address),
            )
        ]
        for entry in self.assets:
            assets.append(Asset(
                symbol=entry.symbol,
                kind=TokenKind.ERC20,
                primary_contract=Address.from_hex(primary_chain, entry.primary_contract),
                secondary_contract=Address.from_hex(secondary_chain, entry.secondary_contract),
            ))
        return assets

    def validate(self) -> None:
        """Validate configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        primary, secondary = self.primary, self.secondary

        if not primary.rpc_url:
            raise ConfigurationError("primary_rpc_url is required")
        if not secondary.rpc_url:
            raise ConfigurationError("secondary_rpc_url is required")

        for name in (
            "primary_gateway_address",
            "secondary_gateway_address",
            "address_mapper_address",
            "native_coin_address",
        ):
            value = getattr(self, name)
            if not value:
                raise ConfigurationError(f"{name} is required")
            if not is_hex_address(value):
                raise ConfigurationError(f"{name} is not a valid address: {value}")

        self._validate_keys("primary")
        self._validate_keys("secondary")

        if self.withdrawal_timeout <= 0:
            raise ConfigurationError("withdrawal_timeout must be positive")
        if self.confirmations < 1:
            raise ConfigurationError("confirmations must be at least 1")

        symbols = set()
        for entry in self.assets:
            if entry.symbol == "ETH" or entry.symbol in symbols:
                raise ConfigurationError(f"Duplicate asset symbol: {entry.symbol}")
            symbols.add(entry.symbol)
            for value in (entry.primary_contract, entry.secondary_contract):
                if not is_hex_address(value):
                    raise ConfigurationError(f"Asset {entry.symbol} has an invalid address: {value}")

        logger.info("Configuration validated successfully")

    def _validate_keys(self, side: str) -> None:
        private_key = getattr(self, f"{side}_private_key")
        wallet_url = getattr(self, f"{side}_wallet_url")
        address = getattr(self, f"{side}_address")

        if wallet_url:
            # An external wallet never yields a key, so its account must be named.
            if not address or not is_hex_address(address):
                raise ConfigurationError(f"{side}_address is required with {side}_wallet_url")
        elif not private_key and not self.mnemonic:
            raise ConfigurationError(
                f"Must provide a mnemonic, {side}_private_key or {side}_wallet_url"
            )
