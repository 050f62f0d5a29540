"""
Configuration management for natchat.

Handles:
- Introducer listen address
- Peer identity, room and rendezvous addresses
- Hole-punch timing
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# Default paths
DEFAULT_DATA_DIR = Path.home() / ".natchat"

DEFAULT_INTRODUCER_PORT = 3478

# Receive buffer sizes; longer datagrams are truncated
INTRODUCER_RECV_BUFFER = 2048
PEER_RECV_BUFFER = 4096

# Hole punching
PUNCH_BURST_COUNT = 8
PUNCH_BURST_INTERVAL_SEC = 0.12
PUNCH_KEEPALIVE_SEC = 15.0


def _known(cls, data: dict) -> dict:
    # Filter to only known fields to handle config evolution
    return {k: v for k, v in data.items() if k in cls.__dataclass_fields__}


@dataclass
class IntroducerConfig:
    """Configuration for the rendezvous introducer."""
    listen: str = f":{DEFAULT_INTRODUCER_PORT}"

    def to_dict(self) -> dict:
        return {"listen": self.listen}

    @classmethod
    def from_dict(cls, data: dict) -> "IntroducerConfig":
        return cls(**_known(cls, data))


@dataclass
class PeerConfig:
    """Configuration for a chat peer."""
    listen: str = ":0"
    name: Optional[str] = None
    room: str = "default"
    introducer: Optional[str] = None  # ip:port of the introducer
    manual: Optional[str] = None  # ip:port of a peer to punch directly

    def to_dict(self) -> dict:
        return {
            "listen": self.listen,
            "name": self.name,
            "room": self.room,
            "introducer": self.introducer,
            "manual": self.manual,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PeerConfig":
        return cls(**_known(cls, data))


@dataclass
class PunchConfig:
    """Hole-punch burst and keepalive timing."""
    burst_count: int = PUNCH_BURST_COUNT
    burst_interval: float = PUNCH_BURST_INTERVAL_SEC
    keepalive_interval: float = PUNCH_KEEPALIVE_SEC

    def to_dict(self) -> dict:
        return {
            "burst_count": self.burst_count,
            "burst_interval": self.burst_interval,
            "keepalive_interval": self.keepalive_interval,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PunchConfig":
        return cls(**_known(cls, data))


@dataclass
class Config:
    """
    Main natchat configuration.

    Stored at ~/.natchat/config.json
    """
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)

    introducer: IntroducerConfig = field(default_factory=IntroducerConfig)
    peer: PeerConfig = field(default_factory=PeerConfig)
    punch: PunchConfig = field(default_factory=PunchConfig)

    @property
    def config_path(self) -> Path:
        return self.data_dir / "config.json"

    def ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> dict:
        return {
            "introducer": self.introducer.to_dict(),
            "peer": self.peer.to_dict(),
            "punch": self.punch.to_dict(),
        }

    def save(self) -> None:
        """Save configuration to disk."""
        self.ensure_data_dir()

        with open(self.config_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.debug(f"Configuration saved to {self.config_path}")

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> "Config":
        """Load configuration from disk."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        config_path = data_dir / "config.json"

        if not config_path.exists():
            return cls(data_dir=data_dir)

        with open(config_path, 'r') as f:
            data = json.load(f)

        config = cls(data_dir=data_dir)
        if "introducer" in data:
            config.introducer = IntroducerConfig.from_dict(data["introducer"])
        if "peer" in data:
            config.peer = PeerConfig.from_dict(data["peer"])
        if "punch" in data:
            config.punch = PunchConfig.from_dict(data["punch"])

        return config

    @classmethod
    def exists(cls, data_dir: Optional[Path] = None) -> bool:
        """Check if configuration exists."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        return (data_dir / "config.json").exists()


# Global config instance
_config: Optional[Config] = None


def get_config(data_dir: Optional[Path] = None) -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load(data_dir)
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
