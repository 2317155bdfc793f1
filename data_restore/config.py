"""
Configuration management for the restore tool.
"""
import json
import os
from dataclasses import dataclass, asdict
from data_restore.tree import DEFAULT_TREE_DEPTH


@dataclass
class TreeConfig:
    """Account tree configuration."""
    depth: int = DEFAULT_TREE_DEPTH

    def __post_init__(self):
        if self.depth <= 0:
            raise ValueError("Tree depth must be positive")


@dataclass
class ReplayConfig:
    """Replay configuration."""
    verify_roots: bool = True
    log_interval: int = 1000  # blocks between progress log lines


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9090


@dataclass
class Config:
    """Main configuration."""
    tree: TreeConfig
    replay: ReplayConfig
    monitoring: MonitoringConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(
            tree=TreeConfig(),
            replay=ReplayConfig(),
            monitoring=MonitoringConfig()
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        return cls(
            tree=TreeConfig(**data.get('tree', {})),
            replay=ReplayConfig(**data.get('replay', {})),
            monitoring=MonitoringConfig(**data.get('monitoring', {}))
        )

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_file(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'tree': asdict(self.tree),
            'replay': asdict(self.replay),
            'monitoring': asdict(self.monitoring)
        }
