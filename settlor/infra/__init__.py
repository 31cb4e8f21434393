"""settlor.infra: configuration. Protocols and adapters import by full path."""

from settlor.infra.config import DEFAULT_ENGINE_CONFIG as DEFAULT_ENGINE_CONFIG
from settlor.infra.config import EngineConfig as EngineConfig
from settlor.infra.config import KeeperConfig as KeeperConfig
from settlor.infra.config import PriceFeedConfig as PriceFeedConfig
