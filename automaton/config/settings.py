"""Centralized configuration for automata.

Configuration can be loaded from YAML files and validated before an
automaton is constructed. Every value has a documented default, so an
automaton built without configuration behaves as described here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from automaton.core.effect import DEFAULT_QUEUE, EffectQueue, FlattenStrategy
from automaton.utils.logging import get_logger
from automaton.utils.result import ConfigError, Err, Ok, Result

logger = get_logger("config.settings")

DEFAULT_CONFIG_FILE = "automaton.yaml"


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    format: str = "json"


@dataclass
class AutomatonConfig:
    """
    Complete automaton configuration.

    Named queues declared here let effects refer to a queue by name; the
    strategy travels with the configuration instead of every effect.
    """

    name: str = "automaton"

    # Strategy of the implicit default queue
    default_strategy: FlattenStrategy = FlattenStrategy.MERGE

    # Named effect queues
    queues: dict[str, FlattenStrategy] = field(default_factory=dict)

    # Log every reply at info level instead of debug
    log_replies: bool = False

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown queue names already warned about
    _unknown_queues: set[str] = field(default_factory=set, init=False, repr=False, compare=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Result["AutomatonConfig", ConfigError]:
        """
        Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Result with loaded config or error
        """
        path = Path(path)

        if not path.exists():
            return Err(ConfigError(
                field="path",
                message=f"Configuration file not found: {path}",
            ))

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            return Err(ConfigError(
                field="yaml",
                message=f"Failed to parse YAML: {e}",
            ))
        except OSError as e:
            return Err(ConfigError(
                field="file",
                message=f"Failed to read config file: {e}",
            ))

        if not isinstance(data, dict):
            return Err(ConfigError(
                field="yaml",
                message=f"Expected a mapping at top level, got {type(data).__name__}",
            ))

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result["AutomatonConfig", ConfigError]:
        """
        Create configuration from a dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Result with loaded config or error
        """
        try:
            default_strategy = FlattenStrategy.parse(data.get("default_strategy", "merge"))
        except ValueError as e:
            return Err(ConfigError(field="default_strategy", message=str(e)))

        queues: dict[str, FlattenStrategy] = {}
        queues_data = data.get("queues") or {}
        if not isinstance(queues_data, dict):
            return Err(ConfigError(
                field="queues",
                message=f"Expected a mapping of queue name to strategy, got {type(queues_data).__name__}",
            ))
        for queue_name, strategy in queues_data.items():
            try:
                queues[str(queue_name)] = FlattenStrategy.parse(strategy)
            except ValueError as e:
                return Err(ConfigError(field=f"queues.{queue_name}", message=str(e)))

        logging_data = data.get("logging") or {}
        logging_config = LoggingConfig(
            level=str(logging_data.get("level", "info")),
            format=str(logging_data.get("format", "json")),
        )

        config = cls(
            name=str(data.get("name", "automaton")),
            default_strategy=default_strategy,
            queues=queues,
            log_replies=bool(data.get("log_replies", False)),
            logging=logging_config,
        )

        validation_result = config.validate()
        if validation_result.is_err():
            return Err(validation_result.unwrap_err())

        return Ok(config)

    def validate(self) -> Result[None, ConfigError]:
        """
        Validate configuration values.

        Returns:
            Result indicating success or validation error
        """
        if not self.name:
            return Err(ConfigError(field="name", message="Must not be empty"))

        if DEFAULT_QUEUE.name in self.queues:
            return Err(ConfigError(
                field=f"queues.{DEFAULT_QUEUE.name}",
                message="Reserved for the default queue; use default_strategy instead",
            ))

        if self.logging.level.lower() not in ("debug", "info", "warn", "warning", "error"):
            return Err(ConfigError(
                field="logging.level",
                message=f"Unknown level '{self.logging.level}'",
            ))

        if self.logging.format not in ("json", "text"):
            return Err(ConfigError(
                field="logging.format",
                message=f"Must be 'json' or 'text', got '{self.logging.format}'",
            ))

        return Ok(None)

    def resolve_queue(self, queue: Union[EffectQueue, str, None]) -> EffectQueue:
        """
        Map an effect's queue field onto an EffectQueue.

        Args:
            queue: EffectQueue, queue name, or None for the default queue

        Returns:
            Resolved EffectQueue
        """
        if queue is None:
            return EffectQueue(DEFAULT_QUEUE.name, self.default_strategy)

        if isinstance(queue, EffectQueue):
            return queue

        strategy = self.queues.get(queue)
        if strategy is None:
            if queue not in self._unknown_queues:
                self._unknown_queues.add(queue)
                logger.warning(
                    "unknown_queue",
                    queue=queue,
                    fallback=self.default_strategy.value,
                )
            strategy = self.default_strategy

        return EffectQueue(queue, strategy)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "default_strategy": self.default_strategy.value,
            "queues": {name: strategy.value for name, strategy in self.queues.items()},
            "log_replies": self.log_replies,
            "logging": {"level": self.logging.level, "format": self.logging.format},
        }


def load_config(path: Optional[Path] = None) -> Result[AutomatonConfig, ConfigError]:
    """
    Load configuration from the standard location.

    Args:
        path: Configuration file (defaults to ./automaton.yaml)

    Returns:
        Result with loaded config, or defaults when no file exists
    """
    if path is None:
        default_path = Path(DEFAULT_CONFIG_FILE)
        if not default_path.exists():
            return Ok(AutomatonConfig())
        path = default_path

    return AutomatonConfig.from_yaml(Path(path))
