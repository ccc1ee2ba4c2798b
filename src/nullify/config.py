"""Configuration for nullify.

Every setting has a working default; configuration is only needed to change
synthesis behavior or logging output. Sub-configs build the object they
describe, so a NullifyConfig can assemble a ready engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from nullify.backend import DEFAULT_MODULE_NAME, ClassBackend
from nullify.logging import LogFormat, configure_logging, parse_level

if TYPE_CHECKING:
    from nullify.engine import SynthesisEngine
    from nullify.registry import StubRegistry


@dataclass
class EngineConfig:
    """Synthesis behavior.

    Attributes:
        forward_declare: Reserve the registry entry before filling members,
            so self-referential members resolve to the stub being built
        dedupe_members: Reuse one implementation for same-signature members
            inherited from several contracts
    """

    forward_declare: bool = True
    dedupe_members: bool = True


@dataclass
class BackendConfig:
    """Configuration of the class backend."""

    module_name: str = DEFAULT_MODULE_NAME

    def build(self) -> ClassBackend:
        return ClassBackend(module_name=self.module_name)


@dataclass
class LoggingConfig:
    """Logging output."""

    level: str = "INFO"
    format: str = "text"

    def apply(self) -> None:
        """Configure the nullify loggers from this configuration."""
        configure_logging(parse_level(self.level), LogFormat(self.format))


@dataclass
class NullifyConfig:
    """Main configuration, combining all subsystem configurations."""

    scope_name: str = ""
    engine: EngineConfig = field(default_factory=EngineConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metadata: dict[str, Any] = field(default_factory=dict)

    def build_engine(self, registry: StubRegistry | None = None) -> SynthesisEngine:
        """Create a SynthesisEngine wired according to this configuration."""
        from nullify.engine import SynthesisEngine

        return SynthesisEngine(
            registry=registry,
            backend=self.backend.build(),
            config=self.engine,
        )


__all__ = [
    "BackendConfig",
    "EngineConfig",
    "LoggingConfig",
    "NullifyConfig",
]
