"""
Base types for clab configuration.

- ConfigStatus: VALID / INVALID
- ValidationResult: outcome of validating a configuration value
- HealthCheckResult: outcome of probing the service a config points at
- BaseConfig: the contract every config class fulfils
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ConfigStatus(Enum):
    """Status of configuration validation."""

    VALID = "valid"
    INVALID = "invalid"


@dataclass
class ValidationResult:
    """Result of validating a configuration.

    Attributes:
        status: Overall validation status
        errors: Problems that make the config unusable
        warnings: Problems worth reporting that do not block use
    """

    status: ConfigStatus
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.status == ConfigStatus.VALID

    @classmethod
    def valid(cls, warnings: list[str] | None = None) -> "ValidationResult":
        return cls(status=ConfigStatus.VALID, warnings=warnings or [])

    @classmethod
    def invalid(cls, errors: list[str], warnings: list[str] | None = None) -> "ValidationResult":
        return cls(status=ConfigStatus.INVALID, errors=errors, warnings=warnings or [])

    @classmethod
    def from_checks(cls, errors: list[str], warnings: list[str] | None = None) -> "ValidationResult":
        """Valid when no errors were collected, invalid otherwise."""
        if errors:
            return cls.invalid(errors, warnings)
        return cls.valid(warnings)

    def describe(self) -> str:
        """One line per problem, errors first."""
        lines = [f"error: {e}" for e in self.errors]
        lines.extend(f"warning: {w}" for w in self.warnings)
        return "\n".join(lines)


@dataclass
class HealthCheckResult:
    """Result of a connectivity probe.

    Attributes:
        healthy: Whether the service answered as expected
        service_name: Name of the service checked
        message: Human-readable status message
        latency_ms: Round-trip time in milliseconds, when measured
    """

    healthy: bool
    service_name: str
    message: str
    latency_ms: float | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "service": self.service_name,
            "healthy": self.healthy,
            "message": self.message,
        }
        if self.latency_ms is not None:
            result["latency_ms"] = round(self.latency_ms, 1)
        return result


class BaseConfig(ABC):
    """Contract for configuration classes.

    Subclasses implement:
    - validate(): report missing or malformed values
    - health_check(): probe the remote service the config points at
    - to_dict(): serializable view with secrets masked
    - from_env(): build an instance from config files and the environment
    """

    @abstractmethod
    def validate(self) -> ValidationResult: ...

    @abstractmethod
    def health_check(self, timeout: float = 5.0) -> HealthCheckResult: ...

    @abstractmethod
    def to_dict(self) -> dict[str, Any]: ...

    @classmethod
    @abstractmethod
    def from_env(cls) -> "BaseConfig": ...
