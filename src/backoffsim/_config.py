"""
Global configuration for backoffsim.

This module provides a simple configuration system following Convention over Configuration (CoC).
Users can optionally call BACKOFFSIM.configure() before building scenarios to customize defaults.
If not called, sensible defaults are used.

Hierarchy of precedence (highest to lowest):
1. Arguments passed directly to constructors (Scenario, ExponentialBackoff, ...)
2. Values set via BACKOFFSIM.configure()
3. Environment variables (BACKOFFSIM_*) - when allow_env_override=True
4. Hardcoded defaults (in dataclass fields)

Example:
    >>> from backoffsim import BACKOFFSIM
    >>>
    >>> # Pre-loaded with defaults + env vars
    >>> limit = BACKOFFSIM.config.server.limit
    >>>
    >>> # Custom configuration
    >>> BACKOFFSIM.configure(
    ...     backoff={"jitter_percent": 0.5},
    ...     server={"limit": 10},
    ... )
"""

from __future__ import annotations

import math
import os
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from typing import Any, Self

from backoffsim._backoff import JitterRandomize

# =============================================================================
# Exceptions
# =============================================================================


class ConfigEnvVarError(ValueError):
    """Raised when an environment variable has an invalid value."""

    def __init__(
        self,
        env_var: str,
        value: str,
        expected_type: str,
        cause: Exception | None = None,
    ):
        self.env_var = env_var
        self.value = value
        self.expected_type = expected_type
        super().__init__(f"Invalid value for {env_var}: '{value}' (expected {expected_type})")
        self.__cause__ = cause


class ConfigValidationError(ValueError):
    """Raised when a configuration value fails validation."""

    def __init__(
        self,
        field: str,
        value: Any,
        message: str,
        section: str | None = None,
    ):
        self.field = field
        self.value = value
        self.section = section
        prefix = f"[{section}] " if section else ""
        super().__init__(f"{prefix}Invalid value for '{field}': {value!r}. {message}")


# =============================================================================
# Environment Variables
# =============================================================================


class EnvVars:
    """
    Utility class for reading environment variables with type conversion.

    Example:
        >>> EnvVars.get("BACKOFFSIM_SERVER_LIMIT", type_hint=int)
        10
        >>> EnvVars.get("UNDEFINED_VAR")
        None
    """

    @staticmethod
    def get(
        var_name: str,
        type_hint: Any = str,
        converter: Callable[[str], Any] | None = None,
    ) -> Any:
        """
        Read an environment variable with optional type conversion.

        Args:
            var_name: The environment variable name.
            type_hint: Type hint used to infer the converter (ignored if converter is provided).
            converter: Custom converter function (takes precedence over type_hint).

        Returns:
            The converted value, or None if env var is not set/empty.

        Raises:
            ConfigEnvVarError: If the value cannot be converted.
        """
        raw_value = os.environ.get(var_name)
        if not raw_value:  # None or empty string
            return None

        actual_converter = converter or EnvVars._infer_converter(type_hint)
        try:
            return actual_converter(raw_value)
        except (ValueError, TypeError) as e:
            raise ConfigEnvVarError(
                env_var=var_name,
                value=raw_value,
                expected_type=type_hint.__name__ if hasattr(type_hint, "__name__") else str(type_hint),
                cause=e,
            ) from e

    @staticmethod
    def _infer_converter(type_hint: Any) -> Callable[[str], Any]:
        """
        Infer converter function from type hint.

        Handles both actual types and string annotations (PEP 563).
        """
        type_str = str(type_hint)

        if type_hint is int or type_str in ("int", "int | None"):
            return int
        if type_hint is float or type_str in ("float", "float | None"):
            return float
        if type_hint is bool or type_str == "bool":
            return lambda v: v.lower() in ("true", "1", "yes")
        return str


# =============================================================================
# Base Class
# =============================================================================


@dataclass(frozen=True)
class OverridableConfig:
    """
    Base class for immutable configuration dataclasses.

    Provides `.with_overrides()` for creating new instances with partial
    field updates, and `.with_env_vars()` for applying the env vars declared
    in field metadata.

    Example:
        >>> config = ServerConfig()
        >>> custom = config.with_overrides({"limit": 10})
        >>> custom.limit
        10
    """

    def with_overrides(
        self,
        overrides: dict[str, Any],
        allow_none_fields: set[str] | None = None,
    ) -> Self:
        """
        Return a new instance with specified fields overridden.

        Args:
            overrides: Dict of field names to new values.
                       Only existing fields are allowed.
            allow_none_fields: Set of field names that accept None as a valid value.
                       By default, None values are filtered out.

        Returns:
            New instance with updated values.

        Raises:
            ValueError: If overrides contains unknown field names.
        """
        if not overrides:
            return self

        valid_fields = {f.name for f in fields(self)}
        invalid_fields = set(overrides.keys()) - valid_fields

        if invalid_fields:
            raise ValueError(
                f"Unknown config fields: {invalid_fields}. "
                f"Valid fields are: {valid_fields}"
            )

        allow_none = allow_none_fields or set()
        filtered = {k: v for k, v in overrides.items() if v is not None or k in allow_none}
        return replace(self, **filtered) if filtered else self

    def with_env_vars(self) -> Self:
        """
        Return new instance with environment variables applied.

        Reads env vars declared in field metadata and applies them as overrides.

        Raises:
            ConfigEnvVarError: If an env var has an invalid value.
        """
        overrides: dict[str, Any] = {}
        for f in fields(self):
            env_var = f.metadata.get("env")
            if env_var:
                value = EnvVars.get(
                    var_name=env_var,
                    type_hint=f.type,
                    converter=f.metadata.get("converter"),
                )
                if value is not None:
                    overrides[f.name] = value
        return self.with_overrides(overrides)


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass(frozen=True)
class BackoffConfig(OverridableConfig):
    """
    Configuration for the exponential backoff generator.

    Out-of-range jitter values are accepted on purpose: they produce extreme
    but well-defined delays, which is useful when exploring strategies.

    Attributes:
        base: Exponential growth factor.
            Env var: BACKOFFSIM_BACKOFF_BASE

        start: Delay at attempt 0, in time-units.
            Env var: BACKOFFSIM_BACKOFF_START

        ceiling: Upper clamp on the unjittered delay ("inf" for none).
            Env var: BACKOFFSIM_BACKOFF_CEILING

        jitter_percent: Fraction of the delay subject to randomization.
            Env var: BACKOFFSIM_BACKOFF_JITTER_PERCENT

        jitter_bias: Bias added as a fraction of the delay.
            Env var: BACKOFFSIM_BACKOFF_JITTER_BIAS

        jitter_randomize: "each" (fresh draw per call) or "once" (one draw per generator).
            Env var: BACKOFFSIM_BACKOFF_JITTER_RANDOMIZE

    Example:
        >>> from backoffsim import BACKOFFSIM
        >>> BACKOFFSIM.configure(backoff={"jitter_percent": 0.5, "ceiling": 10_000})
    """

    base: float = field(default=2.0, metadata={"env": "BACKOFFSIM_BACKOFF_BASE"})
    start: float = field(default=1_000.0, metadata={"env": "BACKOFFSIM_BACKOFF_START"})
    ceiling: float = field(default=math.inf, metadata={"env": "BACKOFFSIM_BACKOFF_CEILING"})
    jitter_percent: float = field(default=1.0, metadata={"env": "BACKOFFSIM_BACKOFF_JITTER_PERCENT"})
    jitter_bias: float = field(default=0.0, metadata={"env": "BACKOFFSIM_BACKOFF_JITTER_BIAS"})
    jitter_randomize: JitterRandomize = field(
        default="each",
        metadata={"env": "BACKOFFSIM_BACKOFF_JITTER_RANDOMIZE", "converter": str.lower},
    )

    def validate(self) -> Self:
        """Validate backoff configuration fields."""
        valid_modes = ("once", "each")
        if self.jitter_randomize not in valid_modes:
            raise ConfigValidationError(
                "jitter_randomize", self.jitter_randomize,
                f"Must be one of: {valid_modes}.", section="backoff"
            )
        return self

    # -------------------------------------------------------------------------
    # Presets
    # -------------------------------------------------------------------------

    @classmethod
    def no_jitter(cls, start: float = 1_000.0, ceiling: float = math.inf) -> BackoffConfig:
        """Plain exponential backoff: every client retries at the same instants."""
        return cls(start=start, ceiling=ceiling, jitter_percent=0.0)

    @classmethod
    def half_jitter(cls, start: float = 1_000.0, ceiling: float = math.inf) -> BackoffConfig:
        """Randomize the upper half of each delay, redrawn per call."""
        return cls(start=start, ceiling=ceiling, jitter_percent=0.5, jitter_randomize="each")

    @classmethod
    def full_jitter(cls, start: float = 1_000.0, ceiling: float = math.inf) -> BackoffConfig:
        """Spread each delay uniformly over [0, delay], redrawn per call."""
        return cls(
            start=start, ceiling=ceiling,
            jitter_percent=1.0, jitter_bias=0.0, jitter_randomize="each",
        )

    @classmethod
    def fixed_random(cls, start: float = 1_000.0, ceiling: float = math.inf) -> BackoffConfig:
        """Full jitter with a single draw per generator, reused on every retry."""
        return cls(
            start=start, ceiling=ceiling,
            jitter_percent=1.0, jitter_bias=0.0, jitter_randomize="once",
        )


@dataclass(frozen=True)
class ServerConfig(OverridableConfig):
    """
    Configuration for the simulated rate-limited server.

    Attributes:
        limit: Requests accepted per window.
            Env var: BACKOFFSIM_SERVER_LIMIT

        window_length: Window duration in time-units.
            Env var: BACKOFFSIM_SERVER_WINDOW_LENGTH
    """

    limit: int = field(default=100, metadata={"env": "BACKOFFSIM_SERVER_LIMIT"})
    window_length: float = field(default=1_000.0, metadata={"env": "BACKOFFSIM_SERVER_WINDOW_LENGTH"})

    def validate(self) -> Self:
        """Server values are never rejected; any limit gives a defined run."""
        return self


@dataclass(frozen=True)
class ClientConfig(OverridableConfig):
    """
    Configuration for simulated retrying clients.

    Attributes:
        max_retries: Attempt ceiling. A request still rejected on attempt
            `max_retries + 1` is abandoned.
            Env var: BACKOFFSIM_CLIENT_MAX_RETRIES
    """

    max_retries: int = field(default=100, metadata={"env": "BACKOFFSIM_CLIENT_MAX_RETRIES"})

    def validate(self) -> Self:
        """Validate client configuration fields."""
        if self.max_retries < 0:
            raise ConfigValidationError(
                "max_retries", self.max_retries,
                "Must be greater than or equal to 0.", section="client"
            )
        return self


@dataclass(frozen=True)
class SimulationConfig(OverridableConfig):
    """
    Configuration for scenario runs.

    Attributes:
        client_count: Number of clients per scenario.
            Env var: BACKOFFSIM_SIMULATION_CLIENT_COUNT

        bucket_size: Sampler bucket width in time-units.
            Env var: BACKOFFSIM_SIMULATION_BUCKET_SIZE

        quantiles: Quantiles reported for each run (not env-configurable).

        random_seed: Seed for reproducible runs (None = random).
            Env var: BACKOFFSIM_SIMULATION_RANDOM_SEED

        max_buckets: Maximum buckets shown by renderers, usually the display
            width (None = no limit).
            Env var: BACKOFFSIM_SIMULATION_MAX_BUCKETS
    """

    client_count: int = field(default=1_000, metadata={"env": "BACKOFFSIM_SIMULATION_CLIENT_COUNT"})
    bucket_size: float = field(default=1_000.0, metadata={"env": "BACKOFFSIM_SIMULATION_BUCKET_SIZE"})
    quantiles: tuple[float, ...] = (0.95, 0.5, 0.05)
    random_seed: int | None = field(default=None, metadata={"env": "BACKOFFSIM_SIMULATION_RANDOM_SEED"})
    max_buckets: int | None = field(default=None, metadata={"env": "BACKOFFSIM_SIMULATION_MAX_BUCKETS"})

    def validate(self) -> Self:
        """Validate simulation configuration fields."""
        if self.client_count < 0:
            raise ConfigValidationError(
                "client_count", self.client_count,
                "Must be greater than or equal to 0.", section="simulation"
            )
        if self.bucket_size <= 0:
            raise ConfigValidationError(
                "bucket_size", self.bucket_size,
                "Must be greater than 0.", section="simulation"
            )
        if not all(isinstance(q, int | float) for q in self.quantiles):
            raise ConfigValidationError(
                "quantiles", self.quantiles,
                "Must contain only numbers.", section="simulation"
            )
        if self.max_buckets is not None and self.max_buckets <= 0:
            raise ConfigValidationError(
                "max_buckets", self.max_buckets,
                "Must be greater than 0 (or None for unlimited).", section="simulation"
            )
        return self


@dataclass(frozen=True)
class BackoffSimConfig:
    """
    Global configuration for backoffsim.

    Aggregates all configuration sections: backoff, server, client and simulation.
    Access via the global `BACKOFFSIM.config` property.

    Example:
        >>> from backoffsim import BACKOFFSIM
        >>> BACKOFFSIM.config.backoff.jitter_randomize
        'each'
        >>> BACKOFFSIM.config.server.limit
        100
    """

    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    def with_env_vars(self) -> BackoffSimConfig:
        """
        Return a new config with BACKOFFSIM_* environment variables applied on top.
        """
        return BackoffSimConfig(
            backoff=self.backoff.with_env_vars(),
            server=self.server.with_env_vars(),
            client=self.client.with_env_vars(),
            simulation=self.simulation.with_env_vars(),
        )

    def with_section_overrides(
        self,
        *,
        backoff: dict[str, Any] | None = None,
        server: dict[str, Any] | None = None,
        client: dict[str, Any] | None = None,
        simulation: dict[str, Any] | None = None,
    ) -> BackoffSimConfig:
        """
        Return a new config with overrides applied to nested sections.

        Each section dict is merged with the existing section config,
        only overriding the specified fields.
        """
        return BackoffSimConfig(
            backoff=self.backoff.with_overrides(backoff or {}),
            server=self.server.with_overrides(server or {}),
            client=self.client.with_overrides(client or {}),
            simulation=self.simulation.with_overrides(
                simulation or {}, allow_none_fields={"random_seed", "max_buckets"}
            ),
        )

    def validate(self) -> BackoffSimConfig:
        """Validate every section."""
        self.backoff.validate()
        self.server.validate()
        self.client.validate()
        self.simulation.validate()
        return self

    def explain_data(self) -> dict[str, dict[str, Any]]:
        """Return config values grouped by section, for debugging output."""
        return {
            section_name: {
                f.name: getattr(getattr(self, section_name), f.name)
                for f in fields(getattr(self, section_name))
            }
            for section_name in ("backoff", "server", "client", "simulation")
        }


# =============================================================================
# Global Configuration Singleton
# =============================================================================


class _BackoffSim:
    """
    Singleton for backoffsim configuration.

    Use `BACKOFFSIM.configure()` to customize settings and `BACKOFFSIM.config`
    to access current configuration.
    """

    def __init__(self) -> None:
        """Initialize with defaults and environment variables."""
        self._config: BackoffSimConfig = BackoffSimConfig().with_env_vars()

    def configure(
        self,
        *,
        backoff: dict[str, Any] | None = None,
        server: dict[str, Any] | None = None,
        client: dict[str, Any] | None = None,
        simulation: dict[str, Any] | None = None,
        allow_env_override: bool = True,
    ) -> BackoffSimConfig:
        """
        Configure simulation defaults.

        Args:
            backoff: Backoff generator overrides (base, start, jitter_percent, ...).
            server: Server overrides (limit, window_length).
            client: Client overrides (max_retries).
            simulation: Scenario overrides (client_count, bucket_size, random_seed, ...).
            allow_env_override: If True (default), env vars are used as fallback
                for fields NOT provided. If False, ignores env vars entirely.

        Returns:
            The configured BackoffSimConfig instance.

        Raises:
            ValueError: If any dict contains unknown field names.
            ConfigValidationError: If any config value fails validation.
        """
        base = BackoffSimConfig()
        if allow_env_override:
            base = base.with_env_vars()

        self._config = base.with_section_overrides(
            backoff=backoff,
            server=server,
            client=client,
            simulation=simulation,
        )
        return self.validate()

    @property
    def config(self) -> BackoffSimConfig:
        """Access current configuration (read-only)."""
        return self._config

    def reset(self) -> BackoffSimConfig:
        """
        Reset configuration to defaults + env vars.

        Useful for testing to ensure clean state between tests.
        """
        self._config = BackoffSimConfig().with_env_vars()
        return self.validate()

    def validate(self) -> BackoffSimConfig:
        """
        Validate current configuration.

        Raises:
            ConfigValidationError: If any config value is invalid.
        """
        return self._config.validate()

    def explain(self, output: Callable[[str], None] = print) -> None:
        """
        Print current configuration, one field per line.

        Args:
            output: Callable to output each line. Defaults to print.
                    Can be used with logging: `BACKOFFSIM.explain(logger.info)`
        """
        name_width = 20

        output("backoffsim configuration:")
        output("=" * 50)
        for section_name, values in self._config.explain_data().items():
            output(f"[{section_name}]")
            for name, value in values.items():
                dots = "." * (name_width - len(name))
                output(f"  {name} {dots} {value}")
        output("=" * 50)

    def __repr__(self) -> str:
        return f"BACKOFFSIM(config={self._config!r})"


# Global singleton instance - always reflects current configuration
BACKOFFSIM: _BackoffSim = _BackoffSim()
BACKOFFSIM.validate()  # Validate defaults + env vars on module load
