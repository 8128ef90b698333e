"""Options accepted when registering a contract router."""

from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Mapping, Optional

from .exceptions import ConfigurationError
from .hooks import parse_phase

_POLICIES = ("warn", "error", "ignore")


@dataclass(frozen=True)
class RouterOptions:
    """Configuration for one ``register_router`` call.

    Attributes:
        response_validation: Validate handler results against their declared
            response schema. Structured responses are also stripped of fields
            the schema does not declare. Off by default.

        request_validation_error_handler: ``(error, request, reply)`` callable
            (sync or async) that replaces the default 400 response when request
            validation fails. It must send on the reply.

        hooks: Global hooks, ``phase -> hook | [hooks]``. They run before the
            route-scoped hooks of the same phase on every endpoint.

        log_initialization: Log each bound route at INFO level.

        unknown_status_policy: What to do when a handler returns a status the
            contract does not declare: "warn" (log and pass through), "error"
            (raise ResponseValidationError) or "ignore".
    """

    response_validation: bool = False
    request_validation_error_handler: Optional[Callable[..., Any]] = None
    hooks: Mapping[str, Any] = field(default_factory=dict)
    log_initialization: bool = True
    unknown_status_policy: str = "warn"

    def validate(self):
        """Check option values, raising ConfigurationError on the first bad one."""
        if not isinstance(self.response_validation, bool):
            raise ConfigurationError("response_validation must be a bool")
        if self.request_validation_error_handler is not None and not callable(self.request_validation_error_handler):
            raise ConfigurationError("request_validation_error_handler must be callable")
        if not isinstance(self.hooks, Mapping):
            raise ConfigurationError("hooks must be a mapping of phase to hook(s)")
        for phase in self.hooks:
            parse_phase(phase)
        if self.unknown_status_policy not in _POLICIES:
            raise ConfigurationError(
                f"unknown_status_policy must be one of {', '.join(_POLICIES)}, got {self.unknown_status_policy!r}"
            )

    @classmethod
    def from_kwargs(cls, **options: Any) -> "RouterOptions":
        """Build options from keyword arguments, rejecting unknown names."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"Unknown router option(s): {', '.join(unknown)}")
        config = cls(**options)
        config.validate()
        return config

    def merged(self, overrides: Dict[str, Any]) -> "RouterOptions":
        """Return a copy with ``overrides`` applied (used by plugin registration)."""
        if not overrides:
            return self
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(overrides)
        return type(self).from_kwargs(**values)
