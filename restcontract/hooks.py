"""
Lifecycle hooks: phases, normalization and global/route composition.

Every hook is normalized at registration into one shape, an async callable
taking ``(request, reply)``. The accepted user-facing shapes are::

    def hook(): ...
    def hook(request): ...
    async def hook(request, reply): ...
    def hook(request, reply, done): ...   # must call done() or send the reply

A hook ends the request early by sending on the reply or by raising
HookShortCircuit; the remaining hooks, validation and the handler are skipped.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Tuple

from .exceptions import ConfigurationError, HookShortCircuit

logger = logging.getLogger(__name__)

NormalizedHook = Callable[[Any, Any], Awaitable[None]]


class HookPhase(str, Enum):
    """Lifecycle phases, declared in execution order."""

    ON_REQUEST = "on_request"
    PRE_PARSING = "pre_parsing"
    PRE_VALIDATION = "pre_validation"
    PRE_HANDLER = "pre_handler"
    ON_RESPONSE = "on_response"


PHASE_ORDER: Tuple[HookPhase, ...] = tuple(HookPhase)


def parse_phase(name: Any) -> HookPhase:
    if isinstance(name, HookPhase):
        return name
    try:
        return HookPhase(name)
    except ValueError:
        valid = ", ".join(phase.value for phase in PHASE_ORDER)
        raise ConfigurationError(f"Unknown hook phase {name!r}; expected one of: {valid}") from None


def _positional_arity(func: Callable) -> int:
    """Number of positional arguments a hook wants (``*args`` counts as two)."""
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        # Builtins without signatures get the common (request, reply) shape
        return 2

    count = 0
    for param in sig.parameters.values():
        if param.kind == inspect.Parameter.VAR_POSITIONAL:
            return max(count, 2)
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            if param.default is inspect.Parameter.empty:
                count += 1
    return count


def normalize_hook(func: Callable) -> NormalizedHook:
    """Wrap a user hook into an async ``(request, reply)`` callable."""
    if not callable(func):
        raise ConfigurationError(f"Hook {func!r} is not callable")

    arity = _positional_arity(func)
    if arity > 3:
        raise ConfigurationError(
            f"Hook {getattr(func, '__qualname__', func)!r} takes {arity} arguments; "
            "hooks accept at most (request, reply, done)"
        )

    if arity == 3:
        async def with_done(request, reply):
            loop = asyncio.get_running_loop()
            completed = loop.create_future()

            def done(error: Optional[BaseException] = None) -> None:
                def settle():
                    if completed.done():
                        return
                    if error is not None:
                        completed.set_exception(error)
                    else:
                        completed.set_result(None)
                loop.call_soon_threadsafe(settle)

            result = func(request, reply, done)
            if inspect.isawaitable(result):
                await result
            if reply.sent and not completed.done():
                # Sending the reply completes the hook as well
                return
            await completed

        with_done.__wrapped__ = func  # type: ignore[attr-defined]
        return with_done

    async def call(request, reply):
        args = (request, reply)[:arity]
        result = func(*args)
        if inspect.isawaitable(result):
            await result

    call.__wrapped__ = func  # type: ignore[attr-defined]
    return call


def _as_list(value: Any) -> Sequence[Callable]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def normalize_hook_config(hooks: Optional[Mapping[Any, Any]]) -> Dict[HookPhase, Tuple[NormalizedHook, ...]]:
    """Normalize a ``phase -> hook | [hooks]`` mapping, keeping declared order."""
    normalized: Dict[HookPhase, Tuple[NormalizedHook, ...]] = {}
    for name, value in (hooks or {}).items():
        phase = parse_phase(name)
        normalized[phase] = normalized.get(phase, ()) + tuple(normalize_hook(h) for h in _as_list(value))
    return normalized


@dataclass(frozen=True)
class HookChain:
    """Per-phase hook lists for one endpoint, global hooks first."""

    phases: Mapping[HookPhase, Tuple[NormalizedHook, ...]]

    def for_phase(self, phase: HookPhase) -> Tuple[NormalizedHook, ...]:
        return self.phases.get(phase, ())

    def __len__(self) -> int:
        return sum(len(hooks) for hooks in self.phases.values())


def compose_hooks(
    global_hooks: Optional[Mapping[Any, Any]],
    route_hooks: Optional[Mapping[Any, Any]],
) -> HookChain:
    """Merge global and route hooks per phase: global hooks run first."""
    global_normalized = normalize_hook_config(global_hooks)
    route_normalized = normalize_hook_config(route_hooks)

    phases = {}
    for phase in PHASE_ORDER:
        hooks = global_normalized.get(phase, ()) + route_normalized.get(phase, ())
        if hooks:
            phases[phase] = hooks
    return HookChain(phases=phases)


async def run_phase(chain: HookChain, phase: HookPhase, request: Any, reply: Any) -> bool:
    """Run one phase's hooks in order.

    Returns:
        True if a hook short-circuited the request (the reply was sent).
    """
    for hook in chain.for_phase(phase):
        try:
            await hook(request, reply)
        except HookShortCircuit as stop:
            if not reply.sent:
                reply.status(stop.status)
                if stop.content_type:
                    reply.type(stop.content_type)
                reply.send(stop.body)
            logger.debug(f"{phase.value} hook short-circuited {request.method.value} {request.path} with {reply.status_code}")
            return True
        if reply.sent and phase is not HookPhase.ON_RESPONSE:
            logger.debug(f"{phase.value} hook replied to {request.method.value} {request.path} with {reply.status_code}")
            return True
    return False
