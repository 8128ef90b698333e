"""Tests for hook normalization, composition and phase execution."""

import asyncio

import pytest

from restcontract import (
    ConfigurationError,
    ContractServer,
    Endpoint,
    HookPhase,
    HookShortCircuit,
    Request,
    RestApplication,
    router,
)
from restcontract.hooks import HookChain, compose_hooks, normalize_hook, parse_phase, run_phase
from restcontract.models import Reply


def me_contract():
    return router({"get_me": Endpoint(method="GET", path="/me", responses={200: bool})})


def get_me():
    return 200, True


def build_app(route_hooks=None, **options):
    server = ContractServer()
    app = RestApplication()
    leaf = {"handler": get_me, "hooks": route_hooks or {}}
    server.register_router(app, me_contract(), {"get_me": leaf}, log_initialization=False, **options)
    return app


class TestHookShapes:
    """Every supported hook signature is normalized to (request, reply)."""

    pytestmark = pytest.mark.anyio

    async def test_zero_argument_hook(self):
        calls = []
        hook = normalize_hook(lambda: calls.append("called"))
        await hook(Request(method="GET", path="/"), Reply())
        assert calls == ["called"]

    async def test_request_only_hook(self):
        seen = []
        hook = normalize_hook(lambda request: seen.append(request.path))
        await hook(Request(method="GET", path="/me"), Reply())
        assert seen == ["/me"]

    async def test_async_hook(self):
        seen = []

        async def hook(request, reply):
            seen.append(reply.sent)

        await normalize_hook(hook)(Request(method="GET", path="/"), Reply())
        assert seen == [False]

    async def test_done_callback_hook(self):
        calls = []

        def hook(request, reply, done):
            calls.append("called")
            done()

        await normalize_hook(hook)(Request(method="GET", path="/"), Reply())
        assert calls == ["called"]

    async def test_done_callback_called_later(self):
        def hook(request, reply, done):
            asyncio.get_running_loop().call_later(0.01, done)

        await asyncio.wait_for(normalize_hook(hook)(Request(method="GET", path="/"), Reply()), timeout=1)

    async def test_done_callback_with_error_raises(self):
        def hook(request, reply, done):
            done(ValueError("boom"))

        with pytest.raises(ValueError, match="boom"):
            await normalize_hook(hook)(Request(method="GET", path="/"), Reply())

    async def test_done_callback_hook_that_replies_does_not_wait(self):
        def hook(request, reply, done):
            reply.status(403).send("no")

        reply = Reply()
        await asyncio.wait_for(normalize_hook(hook)(Request(method="GET", path="/"), reply), timeout=1)
        assert reply.status_code == 403


class TestPhases:
    """Phase names and chain composition."""

    def test_parse_phase(self):
        assert parse_phase("pre_validation") is HookPhase.PRE_VALIDATION
        assert parse_phase(HookPhase.ON_RESPONSE) is HookPhase.ON_RESPONSE

    def test_too_many_arguments_rejected(self):
        with pytest.raises(ConfigurationError, match="at most"):
            normalize_hook(lambda a, b, c, d: None)

    def test_not_callable_rejected(self):
        with pytest.raises(ConfigurationError, match="not callable"):
            normalize_hook("on_request")

    def test_unknown_phase_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown hook phase 'preValidation'"):
            parse_phase("preValidation")

    def test_global_hooks_come_first(self):
        order = []
        chain = compose_hooks(
            {"on_request": lambda: order.append("global")},
            {"on_request": [lambda: order.append("route-1"), lambda: order.append("route-2")]},
        )
        assert len(chain) == 3
        asyncio.run(run_phase(chain, HookPhase.ON_REQUEST, Request(method="GET", path="/"), Reply()))
        assert order == ["global", "route-1", "route-2"]

    def test_empty_chain(self):
        chain = compose_hooks(None, None)
        assert len(chain) == 0
        assert chain.for_phase(HookPhase.ON_REQUEST) == ()

    def test_short_circuit_stops_remaining_hooks(self):
        calls = []

        def first(request, reply):
            reply.status(401).send({"message": "Unauthorized"})

        chain = compose_hooks({"pre_handler": [first, lambda: calls.append("second")]}, None)
        reply = Reply()
        stopped = asyncio.run(run_phase(chain, HookPhase.PRE_HANDLER, Request(method="GET", path="/"), reply))
        assert stopped is True
        assert calls == []
        assert reply.status_code == 401

    def test_hook_short_circuit_exception(self):
        def deny(request):
            raise HookShortCircuit(429, "slow down")

        chain = HookChain(phases={HookPhase.ON_REQUEST: (normalize_hook(deny),)})
        reply = Reply()
        stopped = asyncio.run(run_phase(chain, HookPhase.ON_REQUEST, Request(method="GET", path="/"), reply))
        assert stopped is True
        assert reply.status_code == 429
        assert reply.body == b"slow down"
        assert reply.headers.get("content-type") == "text/plain; charset=utf-8"


class TestHooksThroughDispatch:
    """Hook execution counts and ordering for a dispatched request."""

    def test_multiple_route_hooks(self):
        called = []

        async def count_async():
            called.append("pre_validation")

        async def count_on_request():
            called.append("on_request")

        def count_with_done(request, reply, done):
            called.append("on_request_done")
            done()

        app = build_app({
            "pre_validation": count_async,
            "on_request": [count_on_request, count_with_done],
        })
        response = app.execute(Request(method="GET", path="/me"))

        assert response.status_code == 200
        assert response.json() is True
        assert len(called) == 3

    def test_global_and_route_hooks_combine(self):
        called = []

        app = build_app(
            {"pre_validation": lambda: called.append("route pre_validation")},
            hooks={
                "on_request": lambda: called.append("global on_request"),
                "pre_validation": lambda: called.append("global pre_validation"),
            },
        )
        response = app.execute(Request(method="GET", path="/me"))

        assert response.status_code == 200
        assert called == ["global on_request", "global pre_validation", "route pre_validation"]

    def test_phases_run_in_lifecycle_order(self):
        called = []
        route_hooks = {phase.value: (lambda name=phase.value: called.append(name)) for phase in HookPhase}

        app = build_app(route_hooks)
        app.execute(Request(method="GET", path="/me"))

        assert called == ["on_request", "pre_parsing", "pre_validation", "pre_handler", "on_response"]

    def test_short_circuit_skips_handler_but_runs_on_response(self):
        called = []

        def deny(request, reply):
            reply.status(401).send({"message": "Unauthorized"})

        app = build_app({
            "pre_handler": deny,
            "on_response": lambda request, reply: called.append(reply.status_code),
        })
        response = app.execute(Request(method="GET", path="/me"))

        assert response.status_code == 401
        assert called == [401]

    def test_failing_hook_is_a_server_error(self):
        def broken():
            raise RuntimeError("hook failed")

        app = build_app({"on_request": broken})
        response = app.execute(Request(method="GET", path="/me"))

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}

    def test_unknown_phase_fails_registration(self):
        server = ContractServer()
        app = RestApplication()
        with pytest.raises(ConfigurationError, match="get_me"):
            server.register_router(
                app, me_contract(), {"get_me": {"handler": get_me, "hooks": {"preHandler": lambda: None}}}
            )
        assert app.routes == []

    def test_unknown_global_phase_fails_registration(self):
        with pytest.raises(ConfigurationError, match="Unknown hook phase"):
            build_app(hooks={"onSend": lambda: None})
