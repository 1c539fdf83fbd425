"""Tests for MainManager — poll, execution, streaming completion."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from pollex.engine.errors import PollexError
from pollex.engine.events import EventEmitter
from pollex.engine.main import MainManager, PollResponse, error_params
from pollex.engine.registry import CommandManager
from pollex.engine.results import ResultType


def _wire(response: PollResponse) -> list[dict[str, Any]]:
    return [
        {"exId": r.ex_id, "type": r.type.value, "params": r.params} for r in response.results
    ]


def _for(response: PollResponse, ex_id: Any) -> list[dict[str, Any]]:
    return [env for env in _wire(response) if env["exId"] == ex_id]


class TestPollValidation:
    def test_empty_and_absent_batches(self, engine: MainManager) -> None:
        assert engine.poll() == PollResponse()
        assert engine.poll([]) == PollResponse()

    def test_missing_ex_id(self, engine: MainManager) -> None:
        response = engine.poll([{"command": "x"}])

        assert [e.name for e in response.errors] == ["RequiredExecutionId"]
        assert response.errors[0].message == "Execution ID is required"
        assert response.errors[0].executions_obj == {"command": "x"}
        assert engine.pending == 0

    def test_missing_command(self, engine: MainManager) -> None:
        response = engine.poll([{"exId": "1"}])

        assert [e.name for e in response.errors] == ["RequiredCommandName"]
        assert response.errors[0].message == "Command name is required"
        assert engine.pending == 0

    @pytest.mark.parametrize("item", ["text", 3, None, [1]])
    def test_non_object_item(self, engine: MainManager, item: Any) -> None:
        response = engine.poll([item])
        assert [e.name for e in response.errors] == ["InvalidExecution"]

    @pytest.mark.parametrize("ex_id", [1.5, True, ["a"], {"a": 1}])
    def test_unsupported_ex_id_type(self, engine: MainManager, ex_id: Any) -> None:
        response = engine.poll([{"exId": ex_id, "command": "demo.add"}])
        assert [e.name for e in response.errors] == ["InvalidExecution"]

    def test_missing_command_reported_before_ex_id_type(self, engine: MainManager) -> None:
        response = engine.poll([{"exId": 1.5}])
        assert [e.name for e in response.errors] == ["RequiredCommandName"]

    @pytest.mark.asyncio
    async def test_invalid_items_do_not_block_valid_ones(
        self, engine: MainManager
    ) -> None:
        response = engine.poll(
            [
                {"command": "demo.add"},
                {"exId": "ok", "command": "demo.add", "params": {"a": 1, "b": 2}},
                {"exId": "2"},
            ]
        )
        assert [e.name for e in response.errors] == [
            "RequiredExecutionId",
            "RequiredCommandName",
        ]

        await engine.join()
        assert _wire(engine.poll()) == [{"exId": "ok", "type": "FINAL", "params": 3}]

    def test_validation_errors_never_buffered(self, engine: MainManager) -> None:
        engine.poll([{"command": "x"}])
        assert engine.poll() == PollResponse()

    def test_errors_serialize_with_client_keys(self, engine: MainManager) -> None:
        wire = engine.poll([{"exId": "1"}]).to_wire()
        assert wire["results"] == []
        assert wire["errors"] == [
            {
                "name": "RequiredCommandName",
                "message": "Command name is required",
                "executionsObj": {"exId": "1"},
            }
        ]


class TestPlainCommands:
    @pytest.mark.asyncio
    async def test_poll_returns_before_execution(self, engine: MainManager, demo) -> None:
        response = engine.poll([{"exId": "1", "command": "demo.add", "params": {"a": 1, "b": 1}}])

        assert response.results == []
        assert demo.calls == []
        assert engine.pending == 1

        await engine.join()
        assert demo.calls == [{"a": 1, "b": 1}]

    @pytest.mark.asyncio
    async def test_final_result(self, engine: MainManager) -> None:
        engine.poll([{"exId": "1", "command": "demo.add", "params": {"a": 2, "b": 3}}])
        await engine.join()

        assert _wire(engine.poll()) == [{"exId": "1", "type": "FINAL", "params": 5}]
        assert engine.pending == 0

    @pytest.mark.asyncio
    async def test_async_handler(self, engine: MainManager) -> None:
        engine.poll([{"exId": "1", "command": "demo.slowAdd", "params": {"a": 2, "b": 2}}])
        await engine.join()
        assert _wire(engine.poll()) == [{"exId": "1", "type": "FINAL", "params": 4}]

    @pytest.mark.asyncio
    async def test_drain_is_once_per_poll(self, engine: MainManager) -> None:
        engine.poll([{"exId": "1", "command": "demo.add", "params": {"a": 0, "b": 0}}])
        await engine.join()

        assert len(engine.poll().results) == 1
        assert engine.poll().results == []

    @pytest.mark.asyncio
    async def test_root_command_without_params(self, engine: MainManager) -> None:
        engine.poll([{"exId": "1", "command": "sub.missing"}, {"exId": "2", "command": "getSubmanagers"}])
        await engine.join()

        final = _for(engine.poll(), "2")
        assert final == [{"exId": "2", "type": "FINAL", "params": {"demo": {"class": "DemoManager"}}}]

    @pytest.mark.asyncio
    async def test_integer_ex_id(self, engine: MainManager) -> None:
        engine.poll([{"exId": 42, "command": "demo.add", "params": {"a": 1, "b": 1}}])
        await engine.join()
        assert _wire(engine.poll()) == [{"exId": 42, "type": "FINAL", "params": 2}]


class TestErrors:
    @pytest.mark.asyncio
    async def test_command_not_found(self, engine: MainManager) -> None:
        engine.poll([{"exId": "1", "command": "demo.nope"}])
        await engine.join()

        assert _wire(engine.poll()) == [
            {
                "exId": "1",
                "type": "ERROR",
                "params": {
                    "name": "CommandNotFound",
                    "message": "Command not found: nope",
                    "params": {"name": "nope"},
                },
            }
        ]

    @pytest.mark.asyncio
    async def test_manager_not_found(self, engine: MainManager) -> None:
        engine.poll([{"exId": "1", "command": "x.b"}])
        await engine.join()

        (env,) = _wire(engine.poll())
        assert env["type"] == "ERROR"
        assert env["params"]["name"] == "ManagerNotFound"
        assert env["params"]["params"] == {"name": "x"}

    @pytest.mark.asyncio
    async def test_handler_exception(self, engine: MainManager) -> None:
        engine.poll([{"exId": "1", "command": "demo.boom"}])
        await engine.join()

        assert _wire(engine.poll()) == [
            {
                "exId": "1",
                "type": "ERROR",
                "params": {"name": "RuntimeError", "message": "handler exploded", "params": {}},
            }
        ]

    @pytest.mark.asyncio
    async def test_failure_isolated_from_siblings(self, engine: MainManager) -> None:
        engine.poll(
            [
                {"exId": "bad", "command": "demo.boom"},
                {"exId": "good", "command": "demo.add", "params": {"a": 1, "b": 1}},
            ]
        )
        await engine.join()

        response = engine.poll()
        assert _for(response, "bad")[0]["type"] == "ERROR"
        assert _for(response, "good") == [{"exId": "good", "type": "FINAL", "params": 2}]

    @pytest.mark.asyncio
    async def test_non_string_command(self, engine: MainManager) -> None:
        engine.poll([{"exId": "1", "command": 5}])
        await engine.join()

        (env,) = _wire(engine.poll())
        assert env["type"] == "ERROR"
        assert env["params"]["name"] == "TypeError"


class TestErrorParams:
    def test_pollex_error(self) -> None:
        err = PollexError("bad", {"k": 1})
        assert error_params(err) == {"name": "PollexError", "message": "bad", "params": {"k": 1}}

    def test_exception_with_params_attribute(self) -> None:
        exc = ValueError("nope")
        exc.params = {"field": "x"}  # type: ignore[attr-defined]
        assert error_params(exc) == {
            "name": "ValueError",
            "message": "nope",
            "params": {"field": "x"},
        }

    def test_exception_with_non_string_argument_keeps_name(self) -> None:
        assert error_params(KeyError(2)) == {"name": "KeyError", "message": "2", "params": {}}
        assert error_params(RuntimeError({"code": 7})) == {
            "name": "RuntimeError",
            "message": "{'code': 7}",
            "params": {},
        }

    def test_non_exception_value_wrapped(self) -> None:
        assert error_params(404) == {"err": 404}

    @pytest.mark.asyncio
    async def test_lookup_failure_through_engine(self) -> None:
        main = MainManager()
        main.register("lookup", lambda params: {1: "a"}[params["key"]])

        main.poll([{"exId": "1", "command": "lookup", "params": {"key": 2}}])
        await main.join()

        assert _wire(main.poll()) == [
            {
                "exId": "1",
                "type": "ERROR",
                "params": {"name": "KeyError", "message": "2", "params": {}},
            }
        ]


class TestMonitors:
    @pytest.mark.asyncio
    async def test_lifecycle(self, engine: MainManager, emitter: EventEmitter, settle) -> None:
        engine.poll([{"exId": "m", "command": "demo.watch", "params": {"event": "e"}}])
        await settle()
        assert "m" in engine.monitor_manager

        for value in ("a", "b", "c"):
            emitter.emit("e", value)

        before = engine.poll()
        assert _for(before, "m") == [
            {"exId": "m", "type": "PARTIAL", "params": {"args": ["a"]}},
            {"exId": "m", "type": "PARTIAL", "params": {"args": ["b"]}},
            {"exId": "m", "type": "PARTIAL", "params": {"args": ["c"]}},
        ]

        engine.poll([{"exId": "stop", "command": "stopMonitor", "params": {"monitorId": "m"}}])
        await engine.join()
        emitter.emit("e", "ignored")

        after = engine.poll()
        assert _for(after, "m") == [
            {
                "exId": "m",
                "type": "ERROR",
                "params": {"name": "StopMonitor", "message": "Monitor stopped", "params": {}},
            }
        ]
        assert _for(after, "stop") == [{"exId": "stop", "type": "FINAL", "params": True}]
        assert emitter.listener_count("e") == 0
        assert "m" not in engine.monitor_manager

    @pytest.mark.asyncio
    async def test_no_terminal_until_cancelled(
        self, engine: MainManager, emitter: EventEmitter, settle
    ) -> None:
        engine.poll([{"exId": "m", "command": "demo.watch"}])
        await settle()
        emitter.emit("e", 1)
        await settle()

        types = [env["type"] for env in _for(engine.poll(), "m")]
        assert types == ["PARTIAL"]
        assert engine.pending == 1

        engine.stop_monitor({"monitorId": "m"})
        await engine.join()

    @pytest.mark.asyncio
    async def test_stop_matches_ids_across_str_and_int(self, engine: MainManager, settle) -> None:
        engine.poll([{"exId": 7, "command": "demo.watch"}])
        await settle()

        engine.poll([{"exId": "s", "command": "stopMonitor", "params": {"monitorId": "7"}}])
        await engine.join()

        response = engine.poll()
        assert _for(response, "s") == [{"exId": "s", "type": "FINAL", "params": True}]
        (end,) = _for(response, 7)
        assert end["params"]["name"] == "StopMonitor"

    @pytest.mark.asyncio
    async def test_stop_unknown_monitor(self, engine: MainManager) -> None:
        engine.poll([{"exId": "s", "command": "stopMonitor", "params": {"monitorId": "ghost"}}])
        await engine.join()
        assert _wire(engine.poll()) == [{"exId": "s", "type": "FINAL", "params": False}]

    @pytest.mark.asyncio
    async def test_partials_precede_terminal(
        self, engine: MainManager, emitter: EventEmitter, settle
    ) -> None:
        engine.poll([{"exId": "m", "command": "demo.watch"}])
        await settle()
        emitter.emit("e", 1)
        emitter.emit("e", 2)
        engine.stop_monitor("m")
        await engine.join()

        assert [env["type"] for env in _for(engine.poll(), "m")] == [
            "PARTIAL",
            "PARTIAL",
            "ERROR",
        ]

    @pytest.mark.asyncio
    async def test_resubmitting_ex_id_replaces_monitor(
        self, engine: MainManager, emitter: EventEmitter, settle
    ) -> None:
        engine.poll([{"exId": "m", "command": "demo.watch"}])
        await settle()
        first = engine.monitor_manager.monitors["m"]

        engine.poll([{"exId": "m", "command": "demo.watch"}])
        await settle()
        second = engine.monitor_manager.monitors["m"]

        assert first is not second
        assert first.cancelled
        assert emitter.listener_count("e") == 1

        engine.stop_monitor({"monitorId": "m"})
        await engine.join()
        ends = [env for env in _for(engine.poll(), "m") if env["type"] == "ERROR"]
        assert len(ends) == 2

    @pytest.mark.asyncio
    async def test_shutdown_stops_monitors(
        self, engine: MainManager, emitter: EventEmitter, settle
    ) -> None:
        engine.poll([{"exId": "m1", "command": "demo.watch"}])
        engine.poll([{"exId": "m2", "command": "demo.watch"}])
        await settle()

        await engine.shutdown()

        names = {env["exId"]: env["params"]["name"] for env in _wire(engine.poll())}
        assert names == {"m1": "StopMonitor", "m2": "StopMonitor"}
        assert engine.pending == 0

    @pytest.mark.asyncio
    async def test_shutdown_covers_monitors_not_yet_started(self, engine: MainManager) -> None:
        engine.poll([{"exId": "m", "command": "demo.watch"}])
        await asyncio.wait_for(engine.shutdown(), timeout=1)
        assert [env["type"] for env in _wire(engine.poll())] == ["ERROR"]


class TestIterators:
    @pytest.mark.asyncio
    async def test_partials_then_stream_end(self, engine: MainManager) -> None:
        engine.poll([{"exId": "i", "command": "demo.numbers"}])
        await engine.join()

        assert _wire(engine.poll()) == [
            {"exId": "i", "type": "PARTIAL", "params": {"item": 1}},
            {"exId": "i", "type": "PARTIAL", "params": {"item": 2}},
            {"exId": "i", "type": "PARTIAL", "params": {"item": 3}},
            {
                "exId": "i",
                "type": "ERROR",
                "params": {"name": "StopIterator", "message": "Iterator exhausted", "params": {}},
            },
        ]

    @pytest.mark.asyncio
    async def test_empty_iterator(self, engine: MainManager) -> None:
        engine.poll([{"exId": "i", "command": "demo.numbers", "params": {"values": []}}])
        await engine.join()
        assert [env["type"] for env in _wire(engine.poll())] == ["ERROR"]

    @pytest.mark.asyncio
    async def test_producer_failure_is_genuine_error(self) -> None:
        main = MainManager()

        def broken(params):
            from pollex.engine.streams import Iterator

            def produce(push):
                push(1)
                msg = "disk gone"
                raise OSError(msg)

            return Iterator(produce)

        main.register("broken", broken)
        main.poll([{"exId": "i", "command": "broken"}])
        await main.join()

        assert _wire(main.poll()) == [
            {"exId": "i", "type": "PARTIAL", "params": {"item": 1}},
            {
                "exId": "i",
                "type": "ERROR",
                "params": {"name": "OSError", "message": "disk gone", "params": {}},
            },
        ]


class TestStreamEndExtension:
    @pytest.mark.asyncio
    async def test_stream_end_type(self, demo) -> None:
        main = MainManager(stream_end="STREAM_END")
        main.add_submanager("demo", demo)
        main.poll([{"exId": "i", "command": "demo.numbers", "params": {"values": [9]}}])
        await main.join()

        results = main.poll().results
        assert [r.type for r in results] == [ResultType.PARTIAL, ResultType.STREAM_END]
        assert results[-1].params["name"] == "StopIterator"

    @pytest.mark.parametrize("value", ["FINAL", "PARTIAL"])
    def test_rejects_other_types(self, value: str) -> None:
        with pytest.raises(ValueError, match="stream_end"):
            MainManager(stream_end=value)


class TestIntrospectionCommands:
    @pytest.mark.asyncio
    async def test_get_commands(self, engine: MainManager) -> None:
        engine.poll([{"exId": "c", "command": "getCommands"}])
        await engine.join()

        (env,) = _wire(engine.poll())
        commands = env["params"]
        assert commands["stopMonitor"] == {"type": "command"}
        assert commands["demo.watch"] == {"type": "monitor"}
        assert commands["demo.getCommands"] == {"type": "command"}
        assert "demo.stopMonitor" not in commands

    @pytest.mark.asyncio
    async def test_remove_submanager(self, engine: MainManager) -> None:
        engine.poll([{"exId": "r", "command": "removeSubmanager", "params": {"name": "demo"}}])
        await engine.join()
        removed = engine.poll(
            [{"exId": "a", "command": "demo.add", "params": {"a": 1, "b": 1}}]
        )
        await engine.join()

        assert _for(removed, "r") == [{"exId": "r", "type": "FINAL", "params": {}}]
        assert _for(engine.poll(), "a")[0]["params"]["name"] == "ManagerNotFound"

    @pytest.mark.asyncio
    async def test_submanager_command_through_main(self) -> None:
        main, sub = MainManager(), CommandManager()
        sub.register("hello", lambda params: f"hi {params['who']}")
        main.add_submanager("greet", sub)

        main.poll([{"exId": "1", "command": "greet.hello", "params": {"who": "there"}}])
        await main.join()
        assert _wire(main.poll()) == [{"exId": "1", "type": "FINAL", "params": "hi there"}]
