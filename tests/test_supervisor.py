"""Tests for the dispatch supervisor and its failure policies."""

import asyncio
import logging

import pytest

from ghadapter.core.errors import PRIVATE_KEY_HINT, SECRET_MISMATCH_HINT, AuthenticationError, SigningError
from ghadapter.core.supervisor import Supervisor, failure_hint


async def _ok() -> None:
    await asyncio.sleep(0)


async def _fail(message: str = "handler exploded") -> None:
    await asyncio.sleep(0)
    raise RuntimeError(message)


def test_invalid_policy_is_rejected() -> None:
    with pytest.raises(ValueError):
        Supervisor(failure_policy="ignore")  # type: ignore[arg-type]


class TestRun:
    @pytest.mark.asyncio
    async def test_success_is_recorded(self) -> None:
        supervisor = Supervisor()

        outcome = await supervisor.run("webhook:issues.opened:1", _ok)

        assert outcome.ok is True
        assert outcome.error is None
        assert supervisor.outcomes() == [outcome]

    @pytest.mark.asyncio
    async def test_log_policy_records_and_keeps_going(self) -> None:
        supervisor = Supervisor(failure_policy="log")

        failed = await supervisor.run("first", _fail)
        succeeded = await supervisor.run("second", _ok)

        assert failed.ok is False
        assert isinstance(failed.error, RuntimeError)
        assert succeeded.ok is True
        assert [outcome.name for outcome in supervisor.failures()] == ["first"]

    @pytest.mark.asyncio
    async def test_raise_policy_reraises_after_recording(self) -> None:
        supervisor = Supervisor(failure_policy="raise")

        with pytest.raises(RuntimeError, match="handler exploded"):
            await supervisor.run("first", _fail)

        assert len(supervisor.failures()) == 1

    @pytest.mark.asyncio
    async def test_arguments_are_forwarded(self) -> None:
        supervisor = Supervisor()
        received: list[tuple] = []

        async def handler(event, *, flag) -> None:
            received.append((event, flag))

        await supervisor.run("dispatch", handler, "evt", flag=True)

        assert received == [("evt", True)]

    @pytest.mark.asyncio
    async def test_known_misconfiguration_logs_the_hint(self, caplog) -> None:
        supervisor = Supervisor()

        async def bad_key() -> None:
            raise SigningError(code="private_key_invalid", message="bad key", details={"hint": PRIVATE_KEY_HINT})

        with caplog.at_level(logging.ERROR, logger="ghadapter.core.supervisor"):
            await supervisor.run("dispatch", bad_key)

        assert PRIVATE_KEY_HINT in caplog.messages


class TestSpawnAndJoin:
    @pytest.mark.asyncio
    async def test_join_waits_for_spawned_dispatches(self) -> None:
        supervisor = Supervisor()
        done = asyncio.Event()

        async def slow() -> None:
            await asyncio.sleep(0.01)
            done.set()

        supervisor.spawn("slow", slow)
        outcomes = await supervisor.join()

        assert done.is_set()
        assert [outcome.ok for outcome in outcomes] == [True]

    @pytest.mark.asyncio
    async def test_spawned_failure_never_escapes_under_log_policy(self) -> None:
        supervisor = Supervisor(failure_policy="log")

        task = supervisor.spawn("bad", _fail)
        outcome = await task

        assert outcome.ok is False
        assert await supervisor.join() == []
        assert len(supervisor.failures()) == 1

    @pytest.mark.asyncio
    async def test_join_raises_first_failure_under_raise_policy(self) -> None:
        supervisor = Supervisor(failure_policy="raise")

        supervisor.spawn("bad", _fail, "first failure")
        supervisor.spawn("good", _ok)

        with pytest.raises(RuntimeError, match="first failure"):
            await supervisor.join()

        # the error is reported once
        assert await supervisor.join() == []

    @pytest.mark.asyncio
    async def test_join_reports_failures_that_finished_before_join(self) -> None:
        supervisor = Supervisor(failure_policy="raise")

        await supervisor.spawn("bad", _fail)

        with pytest.raises(RuntimeError):
            await supervisor.join()


class TestOutcomeChannel:
    @pytest.mark.asyncio
    async def test_channel_is_bounded(self) -> None:
        supervisor = Supervisor(max_outcomes=2)

        for name in ("a", "b", "c"):
            await supervisor.run(name, _ok)

        assert [outcome.name for outcome in supervisor.outcomes()] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_drain_empties_the_channel(self) -> None:
        supervisor = Supervisor()
        await supervisor.run("a", _ok)

        drained = supervisor.drain()

        assert [outcome.name for outcome in drained] == ["a"]
        assert supervisor.outcomes() == []


class TestFailureHint:
    def test_app_error_hint_wins(self) -> None:
        error = AuthenticationError(code="x", message="m", details={"hint": SECRET_MISMATCH_HINT})

        assert failure_hint(error) == SECRET_MISMATCH_HINT

    @pytest.mark.parametrize(
        "message",
        [
            "error:0909006C:PEM routines:get_name:no start line PEM_read_bio",
            "Could not deserialize key data. The data may be in an incorrect format",
            "A JSON web token could not be decoded",
        ],
    )
    def test_key_problems_point_at_the_pem(self, message: str) -> None:
        assert failure_hint(ValueError(message)) == PRIVATE_KEY_HINT

    def test_unknown_failure_has_no_hint(self) -> None:
        assert failure_hint(RuntimeError("boom")) is None
