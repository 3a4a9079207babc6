"""Unit tests for errors, data URLs, cancellation helpers and logging setup."""

from __future__ import annotations

import asyncio
import io
import json
import logging

import pytest
import structlog

from soundcache.utils.concurrency import AbortSignal, race
from soundcache.utils.data_url import is_data_url, parse_data_url
from soundcache.utils.errors import (
    AbortError,
    ConsistencyError,
    DecodeError,
    NetworkError,
    SoundCacheError,
    StoreError,
    classify_error,
)
from soundcache.utils.logging import configure_logging


# ======================================================================
# errors
# ======================================================================


class TestErrors:
    def test_provider_prefix_in_str(self) -> None:
        assert str(StoreError("quota", provider_name="sqlite")) == "[sqlite] quota"

    def test_network_error_default_message(self) -> None:
        error = NetworkError(404, "Not Found")
        assert error.status == 404
        assert error.status_text == "Not Found"
        assert str(error) == "HTTP 404 Not Found"

    def test_consistency_error_message_names_status(self) -> None:
        error = ConsistencyError(500, "Internal Server Error")
        assert "500" in str(error)
        assert "Internal Server Error" in str(error)
        assert "cache inconsistency" in str(error)

    def test_abort_error_default_message(self) -> None:
        assert str(AbortError()) == "Operation was aborted"

    @pytest.mark.parametrize(
        "error, expected",
        [
            (NetworkError(500), "network"),
            (AbortError(), "abort"),
            (DecodeError(), "decode"),
            (StoreError(), "store"),
            (ConsistencyError(404), "consistency"),
            (ValueError("x"), "unknown"),
        ],
    )
    def test_classify_error(self, error: BaseException, expected: str) -> None:
        assert classify_error(error) == expected

    def test_all_errors_share_base(self) -> None:
        for cls in (NetworkError, ConsistencyError):
            assert issubclass(cls, SoundCacheError)


# ======================================================================
# data URLs
# ======================================================================


class TestDataUrl:
    @pytest.mark.parametrize("key", ["data:,x", "DATA:audio/wav;base64,AA==", "Data:;base64,"])
    def test_detects_data_urls(self, key: str) -> None:
        assert is_data_url(key) is True

    @pytest.mark.parametrize("key", ["https://cdn.test/data:x", "dat", ""])
    def test_rejects_other_keys(self, key: str) -> None:
        assert is_data_url(key) is False

    def test_base64_payload(self) -> None:
        assert parse_data_url("data:audio/wav;base64,UklGRg==") == b"RIFF"

    def test_base64_tolerates_whitespace(self) -> None:
        assert parse_data_url("data:audio/wav;base64,UklG Rg==") == b"RIFF"

    def test_percent_encoded_payload(self) -> None:
        assert parse_data_url("data:text/plain,a%20b%00") == b"a b\x00"

    def test_missing_comma_raises(self) -> None:
        with pytest.raises(DecodeError):
            parse_data_url("data:audio/wav;base64")

    def test_invalid_base64_raises(self) -> None:
        with pytest.raises(DecodeError):
            parse_data_url("data:audio/wav;base64,@@@")


# ======================================================================
# AbortSignal / race
# ======================================================================


class TestAbortSignal:
    def test_first_reason_sticks(self) -> None:
        signal = AbortSignal()
        signal.abort("first")
        signal.abort("second")
        assert signal.aborted is True
        assert signal.reason == "first"

    def test_raise_if_aborted(self) -> None:
        signal = AbortSignal()
        signal.raise_if_aborted()
        signal.abort()
        with pytest.raises(AbortError):
            signal.raise_if_aborted()


class TestRace:
    @pytest.mark.asyncio
    async def test_without_signal_awaits_normally(self) -> None:
        async def work() -> int:
            return 7

        assert await race(work(), None) == 7

    @pytest.mark.asyncio
    async def test_result_wins_when_signal_idle(self) -> None:
        async def work() -> str:
            await asyncio.sleep(0)
            return "done"

        assert await race(work(), AbortSignal()) == "done"

    @pytest.mark.asyncio
    async def test_already_aborted_raises_without_running(self) -> None:
        ran = False

        async def work() -> None:
            nonlocal ran
            ran = True

        signal = AbortSignal()
        signal.abort()
        with pytest.raises(AbortError):
            await race(work(), signal)
        assert ran is False

    @pytest.mark.asyncio
    async def test_abort_cancels_pending_work(self) -> None:
        started = asyncio.Event()
        cancelled = False

        async def work() -> None:
            nonlocal cancelled
            started.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled = True
                raise

        signal = AbortSignal()
        racer = asyncio.ensure_future(race(work(), signal))
        await started.wait()
        signal.abort("stop")
        with pytest.raises(AbortError, match="stop"):
            await racer
        await asyncio.sleep(0)
        assert cancelled is True

    @pytest.mark.asyncio
    async def test_shielded_work_survives_abort(self) -> None:
        release = asyncio.Event()

        async def work() -> str:
            await release.wait()
            return "shared"

        shared = asyncio.ensure_future(work())
        signal = AbortSignal()
        racer = asyncio.ensure_future(race(asyncio.shield(shared), signal))
        await asyncio.sleep(0)
        signal.abort()
        with pytest.raises(AbortError):
            await racer
        release.set()
        assert await shared == "shared"

    @pytest.mark.asyncio
    async def test_work_exception_propagates(self) -> None:
        async def work() -> None:
            raise NetworkError(500)

        with pytest.raises(NetworkError):
            await race(work(), AbortSignal())


# ======================================================================
# logging
# ======================================================================


@pytest.fixture()
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    def test_json_lines_go_to_the_given_stream(self, restore_logging) -> None:
        out = io.StringIO()
        configure_logging("INFO", json_output=True, stream=out)

        structlog.get_logger().info("store_opened", name="audio-cache")

        record = json.loads(out.getvalue().splitlines()[-1])
        assert record["event"] == "store_opened"
        assert record["name"] == "audio-cache"
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_level_filters_structlog_events(self, restore_logging) -> None:
        out = io.StringIO()
        configure_logging("WARNING", json_output=True, stream=out)

        structlog.get_logger().info("freshness_decision")
        structlog.get_logger().warning("store_read_failed")

        events = [json.loads(line)["event"] for line in out.getvalue().splitlines()]
        assert events == ["store_read_failed"]

    def test_stdlib_records_share_the_stream(self, restore_logging) -> None:
        out = io.StringIO()
        configure_logging("INFO", json_output=True, stream=out)

        logging.getLogger("httpx").warning("connection pool full")

        record = json.loads(out.getvalue().splitlines()[-1])
        assert record["event"] == "connection pool full"
