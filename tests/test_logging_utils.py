from __future__ import annotations

import io
import json
import logging

import pytest

from safe4337_ops.logging_utils import (
    ROOT_LOGGER_NAME,
    get_logger,
    mask_url,
    operation_context,
    setup_logging,
)


@pytest.fixture
def stream():
    buffer = io.StringIO()
    yield buffer
    logging.getLogger(ROOT_LOGGER_NAME).handlers.clear()


def test_mask_url_hides_api_key():
    url = "https://api.gelato.digital/bundlers/11155111/rpc?apiKey=secret&sponsored=true"
    masked = mask_url(url)
    assert "secret" not in masked
    assert masked == "https://api.gelato.digital/bundlers/11155111/rpc?<params_masked>"


def test_mask_url_without_query():
    assert mask_url("https://rpc.sepolia.org") == "https://rpc.sepolia.org"
    assert mask_url("") == ""


def test_text_format_with_context(stream):
    setup_logging("INFO", stream=stream)
    get_logger("safe4337_ops.tests", safe="0xabc").info("hello", context={"step": 1})

    output = stream.getvalue()
    assert "INFO: hello" in output
    assert output.startswith("[")
    assert '"safe": "0xabc"' in output
    assert '"step": 1' in output
    # StringIO is not a terminal
    assert "\x1b[" not in output


def test_colors_forced(stream):
    setup_logging("INFO", colors=True, stream=stream)
    get_logger("safe4337_ops.tests").warning("careful")
    assert stream.getvalue().startswith("\x1b[33m")


def test_level_filtering(stream):
    setup_logging("WARNING", stream=stream)
    log = get_logger("safe4337_ops.tests")
    log.info("hidden")
    log.failure("shown")
    output = stream.getvalue()
    assert "hidden" not in output
    assert "ERROR: ERROR: shown" in output


def test_json_format(stream):
    setup_logging("DEBUG", json_format=True, stream=stream)
    get_logger("safe4337_ops.tests", mode="native").success("sent", context={"hash": b"\x01"})

    record = json.loads(stream.getvalue().strip())
    assert record["level"] == "INFO"
    assert record["message"] == "SUCCESS: sent"
    assert record["context"] == {"mode": "native", "hash": "0x01"}


def test_child_logger_merges_context(stream):
    setup_logging("INFO", json_format=True, stream=stream)
    parent = get_logger("safe4337_ops.tests", chain="sepolia")
    parent.child(safe="0xabc").info("x", context={"chain": "override"})

    record = json.loads(stream.getvalue().strip())
    assert record["context"] == {"chain": "override", "safe": "0xabc"}


def test_operation_context_records_duration(stream):
    setup_logging("DEBUG", json_format=True, stream=stream)
    with operation_context("deploy", get_logger("safe4337_ops.tests"), owner="0x1") as ctx:
        ctx["tx_hash"] = "0xfeed"

    assert ctx["duration_ms"] >= 0
    last = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert last["message"].startswith("Completed deploy")
    assert last["context"]["tx_hash"] == "0xfeed"


def test_operation_context_logs_failure(stream):
    setup_logging("INFO", json_format=True, stream=stream)
    with pytest.raises(RuntimeError):
        with operation_context("deploy", get_logger("safe4337_ops.tests")):
            raise RuntimeError("boom")

    record = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert record["level"] == "ERROR"
    assert record["context"]["error"] == "boom"
