from unittest.mock import MagicMock, patch

import pytest
from web3.exceptions import Web3Exception

from utils.providers import connect_client, get_rpc_url, wait_for_chains_start
from withdrawals.custom_errors import ChainNotReadyError, InputValidationError


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _provider(*heads):
    w3 = MagicMock()
    w3.eth.get_block.side_effect = list(heads)
    return w3


def test_returns_immediately_when_all_producing():
    clock = FakeClock()
    providers = {"l1": _provider({"number": 10}), "l2": _provider({"number": 3})}

    ready = wait_for_chains_start(providers, clock=clock, sleep=clock.sleep)

    assert ready == {"l1", "l2"}
    assert clock.sleeps == []


def test_polls_until_genesis_is_left_behind():
    clock = FakeClock()
    l1 = _provider({"number": 10})
    l2 = _provider({"number": 0}, {"number": 0}, {"number": 1})

    ready = wait_for_chains_start(
        {"l1": l1, "l2": l2}, timeout=10, poll_interval=1, clock=clock, sleep=clock.sleep
    )

    assert ready == {"l1", "l2"}
    assert clock.sleeps == [1, 1]
    # l1 is never re-queried once ready
    assert l1.eth.get_block.call_count == 1
    assert l2.eth.get_block.call_count == 3


def test_rpc_errors_are_tolerated():
    clock = FakeClock()
    l1 = _provider(Web3Exception("connection refused"), OSError("reset"), {"number": 5})

    ready = wait_for_chains_start(
        {"l1": l1}, timeout=10, poll_interval=1, clock=clock, sleep=clock.sleep
    )

    assert ready == {"l1"}
    assert l1.eth.get_block.call_count == 3


def test_times_out_naming_pending_endpoints():
    clock = FakeClock()
    l1 = MagicMock()
    l1.eth.get_block.return_value = {"number": 0}

    with pytest.raises(ChainNotReadyError, match="l1"):
        wait_for_chains_start(
            {"l1": l1}, timeout=3, poll_interval=1, clock=clock, sleep=clock.sleep
        )

    assert clock.now == 3


def test_last_sleep_is_capped_by_deadline():
    clock = FakeClock()
    l1 = MagicMock()
    l1.eth.get_block.return_value = {"number": 0}

    with pytest.raises(ChainNotReadyError):
        wait_for_chains_start(
            {"l1": l1}, timeout=2.5, poll_interval=1, clock=clock, sleep=clock.sleep
        )

    assert clock.sleeps == [1, 1, 0.5]


def test_caller_accumulator_is_only_added_to():
    clock = FakeClock()
    l1 = MagicMock()
    l2 = _provider({"number": 7})
    ready = {"l1"}

    result = wait_for_chains_start(
        {"l1": l1, "l2": l2}, ready=ready, clock=clock, sleep=clock.sleep
    )

    assert result is ready
    assert ready == {"l1", "l2"}
    l1.eth.get_block.assert_not_called()


def test_separate_waits_do_not_share_state():
    clock = FakeClock()

    first = wait_for_chains_start(
        {"l1": _provider({"number": 1})}, clock=clock, sleep=clock.sleep
    )
    second = wait_for_chains_start(
        {"l2": _provider({"number": 1})}, clock=clock, sleep=clock.sleep
    )

    assert first == {"l1"}
    assert second == {"l2"}


def test_get_rpc_url_prefers_flag(monkeypatch):
    monkeypatch.setenv("L1_RPC_URL", "http://env:8545")

    assert get_rpc_url("L1_RPC_URL", "http://flag:8545") == "http://flag:8545"
    assert get_rpc_url("L1_RPC_URL") == "http://env:8545"


def test_get_rpc_url_missing(monkeypatch):
    monkeypatch.setattr("utils.providers.load_dotenv", lambda: None)
    monkeypatch.delenv("L2_RPC_URL", raising=False)

    with pytest.raises(InputValidationError):
        get_rpc_url("L2_RPC_URL")


def test_connect_client_waits_then_reads_chain_id():
    w3 = MagicMock()
    w3.eth.chain_id = 11155420

    with (
        patch("utils.providers.get_web3", return_value=w3),
        patch("utils.providers.wait_for_chains_start") as wait,
    ):
        client, chain_id = connect_client("http://localhost:8545", name="l2", timeout=5)

    assert client is w3
    assert chain_id == 11155420
    wait.assert_called_once_with({"l2": w3}, timeout=5)
