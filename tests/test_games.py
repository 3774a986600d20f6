from unittest.mock import MagicMock

import pytest

from conftest import GAME_ADDRESS
from utils.config import ZERO_ADDRESS
from withdrawals.custom_errors import DisputeGameError
from withdrawals.games import (
    find_latest_game,
    game_l2_block_number,
    get_game_implementation,
    load_dispute_game,
)
from withdrawals.types import GameStatus


def _extra_data(block_number: int, tail: bytes = b"") -> bytes:
    return block_number.to_bytes(32, "big") + tail


def _contracts(game_count: int, games=None, game_type: int = 0):
    factory = MagicMock()
    factory.functions.gameCount.return_value.call.return_value = game_count
    factory.functions.findLatestGames.return_value.call.return_value = games or []

    portal = MagicMock()
    portal.functions.respectedGameType.return_value.call.return_value = game_type

    return factory, portal


def test_game_l2_block_number_reads_first_word():
    assert game_l2_block_number(_extra_data(42, b"\xff" * 8)) == 42


def test_game_l2_block_number_rejects_short_extra_data():
    with pytest.raises(DisputeGameError):
        game_l2_block_number(b"\x01" * 31)


def test_find_latest_game_without_games():
    factory, portal = _contracts(0)

    assert find_latest_game(factory, portal) is None
    factory.functions.findLatestGames.assert_not_called()


def test_find_latest_game_searches_from_newest():
    game = (4, b"\x01" * 32, 1_700_000_000, b"\x02" * 32, _extra_data(150))
    factory, portal = _contracts(5, [game], game_type=1)

    result = find_latest_game(factory, portal)

    factory.functions.findLatestGames.assert_called_once_with(1, 4, 1)
    assert result == {
        "index": 4,
        "metadata": b"\x01" * 32,
        "timestamp": 1_700_000_000,
        "root_claim": b"\x02" * 32,
        "extra_data": _extra_data(150),
    }


def test_find_latest_game_from_explicit_index():
    game = (2, b"", 0, b"", _extra_data(1))
    factory, portal = _contracts(5, [game])

    find_latest_game(factory, portal, game_id=2)

    factory.functions.findLatestGames.assert_called_once_with(0, 2, 1)


def test_find_latest_game_none_of_respected_type():
    factory, portal = _contracts(3, [])

    assert find_latest_game(factory, portal) is None


def test_find_latest_game_rejects_malformed_tuple():
    factory, portal = _contracts(1, [(0, b"", 0, b"")])

    with pytest.raises(DisputeGameError):
        find_latest_game(factory, portal)


def test_get_game_implementation():
    factory = MagicMock()
    factory.functions.gameImpls.return_value.call.return_value = GAME_ADDRESS

    assert get_game_implementation(factory, 1) == GAME_ADDRESS
    factory.functions.gameImpls.assert_called_once_with(1)


def test_get_game_implementation_unset():
    factory = MagicMock()
    factory.functions.gameImpls.return_value.call.return_value = ZERO_ADDRESS

    with pytest.raises(DisputeGameError):
        get_game_implementation(factory, 1)


def test_load_dispute_game():
    contract = MagicMock()
    contract.address = GAME_ADDRESS
    functions = contract.functions
    functions.l2BlockNumber.return_value.call.return_value = 150
    functions.createdAt.return_value.call.return_value = 1_000
    functions.status.return_value.call.return_value = 2
    functions.resolvedAt.return_value.call.return_value = 2_000
    functions.maxClockDuration.return_value.call.return_value = 302_400
    functions.getChallengerDuration.return_value.call.return_value = 302_400
    functions.resolvedSubgames.return_value.call.return_value = True

    game = load_dispute_game(contract, index=4)

    assert game.address == GAME_ADDRESS
    assert game.status is GameStatus.DEFENDER_WINS
    assert game.resolved_at == 2_000
    assert game.claim_resolved is True
    assert game.index == 4
    functions.getChallengerDuration.assert_called_once_with(0)
    functions.resolvedSubgames.assert_called_once_with(0)
