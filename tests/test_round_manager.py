"""Tests for the round lifecycle: creation, lazy rollover to the next round, extension."""

import pytest

from conftest import T0, OWNER

from core.config_manager import ConfigManager
from core.exceptions import InvalidParameter
from core.key_manager import KeyManager
from core.round_manager import RoundManager
from database import get_settings
from models import GameState, Round, RoundState


class TestInitGame:

    def test_round_zero_created(self, db, game):
        round0 = RoundManager.get_round(db, 0)

        assert game.cur_round == 0
        assert round0.end_timestamp == T0 + 300
        assert round0.leader is None
        assert round0.round_bank == 0
        assert round0.keys_counter == 0

    @pytest.mark.parametrize("start_price, increasing_percent, dividends_percent", [
        (10, 1, 30),     # 10 * 1 / 100 = 0, price would never move
        (1000, 0, 30),
        (1000, 1, 100),
    ])
    def test_invalid_settings_rejected(
        self, db, monkeypatch, start_price, increasing_percent, dividends_percent
    ):
        settings = get_settings()
        monkeypatch.setattr(settings, "start_key_price", start_price)
        monkeypatch.setattr(settings, "price_increasing_percent", increasing_percent)
        monkeypatch.setattr(settings, "dividends_percent", dividends_percent)

        with pytest.raises(InvalidParameter):
            RoundManager.init_game(db, now=T0)

        assert db.query(GameState).count() == 0
        assert db.query(Round).count() == 0

    def test_init_is_idempotent(self, db, game):
        RoundManager.init_game(db, now=T0 + 1000)

        assert db.query(GameState).count() == 1
        assert db.query(Round).count() == 1
        assert RoundManager.get_round(db, 0).end_timestamp == T0 + 300


class TestRoundState:

    def test_active_before_end(self, db, game):
        round0 = RoundManager.get_round(db, 0)
        assert RoundManager.round_state(round0, T0 + 299) == RoundState.ACTIVE

    def test_empty_ended_round_is_fully_settled(self, db, game):
        round0 = RoundManager.get_round(db, 0)
        assert RoundManager.round_state(round0, T0 + 300) == RoundState.FULLY_SETTLED

    def test_ended_with_unpaid_leader_is_unsettled(self, db, game, transfer):
        KeyManager.buy_keys(db, "alice", 1000, now=T0 + 1, transfer=transfer)
        round0 = RoundManager.get_round(db, 0)

        assert RoundManager.round_state(round0, round0.end_timestamp) == RoundState.ENDED_UNSETTLED


class TestReconcile:

    def test_purchase_after_end_starts_next_round(self, db, game, transfer):
        KeyManager.buy_keys(db, "alice", 2000, now=T0 + 1, transfer=transfer)
        assert game.cur_key_price == 1010

        end = RoundManager.get_round(db, 0).end_timestamp
        result = KeyManager.buy_keys(db, "bob", 1000, now=end, transfer=transfer)

        state = RoundManager.get_state(db)
        round1 = RoundManager.get_round(db, 1)
        assert result.round_number == 1
        assert state.cur_round == 1
        # price restarts from start_key_price in the new round
        assert result.key_price == 1010
        assert round1.leader == "bob"
        assert round1.end_timestamp == end + 300 + 30

    def test_only_one_round_created_after_long_idle(self, db, game, transfer):
        KeyManager.buy_keys(db, "alice", 1000, now=T0 + 10 ** 6, transfer=transfer)

        assert RoundManager.get_state(db).cur_round == 1
        assert db.query(Round).count() == 2

    def test_dividends_percent_snapshot(self, db, game, transfer):
        ConfigManager.set_dividends_percent(db, OWNER, 50)

        assert RoundManager.get_round(db, 0).dividends_percent == 30

        KeyManager.buy_keys(db, "alice", 1000, now=T0 + 400, transfer=transfer)

        assert RoundManager.get_round(db, 0).dividends_percent == 30
        assert RoundManager.get_round(db, 1).dividends_percent == 50


class TestExtension:

    def test_extends_thirty_seconds_per_key(self, db, game, transfer):
        result = KeyManager.buy_keys(db, "alice", 2010, now=T0 + 10, transfer=transfer)

        assert result.keys_bought == 2
        assert result.end_timestamp == T0 + 300 + 60

    def test_extension_clamped_to_max_duration(self, db, game, transfer):
        now = T0 + 10
        RoundManager.get_round(db, 0).end_timestamp = now + 86390
        db.commit()

        result = KeyManager.buy_keys(db, "alice", 1000, now=now, transfer=transfer)

        assert result.end_timestamp == now + 86400

    def test_alternating_buyers_extend_and_take_lead(self, db, game, transfer):
        end = T0 + 300
        for i, buyer in enumerate(["alice", "bob", "alice", "bob"]):
            result = KeyManager.buy_keys(db, buyer, 10 ** 6, now=T0 + 10 * (i + 1), transfer=transfer)
            end = min(end + 30 * result.keys_bought, T0 + 10 * (i + 1) + 86400)

            round0 = RoundManager.get_round(db, 0)
            assert round0.leader == buyer
            assert round0.end_timestamp == end
