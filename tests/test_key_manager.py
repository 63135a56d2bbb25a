"""Tests for the key purchase operation."""

import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from conftest import T0, OWNER, RecordingTransfer

from core.config_manager import ConfigManager
from core.exceptions import GamePaused, InsufficientPayment, InvalidParameter, TransferFailure
from core.key_manager import KeyManager
from core.round_manager import RoundManager
from database import Base
from models import Payout, RoundKeys
from services.pricing_service import compute_keys
from services.transfer_service import LedgerTransfer


class TestBuyKeys:

    def test_single_key_with_refund(self, db, game, transfer):
        result = KeyManager.buy_keys(db, "alice", 2000, now=T0 + 1, transfer=transfer)

        round0 = RoundManager.get_round(db, 0)
        assert result.keys_bought == 1
        assert result.remainder == 1000
        assert result.key_price == 1010
        assert transfer.sent == [("alice", 1000, "refund")]
        assert round0.round_bank == 1000
        assert round0.keys_counter == 1
        assert round0.leader == "alice"
        assert RoundManager.get_address_keys(db, 0, "alice") == 1
        assert RoundManager.get_state(db).cur_key_price == 1010

    def test_holdings_accumulate(self, db, game, transfer):
        KeyManager.buy_keys(db, "alice", 1000, now=T0 + 1, transfer=transfer)
        KeyManager.buy_keys(db, "bob", 1010, now=T0 + 2, transfer=transfer)
        KeyManager.buy_keys(db, "alice", 1020 + 1030, now=T0 + 3, transfer=transfer)

        round0 = RoundManager.get_round(db, 0)
        assert RoundManager.get_address_keys(db, 0, "alice") == 3
        assert RoundManager.get_address_keys(db, 0, "bob") == 1
        assert round0.keys_counter == 4
        assert round0.round_bank == 1000 + 1010 + 1020 + 1030
        assert round0.leader == "alice"
        assert transfer.sent == []

    def test_payment_below_price_rejected(self, db, game, transfer):
        with pytest.raises(InsufficientPayment):
            KeyManager.buy_keys(db, "alice", 999, now=T0 + 1, transfer=transfer)

        round0 = RoundManager.get_round(db, 0)
        assert round0.leader is None
        assert round0.round_bank == 0

    def test_non_positive_amount_rejected(self, db, game, transfer):
        with pytest.raises(InvalidParameter):
            KeyManager.buy_keys(db, "alice", 0, now=T0 + 1, transfer=transfer)

    def test_paused_game_rejects_purchase(self, db, game, transfer):
        ConfigManager.set_paused(db, OWNER, True)

        with pytest.raises(GamePaused):
            KeyManager.buy_keys(db, "alice", 1000, now=T0 + 1, transfer=transfer)

        ConfigManager.set_paused(db, OWNER, False)
        assert KeyManager.buy_keys(db, "alice", 1000, now=T0 + 1, transfer=transfer).keys_bought == 1

    def test_failed_refund_rolls_back_everything(self, db, game, failing_transfer):
        with pytest.raises(TransferFailure):
            KeyManager.buy_keys(db, "alice", 2000, now=T0 + 1, transfer=failing_transfer)

        round0 = RoundManager.get_round(db, 0)
        assert round0.leader is None
        assert round0.round_bank == 0
        assert round0.keys_counter == 0
        assert round0.end_timestamp == T0 + 300
        assert RoundManager.get_state(db).cur_key_price == 1000
        assert db.query(RoundKeys).count() == 0

    def test_failed_refund_rolls_back_new_round(self, db, game, failing_transfer):
        with pytest.raises(TransferFailure):
            KeyManager.buy_keys(db, "alice", 2000, now=T0 + 500, transfer=failing_transfer)

        assert RoundManager.get_state(db).cur_round == 0

    def test_default_transfer_records_payout(self, db, game):
        KeyManager.buy_keys(db, "alice", 1500, now=T0 + 1, transfer=LedgerTransfer())

        payouts = db.query(Payout).all()
        assert len(payouts) == 1
        assert payouts[0].address == "alice"
        assert payouts[0].amount == 500
        assert payouts[0].reason == "refund"

    def test_exact_payment_records_no_payout(self, db, game):
        KeyManager.buy_keys(db, "alice", 1000, now=T0 + 1, transfer=LedgerTransfer())

        assert db.query(Payout).count() == 0


class TestRoundIsolation:

    def test_purchases_do_not_touch_other_rounds(self, db, game, transfer):
        KeyManager.buy_keys(db, "alice", 1000, now=T0 + 1, transfer=transfer)
        KeyManager.buy_keys(db, "alice", 5000, now=T0 + 1000, transfer=transfer)

        assert RoundManager.get_address_keys(db, 0, "alice") == 1
        assert RoundManager.get_address_keys(db, 1, "alice") == 4
        assert RoundManager.get_round(db, 0).keys_counter == 1
        assert RoundManager.get_round(db, 0).round_bank == 1000


class TestSingleWriter:

    BUYERS = 8
    AMOUNT = 10 ** 6

    @pytest.fixture
    def file_session_factory(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'ledger.db'}",
            connect_args={"check_same_thread": False}
        )
        Base.metadata.create_all(bind=engine)
        factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        setup = factory()
        RoundManager.init_game(setup, now=T0)
        state = RoundManager.get_state(setup)
        state.start_key_price = 1000
        state.cur_key_price = 1000
        state.price_increasing_percent = 1
        setup.commit()
        setup.close()

        yield factory
        engine.dispose()

    def test_concurrent_purchases_are_serialized(self, file_session_factory):
        results = []
        errors = []
        start = threading.Barrier(self.BUYERS)

        def buy(index):
            session = file_session_factory()
            try:
                start.wait()
                results.append(KeyManager.buy_keys(
                    session,
                    f"buyer{index}",
                    self.AMOUNT,
                    now=T0 + 1,
                    transfer=RecordingTransfer()
                ))
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=buy, args=(i,)) for i in range(self.BUYERS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(results) == self.BUYERS

        # same amounts, so any serial order gives the same totals
        price = 1000
        expected_keys = 0
        for _ in range(self.BUYERS):
            quote = compute_keys(self.AMOUNT, price, 1)
            expected_keys += quote.keys_bought
            price = quote.final_price

        db = file_session_factory()
        try:
            round0 = RoundManager.get_round(db, 0)
            assert round0.keys_counter == sum(r.keys_bought for r in results) == expected_keys
            assert round0.round_bank == sum(self.AMOUNT - r.remainder for r in results)
            assert RoundManager.get_state(db).cur_key_price == price
            assert sorted(r.key_price for r in results)[-1] == price
        finally:
            db.close()
