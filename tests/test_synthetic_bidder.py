"""
Synthetic bidder: eligibility, probability gate, amount and price cap
"""
import pytest

from auction_engine.core.config import AuctionOptions
from auction_engine.models import Auction, AuctionStatus, EventType
from auction_engine.services.synthetic_bidder import SyntheticBidder

from conftest import ScriptedRandom


def make_auction(**overrides) -> Auction:
    fields = dict(
        id=1,
        title="Lot",
        start_price=2000,
        current_bid=2000,
        reserve_price=3000,
        min_increment=100,
        status=AuctionStatus.ACTIVE,
        time_left=180,
    )
    fields.update(overrides)
    return Auction(**fields)


class TestPropose:

    def test_bids_when_gate_passes(self):
        bidder = SyntheticBidder(AuctionOptions(), ScriptedRandom(roll=0.1, steps=3))
        name, amount = bidder.propose(make_auction())
        assert name == "AI_Collector_01"
        assert amount == 2300

    def test_probability_gate(self):
        bidder = SyntheticBidder(AuctionOptions(), ScriptedRandom(roll=0.5))
        assert bidder.propose(make_auction()) is None

    def test_steps_clamped_to_configured_range(self):
        bidder = SyntheticBidder(AuctionOptions(ai_bid_max_steps=2), ScriptedRandom(steps=9))
        _, amount = bidder.propose(make_auction())
        assert amount == 2200

    def test_price_cap(self):
        bidder = SyntheticBidder(AuctionOptions(), ScriptedRandom(steps=1))
        # cap = 2000 * 1.2 = 2400
        assert bidder.propose(make_auction(reserve_price=2000, current_bid=2350)) is None
        assert bidder.propose(make_auction(reserve_price=2000, current_bid=2300)) == ("AI_Collector_01", 2400)

    @pytest.mark.parametrize("overrides", [
        dict(time_left=9),
        dict(is_live=True),
        dict(status=AuctionStatus.PENDING),
        dict(status=AuctionStatus.ENDED),
    ])
    def test_ineligible(self, overrides):
        bidder = SyntheticBidder(AuctionOptions(), ScriptedRandom())
        assert bidder.propose(make_auction(**overrides)) is None

    def test_min_time_left_is_its_own_setting(self):
        options = AuctionOptions(ai_min_time_left=30, extend_time=15)
        bidder = SyntheticBidder(options, ScriptedRandom())
        assert not bidder.is_eligible(make_auction(time_left=20))
        assert bidder.is_eligible(make_auction(time_left=30))

    def test_follow_up_delay_in_range(self):
        bidder = SyntheticBidder(AuctionOptions(ai_bid_delay_min=5, ai_bid_delay_max=20))
        for _ in range(20):
            assert 5 <= bidder.follow_up_delay() <= 20


class TestEngineTrigger:

    def test_auto_registers_and_applies(self, engine, make_auction, published):
        auction = make_auction()
        result = engine.trigger_synthetic_bid(auction.id)

        assert result.bidder == "AI_Collector_01"
        assert result.amount == 2100
        current = engine.get_auction(auction.id)
        assert current.registered_users == ["AI_Collector_01"]
        assert current.highest_bidder == "AI_Collector_01"
        assert current.bid_history[-1].synthetic is True
        assert any(e.type == EventType.SYNTHETIC_BID for e in published)

    def test_synthetic_bid_arms_extension(self, engine, make_auction):
        auction = make_auction()
        engine.book.get(auction.id).time_left = 12

        engine.trigger_synthetic_bid(auction.id)
        assert engine.get_auction(auction.id).extended_time == 15

    def test_declines_on_unknown_auction(self, engine):
        assert engine.trigger_synthetic_bid(404) is None

    def test_random_trigger_without_eligible_auctions(self, engine):
        assert engine.trigger_random_synthetic_bid() is None

    def test_random_trigger_picks_eligible(self, engine, make_auction):
        auction = make_auction()
        result = engine.trigger_random_synthetic_bid()
        assert result.auction.id == auction.id

    def test_user_can_outbid_synthetic(self, engine, make_auction, make_user):
        make_user("alice", 5000)
        auction = make_auction()
        engine.register(auction.id, "alice")
        engine.trigger_synthetic_bid(auction.id)

        result = engine.submit_bid(auction.id, "alice", 2200)
        assert result.accepted
        assert result.auction.highest_bidder == "alice"
