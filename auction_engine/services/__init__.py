"""
Engine services: validation, state machine, settlement, synthetic bids
"""
from auction_engine.services.auction_service import AuctionEngine

__all__ = ["AuctionEngine"]
