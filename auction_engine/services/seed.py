"""
Default catalogue loaded when the repository starts empty
"""
from datetime import datetime
from typing import List

from auction_engine.core.config import AuctionOptions
from auction_engine.models import Auction, AuctionStatus


DEFAULT_CATALOGUE = [
    {
        "id": 1,
        "title": "The Starry Night",
        "artist": "Vincent van Gogh, 1889",
        "category": "painting",
        "image": "https://images.unsplash.com/photo-1578926314433-e2789279f4aa?w=800&q=80",
        "description": (
            "Van Gogh's best-known work: the night sky over Saint-Remy, "
            "painted with restless strokes and vivid colour."
        ),
        "start_price": 2000,
        "reserve_price": 3000,
    },
    {
        "id": 2,
        "title": "The Thinker",
        "artist": "Auguste Rodin, 1902",
        "category": "sculpture",
        "image": "https://images.unsplash.com/photo-1567443024551-f3e3cc2be870?w=800&q=80",
        "description": "Rodin's most famous sculpture, a figure lost in thought.",
        "start_price": 3500,
        "reserve_price": 5000,
    },
]


def default_auctions(options: AuctionOptions, now: datetime) -> List[Auction]:
    """Build the catalogue as ACTIVE auctions with the default duration"""
    return [
        Auction(
            **item,
            current_bid=item["start_price"],
            min_increment=options.min_increment,
            status=AuctionStatus.ACTIVE,
            time_left=options.default_duration,
            created_at=now,
        )
        for item in DEFAULT_CATALOGUE
    ]
