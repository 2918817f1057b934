from .base import Base
from .listing import Listing, ListingType, Tier
from .vote import VoteRecord
from .bump import BumpRecord
from .trending_metric import TrendingMetric
from .activity import ActivityRecord
from .listing_analytics import ListingAnalytics
from .auto_bump_setting import AutoBumpSetting
from .scoring_run import ScoringRun

__all__ = [
    "Base",
    "Listing",
    "ListingType",
    "Tier",
    "VoteRecord",
    "BumpRecord",
    "TrendingMetric",
    "ActivityRecord",
    "ListingAnalytics",
    "AutoBumpSetting",
    "ScoringRun",
]
