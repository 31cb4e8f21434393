"""settlor.oracle: price feeds and the price ratio converter."""

from settlor.oracle.feed import FixturePriceFeed as FixturePriceFeed
from settlor.oracle.feed import HttpPriceFeed as HttpPriceFeed
from settlor.oracle.feed import PriceFeed as PriceFeed
from settlor.oracle.feed import PriceObservation as PriceObservation
from settlor.oracle.feed import PriceQuote as PriceQuote
from settlor.oracle.feed import observe as observe
from settlor.oracle.feed import to_fixed_point as to_fixed_point
from settlor.oracle.ratio import RATIO_SCALE as RATIO_SCALE
from settlor.oracle.ratio import compute_ratio as compute_ratio
