"""Resolution policy: strategies combining cache lookup and network fetch.

Classes:
    :class:`ResolutionStrategy` -- the common strategy interface.
    :class:`CacheFirstStrategy` -- cache first with network fallback and refresh.
    :class:`RaceStrategy` -- first usable response of cache and network wins.
    :class:`BackgroundTasks` -- owner of detached work.

Functions:
    :func:`create_strategy` -- build a strategy by :class:`~offlinecache.models.StrategyName`.
    :func:`first_successful` -- generic "first usable result of N" combinator.
    :func:`unavailable_response` -- the synthesized 503 page.
"""

from offlinecache.policy.race import BackgroundTasks, first_successful
from offlinecache.policy.strategies import (
    CacheFirstStrategy,
    RaceStrategy,
    ResolutionStrategy,
    create_strategy,
    unavailable_response,
)

__all__ = [
    "BackgroundTasks",
    "CacheFirstStrategy",
    "RaceStrategy",
    "ResolutionStrategy",
    "create_strategy",
    "first_successful",
    "unavailable_response",
]
