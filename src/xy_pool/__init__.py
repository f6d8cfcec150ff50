"""Integer constant-product liquidity pool with a Mesa simulation harness."""

from xy_pool.agents.pool import Direction, PoolEngine, PoolState

__all__ = ["Direction", "PoolEngine", "PoolState"]
__version__ = "1.0.0"
