from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class ThresholdController:
    """
    Walks the adaptive-threshold block size through [min, max] in steps of 2
    while detection keeps coming back empty, wrapping to min past max.
    """

    def __init__(self, block_size_min: int = 3, block_size_max: int = 21):
        if block_size_min > block_size_max:
            raise ValueError("block_size_min must not exceed block_size_max")
        self.block_size_min = int(block_size_min)
        self.block_size_max = int(block_size_max)
        self.block_size = self.initial_block_size()

    def initial_block_size(self) -> int:
        size = (self.block_size_min + self.block_size_max) // 2
        if size % 2 == 0:
            size += 1
        return size

    def update(self, candidates_found: int) -> int:
        if candidates_found == 0:
            self.block_size += 2
            if self.block_size > self.block_size_max:
                self.block_size = self.block_size_min
            logger.debug("No candidates, threshold block size now %d", self.block_size)
        return self.block_size

    def nudge(self, step: int) -> int:
        """Move the block size by ``step``, clamped to [min, max] and kept odd."""
        size = min(self.block_size_max, max(self.block_size_min, self.block_size + int(step)))
        if size % 2 == 0:
            size += 1 if size < self.block_size_max else -1
        self.block_size = size
        return self.block_size
