"""
Assembly of staged parts into the final object.

Parts are ordered by ascending part number and merged in rounds: each
round partitions the current list into contiguous runs of at most
fan_in objects and merges every run into one object. Runs of a single
object pass through untouched. Rounds repeat until one object remains,
so N parts need ceil(log_F(N)) rounds.
"""

import time
from typing import List, Optional, Sequence, TypeVar

from loguru import logger

from ..domain.errors import ValidationError
from ..domain.upload import AssemblyResult, PartHandle, UploadSession
from ..interfaces.upload import IMergeStrategy
from .cleanup import CleanupManager

T = TypeVar('T')


def partition_runs(items: Sequence[T], fan_in: Optional[int]) -> List[List[T]]:
    """
    Split items into contiguous runs of at most fan_in elements.

    Order is preserved within and across runs. An unbounded fan_in yields
    a single run.
    """
    if fan_in is None:
        return [list(items)] if items else []
    if fan_in < 1:
        raise ValueError(f"fan_in must be positive, got {fan_in}")
    return [list(items[i:i + fan_in]) for i in range(0, len(items), fan_in)]


def composition_rounds(part_count: int, fan_in: Optional[int]) -> int:
    """Number of merge rounds needed to reduce part_count objects to one."""
    if part_count <= 1:
        return 0
    if fan_in is None:
        return 1
    rounds = 0
    remaining = part_count
    while remaining > 1:
        remaining = -(-remaining // fan_in)
        rounds += 1
    return rounds


class Assembler:
    """Reconstructs the target object of a session from its staged parts."""

    def __init__(self, strategy: IMergeStrategy, cleanup: CleanupManager) -> None:
        self._strategy = strategy
        self._cleanup = cleanup

    @property
    def strategy(self) -> IMergeStrategy:
        return self._strategy

    async def assemble(self, session: UploadSession, parts: Sequence[PartHandle]) -> AssemblyResult:
        """
        Merge parts into the session's target path.

        Intermediates are appended to session.intermediates as soon as they
        exist, so a failure at any point leaves them discoverable for
        cleanup.

        Raises:
            ValidationError: If parts is empty
            ChunkedUploadError: If any backend call fails
        """
        if not parts:
            raise ValidationError("no parts uploaded", op="complete-upload", path=session.upload_id)

        ordered = sorted(parts, key=lambda handle: handle.part_number)
        fan_in = self._strategy.fan_in
        started = time.time()

        logger.info(
            f"Assembling upload {session.upload_id} into {session.target_path}: "
            f"{len(ordered)} parts, strategy={self._strategy.name}, "
            f"planned rounds={composition_rounds(len(ordered), fan_in)}"
        )

        level: List[PartHandle] = ordered
        rounds = 0

        while len(level) > 1:
            runs = partition_runs(level, fan_in)
            final = len(runs) == 1
            next_level: List[PartHandle] = []

            for run_index, run in enumerate(runs):
                if len(run) == 1:
                    next_level.append(run[0])
                    continue

                if final:
                    destination = session.target_path
                else:
                    destination = self._strategy.intermediate_location(session, rounds, run_index)

                merged = await self._strategy.merge(destination, run)
                if not final:
                    session.intermediates.append(merged)
                next_level.append(merged)

            # A lone intermediate carried into next_level is still live
            consumed = [
                handle for handle in level
                if handle in session.intermediates and handle not in next_level
            ]
            if consumed:
                await self._cleanup.discard_intermediates(session, consumed)

            rounds += 1
            logger.debug(
                f"Upload {session.upload_id} round {rounds}: {len(level)} -> {len(next_level)} objects"
            )
            level = next_level

        survivor = level[0]
        if survivor.location != session.target_path:
            survivor = await self._strategy.finalize(session, survivor)

        size = sum(handle.size for handle in ordered)
        elapsed = time.time() - started
        logger.info(
            f"Assembled upload {session.upload_id}: {size} bytes in {rounds} rounds ({elapsed:.3f}s)"
        )

        return AssemblyResult(
            upload_id=session.upload_id,
            target_path=session.target_path,
            part_count=len(ordered),
            size=size,
            rounds=rounds,
            strategy=self._strategy.name,
        )
