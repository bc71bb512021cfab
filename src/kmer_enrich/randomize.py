from concurrent.futures import ProcessPoolExecutor
from itertools import repeat
from typing import Callable, Iterator, List, Optional

import numpy as np
from loguru import logger

from .intervals import Bound, Interval

MIN_ITERATIONS = 3

Placement = Callable[[Interval, List[Interval], np.random.Generator, int], List[Interval]]


class CoverageMask:
    '''Offsets of one transcript already claimed in the current iteration.

    Offsets run from 0 to the transcript length inclusive, and every range is
    closed: an interval of length L placed at offset o claims o..o+L, so two
    intervals that only touch end to start still collide.
    '''

    def __init__(self, length: int) -> None:
        self.mask = np.zeros(length + 1, dtype=bool)

    def collides(self, offset: int, span: int) -> bool:
        return bool(self.mask[offset:offset + span + 1].any())

    def claim(self, offset: int, span: int) -> None:
        self.mask[offset:offset + span + 1] = True


def randomize_transcript(
    transcript: Interval,
    intervals: List[Interval],
    rng: np.random.Generator,
    max_retries: int = 10
) -> List[Interval]:
    '''Re-place a transcript's intervals at random, non-overlapping offsets.

    Intervals are handled in the given order. Each gets an initial draw plus up
    to max_retries redraws on collision; one that still collides is dropped
    from the output.

    Args:
        transcript (Interval): Transcript bounding the placements
        intervals (List[Interval]): Real intervals contained in the transcript
        rng (np.random.Generator): Random source for the start offsets
        max_retries (int): Redraws allowed per interval after a collision

    Returns:
        List[Interval]: New records with the transcript's chrom and strand,
            empty name and zero score
    '''
    t_len = transcript.length
    coverage = CoverageMask(t_len)
    placed = []
    dropped = 0

    for interval in intervals:
        span = interval.length
        if span > t_len:
            raise ValueError(
                f"Interval {interval.chrom}:{interval.start}-{interval.end} is longer than "
                f"transcript {transcript.chrom}:{transcript.start}-{transcript.end}"
            )

        retries = 0
        while True:
            offset = int(rng.integers(0, t_len - span + 1))
            if not coverage.collides(offset, span):
                coverage.claim(offset, span)
                start = transcript.start + offset
                placed.append(Interval(transcript.chrom, start, start + span, '', 0, transcript.strand))
                break
            retries += 1
            if retries > max_retries:
                dropped += 1
                break

    if dropped:
        logger.debug(
            f"Dropped {dropped}/{len(intervals)} intervals in "
            f"{transcript.chrom}:{transcript.start}-{transcript.end}({transcript.strand}) after {max_retries} retries"
        )
    return placed


def identity_placement(
    transcript: Interval,
    intervals: List[Interval],
    rng: np.random.Generator,
    max_retries: int = 10
) -> List[Interval]:
    '''Keep every interval where it is. Gives a null model equal to the observed data.'''
    return [Interval(i.chrom, i.start, i.end, '', 0, i.strand) for i in intervals]


def randomize_iteration(
    bound: List[Bound],
    seed_seq: np.random.SeedSequence,
    max_retries: int = 10,
    placement: Placement = randomize_transcript
) -> List[Interval]:
    '''One randomization pass over every bound transcript.

    Each transcript draws from its own stream spawned from seed_seq, so the
    result does not depend on how transcripts or iterations are scheduled.
    '''
    randomized = []
    for (transcript, intervals), child in zip(bound, seed_seq.spawn(len(bound))):
        rng = np.random.default_rng(child)
        randomized.extend(placement(transcript, intervals, rng, max_retries))
    return randomized


def iterate_randomizations(
    bound: List[Bound],
    iterations: int,
    seed: Optional[int] = None,
    max_retries: int = 10,
    workers: int = 1,
    placement: Placement = randomize_transcript
) -> Iterator[List[Interval]]:
    '''Yield one randomized interval set per iteration, in iteration order.

    Iterations share no state. Their random streams are spawned from a single
    root seed, so a given seed gives the same output whatever the worker count.
    '''
    if iterations < MIN_ITERATIONS:
        raise ValueError(f"At least {MIN_ITERATIONS} iterations are required, got {iterations}")

    root = np.random.SeedSequence(seed)
    if seed is None:
        logger.info(f"No seed given; using entropy {root.entropy}")
    return _run_iterations(bound, root.spawn(iterations), max_retries, workers, placement)


def _run_iterations(
    bound: List[Bound],
    iteration_seqs: List[np.random.SeedSequence],
    max_retries: int,
    workers: int,
    placement: Placement
) -> Iterator[List[Interval]]:
    iterations = len(iteration_seqs)
    if workers > 1:
        with ProcessPoolExecutor(max_workers=workers) as executor:
            yield from executor.map(
                randomize_iteration,
                repeat(bound, iterations),
                iteration_seqs,
                repeat(max_retries, iterations),
                repeat(placement, iterations)
            )
    else:
        for seed_seq in iteration_seqs:
            yield randomize_iteration(bound, seed_seq, max_retries, placement)
