import os
from typing import Dict, List

import numpy as np
import pandas as pd
from loguru import logger

# z-score reported when the randomized frequencies have no spread
UNDEFINED_Z = float('inf')

DISPERSIONS = ('unnormalized', 'stdev')

COLUMNS = [
    'kmer',
    'observed_kmer_frequency',
    'z_score',
    'mean_randomized_kmer_frequency',
    'stdev_of_randomized_kmer_frequency',
]


def aggregate(
    observed: Dict[str, int],
    iteration_tables: List[Dict[str, int]],
    dispersion: str = 'unnormalized'
) -> pd.DataFrame:
    '''Score every observed kmer against the randomized iterations.

    For each kmer K seen in the observed table:
        mean(K)       = sum of frequency(K, i) over iterations / I
        dispersion(K) = sqrt(sum of (frequency(K, i) - mean(K))^2)
        z(K)          = (observed(K) - mean(K)) / dispersion(K)

    An iteration lacking K counts as 0. Kmers seen only in randomized data are
    not scored. With dispersion='stdev' the sum of squares is divided by I - 1
    before the square root, giving the sample standard deviation instead.

    Args:
        observed: Kmer presence counts over the real binding intervals
        iteration_tables: One kmer presence table per randomized iteration
        dispersion: 'unnormalized' or 'stdev'

    Returns:
        pd.DataFrame: One row per observed kmer, sorted by descending z-score,
            UNDEFINED_Z rows first
    '''
    if dispersion not in DISPERSIONS:
        raise ValueError(f"Unknown dispersion '{dispersion}', expected one of {DISPERSIONS}")
    n_iter = len(iteration_tables)
    if n_iter == 0:
        raise ValueError("No randomized iterations to aggregate")
    if dispersion == 'stdev' and n_iter < 2:
        raise ValueError("Sample standard deviation needs at least 2 iterations")

    kmers = sorted(observed)
    obs = np.array([observed[k] for k in kmers], dtype=np.int64)
    rand = np.array(
        [[table.get(k, 0) for table in iteration_tables] for k in kmers],
        dtype=np.float64
    ).reshape(len(kmers), n_iter)

    mean = rand.sum(axis=1) / n_iter
    sq_dev = ((rand - mean[:, None]) ** 2).sum(axis=1)
    if dispersion == 'stdev':
        sq_dev = sq_dev / (n_iter - 1)
    spread = np.sqrt(sq_dev)

    z = np.full(len(kmers), UNDEFINED_Z)
    defined = spread != 0
    z[defined] = (obs[defined] - mean[defined]) / spread[defined]

    logger.info(f"Scored {len(kmers)} kmers over {n_iter} iterations ({int((~defined).sum())} with zero dispersion)")

    table = pd.DataFrame({
        'kmer': kmers,
        'observed_kmer_frequency': obs,
        'z_score': z,
        'mean_randomized_kmer_frequency': mean,
        'stdev_of_randomized_kmer_frequency': spread,
    }, columns=COLUMNS)
    # kmers are already alphabetical, so a stable sort keeps ties deterministic
    return table.sort_values('z_score', ascending=False, kind='mergesort').reset_index(drop=True)


def write_table(table: pd.DataFrame, path: str) -> None:
    '''Write the score table as TSV, replacing any existing file only once complete.'''
    tmp = f"{path}.tmp"
    table.to_csv(tmp, sep='\t', index=False)
    os.replace(tmp, path)
    logger.info(f"Wrote {len(table)} kmer scores to {path}")
