import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from loguru import logger
from tqdm import tqdm

from .genome import GenomeContext, write_fasta
from .intervals import Interval, bound_transcripts, extract_chromosomes, write_bed
from .kmers import count_kmer_presence, count_kmers_in_fasta
from .randomize import Placement, iterate_randomizations, randomize_transcript
from .stats import aggregate


def observed_frequencies(
    intervals: List[Interval],
    genome: GenomeContext,
    k: int,
    stranded: bool = True
) -> Dict[str, int]:
    '''Kmer presence counts over the real binding intervals.'''
    return count_kmer_presence(genome.sequences_for_intervals(intervals, stranded), k)


def iteration_frequencies(
    randomized: List[Interval],
    genome: GenomeContext,
    k: int,
    stranded: bool = True,
    intermediate_dir: Optional[str] = None,
    keep_intermediate: bool = False,
    index: int = 0
) -> Dict[str, int]:
    '''Kmer presence counts for one randomized iteration.

    With intermediate_dir set, the iteration is handed off through files
    (BED, then FASTA, then the count table), each removed once read unless
    keep_intermediate is set.
    '''
    if intermediate_dir is None:
        return count_kmer_presence(genome.sequences_for_intervals(randomized, stranded), k)

    bed_path = Path(intermediate_dir) / f"iteration_{index}.bed"
    fasta_path = Path(intermediate_dir) / f"iteration_{index}.fa"

    write_bed(randomized, bed_path)
    write_fasta(randomized, genome.sequences_for_intervals(randomized, stranded), fasta_path)
    if not keep_intermediate:
        os.remove(bed_path)

    table = count_kmers_in_fasta(fasta_path, k)
    if not keep_intermediate and fasta_path.exists():
        os.remove(fasta_path)
    return table


def run_enrichment(
    transcripts: List[Interval],
    intervals: List[Interval],
    genome: GenomeContext,
    config: Dict[str, Any],
    placement: Placement = randomize_transcript
) -> pd.DataFrame:
    '''Score every observed kmer against a randomized null model.

    Args:
        transcripts: Transcript records bounding the random placements
        intervals: Real binding intervals
        genome: Sequence lookup for both real and randomized intervals
        config: Resolved settings (see config.DEFAULTS)
        placement: Per-transcript placement function

    Returns:
        pd.DataFrame: Enrichment table sorted by descending z-score
    '''
    k = config['kmer_length']
    stranded = config['stranded']
    iterations = config['iterations']

    logger.info(f"Counting {k}-mers in {len(intervals)} observed binding intervals")
    observed = observed_frequencies(intervals, genome, k, stranded)
    logger.info(f"Observed {len(observed)} distinct {k}-mers")

    chromosomes = extract_chromosomes(transcripts)
    bound = bound_transcripts(transcripts, intervals, chromosomes)
    if not bound:
        logger.warning("No binding interval lies inside a transcript; randomized iterations will be empty")

    intermediate_dir = config.get('intermediate_dir')
    if intermediate_dir:
        Path(intermediate_dir).mkdir(parents=True, exist_ok=True)

    logger.info(f"Running {iterations} randomizations (seed={config['seed']}, workers={config['workers']})")
    randomizations = iterate_randomizations(
        bound,
        iterations,
        seed=config['seed'],
        max_retries=config['max_retries'],
        workers=config['workers'],
        placement=placement
    )

    iteration_tables = []
    progress = tqdm(randomizations, total=iterations, desc='Iterations', disable=not config.get('verbose'))
    for i, randomized in enumerate(progress, 1):
        logger.debug(f"Iteration {i}: placed {len(randomized)} intervals")
        iteration_tables.append(iteration_frequencies(
            randomized,
            genome,
            k,
            stranded,
            intermediate_dir=intermediate_dir,
            keep_intermediate=config.get('keep_intermediate', False),
            index=i
        ))

    return aggregate(observed, iteration_tables, config['dispersion'])
