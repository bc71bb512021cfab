import sys
import argparse
from argparse import Namespace
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from kmer_enrich.config import ConfigError, load_config, resolve_config, validate_config
from kmer_enrich.genome import GenomeContext
from kmer_enrich.intervals import read_bed
from kmer_enrich.pipeline import run_enrichment
from kmer_enrich.stats import DISPERSIONS, write_table

OUTPUT_NAME = 'kmer_zscores.tsv'


def parse_args(argv: Optional[List[str]] = None) -> Namespace:
    '''Parse command line arguments.

    Returns:
        Namespace: Parsed command line arguments. Options left unset are None so
            that values from a config file are not overridden.
    '''
    parser = argparse.ArgumentParser(
        description='Score k-mer enrichment in binding intervals against intervals '
                    'randomly re-placed within their transcripts'
    )
    parser.add_argument('-t', '--transcripts',
                        help='BED6 file of transcripts')
    parser.add_argument('-b', '--intervals',
                        help='BED6 file of binding intervals')
    parser.add_argument('-g', '--genome',
                        help='Genome FASTA (can be gzipped)')
    parser.add_argument('-o', '--output', required=True,
                        help='Output directory')
    parser.add_argument('-c', '--config',
                        help='YAML config file with inputs/params sections')
    parser.add_argument('-k', '--kmer-length', dest='kmer_length', type=int,
                        help='Size of kmer window (default: 6)')
    parser.add_argument('-n', '--iterations', type=int,
                        help='Number of randomizations, at least 3 (default: 10)')
    parser.add_argument('-r', '--max-retries', dest='max_retries', type=int,
                        help='Redraws per interval on collision before it is dropped (default: 10)')
    parser.add_argument('-s', '--seed', type=int,
                        help='Random seed for reproducible runs')
    parser.add_argument('-w', '--workers', type=int,
                        help='Processes for running iterations (default: 1)')
    parser.add_argument('--chrom-prefix', dest='chrom_prefix',
                        help="Prefix marking BED data lines (default: 'chr')")
    parser.add_argument('--unstranded', action='store_true',
                        help='Do not reverse complement minus-strand intervals')
    parser.add_argument('--dispersion', choices=DISPERSIONS,
                        help='Spread of randomized frequencies (default: unnormalized)')
    parser.add_argument('--intermediate-dir', dest='intermediate_dir',
                        help='Hand iterations off through BED/FASTA files in this directory')
    parser.add_argument('--keep-intermediate', dest='keep_intermediate', action='store_true',
                        help='Keep per-iteration files instead of deleting them')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging and progress bars')
    return parser.parse_args(argv)


def setup_logging(outdir: str, verbose: bool = False) -> None:
    '''Setup loguru logger with file and console outputs.'''
    log_path = Path(outdir) / 'logs'
    log_path.mkdir(parents=True, exist_ok=True)

    # Remove any existing handlers
    logger.remove()

    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")

    logger.add(
        log_path / "kmer_zscore_{time}.log",
        level="DEBUG",
        rotation="1 day"
    )


def cli_settings(args: Namespace) -> Dict[str, Any]:
    '''CLI values that take part in config resolution; flags unset become None.'''
    settings = {k: v for k, v in vars(args).items() if k not in ('output', 'config', 'unstranded')}
    settings['stranded'] = False if args.unstranded else None
    settings['keep_intermediate'] = True if args.keep_intermediate else None
    settings['verbose'] = True if args.verbose else None
    return settings


def main(argv: Optional[List[str]] = None) -> None:
    '''Main function to run the kmer enrichment analysis.'''
    args = parse_args(argv)
    outdir = args.output.rstrip('/')

    try:
        file_config = load_config(args.config) if args.config else {}
        config = resolve_config(cli_settings(args), file_config)
        validate_config(config)
    except ConfigError as e:
        setup_logging(outdir, args.verbose)
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(outdir, config['verbose'])

    logger.info("Configuration settings:")
    logger.info(f"  Transcripts: {config['transcripts']}")
    logger.info(f"  Binding intervals: {config['intervals']}")
    logger.info(f"  Genome: {config['genome']}")
    logger.info(f"  Kmer length: {config['kmer_length']}")
    logger.info(f"  Iterations: {config['iterations']}")
    logger.info(f"  Max retries: {config['max_retries']}")
    logger.info(f"  Seed: {config['seed']}")
    logger.info(f"  Dispersion: {config['dispersion']}")
    logger.info(f"  Output directory: {outdir}")

    try:
        transcripts = read_bed(config['transcripts'], config['chrom_prefix'])
        intervals = read_bed(config['intervals'], config['chrom_prefix'])
        genome = GenomeContext(config['genome'])
    except (OSError, ValueError) as e:
        logger.error(f"Could not read input: {e}")
        sys.exit(1)

    if not intervals:
        logger.error(f"No binding intervals read from {config['intervals']}")
        sys.exit(1)

    table = run_enrichment(transcripts, intervals, genome, config)
    write_table(table, str(Path(outdir) / OUTPUT_NAME))

    logger.success("Kmer enrichment completed successfully")


if __name__ == '__main__':
    main()
