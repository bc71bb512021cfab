import gzip
from collections import defaultdict
from mimetypes import guess_type
from typing import Dict, Iterable, Set, TextIO, Union

from Bio import SeqIO
from loguru import logger

VALID_BASES = frozenset('ACGT')


def open_file(filename: str) -> Union[TextIO, gzip.GzipFile]:
    """Open file handling gzip if needed.

    Args:
        filename (str): Path to file

    Returns:
        File handle: Regular or gzip file handle
    """
    encoding = guess_type(str(filename))[1]
    if encoding == 'gzip':
        return gzip.open(filename, 'rt')
    return open(filename)


def kmer_set(sequence: str, k: int) -> Set[str]:
    """Distinct kmers present in a sequence.

    Kmers containing N or any symbol outside ACGT are skipped. Sequences shorter
    than k contribute nothing.

    Args:
        sequence (str): DNA sequence, any case
        k (int): Size of kmer window

    Returns:
        set: Uppercase kmers found at any offset
    """
    if k < 1:
        raise ValueError(f"kmer length must be >= 1, got {k}")

    sequence = sequence.upper()
    kmers = set()
    for i in range(len(sequence) - k + 1):
        kmer = sequence[i:i+k]
        if VALID_BASES.issuperset(kmer):
            kmers.add(kmer)
    return kmers


def count_kmer_presence(sequences: Iterable[str], k: int) -> Dict[str, int]:
    """Count, for each kmer, how many sequences contain it at least once.

    This is an incidence count: a kmer seen five times in one sequence adds
    one to its total.
    """
    presence = defaultdict(int)
    for seq in sequences:
        for kmer in kmer_set(str(seq), k):
            presence[kmer] += 1
    return dict(presence)


def count_kmers_in_fasta(path: str, k: int) -> Dict[str, int]:
    """Kmer presence counts over every record in a FASTA file.

    An unreadable file is reported and contributes an empty table.
    """
    if k < 1:
        raise ValueError(f"kmer length must be >= 1, got {k}")
    try:
        with open_file(path) as handle:
            return count_kmer_presence((rec.seq for rec in SeqIO.parse(handle, 'fasta')), k)
    except (OSError, ValueError) as e:
        logger.warning(f"Skipping unreadable sequence file {path}: {e}")
        return {}
