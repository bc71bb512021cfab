import os
from typing import Dict, Iterable, List, Optional

from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord
from loguru import logger

from .intervals import Interval
from .kmers import open_file


class GenomeContext:
    '''Reference genome held in memory for coordinate to sequence lookups.

    Attributes:
        fasta (Optional[str]): Path to the genome FASTA file, None when built from sequences
        chroms (Dict[str, Seq]): Sequence for each FASTA record, keyed by record id
    '''

    def __init__(self, fasta: Optional[str] = None, sequences: Optional[Dict[str, str]] = None) -> None:
        '''Load every record of a (optionally gzipped) genome FASTA.

        Args:
            fasta (str): Path to the genome FASTA file
            sequences (Dict[str, str]): Chromosome sequences to use instead of a file
        '''
        self.fasta = fasta
        self._missing = set()
        self._truncated = set()

        if sequences is not None:
            self.chroms: Dict[str, Seq] = {chrom: Seq(seq) for chrom, seq in sequences.items()}
            return
        if fasta is None:
            raise ValueError("GenomeContext needs a FASTA path or a sequences mapping")
        if not os.path.exists(fasta):
            raise FileNotFoundError(f"Genome FASTA not found: {fasta}")

        with open_file(fasta) as handle:
            self.chroms = {
                record.id: record.seq for record in SeqIO.parse(handle, 'fasta')
            }
        if not self.chroms:
            raise ValueError(f"No sequences found in genome FASTA {fasta}")
        logger.info(f"Loaded {len(self.chroms)} sequences from {fasta}")

    def sequence_for_interval(self, interval: Interval, stranded: bool = True) -> str:
        '''Sequence of [start, end) on the interval's chromosome.

        Minus-strand intervals are reverse complemented when stranded. A
        chromosome absent from the genome yields an empty string, and an
        interval running past the chromosome end is truncated to it.
        '''
        chrom_seq = self.chroms.get(interval.chrom)
        if chrom_seq is None:
            if interval.chrom not in self._missing:
                logger.warning(f"Chromosome {interval.chrom} not in genome; its intervals contribute no kmers")
                self._missing.add(interval.chrom)
            return ''

        if interval.end > len(chrom_seq) and interval.chrom not in self._truncated:
            logger.warning(
                f"Interval {interval.chrom}:{interval.start}-{interval.end} runs past the end of "
                f"{interval.chrom} ({len(chrom_seq)} bp); sequences on it are truncated"
            )
            self._truncated.add(interval.chrom)

        seq = chrom_seq[interval.start:interval.end]
        if stranded and interval.strand == '-':
            seq = seq.reverse_complement()
        return str(seq).upper()

    def sequences_for_intervals(self, intervals: Iterable[Interval], stranded: bool = True) -> List[str]:
        '''One sequence per interval, in the same order.'''
        return [self.sequence_for_interval(i, stranded) for i in intervals]


def write_fasta(intervals: List[Interval], sequences: List[str], path: str) -> None:
    '''Write interval sequences to FASTA, one record per interval.'''
    records = (
        SeqRecord(Seq(seq), id=f"{i.chrom}:{i.start}-{i.end}({i.strand})", description='')
        for i, seq in zip(intervals, sequences)
    )
    with open(path, 'w') as handle:
        SeqIO.write(records, handle, 'fasta')
