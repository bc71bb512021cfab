from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from loguru import logger

from .kmers import open_file

STRANDS = ('+', '-')


class Interval(NamedTuple):
    '''Six-field BED record.

    Used for both binding intervals and transcripts. Coordinates are 0-based,
    half-open as read from the file.
    '''
    chrom: str
    start: int
    end: int
    name: str = ''
    score: float = 0
    strand: str = '+'

    @property
    def length(self) -> int:
        return self.end - self.start

    def to_bed(self) -> str:
        score = int(self.score) if float(self.score).is_integer() else self.score
        return f"{self.chrom}\t{self.start}\t{self.end}\t{self.name}\t{score}\t{self.strand}"


Bound = Tuple[Interval, List[Interval]]


def parse_bed_line(line: str, chrom_prefix: str = 'chr') -> Optional[Interval]:
    '''Parse one BED6 line, returning None for anything that is not a data line.

    A non-numeric score (such as '.') is read as 0. The strand is kept as
    given; records with a strand other than '+' or '-' never fall into a
    strand partition.

    Args:
        line (str): Raw line from the file
        chrom_prefix (str): Data lines must start with this chromosome token

    Returns:
        Optional[Interval]: The record, or None if the line is not a data line

    Raises:
        ValueError: If a data line has unusable coordinates
    '''
    if not line.startswith(chrom_prefix):
        return None
    fields = line.rstrip('\r\n').split('\t')
    if len(fields) != 6:
        return None
    chrom, start, end, name, score, strand = fields
    try:
        start, end = int(start), int(end)
    except ValueError:
        raise ValueError(f"non-integer coordinates {start!r}, {end!r}")
    if start < 0 or end <= start:
        raise ValueError(f"invalid coordinates {start}-{end}")
    try:
        score = float(score)
    except ValueError:
        score = 0
    if float(score).is_integer():
        score = int(score)
    return Interval(chrom, start, end, name, score, strand)


def read_bed(path: str, chrom_prefix: str = 'chr') -> List[Interval]:
    '''Read a six-field BED file (optionally gzipped) in file order.

    Non-data lines are skipped quietly; data lines with unusable coordinates
    are skipped with a warning. Raises FileNotFoundError if the file is missing.
    '''
    records = []
    skipped = 0
    invalid = 0
    with open_file(path) as handle:
        for lineno, line in enumerate(handle, 1):
            try:
                rec = parse_bed_line(line, chrom_prefix)
            except ValueError as e:
                invalid += 1
                logger.debug(f"{path}:{lineno}: {e}")
                continue
            if rec is None:
                if line.strip():
                    skipped += 1
                continue
            records.append(rec)
    if skipped:
        logger.debug(f"Skipped {skipped} non-data lines in {path}")
    if invalid:
        logger.warning(f"Skipped {invalid} lines with invalid coordinates in {path}")
    logger.info(f"Read {len(records)} intervals from {path}")
    return records


def write_bed(intervals: Iterable[Interval], path: str) -> None:
    with open(path, 'w') as f:
        for rec in intervals:
            f.write(rec.to_bed() + '\n')


def extract_chromosomes(transcripts: Iterable[Interval]) -> List[str]:
    '''Chromosome names in order of first appearance.'''
    return list(dict.fromkeys(t.chrom for t in transcripts))


def partition(records: Iterable[Interval], chrom: str, strand: str) -> List[Interval]:
    '''Records on exactly this chromosome and strand, order preserved.'''
    return [r for r in records if r.chrom == chrom and r.strand == strand]


def build_partition_index(
    transcripts: Iterable[Interval],
    intervals: Iterable[Interval]
) -> Dict[Tuple[str, str], Tuple[List[Interval], List[Interval]]]:
    '''Partition transcripts and intervals once for every (chrom, strand) key.

    Records are grouped by chromosome first so that `partition` only scans
    one chromosome's records per strand instead of the whole input.
    '''
    by_chrom: Dict[str, Tuple[List[Interval], List[Interval]]] = {}
    for t in transcripts:
        by_chrom.setdefault(t.chrom, ([], []))[0].append(t)
    for i in intervals:
        by_chrom.setdefault(i.chrom, ([], []))[1].append(i)

    index: Dict[Tuple[str, str], Tuple[List[Interval], List[Interval]]] = {}
    for chrom, (chrom_transcripts, chrom_intervals) in by_chrom.items():
        for strand in STRANDS:
            index[(chrom, strand)] = (
                partition(chrom_transcripts, chrom, strand),
                partition(chrom_intervals, chrom, strand)
            )
    return index


def contained_intervals(transcript: Interval, intervals: Iterable[Interval]) -> List[Interval]:
    '''Intervals lying fully inside the transcript (containment, not overlap).'''
    return [
        i for i in intervals
        if i.start >= transcript.start and i.end <= transcript.end
    ]


def associate(transcripts: Iterable[Interval], intervals: List[Interval]) -> List[Bound]:
    '''Pair each transcript with the intervals it contains.

    Transcripts containing no interval are dropped.
    '''
    bound = []
    for t in transcripts:
        hits = contained_intervals(t, intervals)
        if hits:
            bound.append((t, hits))
    return bound


def bound_transcripts(
    transcripts: List[Interval],
    intervals: List[Interval],
    chromosomes: Optional[List[str]] = None
) -> List[Bound]:
    '''Partition and associate across every chromosome and strand.

    Traversal follows `chromosomes` (first-appearance order in the transcripts
    by default), then '+' before '-', so the result order is fixed for a given
    input.
    '''
    if chromosomes is None:
        chromosomes = extract_chromosomes(transcripts)
    index = build_partition_index(transcripts, intervals)

    bound: List[Bound] = []
    for chrom in chromosomes:
        for strand in STRANDS:
            part_transcripts, part_intervals = index.get((chrom, strand), ([], []))
            if not part_transcripts or not part_intervals:
                continue
            bound.extend(associate(part_transcripts, part_intervals))

    n_intervals = sum(len(hits) for _, hits in bound)
    logger.info(f"{len(bound)} transcripts contain {n_intervals} binding intervals")
    return bound
