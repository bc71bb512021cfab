# Shared fixtures: a tiny two-chromosome genome plus matching transcript and
# binding-interval BED files, all written into tmp_path.

import sys
from pathlib import Path

import pytest
from loguru import logger

from kmer_enrich.intervals import Interval

CHR1 = "ACGTTGCA" * 25  # 200 bp
CHR2 = "GGGATTACAC" * 10  # 100 bp


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def genome_fasta(tmp_path: Path) -> Path:
    p = tmp_path / "genome.fa"
    with p.open("w") as f:
        f.write(">chr1\n" + CHR1 + "\n")
        f.write(">chr2\n" + CHR2 + "\n")
    return p


@pytest.fixture
def transcripts() -> list:
    return [
        Interval("chr1", 0, 60, "tx1", 0, "+"),
        Interval("chr1", 100, 160, "tx2", 0, "+"),
        Interval("chr2", 20, 80, "tx3", 0, "-"),
    ]


@pytest.fixture
def binding_intervals() -> list:
    return [
        Interval("chr1", 10, 16, "peak1", 5, "+"),
        Interval("chr1", 120, 126, "peak2", 3, "+"),
        Interval("chr2", 30, 38, "peak3", 1, "-"),
    ]


def _write_bed(path: Path, records: list, header: bool = False) -> Path:
    with path.open("w") as f:
        if header:
            f.write("track name=test\n")
        for r in records:
            f.write(r.to_bed() + "\n")
    return path


@pytest.fixture
def transcripts_bed(tmp_path: Path, transcripts) -> Path:
    return _write_bed(tmp_path / "transcripts.bed", transcripts, header=True)


@pytest.fixture
def intervals_bed(tmp_path: Path, binding_intervals) -> Path:
    return _write_bed(tmp_path / "intervals.bed", binding_intervals)
