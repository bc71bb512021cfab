import gzip
from pathlib import Path

import pytest
from Bio import SeqIO
from loguru import logger

from kmer_enrich.genome import GenomeContext, write_fasta
from kmer_enrich.intervals import Interval

from conftest import CHR1, CHR2


class TestGenomeContext:
    def test_loads_all_records(self, genome_fasta: Path):
        genome = GenomeContext(str(genome_fasta))
        assert set(genome.chroms) == {"chr1", "chr2"}
        assert len(genome.chroms["chr1"]) == 200

    def test_gzipped(self, tmp_path: Path):
        p = tmp_path / "genome.fa.gz"
        with gzip.open(p, "wt") as f:
            f.write(">chrX\nacgtacgt\n")
        genome = GenomeContext(str(p))
        assert genome.sequence_for_interval(Interval("chrX", 0, 4)) == "ACGT"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            GenomeContext(str(tmp_path / "nope.fa"))

    def test_empty_file(self, tmp_path: Path):
        p = tmp_path / "empty.fa"
        p.write_text("")
        with pytest.raises(ValueError):
            GenomeContext(str(p))

    def test_sequences_mapping(self):
        genome = GenomeContext(sequences={"chr1": "acgt"})
        assert genome.fasta is None
        assert genome.sequence_for_interval(Interval("chr1", 1, 3)) == "CG"

    def test_needs_a_source(self):
        with pytest.raises(ValueError):
            GenomeContext()


class TestSequenceLookup:
    def test_plus_strand(self, genome_fasta: Path):
        genome = GenomeContext(str(genome_fasta))
        assert genome.sequence_for_interval(Interval("chr1", 10, 16, strand="+")) == CHR1[10:16]

    def test_minus_strand_reverse_complemented(self):
        genome = GenomeContext(sequences={"chr1": "AACCGGTTA"})
        iv = Interval("chr1", 0, 4, strand="-")
        assert genome.sequence_for_interval(iv) == "GGTT"
        assert genome.sequence_for_interval(iv, stranded=False) == "AACC"

    def test_missing_chromosome_is_empty(self, genome_fasta: Path):
        genome = GenomeContext(str(genome_fasta))
        assert genome.sequence_for_interval(Interval("chr9", 0, 10)) == ""

    def test_past_chromosome_end_truncated_and_warned_once(self):
        genome = GenomeContext(sequences={"chr1": "ACGTACGTAC"})
        messages = []
        logger.add(messages.append, level="WARNING", format="{message}")
        assert genome.sequence_for_interval(Interval("chr1", 6, 14)) == "GTAC"
        assert genome.sequence_for_interval(Interval("chr1", 8, 20)) == "AC"
        assert genome.sequence_for_interval(Interval("chr1", 0, 4)) == "ACGT"
        assert len(messages) == 1
        assert "runs past the end of chr1" in messages[0]

    def test_sequences_in_interval_order(self, genome_fasta: Path, binding_intervals):
        genome = GenomeContext(str(genome_fasta))
        seqs = genome.sequences_for_intervals(binding_intervals, stranded=False)
        assert seqs == [CHR1[10:16], CHR1[120:126], CHR2[30:38]]

    def test_write_fasta(self, tmp_path: Path, binding_intervals):
        p = tmp_path / "seqs.fa"
        write_fasta(binding_intervals[:2], ["ACGTAC", "TTTTTT"], p)
        records = list(SeqIO.parse(str(p), "fasta"))
        assert [str(r.seq) for r in records] == ["ACGTAC", "TTTTTT"]
        assert records[0].id == "chr1:10-16(+)"
