import math
from pathlib import Path

import pytest

from kmer_enrich.stats import COLUMNS, UNDEFINED_Z, aggregate, write_table


def row(table, kmer):
    return table.set_index("kmer").loc[kmer]


class TestAggregate:
    def test_unnormalized_dispersion(self):
        table = aggregate({"AAA": 5}, [{"AAA": 1}, {"AAA": 2}, {"AAA": 3}])
        r = row(table, "AAA")
        assert r["observed_kmer_frequency"] == 5
        assert r["mean_randomized_kmer_frequency"] == pytest.approx(2.0)
        # sqrt(1 + 0 + 1), no division by the number of iterations
        assert r["stdev_of_randomized_kmer_frequency"] == pytest.approx(math.sqrt(2))
        assert r["z_score"] == pytest.approx(3 / math.sqrt(2))

    def test_sample_stdev_option(self):
        table = aggregate({"AAA": 5}, [{"AAA": 1}, {"AAA": 2}, {"AAA": 3}], dispersion="stdev")
        r = row(table, "AAA")
        assert r["stdev_of_randomized_kmer_frequency"] == pytest.approx(1.0)
        assert r["z_score"] == pytest.approx(3.0)

    def test_absent_from_every_iteration(self):
        table = aggregate({"CCC": 2}, [{}, {"AAA": 1}, {}])
        r = row(table, "CCC")
        assert r["mean_randomized_kmer_frequency"] == 0
        assert r["stdev_of_randomized_kmer_frequency"] == 0
        assert r["z_score"] == UNDEFINED_Z

    def test_constant_frequency_gives_zero_dispersion(self):
        table = aggregate({"GGG": 1}, [{"GGG": 4}] * 5)
        r = row(table, "GGG")
        assert r["mean_randomized_kmer_frequency"] == 4
        assert r["stdev_of_randomized_kmer_frequency"] == 0
        assert math.isinf(r["z_score"])

    def test_only_observed_kmers_scored(self):
        table = aggregate({"AAA": 1}, [{"AAA": 1, "TTT": 9}, {"TTT": 9}, {"AAA": 2, "TTT": 9}])
        assert list(table["kmer"]) == ["AAA"]

    def test_sorted_by_descending_z_with_undefined_first(self):
        observed = {"AAA": 1, "CCC": 10, "GGG": 3, "TTT": 0}
        tables = [
            {"AAA": 2, "CCC": 1, "GGG": 3},
            {"AAA": 4, "CCC": 2, "GGG": 3},
            {"AAA": 3, "CCC": 3, "GGG": 3},
        ]
        table = aggregate(observed, tables)
        assert list(table.columns) == COLUMNS
        # GGG has zero dispersion, TTT is absent everywhere
        assert list(table["kmer"]) == ["GGG", "TTT", "CCC", "AAA"]
        assert table["z_score"].iloc[-1] < 0

    def test_empty_observed(self):
        table = aggregate({}, [{"AAA": 1}] * 3)
        assert table.empty
        assert list(table.columns) == COLUMNS

    def test_invalid_inputs(self):
        with pytest.raises(ValueError):
            aggregate({"AAA": 1}, [])
        with pytest.raises(ValueError):
            aggregate({"AAA": 1}, [{}] * 3, dispersion="mad")


class TestWriteTable:
    def test_tsv_header_and_no_leftovers(self, tmp_path: Path):
        out = tmp_path / "scores.tsv"
        write_table(aggregate({"AAA": 5, "CCC": 1}, [{"AAA": 1}, {"AAA": 2}, {"AAA": 3}]), str(out))
        lines = out.read_text().splitlines()
        assert lines[0].split("\t") == COLUMNS
        assert lines[1].split("\t")[0] == "CCC"
        assert lines[1].split("\t")[2] == "inf"
        assert not (tmp_path / "scores.tsv.tmp").exists()
