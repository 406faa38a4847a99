"""Tests for wfes.io: result line and output files."""

import numpy as np
import pandas as pd

from wfes.io import format_result_line, read_vector, write_state_table, write_vector
from wfes.parameters import ModelParameters
from wfes.statistics import reduce_statistics


def _results():
    return reduce_statistics([0.75, 0.5, 0.25], [1.25, 0.5, 0.125])


class TestFormatResultLine:
    def test_ten_fields(self):
        params = ModelParameters(2, 0.001, 1e-9, 1e-9, 0.5)
        fields = format_result_line(params, _results()).split(",")
        assert len(fields) == 10
        assert fields[0] == "2"
        assert fields[1] == "0.001"
        assert fields[2] == "1e-09"
        assert float(fields[5]) == 0.75
        assert float(fields[6]) == 0.25

    def test_nan_fields(self):
        params = ModelParameters(2, 0.0, 1.0, 0.0, 0.5)
        results = reduce_statistics([1.0, 1.0, 1.0], [1.0, 0.0, 0.0])
        fields = format_result_line(params, results).split(",")
        assert fields[8] == "nan"
        assert fields[6] == "0"


class TestVectorFiles:
    def test_write_then_read(self, tmp_path):
        values = np.array([0.123456789, 1e-20, 42.0, 0.0])
        path = write_vector(tmp_path / "vec.csv", values)
        assert path.read_text().count("\n") == 1
        np.testing.assert_allclose(read_vector(path), values, rtol=1e-5)

    def test_single_line_comma_separated(self, tmp_path):
        path = write_vector(tmp_path / "vec.csv", [1.0, 2.5, 3.0])
        assert path.read_text() == "1,2.5,3\n"

    def test_read_empty(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        assert read_vector(path).size == 0


class TestStateTable:
    def test_written_table(self, tmp_path):
        path = write_state_table(tmp_path / "table.csv", _results())
        df = pd.read_csv(path)
        assert list(df.columns) == ['copies', 'extinction', 'fixation', 'sojourn']
        assert list(df['copies']) == [1, 2, 3]
        np.testing.assert_allclose(df['sojourn'], [1.25, 0.5, 0.125])
