import io
import struct

import pytest

from periphsim.chronograph import (
    COLORS,
    ChronographModel,
    GraphSpec,
    Segment,
    grid_labels,
    read_header,
    read_labels,
)


def _header_bytes(title=b"Test", flags=0x82, ms=20, graphs=((1, 0, 100), (2, 10000, 120000))):
    data = struct.pack("=I", len(title)) + title
    data += struct.pack("=I", flags) + struct.pack("=I", ms)
    for count, low, high in graphs:
        data += struct.pack("=iqq", count, low, high)
    return data


def _labels_bytes(labels):
    return b"".join(struct.pack("=I", len(l)) + l for l in labels)


def test_read_header_round_trip():
    header = read_header(io.BytesIO(_header_bytes()))
    assert header.title == "Test"
    assert header.graphs == (GraphSpec(1, 0, 100), GraphSpec(2, 10000, 120000))
    assert header.average is True
    assert header.ms_between_values == 20
    assert header.bytes_per_sample == 3
    assert header.row_count == 3


def test_read_header_without_average():
    header = read_header(io.BytesIO(_header_bytes(flags=0x02)))
    assert header.average is False
    assert header.row_count == 2
    assert len(header.ranges()) == 2


def test_average_range_of_equal_graphs():
    graphs = ((1, 10, 90), (1, 10, 90), (1, 10, 90))
    header = read_header(io.BytesIO(_header_bytes(flags=0x83, graphs=graphs)))
    assert header.average_range == (10, 90)
    assert header.ranges()[-1] == (10, 90)


def test_truncated_header_raises():
    data = _header_bytes()
    with pytest.raises(EOFError):
        read_header(io.BytesIO(data[:-4]))


def test_zero_graphs_rejected():
    with pytest.raises(ValueError):
        read_header(io.BytesIO(_header_bytes(flags=0x80, graphs=())))


def test_read_labels_round_trip():
    labels = [b"CPU 0", b"CPU 1", b"All CPUs"]
    assert read_labels(io.BytesIO(_labels_bytes(labels)), 3) == ["CPU 0", "CPU 1", "All CPUs"]


def test_read_labels_truncated():
    data = struct.pack("=I", 10) + b"abc"
    with pytest.raises(EOFError):
        read_labels(io.BytesIO(data), 1)


def test_grid_labels_descend_from_max_to_min():
    labels = grid_labels(0, 100)
    assert len(labels) == 5
    assert labels[0] == "100"
    assert labels[-1] == "0"
    values = [int(v) for v in labels]
    assert values == sorted(values, reverse=True)


def test_grid_labels_flat_range():
    assert grid_labels(7, 7) == ["7"] * 5


def _model(history=64):
    header = read_header(io.BytesIO(_header_bytes()))
    return ChronographModel(header, history=history)


def test_push_builds_segments_per_graph():
    model = _model()
    column = model.push([10, 20, 30])
    assert column[0] == (Segment(0, 0, 10),)
    assert column[1] == (Segment(0, 0, 20), Segment(1, 0, 30))
    assert len(column) == 3


def test_push_average_of_equal_values():
    model = _model()
    column = model.push([30, 30, 30])
    assert column[2] == (Segment(0, 0, 30),)


def test_push_previous_values_follow():
    model = _model()
    first = model.push([10, 20, 30])
    second = model.push([40, 50, 60])
    firsts = [s.current for row in first[:2] for s in row]
    seconds = [s.previous for row in second[:2] for s in row]
    assert firsts == seconds
    assert second[2][0].previous == first[2][0].current


def test_push_wrong_length():
    model = _model()
    with pytest.raises(ValueError):
        model.push([1, 2])


def test_push_value_out_of_byte_range():
    model = _model()
    with pytest.raises(ValueError):
        model.push([1, 2, 300])


def test_colors_cycle_within_palette():
    header = read_header(io.BytesIO(_header_bytes(flags=0x01, graphs=((20, 0, 100),))))
    model = ChronographModel(header)
    column = model.push(list(range(20)))
    assert [s.color for s in column[0]] == [k % len(COLORS) for k in range(20)]


def test_history_newest_first_and_bounded():
    model = _model(history=2)
    model.push([1, 1, 1])
    model.push([2, 2, 2])
    latest = model.push([3, 3, 3])
    assert model.count == 3
    assert len(model.history) == 2
    assert model.history[0] == latest


def test_time_at_edges():
    model = _model()
    for _ in range(3):
        model.push([0, 0, 0])
    width = 540
    assert model.time_at(width - 1, width) == model.count * model.header.ms_between_values
    assert model.time_at(0, width) == 0
    assert model.time_at(width + 50, width) == model.time_at(width - 1, width)