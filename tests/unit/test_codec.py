import numpy as np
import pytest

from wellcoach.vector.codec import as_vector, bytes_to_vector, cosine_distance, vector_to_bytes, vector_to_list


def test_bytes_round_trip_keeps_float32_values():
    values = [0.1, -2.5, 3.14159, 1e-7, 0.0]
    restored = bytes_to_vector(vector_to_bytes(values))
    assert restored.dtype == np.float32
    np.testing.assert_array_equal(restored, np.array(values, dtype=np.float32))


def test_buffer_is_little_endian_float32():
    buffer = vector_to_bytes([1.0, 2.0])
    assert len(buffer) == 8
    assert buffer[:4] == b"\x00\x00\x80\x3f"


def test_bytes_with_partial_float_rejected():
    with pytest.raises(ValueError):
        bytes_to_vector(b"\x00\x00\x80")


def test_vectors_are_read_only():
    vector = as_vector([1.0, 2.0])
    with pytest.raises(ValueError):
        vector[0] = 5.0


def test_as_vector_rejects_nested_input():
    with pytest.raises(ValueError):
        as_vector([[1.0, 2.0], [3.0, 4.0]])


def test_vector_to_list_is_json_friendly():
    assert vector_to_list(as_vector([0.5, 1.5])) == [0.5, 1.5]


def test_cosine_distance_scale():
    assert cosine_distance([1, 0], [2, 0]) == pytest.approx(0.0)
    assert cosine_distance([1, 0], [0, 1]) == pytest.approx(1.0)
    assert cosine_distance([1, 0], [-1, 0]) == pytest.approx(2.0)


def test_cosine_distance_zero_vector_and_mismatch():
    assert cosine_distance([0, 0], [1, 0]) == 1.0
    with pytest.raises(ValueError):
        cosine_distance([1, 0, 0], [1, 0])
