"""Embedding vector representation and its compact wire form."""

from __future__ import annotations

from typing import Iterable, List, Sequence

import numpy as np

Vector = np.ndarray


def as_vector(values: Iterable[float]) -> Vector:
    """Freeze a sequence of floats into a read-only float32 vector."""
    if not isinstance(values, np.ndarray):
        values = list(values)
    vec = np.array(values, dtype=np.float32)
    if vec.ndim != 1:
        raise ValueError(f"Embedding must be one-dimensional, got shape {vec.shape}")
    vec.flags.writeable = False
    return vec


def vector_to_bytes(vector: Sequence[float]) -> bytes:
    """Little-endian float32 buffer, the layout vector indices expect as query parameters."""
    return np.asarray(vector, dtype="<f4").tobytes()


def bytes_to_vector(buffer: bytes) -> Vector:
    if len(buffer) % 4:
        raise ValueError(f"Buffer length {len(buffer)} is not a multiple of 4")
    return as_vector(np.frombuffer(buffer, dtype="<f4"))


def vector_to_list(vector: Sequence[float]) -> List[float]:
    """JSON-friendly list; values are already rounded to float32 precision."""
    return [float(x) for x in np.asarray(vector, dtype=np.float32)]


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """1 - cosine similarity: 0 for identical direction, up to 2 for opposite."""
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    if va.shape != vb.shape:
        raise ValueError(f"Dimension mismatch: {va.shape} vs {vb.shape}")
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 1.0
    return float(1.0 - float(np.dot(va, vb)) / denom)
