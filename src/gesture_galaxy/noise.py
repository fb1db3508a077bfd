"""
Noise Module - 3D Simplex Noise
===============================
Vectorized 3D simplex noise (Ashima Arts / Stefan Gustavson formulation)
evaluated over numpy arrays, so a whole particle buffer is sampled in one call.

Output is smooth in all three inputs and lies roughly in [-1, 1].
"""

import numpy as np

# Skew / unskew factors for 3D
_F3 = 1.0 / 3.0
_G3 = 1.0 / 6.0

# Gradient ring constants (7x7 points over a square, mapped to an octahedron)
_NS_X = 2.0 / 7.0
_NS_Y = 0.5 / 7.0 - 1.0
_NS_Z = 1.0 / 7.0


def _mod289(x: np.ndarray) -> np.ndarray:
    return x - np.floor(x * (1.0 / 289.0)) * 289.0


def _permute(x: np.ndarray) -> np.ndarray:
    return _mod289(((x * 34.0) + 1.0) * x)


def _taylor_inv_sqrt(r: np.ndarray) -> np.ndarray:
    return 1.79284291400159 - 0.85373472095314 * r


def snoise3(x, y, z) -> np.ndarray:
    """
    Sample 3D simplex noise.

    Args:
        x, y, z: Scalars or arrays (broadcast together)

    Returns:
        Array of noise values with the broadcast shape
    """
    x, y, z = np.broadcast_arrays(
        np.asarray(x, dtype=np.float64),
        np.asarray(y, dtype=np.float64),
        np.asarray(z, dtype=np.float64),
    )
    v = np.stack([x, y, z], axis=-1)

    # First corner
    i = np.floor(v + v.sum(axis=-1, keepdims=True) * _F3)
    x0 = v - i + i.sum(axis=-1, keepdims=True) * _G3

    # Other corners
    g = (x0 >= np.roll(x0, -1, axis=-1)).astype(np.float64)
    l_zxy = np.roll(1.0 - g, 1, axis=-1)
    i1 = np.minimum(g, l_zxy)
    i2 = np.maximum(g, l_zxy)

    x1 = x0 - i1 + _G3
    x2 = x0 - i2 + 2.0 * _G3
    x3 = x0 - 0.5

    # Permutations
    i = _mod289(i)
    zeros = np.zeros(i.shape[:-1])
    ones = np.ones(i.shape[:-1])

    def corner_offsets(axis: int) -> np.ndarray:
        return np.stack([zeros, i1[..., axis], i2[..., axis], ones], axis=-1)

    p = _permute(i[..., 2:3] + corner_offsets(2))
    p = _permute(p + i[..., 1:2] + corner_offsets(1))
    p = _permute(p + i[..., 0:1] + corner_offsets(0))

    # Gradients
    j = p - 49.0 * np.floor(p * _NS_Z * _NS_Z)
    x_ = np.floor(j * _NS_Z)
    y_ = np.floor(j - 7.0 * x_)

    gx = x_ * _NS_X + _NS_Y
    gy = y_ * _NS_X + _NS_Y
    h = 1.0 - np.abs(gx) - np.abs(gy)

    sh = -(h <= 0.0).astype(np.float64)
    gx = gx + (np.floor(gx) * 2.0 + 1.0) * sh
    gy = gy + (np.floor(gy) * 2.0 + 1.0) * sh
    gz = h

    norm = _taylor_inv_sqrt(gx * gx + gy * gy + gz * gz)
    gx = gx * norm
    gy = gy * norm
    gz = gz * norm

    # Mix contributions from the four corners
    corners = np.stack([x0, x1, x2, x3], axis=-2)
    m = np.maximum(0.6 - np.sum(corners * corners, axis=-1), 0.0)
    m = m * m
    dots = gx * corners[..., 0] + gy * corners[..., 1] + gz * corners[..., 2]

    return 42.0 * np.sum(m * m * dots, axis=-1)
