import numpy as np
from typing import Iterable, Sequence, Union

EPS = 1e-6

ZERO_VECTOR = np.zeros(3, dtype=float)
ZERO_VECTOR.setflags(write=False)


def landmarks_to_array(landmarks: Iterable) -> np.ndarray:
    """Convert an iterable of landmarks into an Nx3 NumPy array.

    Each landmark may be an object with `.x`, `.y` and `.z` attributes
    (MediaPipe style) or any sequence of three numbers.

    Returns:
        np.ndarray of shape (N, 3) dtype float with columns (x, y, z).
    """
    rows = []
    for lm in landmarks:
        if hasattr(lm, 'x') and hasattr(lm, 'y'):
            rows.append([lm.x, lm.y, getattr(lm, 'z', 0.0)])
        else:
            rows.append(list(lm)[:3])
    return np.array(rows, dtype=float).reshape((-1, 3))


def as_point(p: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """Return `p` as a float64 3-vector."""
    arr = np.asarray(p, dtype=float)
    if arr.shape != (3,):
        raise ValueError(f"expected a 3D point, got shape {arr.shape}")
    return arr


def euclidean(a, b):
    """Euclidean distance between points.

    - If `a` and `b` are 1-D points, returns a scalar.
    - If arrays of points, returns distances per-row.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    return np.linalg.norm(a - b, axis=-1)


def normalize(v, fallback=None) -> np.ndarray:
    """Unit vector along `v`.

    Vectors shorter than EPS return `fallback` (the zero vector by default)
    instead of dividing by ~0.
    """
    v = np.asarray(v, dtype=float)
    length = float(np.linalg.norm(v))
    if length <= EPS:
        return np.zeros(3, dtype=float) if fallback is None else np.asarray(fallback, dtype=float)
    return v / length


def clamp01(x: float) -> float:
    if x != x:  # NaN
        return 0.0
    return float(min(1.0, max(0.0, x)))


def joint_angle_deg(prev_pt, joint_pt, next_pt) -> float:
    """Angle in degrees at `joint_pt` between the segments to its neighbours.

    180 means the three points are collinear (straight joint); smaller values
    mean a sharper bend. Degenerate segments count as straight.
    """
    v1 = np.asarray(prev_pt, dtype=float) - np.asarray(joint_pt, dtype=float)
    v2 = np.asarray(next_pt, dtype=float) - np.asarray(joint_pt, dtype=float)
    n1 = float(np.linalg.norm(v1))
    n2 = float(np.linalg.norm(v2))
    if n1 <= EPS or n2 <= EPS:
        return 180.0
    cosine = float(np.dot(v1, v2)) / (n1 * n2)
    cosine = max(-1.0, min(1.0, cosine))
    return float(np.degrees(np.arccos(cosine)))


def quat_rotate(q, v) -> np.ndarray:
    """Rotate vector `v` by unit quaternion `q` given as (x, y, z, w)."""
    q = np.asarray(q, dtype=float)
    v = np.asarray(v, dtype=float)
    u, w = q[:3], q[3]
    t = 2.0 * np.cross(u, v)
    return v + w * t + np.cross(u, t)


class EWMA:
    """Exponential weighted moving average for smoothing scalars or vectors.

    Example:
        s = EWMA(alpha=0.2)
        smoothed = s.update([confidence])
    """

    def __init__(self, alpha: float = 0.2, init: Union[None, Iterable] = None) -> None:
        self.alpha = float(alpha)
        self.value = None if init is None else np.array(init, dtype=float)

    def update(self, x: Iterable) -> np.ndarray:
        x = np.array(x, dtype=float)
        if self.value is None:
            self.value = x
        else:
            self.value = self.alpha * x + (1 - self.alpha) * self.value
        return self.value

    def reset(self) -> None:
        self.value = None


__all__ = [
    "EPS",
    "ZERO_VECTOR",
    "landmarks_to_array",
    "as_point",
    "euclidean",
    "normalize",
    "clamp01",
    "joint_angle_deg",
    "quat_rotate",
    "EWMA",
]
