from __future__ import annotations

from dataclasses import dataclass

import numpy as np


def as_vec3(v: np.ndarray, name: str = "vector") -> np.ndarray:
    v = np.asarray(v, dtype=np.float64).reshape(-1)
    if v.shape != (3,):
        raise ValueError(f"{name} must have 3 components")
    if not np.all(np.isfinite(v)):
        raise ValueError(f"{name} has non-finite values")
    return v


def normalize(v: np.ndarray) -> np.ndarray:
    """
    Normalize along the last axis. Zero-length vectors come back as NaN.
    """
    v = np.asarray(v, dtype=np.float64)
    norms = np.linalg.norm(v, axis=-1, keepdims=True)
    with np.errstate(invalid="ignore", divide="ignore"):
        return v / norms


def _readonly(a: np.ndarray) -> np.ndarray:
    a = np.array(a, dtype=np.float64)
    a.setflags(write=False)
    return a


@dataclass(frozen=True)
class Pose:
    """
    Rigid camera-to-world transform stored as a 4x4 matrix.

    Convention: column vectors, X_world = R X_local + t.
    """

    matrix: np.ndarray  # (4,4)

    def __post_init__(self) -> None:
        m = np.asarray(self.matrix, dtype=np.float64)
        if m.shape != (4, 4):
            raise ValueError("pose matrix must have shape (4,4)")
        if not np.all(np.isfinite(m)):
            raise ValueError("pose matrix has non-finite values")
        object.__setattr__(self, "matrix", _readonly(m))

    @classmethod
    def identity(cls) -> "Pose":
        return cls(np.eye(4, dtype=np.float64))

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> "Pose":
        return cls(np.asarray(matrix, dtype=np.float64).reshape(4, 4))

    @classmethod
    def from_rotation_translation(cls, R: np.ndarray, t: np.ndarray) -> "Pose":
        m = np.eye(4, dtype=np.float64)
        m[:3, :3] = np.asarray(R, dtype=np.float64).reshape(3, 3)
        m[:3, 3] = as_vec3(t, "translation")
        return cls(m)

    @classmethod
    def from_quaternion(cls, q_wxyz: np.ndarray, t: np.ndarray) -> "Pose":
        from scipy.spatial.transform import Rotation  # type: ignore

        q = np.asarray(q_wxyz, dtype=np.float64).reshape(4)
        if float(np.linalg.norm(q)) < 1e-12:
            raise ValueError("quaternion must be non-zero")
        # scipy wants scalar-last
        R = Rotation.from_quat(q[[1, 2, 3, 0]]).as_matrix()
        return cls.from_rotation_translation(R, t)

    @property
    def rotation(self) -> np.ndarray:
        return self.matrix[:3, :3]

    @property
    def translation(self) -> np.ndarray:
        return self.matrix[:3, 3]

    def inverse(self) -> "Pose":
        R = self.rotation
        m = np.eye(4, dtype=np.float64)
        m[:3, :3] = R.T
        m[:3, 3] = -R.T @ self.translation
        return Pose(m)

    def compose(self, other: "Pose") -> "Pose":
        """Return self @ other (apply `other` first)."""
        return Pose(self.matrix @ other.matrix)

    def transform_point(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        return p @ self.rotation.T + self.translation

    def transform_vector(self, v: np.ndarray) -> np.ndarray:
        v = np.asarray(v, dtype=np.float64)
        return v @ self.rotation.T


@dataclass(frozen=True)
class Ray:
    """Half-line origin + t * direction, t >= 0. Direction is stored unit length."""

    origin: np.ndarray  # (3,)
    direction: np.ndarray  # (3,)

    def __post_init__(self) -> None:
        o = as_vec3(self.origin, "ray origin")
        d = as_vec3(self.direction, "ray direction")
        n = float(np.linalg.norm(d))
        if n < 1e-12:
            raise ValueError("ray direction must be non-zero")
        object.__setattr__(self, "origin", _readonly(o))
        object.__setattr__(self, "direction", _readonly(d / n))

    def point_at(self, t: float) -> np.ndarray:
        return self.origin + float(t) * self.direction


def triangulate_midpoint(
    o1: np.ndarray, d1: np.ndarray, o2: np.ndarray, d2: np.ndarray, eps: float = 1e-12
) -> tuple[np.ndarray, np.ndarray]:
    """
    Mid-point triangulation of two lines (o1 + s d1) and (o2 + u d2).
    Returns (XYZ, gap) where gap is the closest-approach distance.

    With A=o1, B=o2, a=d1, b=d2, c=B-A:
      D = A + a ((a.c)(b.b) - (a.b)(b.c)) / den
      E = B + b ((a.b)(a.c) - (b.c)(a.a)) / den
      den = (a.a)(b.b) - (a.b)^2
    Parallel lines (|den| < eps) give NaN.
    """
    o1 = np.asarray(o1, dtype=np.float64)
    o2 = np.asarray(o2, dtype=np.float64)
    d1 = np.asarray(d1, dtype=np.float64)
    d2 = np.asarray(d2, dtype=np.float64)

    c = o2 - o1
    aa = np.sum(d1 * d1, axis=-1)
    bb = np.sum(d2 * d2, axis=-1)
    ab = np.sum(d1 * d2, axis=-1)
    ac = np.sum(d1 * c, axis=-1)
    bc = np.sum(d2 * c, axis=-1)

    denom = aa * bb - ab * ab
    denom = np.where(np.abs(denom) < eps, np.nan, denom)

    s = (ac * bb - ab * bc) / denom
    u = (ab * ac - bc * aa) / denom

    p1 = o1 + s[..., None] * d1
    p2 = o2 + u[..., None] * d2
    xyz = 0.5 * (p1 + p2)
    gap = np.linalg.norm(p1 - p2, axis=-1)
    return xyz, gap
