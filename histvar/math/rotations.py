"""結晶方位（単位四元数）の値型.

規約:
  q = [w, x, y, z] = w + x·i + y·j + z·k
  - w: スカラー部、(x, y, z): ベクトル部
  - 単位四元数 ||q|| = 1 が回転を表す（q と -q は同一回転）

Orientation は History に 4 成分で格納される。History 全体のスカラー倍や
加算は 4 成分の線形演算として作用するため、その後の正規化は利用側の責任とする。
ゼロ値（zero()）は恒等回転 [1, 0, 0, 0] とする。
"""

from __future__ import annotations

import numbers
import warnings

import numpy as np

from histvar.math.tensors import FixedTensor, RankTwo, Symmetric, Vector

# ---------------------------------------------------------------------------
# 四元数演算（(4,) ndarray）
# ---------------------------------------------------------------------------


def quat_multiply(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    """Hamilton積 p ⊗ q.

    (pw, pv) ⊗ (qw, qv) = (pw qw - pv·qv, pw qv + qw pv + pv × qv)
    """
    pw, pv = p[0], p[1:]
    qw, qv = q[0], q[1:]
    out = np.empty(4)
    out[0] = pw * qw - pv @ qv
    out[1:] = pw * qv + qw * pv + np.cross(pv, qv)
    return out


def quat_to_rotation_matrix(q: np.ndarray) -> np.ndarray:
    """単位四元数 → 回転行列.

    R = (w² - v·v) I + 2 v⊗v + 2 w [v]×
    """
    w, v = q[0], q[1:]
    vx = np.array(
        [
            [0.0, -v[2], v[1]],
            [v[2], 0.0, -v[0]],
            [-v[1], v[0], 0.0],
        ]
    )
    return (w * w - v @ v) * np.eye(3) + 2.0 * np.outer(v, v) + 2.0 * w * vx


def rotation_matrix_to_quat(R: np.ndarray) -> np.ndarray:
    """回転行列 → 単位四元数（Shepperd 法、w >= 0）.

    4 候補 (w², x², y², z²) のうち最大のものを基準に残りを求める。
    """
    R = np.asarray(R, dtype=float)
    tr = np.trace(R)
    cand = np.array([tr, R[0, 0], R[1, 1], R[2, 2]])
    k = int(np.argmax(cand))
    if k == 0:
        s = 2.0 * np.sqrt(1.0 + tr)
        q = np.array(
            [0.25 * s, (R[2, 1] - R[1, 2]) / s, (R[0, 2] - R[2, 0]) / s, (R[1, 0] - R[0, 1]) / s]
        )
    else:
        i = k - 1
        j, m = (i + 1) % 3, (i + 2) % 3
        s = 2.0 * np.sqrt(1.0 + R[i, i] - R[j, j] - R[m, m])
        q = np.empty(4)
        q[0] = (R[m, j] - R[j, m]) / s
        q[1 + i] = 0.25 * s
        q[1 + j] = (R[j, i] + R[i, j]) / s
        q[1 + m] = (R[m, i] + R[i, m]) / s
    if q[0] < 0.0:
        q = -q
    return q / np.linalg.norm(q)


# ---------------------------------------------------------------------------
# Orientation 値型
# ---------------------------------------------------------------------------


class Orientation(FixedTensor):
    """単位四元数による回転（4 成分）."""

    size = 4
    __slots__ = ()

    def __init__(self, values=None) -> None:
        if values is None:
            values = [1.0, 0.0, 0.0, 0.0]
        super().__init__(values)

    @classmethod
    def zero(cls) -> Orientation:
        """恒等回転."""
        return cls._wrap(np.array([1.0, 0.0, 0.0, 0.0]))

    identity = zero

    @classmethod
    def from_axis_angle(cls, axis, angle: float) -> Orientation:
        """回転軸と回転角（ラジアン）から生成する."""
        axis = np.asarray(axis, dtype=float)
        n = np.linalg.norm(axis)
        if n < 1e-15:
            return cls.zero()
        half = 0.5 * angle
        q = np.empty(4)
        q[0] = np.cos(half)
        q[1:] = np.sin(half) * axis / n
        return cls._wrap(q)

    @classmethod
    def from_matrix(cls, R: np.ndarray) -> Orientation:
        R = np.asarray(R, dtype=float)
        if R.shape != (3, 3):
            raise ValueError(f"回転行列は (3,3) が必要です: {R.shape}")
        if not np.allclose(R @ R.T, np.eye(3), atol=1e-8):
            raise ValueError("直交行列ではありません。")
        return cls._wrap(rotation_matrix_to_quat(R))

    def to_matrix(self) -> np.ndarray:
        return quat_to_rotation_matrix(self.data)

    def to_rank_two(self) -> RankTwo:
        return RankTwo.from_matrix(self.to_matrix())

    def normalize(self) -> Orientation:
        n = np.linalg.norm(self.data)
        if n < 1e-15:
            raise ValueError("四元数のノルムがほぼゼロです。正規化できません。")
        return Orientation._wrap(self.data / n)

    def inverse(self) -> Orientation:
        """逆回転（共役 / ノルム²）."""
        n2 = float(self.data @ self.data)
        if n2 < 1e-30:
            raise ValueError("四元数のノルムがほぼゼロです。逆回転を計算できません。")
        q = self.data.copy()
        q[1:] = -q[1:]
        return Orientation._wrap(q / n2)

    def apply(self, x):
        """回転を作用させる.

        Vector: R v、RankTwo: R A Rᵀ、Symmetric: R S Rᵀ
        """
        n = np.linalg.norm(self.data)
        if abs(n - 1.0) > 1e-8:
            warnings.warn(
                f"単位四元数でない Orientation を適用します (||q||={n:.6e})。",
                stacklevel=2,
            )
        R = self.to_matrix()
        if isinstance(x, Vector):
            return Vector(R @ x.data)
        if isinstance(x, Symmetric):
            return Symmetric.from_matrix(R @ x.to_matrix() @ R.T)
        if isinstance(x, RankTwo):
            return RankTwo.from_matrix(R @ x.to_matrix() @ R.T)
        raise TypeError(f"Orientation は {type(x).__name__} に作用できません。")

    def distance(self, other: Orientation) -> float:
        """2 つの回転の間の回転角（ラジアン）."""
        c = abs(float(self.normalize().data @ other.normalize().data))
        return 2.0 * float(np.arccos(min(c, 1.0)))

    def __mul__(self, other):
        # Orientation 同士は合成、実数はバッファ上の線形演算としてのスカラー倍
        if isinstance(other, Orientation):
            return Orientation._wrap(quat_multiply(self.data, other.data))
        if isinstance(other, numbers.Real):
            return Orientation._wrap(self.data * float(other))
        return NotImplemented
