"""すべり系の幾何.

各すべり面は法線 n と、その面内のすべり方向 d のリストで与える（結晶座標系）。
試料座標系への変換は Orientation Q による:

  M_ij = Q · sym(d_ij ⊗ n_i) · Qᵀ    （Schmid テンソル）
  N_i  = Q · (n_i ⊗ n_i) · Qᵀ        （面直テンソル）

  分解せん断応力 τ_ij = σ : M_ij
  面直応力       σn_i = σ : N_i
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from histvar.math.rotations import Orientation
from histvar.math.tensors import Symmetric, Vector

_ORTHO_TOL = 1e-8


class SlipSystems:
    """すべり面とすべり方向の集合.

    Args:
        planes: [(法線, [すべり方向, ...]), ...]。正規化は内部で行う。

    Raises:
        ValueError: すべり方向が法線と直交しない、またはゼロベクトルの場合
    """

    def __init__(self, planes: Sequence[tuple[Sequence[float], Sequence[Sequence[float]]]]) -> None:
        if len(planes) == 0:
            raise ValueError("すべり面は最低 1 つ必要")
        self._normals: list[np.ndarray] = []
        self._directions: list[list[np.ndarray]] = []
        for i, (n, dirs) in enumerate(planes):
            n_unit = Vector(n).normalize().data
            d_units = []
            for d in dirs:
                d_unit = Vector(d).normalize().data
                if abs(float(d_unit @ n_unit)) > _ORTHO_TOL:
                    raise ValueError(f"すべり方向 {list(d)} が面 {i} の法線 {list(n)} と直交しません。")
                d_units.append(d_unit)
            if not d_units:
                raise ValueError(f"すべり面 {i} にすべり方向がありません。")
            self._normals.append(n_unit)
            self._directions.append(d_units)

    @classmethod
    def fcc(cls) -> SlipSystems:
        """FCC の {111}<110> 12 すべり系."""
        return cls(
            [
                ((1, 1, 1), [(0, 1, -1), (1, 0, -1), (1, -1, 0)]),
                ((-1, 1, 1), [(0, 1, -1), (1, 0, 1), (1, 1, 0)]),
                ((1, -1, 1), [(0, 1, 1), (1, 0, -1), (1, 1, 0)]),
                ((1, 1, -1), [(0, 1, 1), (1, 0, 1), (1, -1, 0)]),
            ]
        )

    @property
    def nplanes(self) -> int:
        return len(self._normals)

    def nslip(self, i: int) -> int:
        """面 i のすべり方向数."""
        return len(self._directions[i])

    @property
    def ntotal(self) -> int:
        return sum(len(d) for d in self._directions)

    def M(self, i: int, j: int, Q: Orientation) -> Symmetric:
        """試料座標系の Schmid テンソル."""
        d = self._directions[i][j]
        n = self._normals[i]
        return Q.apply(Symmetric.from_matrix(np.outer(d, n)))

    def N(self, i: int, Q: Orientation) -> Symmetric:
        """試料座標系の面直テンソル."""
        n = self._normals[i]
        return Q.apply(Symmetric.from_matrix(np.outer(n, n)))

    def shear(self, i: int, j: int, stress: Symmetric, Q: Orientation) -> float:
        """分解せん断応力 τ_ij."""
        return stress.dot(self.M(i, j, Q))

    def normal_stress(self, i: int, stress: Symmetric, Q: Orientation) -> float:
        """面直応力 σn_i."""
        return stress.dot(self.N(i, Q))
