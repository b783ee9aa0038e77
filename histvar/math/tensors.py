"""3×3 テンソル値型（履歴バッファ上のゼロコピービュー対応）.

History に格納できる固定長の値型を提供する。各型は 1 次元 float64 配列
``data`` を持ち、``data`` は自前で確保した配列か、外部バッファの部分範囲
（ビュー）のどちらかである。ビュー経由の書き込みは即座に元バッファへ反映される。

格納規約:
  - Vector:    [v1, v2, v3]                                   (3成分)
  - RankTwo:   行優先 [A11, A12, A13, A21, ..., A33]          (9成分)
  - Symmetric: Mandel 表記 [S11, S22, S33, √2 S23, √2 S13, √2 S12]  (6成分)
  - Skew:      軸性ベクトル [W32, W13, W21]                    (3成分)

Mandel 表記では内積 S:T がそのまま data の内積になるため、
History 全体の線形演算（スカラー倍・加算）とテンソルの内積が整合する。

SymSymR4 は微分（ヤコビアン）用の 6×6 テンソルで、History には格納しない。
"""

from __future__ import annotations

import numbers
from typing import ClassVar

import numpy as np

_SQRT2 = np.sqrt(2.0)

# Mandel 成分 → 行列インデックス
_MANDEL_IDX = ((0, 0), (1, 1), (2, 2), (1, 2), (0, 2), (0, 1))
_MANDEL_W = np.array([1.0, 1.0, 1.0, _SQRT2, _SQRT2, _SQRT2])


def _hat(v: np.ndarray) -> np.ndarray:
    """軸性ベクトル → 歪対称行列（hat map）."""
    return np.array(
        [
            [0.0, -v[2], v[1]],
            [v[2], 0.0, -v[0]],
            [-v[1], v[0], 0.0],
        ]
    )


def _vee(W: np.ndarray) -> np.ndarray:
    """歪対称行列 → 軸性ベクトル（vee map）."""
    return np.array([W[2, 1], W[0, 2], W[1, 0]])


class FixedTensor:
    """固定長テンソル値型の基底クラス.

    Attributes:
        size: 成分数（History 上のフットプリント）
        data: (size,) float64 配列。自前配列またはバッファのビュー。
    """

    size: ClassVar[int] = 0
    __slots__ = ("data",)

    def __init__(self, values=None) -> None:
        if values is None:
            self.data = np.zeros(self.size)
            return
        arr = np.array(values, dtype=float).flatten()
        if arr.shape[0] != self.size:
            raise ValueError(
                f"{type(self).__name__} は {self.size} 成分が必要です: {arr.shape[0]}"
            )
        self.data = arr

    @classmethod
    def _wrap(cls, data: np.ndarray):
        obj = cls.__new__(cls)
        obj.data = data
        return obj

    @classmethod
    def zero(cls):
        """ゼロ値を返す."""
        return cls._wrap(np.zeros(cls.size))

    @classmethod
    def view(cls, buffer: np.ndarray, offset: int = 0):
        """バッファの [offset, offset + size) を参照するビューを構築する（コピーなし）.

        Args:
            buffer: 1 次元 float64 配列
            offset: 先頭インデックス

        Raises:
            ValueError: バッファ型が不正、または範囲がバッファ外にはみ出す場合
        """
        if not isinstance(buffer, np.ndarray) or buffer.ndim != 1:
            raise ValueError("ビューの元バッファは 1 次元 ndarray である必要があります。")
        if buffer.dtype != np.float64:
            raise ValueError(f"ビューの元バッファは float64 である必要があります: {buffer.dtype}")
        offset = int(offset)
        if offset < 0 or offset + cls.size > buffer.shape[0]:
            raise ValueError(
                f"{cls.__name__} のビューがバッファ範囲外です: "
                f"offset={offset}, size={cls.size}, len={buffer.shape[0]}"
            )
        return cls._wrap(buffer[offset : offset + cls.size])

    @property
    def is_view(self) -> bool:
        """外部バッファのビューかどうか."""
        return self.data.base is not None

    def copy(self):
        """独立したコピーを返す（ビューでも自前配列になる）."""
        return self._wrap(self.data.copy())

    def assign(self, other):
        """other の値を自身の記憶領域に書き込む（ビューなら元バッファに反映）."""
        if type(other) is not type(self):
            raise TypeError(
                f"{type(self).__name__} に {type(other).__name__} は代入できません。"
            )
        self.data[:] = other.data
        return self

    def dot(self, other) -> float:
        """全縮約 A:B."""
        if type(other) is not type(self):
            raise TypeError(f"{type(self).__name__} と {type(other).__name__} は縮約できません。")
        return float(self.data @ other.data)

    def norm(self) -> float:
        return float(np.sqrt(max(self.dot(self), 0.0)))

    # --- 線形演算（新しい自前配列を返す）---

    def __add__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._wrap(self.data + other.data)

    def __sub__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._wrap(self.data - other.data)

    def __neg__(self):
        return self._wrap(-self.data)

    def __mul__(self, k):
        if not isinstance(k, numbers.Real):
            return NotImplemented
        return self._wrap(self.data * float(k))

    def __rmul__(self, k):
        if not isinstance(k, numbers.Real):
            return NotImplemented
        return self._wrap(self.data * float(k))

    def __truediv__(self, k):
        if not isinstance(k, numbers.Real):
            return NotImplemented
        return self._wrap(self.data / float(k))

    # --- インプレース演算（ビュー経由でバッファに書き込む）---

    def __iadd__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        self.data += other.data
        return self

    def __isub__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        self.data -= other.data
        return self

    def __imul__(self, k):
        if not isinstance(k, numbers.Real):
            return NotImplemented
        self.data *= float(k)
        return self

    def __eq__(self, other) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return bool(np.array_equal(self.data, other.data))

    __hash__ = None

    # numpy スカラーとの二項演算で ndarray に変換されないようにする
    __array_ufunc__ = None

    def __array__(self, dtype=None, copy=None):
        if copy:
            return np.array(self.data, dtype=dtype)
        return np.asarray(self.data, dtype=dtype)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({np.array2string(self.data, precision=6)})"


class Vector(FixedTensor):
    """3 次元ベクトル."""

    size = 3
    __slots__ = ()

    def cross(self, other: Vector) -> Vector:
        return Vector._wrap(np.cross(self.data, other.data))

    def outer(self, other: Vector) -> RankTwo:
        """テンソル積 a ⊗ b."""
        return RankTwo._wrap(np.outer(self.data, other.data).flatten())

    def normalize(self) -> Vector:
        """単位ベクトルを返す."""
        n = np.linalg.norm(self.data)
        if n < 1e-15:
            raise ValueError("ベクトルのノルムがほぼゼロです。正規化できません。")
        return Vector._wrap(self.data / n)


class RankTwo(FixedTensor):
    """一般 3×3 テンソル（行優先 9 成分）."""

    size = 9
    __slots__ = ()

    @classmethod
    def identity(cls) -> RankTwo:
        return cls._wrap(np.eye(3).flatten())

    @classmethod
    def from_matrix(cls, M: np.ndarray) -> RankTwo:
        M = np.asarray(M, dtype=float)
        if M.shape != (3, 3):
            raise ValueError(f"RankTwo は (3,3) 行列が必要です: {M.shape}")
        return cls._wrap(M.flatten())

    def to_matrix(self) -> np.ndarray:
        """(3,3) 行列を返す（data のビュー。書き込みは data に反映される）."""
        return self.data.reshape(3, 3)

    def transpose(self) -> RankTwo:
        return RankTwo._wrap(self.to_matrix().T.flatten())

    def trace(self) -> float:
        return float(self.data[0] + self.data[4] + self.data[8])

    def sym(self) -> Symmetric:
        """対称部分."""
        return Symmetric.from_matrix(self.to_matrix())

    def skew(self) -> Skew:
        """歪対称部分."""
        return Skew.from_matrix(self.to_matrix())

    def __matmul__(self, other):
        if isinstance(other, RankTwo):
            return RankTwo._wrap((self.to_matrix() @ other.to_matrix()).flatten())
        if isinstance(other, Vector):
            return Vector._wrap(self.to_matrix() @ other.data)
        return NotImplemented


class Symmetric(FixedTensor):
    """対称 3×3 テンソル（Mandel 表記 6 成分）."""

    size = 6
    __slots__ = ()

    @classmethod
    def identity(cls) -> Symmetric:
        return cls._wrap(np.array([1.0, 1.0, 1.0, 0.0, 0.0, 0.0]))

    @classmethod
    def from_matrix(cls, M: np.ndarray) -> Symmetric:
        """行列の対称部分から生成する."""
        M = np.asarray(M, dtype=float)
        if M.shape != (3, 3):
            raise ValueError(f"Symmetric は (3,3) 行列が必要です: {M.shape}")
        S = 0.5 * (M + M.T)
        return cls._wrap(np.array([S[i, j] for i, j in _MANDEL_IDX]) * _MANDEL_W)

    def to_matrix(self) -> np.ndarray:
        """(3,3) 対称行列を返す（コピー）."""
        c = self.data / _MANDEL_W
        return np.array(
            [
                [c[0], c[5], c[4]],
                [c[5], c[1], c[3]],
                [c[4], c[3], c[2]],
            ]
        )

    def to_full(self) -> RankTwo:
        return RankTwo.from_matrix(self.to_matrix())

    def trace(self) -> float:
        return float(self.data[0] + self.data[1] + self.data[2])

    def dev(self) -> Symmetric:
        """偏差成分 S - tr(S)/3 I."""
        d = self.data.copy()
        d[:3] -= self.trace() / 3.0
        return Symmetric._wrap(d)

    def outer(self, other: Symmetric) -> SymSymR4:
        """テンソル積 S ⊗ T（Mandel 6×6）."""
        return SymSymR4(np.outer(self.data, other.data))


class Skew(FixedTensor):
    """歪対称 3×3 テンソル（軸性ベクトル 3 成分）.

    W · u = w × u となる軸性ベクトル w を格納する。
    """

    size = 3
    __slots__ = ()

    @classmethod
    def from_matrix(cls, M: np.ndarray) -> Skew:
        """行列の歪対称部分から生成する."""
        M = np.asarray(M, dtype=float)
        if M.shape != (3, 3):
            raise ValueError(f"Skew は (3,3) 行列が必要です: {M.shape}")
        return cls._wrap(_vee(0.5 * (M - M.T)))

    def to_matrix(self) -> np.ndarray:
        return _hat(self.data)

    def axial(self) -> Vector:
        return Vector(self.data)

    def dot(self, other) -> float:
        # W:V = 2 w·v
        return 2.0 * super().dot(other)


class SymSymR4:
    """対称-対称 4 階テンソル（Mandel 6×6）.

    Symmetric の微分（ヤコビアン）に使用する。History には格納しない。
    """

    __slots__ = ("data",)

    def __init__(self, values=None) -> None:
        if values is None:
            self.data = np.zeros((6, 6))
            return
        arr = np.array(values, dtype=float)
        if arr.shape != (6, 6):
            raise ValueError(f"SymSymR4 は (6,6) が必要です: {arr.shape}")
        self.data = arr

    @classmethod
    def zero(cls) -> SymSymR4:
        return cls()

    @classmethod
    def identity(cls) -> SymSymR4:
        return cls(np.eye(6))

    def __add__(self, other):
        if not isinstance(other, SymSymR4):
            return NotImplemented
        return SymSymR4(self.data + other.data)

    def __sub__(self, other):
        if not isinstance(other, SymSymR4):
            return NotImplemented
        return SymSymR4(self.data - other.data)

    def __neg__(self):
        return SymSymR4(-self.data)

    def __mul__(self, k):
        if not isinstance(k, numbers.Real):
            return NotImplemented
        return SymSymR4(self.data * float(k))

    __rmul__ = __mul__

    def __matmul__(self, other):
        if isinstance(other, Symmetric):
            return Symmetric._wrap(self.data @ other.data)
        if isinstance(other, SymSymR4):
            return SymSymR4(self.data @ other.data)
        return NotImplemented

    def __eq__(self, other) -> bool:
        if not isinstance(other, SymSymR4):
            return NotImplemented
        return bool(np.array_equal(self.data, other.data))

    __hash__ = None

    # numpy スカラーとの二項演算で ndarray に変換されないようにする
    __array_ufunc__ = None

    def __repr__(self) -> str:
        return f"SymSymR4({np.array2string(self.data, precision=4)})"
