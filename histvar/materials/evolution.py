"""複数の内部変数をまとめた発展式.

各内部変数は History 上の自分の名前だけを読み書きし、
速度とヤコビアンは History のオフセット表に従って全体ベクトル・行列へ配置する。
History に他のコンポーネントの変数が含まれていてもよい（その成分の速度はゼロ）。
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from histvar.core.history import History
from histvar.materials.internal_variable import InternalVariable, VariableState
from histvar.math.tensors import Symmetric, SymSymR4


@dataclass
class LoadingState:
    """内部変数の発展を駆動する材料点の状態.

    Attributes:
        a: 累積塑性ひずみ
        adot: 塑性乗数速度
        s: 応力
        g: 流れ方向
        T: 温度
        Tdot: 温度速度
    """

    a: float = 0.0
    adot: float = 0.0
    s: Symmetric = field(default_factory=Symmetric.zero)
    g: Symmetric = field(default_factory=Symmetric.zero)
    T: float = 0.0
    Tdot: float = 0.0


def _as_block(value) -> np.ndarray:
    """float / Symmetric / SymSymR4 を 2 次元配列にする."""
    if isinstance(value, SymSymR4):
        return value.data
    if isinstance(value, Symmetric):
        return value.data.reshape(1, 6)
    return np.array([[float(value)]])


class InternalVariableSet:
    """内部変数の集合.

    Args:
        variables: 内部変数のリスト（名前は一意）
    """

    def __init__(self, variables: Sequence[InternalVariable]) -> None:
        names = [v.name for v in variables]
        if len(set(names)) != len(names):
            raise ValueError(f"内部変数名が重複しています: {names}")
        self.variables = list(variables)

    @property
    def names(self) -> list[str]:
        return [v.name for v in self.variables]

    def populate_history(self, history: History) -> None:
        for v in self.variables:
            v.populate_history(history)

    def init_history(self, history: History) -> None:
        for v in self.variables:
            v.init_history(history)

    def _state(self, v: InternalVariable, history: History, load: LoadingState) -> VariableState:
        return v.state(history, a=load.a, adot=load.adot, s=load.s, g=load.g, T=load.T)

    def rate(self, history: History, load: LoadingState) -> History:
        """history と同じレイアウトの速度 History を返す."""
        out = History.like(history)
        for v in self.variables:
            st = self._state(v, history, load)
            out.set(v.name, v.rate(st, load.Tdot))
        return out

    def jacobian(self, history: History, load: LoadingState) -> np.ndarray:
        """(size, size) の d(hdot)/d(h)."""
        J = np.zeros((history.size, history.size))
        for v in self.variables:
            st = self._state(v, history, load)
            block = _as_block(v.d_rate_d_h(st, load.Tdot))
            i = history.offset(v.name)
            w = block.shape[0]
            J[i : i + w, i : i + w] = block
        return J

    def d_rate_d_s(self, history: History, load: LoadingState) -> np.ndarray:
        """(size, 6) の d(hdot)/d(s)（Mandel）."""
        D = np.zeros((history.size, 6))
        for v in self.variables:
            st = self._state(v, history, load)
            block = _as_block(v.d_rate_d_s(st, load.Tdot))
            i = history.offset(v.name)
            D[i : i + block.shape[0], :] = block
        return D

    def d_rate_d_g(self, history: History, load: LoadingState) -> np.ndarray:
        """(size, 6) の d(hdot)/d(g)（Mandel）."""
        D = np.zeros((history.size, 6))
        for v in self.variables:
            st = self._state(v, history, load)
            block = _as_block(v.d_rate_d_g(st, load.Tdot))
            i = history.offset(v.name)
            D[i : i + block.shape[0], :] = block
        return D

    def d_rate_d_a(self, history: History, load: LoadingState) -> np.ndarray:
        """(size,) の d(hdot)/d(a)."""
        d = np.zeros(history.size)
        for v in self.variables:
            st = self._state(v, history, load)
            block = _as_block(v.d_rate_d_a(st, load.Tdot)).reshape(-1)
            i = history.offset(v.name)
            d[i : i + block.shape[0]] = block
        return d

    def d_rate_d_adot(self, history: History, load: LoadingState) -> np.ndarray:
        """(size,) の d(hdot)/d(adot)."""
        d = np.zeros(history.size)
        for v in self.variables:
            st = self._state(v, history, load)
            block = _as_block(v.d_rate_d_adot(st, load.Tdot)).reshape(-1)
            i = history.offset(v.name)
            d[i : i + block.shape[0]] = block
        return d

    def bind(self, load: LoadingState) -> BoundEvolution:
        """負荷状態を固定した発展式（積分ドライバ用）を返す."""
        return BoundEvolution(self, load)


class BoundEvolution:
    """負荷状態を固定した InternalVariableSet（RateProviderProtocol 適合）."""

    def __init__(self, variables: InternalVariableSet, load: LoadingState) -> None:
        self.variables = variables
        self.load = load

    def rate(self, history: History) -> History:
        return self.variables.rate(history, self.load)

    def jacobian(self, history: History) -> np.ndarray:
        return self.variables.jacobian(history, self.load)
