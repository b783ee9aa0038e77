"""硬化則（内部変数の発展式の具体形）.

等方硬化（スカラー）:
  - LinearIsotropicHardening:  h = s0 + K·a       → ratep = K
  - VoceIsotropicHardening:    h = s0 + R(1 - exp(-d·a))
                               → ratep = d (R + s0 - h)

移動硬化（対称テンソル、背応力 X）:
  - ArmstrongFrederickBackStress:
      ratep = (2/3) C g - γ X
      ratet = -A ||X||^(r-1) X        （静的回復、A = 0 で無効）

参考文献:
  - Armstrong & Frederick (1966) CEGB Report RD/B/N731.
  - Chaboche (2008) Int. J. Plasticity 24, 1642-1693.
"""

from __future__ import annotations

import numpy as np

from histvar.materials.internal_variable import (
    ScalarInternalVariable,
    SymmetricInternalVariable,
    VariableState,
)
from histvar.math.tensors import Symmetric, SymSymR4


class LinearIsotropicHardening(ScalarInternalVariable):
    """線形等方硬化.

    Args:
        s0: 初期降伏応力（正値）
        K: 硬化係数
        name: 変数名
    """

    def __init__(self, s0: float, K: float, name: str = "isotropic") -> None:
        super().__init__(name)
        if s0 <= 0:
            raise ValueError(f"初期降伏応力 s0 は正値: {s0}")
        self.s0 = s0
        self.K = K

    def initial_value(self) -> float:
        return self.s0

    def ratep(self, state: VariableState) -> float:
        return self.K

    def d_ratep_d_h(self, state: VariableState) -> float:
        return 0.0

    def d_ratep_d_a(self, state: VariableState) -> float:
        return 0.0

    def d_ratep_d_adot(self, state: VariableState) -> float:
        return 0.0

    def d_ratep_d_s(self, state: VariableState) -> Symmetric:
        return Symmetric.zero()

    def d_ratep_d_g(self, state: VariableState) -> Symmetric:
        return Symmetric.zero()


class VoceIsotropicHardening(ScalarInternalVariable):
    """Voce 型等方硬化（飽和型）.

    a について積分すると h(a) = s0 + R (1 - exp(-d a))。

    Args:
        s0: 初期降伏応力（正値）
        R: 飽和硬化量
        d: 飽和速度（非負）
        name: 変数名
    """

    def __init__(self, s0: float, R: float, d: float, name: str = "isotropic") -> None:
        super().__init__(name)
        if s0 <= 0:
            raise ValueError(f"初期降伏応力 s0 は正値: {s0}")
        if d < 0:
            raise ValueError(f"飽和速度 d は非負: {d}")
        self.s0 = s0
        self.R = R
        self.d = d

    def initial_value(self) -> float:
        return self.s0

    def saturated(self, a: float) -> float:
        """a まで単調負荷したときの閉形式解."""
        return self.s0 + self.R * (1.0 - np.exp(-self.d * a))

    def ratep(self, state: VariableState) -> float:
        return self.d * (self.R + self.s0 - state.h)

    def d_ratep_d_h(self, state: VariableState) -> float:
        return -self.d

    def d_ratep_d_a(self, state: VariableState) -> float:
        return 0.0

    def d_ratep_d_adot(self, state: VariableState) -> float:
        return 0.0

    def d_ratep_d_s(self, state: VariableState) -> Symmetric:
        return Symmetric.zero()

    def d_ratep_d_g(self, state: VariableState) -> Symmetric:
        return Symmetric.zero()


class ArmstrongFrederickBackStress(SymmetricInternalVariable):
    """Armstrong-Frederick 背応力（静的回復付き）.

    Args:
        C: 移動硬化係数
        gamma: 動的回復係数（非負）
        A: 静的回復係数（非負。0 で静的回復なし）
        r: 静的回復指数（>= 1）
        name: 変数名
    """

    def __init__(
        self,
        C: float,
        gamma: float = 0.0,
        A: float = 0.0,
        r: float = 1.0,
        name: str = "backstress",
    ) -> None:
        super().__init__(name)
        if gamma < 0:
            raise ValueError(f"動的回復係数 gamma は非負: {gamma}")
        if A < 0:
            raise ValueError(f"静的回復係数 A は非負: {A}")
        if r < 1.0:
            raise ValueError(f"静的回復指数 r は 1 以上: {r}")
        self.C = C
        self.gamma = gamma
        self.A = A
        self.r = r

    def initial_value(self) -> Symmetric:
        return Symmetric.zero()

    def ratep(self, state: VariableState) -> Symmetric:
        return (2.0 / 3.0 * self.C) * state.g - self.gamma * state.h

    def d_ratep_d_h(self, state: VariableState) -> SymSymR4:
        return -self.gamma * SymSymR4.identity()

    def d_ratep_d_a(self, state: VariableState) -> Symmetric:
        return Symmetric.zero()

    def d_ratep_d_adot(self, state: VariableState) -> Symmetric:
        return Symmetric.zero()

    def d_ratep_d_s(self, state: VariableState) -> SymSymR4:
        return SymSymR4.zero()

    def d_ratep_d_g(self, state: VariableState) -> SymSymR4:
        return (2.0 / 3.0 * self.C) * SymSymR4.identity()

    def ratet(self, state: VariableState) -> Symmetric:
        if self.A == 0.0:
            return Symmetric.zero()
        n = state.h.norm()
        if n == 0.0:
            return Symmetric.zero()
        return (-self.A * n ** (self.r - 1.0)) * state.h

    def d_ratet_d_h(self, state: VariableState) -> SymSymR4:
        # d/dX [n^(r-1) X] = n^(r-1) I + (r-1) n^(r-3) X⊗X
        if self.A == 0.0:
            return SymSymR4.zero()
        n = state.h.norm()
        if n == 0.0:
            if self.r == 1.0:
                return -self.A * SymSymR4.identity()
            return SymSymR4.zero()
        X = state.h.data
        J = n ** (self.r - 1.0) * np.eye(6) + (self.r - 1.0) * n ** (self.r - 3.0) * np.outer(X, X)
        return SymSymR4(-self.A * J)
