"""すべり速度則.

PowerLawSlipRule:
  γ̇_ij = γ̇0 |τ_ij / τ0|^n sign(τ_ij)
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np

from histvar.math.lattice import SlipSystems
from histvar.math.rotations import Orientation
from histvar.math.tensors import Symmetric


@runtime_checkable
class SlipRuleProtocol(Protocol):
    """すべり速度則のインタフェース."""

    def slip_rate(
        self, lattice: SlipSystems, i: int, j: int, stress: Symmetric, Q: Orientation, T: float
    ) -> float: ...

    def d_slip_rate_d_stress(
        self, lattice: SlipSystems, i: int, j: int, stress: Symmetric, Q: Orientation, T: float
    ) -> Symmetric: ...


class PowerLawSlipRule:
    """べき乗則のすべり速度（強度一定）.

    Args:
        gamma0: 基準すべり速度（正値）
        tau0: 基準せん断強度（正値）
        n: 速度感受性指数（>= 1）
    """

    def __init__(self, gamma0: float, tau0: float, n: float) -> None:
        if gamma0 <= 0:
            raise ValueError(f"基準すべり速度 gamma0 は正値: {gamma0}")
        if tau0 <= 0:
            raise ValueError(f"基準せん断強度 tau0 は正値: {tau0}")
        if n < 1.0:
            raise ValueError(f"速度感受性指数 n は 1 以上: {n}")
        self.gamma0 = gamma0
        self.tau0 = tau0
        self.n = n

    def slip(self, tau: float) -> float:
        return self.gamma0 * abs(tau / self.tau0) ** self.n * float(np.sign(tau))

    def d_slip_d_tau(self, tau: float) -> float:
        return self.gamma0 * self.n / self.tau0 * abs(tau / self.tau0) ** (self.n - 1.0)

    def slip_rate(
        self, lattice: SlipSystems, i: int, j: int, stress: Symmetric, Q: Orientation, T: float
    ) -> float:
        return self.slip(lattice.shear(i, j, stress, Q))

    def d_slip_rate_d_stress(
        self, lattice: SlipSystems, i: int, j: int, stress: Symmetric, Q: Orientation, T: float
    ) -> Symmetric:
        tau = lattice.shear(i, j, stress, Q)
        return self.d_slip_d_tau(tau) * lattice.M(i, j, Q)
