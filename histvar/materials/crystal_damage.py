"""すべり面損傷モデル.

損傷変数（すべり面ごとのスカラー）を History に宣言し、その発展速度と、
損傷による応力射影演算子およびそれらの微分を与える。

構成:
  CrystalDamageModel       損傷モデルの抽象基底（変数名の管理と History 宣言）
  NilDamageModel           損傷なし（恒等射影）
  PlanarDamageModel        すべり面ごとの損傷（SlipPlaneDamage + TransformationFunction）
  SlipPlaneDamage          すべり面上の損傷速度則の抽象基底
  WorkPlaneDamage          累積塑性仕事: Σ_j |τ_j γ̇_j|
  TransformationFunction   損傷変数 → [0, 1] の写像の抽象基底
  SigmoidTransformation    x=0 → 0, x=c → 1 のシグモイド

射影演算子（PlanarDamageModel）:
  P = I - Σ_i [ fn_i N_i⊗N_i + fs_i Σ_j 2 M_ij⊗M_ij ]
  fn_i = normal_transform(d_i, σn_i),  fs_i = shear_transform(d_i, σn_i)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

import numpy as np

from histvar.core.history import History
from histvar.materials.slip_rules import SlipRuleProtocol
from histvar.math.lattice import SlipSystems
from histvar.math.rotations import Orientation
from histvar.math.tensors import Symmetric, SymSymR4


class CrystalDamageModel(ABC):
    """すべり面損傷モデルの抽象基底.

    Args:
        varnames: 損傷変数名のリスト（History 上の名前）
    """

    def __init__(self, varnames: Sequence[str]) -> None:
        self._varnames = list(varnames)

    @property
    def nvars(self) -> int:
        return len(self._varnames)

    @property
    def varnames(self) -> list[str]:
        return list(self._varnames)

    def set_varnames(self, names: Sequence[str]) -> None:
        """変数名を差し替える（個数は変えられない）."""
        names = list(names)
        if len(names) != self.nvars:
            raise ValueError(f"変数名の個数が一致しません: {len(names)} != {self.nvars}")
        self._varnames = names

    def populate_history(self, history: History) -> None:
        for name in self._varnames:
            history.add(name, float)

    def _new_history(self, cls: type) -> History:
        """損傷変数名を型 cls で宣言した新しい History."""
        out = History()
        for name in self._varnames:
            out.add(name, cls)
        return out

    def _damage(self, history: History) -> np.ndarray:
        return np.array([float(history.get(name, float)) for name in self._varnames])

    @abstractmethod
    def init_history(self, history: History) -> None: ...

    @abstractmethod
    def projection(
        self,
        stress: Symmetric,
        history: History,
        Q: Orientation,
        lattice: SlipSystems,
        slip: SlipRuleProtocol,
        T: float,
    ) -> SymSymR4:
        """損傷による応力射影演算子."""

    @abstractmethod
    def d_projection_d_stress(
        self,
        stress: Symmetric,
        history: History,
        Q: Orientation,
        lattice: SlipSystems,
        slip: SlipRuleProtocol,
        T: float,
    ) -> np.ndarray:
        """(6, 6, 6) の dP_ab/dσ_c."""

    @abstractmethod
    def d_projection_d_history(
        self,
        stress: Symmetric,
        history: History,
        Q: Orientation,
        lattice: SlipSystems,
        slip: SlipRuleProtocol,
        T: float,
    ) -> dict[str, SymSymR4]:
        """損傷変数名 → dP/dd."""

    @abstractmethod
    def damage_rate(
        self,
        stress: Symmetric,
        history: History,
        Q: Orientation,
        lattice: SlipSystems,
        slip: SlipRuleProtocol,
        T: float,
    ) -> History:
        """損傷変数の速度（損傷変数名を float で宣言した History）."""

    @abstractmethod
    def d_damage_d_stress(
        self,
        stress: Symmetric,
        history: History,
        Q: Orientation,
        lattice: SlipSystems,
        slip: SlipRuleProtocol,
        T: float,
    ) -> History:
        """損傷速度の応力微分（損傷変数名を Symmetric で宣言した History）."""

    @abstractmethod
    def d_damage_d_history(
        self,
        stress: Symmetric,
        history: History,
        Q: Orientation,
        lattice: SlipSystems,
        slip: SlipRuleProtocol,
        T: float,
    ) -> History:
        """損傷速度の自身の損傷変数による微分（各面で独立なので対角成分のみ）."""


class NilDamageModel(CrystalDamageModel):
    """損傷なし.

    インタフェース確認用のダミー変数 ``whatever`` を 1 つ宣言する。
    """

    def __init__(self) -> None:
        super().__init__(["whatever"])

    def init_history(self, history: History) -> None:
        for name in self._varnames:
            history.set(name, 0.0)

    def projection(self, stress, history, Q, lattice, slip, T) -> SymSymR4:
        return SymSymR4.identity()

    def d_projection_d_stress(self, stress, history, Q, lattice, slip, T) -> np.ndarray:
        return np.zeros((6, 6, 6))

    def d_projection_d_history(self, stress, history, Q, lattice, slip, T) -> dict[str, SymSymR4]:
        return {name: SymSymR4.zero() for name in self._varnames}

    def damage_rate(self, stress, history, Q, lattice, slip, T) -> History:
        return self._new_history(float)

    def d_damage_d_stress(self, stress, history, Q, lattice, slip, T) -> History:
        return self._new_history(Symmetric)

    def d_damage_d_history(self, stress, history, Q, lattice, slip, T) -> History:
        return self._new_history(float)


# ---------------------------------------------------------------------------
# すべり面上の損傷速度則
# ---------------------------------------------------------------------------


class SlipPlaneDamage(ABC):
    """1 つのすべり面上の損傷速度則.

    引数:
        shears: 面内各すべり系の分解せん断応力
        sliprates: 面内各すべり系のすべり速度
        normal_stress: 面直応力
        damage: 現在の損傷変数
    """

    @abstractmethod
    def setup(self) -> float:
        """損傷変数の初期値."""

    @abstractmethod
    def damage_rate(self, shears, sliprates, normal_stress: float, damage: float) -> float: ...

    @abstractmethod
    def d_damage_rate_d_shear(self, shears, sliprates, normal_stress, damage) -> np.ndarray: ...

    @abstractmethod
    def d_damage_rate_d_slip(self, shears, sliprates, normal_stress, damage) -> np.ndarray: ...

    @abstractmethod
    def d_damage_rate_d_normal(self, shears, sliprates, normal_stress, damage) -> float: ...

    @abstractmethod
    def d_damage_rate_d_damage(self, shears, sliprates, normal_stress, damage) -> float: ...


class WorkPlaneDamage(SlipPlaneDamage):
    """累積塑性仕事を損傷変数とする: ḋ = Σ_j |τ_j γ̇_j|."""

    def setup(self) -> float:
        return 0.0

    def damage_rate(self, shears, sliprates, normal_stress, damage) -> float:
        return float(np.sum(np.abs(np.asarray(shears) * np.asarray(sliprates))))

    def d_damage_rate_d_shear(self, shears, sliprates, normal_stress, damage) -> np.ndarray:
        tau = np.asarray(shears, dtype=float)
        g = np.asarray(sliprates, dtype=float)
        return np.sign(tau * g) * g

    def d_damage_rate_d_slip(self, shears, sliprates, normal_stress, damage) -> np.ndarray:
        tau = np.asarray(shears, dtype=float)
        g = np.asarray(sliprates, dtype=float)
        return np.sign(tau * g) * tau

    def d_damage_rate_d_normal(self, shears, sliprates, normal_stress, damage) -> float:
        return 0.0

    def d_damage_rate_d_damage(self, shears, sliprates, normal_stress, damage) -> float:
        return 0.0


# ---------------------------------------------------------------------------
# 損傷変数 → [0, 1] の写像
# ---------------------------------------------------------------------------


class TransformationFunction(ABC):
    """損傷変数（と面直応力）を [0, 1] に写像する関数."""

    @abstractmethod
    def map(self, damage: float, normal_stress: float) -> float: ...

    @abstractmethod
    def d_map_d_damage(self, damage: float, normal_stress: float) -> float: ...

    @abstractmethod
    def d_map_d_normal(self, damage: float, normal_stress: float) -> float: ...


class SigmoidTransformation(TransformationFunction):
    """シグモイド写像.

    y = 1 / (1 + u^(-β)),  u = x / (c - x)
    x <= 0 で 0、x >= c で 1。β が大きいほど急峻。

    Args:
        c: 完全損傷に達する損傷変数値（正値）
        beta: 平滑化パラメータ（正値）
    """

    def __init__(self, c: float, beta: float) -> None:
        if c <= 0:
            raise ValueError(f"臨界値 c は正値: {c}")
        if beta <= 0:
            raise ValueError(f"平滑化パラメータ beta は正値: {beta}")
        self.c = c
        self.beta = beta

    def map(self, damage: float, normal_stress: float) -> float:
        if damage <= 0.0:
            return 0.0
        if damage >= self.c:
            return 1.0
        u = damage / (self.c - damage)
        ub = u**self.beta
        return ub / (1.0 + ub)

    def d_map_d_damage(self, damage: float, normal_stress: float) -> float:
        if damage <= 0.0 or damage >= self.c:
            return 0.0
        c, b = self.c, self.beta
        u = damage / (c - damage)
        ub = u**b
        # dy/du · du/dx
        return b * u ** (b - 1.0) / (1.0 + ub) ** 2 * c / (c - damage) ** 2

    def d_map_d_normal(self, damage: float, normal_stress: float) -> float:
        return 0.0


# ---------------------------------------------------------------------------
# すべり面ごとの損傷モデル
# ---------------------------------------------------------------------------


class PlanarDamageModel(CrystalDamageModel):
    """すべり面ごとに損傷変数を持つモデル.

    Args:
        damage: すべり面上の損傷速度則
        shear_transform: せん断方向の劣化写像 fs
        normal_transform: 面直方向の劣化写像 fn
        lattice: すべり系（面数 = 損傷変数の個数）
        prefix: 変数名の接頭辞（変数名は ``{prefix}_{i}``）
    """

    def __init__(
        self,
        damage: SlipPlaneDamage,
        shear_transform: TransformationFunction,
        normal_transform: TransformationFunction,
        lattice: SlipSystems,
        prefix: str = "slip_damage",
    ) -> None:
        super().__init__([f"{prefix}_{i}" for i in range(lattice.nplanes)])
        self.damage = damage
        self.shear_transform = shear_transform
        self.normal_transform = normal_transform

    def init_history(self, history: History) -> None:
        d0 = self.damage.setup()
        for name in self._varnames:
            history.set(name, d0)

    def _check_lattice(self, lattice: SlipSystems) -> None:
        if lattice.nplanes != self.nvars:
            raise ValueError(
                f"すべり面数と損傷変数の個数が一致しません: {lattice.nplanes} != {self.nvars}"
            )

    def _plane_state(self, i, stress, Q, lattice, slip, T):
        """面 i の (せん断応力, すべり速度, 面直応力)."""
        n = lattice.nslip(i)
        shears = np.array([lattice.shear(i, j, stress, Q) for j in range(n)])
        rates = np.array([slip.slip_rate(lattice, i, j, stress, Q, T) for j in range(n)])
        return shears, rates, lattice.normal_stress(i, stress, Q)

    def _shear_projector(self, i: int, Q: Orientation, lattice: SlipSystems) -> np.ndarray:
        P = np.zeros((6, 6))
        for j in range(lattice.nslip(i)):
            m = lattice.M(i, j, Q).data
            P += 2.0 * np.outer(m, m)
        return P

    def projection(self, stress, history, Q, lattice, slip, T) -> SymSymR4:
        self._check_lattice(lattice)
        d = self._damage(history)
        P = np.eye(6)
        for i in range(self.nvars):
            N = lattice.N(i, Q).data
            sn = float(N @ stress.data)
            fn = self.normal_transform.map(d[i], sn)
            fs = self.shear_transform.map(d[i], sn)
            P -= fn * np.outer(N, N) + fs * self._shear_projector(i, Q, lattice)
        return SymSymR4(P)

    def d_projection_d_stress(self, stress, history, Q, lattice, slip, T) -> np.ndarray:
        self._check_lattice(lattice)
        d = self._damage(history)
        dP = np.zeros((6, 6, 6))
        for i in range(self.nvars):
            N = lattice.N(i, Q).data
            sn = float(N @ stress.data)
            dfn = self.normal_transform.d_map_d_normal(d[i], sn)
            dfs = self.shear_transform.d_map_d_normal(d[i], sn)
            A = dfn * np.outer(N, N) + dfs * self._shear_projector(i, Q, lattice)
            dP -= np.einsum("ab,c->abc", A, N)
        return dP

    def d_projection_d_history(self, stress, history, Q, lattice, slip, T) -> dict[str, SymSymR4]:
        self._check_lattice(lattice)
        d = self._damage(history)
        out = {}
        for i, name in enumerate(self._varnames):
            N = lattice.N(i, Q).data
            sn = float(N @ stress.data)
            dfn = self.normal_transform.d_map_d_damage(d[i], sn)
            dfs = self.shear_transform.d_map_d_damage(d[i], sn)
            out[name] = SymSymR4(-(dfn * np.outer(N, N) + dfs * self._shear_projector(i, Q, lattice)))
        return out

    def damage_rate(self, stress, history, Q, lattice, slip, T) -> History:
        self._check_lattice(lattice)
        d = self._damage(history)
        out = self._new_history(float)
        for i, name in enumerate(self._varnames):
            shears, rates, sn = self._plane_state(i, stress, Q, lattice, slip, T)
            out.set(name, self.damage.damage_rate(shears, rates, sn, d[i]))
        return out

    def d_damage_d_stress(self, stress, history, Q, lattice, slip, T) -> History:
        self._check_lattice(lattice)
        d = self._damage(history)
        out = self._new_history(Symmetric)
        for i, name in enumerate(self._varnames):
            shears, rates, sn = self._plane_state(i, stress, Q, lattice, slip, T)
            d_tau = self.damage.d_damage_rate_d_shear(shears, rates, sn, d[i])
            d_slip = self.damage.d_damage_rate_d_slip(shears, rates, sn, d[i])
            d_sn = self.damage.d_damage_rate_d_normal(shears, rates, sn, d[i])
            res = d_sn * lattice.N(i, Q)
            for j in range(lattice.nslip(i)):
                res += d_tau[j] * lattice.M(i, j, Q)
                res += d_slip[j] * slip.d_slip_rate_d_stress(lattice, i, j, stress, Q, T)
            out.set(name, res)
        return out

    def d_damage_d_history(self, stress, history, Q, lattice, slip, T) -> History:
        self._check_lattice(lattice)
        d = self._damage(history)
        out = self._new_history(float)
        for i, name in enumerate(self._varnames):
            shears, rates, sn = self._plane_state(i, stress, Q, lattice, slip, T)
            out.set(name, self.damage.d_damage_rate_d_damage(shears, rates, sn, d[i]))
        return out
