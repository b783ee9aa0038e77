"""内部変数（履歴変数）の発展式の抽象基底.

内部変数 h の発展:
  hdot = ratep(h, a, adot, s, g, T) · adot      （塑性乗数速度に比例する項）
       + ratet(h, a, adot, s, g, T)             （時間速度項: 静的回復など）
       + rateT(h, a, adot, s, g, T) · Tdot      （温度速度項）

  h:    内部変数の現在値（float または Symmetric）
  a:    累積塑性ひずみ
  adot: 塑性乗数速度
  s:    応力（Symmetric）
  g:    流れ方向（Symmetric）
  T:    温度

微分の型規則（A の B による微分）:
  (float, float) → float
  (float, Symmetric) → Symmetric
  (Symmetric, float) → Symmetric
  (Symmetric, Symmetric) → SymSymR4

ratet / rateT 系は既定でゼロを返す。サブクラスは ratep 系を必ず実装する。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from histvar.core.history import History
from histvar.math.tensors import Symmetric, SymSymR4


def derivative_zero(a: type, b: type) -> Any:
    """A の B による微分のゼロ値を返す."""
    if a is float and b is float:
        return 0.0
    if a is Symmetric and b is Symmetric:
        return SymSymR4.zero()
    return Symmetric.zero()


@dataclass
class VariableState:
    """発展式の評価点.

    Attributes:
        h: 内部変数の値（コピー。History とは独立）
        a: 累積塑性ひずみ
        adot: 塑性乗数速度
        s: 応力
        g: 流れ方向
        T: 温度
    """

    h: Any
    a: float = 0.0
    adot: float = 0.0
    s: Symmetric = field(default_factory=Symmetric.zero)
    g: Symmetric = field(default_factory=Symmetric.zero)
    T: float = 0.0


class InternalVariable(ABC):
    """内部変数の発展式.

    Args:
        name: History 上の変数名
    """

    value_type: ClassVar[type] = float

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def set_name(self, name: str) -> None:
        """変数名を変更する（populate_history より前に呼ぶこと）."""
        self._name = name

    # --- History との接続 ---

    def populate_history(self, history: History) -> None:
        history.add(self.name, self.value_type)

    def init_history(self, history: History) -> None:
        history.set(self.name, self.initial_value())

    def state(
        self,
        history: History,
        *,
        a: float = 0.0,
        adot: float = 0.0,
        s: Symmetric | None = None,
        g: Symmetric | None = None,
        T: float = 0.0,
    ) -> VariableState:
        """history から自分の変数を読み出して評価点を作る."""
        view = history.get(self.name, self.value_type, readonly=True)
        h = float(view) if self.value_type is float else view.copy()
        return VariableState(
            h=h,
            a=a,
            adot=adot,
            s=s if s is not None else Symmetric.zero(),
            g=g if g is not None else Symmetric.zero(),
            T=T,
        )

    # --- 合成した発展速度 ---

    def rate(self, state: VariableState, Tdot: float = 0.0) -> Any:
        """hdot = ratep·adot + ratet + rateT·Tdot."""
        return self.ratep(state) * state.adot + self.ratet(state) + self.rateT(state) * Tdot

    def d_rate_d_h(self, state: VariableState, Tdot: float = 0.0) -> Any:
        return (
            self.d_ratep_d_h(state) * state.adot
            + self.d_ratet_d_h(state)
            + self.d_rateT_d_h(state) * Tdot
        )

    def d_rate_d_s(self, state: VariableState, Tdot: float = 0.0) -> Any:
        return (
            self.d_ratep_d_s(state) * state.adot
            + self.d_ratet_d_s(state)
            + self.d_rateT_d_s(state) * Tdot
        )

    def d_rate_d_a(self, state: VariableState, Tdot: float = 0.0) -> Any:
        return (
            self.d_ratep_d_a(state) * state.adot
            + self.d_ratet_d_a(state)
            + self.d_rateT_d_a(state) * Tdot
        )

    def d_rate_d_g(self, state: VariableState, Tdot: float = 0.0) -> Any:
        return (
            self.d_ratep_d_g(state) * state.adot
            + self.d_ratet_d_g(state)
            + self.d_rateT_d_g(state) * Tdot
        )

    def d_rate_d_adot(self, state: VariableState, Tdot: float = 0.0) -> Any:
        """adot による微分（ratep 自身の adot 依存を含む）."""
        return (
            self.ratep(state)
            + self.d_ratep_d_adot(state) * state.adot
            + self.d_ratet_d_adot(state)
            + self.d_rateT_d_adot(state) * Tdot
        )

    # --- 塑性乗数速度項（必須）---

    @abstractmethod
    def initial_value(self) -> Any:
        """初期値."""

    @abstractmethod
    def ratep(self, state: VariableState) -> Any: ...

    @abstractmethod
    def d_ratep_d_h(self, state: VariableState) -> Any: ...

    @abstractmethod
    def d_ratep_d_a(self, state: VariableState) -> Any: ...

    @abstractmethod
    def d_ratep_d_adot(self, state: VariableState) -> Any: ...

    @abstractmethod
    def d_ratep_d_s(self, state: VariableState) -> Any: ...

    @abstractmethod
    def d_ratep_d_g(self, state: VariableState) -> Any: ...

    # --- 時間速度項（既定: ゼロ）---

    def ratet(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, float)

    def d_ratet_d_h(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, self.value_type)

    def d_ratet_d_a(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, float)

    def d_ratet_d_adot(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, float)

    def d_ratet_d_s(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, Symmetric)

    def d_ratet_d_g(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, Symmetric)

    # --- 温度速度項（既定: ゼロ）---

    def rateT(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, float)

    def d_rateT_d_h(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, self.value_type)

    def d_rateT_d_a(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, float)

    def d_rateT_d_adot(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, float)

    def d_rateT_d_s(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, Symmetric)

    def d_rateT_d_g(self, state: VariableState) -> Any:
        return derivative_zero(self.value_type, Symmetric)


class ScalarInternalVariable(InternalVariable):
    """スカラー内部変数（等方硬化など）."""

    value_type = float


class SymmetricInternalVariable(InternalVariable):
    """対称テンソル内部変数（背応力など）."""

    value_type = Symmetric
