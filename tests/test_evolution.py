"""内部変数の集合（InternalVariableSet）のテスト.

複数のコンポーネントが 1 つの History に変数を宣言し、
速度とヤコビアンが History のオフセットに従って配置されることを確認する。
"""

from __future__ import annotations

import numpy as np
import pytest

from histvar.core.constitutive import HistoryProviderProtocol, RateProviderProtocol
from histvar.core.history import History
from histvar.materials.evolution import InternalVariableSet, LoadingState
from histvar.materials.hardening import (
    ArmstrongFrederickBackStress,
    LinearIsotropicHardening,
    VoceIsotropicHardening,
)
from histvar.materials.internal_variable import ScalarInternalVariable, VariableState
from histvar.math.tensors import Symmetric

EPS = 1e-6


class _ExponentialHardening(ScalarInternalVariable):
    """累積塑性ひずみ a に依存する硬化（温度速度項付き）.

    ratep = K exp(-b a), rateT = q a
    """

    def __init__(self, K: float, b: float, q: float, name: str) -> None:
        super().__init__(name)
        self.K = K
        self.b = b
        self.q = q

    def initial_value(self) -> float:
        return 100.0

    def ratep(self, state: VariableState) -> float:
        return self.K * np.exp(-self.b * state.a)

    def d_ratep_d_h(self, state: VariableState) -> float:
        return 0.0

    def d_ratep_d_a(self, state: VariableState) -> float:
        return -self.b * self.K * np.exp(-self.b * state.a)

    def d_ratep_d_adot(self, state: VariableState) -> float:
        return 0.0

    def d_ratep_d_s(self, state: VariableState) -> Symmetric:
        return Symmetric.zero()

    def d_ratep_d_g(self, state: VariableState) -> Symmetric:
        return Symmetric.zero()

    def rateT(self, state: VariableState) -> float:
        return self.q * state.a

    def d_rateT_d_a(self, state: VariableState) -> float:
        return self.q


def _load() -> LoadingState:
    s = Symmetric.from_matrix(np.array([[200.0, 30.0, 0.0], [30.0, -80.0, 0.0], [0.0, 0.0, 50.0]]))
    g = s.dev()
    g = (1.5 / np.sqrt(1.5 * g.dot(g))) * g
    return LoadingState(a=0.01, adot=0.05, s=s, g=g, T=300.0)


def _set() -> InternalVariableSet:
    return InternalVariableSet(
        [
            VoceIsotropicHardening(s0=250.0, R=100.0, d=10.0, name="iso"),
            ArmstrongFrederickBackStress(C=10000.0, gamma=50.0, A=1e-4, r=2.0, name="X"),
        ]
    )


def _history(ivs: InternalVariableSet) -> History:
    h = History()
    h.add("foreign", float)
    ivs.populate_history(h)
    ivs.init_history(h)
    return h


class TestInternalVariableSet:
    def test_protocols(self):
        ivs = _set()
        assert isinstance(ivs, HistoryProviderProtocol)
        assert isinstance(ivs.variables[0], HistoryProviderProtocol)
        assert isinstance(ivs.bind(_load()), RateProviderProtocol)

    def test_populate_layout(self):
        ivs = _set()
        h = _history(ivs)
        assert h.names() == ["foreign", "iso", "X"]
        assert h.offset("iso") == 1
        assert h.offset("X") == 2
        assert h.size == 8
        assert float(h["iso"]) == 250.0

    def test_duplicate_names(self):
        with pytest.raises(ValueError, match="重複"):
            InternalVariableSet(
                [
                    LinearIsotropicHardening(s0=1.0, K=1.0, name="a"),
                    VoceIsotropicHardening(s0=1.0, R=1.0, d=1.0, name="a"),
                ]
            )

    def test_rate_is_congruent(self):
        ivs = _set()
        h = _history(ivs)
        rate = ivs.rate(h, _load())
        assert rate.layout.congruent(h.layout)
        # 他のコンポーネントの変数の速度はゼロ
        assert float(rate["foreign"]) == 0.0
        # Voce: d (R + s0 - h) adot = 10 * 100 * 0.05
        assert float(rate["iso"]) == pytest.approx(50.0)
        h += rate

    def test_rate_does_not_modify_state(self):
        ivs = _set()
        h = _history(ivs)
        before = h.data.copy()
        ivs.rate(h, _load())
        ivs.jacobian(h, _load())
        np.testing.assert_array_equal(h.data, before)

    def test_jacobian_fd(self):
        """(size, size) ヤコビアンの有限差分検証."""
        ivs = _set()
        h = _history(ivs)
        h.set("X", 0.2 * _load().s.dev())
        h.set("iso", 280.0)
        load = _load()
        J = ivs.jacobian(h, load)
        assert J.shape == (h.size, h.size)
        J_fd = np.zeros_like(J)
        for k in range(h.size):
            hp = h.deepcopy()
            hm = h.deepcopy()
            hp.data[k] += EPS
            hm.data[k] -= EPS
            J_fd[:, k] = (ivs.rate(hp, load).data - ivs.rate(hm, load).data) / (2 * EPS)
        np.testing.assert_allclose(J, J_fd, rtol=1e-5, atol=1e-7)
        # 他のコンポーネントの行・列はゼロ
        np.testing.assert_array_equal(J[0], np.zeros(h.size))
        np.testing.assert_array_equal(J[:, 0], np.zeros(h.size))

    def test_d_rate_d_s_shape(self):
        ivs = _set()
        h = _history(ivs)
        D = ivs.d_rate_d_s(h, _load())
        assert D.shape == (h.size, 6)
        np.testing.assert_array_equal(D, np.zeros((h.size, 6)))

    def test_d_rate_d_adot_fd(self):
        ivs = _set()
        h = _history(ivs)
        h.set("X", 0.1 * _load().s.dev())
        load = _load()
        d = ivs.d_rate_d_adot(h, load)
        lp, lm = _load(), _load()
        lp.adot += EPS
        lm.adot -= EPS
        fd = (ivs.rate(h, lp).data - ivs.rate(h, lm).data) / (2 * EPS)
        np.testing.assert_allclose(d, fd, rtol=1e-6, atol=1e-8)

    def test_d_rate_d_g_fd(self):
        """(size, 6) の d(hdot)/d(g) の有限差分検証（背応力のみ非ゼロ）."""
        ivs = _set()
        h = _history(ivs)
        h.set("X", 0.1 * _load().s.dev())
        load = _load()
        D = ivs.d_rate_d_g(h, load)
        assert D.shape == (h.size, 6)
        D_fd = np.zeros_like(D)
        for k in range(6):
            lp, lm = _load(), _load()
            lp.g = Symmetric(load.g.data + EPS * np.eye(6)[k])
            lm.g = Symmetric(load.g.data - EPS * np.eye(6)[k])
            D_fd[:, k] = (ivs.rate(h, lp).data - ivs.rate(h, lm).data) / (2 * EPS)
        np.testing.assert_allclose(D, D_fd, rtol=1e-6, atol=1e-4)
        # (2/3) C adot が背応力ブロックの対角に入る
        np.testing.assert_allclose(D[2:8], (2.0 / 3.0 * 10000.0 * 0.05) * np.eye(6))
        np.testing.assert_array_equal(D[:2], np.zeros((2, 6)))

    def test_d_rate_d_a_fd(self):
        """(size,) の d(hdot)/d(a) の有限差分検証（温度速度項を含む）."""
        ivs = InternalVariableSet(
            [
                ArmstrongFrederickBackStress(C=10000.0, gamma=50.0, name="X"),
                _ExponentialHardening(K=500.0, b=20.0, q=0.3, name="soft"),
            ]
        )
        h = _history(ivs)
        load = _load()
        load.Tdot = 2.0
        d = ivs.d_rate_d_a(h, load)
        assert d.shape == (h.size,)
        lp, lm = _load(), _load()
        lp.Tdot = lm.Tdot = 2.0
        lp.a += EPS
        lm.a -= EPS
        fd = (ivs.rate(h, lp).data - ivs.rate(h, lm).data) / (2 * EPS)
        np.testing.assert_allclose(d, fd, rtol=1e-6, atol=1e-8)
        i = h.offset("soft")
        expected = -20.0 * 500.0 * np.exp(-20.0 * 0.01) * 0.05 + 0.3 * 2.0
        assert d[i] == pytest.approx(expected)
        # 背応力・他コンポーネントの成分はゼロ
        np.testing.assert_array_equal(np.delete(d, i), np.zeros(h.size - 1))

    def test_bound_evolution(self):
        ivs = _set()
        h = _history(ivs)
        bound = ivs.bind(_load())
        np.testing.assert_array_equal(bound.rate(h).data, ivs.rate(h, _load()).data)
        np.testing.assert_array_equal(bound.jacobian(h), ivs.jacobian(h, _load()))
