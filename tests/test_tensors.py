"""テンソル値型（Vector, RankTwo, Symmetric, Skew, SymSymR4）のテスト."""

from __future__ import annotations

import numpy as np
import pytest

from histvar.math.tensors import RankTwo, Skew, Symmetric, SymSymR4, Vector


def _sym_matrix() -> np.ndarray:
    return np.array(
        [
            [1.0, 4.0, 5.0],
            [4.0, 2.0, 6.0],
            [5.0, 6.0, 3.0],
        ]
    )


class TestViews:
    """バッファ上のゼロコピービュー."""

    @pytest.mark.parametrize("cls", [Vector, RankTwo, Symmetric, Skew])
    def test_view_writes_through(self, cls):
        buf = np.zeros(20)
        v = cls.view(buf, 2)
        assert v.is_view
        v.data[:] = 1.0
        np.testing.assert_array_equal(buf[2 : 2 + cls.size], np.ones(cls.size))
        assert buf[1] == 0.0
        assert buf[2 + cls.size] == 0.0

    @pytest.mark.parametrize("cls", [Vector, RankTwo, Symmetric, Skew])
    def test_view_overrun(self, cls):
        buf = np.zeros(cls.size + 1)
        with pytest.raises(ValueError, match="範囲外"):
            cls.view(buf, 2)

    def test_view_negative_offset(self):
        with pytest.raises(ValueError):
            Vector.view(np.zeros(5), -1)

    def test_view_wrong_dtype(self):
        with pytest.raises(ValueError, match="float64"):
            Vector.view(np.zeros(5, dtype=np.float32))

    def test_view_2d(self):
        with pytest.raises(ValueError):
            Vector.view(np.zeros((3, 3)))

    def test_inplace_ops_write_through(self):
        buf = np.zeros(6)
        s = Symmetric.view(buf)
        s += Symmetric.identity()
        s *= 2.0
        np.testing.assert_array_equal(buf, [2.0, 2.0, 2.0, 0.0, 0.0, 0.0])

    def test_binary_ops_return_owned(self):
        buf = np.ones(3)
        v = Vector.view(buf)
        w = v + v
        assert not w.is_view
        w.data[:] = 0.0
        np.testing.assert_array_equal(buf, np.ones(3))

    def test_copy_detaches(self):
        buf = np.ones(3)
        c = Vector.view(buf).copy()
        c.data[0] = 5.0
        assert buf[0] == 1.0

    def test_assign_type_check(self):
        with pytest.raises(TypeError):
            Vector.zero().assign(Skew([1.0, 2.0, 3.0]))

    def test_wrong_length(self):
        with pytest.raises(ValueError, match="6 成分"):
            Symmetric([1.0, 2.0])


class TestAlgebra:
    """線形演算."""

    def test_numpy_scalar_times_tensor(self):
        """numpy スカラーとの積もテンソル型のまま."""
        s = np.float64(2.0) * Symmetric.identity()
        assert isinstance(s, Symmetric)
        np.testing.assert_array_equal(s.data, [2.0, 2.0, 2.0, 0.0, 0.0, 0.0])

    def test_mixed_types_rejected(self):
        with pytest.raises(TypeError):
            Vector.zero() + Skew.zero()

    def test_division(self):
        v = Vector([2.0, 4.0, 6.0]) / 2.0
        np.testing.assert_array_equal(v.data, [1.0, 2.0, 3.0])

    def test_negation_and_subtraction(self):
        a = Vector([1.0, 2.0, 3.0])
        np.testing.assert_array_equal((a - a).data, np.zeros(3))
        np.testing.assert_array_equal((-a).data, [-1.0, -2.0, -3.0])

    def test_equality(self):
        assert Vector([1.0, 2.0, 3.0]) == Vector([1.0, 2.0, 3.0])
        assert Vector([1.0, 2.0, 3.0]) != Vector([1.0, 2.0, 4.0])

    def test_not_hashable(self):
        with pytest.raises(TypeError):
            hash(Vector.zero())


class TestVector:
    def test_cross(self):
        e1 = Vector([1.0, 0.0, 0.0])
        e2 = Vector([0.0, 1.0, 0.0])
        np.testing.assert_array_equal(e1.cross(e2).data, [0.0, 0.0, 1.0])

    def test_outer(self):
        a = Vector([1.0, 2.0, 3.0])
        b = Vector([4.0, 5.0, 6.0])
        np.testing.assert_array_equal(a.outer(b).to_matrix(), np.outer(a.data, b.data))

    def test_normalize_zero(self):
        with pytest.raises(ValueError, match="ゼロ"):
            Vector.zero().normalize()


class TestSymmetric:
    """Mandel 表記."""

    def test_matrix_roundtrip(self):
        S = _sym_matrix()
        s = Symmetric.from_matrix(S)
        np.testing.assert_allclose(s.to_matrix(), S, rtol=1e-14)

    def test_mandel_components(self):
        s = Symmetric.from_matrix(_sym_matrix())
        r2 = np.sqrt(2.0)
        np.testing.assert_allclose(s.data, [1.0, 2.0, 3.0, r2 * 6.0, r2 * 5.0, r2 * 4.0])

    def test_dot_is_full_contraction(self):
        S = _sym_matrix()
        T = np.array([[2.0, -1.0, 0.5], [-1.0, 0.0, 3.0], [0.5, 3.0, 1.0]])
        s, t = Symmetric.from_matrix(S), Symmetric.from_matrix(T)
        assert s.dot(t) == pytest.approx(float(np.sum(S * T)), rel=1e-14)

    def test_from_matrix_symmetrizes(self):
        A = np.arange(9.0).reshape(3, 3)
        np.testing.assert_allclose(Symmetric.from_matrix(A).to_matrix(), 0.5 * (A + A.T))

    def test_trace_and_dev(self):
        s = Symmetric.from_matrix(_sym_matrix())
        assert s.trace() == pytest.approx(6.0)
        assert s.dev().trace() == pytest.approx(0.0, abs=1e-14)

    def test_outer_and_r4_product(self):
        a = Symmetric.identity()
        b = Symmetric.from_matrix(_sym_matrix())
        C = a.outer(b)
        # (a⊗b):x = a (b:x)
        x = Symmetric.identity()
        np.testing.assert_allclose((C @ x).data, (a * b.dot(x)).data)

    def test_to_full(self):
        s = Symmetric.from_matrix(_sym_matrix())
        np.testing.assert_allclose(s.to_full().to_matrix(), _sym_matrix())


class TestRankTwoSkew:
    def test_sym_skew_split(self):
        A = np.arange(9.0).reshape(3, 3)
        r = RankTwo.from_matrix(A)
        np.testing.assert_allclose(
            r.sym().to_matrix() + r.skew().to_matrix(), A, atol=1e-14
        )

    def test_skew_acts_as_cross(self):
        w = Skew([0.3, -1.2, 2.0])
        u = np.array([1.0, 2.0, 3.0])
        np.testing.assert_allclose(w.to_matrix() @ u, np.cross(w.data, u))

    def test_skew_from_matrix(self):
        W = np.array([[0.0, -3.0, 2.0], [3.0, 0.0, -1.0], [-2.0, 1.0, 0.0]])
        np.testing.assert_array_equal(Skew.from_matrix(W).data, [1.0, 2.0, 3.0])

    def test_skew_dot_is_full_contraction(self):
        a, b = Skew([1.0, 2.0, 3.0]), Skew([-1.0, 0.5, 2.0])
        assert a.dot(b) == pytest.approx(float(np.sum(a.to_matrix() * b.to_matrix())))

    def test_rank_two_products(self):
        A = RankTwo.from_matrix(np.arange(9.0).reshape(3, 3))
        I = RankTwo.identity()
        np.testing.assert_array_equal((A @ I).data, A.data)
        v = Vector([1.0, 0.0, 0.0])
        np.testing.assert_array_equal((A @ v).data, [0.0, 3.0, 6.0])
        assert A.trace() == 12.0
        np.testing.assert_array_equal(A.transpose().to_matrix(), A.to_matrix().T)

    def test_to_matrix_is_view(self):
        A = RankTwo.zero()
        A.to_matrix()[0, 1] = 4.0
        assert A.data[1] == 4.0


class TestSymSymR4:
    def test_identity_action(self):
        s = Symmetric.from_matrix(_sym_matrix())
        np.testing.assert_array_equal((SymSymR4.identity() @ s).data, s.data)

    def test_algebra(self):
        I = SymSymR4.identity()
        Z = SymSymR4.zero()
        assert (I - I) == Z
        assert (2.0 * I).data[0, 0] == 2.0
        assert (I + I) == I * 2.0
        assert (-I).data[5, 5] == -1.0

    def test_shape_check(self):
        with pytest.raises(ValueError):
            SymSymR4(np.zeros((3, 3)))
