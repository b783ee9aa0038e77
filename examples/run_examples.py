#!/usr/bin/env python3
"""histvar サンプル実行スクリプト.

複数の構成則コンポーネントが 1 つの History に履歴変数を宣言し、
積分ドライバがレイアウトを知らずにバッファ全体の演算で時間積分する例。

Usage:
    python examples/run_examples.py                 # 全サンプル実行
    python examples/run_examples.py voce            # Voce 硬化の閉形式比較のみ
    python examples/run_examples.py combined        # 等方 + 移動硬化
    python examples/run_examples.py batch           # 材料点配列の trial / commit
    python examples/run_examples.py damage          # FCC すべり面損傷
"""

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np

# プロジェクトルートを PYTHONPATH に追加
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from histvar.core import History, HistoryArray
from histvar.integrate import backward_euler, forward_euler, integrate_adaptive
from histvar.materials.crystal_damage import (
    PlanarDamageModel,
    SigmoidTransformation,
    WorkPlaneDamage,
)
from histvar.materials.evolution import InternalVariableSet, LoadingState
from histvar.materials.hardening import ArmstrongFrederickBackStress, VoceIsotropicHardening
from histvar.materials.slip_rules import PowerLawSlipRule
from histvar.math.lattice import SlipSystems
from histvar.math.rotations import Orientation
from histvar.math.tensors import Symmetric


def run_voce_closed_form():
    """Voce 硬化: 前進 / 後退 Euler と閉形式解の比較."""
    print("=" * 60)
    print("Voce 等方硬化（adot 一定）")
    print("=" * 60)

    iso = VoceIsotropicHardening(s0=250.0, R=100.0, d=10.0)
    ivs = InternalVariableSet([iso])
    h = History()
    ivs.populate_history(h)
    ivs.init_history(h)
    print(f"  {h!r}")

    adot, dt = 0.05, 2.0
    evo = ivs.bind(LoadingState(adot=adot))
    exact = iso.saturated(adot * dt)

    errors = []
    for n in (10, 100, 1000):
        fe = forward_euler(h, evo.rate, dt, n_substeps=n).history
        be = backward_euler(h, evo.rate, evo.jacobian, dt, n_substeps=n).history
        e_fe = abs(float(fe["isotropic"]) - exact) / exact * 100
        e_be = abs(float(be["isotropic"]) - exact) / exact * 100
        errors.append(max(e_fe, e_be))
        print(f"  n={n:5d}: 前進 {float(fe['isotropic']):.6f} ({e_fe:.2e}%)"
              f"  後退 {float(be['isotropic']):.6f} ({e_be:.2e}%)")
    print(f"  閉形式解: {exact:.6f}")
    print()
    return errors[-1]


def run_combined_hardening():
    """等方硬化 + Armstrong-Frederick 背応力を 1 つの History で積分."""
    print("=" * 60)
    print("等方硬化 + 背応力（静的回復あり）")
    print("=" * 60)

    ivs = InternalVariableSet(
        [
            VoceIsotropicHardening(s0=250.0, R=100.0, d=10.0),
            ArmstrongFrederickBackStress(C=20000.0, gamma=200.0, A=1e-4, r=2.0),
        ]
    )
    h = History()
    h.add("stress", Symmetric)  # 他コンポーネントの変数（速度ゼロ）
    ivs.populate_history(h)
    ivs.init_history(h)
    for slot in h.slots():
        print(f"  {slot.name:12s} {slot.type.name:10s} offset={slot.offset} size={slot.size}")

    g = Symmetric.from_matrix(np.diag([1.0, -0.5, -0.5]))
    evo = ivs.bind(LoadingState(adot=0.05, g=g))
    result = integrate_adaptive(h, evo.rate, 1.0, jacobian_fn=evo.jacobian, show_progress=True)

    X = result.history.get("backstress", Symmetric)
    print(f"  サブステップ数: {result.n_substeps}, Newton 反復: {result.total_iterations}")
    print(f"  等方硬化: {float(result.history['isotropic']):.4f}")
    print(f"  背応力 X11: {X.to_matrix()[0, 0]:.4f}, tr(X) = {X.trace():.2e}")
    print()


def run_batch_commit():
    """材料点配列: 各点を借用ビューで更新し、収束後に一括確定."""
    print("=" * 60)
    print("材料点配列（trial / commit）")
    print("=" * 60)

    ivs = InternalVariableSet([VoceIsotropicHardening(s0=250.0, R=100.0, d=10.0)])
    template = History()
    ivs.populate_history(template)
    ivs.init_history(template)

    committed = HistoryArray(template, 4)
    trial = committed.copy()
    for i, point in enumerate(trial):
        evo = ivs.bind(LoadingState(adot=0.01 * (i + 1)))
        point.copy_data(forward_euler(point, evo.rate, 1.0, n_substeps=50).history.data)
    committed.commit_from(trial)

    for i, alpha in enumerate(committed.field("isotropic").ravel()):
        print(f"  point {i}: isotropic = {alpha:.4f}")
    print()


def run_crystal_damage():
    """FCC 結晶のすべり面損傷: 損傷速度と射影演算子."""
    print("=" * 60)
    print("FCC すべり面損傷")
    print("=" * 60)

    lattice = SlipSystems.fcc()
    slip = PowerLawSlipRule(gamma0=1e-3, tau0=100.0, n=5.0)
    model = PlanarDamageModel(
        WorkPlaneDamage(),
        SigmoidTransformation(c=50.0, beta=2.0),
        SigmoidTransformation(c=40.0, beta=3.0),
        lattice,
    )
    h = History()
    model.populate_history(h)
    model.init_history(h)

    Q = Orientation.from_axis_angle([1.0, 1.0, 0.0], 0.3)
    stress = Symmetric.from_matrix(np.diag([150.0, 0.0, 0.0]))

    def rate_fn(state: History) -> History:
        return model.damage_rate(stress, state, Q, lattice, slip, 300.0)

    result = integrate_adaptive(h, rate_fn, 100.0, n_substeps=10)
    P = model.projection(stress, result.history, Q, lattice, slip, 300.0)
    for name in model.varnames:
        print(f"  {name}: {float(result.history[name]):.4f}")
    print(f"  射影後の応力 σ11: {(P @ stress).to_matrix()[0, 0]:.4f} (射影前 150.0)")
    print()


def main():
    """メイン実行."""
    print("=" * 60)
    print("histvar サンプル実行")
    print("=" * 60)
    print()

    # 引数でフィルタ
    filter_key = sys.argv[1].lower() if len(sys.argv) > 1 else None

    examples = {
        "voce": run_voce_closed_form,
        "combined": run_combined_hardening,
        "batch": run_batch_commit,
        "damage": run_crystal_damage,
    }

    errors = []
    for name, func in examples.items():
        if filter_key is None or filter_key in name:
            err = func()
            if err is not None:
                errors.append((name, err))

    if errors:
        print("-" * 60)
        print("閉形式解比較まとめ:")
        for name, err in errors:
            status = "PASS" if err < 0.01 else "CHECK"
            print(f"  {name}: 誤差 {err:.4f}% [{status}]")
        print()


if __name__ == "__main__":
    main()
