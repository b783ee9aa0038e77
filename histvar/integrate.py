"""履歴変数の時間積分ドライバ.

History のレイアウトを知らずに、バッファ全体の演算だけで積分する。

  - forward_euler():      前進 Euler + サブステップ分割
                          h ← h + (dt/n)·rate(h)   （scalar_multiply と +=）
  - backward_euler():     後退 Euler（Newton-Raphson）
                          R(h) = h - h_n - dt·rate(h) = 0
                          (I - dt·J) Δh = -R
  - integrate_adaptive(): 失敗時にチェックポイント（deepcopy）へ戻し、
                          サブステップ数を倍にして再試行する

History 側の例外（HistoryError）はその評価試行の中断として扱い、
再試行の判断はドライバが行う。
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np
import scipy.linalg as sla

from histvar.core.errors import HistoryError
from histvar.core.history import History

RateFn = Callable[[History], History]
JacobianFn = Callable[[History], np.ndarray]


class IntegrationError(RuntimeError):
    """積分が所定の再試行回数内に成功しなかった."""


@dataclass
class IntegrationResult:
    """積分の結果.

    Attributes:
        history: 積分後の History（入力とは独立した OWNED のコピー）
        converged: 収束したかどうか
        n_substeps: 使用したサブステップ数
        total_iterations: 全サブステップの合計 Newton 反復回数（前進 Euler は 0）
        residual_history: 各サブステップの最終残差ノルム
    """

    history: History
    converged: bool
    n_substeps: int
    total_iterations: int = 0
    residual_history: list[float] = field(default_factory=list)


def _check_finite(h: History, where: str) -> None:
    if not np.all(np.isfinite(h.data)):
        raise FloatingPointError(f"{where}: 履歴変数に非有限値が現れました。")


def forward_euler(
    history: History,
    rate_fn: RateFn,
    dt: float,
    *,
    n_substeps: int = 1,
    show_progress: bool = False,
) -> IntegrationResult:
    """前進 Euler 法（サブステップ分割）.

    Args:
        history: 時刻 t_n の History（変更されない）
        rate_fn: h → hdot（h と同じレイアウトの History）
        dt: 時間増分
        n_substeps: サブステップ数
        show_progress: 進捗表示

    Returns:
        IntegrationResult

    Raises:
        FloatingPointError: 非有限値が現れた場合
        ShapeMismatchError: rate_fn の戻り値のレイアウトが異なる場合
    """
    if n_substeps < 1:
        raise ValueError(f"サブステップ数は 1 以上: {n_substeps}")
    h = history.deepcopy()
    ddt = dt / n_substeps
    for k in range(n_substeps):
        with np.errstate(over="raise", invalid="raise", divide="raise"):
            incr = rate_fn(h)
            incr.scalar_multiply(ddt)
            h += incr
        _check_finite(h, f"substep {k + 1}/{n_substeps}")
        if show_progress:
            print(f"  substep {k + 1}/{n_substeps}, ||dh|| = {np.linalg.norm(incr.data):.3e}")
    return IntegrationResult(history=h, converged=True, n_substeps=n_substeps)


def _newton_substep(
    h_n: History,
    rate_fn: RateFn,
    jacobian_fn: JacobianFn,
    ddt: float,
    *,
    max_iter: int,
    tol: float,
    show_progress: bool,
) -> tuple[History, bool, int, float]:
    """1 サブステップの後退 Euler（Newton-Raphson）."""
    h = h_n.deepcopy()
    # 外部バッファ Δh を借用する History（レイアウトは h と同じ）
    dh_buf = np.zeros(h.size)
    dh = History.like(h, dh_buf)
    minus_hn = h_n.deepcopy()
    minus_hn.scalar_multiply(-1.0)

    ref = max(float(np.linalg.norm(h_n.data)), 1.0)
    res_norm = 0.0
    for it in range(max_iter):
        with np.errstate(over="raise", invalid="raise", divide="raise"):
            # R = h - h_n - ddt·rate(h)
            residual = h.deepcopy()
            residual += minus_hn
            rate = rate_fn(h)
            rate.scalar_multiply(-ddt)
            residual += rate

            res_norm = float(np.linalg.norm(residual.data))
            if not np.isfinite(res_norm):
                raise FloatingPointError(f"Newton iter {it}: 残差が非有限値です。")
            if show_progress:
                print(f"    iter {it}, ||R||/||h_n|| = {res_norm / ref:.3e}")
            if res_norm / ref < tol:
                return h, True, it, res_norm

            A = np.eye(h.size) - ddt * jacobian_fn(h)
            dh_buf[:] = sla.solve(A, -residual.data)
            h += dh
        _check_finite(h, f"Newton iter {it}")

    return h, False, max_iter, res_norm


def backward_euler(
    history: History,
    rate_fn: RateFn,
    jacobian_fn: JacobianFn,
    dt: float,
    *,
    n_substeps: int = 1,
    max_iter: int = 30,
    tol: float = 1e-10,
    show_progress: bool = False,
) -> IntegrationResult:
    """後退 Euler 法（各サブステップで Newton-Raphson）.

    Args:
        history: 時刻 t_n の History（変更されない）
        rate_fn: h → hdot
        jacobian_fn: h → d(hdot)/dh （(size, size) 配列）
        dt: 時間増分
        n_substeps: サブステップ数
        max_iter: 各サブステップの最大 Newton 反復回数
        tol: 残差ノルム収束判定（||R|| / max(||h_n||, 1)）
        show_progress: 進捗表示

    Returns:
        IntegrationResult。収束しなかったサブステップがあれば converged=False で
        その時点の History を返す。
    """
    if n_substeps < 1:
        raise ValueError(f"サブステップ数は 1 以上: {n_substeps}")
    ddt = dt / n_substeps
    h = history.deepcopy()
    total_iter = 0
    res_history: list[float] = []
    for k in range(n_substeps):
        h, converged, n_iter, res_norm = _newton_substep(
            h,
            rate_fn,
            jacobian_fn,
            ddt,
            max_iter=max_iter,
            tol=tol,
            show_progress=show_progress,
        )
        total_iter += n_iter
        res_history.append(res_norm)
        if not converged:
            if show_progress:
                print(
                    f"  WARNING: substep {k + 1}/{n_substeps} did not converge "
                    f"in {max_iter} iterations. ||R|| = {res_norm:.3e}"
                )
            return IntegrationResult(
                history=h,
                converged=False,
                n_substeps=k + 1,
                total_iterations=total_iter,
                residual_history=res_history,
            )
    return IntegrationResult(
        history=h,
        converged=True,
        n_substeps=n_substeps,
        total_iterations=total_iter,
        residual_history=res_history,
    )


def integrate_adaptive(
    history: History,
    rate_fn: RateFn,
    dt: float,
    *,
    jacobian_fn: JacobianFn | None = None,
    n_substeps: int = 1,
    max_cuts: int = 5,
    max_iter: int = 30,
    tol: float = 1e-10,
    show_progress: bool = False,
) -> IntegrationResult:
    """失敗時にサブステップを細分化して再試行する積分.

    jacobian_fn を与えると後退 Euler、None なら前進 Euler を使う。
    各試行は入力 history の deepcopy（チェックポイント）から開始する。

    Raises:
        IntegrationError: max_cuts 回細分化しても成功しなかった場合
    """
    checkpoint = history.deepcopy()
    n = n_substeps
    last_error: Exception | None = None
    for cut in range(max_cuts + 1):
        trial = checkpoint.deepcopy()
        try:
            if jacobian_fn is None:
                result = forward_euler(trial, rate_fn, dt, n_substeps=n, show_progress=show_progress)
            else:
                result = backward_euler(
                    trial,
                    rate_fn,
                    jacobian_fn,
                    dt,
                    n_substeps=n,
                    max_iter=max_iter,
                    tol=tol,
                    show_progress=show_progress,
                )
            if result.converged:
                return result
            last_error = IntegrationError(f"Newton 反復が収束しませんでした (n_substeps={n})。")
        except (HistoryError, FloatingPointError, sla.LinAlgError) as exc:
            last_error = exc
        if show_progress:
            print(f"  cut {cut}: n_substeps={n} failed ({last_error}); retrying with {2 * n}")
        n *= 2
    raise IntegrationError(
        f"{max_cuts} 回の細分化後も積分に失敗しました: {last_error}"
    ) from last_error
