"""History を利用する構成則コンポーネントの抽象インタフェース定義.

Protocol 定義:
  HistoryProviderProtocol  — 履歴変数の宣言（populate_history）と初期化（init_history）。
  RateProviderProtocol     — 履歴変数の速度とそのヤコビアンを History 単位で返す。

コンポーネントは自分が所有する名前だけを宣言・初期化し、
他のコンポーネントの名前やオフセットには触れない。
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np

from histvar.core.history import History


@runtime_checkable
class HistoryProviderProtocol(Protocol):
    """履歴変数を所有するコンポーネントの共通インタフェース.

    適合クラス例:
      - InternalVariable の各サブクラス
      - InternalVariableSet
      - CrystalDamageModel の各サブクラス
    """

    def populate_history(self, history: History) -> None:
        """所有する変数を名前と型を固定して history に宣言する.

        宣言フェーズ（OWNED の History）でのみ呼ばれる。
        """
        ...

    def init_history(self, history: History) -> None:
        """宣言済みの history の自分の変数に初期値を書き込む."""
        ...


@runtime_checkable
class RateProviderProtocol(Protocol):
    """履歴変数の発展式を与えるコンポーネントのインタフェース.

    積分ドライバ（histvar.integrate）はこの 2 つのメソッドだけを使う。
    """

    def rate(self, history: History) -> History:
        """history と同じレイアウトの速度 History を返す."""
        ...

    def jacobian(self, history: History) -> np.ndarray:
        """(size, size) の d(rate)/d(history) を返す."""
        ...
