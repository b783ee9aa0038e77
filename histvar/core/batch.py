"""材料点ごとの History をまとめた 2 次元状態配列.

全材料点の履歴変数を (n_points, size) の連続配列 1 本で保持し、
point(i) で i 行目を借用する History を返す（コピーなし）。
要素ループ・積分点ループでは材料点ごとに独立したビューを使い、
収束後に試行配列から確定配列へ一括コピーする（trial / commit）。
"""

from __future__ import annotations

from collections.abc import Iterator

import numpy as np

from histvar.core.errors import ShapeMismatchError
from histvar.core.history import History, HistoryLayout
from histvar.core.storage import STORAGE_SIZE


class HistoryArray:
    """全材料点の履歴変数配列.

    Args:
        template: レイアウトと初期値の元になる History（宣言・初期化済み）
        n_points: 材料点数

    Attributes:
        data: (n_points, size) 連続配列
    """

    def __init__(self, template: History, n_points: int) -> None:
        if n_points < 0:
            raise ValueError(f"材料点数は非負: {n_points}")
        self._template = History.like(template)
        self._template.copy_data(template.data)
        self.data = np.empty((int(n_points), template.size))
        self.data[:] = template.data

    @property
    def n_points(self) -> int:
        return self.data.shape[0]

    @property
    def size(self) -> int:
        """1 材料点あたりのスカラー要素数."""
        return self.data.shape[1]

    @property
    def layout(self) -> HistoryLayout:
        """1 材料点のレイアウト（スナップショット）."""
        return self._template.layout

    def point(self, i: int) -> History:
        """i 番目の材料点を借用する History を返す."""
        if not -self.n_points <= i < self.n_points:
            raise IndexError(f"材料点インデックスが範囲外です: {i} (n_points={self.n_points})")
        return History.like(self._template, self.data[i])

    def __len__(self) -> int:
        return self.n_points

    def __iter__(self) -> Iterator[History]:
        for i in range(self.n_points):
            yield self.point(i)

    def field(self, name: str) -> np.ndarray:
        """全材料点の変数 name を (n_points, footprint) のビューで返す."""
        off = self._template.offset(name)
        width = STORAGE_SIZE[self._template.get_type()[name]]
        return self.data[:, off : off + width]

    def copy(self) -> HistoryArray:
        out = HistoryArray.__new__(HistoryArray)
        out._template = self._template.deepcopy()
        out.data = self.data.copy()
        return out

    def reset(self) -> None:
        """全材料点を初期値に戻す."""
        self.data[:] = self._template.data

    def commit_from(self, other: HistoryArray) -> None:
        """other（試行状態）の値を自身（確定状態）へコピーする.

        Raises:
            ShapeMismatchError: 材料点数またはレイアウトが一致しない場合
        """
        if other.data.shape != self.data.shape or not self.layout.congruent(other.layout):
            raise ShapeMismatchError(
                f"形状の異なる HistoryArray はコピーできません: "
                f"{other.data.shape} -> {self.data.shape}"
            )
        self.data[:] = other.data
