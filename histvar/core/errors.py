"""History（履歴変数ストア）の例外定義.

すべて違反が起きた呼び出しで同期的に送出される。History 自身は回復処理を
行わず、呼び出し側（構成則・積分ドライバ）が評価の中断と再試行を判断する。
"""

from __future__ import annotations


class HistoryError(ValueError):
    """History 操作の失敗の基底クラス."""


class DuplicateDeclarationError(HistoryError):
    """同じ名前を 2 回宣言した."""


class UnknownNameError(HistoryError, KeyError):
    """宣言されていない名前を参照した."""

    def __str__(self) -> str:
        # KeyError の repr 形式ではなくメッセージをそのまま表示する
        return str(self.args[0]) if self.args else ""


class TypeMismatchError(HistoryError, TypeError):
    """宣言時と異なる型で取得しようとした."""


class UnsupportedResizeError(HistoryError):
    """所有モードが不適切な History で拡張を試みた（外部バッファは拡張できない）."""


class ShapeMismatchError(HistoryError):
    """レイアウト（名前・型・オフセット）またはサイズが一致しない."""


class UnsupportedTypeError(TypeError):
    """History に格納できない型が指定された."""
