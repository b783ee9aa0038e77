"""histvar.core - 履歴変数ストアと構成則コンポーネントのインタフェース定義.

  History                    — 名前付き・型付きの履歴変数バッファ（OWNED / BORROWED）
  HistoryLayout              — 名前 → オフセット・型タグの対応表
  HistoryArray               — 材料点ごとの History をまとめた 2 次元配列
  StorageType                — 格納型タグ（6 種類に閉じている）
  HistoryProviderProtocol    — populate_history / init_history
  RateProviderProtocol       — rate / jacobian
"""

from histvar.core.batch import HistoryArray
from histvar.core.constitutive import HistoryProviderProtocol, RateProviderProtocol
from histvar.core.errors import (
    DuplicateDeclarationError,
    HistoryError,
    ShapeMismatchError,
    TypeMismatchError,
    UnknownNameError,
    UnsupportedResizeError,
    UnsupportedTypeError,
)
from histvar.core.history import History, HistoryLayout, Slot, StorageMode
from histvar.core.storage import STORAGE_SIZE, StorageType, storage_size, storage_type

__all__ = [
    "History",
    "HistoryLayout",
    "HistoryArray",
    "Slot",
    "StorageMode",
    "StorageType",
    "STORAGE_SIZE",
    "storage_type",
    "storage_size",
    "HistoryProviderProtocol",
    "RateProviderProtocol",
    "HistoryError",
    "DuplicateDeclarationError",
    "UnknownNameError",
    "TypeMismatchError",
    "UnsupportedResizeError",
    "ShapeMismatchError",
    "UnsupportedTypeError",
]
