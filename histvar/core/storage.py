"""History に格納できる値型の登録表.

格納可能な型は次の 6 種類に閉じている。各型は型タグとフットプリント
（スカラー要素数）を持つ。

  型           タグ        フットプリント
  float        SCALAR      1
  Vector       VECTOR      3
  Skew         SKEW        3
  Symmetric    SYMMETRIC   6
  RankTwo      RANKTWO     9
  Orientation  ROT         4

表にない型を渡すと、メモリに触れる前に UnsupportedTypeError を送出する。
"""

from __future__ import annotations

from enum import IntEnum
from typing import TypeVar

from histvar.core.errors import UnsupportedTypeError
from histvar.math.rotations import Orientation
from histvar.math.tensors import RankTwo, Skew, Symmetric, Vector


class StorageType(IntEnum):
    """格納型のタグ."""

    VECTOR = 0
    SCALAR = 1
    RANKTWO = 3
    SYMMETRIC = 4
    SKEW = 5
    ROT = 6


STORAGE_SIZE: dict[StorageType, int] = {
    StorageType.VECTOR: 3,
    StorageType.SCALAR: 1,
    StorageType.RANKTWO: 9,
    StorageType.SYMMETRIC: 6,
    StorageType.SKEW: 3,
    StorageType.ROT: 4,
}

# 型 → タグ（閉じた表。実行時の追加登録はしない）
_TYPE_TAG: dict[type, StorageType] = {
    float: StorageType.SCALAR,
    Vector: StorageType.VECTOR,
    RankTwo: StorageType.RANKTWO,
    Symmetric: StorageType.SYMMETRIC,
    Skew: StorageType.SKEW,
    Orientation: StorageType.ROT,
}

_TAG_TYPE: dict[StorageType, type] = {tag: cls for cls, tag in _TYPE_TAG.items()}

# History.add / get の型引数（型チェッカ向け）
Storable = TypeVar("Storable", float, Vector, RankTwo, Symmetric, Skew, Orientation)


def storage_type(cls: type) -> StorageType:
    """値型の型タグを返す.

    Raises:
        UnsupportedTypeError: 格納できない型の場合
    """
    try:
        return _TYPE_TAG[cls]
    except (KeyError, TypeError):
        raise UnsupportedTypeError(
            f"History に格納できない型です: {getattr(cls, '__name__', cls)!r}"
            f"（対応型: {', '.join(c.__name__ for c in _TYPE_TAG)}）"
        ) from None


def storage_size(cls: type) -> int:
    """値型のフットプリント（スカラー要素数）を返す."""
    return STORAGE_SIZE[storage_type(cls)]


def value_type(tag: StorageType) -> type:
    """型タグに対応する値型を返す."""
    return _TAG_TYPE[StorageType(tag)]
