"""履歴変数ストア（History）.

複数の構成則コンポーネントが、名前付きの内部変数（スカラー・ベクトル・
テンソル・方位）を 1 本の連続した float64 バッファに宣言し、名前で型付き
ビューを取り出すための仕組み。各コンポーネントは他のコンポーネントが
選んだレイアウトを知らずに読み書きでき、積分ドライバはレイアウトを
知らずにバッファ全体の演算（スカラー倍・加算・コピー）を行える。

構成:
  HistoryLayout  名前 → (オフセット, 型タグ) の対応表と総サイズ
  History        レイアウト + 記憶領域（自前 OWNED / 外部借用 BORROWED）

使用フェーズ:
  1. 宣言フェーズ: add() で変数を宣言する（OWNED のみ。バッファは再確保される）
  2. 評価フェーズ: get() / [] でビューを取得して読み書きする
  宣言フェーズ中に取得したビューは、その後の add() で無効になる。

スレッド安全性:
  内部同期は行わない。1 つの History を複数スレッドで共有しないこと。
  並列化は「材料点ごとに独立した History（または HistoryArray の行ビュー）」で行う。
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, NamedTuple

import numpy as np

from histvar.core.errors import (
    DuplicateDeclarationError,
    ShapeMismatchError,
    TypeMismatchError,
    UnknownNameError,
    UnsupportedResizeError,
)
from histvar.core.storage import (
    STORAGE_SIZE,
    Storable,
    StorageType,
    storage_type,
    value_type,
)

logger = logging.getLogger(__name__)


class StorageMode(Enum):
    """記憶領域の所有モード."""

    OWNED = "owned"
    BORROWED = "borrowed"


class Slot(NamedTuple):
    """1 つの名前付き領域."""

    name: str
    type: StorageType
    size: int
    offset: int


@dataclass
class HistoryLayout:
    """名前 → オフセット・型タグの対応表.

    dict の挿入順を宣言順として保持する（反復順は安定）。

    Attributes:
        loc: 名前 → 先頭オフセット
        type: 名前 → 型タグ
        size: 総スカラー要素数
    """

    loc: dict[str, int] = field(default_factory=dict)
    type: dict[str, StorageType] = field(default_factory=dict)
    size: int = 0

    def __contains__(self, name: object) -> bool:
        return name in self.loc

    def check_new(self, name: str) -> None:
        if name in self.loc:
            raise DuplicateDeclarationError(f"変数 '{name}' は既に宣言されています。")

    def check_exists(self, name: str) -> None:
        if name not in self.loc:
            raise UnknownNameError(f"変数 '{name}' は宣言されていません。")

    def record(self, name: str, tag: StorageType, offset: int) -> None:
        self.loc[name] = offset
        self.type[name] = tag

    def slots(self) -> Iterator[Slot]:
        """宣言順に Slot を返す."""
        for name, offset in self.loc.items():
            tag = self.type[name]
            yield Slot(name, tag, STORAGE_SIZE[tag], offset)

    def congruent(self, other: HistoryLayout) -> bool:
        """同じ (名前, 型, オフセット) 列で宣言されているか."""
        return (
            self.size == other.size
            and list(self.loc.items()) == list(other.loc.items())
            and list(self.type.items()) == list(other.type.items())
        )

    def copy(self) -> HistoryLayout:
        return HistoryLayout(loc=dict(self.loc), type=dict(self.type), size=self.size)


@dataclass
class _Storage:
    """記憶領域ハンドル（所有モード + 1 次元配列）."""

    mode: StorageMode
    data: np.ndarray


def _as_external_buffer(data: Any) -> np.ndarray:
    """外部バッファを検査し、コピーなしで参照できる 1 次元 float64 配列を返す."""
    if not isinstance(data, np.ndarray):
        raise TypeError(
            f"外部バッファは numpy.ndarray である必要があります: {type(data).__name__}"
        )
    if data.dtype != np.float64:
        raise TypeError(f"外部バッファは float64 である必要があります: {data.dtype}")
    if data.ndim != 1:
        raise TypeError(f"外部バッファは 1 次元である必要があります: shape={data.shape}")
    if not data.flags.c_contiguous:
        raise TypeError("外部バッファは連続配列である必要があります。")
    if not data.flags.writeable:
        raise TypeError("外部バッファが書き込み不可です。")
    return data


class History:
    """名前付き・型付きの履歴変数ストア.

    Args:
        store: True なら自前のバッファを所有する（宣言可能）。
            False なら外部バッファを借用するビューとして生成する
            （set_data() でバッファを与える。宣言はできない）。

    Example:
        >>> h = History()
        >>> h.add("stress", Symmetric)
        >>> h.add("hardening", float)
        >>> h.size
        7
        >>> h.get("hardening", float)[...] = 0.5
    """

    __slots__ = ("_layout", "_storage")

    def __init__(self, store: bool = True) -> None:
        self._layout = HistoryLayout()
        mode = StorageMode.OWNED if store else StorageMode.BORROWED
        self._storage = _Storage(mode, np.zeros(0))

    # ------------------------------------------------------------------
    # 生成
    # ------------------------------------------------------------------

    @classmethod
    def like(cls, template: History, data: np.ndarray | None = None) -> History:
        """template と同じレイアウトを持つ History を生成する.

        Args:
            template: レイアウトの複製元
            data: 借用する外部バッファ。None の場合はゼロ初期化した
                自前バッファを持つ OWNED の History を返す。
        """
        if data is None:
            out = cls(store=True)
            out._layout = template._layout.copy()
            out._storage.data = np.zeros(out._layout.size)
            return out
        out = cls(store=False)
        out._layout = template._layout.copy()
        out.set_data(data)
        return out

    def alias(self) -> History:
        """同じバッファ・同じレイアウトを参照する借用 History を返す."""
        return History.like(self, self._storage.data)

    def deepcopy(self) -> History:
        """独立したバッファとレイアウトを持つ OWNED のコピーを返す."""
        out = History(store=True)
        out._layout = self._layout.copy()
        out._storage.data = self._storage.data.copy()
        return out

    def __deepcopy__(self, memo: dict) -> History:
        return self.deepcopy()

    # ------------------------------------------------------------------
    # 属性
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        """総スカラー要素数."""
        return self._layout.size

    @property
    def store(self) -> bool:
        """自前のバッファを所有しているか."""
        return self._storage.mode is StorageMode.OWNED

    @property
    def mode(self) -> StorageMode:
        return self._storage.mode

    @property
    def data(self) -> np.ndarray:
        """(size,) の生バッファ（OWNED なら自前配列、BORROWED なら外部配列のビュー）."""
        return self._storage.data

    @property
    def layout(self) -> HistoryLayout:
        """レイアウトのスナップショット（変更しても History には影響しない）."""
        return self._layout.copy()

    def get_loc(self) -> Mapping[str, int]:
        """名前 → オフセット（読み取り専用）."""
        return MappingProxyType(self._layout.loc)

    def get_type(self) -> Mapping[str, StorageType]:
        """名前 → 型タグ（読み取り専用）."""
        return MappingProxyType(self._layout.type)

    def offset(self, name: str) -> int:
        self._layout.check_exists(name)
        return self._layout.loc[name]

    def type_of(self, name: str) -> type:
        """宣言された値型（float, Vector, ...）を返す."""
        self._layout.check_exists(name)
        return value_type(self._layout.type[name])

    def names(self) -> list[str]:
        """宣言順の名前リスト."""
        return list(self._layout.loc)

    def slots(self) -> list[Slot]:
        return list(self._layout.slots())

    def __contains__(self, name: object) -> bool:
        return name in self._layout

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._layout.loc))

    # ------------------------------------------------------------------
    # 記憶領域
    # ------------------------------------------------------------------

    def set_data(self, data: np.ndarray) -> None:
        """外部バッファを借用するモードに切り替える.

        レイアウトは変更せず、参照先の記憶領域だけを差し替える。
        data の先頭 size 要素を借用する（コピーしない）。

        Raises:
            TypeError: コピーなしで参照できない配列の場合
            ShapeMismatchError: data が size より短い場合
        """
        buf = _as_external_buffer(data)
        if buf.shape[0] < self.size:
            raise ShapeMismatchError(
                f"外部バッファが短すぎます: len={buf.shape[0]}, 必要 size={self.size}"
            )
        self._storage = _Storage(StorageMode.BORROWED, buf[: self.size])
        logger.debug("History: 外部バッファを借用 (size=%d)", self.size)

    def copy_data(self, data: Any) -> None:
        """data の先頭 size 要素を現在の記憶領域へ値コピーする.

        Raises:
            ShapeMismatchError: data が size より短い場合
        """
        src = np.asarray(data, dtype=float).reshape(-1)
        if src.shape[0] < self.size:
            raise ShapeMismatchError(
                f"コピー元が短すぎます: len={src.shape[0]}, 必要 size={self.size}"
            )
        self._storage.data[:] = src[: self.size]

    def resize(self, inc: int) -> None:
        """自前バッファを inc 要素だけ拡張する（既存の値とオフセットは保持）.

        Raises:
            UnsupportedResizeError: 借用モードの場合
            ValueError: inc が負の場合
        """
        if self._storage.mode is not StorageMode.OWNED:
            raise UnsupportedResizeError(
                "外部バッファを借用している History は拡張できません。"
            )
        inc = int(inc)
        if inc < 0:
            raise ValueError(f"拡張量は非負: {inc}")
        if inc == 0:
            return
        old = self._storage.data
        new = np.zeros(old.shape[0] + inc)
        new[: old.shape[0]] = old
        self._storage.data = new
        self._layout.size += inc
        logger.debug("History: %d -> %d 要素に拡張", old.shape[0], new.shape[0])

    # ------------------------------------------------------------------
    # 宣言・取得
    # ------------------------------------------------------------------

    def add(self, name: str, cls: type[Storable]) -> None:
        """変数 name を型 cls で宣言する.

        バッファは footprint(cls) 要素だけ拡張され、以前に取得したビューは
        無効になる。失敗時は History を一切変更しない。

        Raises:
            DuplicateDeclarationError: name が宣言済みの場合
            UnsupportedTypeError: cls が格納できない型の場合
            UnsupportedResizeError: 借用モードの場合
        """
        self._layout.check_new(name)
        tag = storage_type(cls)
        offset = self._layout.size
        self.resize(STORAGE_SIZE[tag])
        self._layout.record(name, tag, offset)
        logger.debug("History: '%s' (%s) を offset=%d に宣言", name, tag.name, offset)

    def get(self, name: str, cls: type[Storable], *, readonly: bool = False) -> Storable:
        """変数 name のビューを型 cls で返す.

        戻り値はバッファのゼロコピービューで、書き込みは即座にバッファへ反映される。
        float の場合は単一要素を参照する 0 次元 ndarray を返す
        （``v[...] = x`` で書き込み、``float(v)`` で読み出す）。

        Args:
            name: 変数名
            cls: 宣言時の値型
            readonly: True なら書き込み不可のビューを返す
                （書き込むと numpy の ValueError）。バッファ自体は書き込み可能なまま。

        Raises:
            UnknownNameError: name が宣言されていない場合
            UnsupportedTypeError: cls が格納できない型の場合
            TypeMismatchError: 宣言時の型と cls が異なる場合
        """
        self._layout.check_exists(name)
        tag = storage_type(cls)
        declared = self._layout.type[name]
        if declared is not tag:
            raise TypeMismatchError(
                f"変数 '{name}' は {value_type(declared).__name__} として宣言されていますが、"
                f"{cls.__name__} として取得しようとしました。"
            )
        return self._view(name, readonly=readonly)

    def _view(self, name: str, *, readonly: bool = False):
        tag = self._layout.type[name]
        offset = self._layout.loc[name]
        if tag is StorageType.SCALAR:
            v = self._storage.data[offset : offset + 1].reshape(())
            if readonly:
                v.flags.writeable = False
            return v
        v = value_type(tag).view(self._storage.data, offset)
        if readonly:
            v.data.flags.writeable = False
        return v

    def __getitem__(self, name: str):
        """宣言された型のビューを返す."""
        self._layout.check_exists(name)
        return self._view(name)

    def set(self, name: str, value) -> None:
        """value を変数 name の領域に書き込む（型は value から判定）.

        数値・numpy スカラー・0 次元 ndarray（get(name, float) のビューを含む）は float とみなす。

        Raises:
            UnknownNameError, TypeMismatchError
        """
        if isinstance(value, (int, float, np.floating, np.integer)) or (
            isinstance(value, np.ndarray) and value.ndim == 0
        ):
            cls = float
        else:
            cls = type(value)
        target = self.get(name, cls)
        if cls is float:
            target[...] = float(value)
        else:
            target.assign(value)

    def items(self) -> Iterator[tuple[str, Any]]:
        """宣言順に (名前, ビュー) を返す."""
        for name in list(self._layout.loc):
            yield name, self._view(name)

    # ------------------------------------------------------------------
    # バッファ全体の演算
    # ------------------------------------------------------------------

    def zero(self) -> None:
        """全要素をゼロにする."""
        self._storage.data[:] = 0.0

    def scalar_multiply(self, scalar: float) -> None:
        """全要素を scalar 倍する（型によらずバッファ全体に作用）."""
        self._storage.data *= float(scalar)

    def accumulate(self, other: History, *, check_layout: bool = True) -> History:
        """other のバッファを要素ごとに加算する.

        Args:
            other: 加算する History
            check_layout: True（既定）なら名前・型・オフセットの完全一致を検査する。
                False ならサイズのみ検査する（高速だが、同サイズで異なる
                レイアウト同士の加算を検出できない）。

        Raises:
            ShapeMismatchError: サイズまたはレイアウトが一致しない場合
        """
        if self.size != other.size:
            raise ShapeMismatchError(
                f"サイズが一致しない History は加算できません: {self.size} != {other.size}"
            )
        if check_layout and not self._layout.congruent(other._layout):
            raise ShapeMismatchError(
                f"レイアウトが一致しない History は加算できません: "
                f"{self.names()} != {other.names()}"
            )
        self._storage.data += other._storage.data
        return self

    def __iadd__(self, other: History) -> History:
        if not isinstance(other, History):
            return NotImplemented
        return self.accumulate(other)

    def __repr__(self) -> str:
        slots = ", ".join(f"{s.name}:{s.type.name}@{s.offset}" for s in self._layout.slots())
        return f"History(size={self.size}, mode={self.mode.value}, slots=[{slots}])"
