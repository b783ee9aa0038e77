"""格納型の登録表のテスト."""

from __future__ import annotations

import pytest

from histvar.core.errors import UnsupportedTypeError
from histvar.core.storage import (
    STORAGE_SIZE,
    StorageType,
    storage_size,
    storage_type,
    value_type,
)
from histvar.math.rotations import Orientation
from histvar.math.tensors import RankTwo, Skew, Symmetric, SymSymR4, Vector


class TestStorageTable:
    """型タグとフットプリント."""

    @pytest.mark.parametrize(
        "cls, tag, size",
        [
            (float, StorageType.SCALAR, 1),
            (Vector, StorageType.VECTOR, 3),
            (RankTwo, StorageType.RANKTWO, 9),
            (Symmetric, StorageType.SYMMETRIC, 6),
            (Skew, StorageType.SKEW, 3),
            (Orientation, StorageType.ROT, 4),
        ],
    )
    def test_tag_and_size(self, cls, tag, size):
        assert storage_type(cls) is tag
        assert storage_size(cls) == size
        assert STORAGE_SIZE[tag] == size
        assert value_type(tag) is cls

    def test_tag_values(self):
        """タグの整数値は固定."""
        assert int(StorageType.VECTOR) == 0
        assert int(StorageType.SCALAR) == 1
        assert int(StorageType.RANKTWO) == 3
        assert int(StorageType.SYMMETRIC) == 4
        assert int(StorageType.SKEW) == 5
        assert int(StorageType.ROT) == 6

    def test_footprint_matches_value_type(self):
        """フットプリントは値型の成分数と一致."""
        for tag, size in STORAGE_SIZE.items():
            cls = value_type(tag)
            if cls is not float:
                assert cls.size == size

    @pytest.mark.parametrize("cls", [int, str, SymSymR4, list, None])
    def test_unsupported(self, cls):
        with pytest.raises(UnsupportedTypeError, match="格納できない"):
            storage_type(cls)

    def test_unsupported_is_type_error(self):
        with pytest.raises(TypeError):
            storage_size(complex)
