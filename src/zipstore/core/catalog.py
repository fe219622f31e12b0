#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
条目目录

按路径索引归档中的全部条目，保持插入顺序。
"""

from typing import Dict, Iterator, Optional, Tuple

from .schema import Entry
from ..exceptions import DuplicateEntryError, EntryNotFoundError


class EntryCatalog:
    """
    条目目录

    - 按路径精确查找 (区分大小写，不做规范化)
    - 重复路径直接拒绝，已有条目永远不会被覆盖
    - 遍历顺序即插入顺序，也是中央目录的写入顺序
    """

    def __init__(self):
        self._entries: Dict[str, Entry] = {}

    def insert(self, entry: Entry) -> None:
        """
        插入条目

        Raises:
            DuplicateEntryError: 路径已存在
        """
        if entry.path in self._entries:
            raise DuplicateEntryError(entry.path)
        self._entries[entry.path] = entry

    def get(self, path: str) -> Optional[Entry]:
        return self._entries.get(path)

    def require(self, path: str) -> Entry:
        """
        获取条目

        Raises:
            EntryNotFoundError: 路径不存在
        """
        entry = self._entries.get(path)
        if entry is None:
            raise EntryNotFoundError(path)
        return entry

    def snapshot(self) -> Tuple[Entry, ...]:
        """只读快照 (插入顺序)"""
        return tuple(self._entries.values())

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._entries)
