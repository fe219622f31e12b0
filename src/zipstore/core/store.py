#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
存储后端

归档会话通过 BackingStore 访问原始字节，存储后端有两种:
- MemoryStore: 自有的可增长内存缓冲区
- FileStore: 打开的磁盘文件句柄

两者都提供按偏移读取、在写游标处追加、以及提交尾部 (写入并截断) 的能力。
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional

from ..exceptions import (
    AllocationFailedError,
    FileCloseError,
    FileOpenError,
    FileReadError,
    FileSeekError,
    FileWriteError,
    InvalidStateError,
)


logger = logging.getLogger(__name__)


class BackingStore(ABC):
    """
    存储后端基类

    写游标 (cursor) 是下一次 append 的落点。
    同一时间只能由一个会话持有。
    """

    def __init__(self, writable: bool):
        self._writable = writable
        self._cursor = 0
        self._closed = False

    @property
    @abstractmethod
    def name(self) -> str:
        """用于日志和错误信息的名称"""
        pass

    @property
    @abstractmethod
    def size(self) -> int:
        """当前总字节数"""
        pass

    @property
    def cursor(self) -> int:
        """写游标位置"""
        return self._cursor

    @property
    def writable(self) -> bool:
        return self._writable

    @property
    def closed(self) -> bool:
        return self._closed

    # ==================== 读写 ====================

    def read_at(self, offset: int, size: int) -> bytes:
        """
        读取指定位置的数据

        越过末尾时返回的字节数可能少于 size，由调用方检查。
        """
        self._check_open("read")
        return self._read(offset, size)

    def append(self, data: bytes) -> int:
        """
        在写游标处写入数据并推进游标

        写入失败时游标保持不变。

        Returns:
            数据写入的起始偏移
        """
        self._check_writable("append")
        offset = self._cursor
        self._write(offset, data)
        self._cursor = offset + len(data)
        return offset

    def seek_cursor(self, offset: int) -> None:
        """重新定位写游标 (升级会话时定位到旧中央目录处)"""
        self._check_open("seek")
        if offset < 0 or offset > self.size:
            raise ValueError(f"游标越界: {offset} (大小 {self.size})")
        self._cursor = offset

    def commit_tail(self, data: bytes) -> int:
        """
        在写游标处写入尾部数据，并截断其后的所有内容

        用于写入中央目录 + EOCD，覆盖旧的中央目录区域。

        Returns:
            提交后的总字节数
        """
        self._check_writable("commit")
        end = self._cursor + len(data)
        self._write(self._cursor, data)
        self._truncate(end)
        self._cursor = end
        return end

    # ==================== 生命周期 ====================

    @abstractmethod
    def seal(self) -> Optional[bytes]:
        """
        封存存储

        内存存储返回完整字节并交出所有权；文件存储刷新并关闭句柄，返回 None。
        """
        pass

    @abstractmethod
    def release(self) -> None:
        """释放资源，不写入任何内容"""
        pass

    # ==================== 子类实现 ====================

    @abstractmethod
    def _read(self, offset: int, size: int) -> bytes:
        pass

    @abstractmethod
    def _write(self, offset: int, data: bytes) -> None:
        pass

    @abstractmethod
    def _truncate(self, size: int) -> None:
        pass

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise InvalidStateError(operation, "closed")

    def _check_writable(self, operation: str) -> None:
        self._check_open(operation)
        if not self._writable:
            raise InvalidStateError(operation, "read-only store")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} size={self.size} cursor={self._cursor}>"


class MemoryStore(BackingStore):
    """
    内存存储

    从已有字节打开时会复制一份，此后由会话独占这份副本。
    """

    def __init__(self, data: bytes = b'', writable: bool = True):
        super().__init__(writable)
        try:
            self._buffer = bytearray(data)
        except MemoryError as e:
            raise AllocationFailedError(f"无法分配 {len(data)} 字节的缓冲区") from e

    @property
    def name(self) -> str:
        return "<memory>"

    @property
    def size(self) -> int:
        return len(self._buffer)

    def _read(self, offset: int, size: int) -> bytes:
        return bytes(self._buffer[offset:offset + size])

    def _write(self, offset: int, data: bytes) -> None:
        try:
            self._buffer[offset:offset + len(data)] = data
        except MemoryError as e:
            raise AllocationFailedError(
                f"缓冲区扩展失败 (偏移 {offset}, 写入 {len(data)} 字节)"
            ) from e

    def _truncate(self, size: int) -> None:
        del self._buffer[size:]

    def seal(self) -> bytes:
        self._check_open("seal")
        data = bytes(self._buffer)
        self._buffer = bytearray()
        self._closed = True
        return data

    def release(self) -> None:
        self._buffer = bytearray()
        self._closed = True


class FileStore(BackingStore):
    """
    文件存储

    打开模式:
    - 'rb':  只读
    - 'r+b': 读写已有文件 (升级会话)
    - 'w+b': 新建或截断
    """

    MODES = ('rb', 'r+b', 'w+b')

    def __init__(self, path: str, mode: str = 'rb'):
        if mode not in self.MODES:
            raise ValueError(f"不支持的打开模式: {mode!r}")
        super().__init__(writable=(mode != 'rb'))
        self._path = os.fspath(path)
        try:
            self._file: Optional[BinaryIO] = open(self._path, mode)
        except OSError as e:
            raise FileOpenError(self._path, e) from e
        try:
            self._size = os.fstat(self._file.fileno()).st_size
        except OSError as e:
            self._file.close()
            raise FileOpenError(self._path, e) from e
        logger.debug("opened %s (mode=%s, size=%d)", self._path, mode, self._size)

    @property
    def name(self) -> str:
        return self._path

    @property
    def path(self) -> str:
        return self._path

    @property
    def size(self) -> int:
        return self._size

    def _seek(self, offset: int) -> None:
        try:
            self._file.seek(offset)
        except OSError as e:
            raise FileSeekError(self._path, e) from e

    def _read(self, offset: int, size: int) -> bytes:
        self._seek(offset)
        try:
            return self._file.read(size)
        except OSError as e:
            raise FileReadError(self._path, e) from e

    def _write(self, offset: int, data: bytes) -> None:
        self._seek(offset)
        try:
            self._file.write(data)
        except OSError as e:
            raise FileWriteError(self._path, e) from e
        self._size = max(self._size, offset + len(data))

    def _truncate(self, size: int) -> None:
        try:
            self._file.truncate(size)
        except OSError as e:
            raise FileWriteError(self._path, e) from e
        self._size = size

    def seal(self) -> None:
        self._check_open("seal")
        try:
            self._file.flush()
        except OSError as e:
            raise FileWriteError(self._path, e) from e
        self._close_handle()

    def release(self) -> None:
        if self._closed:
            return
        self._close_handle()

    def _close_handle(self) -> None:
        file, self._file = self._file, None
        self._closed = True
        try:
            file.close()
        except OSError as e:
            raise FileCloseError(self._path, e) from e
        logger.debug("closed %s", self._path)
