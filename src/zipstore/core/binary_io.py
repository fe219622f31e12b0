#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
二进制 I/O 封装

提供 BinaryWriter 和 BinaryReader 类，封装对字节流的定长记录读写，
使容器编解码层不需要直接操作文件指针。
"""

from typing import Any, BinaryIO, Type, TypeVar


R = TypeVar("R")


class BinaryWriter:
    """
    二进制写入器

    上层模块只需调用 write_record() / write_bytes()。
    通常包装 io.BytesIO，用于在提交前先在内存中拼好整段结构。
    """

    def __init__(self, file: BinaryIO):
        """
        初始化写入器

        Args:
            file: 可写的二进制流
        """
        self._file = file
        self._position = 0

    @property
    def position(self) -> int:
        """当前写入位置 (相对于流起点)"""
        return self._position

    def write_bytes(self, data: bytes) -> int:
        """
        写入原始字节

        Returns:
            写入的字节数
        """
        written = self._file.write(data)
        self._position += written
        return written

    def write_record(self, record: Any) -> int:
        """
        写入定长记录

        record 需提供 pack() 方法 (见 core.schema)。
        """
        return self.write_bytes(record.pack())


class BinaryReader:
    """
    二进制读取器

    封装所有底层读操作，提供按记录类型读取的方法。
    """

    def __init__(self, file: BinaryIO, base: int = 0):
        """
        初始化读取器

        Args:
            file: 可读的二进制流
            base: 流起点在归档中的绝对偏移 (用于报告 absolute_position)
        """
        self._file = file
        self._position = 0
        self._base = base

    @property
    def position(self) -> int:
        """当前读取位置 (相对于流起点)"""
        return self._position

    @property
    def absolute_position(self) -> int:
        """当前读取位置在归档中的绝对偏移"""
        return self._base + self._position

    def read_bytes(self, size: int) -> bytes:
        """
        读取指定字节数

        Raises:
            EOFError: 数据不足请求的字节数
        """
        data = self._file.read(size)
        if len(data) < size:
            raise EOFError(
                f"数据结束: 期望读取 {size} 字节，实际只有 {len(data)} 字节"
            )
        self._position += size
        return data

    def read_record(self, record_cls: Type[R]) -> R:
        """
        读取定长记录

        record_cls 需提供 SIZE 常量和 unpack() 类方法 (见 core.schema)。
        """
        return record_cls.unpack(self.read_bytes(record_cls.SIZE))

    def skip(self, size: int):
        """跳过指定字节 (越界时抛出 EOFError)"""
        self.read_bytes(size)
