#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Hook 基类定义

定义压缩编解码器的抽象接口。容器引擎只通过这里的接口
完成压缩、解压和 CRC32 计算，具体算法可以替换。
"""

import zlib
from abc import ABC, abstractmethod
from typing import Iterator

from ..exceptions import DecompressionFailedError


class StreamDecompressor(ABC):
    """
    增量解压器

    由 CompressionCodec.decompressor() 创建，生命周期仅限一次流式读取。
    """

    @abstractmethod
    def feed(self, data: bytes, max_length: int) -> Iterator[bytes]:
        """
        输入一段压缩数据

        Args:
            data: 压缩数据块
            max_length: 每次产出的最大字节数

        Yields:
            解压出的数据 (每块不超过 max_length)
        """
        pass

    @abstractmethod
    def finish(self) -> bytes:
        """
        输入结束，返回剩余数据

        Raises:
            DecompressionFailedError: 压缩流不完整或损坏
        """
        pass


class BufferedDecompressor(StreamDecompressor):
    """
    缓冲式解压器

    收集全部压缩数据后一次性调用 codec.decompress()。
    作为不支持增量解压的编解码器的默认实现。
    """

    def __init__(self, codec: 'CompressionCodec', raw_size: int):
        self._codec = codec
        self._raw_size = raw_size
        self._pending = bytearray()

    def feed(self, data: bytes, max_length: int) -> Iterator[bytes]:
        self._pending += data
        return iter(())

    def finish(self) -> bytes:
        data, self._pending = bytes(self._pending), bytearray()
        return self._codec.decompress(data, self._raw_size)


class CompressionCodec(ABC):
    """
    压缩编解码器钩子

    用于接入 DEFLATE 或其他压缩实现。
    level 为 0 的数据由容器直接存储，不会调用 compress()。
    """

    @property
    @abstractmethod
    def method(self) -> int:
        """
        ZIP 压缩方法代码

        写入本地文件头和中央目录的 method 字段。
        0 = 存储, 8 = DEFLATE

        Returns:
            方法代码
        """
        pass

    @property
    def display_name(self) -> str:
        """
        可读名称

        默认返回类名，子类可覆盖提供更友好的名称。
        """
        return type(self).__name__

    @abstractmethod
    def compress(self, data: bytes, level: int) -> bytes:
        """
        压缩数据

        Args:
            data: 原始数据
            level: 压缩级别 (1-9)

        Returns:
            压缩后的数据

        Raises:
            CompressionFailedError: 压缩失败
        """
        pass

    @abstractmethod
    def decompress(self, data: bytes, raw_size: int) -> bytes:
        """
        解压数据

        Args:
            data: 压缩后的数据
            raw_size: 原始大小，解压结果必须与之相等

        Returns:
            解压后的数据

        Raises:
            DecompressionFailedError: 数据损坏或大小不符
        """
        pass

    def crc32(self, data: bytes, value: int = 0) -> int:
        """
        计算 CRC32

        支持增量计算: 将上一次的结果作为 value 传入。

        Returns:
            无符号 32 位 CRC
        """
        return zlib.crc32(data, value) & 0xFFFFFFFF

    def decompressor(self, raw_size: int) -> StreamDecompressor:
        """
        创建增量解压器

        默认实现为缓冲式，子类可覆盖以支持真正的流式解压。
        """
        return BufferedDecompressor(self, raw_size)

    @staticmethod
    def check_size(data: bytes, raw_size: int) -> bytes:
        """校验解压结果大小"""
        if len(data) != raw_size:
            raise DecompressionFailedError(
                f"解压后大小不符: 期望 {raw_size}, 实际 {len(data)}"
            )
        return data
