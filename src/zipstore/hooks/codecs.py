#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
内置编解码器实现

提供 DEFLATE (基于标准库 zlib) 和仅存储两种实现。
"""

import zlib
from typing import Iterator

from .base import CompressionCodec, StreamDecompressor
from ..core.schema import CompressionMethod
from ..exceptions import (
    CompressionFailedError,
    DecompressionFailedError,
    UnsupportedMethodError,
)


# 原始 DEFLATE 流 (无 zlib 头和校验尾)
RAW_DEFLATE_WBITS = -zlib.MAX_WBITS


class ZlibStreamDecompressor(StreamDecompressor):
    """基于 zlib.decompressobj 的增量解压器"""

    def __init__(self):
        self._obj = zlib.decompressobj(RAW_DEFLATE_WBITS)

    def feed(self, data: bytes, max_length: int) -> Iterator[bytes]:
        while True:
            if self._obj.eof:
                return
            try:
                out = self._obj.decompress(data, max_length)
            except zlib.error as e:
                raise DecompressionFailedError(f"DEFLATE 数据损坏: {e}") from e
            if out:
                yield out
            data = self._obj.unconsumed_tail
            # 输出未被截断且输入已耗尽
            if not data and len(out) < max_length:
                return

    def finish(self) -> bytes:
        try:
            tail = self._obj.flush()
        except zlib.error as e:
            raise DecompressionFailedError(f"DEFLATE 数据损坏: {e}") from e
        if not self._obj.eof:
            raise DecompressionFailedError("DEFLATE 数据流不完整")
        return tail


class ZlibCodec(CompressionCodec):
    """
    DEFLATE 编解码器

    生成标准 ZIP 读取器可识别的 method 8 原始 DEFLATE 流。
    """

    @property
    def method(self) -> int:
        return CompressionMethod.DEFLATED

    @property
    def display_name(self) -> str:
        return "deflate"

    def compress(self, data: bytes, level: int) -> bytes:
        try:
            compressor = zlib.compressobj(level, zlib.DEFLATED, RAW_DEFLATE_WBITS)
            return compressor.compress(data) + compressor.flush()
        except (zlib.error, ValueError) as e:
            raise CompressionFailedError(f"DEFLATE 压缩失败: {e}") from e

    def decompress(self, data: bytes, raw_size: int) -> bytes:
        try:
            # bufsize 仅为初始缓冲区大小
            out = zlib.decompress(data, RAW_DEFLATE_WBITS, max(raw_size, 1))
        except zlib.error as e:
            raise DecompressionFailedError(f"DEFLATE 数据损坏: {e}") from e
        return self.check_size(out, raw_size)

    def decompressor(self, raw_size: int) -> StreamDecompressor:
        return ZlibStreamDecompressor()


class StoreCodec(CompressionCodec):
    """
    仅存储编解码器

    不做任何压缩，所有条目都以 method 0 写入。
    用于在没有压缩实现的情况下独立验证容器逻辑。
    """

    @property
    def method(self) -> int:
        return CompressionMethod.STORED

    @property
    def display_name(self) -> str:
        return "store"

    def compress(self, data: bytes, level: int) -> bytes:
        return bytes(data)

    def decompress(self, data: bytes, raw_size: int) -> bytes:
        raise UnsupportedMethodError(CompressionMethod.DEFLATED)
