#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
流式提取器

按块读取单个条目的解压数据，不在内存中物化整个条目。
"""

import logging
from typing import Iterator, Optional

from .codec import ContainerCodec
from ..core.schema import CompressionMethod, Entry
from ..core.store import BackingStore
from ..exceptions import (
    ChecksumMismatchError,
    DecompressionFailedError,
    InvalidParameterError,
    UnsupportedMethodError,
)
from ..hooks.base import CompressionCodec, StreamDecompressor


logger = logging.getLogger(__name__)

# 每次从存储读取的压缩数据块大小
DEFAULT_BLOCK_SIZE = 64 * 1024


class StreamingExtractor:
    """
    流式提取器

    迭代产出的每块恰好 chunk_size 字节 (最后一块可能更短)，
    所有块按顺序拼接后与一次性读取的结果完全一致。
    数据耗尽时校验总大小和 CRC32。

    用法:
        with StreamingExtractor(store, entry, codec, 4096) as extractor:
            for chunk in extractor:
                ...

    无论正常结束、提前停止还是出错，读取游标和解压器都会被释放。
    """

    def __init__(
        self,
        store: BackingStore,
        entry: Entry,
        codec: CompressionCodec,
        chunk_size: int,
        block_size: int = DEFAULT_BLOCK_SIZE
    ):
        """
        Args:
            store: 存储后端
            entry: 要读取的文件条目
            codec: 编解码器
            chunk_size: 每块最大字节数 (> 0)
            block_size: 每次读取的压缩数据字节数

        Raises:
            InvalidParameterError: chunk_size 或 block_size <= 0
            UnsupportedMethodError: 条目压缩方法与编解码器不符
        """
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
            raise InvalidParameterError(f"chunk_size 必须大于 0: {chunk_size!r}")
        if block_size <= 0:
            raise InvalidParameterError(f"block_size 必须大于 0: {block_size!r}")
        method = entry.compression_method
        if method != CompressionMethod.STORED and method != codec.method:
            raise UnsupportedMethodError(method, entry.path)

        self._store = store
        self._entry = entry
        self._codec = codec
        self._chunk_size = chunk_size
        self._block_size = block_size
        self._decompressor: Optional[StreamDecompressor] = None
        self._chunks: Optional[Iterator[bytes]] = None

    @property
    def entry(self) -> Entry:
        return self._entry

    def __iter__(self) -> Iterator[bytes]:
        if self._chunks is None:
            self._chunks = self._generate()
        return self._chunks

    def close(self) -> None:
        """释放读取游标和解压器 (可重复调用)"""
        if self._chunks is not None:
            self._chunks.close()
        self._decompressor = None

    def __enter__(self) -> 'StreamingExtractor':
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # ==================== 内部实现 ====================

    def _read_compressed(self) -> Iterator[bytes]:
        """有界游标: 只在条目数据范围内按块读取"""
        offset = ContainerCodec(self._store).data_offset(self._entry)
        end = offset + self._entry.compressed_size
        while offset < end:
            block = self._store.read_at(offset, min(self._block_size, end - offset))
            if not block:
                raise DecompressionFailedError(f"条目 '{self._entry.path}' 的数据被截断")
            offset += len(block)
            yield block

    def _decompressed(self) -> Iterator[bytes]:
        if self._entry.compression_method == CompressionMethod.STORED:
            yield from self._read_compressed()
            return

        self._decompressor = self._codec.decompressor(self._entry.uncompressed_size)
        for block in self._read_compressed():
            yield from self._decompressor.feed(block, self._chunk_size)
        tail = self._decompressor.finish()
        if tail:
            yield tail

    def _generate(self) -> Iterator[bytes]:
        pending = bytearray()
        produced = 0
        crc = 0
        try:
            for piece in self._decompressed():
                produced += len(piece)
                crc = self._codec.crc32(piece, crc)
                pending += piece
                while len(pending) >= self._chunk_size:
                    chunk = bytes(pending[:self._chunk_size])
                    del pending[:self._chunk_size]
                    yield chunk

            if produced != self._entry.uncompressed_size:
                raise DecompressionFailedError(
                    f"条目 '{self._entry.path}' 解压后大小不符: "
                    f"期望 {self._entry.uncompressed_size}, 实际 {produced}"
                )
            if crc != self._entry.crc32:
                raise ChecksumMismatchError(self._entry.path, self._entry.crc32, crc)
            if pending:
                yield bytes(pending)
        finally:
            pending.clear()
            self._decompressor = None
            logger.debug("released stream for %s (%d bytes)", self._entry.path, produced)
