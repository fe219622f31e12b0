#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
zipstore - 轻量级零依赖 Python ZIP 容器引擎

支持内存归档与磁盘文件归档的创建、读取、追加和流式提取。
"""

__version__ = "0.1.0"

# 异常类
from .exceptions import (
    ZipStoreError,
    InvalidPathError,
    DuplicateEntryError,
    EntryNotFoundError,
    InvalidStateError,
    InvalidParameterError,
    ChecksumMismatchError,
    CompressionFailedError,
    DecompressionFailedError,
    NotAnArchiveError,
    CorruptHeaderError,
    UnsupportedMethodError,
    UnsupportedFeatureError,
    ArchiveTooLargeError,
    AllocationFailedError,
    FinalizeFailedError,
    StoreIOError,
    FileOpenError,
    FileReadError,
    FileWriteError,
    FileSeekError,
    FileCloseError,
)

# 数据结构
from .core import (
    Entry,
    EntryKind,
    CompressionLevel,
    CompressionMethod,
    EntryCatalog,
    BackingStore,
    MemoryStore,
    FileStore,
)

# 会话
from .archive import ArchiveSession, SessionState, OpenMode, StreamingExtractor

# Hooks
from .hooks import CompressionCodec, StreamDecompressor, ZlibCodec, StoreCodec

__all__ = [
    # 版本
    "__version__",
    # 异常
    "ZipStoreError",
    "InvalidPathError",
    "DuplicateEntryError",
    "EntryNotFoundError",
    "InvalidStateError",
    "InvalidParameterError",
    "ChecksumMismatchError",
    "CompressionFailedError",
    "DecompressionFailedError",
    "NotAnArchiveError",
    "CorruptHeaderError",
    "UnsupportedMethodError",
    "UnsupportedFeatureError",
    "ArchiveTooLargeError",
    "AllocationFailedError",
    "FinalizeFailedError",
    "StoreIOError",
    "FileOpenError",
    "FileReadError",
    "FileWriteError",
    "FileSeekError",
    "FileCloseError",
    # 数据结构
    "Entry",
    "EntryKind",
    "CompressionLevel",
    "CompressionMethod",
    "EntryCatalog",
    "BackingStore",
    "MemoryStore",
    "FileStore",
    # 会话
    "ArchiveSession",
    "SessionState",
    "OpenMode",
    "StreamingExtractor",
    # Hooks
    "CompressionCodec",
    "StreamDecompressor",
    "ZlibCodec",
    "StoreCodec",
]
