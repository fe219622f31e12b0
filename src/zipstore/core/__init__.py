#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
zipstore 核心模块

提供二进制 I/O 封装、ZIP 结构定义、条目目录和存储后端。
"""

from .binary_io import BinaryReader, BinaryWriter
from .schema import (
    LocalFileHeader, CentralDirectoryRecord, EndOfCentralDirectory,
    Entry, EntryKind, CompressionLevel, CompressionMethod,
)
from .catalog import EntryCatalog
from .store import BackingStore, MemoryStore, FileStore

__all__ = [
    "BinaryReader",
    "BinaryWriter",
    "LocalFileHeader",
    "CentralDirectoryRecord",
    "EndOfCentralDirectory",
    "Entry",
    "EntryKind",
    "CompressionLevel",
    "CompressionMethod",
    "EntryCatalog",
    # 存储后端
    "BackingStore",
    "MemoryStore",
    "FileStore",
]
