#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
zipstore 数据结构定义

定义 ZIP 的三种结构记录 (LocalFileHeader、CentralDirectoryRecord、
EndOfCentralDirectory) 以及条目 Entry 和相关枚举。
"""

import struct
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import ClassVar, Tuple

from ..exceptions import CorruptHeaderError
from ..utils import from_dos_datetime


# ==================== 常量定义 ====================

# 结构签名
LOCAL_FILE_HEADER_SIGNATURE = 0x04034B50      # "PK\x03\x04"
CENTRAL_DIRECTORY_SIGNATURE = 0x02014B50      # "PK\x01\x02"
END_OF_CENTRAL_DIR_SIGNATURE = 0x06054B50     # "PK\x05\x06"

# 版本号 (2.0: 目录与 DEFLATE)
VERSION_MADE_BY = 20
VERSION_NEEDED = 20

# 标志位
FLAG_ENCRYPTED = 0x0001

# 外部属性 (高 16 位为 Unix mode，0x10 为 MS-DOS 目录位)
EXTERNAL_ATTR_FILE = 0o100644 << 16
EXTERNAL_ATTR_DIR = (0o40755 << 16) | 0x10

# 经典 ZIP 字段上限
MAX_U32 = 0xFFFFFFFF
MAX_ENTRY_COUNT = 0xFFFF

# EOCD 注释最大长度
MAX_COMMENT_LENGTH = 0xFFFF


class CompressionMethod(IntEnum):
    """压缩方法代码"""
    STORED = 0
    DEFLATED = 8


class CompressionLevel(IntEnum):
    """
    压缩级别预设

    任意 0-9 的整数同样有效，0 表示直接存储。
    """
    NONE = 0
    FASTEST = 1
    DEFAULT = 6
    BEST = 9


class EntryKind(Enum):
    """条目类型"""
    FILE = "file"
    DIRECTORY = "directory"


# ==================== 结构记录 ====================

def _unpack(fmt: str, signature: int, name: str, data: bytes) -> Tuple:
    values = struct.unpack(fmt, data)
    if values[0] != signature:
        raise CorruptHeaderError(
            f"无效的{name}签名",
            expected=f"{signature:#010x}",
            actual=f"{values[0]:#010x}"
        )
    return values


@dataclass
class LocalFileHeader:
    """
    本地文件头 (30 bytes + 文件名 + 扩展字段)

    紧跟其后的是 (可能已压缩的) 数据。
    """
    FORMAT: ClassVar[str] = '<IHHHHHIIIHH'
    SIZE: ClassVar[int] = 30

    version_needed: int = VERSION_NEEDED
    flags: int = 0
    method: int = CompressionMethod.STORED
    dos_time: int = 0
    dos_date: int = 0
    crc32: int = 0
    compressed_size: int = 0
    uncompressed_size: int = 0
    name_length: int = 0
    extra_length: int = 0

    def pack(self) -> bytes:
        """序列化为字节 (不含文件名)"""
        return struct.pack(
            self.FORMAT,
            LOCAL_FILE_HEADER_SIGNATURE,
            self.version_needed,
            self.flags,
            self.method,
            self.dos_time,
            self.dos_date,
            self.crc32,
            self.compressed_size,
            self.uncompressed_size,
            self.name_length,
            self.extra_length
        )

    @classmethod
    def unpack(cls, data: bytes) -> 'LocalFileHeader':
        """从字节反序列化"""
        values = _unpack(cls.FORMAT, LOCAL_FILE_HEADER_SIGNATURE, "本地文件头", data)
        return cls(*values[1:])

    @property
    def record_size(self) -> int:
        """头部总长度 (数据起点相对于头部起点的偏移)"""
        return self.SIZE + self.name_length + self.extra_length


@dataclass
class CentralDirectoryRecord:
    """
    中央目录记录 (46 bytes + 文件名 + 扩展字段 + 注释)

    finalize 时每个条目写一条。
    """
    FORMAT: ClassVar[str] = '<IHHHHHHIIIHHHHHII'
    SIZE: ClassVar[int] = 46

    version_made_by: int = VERSION_MADE_BY
    version_needed: int = VERSION_NEEDED
    flags: int = 0
    method: int = CompressionMethod.STORED
    dos_time: int = 0
    dos_date: int = 0
    crc32: int = 0
    compressed_size: int = 0
    uncompressed_size: int = 0
    name_length: int = 0
    extra_length: int = 0
    comment_length: int = 0
    disk_start: int = 0
    internal_attr: int = 0
    external_attr: int = 0
    local_header_offset: int = 0

    def pack(self) -> bytes:
        """序列化为字节 (不含文件名)"""
        return struct.pack(
            self.FORMAT,
            CENTRAL_DIRECTORY_SIGNATURE,
            self.version_made_by,
            self.version_needed,
            self.flags,
            self.method,
            self.dos_time,
            self.dos_date,
            self.crc32,
            self.compressed_size,
            self.uncompressed_size,
            self.name_length,
            self.extra_length,
            self.comment_length,
            self.disk_start,
            self.internal_attr,
            self.external_attr,
            self.local_header_offset
        )

    @classmethod
    def unpack(cls, data: bytes) -> 'CentralDirectoryRecord':
        """从字节反序列化"""
        values = _unpack(cls.FORMAT, CENTRAL_DIRECTORY_SIGNATURE, "中央目录", data)
        return cls(*values[1:])


@dataclass
class EndOfCentralDirectory:
    """
    中央目录结束记录 (22 bytes + 注释)

    位于归档末尾，给出中央目录的位置和大小。
    """
    FORMAT: ClassVar[str] = '<IHHHHIIH'
    SIZE: ClassVar[int] = 22
    SIGNATURE_BYTES: ClassVar[bytes] = struct.pack('<I', END_OF_CENTRAL_DIR_SIGNATURE)

    disk_number: int = 0
    cd_disk: int = 0
    disk_entries: int = 0
    total_entries: int = 0
    cd_size: int = 0
    cd_offset: int = 0
    comment_length: int = 0

    def pack(self) -> bytes:
        """序列化为字节"""
        return struct.pack(
            self.FORMAT,
            END_OF_CENTRAL_DIR_SIGNATURE,
            self.disk_number,
            self.cd_disk,
            self.disk_entries,
            self.total_entries,
            self.cd_size,
            self.cd_offset,
            self.comment_length
        )

    @classmethod
    def unpack(cls, data: bytes) -> 'EndOfCentralDirectory':
        """从字节反序列化"""
        values = _unpack(cls.FORMAT, END_OF_CENTRAL_DIR_SIGNATURE, "EOCD", data)
        return cls(*values[1:])


# ==================== 条目 ====================

@dataclass(frozen=True)
class Entry:
    """
    归档条目

    创建后不可修改。目录条目路径以 / 结尾，大小恒为 0。
    """
    path: str
    kind: EntryKind
    uncompressed_size: int
    compressed_size: int
    compression_method: CompressionMethod
    crc32: int
    local_header_offset: int
    flags: int = 0
    dos_time: int = 0
    dos_date: int = (1 << 5) | 1

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def date_time(self) -> Tuple[int, int, int, int, int, int]:
        """最后修改时间 (年, 月, 日, 时, 分, 秒)"""
        return from_dos_datetime(self.dos_time, self.dos_date)
