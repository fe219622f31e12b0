#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ZIP 容器编解码

负责三种结构 (本地文件头、中央目录记录、EOCD) 在存储后端上的读写:
- 写入: 拼装本地记录、在内存中拼好整段中央目录 + EOCD
- 读取: 从末尾反向定位 EOCD，顺序解析中央目录，定位条目数据
"""

import io
from dataclasses import dataclass
from typing import List, Tuple

from ..core.binary_io import BinaryReader, BinaryWriter
from ..core.schema import (
    CentralDirectoryRecord, CompressionMethod, EndOfCentralDirectory, Entry,
    EntryKind, LocalFileHeader,
    EXTERNAL_ATTR_DIR, EXTERNAL_ATTR_FILE, FLAG_ENCRYPTED,
    MAX_COMMENT_LENGTH, MAX_ENTRY_COUNT, MAX_U32,
)
from ..core.store import BackingStore
from ..exceptions import (
    ArchiveTooLargeError,
    CorruptHeaderError,
    NotAnArchiveError,
    UnsupportedFeatureError,
)
from ..utils import decode_name, encode_name


@dataclass
class CentralDirectory:
    """解析结果: 条目列表及中央目录位置"""
    entries: List[Entry]
    offset: int
    size: int
    eocd_offset: int


def _method(value: int) -> int:
    try:
        return CompressionMethod(value)
    except ValueError:
        return value


def _check_u32(value: int, what: str) -> None:
    if value > MAX_U32:
        raise ArchiveTooLargeError(f"{what} 超出 32 位范围: {value}")


class ContainerCodec:
    """
    ZIP 容器编解码器

    只处理结构布局，压缩由 CompressionCodec 负责。
    """

    def __init__(self, store: BackingStore):
        self._store = store

    # ==================== 写入 ====================

    @staticmethod
    def local_record(entry: Entry, payload: bytes) -> bytes:
        """
        拼装本地记录: 本地文件头 + 文件名 + 数据

        Raises:
            ArchiveTooLargeError: 大小或偏移超出 32 位
        """
        _check_u32(entry.uncompressed_size, "原始大小")
        _check_u32(entry.compressed_size, "压缩大小")
        _check_u32(entry.local_header_offset, "本地头偏移")
        name, _ = encode_name(entry.path)
        header = LocalFileHeader(
            flags=entry.flags,
            method=entry.compression_method,
            dos_time=entry.dos_time,
            dos_date=entry.dos_date,
            crc32=entry.crc32,
            compressed_size=entry.compressed_size,
            uncompressed_size=entry.uncompressed_size,
            name_length=len(name),
        )
        return header.pack() + name + payload

    @staticmethod
    def central_directory(entries: Tuple[Entry, ...], offset: int) -> bytes:
        """
        拼装中央目录 + EOCD

        整段先在内存中生成，由调用方一次性提交到存储尾部。

        Args:
            entries: 按目录顺序排列的条目
            offset: 中央目录在归档中的起始偏移

        Raises:
            ArchiveTooLargeError: 条目数、大小或偏移超出经典 ZIP 范围
        """
        if len(entries) >= MAX_ENTRY_COUNT:
            raise ArchiveTooLargeError(f"条目数超出上限 {MAX_ENTRY_COUNT}: {len(entries)}")
        _check_u32(offset, "中央目录偏移")

        buffer = io.BytesIO()
        writer = BinaryWriter(buffer)
        for entry in entries:
            name, _ = encode_name(entry.path)
            writer.write_record(CentralDirectoryRecord(
                flags=entry.flags,
                method=entry.compression_method,
                dos_time=entry.dos_time,
                dos_date=entry.dos_date,
                crc32=entry.crc32,
                compressed_size=entry.compressed_size,
                uncompressed_size=entry.uncompressed_size,
                name_length=len(name),
                external_attr=EXTERNAL_ATTR_DIR if entry.is_dir else EXTERNAL_ATTR_FILE,
                local_header_offset=entry.local_header_offset,
            ))
            writer.write_bytes(name)

        cd_size = writer.position
        _check_u32(cd_size, "中央目录大小")
        writer.write_record(EndOfCentralDirectory(
            disk_entries=len(entries),
            total_entries=len(entries),
            cd_size=cd_size,
            cd_offset=offset,
        ))
        return buffer.getvalue()

    # ==================== 读取 ====================

    def locate_eocd(self) -> Tuple[int, EndOfCentralDirectory]:
        """
        从末尾反向扫描 EOCD

        只有注释长度恰好延伸到末尾的候选才会被接受，
        以便正确处理任意长度的归档注释。

        Returns:
            (EOCD 偏移, EOCD 记录)

        Raises:
            NotAnArchiveError: 数据过短或找不到 EOCD
        """
        size = self._store.size
        record_size = EndOfCentralDirectory.SIZE
        if size < record_size:
            raise NotAnArchiveError(
                f"{self._store.name}: 数据过短 ({size} 字节)，不是 ZIP 归档"
            )

        scan = min(size, record_size + MAX_COMMENT_LENGTH)
        start = size - scan
        tail = self._store.read_at(start, scan)
        signature = EndOfCentralDirectory.SIGNATURE_BYTES

        pos = len(tail) - record_size
        while pos >= 0:
            pos = tail.rfind(signature, 0, pos + len(signature))
            if pos < 0:
                break
            eocd = EndOfCentralDirectory.unpack(tail[pos:pos + record_size])
            if pos + record_size + eocd.comment_length == len(tail):
                return start + pos, eocd
            pos -= 1

        raise NotAnArchiveError(f"{self._store.name}: 找不到中央目录结束记录")

    def read_central_directory(self) -> CentralDirectory:
        """
        解析中央目录

        Raises:
            NotAnArchiveError: 找不到 EOCD
            CorruptHeaderError: 签名错误或数据截断
            UnsupportedFeatureError: 分卷归档或 ZIP64
        """
        eocd_offset, eocd = self.locate_eocd()

        if eocd.disk_number or eocd.cd_disk or eocd.disk_entries != eocd.total_entries:
            raise UnsupportedFeatureError("不支持分卷归档")
        if (eocd.total_entries == MAX_ENTRY_COUNT
                or eocd.cd_size == MAX_U32 or eocd.cd_offset == MAX_U32):
            raise UnsupportedFeatureError("不支持 ZIP64 归档")
        if eocd.cd_offset + eocd.cd_size > eocd_offset:
            raise CorruptHeaderError(
                "中央目录越界",
                expected=f"<= {eocd_offset}",
                actual=str(eocd.cd_offset + eocd.cd_size)
            )

        data = self._store.read_at(eocd.cd_offset, eocd.cd_size)
        reader = BinaryReader(io.BytesIO(data), base=eocd.cd_offset)
        entries = []
        try:
            for _ in range(eocd.total_entries):
                entries.append(self._read_entry(reader))
        except EOFError as e:
            raise CorruptHeaderError(f"中央目录被截断: {e}") from e

        return CentralDirectory(
            entries=entries,
            offset=eocd.cd_offset,
            size=eocd.cd_size,
            eocd_offset=eocd_offset,
        )

    @staticmethod
    def _read_entry(reader: BinaryReader) -> Entry:
        record_offset = reader.absolute_position
        record = reader.read_record(CentralDirectoryRecord)
        raw_name = reader.read_bytes(record.name_length)
        reader.skip(record.extra_length + record.comment_length)

        try:
            path = decode_name(raw_name, record.flags)
        except UnicodeDecodeError as e:
            raise CorruptHeaderError(f"偏移 {record_offset} 处的条目名无法解码") from e
        if not path:
            raise CorruptHeaderError(f"偏移 {record_offset} 处的条目名为空")
        if MAX_U32 in (record.compressed_size, record.uncompressed_size,
                       record.local_header_offset):
            raise UnsupportedFeatureError(f"条目 '{path}' 使用 ZIP64 扩展")

        return Entry(
            path=path,
            kind=EntryKind.DIRECTORY if path.endswith("/") else EntryKind.FILE,
            uncompressed_size=record.uncompressed_size,
            compressed_size=record.compressed_size,
            compression_method=_method(record.method),
            crc32=record.crc32,
            local_header_offset=record.local_header_offset,
            flags=record.flags,
            dos_time=record.dos_time,
            dos_date=record.dos_date,
        )

    def data_offset(self, entry: Entry) -> int:
        """
        读取本地文件头，返回条目数据的起始偏移

        大小以中央目录为准 (本地头可能使用数据描述符，大小字段为 0)。

        Raises:
            CorruptHeaderError: 本地头损坏或数据被截断
            UnsupportedFeatureError: 条目已加密
        """
        if entry.flags & FLAG_ENCRYPTED:
            raise UnsupportedFeatureError(f"条目 '{entry.path}' 已加密")

        raw = self._store.read_at(entry.local_header_offset, LocalFileHeader.SIZE)
        if len(raw) < LocalFileHeader.SIZE:
            raise CorruptHeaderError(f"条目 '{entry.path}' 的本地文件头被截断")
        header = LocalFileHeader.unpack(raw)

        start = entry.local_header_offset + header.record_size
        if start + entry.compressed_size > self._store.size:
            raise CorruptHeaderError(
                f"条目 '{entry.path}' 的数据被截断",
                expected=str(start + entry.compressed_size),
                actual=str(self._store.size)
            )
        return start

    def read_payload(self, entry: Entry) -> bytes:
        """读取条目的 (压缩) 数据"""
        start = self.data_offset(entry)
        return self._store.read_at(start, entry.compressed_size)
