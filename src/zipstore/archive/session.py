#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
归档会话

ArchiveSession 是 zipstore 的公开入口，负责生命周期状态机:

    BUILDING   ──finalize()──▶ FINALIZED
    READ_WRITE ──finalize()──▶ FINALIZED
    READ_ONLY  ──close()─────▶ FINALIZED

任何状态下 close() 都会放弃未提交的修改并释放存储后端。
"""

import io
import logging
import os
from enum import Enum
from typing import Callable, Dict, Iterator, Optional, Tuple, Union

from .codec import ContainerCodec
from .extractor import DEFAULT_BLOCK_SIZE, StreamingExtractor
from ..core.catalog import EntryCatalog
from ..core.schema import (
    CompressionLevel, CompressionMethod, Entry, EntryKind,
)
from ..core.store import BackingStore, FileStore, MemoryStore
from ..exceptions import (
    ChecksumMismatchError,
    DuplicateEntryError,
    FinalizeFailedError,
    InvalidParameterError,
    InvalidStateError,
    UnsupportedMethodError,
    ZipStoreError,
)
from ..hooks.base import CompressionCodec
from ..hooks.codecs import ZlibCodec
from ..utils import (
    check_file_path, directory_path, encode_name, to_archive_path, to_dos_datetime,
)


logger = logging.getLogger(__name__)

Source = Union[bytes, bytearray, memoryview, str, os.PathLike]

# 不超过该大小的数据总是直接存储
STORE_THRESHOLD = 3


class SessionState(Enum):
    """会话状态"""
    BUILDING = "building"
    READ_ONLY = "read_only"
    READ_WRITE = "read_write"
    FINALIZED = "finalized"


class OpenMode(Enum):
    """
    文件打开模式

    - READ_ADD: 文件存在则升级为可追加会话，否则新建
    - OVERWRITE: 总是新建空归档，截断已有文件
    """
    READ_ADD = "read_add"
    OVERWRITE = "overwrite"


def _is_bytes(source: Source) -> bool:
    return isinstance(source, (bytes, bytearray, memoryview))


class ArchiveSession:
    """
    ZIP 归档会话

    通过类方法创建:
    - new():                   新建空的内存归档
    - open_for_read():         只读打开已有归档 (字节或文件路径)
    - open_for_read_write():   打开已有归档并追加 (字节或文件路径)

    会话不是线程安全的，同一存储后端同一时间只能由一个会话持有。
    """

    def __init__(
        self,
        store: BackingStore,
        state: SessionState,
        codec: Optional[CompressionCodec] = None,
        block_size: int = DEFAULT_BLOCK_SIZE
    ):
        """
        初始化会话

        一般不直接调用，请使用 new() / open_for_read() / open_for_read_write()。

        Args:
            store: 存储后端 (会话取得其所有权)
            state: 初始状态 (BUILDING / READ_ONLY / READ_WRITE)
            codec: 压缩编解码器，默认 ZlibCodec
            block_size: 流式读取时每次读取的压缩数据大小
        """
        self._store = store
        self._state = state
        self._codec = codec or ZlibCodec()
        self._block_size = block_size
        self._container = ContainerCodec(store)
        self._catalog = EntryCatalog()

        # 升级会话的原始尾部 (旧中央目录 + EOCD)，close() 时用于回滚
        self._origin_cursor = 0
        self._origin_tail = b''
        # 是否写入过存储 (包括写入失败时的部分数据)
        self._dirty = False

        if state is not SessionState.BUILDING:
            try:
                self._load()
            except BaseException:
                store.release()
                raise

    def _load(self) -> None:
        """解析已有中央目录，升级会话时将写游标移到旧中央目录处"""
        directory = self._container.read_central_directory()
        for entry in directory.entries:
            self._catalog.insert(entry)

        if self._state is SessionState.READ_WRITE:
            self._origin_cursor = directory.offset
            self._origin_tail = self._store.read_at(
                directory.offset, self._store.size - directory.offset
            )
            self._store.seek_cursor(directory.offset)

        logger.debug(
            "loaded %d entries from %s (%s)",
            len(self._catalog), self._store.name, self._state.value
        )

    # ==================== 创建 / 打开 ====================

    @classmethod
    def new(cls, codec: Optional[CompressionCodec] = None, **kwargs) -> 'ArchiveSession':
        """新建空的内存归档"""
        return cls(MemoryStore(), SessionState.BUILDING, codec, **kwargs)

    @classmethod
    def open_for_read(
        cls,
        source: Source,
        codec: Optional[CompressionCodec] = None,
        **kwargs
    ) -> 'ArchiveSession':
        """
        只读打开已有归档

        Args:
            source: 归档字节或文件路径

        Raises:
            NotAnArchiveError: 不是 ZIP 归档
            CorruptHeaderError: 中央目录损坏
            FileOpenError: 文件无法打开
        """
        if _is_bytes(source):
            store = MemoryStore(source, writable=False)
        else:
            store = FileStore(source, 'rb')
        return cls(store, SessionState.READ_ONLY, codec, **kwargs)

    @classmethod
    def open_for_read_write(
        cls,
        source: Source,
        mode: OpenMode = OpenMode.READ_ADD,
        codec: Optional[CompressionCodec] = None,
        **kwargs
    ) -> 'ArchiveSession':
        """
        打开归档以追加条目

        字节来源:
        - READ_ADD: 复制字节并升级为 READ_WRITE
        - OVERWRITE: 忽略已有字节，新建空归档

        文件来源:
        - READ_ADD: 文件存在且非空则升级为 READ_WRITE，否则新建 (BUILDING)
        - OVERWRITE: 总是新建，截断已有文件

        Args:
            source: 归档字节或文件路径
            mode: 打开模式
        """
        if _is_bytes(source):
            if mode is OpenMode.OVERWRITE:
                return cls.new(codec, **kwargs)
            return cls(MemoryStore(source), SessionState.READ_WRITE, codec, **kwargs)

        path = os.fspath(source)
        if mode is OpenMode.READ_ADD and os.path.isfile(path) and os.path.getsize(path) > 0:
            return cls(FileStore(path, 'r+b'), SessionState.READ_WRITE, codec, **kwargs)
        return cls(FileStore(path, 'w+b'), SessionState.BUILDING, codec, **kwargs)

    # ==================== 状态 ====================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def store(self) -> BackingStore:
        return self._store

    @property
    def codec(self) -> CompressionCodec:
        return self._codec

    def _require(self, operation: str, *states: SessionState) -> None:
        if self._state not in states:
            raise InvalidStateError(operation, self._state.value)

    def _require_live(self, operation: str) -> None:
        self._require(
            operation,
            SessionState.BUILDING, SessionState.READ_ONLY, SessionState.READ_WRITE
        )

    def _require_writable(self, operation: str) -> None:
        self._require(operation, SessionState.BUILDING, SessionState.READ_WRITE)

    # ==================== 写入 ====================

    def add_file(
        self,
        path: str,
        data: bytes,
        level: int = CompressionLevel.DEFAULT,
        mtime: Optional[float] = None
    ) -> Entry:
        """
        添加文件条目

        失败时目录和写游标均保持不变。

        Args:
            path: 归档内路径 (不能为空，不能以 / 结尾)
            data: 文件内容
            level: 压缩级别 0-9，0 为直接存储
            mtime: 修改时间 (Unix 时间戳)，默认当前时间

        Returns:
            新建的条目

        Raises:
            InvalidStateError: 会话只读或已结束
            InvalidPathError: 路径无效
            DuplicateEntryError: 路径已存在
            InvalidParameterError: 压缩级别无效
        """
        self._require_writable("add_file")
        self._check_unique(path)
        check_file_path(path)
        level = self._check_level(level)

        data = bytes(data)
        crc = self._codec.crc32(data)
        if level == 0 or len(data) <= STORE_THRESHOLD or self._codec.method == CompressionMethod.STORED:
            method, payload = CompressionMethod.STORED, data
        else:
            method, payload = self._codec.method, self._codec.compress(data, level)

        entry = self._append(path, EntryKind.FILE, data, payload, method, crc, mtime)
        logger.debug(
            "added %s (%d -> %d bytes, method=%d)",
            path, entry.uncompressed_size, entry.compressed_size, method
        )
        return entry

    def add_empty_directory(self, path: str, mtime: Optional[float] = None) -> Entry:
        """
        添加空目录条目

        路径自动补齐末尾的 /。目录中已有文件时无需单独添加。

        Raises:
            InvalidStateError: 会话只读或已结束
            InvalidPathError: 路径为空
            DuplicateEntryError: 路径已存在
        """
        self._require_writable("add_empty_directory")
        path = directory_path(path)
        self._check_unique(path)

        entry = self._append(path, EntryKind.DIRECTORY, b'', b'', CompressionMethod.STORED, 0, mtime)
        logger.debug("added directory %s", path)
        return entry

    def add_local_file(
        self,
        local_path: str,
        path: Optional[str] = None,
        level: int = CompressionLevel.DEFAULT
    ) -> Entry:
        """
        从本地文件添加条目

        Args:
            local_path: 本地文件路径
            path: 归档内路径 (默认使用文件名)
            level: 压缩级别

        Raises:
            FileNotFoundError: 本地文件不存在
        """
        if not os.path.isfile(local_path):
            raise FileNotFoundError(f"文件不存在: {local_path}")
        if path is None:
            path = os.path.basename(local_path)

        with open(local_path, 'rb') as f:
            data = f.read()
        return self.add_file(path, data, level, mtime=os.path.getmtime(local_path))

    def add_dir(
        self,
        local_dir: str,
        mount_point: str = "",
        level: int = CompressionLevel.DEFAULT,
        recursive: bool = True
    ) -> int:
        """
        添加本地目录

        Args:
            local_dir: 本地目录路径
            mount_point: 归档内挂载点 (空字符串表示根)
            level: 压缩级别
            recursive: 是否递归扫描子目录 (空子目录以目录条目保留)

        Returns:
            添加的文件数量
        """
        if not os.path.isdir(local_dir):
            raise NotADirectoryError(f"不是目录: {local_dir}")

        prefix = to_archive_path(mount_point).strip("/")
        prefix = prefix + "/" if prefix else ""
        count = 0

        if recursive:
            for root, dirs, files in os.walk(local_dir):
                dirs.sort()
                rel_root = os.path.relpath(root, local_dir)
                base = "" if rel_root == "." else to_archive_path(rel_root) + "/"
                if base and not files and not dirs:
                    self.add_empty_directory(prefix + base)
                for filename in sorted(files):
                    self.add_local_file(os.path.join(root, filename), prefix + base + filename, level)
                    count += 1
        else:
            for filename in sorted(os.listdir(local_dir)):
                local_path = os.path.join(local_dir, filename)
                if os.path.isfile(local_path):
                    self.add_local_file(local_path, prefix + filename, level)
                    count += 1

        return count

    def _check_unique(self, path: str) -> None:
        if path in self._catalog:
            raise DuplicateEntryError(path)

    @staticmethod
    def _check_level(level: int) -> int:
        if isinstance(level, bool) or not isinstance(level, int) or not 0 <= level <= 9:
            raise InvalidParameterError(f"压缩级别必须为 0-9 的整数: {level!r}")
        return int(level)

    def _append(
        self,
        path: str,
        kind: EntryKind,
        data: bytes,
        payload: bytes,
        method: int,
        crc: int,
        mtime: Optional[float]
    ) -> Entry:
        """写入本地记录并登记条目 (写入成功后才修改目录)"""
        dos_time, dos_date = to_dos_datetime(mtime)
        _, name_flags = encode_name(path)
        entry = Entry(
            path=path,
            kind=kind,
            uncompressed_size=len(data),
            compressed_size=len(payload),
            compression_method=method,
            crc32=crc,
            local_header_offset=self._store.cursor,
            flags=name_flags,
            dos_time=dos_time,
            dos_date=dos_date,
        )
        self._dirty = True
        self._store.append(ContainerCodec.local_record(entry, payload))
        self._catalog.insert(entry)
        return entry

    # ==================== 查询 ====================

    def has_entry(self, path: str) -> bool:
        """检查路径是否存在 (不会抛出异常)"""
        return path in self._catalog

    def entries(self) -> Tuple[Entry, ...]:
        """
        列出全部条目 (插入顺序的只读快照)

        Raises:
            InvalidStateError: 会话已结束
        """
        self._require_live("entries")
        return self._catalog.snapshot()

    def get_entry(self, path: str) -> Entry:
        """
        获取指定路径的条目信息

        Raises:
            EntryNotFoundError: 路径不存在
        """
        self._require_live("get_entry")
        return self._catalog.require(path)

    @property
    def entry_count(self) -> int:
        return len(self._catalog)

    @property
    def compression_stats(self) -> Dict[str, float]:
        """压缩统计信息"""
        total_raw = sum(e.uncompressed_size for e in self._catalog)
        total_packed = sum(e.compressed_size for e in self._catalog)
        return {
            'total_raw': total_raw,
            'total_packed': total_packed,
            'ratio': total_packed / total_raw if total_raw > 0 else 1.0
        }

    # ==================== 读取 ====================

    def read(self, path: str) -> bytes:
        """
        读取文件内容

        Args:
            path: 归档内路径 (精确匹配)

        Returns:
            解压后的完整内容

        Raises:
            InvalidStateError: 会话已结束
            EntryNotFoundError: 路径不存在
            ChecksumMismatchError: CRC32 校验失败
            DecompressionFailedError: 解压失败
            UnsupportedMethodError: 压缩方法不受支持
        """
        self._require_live("read")
        entry = self._catalog.require(path)
        payload = self._container.read_payload(entry)

        if entry.compression_method == CompressionMethod.STORED:
            data = self._codec.check_size(payload, entry.uncompressed_size)
        elif entry.compression_method == self._codec.method:
            data = self._codec.decompress(payload, entry.uncompressed_size)
        else:
            raise UnsupportedMethodError(entry.compression_method, path)

        actual = self._codec.crc32(data)
        if actual != entry.crc32:
            raise ChecksumMismatchError(path, entry.crc32, actual)
        return data

    def open(self, path: str) -> io.BytesIO:
        """以文件对象方式打开 (返回 BytesIO)"""
        return io.BytesIO(self.read(path))

    def extractor(self, path: str, chunk_size: int) -> StreamingExtractor:
        """
        创建流式提取器

        Raises:
            InvalidParameterError: chunk_size <= 0
            EntryNotFoundError: 路径不存在
        """
        self._require_live("extractor")
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
            raise InvalidParameterError(f"chunk_size 必须大于 0: {chunk_size!r}")
        entry = self._catalog.require(path)
        return StreamingExtractor(
            self._store, entry, self._codec, chunk_size, self._block_size
        )

    def iter_chunks(self, path: str, chunk_size: int) -> Iterator[bytes]:
        """
        按块迭代文件内容 (生成器)

        提前停止迭代或关闭生成器时资源同样会被释放。
        """
        with self.extractor(path, chunk_size) as extractor:
            yield from extractor

    def read_chunked(
        self,
        path: str,
        chunk_size: int,
        handler: Callable[[bytes], bool]
    ) -> None:
        """
        按块读取文件内容

        Args:
            path: 归档内路径
            chunk_size: 每块最大字节数 (> 0)
            handler: 处理每块数据，返回 False 停止读取，True 继续

        Raises:
            InvalidParameterError: chunk_size <= 0
            EntryNotFoundError: 路径不存在
        """
        with self.extractor(path, chunk_size) as extractor:
            for chunk in extractor:
                if not handler(chunk):
                    break

    def extract_all(self, output_dir: str) -> int:
        """
        解包所有条目到指定目录

        Returns:
            写出的文件数量
        """
        self._require_live("extract_all")
        root = os.path.abspath(output_dir)
        count = 0

        for entry in self._catalog:
            local_path = os.path.abspath(os.path.join(root, *entry.path.split("/")))
            if os.path.commonpath([root, local_path]) != root:
                raise InvalidParameterError(f"条目路径越出输出目录: {entry.path}")

            if entry.is_dir:
                os.makedirs(local_path, exist_ok=True)
                continue

            os.makedirs(os.path.dirname(local_path), exist_ok=True)
            with open(local_path, 'wb') as f:
                for chunk in self.iter_chunks(entry.path, DEFAULT_BLOCK_SIZE):
                    f.write(chunk)
            count += 1

        return count

    # ==================== 结束 ====================

    def finalize(self) -> Optional[bytes]:
        """
        写入中央目录和 EOCD，并封存存储

        中央目录先完整生成于内存，再一次性提交到写游标处。

        Returns:
            内存归档返回完整字节，文件归档返回 None

        Raises:
            InvalidStateError: 会话只读或已结束
            ArchiveTooLargeError: 超出经典 ZIP 范围
            FinalizeFailedError: 底层写入失败 (会话状态保持不变)
        """
        self._require_writable("finalize")
        tail = ContainerCodec.central_directory(self._catalog.snapshot(), self._store.cursor)

        self._dirty = True
        try:
            self._store.commit_tail(tail)
            result = self._store.seal()
        except ZipStoreError as e:
            raise FinalizeFailedError(f"{self._store.name}: 写入中央目录失败: {e}") from e

        self._state = SessionState.FINALIZED
        logger.debug(
            "finalized %s: %d entries, %d bytes",
            self._store.name, len(self._catalog), self._store.cursor
        )
        return result

    def close(self) -> None:
        """
        结束会话但不写入中央目录

        写入过数据的升级会话 (包括写入失败的情况) 会先恢复原中央目录，
        使文件回到打开前的状态。此后任何操作都会抛出 InvalidStateError。
        """
        self._require_live("close")
        try:
            if self._state is SessionState.READ_WRITE and self._dirty:
                logger.warning(
                    "%s: closing without finalize, restoring original central directory",
                    self._store.name
                )
                self._store.seek_cursor(self._origin_cursor)
                self._store.commit_tail(self._origin_tail)
        finally:
            self._state = SessionState.FINALIZED
            self._origin_tail = b''
            self._dirty = False
            self._store.release()
        logger.debug("closed %s", self._store.name)

    def __enter__(self) -> 'ArchiveSession':
        return self

    def __exit__(self, *args) -> None:
        if self._state is not SessionState.FINALIZED:
            self.close()

    def __repr__(self) -> str:
        return (
            f"<ArchiveSession {self._store.name} state={self._state.value} "
            f"entries={len(self._catalog)}>"
        )
