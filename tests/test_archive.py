#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Archive 会话测试

测试 ArchiveSession 的生命周期、条目管理、读取和升级功能。
"""

import io
import struct
import time

import pytest

from zipstore import (
    ArchiveSession,
    CompressionLevel,
    CompressionMethod,
    EntryKind,
    FileStore,
    OpenMode,
    SessionState,
)
from zipstore.exceptions import (
    AllocationFailedError,
    ChecksumMismatchError,
    DecompressionFailedError,
    DuplicateEntryError,
    EntryNotFoundError,
    FileOpenError,
    FileWriteError,
    FinalizeFailedError,
    InvalidParameterError,
    InvalidPathError,
    InvalidStateError,
    NotAnArchiveError,
    StoreIOError,
)


def _cd_offset(data: bytes) -> int:
    """从 (无注释的) 归档末尾读取中央目录偏移"""
    return struct.unpack('<IHHHHIIH', data[-22:])[6]


# ==================== 内存归档 ====================

class TestMemoryArchive:
    """内存归档基础功能测试"""

    def test_new_archive_is_empty(self):
        """新建归档为空"""
        session = ArchiveSession.new()

        assert session.state is SessionState.BUILDING
        assert session.entries() == ()
        assert session.entry_count == 0

    def test_add_finalize_reopen_append(self):
        """创建 → 添加 → finalize → 重新打开 → 追加 → 再次 finalize"""
        session = ArchiveSession.new()
        session.add_file("file1", b"data1")
        assert session.read("file1") == b"data1"
        session.add_file("file2", b"data2")
        assert len(session.entries()) == 2

        with pytest.raises(DuplicateEntryError):
            session.add_file("file2", b"data1")
        assert session.read("file2") == b"data2"

        archive = session.finalize()
        assert len(archive) >= 22
        assert session.state is SessionState.FINALIZED

        upgraded = ArchiveSession.open_for_read_write(archive)
        assert upgraded.state is SessionState.READ_WRITE
        assert len(upgraded.entries()) == 2
        assert upgraded.read("file1") == b"data1"
        assert upgraded.read("file2") == b"data2"

        upgraded.add_file("file3", b"data3")
        assert upgraded.read("file3") == b"data3"

        archive2 = upgraded.finalize()
        assert len(archive2) > len(archive)

    @pytest.mark.parametrize("paths", [
        ["a"],
        ["b", "a", "c"],
        ["z/1.txt", "a/2.txt", "m.txt", "a/1.txt"],
    ])
    def test_insertion_order(self, paths):
        """entries() 按插入顺序返回"""
        session = ArchiveSession.new()
        for path in paths:
            session.add_file(path, path.encode())

        assert [e.path for e in session.entries()] == paths
        assert all(session.has_entry(p) for p in paths)

        reopened = ArchiveSession.open_for_read(session.finalize())
        assert [e.path for e in reopened.entries()] == paths

    def test_duplicate_keeps_original(self):
        """重复添加不改变条目数和原内容"""
        session = ArchiveSession.new()
        session.add_file("same.txt", b"original")
        cursor = session.store.cursor

        with pytest.raises(DuplicateEntryError) as exc_info:
            session.add_file("same.txt", b"replacement")

        assert exc_info.value.path == "same.txt"
        assert session.entry_count == 1
        assert session.store.cursor == cursor
        assert session.read("same.txt") == b"original"

    def test_has_entry_is_exact(self):
        """has_entry 精确匹配，区分大小写"""
        session = ArchiveSession.new()
        session.add_file("Dir/File.txt", b"x")

        assert session.has_entry("Dir/File.txt") is True
        assert session.has_entry("dir/file.txt") is False
        assert session.has_entry("/Dir/File.txt") is False
        assert session.has_entry("") is False

    def test_finalize_empty_archive(self):
        """空归档只有 EOCD"""
        data = ArchiveSession.new().finalize()

        assert data == b"PK\x05\x06" + b"\x00" * 18

    def test_entries_snapshot_is_immutable(self):
        """entries() 返回只读快照"""
        session = ArchiveSession.new()
        session.add_file("a", b"1")
        snapshot = session.entries()
        session.add_file("b", b"2")

        assert isinstance(snapshot, tuple)
        assert len(snapshot) == 1
        assert len(session.entries()) == 2


class TestCompressionLevels:
    """压缩级别测试"""

    @pytest.mark.parametrize("level", [
        CompressionLevel.NONE,
        CompressionLevel.FASTEST,
        CompressionLevel.DEFAULT,
        CompressionLevel.BEST,
        3,
    ])
    def test_roundtrip(self, level, large_payloads):
        """任意级别: 未结束的会话和重新打开的归档都能读回原数据"""
        session = ArchiveSession.new()
        for path, data in large_payloads.items():
            session.add_file(path, data, level)
            assert session.read(path) == data

        reopened = ArchiveSession.open_for_read(session.finalize())
        for path, data in large_payloads.items():
            assert reopened.read(path) == data

    def test_level_zero_stores(self, large_payloads):
        """级别 0 直接存储"""
        session = ArchiveSession.new()
        entry = session.add_file("repeated.txt", large_payloads["repeated.txt"], 0)

        assert entry.compression_method == CompressionMethod.STORED
        assert entry.compressed_size == entry.uncompressed_size

    def test_compressible_payload_deflated(self, large_payloads):
        """可压缩数据使用 DEFLATE 且体积减小"""
        session = ArchiveSession.new()
        entry = session.add_file("repeated.txt", large_payloads["repeated.txt"], CompressionLevel.BEST)

        assert entry.compression_method == CompressionMethod.DEFLATED
        assert entry.compressed_size < entry.uncompressed_size

        stats = session.compression_stats
        assert stats["total_raw"] > stats["total_packed"]
        assert stats["ratio"] < 1.0

    @pytest.mark.parametrize("data", [b"", b"a", b"abc"])
    def test_tiny_payload_always_stored(self, data):
        """不超过 3 字节的数据总是直接存储"""
        session = ArchiveSession.new()
        entry = session.add_file("tiny", data, CompressionLevel.BEST)

        assert entry.compression_method == CompressionMethod.STORED
        assert session.read("tiny") == data

    @pytest.mark.parametrize("level", [-1, 10, "6", 1.5, True, None])
    def test_invalid_level(self, level):
        """无效级别抛出 InvalidParameterError 且不登记条目"""
        session = ArchiveSession.new()

        with pytest.raises(InvalidParameterError):
            session.add_file("x", b"data", level)

        assert session.entry_count == 0
        assert session.store.cursor == 0


# ==================== 目录 ====================

class TestDirectories:
    """目录条目测试"""

    def test_file_and_directory(self):
        """文件 + 目录，以 / 结尾的文件路径无效"""
        session = ArchiveSession.new()
        session.add_file("file1", b"data1")
        session.add_empty_directory("dir")

        with pytest.raises(InvalidPathError):
            session.add_file("foo/", b"data1")

        assert len(session.entries()) == 2

    def test_directory_path_normalized(self):
        """目录路径补齐 /，大小为 0"""
        session = ArchiveSession.new()
        entry = session.add_empty_directory("assets/textures")

        assert entry.path == "assets/textures/"
        assert entry.kind is EntryKind.DIRECTORY
        assert entry.is_dir is True
        assert entry.uncompressed_size == 0
        assert entry.compressed_size == 0
        assert session.has_entry("assets/textures/") is True
        assert session.has_entry("assets/textures") is False

    def test_duplicate_directory(self):
        """带不带 / 都视为同一目录"""
        session = ArchiveSession.new()
        session.add_empty_directory("dir")

        with pytest.raises(DuplicateEntryError):
            session.add_empty_directory("dir/")
        with pytest.raises(DuplicateEntryError):
            session.add_file("dir/", b"x")

        assert session.entry_count == 1

    @pytest.mark.parametrize("path", ["", "/", "//"])
    def test_empty_directory_path(self, path):
        """空目录路径无效"""
        session = ArchiveSession.new()

        with pytest.raises(InvalidPathError):
            session.add_empty_directory(path)

    def test_empty_file_path(self):
        """空文件路径无效"""
        session = ArchiveSession.new()

        with pytest.raises(InvalidPathError):
            session.add_file("", b"data")

        assert session.entry_count == 0

    def test_directory_kind_survives_reopen(self):
        """重新打开后根据末尾 / 推断目录"""
        session = ArchiveSession.new()
        session.add_empty_directory("dir")
        session.add_file("dir/file.txt", b"content")

        reopened = ArchiveSession.open_for_read(session.finalize())
        kinds = {e.path: e.kind for e in reopened.entries()}

        assert kinds == {"dir/": EntryKind.DIRECTORY, "dir/file.txt": EntryKind.FILE}
        assert reopened.read("dir/") == b""


# ==================== 状态机 ====================

class TestStateMachine:
    """生命周期状态测试"""

    def test_read_only_rejects_mutation(self, archive_bytes):
        """只读会话拒绝修改"""
        session = ArchiveSession.open_for_read(archive_bytes)
        assert session.state is SessionState.READ_ONLY

        with pytest.raises(InvalidStateError):
            session.add_file("new.txt", b"data")
        with pytest.raises(InvalidStateError):
            session.add_empty_directory("newdir")
        with pytest.raises(InvalidStateError):
            session.finalize()

        assert session.read("hero.txt") == b"Hero data content"

    def test_read_only_close(self, archive_bytes):
        """close 后所有操作失败，has_entry 仍可用"""
        session = ArchiveSession.open_for_read(archive_bytes)
        session.close()

        assert session.state is SessionState.FINALIZED
        assert session.store.closed is True
        assert session.has_entry("hero.txt") is True

        for operation in (
            lambda: session.read("hero.txt"),
            lambda: session.entries(),
            lambda: session.read_chunked("hero.txt", 4, lambda chunk: True),
            lambda: session.close(),
        ):
            with pytest.raises(InvalidStateError):
                operation()

    def test_finalized_rejects_everything(self):
        """finalize 后为终态"""
        session = ArchiveSession.new()
        session.add_file("a", b"data")
        session.finalize()

        with pytest.raises(InvalidStateError):
            session.add_file("b", b"data")
        with pytest.raises(InvalidStateError):
            session.add_empty_directory("dir")
        with pytest.raises(InvalidStateError):
            session.read("a")
        with pytest.raises(InvalidStateError):
            session.finalize()
        with pytest.raises(InvalidStateError) as exc_info:
            session.close()

        assert exc_info.value.state == "finalized"

    def test_building_close_discards(self):
        """新建会话 close 后放弃全部内容"""
        session = ArchiveSession.new()
        session.add_file("a", b"data")
        session.close()

        assert session.state is SessionState.FINALIZED
        with pytest.raises(InvalidStateError):
            session.finalize()

    def test_context_manager_closes(self, archive_bytes):
        """with 语句退出时关闭未结束的会话"""
        with ArchiveSession.open_for_read(archive_bytes) as session:
            assert session.read("config.json") == b'{"name": "test", "value": 123}'

        assert session.state is SessionState.FINALIZED
        assert session.store.closed is True

    def test_context_manager_after_finalize(self):
        """finalize 后退出 with 不会再次关闭"""
        with ArchiveSession.new() as session:
            session.add_file("a", b"data")
            data = session.finalize()

        assert len(data) > 22
        assert session.state is SessionState.FINALIZED

    def test_context_manager_closes_on_error(self, archive_file):
        """异常时同样释放文件句柄"""
        with pytest.raises(RuntimeError):
            with ArchiveSession.open_for_read(archive_file) as session:
                raise RuntimeError("boom")

        assert session.store.closed is True


# ==================== 升级 ====================

class TestUpgrade:
    """读写升级测试"""

    def test_upgrade_adds_one_entry(self, archive_bytes, sample_payloads):
        """升级后追加一个条目，原条目内容不变"""
        original = ArchiveSession.open_for_read(archive_bytes)
        original_count = len(original.entries())

        session = ArchiveSession.open_for_read_write(archive_bytes)
        session.add_file("new.txt", b"new content")
        upgraded = ArchiveSession.open_for_read(session.finalize())

        assert len(upgraded.entries()) == original_count + 1
        for path, data in sample_payloads.items():
            assert upgraded.read(path) == data
        assert upgraded.read("new.txt") == b"new content"

    def test_upgrade_preserves_prefix_bytes(self, archive_bytes):
        """旧中央目录之前的字节保持不变，新条目从旧中央目录处开始"""
        cd_offset = _cd_offset(archive_bytes)

        session = ArchiveSession.open_for_read_write(archive_bytes)
        assert session.store.cursor == cd_offset

        entry = session.add_file("appended.bin", b"\xff" * 64)
        assert entry.local_header_offset == cd_offset

        data = session.finalize()
        assert data[:cd_offset] == archive_bytes[:cd_offset]

    def test_upgrade_copies_input(self, archive_bytes):
        """内存升级复制输入字节，原字节不受影响"""
        source = bytearray(archive_bytes)
        session = ArchiveSession.open_for_read_write(source)
        session.add_file("extra", b"extra data")
        session.finalize()

        assert bytes(source) == archive_bytes

    def test_upgrade_then_duplicate(self, archive_bytes):
        """已有条目同样参与重复检查"""
        session = ArchiveSession.open_for_read_write(archive_bytes)

        with pytest.raises(DuplicateEntryError):
            session.add_file("hero.txt", b"other")

    def test_overwrite_mode_with_bytes(self, archive_bytes):
        """字节来源 + OVERWRITE: 新建空归档"""
        session = ArchiveSession.open_for_read_write(archive_bytes, mode=OpenMode.OVERWRITE)

        assert session.state is SessionState.BUILDING
        assert session.entries() == ()

    @pytest.mark.parametrize("data", [b"", b"PK", b"x" * 100, b"\x00" * 22])
    def test_not_an_archive(self, data):
        """非 ZIP 数据"""
        with pytest.raises(NotAnArchiveError):
            ArchiveSession.open_for_read(data)
        with pytest.raises(NotAnArchiveError):
            ArchiveSession.open_for_read_write(data)


# ==================== 磁盘归档 ====================

class TestFileArchive:
    """磁盘归档测试"""

    def test_create_then_upgrade(self, archive_path):
        """不存在时新建，存在时升级"""
        session = ArchiveSession.open_for_read_write(archive_path)
        assert session.state is SessionState.BUILDING

        session.add_file("file1", b"data1")
        assert session.read("file1") == b"data1"
        session.add_file("file2", b"data2")
        assert session.read("file2") == b"data2"
        assert session.finalize() is None
        assert session.store.closed is True
        assert archive_path.exists()

        session2 = ArchiveSession.open_for_read_write(archive_path)
        assert session2.state is SessionState.READ_WRITE
        assert session2.read("file1") == b"data1"
        session2.add_file("file3", b"data3")
        assert len(session2.entries()) == 3
        session2.finalize()

        with ArchiveSession.open_for_read(archive_path) as reader:
            assert [e.path for e in reader.entries()] == ["file1", "file2", "file3"]
            assert reader.read("file3") == b"data3"

    def test_overwrite_mode(self, archive_path):
        """OVERWRITE 丢弃旧内容，READ_ADD 只看到新内容"""
        session1 = ArchiveSession.open_for_read_write(archive_path, mode=OpenMode.OVERWRITE)
        assert len(session1.entries()) == 0
        session1.add_file("file1", b"data1")
        session1.finalize()

        session2 = ArchiveSession.open_for_read_write(archive_path, mode=OpenMode.OVERWRITE)
        assert len(session2.entries()) == 0
        session2.add_file("file1", b"data2")
        session2.finalize()

        session3 = ArchiveSession.open_for_read_write(archive_path, mode=OpenMode.READ_ADD)
        assert len(session3.entries()) == 1
        assert session3.read("file1") == b"data2"
        session3.close()

    def test_open_for_read_file(self, archive_file, sample_payloads):
        """只读打开磁盘归档"""
        with ArchiveSession.open_for_read(str(archive_file)) as session:
            assert session.state is SessionState.READ_ONLY
            assert session.entry_count == len(sample_payloads) + 1
            for path, data in sample_payloads.items():
                assert session.read(path) == data

    def test_open_missing_file(self, tmp_path):
        """只读打开不存在的文件"""
        with pytest.raises(FileOpenError) as exc_info:
            ArchiveSession.open_for_read(tmp_path / "missing.zip")

        assert isinstance(exc_info.value, StoreIOError)
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_open_non_archive_file_releases_handle(self, tmp_path):
        """非 ZIP 文件打开失败"""
        path = tmp_path / "not.zip"
        path.write_bytes(b"just some text, definitely not a zip archive")

        with pytest.raises(NotAnArchiveError):
            ArchiveSession.open_for_read_write(path)

        assert path.read_bytes() == b"just some text, definitely not a zip archive"

    def test_empty_file_is_fresh(self, archive_path):
        """READ_ADD 打开空文件视为新建"""
        archive_path.write_bytes(b"")

        session = ArchiveSession.open_for_read_write(archive_path)
        assert session.state is SessionState.BUILDING
        session.add_file("a", b"data")
        session.finalize()

        with ArchiveSession.open_for_read(archive_path) as reader:
            assert reader.read("a") == b"data"

    def test_close_without_finalize_restores_file(self, archive_file):
        """升级会话追加后 close，文件恢复为打开前的内容"""
        original = archive_file.read_bytes()

        session = ArchiveSession.open_for_read_write(archive_file)
        session.add_file("discarded.bin", b"\xab" * 4096)
        session.close()

        assert archive_file.read_bytes() == original
        with ArchiveSession.open_for_read(archive_file) as reader:
            assert reader.has_entry("discarded.bin") is False

    def test_close_unchanged_leaves_file(self, archive_file):
        """升级会话未追加时 close 不写入"""
        original = archive_file.read_bytes()
        mtime = archive_file.stat().st_mtime_ns

        session = ArchiveSession.open_for_read_write(archive_file)
        session.close()

        assert archive_file.read_bytes() == original
        assert archive_file.stat().st_mtime_ns == mtime

    def test_file_and_memory_identical(self, archive_path):
        """相同输入下文件归档与内存归档字节一致"""
        stamp = time.mktime((2024, 1, 2, 3, 4, 6, 0, 0, -1))

        memory = ArchiveSession.new()
        disk = ArchiveSession.open_for_read_write(archive_path, mode=OpenMode.OVERWRITE)
        for session in (memory, disk):
            session.add_file("a.txt", b"alpha " * 50, mtime=stamp)
            session.add_empty_directory("d", mtime=stamp)

        data = memory.finalize()
        disk.finalize()

        assert archive_path.read_bytes() == data


# ==================== 写入失败 ====================

def _partial_write(written: int):
    """替换 FileStore._write: 只写入前 written 字节后失败"""
    original = FileStore._write

    def write(self, offset, data):
        original(self, offset, data[:written])
        raise FileWriteError(self.path, OSError(28, "No space left on device"))

    return write


class _FullBuffer(bytearray):
    """无法扩展的缓冲区"""

    def __setitem__(self, key, value):
        raise MemoryError


class TestWriteFailures:
    """存储写入失败时的会话行为"""

    def test_failed_append_keeps_catalog(self, archive_file, monkeypatch):
        """追加失败: 目录和写游标不变"""
        session = ArchiveSession.open_for_read_write(archive_file)
        count = session.entry_count
        cursor = session.store.cursor

        monkeypatch.setattr(FileStore, "_write", _partial_write(10))
        with pytest.raises(FileWriteError) as exc_info:
            session.add_file("new.txt", b"new content " * 50)
        monkeypatch.undo()

        assert isinstance(exc_info.value, StoreIOError)
        assert isinstance(exc_info.value.error, OSError)
        assert session.entry_count == count
        assert session.has_entry("new.txt") is False
        assert session.store.cursor == cursor
        session.close()

    def test_close_after_failed_append_restores_file(self, archive_file, monkeypatch, sample_payloads):
        """部分写入覆盖了旧中央目录，close 后文件仍恢复原样"""
        original = archive_file.read_bytes()
        session = ArchiveSession.open_for_read_write(archive_file)

        monkeypatch.setattr(FileStore, "_write", _partial_write(10))
        with pytest.raises(FileWriteError):
            session.add_file("file2", b"payload " * 100)
        monkeypatch.undo()

        session.close()

        assert archive_file.read_bytes() == original
        with ArchiveSession.open_for_read(archive_file) as reader:
            assert reader.read("hero.txt") == sample_payloads["hero.txt"]

    def test_failed_finalize(self, archive_file, monkeypatch):
        """finalize 失败: 状态不变，close 仍可用并恢复文件"""
        original = archive_file.read_bytes()
        session = ArchiveSession.open_for_read_write(archive_file)
        session.add_file("added.txt", b"added")

        def fail_truncate(self, size):
            raise FileWriteError(self.path, OSError(28, "No space left on device"))

        monkeypatch.setattr(FileStore, "_truncate", fail_truncate)
        with pytest.raises(FinalizeFailedError) as exc_info:
            session.finalize()
        monkeypatch.undo()

        assert isinstance(exc_info.value.__cause__, FileWriteError)
        assert session.state is SessionState.READ_WRITE
        assert session.has_entry("added.txt") is True

        session.close()

        assert session.state is SessionState.FINALIZED
        assert archive_file.read_bytes() == original

    def test_allocation_failure(self):
        """内存缓冲区无法扩展: AllocationFailedError，目录不变"""
        session = ArchiveSession.new()
        session.store._buffer = _FullBuffer()

        with pytest.raises(AllocationFailedError) as exc_info:
            session.add_file("a.txt", b"data " * 20)

        assert not isinstance(exc_info.value, StoreIOError)
        assert session.entry_count == 0
        assert session.store.cursor == 0


# ==================== 读取 ====================

class TestRead:
    """读取与错误测试"""

    def test_missing_entry(self, archive_bytes):
        """读取不存在的条目"""
        session = ArchiveSession.open_for_read(archive_bytes)

        with pytest.raises(EntryNotFoundError) as exc_info:
            session.read("missing.txt")

        assert isinstance(exc_info.value, FileNotFoundError)
        assert exc_info.value.path == "missing.txt"

    def test_checksum_mismatch(self):
        """篡改存储数据触发 CRC 校验失败"""
        session = ArchiveSession.new()
        session.add_file("hero.txt", b"Hero data content", level=0)
        data = session.finalize()

        index = data.find(b"Hero data content")
        corrupted = data[:index] + b"X" + data[index + 1:]

        reader = ArchiveSession.open_for_read(corrupted)
        with pytest.raises(ChecksumMismatchError) as exc_info:
            reader.read("hero.txt")

        assert exc_info.value.path == "hero.txt"
        assert exc_info.value.expected != exc_info.value.actual

    def test_corrupted_deflate(self, large_payloads):
        """篡改压缩数据"""
        session = ArchiveSession.new()
        entry = session.add_file("repeated.txt", large_payloads["repeated.txt"], CompressionLevel.BEST)
        data = bytearray(session.finalize())

        start = entry.local_header_offset + 30 + len(entry.path)
        for i in range(start, start + entry.compressed_size, 3):
            data[i] ^= 0x5A

        reader = ArchiveSession.open_for_read(bytes(data))
        with pytest.raises((DecompressionFailedError, ChecksumMismatchError)):
            reader.read("repeated.txt")

    def test_open_returns_bytesio(self, archive_bytes):
        """open 返回 BytesIO"""
        session = ArchiveSession.open_for_read(archive_bytes)
        file_obj = session.open("hero.txt")

        assert isinstance(file_obj, io.BytesIO)
        assert file_obj.read() == b"Hero data content"

    def test_get_entry(self, archive_bytes):
        """条目元信息"""
        session = ArchiveSession.open_for_read(archive_bytes)
        entry = session.get_entry("subdir/data.bin")

        assert entry.path == "subdir/data.bin"
        assert entry.kind is EntryKind.FILE
        assert entry.uncompressed_size == 8

        with pytest.raises(EntryNotFoundError):
            session.get_entry("nope")

    def test_modification_time(self):
        """修改时间以 DOS 格式保存 (2 秒精度)"""
        stamp = time.mktime((2024, 5, 17, 10, 30, 43, 0, 0, -1))
        session = ArchiveSession.new()
        session.add_file("t.txt", b"x", mtime=stamp)

        reopened = ArchiveSession.open_for_read(session.finalize())
        assert reopened.get_entry("t.txt").date_time == (2024, 5, 17, 10, 30, 42)

    def test_stored_size_mismatch(self):
        """存储条目的实际大小与中央目录不符"""
        session = ArchiveSession.new()
        session.add_file("a", b"abc")
        data = bytearray(session.finalize())

        # 中央目录记录中 uncompressed_size 位于偏移 24
        struct.pack_into('<I', data, _cd_offset(bytes(data)) + 24, 99)
        reader = ArchiveSession.open_for_read(bytes(data))

        assert reader.get_entry("a").uncompressed_size == 99
        with pytest.raises(DecompressionFailedError):
            reader.read("a")
        with pytest.raises(DecompressionFailedError):
            reader.read_chunked("a", 16, lambda chunk: True)


# ==================== 本地文件 ====================

class TestLocalFiles:
    """本地文件打包 / 解包测试"""

    def test_add_dir_and_extract_all(self, tmp_path, sample_files):
        """打包目录后完整解包"""
        src_dir, files = sample_files
        session = ArchiveSession.new()

        count = session.add_dir(str(src_dir), "assets")
        assert count == len(files)
        for name in files:
            assert session.has_entry(f"assets/{name}")

        reader = ArchiveSession.open_for_read(session.finalize())
        out_dir = tmp_path / "out"
        assert reader.extract_all(str(out_dir)) == len(files)

        for name, content in files.items():
            assert (out_dir / "assets" / name).read_bytes() == content

    def test_add_dir_keeps_empty_directories(self, tmp_path):
        """空子目录以目录条目保留"""
        src_dir = tmp_path / "tree"
        (src_dir / "empty").mkdir(parents=True)
        (src_dir / "a.txt").write_bytes(b"a")

        session = ArchiveSession.new()
        session.add_dir(str(src_dir))

        assert [e.path for e in session.entries()] == ["a.txt", "empty/"]

        out_dir = tmp_path / "out"
        reader = ArchiveSession.open_for_read(session.finalize())
        reader.extract_all(str(out_dir))
        assert (out_dir / "empty").is_dir()

    def test_add_dir_non_recursive(self, sample_files):
        """非递归只添加顶层文件"""
        src_dir, files = sample_files
        session = ArchiveSession.new()

        count = session.add_dir(str(src_dir), recursive=False)
        top_level = [name for name in files if "/" not in name]

        assert count == len(top_level)

    def test_add_local_file(self, sample_files):
        """添加单个本地文件，默认使用文件名"""
        src_dir, files = sample_files
        session = ArchiveSession.new()
        entry = session.add_local_file(str(src_dir / "hero.txt"))

        assert entry.path == "hero.txt"
        assert session.read("hero.txt") == files["hero.txt"]

    def test_add_local_file_missing(self, tmp_path):
        """本地文件不存在"""
        session = ArchiveSession.new()

        with pytest.raises(FileNotFoundError):
            session.add_local_file(str(tmp_path / "missing.txt"))

    def test_add_dir_not_a_directory(self, tmp_path):
        """不是目录"""
        session = ArchiveSession.new()

        with pytest.raises(NotADirectoryError):
            session.add_dir(str(tmp_path / "missing"))

    def test_extract_rejects_escaping_paths(self, tmp_path):
        """拒绝解包到输出目录之外"""
        session = ArchiveSession.new()
        session.add_file("../evil.txt", b"evil")
        reader = ArchiveSession.open_for_read(session.finalize())

        with pytest.raises(InvalidParameterError):
            reader.extract_all(str(tmp_path / "out"))

        assert not (tmp_path / "evil.txt").exists()
