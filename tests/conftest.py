#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
pytest 全局配置

提供共享 fixtures 和测试工具。
"""

import os
from pathlib import Path

import pytest


# ==================== 自定义 Markers ====================

def pytest_configure(config):
    """注册自定义 markers"""
    config.addinivalue_line("markers", "slow: 耗时较长的测试")


# ==================== 基础 Fixtures ====================

@pytest.fixture
def archive_path(tmp_path) -> Path:
    """临时归档路径 (文件尚不存在)"""
    return tmp_path / "test.zip"


@pytest.fixture
def sample_payloads() -> dict:
    """
    测试条目集

    Returns:
        {归档路径: 内容}
    """
    return {
        "hero.txt": b"Hero data content",
        "config.json": b'{"name": "test", "value": 123}',
        "subdir/data.bin": b"\x00\x01\x02\x03\x04\x05\x06\x07",
        "subdir/nested/deep.txt": b"Deep nested file content",
        "中文文件.txt": "这是中文内容测试".encode("utf-8"),
    }


@pytest.fixture
def large_payloads() -> dict:
    """
    大数据测试集 (用于压缩和流式测试)

    Returns:
        {归档路径: 内容}
    """
    return {
        "repeated.txt": b"Hello, zipstore! " * 1000,  # 可压缩内容
        "binary.dat": bytes(range(256)) * 100,  # 二进制数据
        "random.bin": os.urandom(10000),  # 随机数据 (难压缩)
    }


@pytest.fixture
def sample_files(tmp_path, sample_payloads) -> tuple:
    """
    在磁盘上创建测试文件集

    Returns:
        (目录路径, 文件内容字典)
    """
    src_dir = tmp_path / "src"
    for name, content in sample_payloads.items():
        path = src_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return src_dir, sample_payloads


# ==================== Codec Fixtures ====================

@pytest.fixture
def zlib_codec():
    """ZlibCodec 实例"""
    from zipstore.hooks.codecs import ZlibCodec
    return ZlibCodec()


@pytest.fixture
def store_codec():
    """StoreCodec 实例"""
    from zipstore.hooks.codecs import StoreCodec
    return StoreCodec()


# ==================== Archive Fixtures ====================

@pytest.fixture
def archive_bytes(sample_payloads) -> bytes:
    """
    预构建的内存归档

    包含 sample_payloads 中的全部文件和一个空目录 "empty/"。
    """
    from zipstore import ArchiveSession

    session = ArchiveSession.new()
    for path, data in sample_payloads.items():
        session.add_file(path, data)
    session.add_empty_directory("empty")
    return session.finalize()


@pytest.fixture
def archive_file(archive_path, archive_bytes) -> Path:
    """预构建的磁盘归档"""
    archive_path.write_bytes(archive_bytes)
    return archive_path
