#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
zipstore 异常定义

所有异常均继承自 ZipStoreError，便于统一捕获。
"""

from typing import Optional


class ZipStoreError(Exception):
    """zipstore 基础异常"""
    pass


# ==================== 条目 / 参数 ====================

class InvalidPathError(ZipStoreError):
    """
    条目路径无效

    空路径，或添加文件时路径以 / 结尾。
    """
    def __init__(self, path: str, reason: str = "路径无效"):
        self.path = path
        super().__init__(f"{reason}: {path!r}")


class DuplicateEntryError(ZipStoreError):
    """
    条目重复

    归档中已存在相同路径的条目。已有条目永远不会被覆盖。
    """
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"条目已存在: '{path}'")


class EntryNotFoundError(ZipStoreError, FileNotFoundError):
    """条目不存在"""
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"路径不存在: {path}")


class InvalidStateError(ZipStoreError):
    """
    会话状态不允许该操作

    例如向只读会话添加文件，或在 finalize 之后继续使用会话。
    """
    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(f"当前状态 {state} 不允许操作 {operation}")


class InvalidParameterError(ZipStoreError):
    """参数无效 (如分块大小 <= 0、压缩级别越界)"""
    pass


# ==================== 数据完整性 ====================

class ChecksumMismatchError(ZipStoreError):
    """
    CRC32 校验失败

    解压后的数据与中央目录记录的 CRC32 不一致，可能由于传输错误或文件被篡改。
    """
    def __init__(self, path: str, expected: int, actual: int):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"文件 '{path}' 校验失败: "
            f"期望 {expected:#010x}, 实际 {actual:#010x}"
        )


class CompressionFailedError(ZipStoreError):
    """压缩失败"""
    pass


class DecompressionFailedError(ZipStoreError):
    """解压失败 (数据损坏或解压后大小不符)"""
    pass


# ==================== 格式 ====================

class NotAnArchiveError(ZipStoreError):
    """
    不是 ZIP 归档

    数据过短，或找不到中央目录结束记录 (EOCD)。
    """
    pass


class CorruptHeaderError(ZipStoreError):
    """
    结构头损坏

    当签名、长度或偏移不符合预期时抛出。
    """
    def __init__(self, message: str, expected: Optional[str] = None, actual: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        if expected and actual:
            message = f"{message}: 期望 {expected}, 实际 {actual}"
        super().__init__(message)


class UnsupportedMethodError(ZipStoreError):
    """未知或当前编解码器不支持的压缩方法"""
    def __init__(self, method: int, path: str = ""):
        self.method = method
        self.path = path
        where = f" (条目 '{path}')" if path else ""
        super().__init__(f"不支持的压缩方法 {method}{where}")


class UnsupportedFeatureError(ZipStoreError):
    """不支持的 ZIP 特性 (分卷、ZIP64、加密)"""
    pass


class ArchiveTooLargeError(ZipStoreError):
    """
    超出经典 ZIP 字段范围

    大小或偏移超过 32 位，或条目数超过 65535 (不支持 ZIP64 写入)。
    """
    pass


class AllocationFailedError(ZipStoreError):
    """内存缓冲区分配失败"""
    pass


class FinalizeFailedError(ZipStoreError):
    """写入中央目录失败"""
    pass


# ==================== 底层 I/O ====================

class StoreIOError(ZipStoreError):
    """
    存储层 I/O 异常

    原始 OSError 通过异常链 (__cause__) 保留。
    """
    operation = "io"

    def __init__(self, path: str, error: Optional[BaseException] = None):
        self.path = path
        self.error = error
        detail = f": {error}" if error else ""
        super().__init__(f"{self.operation} 失败 '{path}'{detail}")


class FileOpenError(StoreIOError):
    operation = "open"


class FileReadError(StoreIOError):
    operation = "read"


class FileWriteError(StoreIOError):
    operation = "write"


class FileSeekError(StoreIOError):
    operation = "seek"


class FileCloseError(StoreIOError):
    operation = "close"
