#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
zipstore 工具函数

提供条目路径校验、名称编解码和 MS-DOS 时间戳转换等通用功能。
"""

import time
from typing import Optional, Tuple

from .exceptions import InvalidPathError


# UTF-8 文件名标志位 (general purpose bit 11)
FLAG_UTF8 = 0x0800

# 条目名最大字节数 (u16 长度字段)
MAX_NAME_LENGTH = 0xFFFF


def to_archive_path(path: str) -> str:
    """
    本地相对路径 → 归档路径

    仅做分隔符统一，不做大小写或其他规范化。

    Examples:
        >>> to_archive_path("assets\\\\hero.txt")
        'assets/hero.txt'
    """
    return path.replace("\\", "/")


def check_file_path(path: str) -> str:
    """
    校验文件条目路径

    Raises:
        InvalidPathError: 空路径，或以 / 结尾
    """
    if not isinstance(path, str) or not path:
        raise InvalidPathError(path, "路径不能为空")
    if path.endswith("/"):
        raise InvalidPathError(path, "文件路径不能以 / 结尾")
    _check_name_length(path)
    return path


def directory_path(path: str) -> str:
    """
    目录条目路径: 补齐末尾的 /

    Examples:
        >>> directory_path("assets")
        'assets/'
        >>> directory_path("assets/")
        'assets/'

    Raises:
        InvalidPathError: 空路径或仅为 /
    """
    if not isinstance(path, str) or not path.strip("/"):
        raise InvalidPathError(path, "目录路径不能为空")
    if not path.endswith("/"):
        path += "/"
    _check_name_length(path)
    return path


def _check_name_length(path: str) -> None:
    if len(path.encode("utf-8")) > MAX_NAME_LENGTH:
        raise InvalidPathError(path, "路径过长")


# ==================== 名称编解码 ====================

def encode_name(path: str) -> Tuple[bytes, int]:
    """
    编码条目名

    纯 ASCII 名称原样写入；其他名称以 UTF-8 写入并设置 0x0800 标志。

    Returns:
        (名称字节, 需要附加的标志位)
    """
    try:
        return path.encode("ascii"), 0
    except UnicodeEncodeError:
        return path.encode("utf-8"), FLAG_UTF8


def decode_name(raw: bytes, flags: int) -> str:
    """按标志位解码条目名 (UTF-8 或 cp437)"""
    if flags & FLAG_UTF8:
        return raw.decode("utf-8")
    return raw.decode("cp437")


# ==================== MS-DOS 时间戳 ====================

def to_dos_datetime(timestamp: Optional[float] = None) -> Tuple[int, int]:
    """
    Unix 时间戳 → (dos_time, dos_date)

    DOS 格式的最小年份为 1980，秒精度为 2 秒。

    Args:
        timestamp: Unix 时间戳，默认当前时间

    Returns:
        (dos_time, dos_date) 元组
    """
    if timestamp is None:
        timestamp = time.time()
    t = time.localtime(timestamp)
    year = t.tm_year
    if year < 1980:
        return 0, (1 << 5) | 1  # 1980-01-01 00:00:00
    if year > 2107:
        year = 2107
    dos_time = (t.tm_hour << 11) | (t.tm_min << 5) | (t.tm_sec // 2)
    dos_date = ((year - 1980) << 9) | (t.tm_mon << 5) | t.tm_mday
    return dos_time, dos_date


def from_dos_datetime(dos_time: int, dos_date: int) -> Tuple[int, int, int, int, int, int]:
    """
    (dos_time, dos_date) → (年, 月, 日, 时, 分, 秒)

    Examples:
        >>> from_dos_datetime(0, 33)
        (1980, 1, 1, 0, 0, 0)
    """
    return (
        (dos_date >> 9) + 1980,
        (dos_date >> 5) & 0x0F,
        dos_date & 0x1F,
        dos_time >> 11,
        (dos_time >> 5) & 0x3F,
        (dos_time & 0x1F) * 2,
    )
