#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
zipstore Hook 系统

提供压缩编解码器的可插拔接口。
"""

from .base import CompressionCodec, StreamDecompressor, BufferedDecompressor
from .codecs import ZlibCodec, StoreCodec

__all__ = [
    # 抽象基类
    "CompressionCodec",
    "StreamDecompressor",
    "BufferedDecompressor",
    # 内置实现
    "ZlibCodec",
    "StoreCodec",
]
