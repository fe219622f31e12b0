#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
zipstore Archive 模块

提供归档会话、容器编解码和流式提取功能。
"""

from .codec import ContainerCodec, CentralDirectory
from .extractor import StreamingExtractor
from .session import ArchiveSession, SessionState, OpenMode

__all__ = [
    "ContainerCodec",
    "CentralDirectory",
    "StreamingExtractor",
    "ArchiveSession",
    "SessionState",
    "OpenMode",
]
