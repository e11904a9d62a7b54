"""进程级容器入口。

只在确实需要全局可达时使用：启动时 set_container()，退出或测试结束时
clear_container()。其余组件应直接接收 Container 参数。
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from .container import Container

logger = logging.getLogger(__name__)

_container: Optional[Container] = None
_container_lock = threading.Lock()


def set_container(container: Container) -> Optional[Container]:
    """安装进程级容器，返回之前的容器（可能为 None）。"""
    global _container
    with _container_lock:
        previous, _container = _container, container
    logger.debug("已安装进程级容器")
    return previous


def get_container() -> Container:
    with _container_lock:
        if _container is None:
            raise RuntimeError("Process-wide container is not initialized; call set_container() first")
        return _container


def has_container() -> bool:
    with _container_lock:
        return _container is not None


def clear_container() -> None:
    """卸载进程级容器并清空其缓存实例（绑定保留在容器对象上）。"""
    global _container
    with _container_lock:
        container, _container = _container, None
    if container is not None:
        container.flush()
        logger.debug("已卸载进程级容器")
