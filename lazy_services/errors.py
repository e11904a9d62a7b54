"""异常层级定义。

所有错误同步抛给顶层调用方，内部不做重试。
"""
from __future__ import annotations

from typing import Sequence


class LazyServicesError(Exception):
    """基础异常"""


class InvalidKeyError(LazyServicesError, ValueError):
    """绑定键为空或不是字符串"""


class UnboundKeyError(LazyServicesError, KeyError):
    """键既没有缓存实例也没有注册工厂"""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Service not registered: {self.key}"


class CircularDependencyError(LazyServicesError):
    """工厂在同一线程内（直接或间接）解析了自身的键"""

    def __init__(self, chain: Sequence[str]) -> None:
        self.chain = tuple(chain)
        super().__init__("Circular dependency: " + " -> ".join(self.chain))


class RootNotSetError(LazyServicesError):
    """访问器无法解析出根对象"""

    def __init__(self, key: str | None, reason: str = "") -> None:
        self.key = key
        msg = f"Accessor root has not been set: {key!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class NoDefaultDriverError(LazyServicesError):
    """未指定驱动名且无法确定默认驱动"""

    def __init__(self, manager: str) -> None:
        self.manager = manager
        super().__init__(f"Unable to resolve NULL driver for [{manager}].")


class UnsupportedDriverError(LazyServicesError):
    """驱动名没有注册构造函数"""

    def __init__(self, driver: str, manager: str) -> None:
        self.driver = driver
        self.manager = manager
        super().__init__(f"Driver [{driver}] not supported by [{manager}].")


class DriverConstructionError(LazyServicesError):
    """驱动构造函数本身失败（通常是驱动配置无效）"""

    def __init__(self, driver: str, manager: str, cause: BaseException) -> None:
        self.driver = driver
        self.manager = manager
        self.cause = cause
        super().__init__(f"Failed to build driver [{driver}] for [{manager}]: {cause}")
