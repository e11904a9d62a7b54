"""lazy_services: 惰性服务容器 + 可插拔驱动管理器。

这个包负责：
- Container：键 -> 工厂/实例，首次解析时构建并缓存
- DriverManager：按配置选择驱动，惰性构建并缓存
- Accessor：固定键的转发代理
"""

from .accessor import Accessor
from .config import ConfigView, FileConfigSource, load_config
from .container import Container
from .errors import (
    CircularDependencyError,
    DriverConstructionError,
    InvalidKeyError,
    LazyServicesError,
    NoDefaultDriverError,
    RootNotSetError,
    UnboundKeyError,
    UnsupportedDriverError,
)
from .manager import DriverManager
from .registry import Binding, BindingRegistry

__all__ = [
    "Accessor",
    "Binding",
    "BindingRegistry",
    "ConfigView",
    "Container",
    "DriverManager",
    "FileConfigSource",
    "load_config",
    "CircularDependencyError",
    "DriverConstructionError",
    "InvalidKeyError",
    "LazyServicesError",
    "NoDefaultDriverError",
    "RootNotSetError",
    "UnboundKeyError",
    "UnsupportedDriverError",
]
