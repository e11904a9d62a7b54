"""驱动管理器。

管理器按名称惰性构建并缓存可互换的驱动实现，本身只做路由和缓存，
不包含任何领域逻辑。新增驱动只需要多注册一个构造函数。

约定：
- 子类设置 config_prefix 指向自己的配置段，例如 "cache"；
- 默认驱动名取自 "<prefix>.default"，子类可覆盖 default_driver_name()；
- 驱动构造函数签名为 constructor(config) -> driver，config 是
  "<prefix>.drivers.<name>" 下的 ConfigView；
- 领域操作由子类显式定义，内部调用 self.driver().<op>(...)。
"""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, List, Optional

from .config import ConfigView, as_view
from .errors import DriverConstructionError, InvalidKeyError, NoDefaultDriverError, UnsupportedDriverError
from .observability import Observability, start_span

if TYPE_CHECKING:
    from .container import Container

logger = logging.getLogger(__name__)

DriverConstructor = Callable[[ConfigView], Any]


class DriverManager:
    """驱动管理器基类。

    Attributes:
        config: 管理器配置段的只读视图。
        container: 可选的服务容器，供构造函数获取其他服务。
        obs: 可选的指标/追踪组件。
    """

    config_prefix: ClassVar[str] = ""
    manager_name: ClassVar[Optional[str]] = None

    def __init__(
        self,
        config: Any = None,
        container: Optional["Container"] = None,
        *,
        obs: Optional[Observability] = None,
    ) -> None:
        self.config = as_view(config).section(self.config_prefix)
        self.container = container
        self.obs = obs if obs is not None else Observability()

        self._guard = threading.Lock()
        self._constructors: Dict[str, DriverConstructor] = {}
        self._drivers: Dict[str, Any] = {}
        self._name_locks: Dict[str, threading.RLock] = {}

    @property
    def name(self) -> str:
        return self.manager_name or type(self).__name__

    # ---------------- 注册 ----------------

    def register_driver_factory(self, name: str, constructor: DriverConstructor) -> None:
        if not isinstance(name, str) or not name:
            raise InvalidKeyError(f"Driver name must be a non-empty string, got {name!r}")
        if not callable(constructor):
            raise TypeError(f"Constructor for driver {name!r} must be callable")
        with self._guard:
            self._constructors[name] = constructor

    def extend(self, name: str, constructor: DriverConstructor) -> "DriverManager":
        self.register_driver_factory(name, constructor)
        return self

    def set_container(self, container: "Container") -> "DriverManager":
        self.container = container
        return self

    # ---------------- 查询 ----------------

    def default_driver_name(self) -> Optional[str]:
        return self.config.get("default")

    def driver_config(self, name: str) -> ConfigView:
        return self.config.section(f"drivers.{name}")

    def supported_drivers(self) -> List[str]:
        with self._guard:
            return sorted(self._constructors)

    def has_driver(self, name: str) -> bool:
        with self._guard:
            return name in self._drivers

    def get_drivers(self) -> Dict[str, Any]:
        with self._guard:
            return dict(self._drivers)

    # ---------------- 解析 ----------------

    def driver(self, name: Optional[str] = None) -> Any:
        """返回指定（或默认）驱动，每个名称在管理器生命周期内只构建一次。

        Raises:
            NoDefaultDriverError: 未指定名称且没有默认驱动。
            UnsupportedDriverError: 名称没有注册构造函数。
            DriverConstructionError: 构造函数抛出异常（不会写入缓存）。
        """
        name = name or self.default_driver_name()
        if not name:
            raise NoDefaultDriverError(self.name)

        with self._guard:
            if name in self._drivers:
                return self._drivers[name]
            supported = name in self._constructors
        # 不支持的名称不创建锁
        if not supported:
            raise UnsupportedDriverError(name, self.name)

        with self._lock_for(name):
            with self._guard:
                if name in self._drivers:
                    return self._drivers[name]
                constructor = self._constructors.get(name)
            if constructor is None:
                raise UnsupportedDriverError(name, self.name)

            try:
                with start_span(self.obs, f"{self.name}.driver {name}"):
                    instance = constructor(self.driver_config(name))
            except Exception as exc:
                self.obs.record_driver_build(self.name, name, failed=True)
                logger.warning("驱动构建失败 %s[%s]: %s", self.name, name, exc)
                raise DriverConstructionError(name, self.name, exc) from exc

            with self._guard:
                self._drivers[name] = instance
            self.obs.record_driver_build(self.name, name)
            logger.info("已构建驱动: %s[%s]", self.name, name)
            return instance

    def call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        """把 method 转发给默认驱动。"""
        return getattr(self.driver(), method)(*args, **kwargs)

    # ---------------- 清理 ----------------

    def forget_driver(self, name: Optional[str] = None) -> None:
        name = name or self.default_driver_name()
        if not name:
            raise NoDefaultDriverError(self.name)
        with self._guard:
            instance = self._drivers.pop(name, None)
        if instance is not None:
            self._close(name, instance)

    def forget_drivers(self) -> None:
        with self._guard:
            drivers = list(self._drivers.items())
            self._drivers.clear()
        for name, instance in drivers:
            self._close(name, instance)

    def _close(self, name: str, instance: Any) -> None:
        close = getattr(instance, "close", None)
        if not callable(close):
            return
        try:
            close()
        except Exception:
            logger.warning("关闭驱动失败: %s[%s]", self.name, name, exc_info=True)

    def _lock_for(self, name: str) -> threading.RLock:
        with self._guard:
            lock = self._name_locks.get(name)
            if lock is None:
                lock = threading.RLock()
                self._name_locks[name] = lock
            return lock
