"""静态访问器：固定键 -> 容器解析 -> 转发调用。

访问器本身不保存任何状态，也不做缓存；缓存全部在 Container
（以及再下一层的 DriverManager）里。替换根对象只需在容器中重新绑定。

用法::

    class Cache(Accessor):
        accessor_key = "cache"

    Cache(container).get("user:1")
"""
from __future__ import annotations

from typing import Any, Callable, ClassVar, Optional

from . import app
from .container import Container
from .errors import RootNotSetError, UnboundKeyError


class Accessor:
    accessor_key: ClassVar[Optional[str]] = None

    __slots__ = ("_container", "_key")

    def __init__(self, container: Optional[Container] = None, key: Optional[str] = None) -> None:
        self._container = container
        self._key = key

    def get_accessor_key(self) -> str:
        key = self._key or type(self).accessor_key
        if not key:
            raise RootNotSetError(None, "accessor does not define an accessor key")
        return key

    def get_container(self) -> Container:
        if self._container is not None:
            return self._container
        key = self.get_accessor_key()
        if not app.has_container():
            raise RootNotSetError(key, "no container bound")
        return app.get_container()

    def get_root(self) -> Any:
        key = self.get_accessor_key()
        container = self.get_container()
        try:
            root = container.resolve(key)
        except UnboundKeyError as e:
            raise RootNotSetError(key, "key is not bound") from e
        if root is None:
            raise RootNotSetError(key, "resolved to None")
        return root

    def call_dynamic(self, method_name: str, *args: Any, **kwargs: Any) -> Any:
        root = self.get_root()
        return getattr(root, method_name)(*args, **kwargs)

    def swap(self, instance: Any) -> None:
        """在容器中用 instance 替换根对象（测试替身）。"""
        self.get_container().bind_instance(self.get_accessor_key(), instance)

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)

        def forward(*args: Any, **kwargs: Any) -> Any:
            return self.call_dynamic(name, *args, **kwargs)

        forward.__name__ = name
        return forward

    def __repr__(self) -> str:
        key = self._key or type(self).accessor_key
        return f"<{type(self).__name__} key={key!r}>"
