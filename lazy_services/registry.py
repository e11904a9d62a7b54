from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .errors import InvalidKeyError

Factory = Callable[..., Any]


@dataclass(slots=True)
class Binding:
    """键与工厂或已构建实例的关联。"""

    key: str
    factory: Optional[Factory] = None
    instance: Any = None
    has_instance: bool = False


def validate_key(key: Any) -> str:
    if not isinstance(key, str) or not key.strip():
        raise InvalidKeyError(f"Binding key must be a non-empty string, got {key!r}")
    return key


class BindingRegistry:
    """键 -> 工厂/实例 映射。

    只负责登记，不会调用任何工厂；重复注册会覆盖旧绑定。
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._bindings: Dict[str, Binding] = {}

    def bind(self, key: str, factory: Factory) -> None:
        validate_key(key)
        if not callable(factory):
            raise TypeError(f"Factory for {key!r} must be callable")
        with self._lock:
            self._bindings[key] = Binding(key=key, factory=factory)

    def bind_instance(self, key: str, instance: Any) -> None:
        validate_key(key)
        with self._lock:
            self._bindings[key] = Binding(key=key, instance=instance, has_instance=True)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._bindings

    def get(self, key: str) -> Optional[Binding]:
        with self._lock:
            return self._bindings.get(key)

    def unbind(self, key: str) -> None:
        with self._lock:
            self._bindings.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._bindings)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._bindings)
