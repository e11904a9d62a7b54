"""服务容器：键 -> 惰性单例。

工厂在第一次 resolve 时才被调用，结果缓存到 forget/flush 为止。
同一个键的“检查-构造-写入”由该键独立的锁保护；不同键之间互不阻塞。
"""
from __future__ import annotations

import inspect
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from .errors import CircularDependencyError, InvalidKeyError, UnboundKeyError
from .observability import Observability, start_span
from .registry import Binding, BindingRegistry, Factory, validate_key

logger = logging.getLogger(__name__)

ResolvedCallback = Callable[[Any], None]


def _wants_container(factory: Factory) -> bool:
    """工厂是否声明了一个必填位置参数（用于接收容器）。"""
    try:
        sig = inspect.signature(factory)
    except (TypeError, ValueError):
        return False
    for param in sig.parameters.values():
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD) and param.default is param.empty:
            return True
    return False


class Container:
    """带解析缓存的绑定注册表。

    Attributes:
        registry: 底层的 BindingRegistry。
        obs: 可选的指标/追踪组件。
    """

    def __init__(self, registry: Optional[BindingRegistry] = None, *, obs: Optional[Observability] = None) -> None:
        self.registry = registry if registry is not None else BindingRegistry()
        self.obs = obs if obs is not None else Observability()

        self._guard = threading.Lock()
        self._instances: Dict[str, Any] = {}
        self._aliases: Dict[str, str] = {}
        self._key_locks: Dict[str, threading.RLock] = {}
        self._callbacks: Dict[str, List[ResolvedCallback]] = {}
        self._local = threading.local()

    # ---------------- 注册 ----------------

    def bind(self, key: str, factory: Factory) -> None:
        """注册工厂；已缓存的实例作废，下一次 resolve 使用新工厂。"""
        self.registry.bind(key, factory)
        with self._guard:
            self._instances.pop(key, None)

    def bind_instance(self, key: str, instance: Any) -> None:
        self.registry.bind_instance(key, instance)
        with self._guard:
            self._instances[key] = instance

    def alias(self, alias: str, key: str) -> None:
        validate_key(alias)
        validate_key(key)
        if alias == key:
            raise InvalidKeyError(f"[{key}] is aliased to itself.")
        with self._guard:
            self._aliases[alias] = key

    def on_resolved(self, key: str, callback: ResolvedCallback) -> None:
        """工厂构建出实例后立即回调（缓存命中时不回调）。"""
        validate_key(key)
        with self._guard:
            self._callbacks.setdefault(key, []).append(callback)

    # ---------------- 查询 ----------------

    def get_alias(self, key: str) -> str:
        seen = []
        with self._guard:
            while key in self._aliases:
                if key in seen:
                    raise InvalidKeyError("Alias loop: " + " -> ".join([*seen, key]))
                seen.append(key)
                key = self._aliases[key]
        return key

    def has(self, key: str) -> bool:
        key = self.get_alias(key)
        with self._guard:
            if key in self._instances:
                return True
        return self.registry.has(key)

    bound = has

    def resolved(self, key: str) -> bool:
        key = self.get_alias(key)
        with self._guard:
            return key in self._instances

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __getitem__(self, key: str) -> Any:
        return self.resolve(key)

    # ---------------- 解析 ----------------

    def resolve(self, key: str) -> Any:
        """返回键对应的单例，必要时调用工厂构建（每个键只构建一次）。

        Raises:
            UnboundKeyError: 键既没有缓存实例也没有工厂。
            CircularDependencyError: 工厂在同一线程内解析了自身。
        """
        validate_key(key)
        key = self.get_alias(key)
        with self._guard:
            if key in self._instances:
                return self._instances[key]

        stack = self._resolving_stack()
        if key in stack:
            raise CircularDependencyError([*stack, key])

        # 未绑定的键不创建锁
        if self.registry.get(key) is None:
            raise UnboundKeyError(key)

        with self._lock_for(key):
            with self._guard:
                if key in self._instances:
                    return self._instances[key]

            binding = self.registry.get(key)
            if binding is None:
                raise UnboundKeyError(key)

            if binding.has_instance:
                return self._store(key, binding, binding.instance)

            stack.append(key)
            try:
                with start_span(self.obs, f"resolve {key}"):
                    if _wants_container(binding.factory):
                        instance = binding.factory(self)
                    else:
                        instance = binding.factory()
            finally:
                stack.pop()

            self.obs.record_resolution(key)
            logger.debug("已构建服务: %s (%s)", key, type(instance).__name__)
            self._store(key, binding, instance)

            with self._guard:
                callbacks = list(self._callbacks.get(key, ()))
            for callback in callbacks:
                callback(instance)
            return instance

    def _store(self, key: str, binding: Binding, instance: Any) -> Any:
        # 构建期间键被重新绑定时，旧绑定的结果不进入缓存
        with self._guard:
            if self.registry.get(key) is binding:
                self._instances[key] = instance
            else:
                logger.debug("构建期间绑定已变更，丢弃结果: %s", key)
        return instance

    def forget(self, key: str) -> None:
        """清除缓存实例，保留绑定；下一次 resolve 会重新构建。"""
        key = self.get_alias(key)
        with self._guard:
            self._instances.pop(key, None)

    def flush(self) -> None:
        """清除全部缓存实例（绑定保留）。"""
        with self._guard:
            self._instances.clear()

    # ---------------- 内部 ----------------

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._key_locks[key] = lock
            return lock

    def _resolving_stack(self) -> List[str]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = []
            self._local.stack = stack
        return stack
