"""配置来源。

核心只依赖 get(path, default) 这一个读取接口；路径用点号分隔，
例如 "cache.drivers.redis.host"。
"""
from __future__ import annotations

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

ConfigListener = Callable[[Dict[str, Any]], None]

_MISSING = object()

DEFAULT_SETTINGS: Dict[str, Any] = {
    # 日志
    "log_level": "INFO",
    "log_json": False,
    "log_file": None,

    # 可观测性
    "enable_metrics": False,
    "enable_tracing": False,
    "service_name": "lazy-services",
}


@runtime_checkable
class ConfigSource(Protocol):
    def get(self, path: str, default: Any = None) -> Any: ...


def lookup(data: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """在嵌套 dict 中按点号路径取值；任意一段缺失都返回 default。"""
    if not path:
        return data
    node: Any = data
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return default
        node = node[part]
    return node


class ConfigView:
    """只读配置视图，可以限定在某个前缀下。

    Args:
        source: 嵌套 dict，或任何提供 get(path, default) 的对象。
        prefix: 视图根路径，空字符串表示整个配置。
    """

    def __init__(self, source: Any = None, prefix: str = "") -> None:
        self._source = source if source is not None else {}
        self.prefix = prefix.strip(".")

    def _full(self, path: str) -> str:
        path = path.strip(".")
        if not self.prefix:
            return path
        return f"{self.prefix}.{path}" if path else self.prefix

    def get(self, path: str = "", default: Any = None) -> Any:
        full = self._full(path)
        if isinstance(self._source, Mapping):
            return lookup(self._source, full, default)
        return self._source.get(full, default)

    def has(self, path: str) -> bool:
        return self.get(path, _MISSING) is not _MISSING

    def section(self, path: str) -> "ConfigView":
        return ConfigView(self._source, self._full(path))

    def as_dict(self) -> Dict[str, Any]:
        value = self.get("", None)
        if isinstance(value, Mapping):
            return copy.deepcopy(dict(value))
        return {}

    def __getitem__(self, path: str) -> Any:
        value = self.get(path, _MISSING)
        if value is _MISSING:
            raise KeyError(self._full(path))
        return value

    def __repr__(self) -> str:
        return f"ConfigView(prefix={self.prefix!r})"


def as_view(config: Any) -> ConfigView:
    if isinstance(config, ConfigView):
        return config
    return ConfigView(config)


def load_config(config_path: Optional[str] = None, defaults: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """读取 JSON 配置并覆盖到默认值上。文件不存在或无法解析时保留默认值。"""
    config: Dict[str, Any] = copy.deepcopy(dict(DEFAULT_SETTINGS if defaults is None else defaults))

    if config_path and Path(config_path).exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                user_config = json.load(f)
            if isinstance(user_config, dict):
                config.update(user_config)
            else:
                logger.warning("配置文件顶层必须是对象: %s", config_path)
        except (OSError, ValueError) as e:
            logger.warning("加载配置文件失败: %s", e)

    return config


class FileConfigSource:
    """JSON 文件配置源，可选轮询热更新。"""

    def __init__(self, path: str, poll_seconds: float = 1.0, defaults: Optional[Mapping[str, Any]] = None) -> None:
        self._path = Path(path)
        self._poll_seconds = float(poll_seconds)
        self._defaults = defaults
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_mtime: Optional[float] = None
        self.reload()

    def reload(self) -> Dict[str, Any]:
        data = load_config(str(self._path), self._defaults)
        with self._lock:
            self._data = data
        return data

    def get(self, path: str, default: Any = None) -> Any:
        with self._lock:
            return lookup(self._data, path, default)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._data)

    def start_watch(self, listener: Optional[ConfigListener] = None) -> None:
        if self._thread is not None:
            return

        def run() -> None:
            while not self._stop.is_set():
                try:
                    if self._path.exists():
                        mtime = self._path.stat().st_mtime
                        if self._last_mtime is None:
                            self._last_mtime = mtime
                        elif mtime != self._last_mtime:
                            self._last_mtime = mtime
                            data = self.reload()
                            logger.info("配置已热更新: %s", self._path)
                            if listener is not None:
                                listener(data)
                except Exception:
                    logger.exception("配置热更新失败: %s", self._path)
                self._stop.wait(self._poll_seconds)

        self._thread = threading.Thread(target=run, name="config-watch", daemon=True)
        self._thread.start()

    def stop_watch(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._poll_seconds + 1.0)
            self._thread = None
