"""启动装配：加载配置、初始化日志与可观测性、登记管理器。"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Type

from . import app
from .config import ConfigView, load_config
from .container import Container
from .log_setup import setup_logging
from .manager import DriverConstructor, DriverManager
from .observability import build_observability

logger = logging.getLogger(__name__)

CONFIG_KEY = "config"


def build_container(
    config_path: Optional[str] = None,
    *,
    config: Optional[Mapping[str, Any]] = None,
    configure_logging: bool = False,
    install: bool = False,
) -> Container:
    """创建容器并把配置视图绑定到 "config" 键。

    Args:
        config_path: 可选 JSON 配置文件，覆盖在默认值上。
        config: 直接给定的配置 dict，优先于 config_path。
        configure_logging: 是否安装根日志处理器。
        install: 是否同时安装为进程级容器。
    """
    data = dict(config) if config is not None else load_config(config_path)
    if configure_logging:
        setup_logging(data)

    container = Container(obs=build_observability(data))
    container.bind_instance(CONFIG_KEY, ConfigView(data))

    if install:
        app.set_container(container)
    logger.info("容器已初始化 (metrics=%s, tracing=%s)", container.obs.metrics_enabled, container.obs.tracing_enabled)
    return container


def register_manager(
    container: Container,
    key: str,
    manager_cls: Type[DriverManager],
    drivers: Mapping[str, DriverConstructor],
) -> None:
    """把管理器登记为惰性单例；管理器在第一次 resolve(key) 时才创建。"""
    table = dict(drivers)

    def factory(c: Container) -> DriverManager:
        config = c.resolve(CONFIG_KEY) if c.has(CONFIG_KEY) else None
        manager = manager_cls(config, c, obs=c.obs)
        for name, constructor in table.items():
            manager.register_driver_factory(name, constructor)
        return manager

    container.bind(key, factory)
