from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import Any, List

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: Any = None) -> None:
    """按配置安装根日志处理器。

    config 读取的键：
    - log_level: 日志级别名，默认 INFO
    - log_file: 可选的滚动日志文件路径
    - log_json: 是否输出 JSON（需要 python-json-logger）
    """
    config = config if config is not None else {}
    level_name = config.get("log_level", "INFO") or "INFO"
    level = getattr(logging, str(level_name).upper(), logging.INFO)

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    log_file = config.get("log_file")
    if log_file:
        try:
            handlers.append(
                RotatingFileHandler(
                    str(log_file),
                    maxBytes=10 * 1024 * 1024,
                    backupCount=5,
                    encoding="utf-8",
                )
            )
        except OSError as e:
            # 文件系统不可写时，至少保留 stderr
            logging.getLogger(__name__).warning("无法打开日志文件 %s: %s", log_file, e)

    formatter: logging.Formatter
    if bool(config.get("log_json", False)):
        from pythonjsonlogger import jsonlogger

        formatter = jsonlogger.JsonFormatter("%(asctime)s %(name)s %(levelname)s %(message)s")
    else:
        formatter = logging.Formatter(LOG_FORMAT)

    for h in handlers:
        h.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers, force=True)


def set_log_level(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.getLogger().setLevel(level)
