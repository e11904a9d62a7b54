from __future__ import annotations

import logging
import threading
import weakref
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# prometheus 默认 registry 不允许重复注册同名指标，这里按 registry 复用
_metric_sets: "weakref.WeakKeyDictionary[Any, Dict[str, Any]]" = weakref.WeakKeyDictionary()
_metric_lock = threading.Lock()


@dataclass(slots=True)
class Observability:
    enabled: bool = False
    metrics_enabled: bool = False
    tracing_enabled: bool = False

    resolutions: Any = None
    driver_builds: Any = None
    driver_build_errors: Any = None

    tracer: Any = None

    def record_resolution(self, key: str) -> None:
        if self.metrics_enabled and self.resolutions is not None:
            self.resolutions.labels(key=key).inc()

    def record_driver_build(self, manager: str, driver: str, *, failed: bool = False) -> None:
        if not self.metrics_enabled:
            return
        counter = self.driver_build_errors if failed else self.driver_builds
        if counter is not None:
            counter.labels(manager=manager, driver=driver).inc()


def _build_metrics(registry: Any) -> Dict[str, Any]:
    from prometheus_client import REGISTRY, Counter

    registry = registry if registry is not None else REGISTRY
    with _metric_lock:
        metrics = _metric_sets.get(registry)
        if metrics is None:
            metrics = {
                "resolutions": Counter(
                    "lazy_services_resolutions_total",
                    "Factory invocations performed by containers",
                    labelnames=("key",),
                    registry=registry,
                ),
                "driver_builds": Counter(
                    "lazy_services_driver_builds_total",
                    "Drivers constructed by managers",
                    labelnames=("manager", "driver"),
                    registry=registry,
                ),
                "driver_build_errors": Counter(
                    "lazy_services_driver_build_errors_total",
                    "Driver constructions that raised",
                    labelnames=("manager", "driver"),
                    registry=registry,
                ),
            }
            _metric_sets[registry] = metrics
        return metrics


def build_observability(config: Any = None, *, registry: Any = None) -> Observability:
    """根据配置构建可选的指标/追踪组件。

    config 可以是 dict 或任何提供 get(key, default) 的对象。
    依赖库未安装时对应功能自动关闭。
    """
    config = config if config is not None else {}
    metrics = bool(config.get("enable_metrics", False))
    tracing = bool(config.get("enable_tracing", False))

    obs = Observability(metrics_enabled=metrics, tracing_enabled=tracing)

    if metrics:
        try:
            found = _build_metrics(registry)
            obs.resolutions = found["resolutions"]
            obs.driver_builds = found["driver_builds"]
            obs.driver_build_errors = found["driver_build_errors"]
        except Exception as e:
            logger.warning("指标不可用: %s", e)
            obs.metrics_enabled = False

    if tracing:
        try:
            from opentelemetry import trace
            from opentelemetry.sdk.resources import Resource
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

            provider = TracerProvider(
                resource=Resource.create({"service.name": config.get("service_name", "lazy-services")})
            )
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
            trace.set_tracer_provider(provider)
            obs.tracer = trace.get_tracer(__name__)
        except Exception as e:
            logger.warning("追踪不可用: %s", e)
            obs.tracing_enabled = False

    obs.enabled = obs.metrics_enabled or obs.tracing_enabled
    return obs


class NullSpan:
    """空 Span，用于追踪未启用时的占位。"""

    def __enter__(self) -> NullSpan:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        return False


def start_span(obs: Optional[Observability], name: str) -> Any:
    """启动一个追踪 Span。

    Args:
        obs: 可观测性实例，None 视为未启用。
        name: Span 名称。

    Returns:
        Span 上下文管理器；追踪未启用或启动失败时返回 NullSpan。
    """
    if obs is not None and obs.tracing_enabled and obs.tracer is not None:
        try:
            return obs.tracer.start_as_current_span(name)
        except Exception:
            logger.debug("启动 Span 失败: %s", name, exc_info=True)
            return NullSpan()
    return NullSpan()
