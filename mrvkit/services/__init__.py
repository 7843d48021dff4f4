"""Service-layer helpers used by the CLI and tests."""

from importlib import import_module

__all__ = ["run_monitoring_pipeline", "MonitoringPipelineResult"]


def __getattr__(name):
    if name in __all__:
        return getattr(import_module(".monitoring", __name__), name)
    raise AttributeError(name)
