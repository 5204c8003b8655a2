"""Configuration primitives for exportguard."""

from .settings import ExportGuardSettings, get_settings

__all__ = ["ExportGuardSettings", "get_settings"]
