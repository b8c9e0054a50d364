"""Utility modules for the prepaid kernel."""

from prepaid_kernel.utils.locks import KeyedLock

__all__ = ["KeyedLock"]
