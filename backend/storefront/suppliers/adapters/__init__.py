"""Supplier-specific adapter implementations.

Each adapter module implements a class that inherits from SupplierAdapter.
"""

from .syscom import SyscomAdapter
from .tecnosinergia import TecnosinergiaAdapter

__all__ = [
    "SyscomAdapter",
    "TecnosinergiaAdapter",
]
