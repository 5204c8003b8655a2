"""Base set of process-local handle types known to every registry."""

from __future__ import annotations

import asyncio
import concurrent.futures
import ctypes
import io
import mmap
import multiprocessing.connection
import select
import selectors
import socket
import sqlite3
import subprocess
import threading
import types
import weakref
from functools import lru_cache
from typing import Iterable, Tuple

from ..models import ReferenceKind
from .registry import ClassificationRegistry, TypeKey

# CPython exposes capsules only through instances; the tag needs no import.
CAPSULE_TAG = "PyCapsule"

NATIVE_HANDLE_MARKERS: Tuple[TypeKey, ...] = (
    CAPSULE_TAG,
    ctypes.c_void_p,
    ctypes._Pointer,
    ctypes._CFuncPtr,
)

NATIVE_HANDLE_TYPES: Tuple[TypeKey, ...] = (
    ctypes.c_char_p,
    ctypes.c_wchar_p,
    mmap.mmap,
    sqlite3.Connection,
    sqlite3.Cursor,
)

IO_CHANNEL_TYPES: Tuple[TypeKey, ...] = (
    io.IOBase,
    socket.socket,
    selectors.BaseSelector,
    multiprocessing.connection.Connection,
    subprocess.Popen,
    asyncio.AbstractEventLoop,
    asyncio.BaseTransport,
    asyncio.StreamReader,
    asyncio.StreamWriter,
) + tuple(getattr(select, name) for name in ("epoll", "kqueue", "devpoll") if hasattr(select, name))

OTHER_OPAQUE_TYPES: Tuple[TypeKey, ...] = (
    type(threading.Lock()),
    type(threading.RLock()),
    threading.Thread,
    threading.Condition,
    threading.Event,
    threading.Semaphore,
    concurrent.futures.Executor,
    weakref.ReferenceType,
    types.GeneratorType,
    types.CoroutineType,
    types.AsyncGeneratorType,
    types.FrameType,
    types.TracebackType,
)

# In-memory buffers of the io family carry their contents, not a channel.
TRANSPARENT_OVERRIDES: Tuple[TypeKey, ...] = (
    io.BytesIO,
    io.StringIO,
)


def populate_defaults(registry: ClassificationRegistry) -> ClassificationRegistry:
    for marker in NATIVE_HANDLE_MARKERS:
        registry.register_marker(marker)
    _register_all(registry, NATIVE_HANDLE_TYPES, ReferenceKind.NATIVE_HANDLE)
    _register_all(registry, IO_CHANNEL_TYPES, ReferenceKind.IO_CHANNEL)
    _register_all(registry, OTHER_OPAQUE_TYPES, ReferenceKind.OTHER_OPAQUE)
    for override in TRANSPARENT_OVERRIDES:
        registry.register_transparent(override)
    return registry


def build_default_registry() -> ClassificationRegistry:
    """Return a fresh, unfrozen registry holding the base set."""

    return populate_defaults(ClassificationRegistry())


@lru_cache()
def default_registry() -> ClassificationRegistry:
    """Return the process-wide registry: base set plus configured plugins, frozen."""

    from ..config import get_settings
    from .plugins import load_plugins

    registry = build_default_registry()
    load_plugins(registry, get_settings().registry_plugins)
    return registry.freeze()


def _register_all(registry: ClassificationRegistry, keys: Iterable[TypeKey], kind: str) -> None:
    for key in keys:
        registry.register_opaque(key, kind)
