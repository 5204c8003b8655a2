import ctypes
import datetime
import io
import threading

import pytest

from exportguard.classifier import ReferenceClassifier
from exportguard.models import ReferenceKind
from exportguard.registry import TRANSPARENT, ClassificationRegistry, Opaque, build_default_registry


class NativeFamily:
    pass


class TransferableNative(NativeFamily):
    pass


class PointerWrapper:
    def __init__(self):
        self.ptr = ctypes.c_void_p(0)


class PlainRecord:
    def __init__(self):
        self.name = "record"
        self.values = [1, 2, 3]


def _make_classifier() -> ReferenceClassifier:
    registry = build_default_registry()
    registry.register_opaque(NativeFamily, ReferenceKind.FOREIGN_RUNTIME_HANDLE)
    registry.register_transparent(TransferableNative)
    return ReferenceClassifier(registry.freeze())


def test_allow_listed_subtype_is_transparent():
    classifier = _make_classifier()

    assert classifier.classify_in_context(NativeFamily()) == Opaque(ReferenceKind.FOREIGN_RUNTIME_HANDLE)
    assert classifier.classify_in_context(TransferableNative()) is TRANSPARENT


def test_wrapper_of_native_marker_is_opaque():
    classifier = _make_classifier()

    assert classifier.classify_in_context(PointerWrapper()) == Opaque(ReferenceKind.NATIVE_HANDLE)
    assert classifier.classify_in_context(PlainRecord()) is TRANSPARENT


def test_containers_do_not_use_structural_fallback():
    classifier = _make_classifier()
    pointer = ctypes.c_void_p(0)

    assert classifier.classify_in_context([pointer]) is TRANSPARENT
    assert classifier.classify_in_context({"ptr": pointer}) is TRANSPARENT
    assert classifier.classify_in_context(pointer) == Opaque(ReferenceKind.NATIVE_HANDLE)


def test_precomputed_children_are_used():
    classifier = _make_classifier()

    verdict = classifier.classify_in_context(PlainRecord(), [("ptr", ctypes.c_void_p(0))])

    assert verdict == Opaque(ReferenceKind.NATIVE_HANDLE)


def test_builtin_io_family():
    classifier = _make_classifier()

    assert classifier.classify_in_context(io.BytesIO(b"abc")) is TRANSPARENT
    assert classifier.classify_in_context(io.StringIO("abc")) is TRANSPARENT
    assert classifier.classify_in_context(threading.Lock()) == Opaque(ReferenceKind.OTHER_OPAQUE)


def test_capsules_are_native_handles():
    capsule = getattr(datetime, "datetime_CAPI", None)
    if capsule is None:
        pytest.skip("datetime C API capsule unavailable on this interpreter")
    classifier = _make_classifier()

    assert classifier.classify_in_context(capsule) == Opaque(ReferenceKind.NATIVE_HANDLE)


def test_scalars_skip_the_registry():
    registry = ClassificationRegistry()
    classifier = ReferenceClassifier(registry)

    for value in (None, True, 1, 1.5, "text", b"bytes"):
        assert classifier.classify_in_context(value) is TRANSPARENT
    assert registry.lookup_count == 0
