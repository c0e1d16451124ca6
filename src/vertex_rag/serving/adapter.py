"""Relay a generation result onto an event stream, whatever its shape.

Backends hand back one of three things:

* an async iterable of text/byte chunks (possibly SSE ``data:`` lines);
* a pull-based stream exposing ``get_reader()`` (or ``read()``) that is
  read until it reports completion;
* a plain object or mapping carrying ``response``, ``text`` or ``data``.

:func:`classify` turns the raw value into one of the tagged variants below
and :func:`relay` dispatches on it with a single ``match``.  An async
iterable that breaks while being consumed is treated as a plain object,
so the stream always ends up with at least one payload.
"""

from __future__ import annotations

import inspect
import json
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from vertex_rag.exceptions import BackendShapeError
from vertex_rag.generation.messages import field_value

logger = logging.getLogger(__name__)

Push = Callable[[str], Awaitable[None]]

_SSE_PREFIX = re.compile(r"^data:\s*", re.IGNORECASE)


# -- shapes -------------------------------------------------------------------


@dataclass(frozen=True)
class AsyncIterableResult:
    source: Any


@dataclass(frozen=True)
class ReaderResult:
    source: Any


@dataclass(frozen=True)
class PlainResult:
    source: Any


GenerationShape = AsyncIterableResult | ReaderResult | PlainResult


def classify(result: Any) -> GenerationShape:
    """Classify *result* by capability, in precedence order."""
    if callable(getattr(result, "__aiter__", None)):
        return AsyncIterableResult(result)
    if callable(getattr(result, "get_reader", None)) or callable(getattr(result, "read", None)):
        return ReaderResult(result)
    return PlainResult(result)


# -- chunk helpers ------------------------------------------------------------


def decode_chunk(chunk: Any) -> str:
    """Coerce a chunk to text and strip a leading SSE ``data:`` prefix."""
    if isinstance(chunk, str):
        raw = chunk.encode("utf-8")
    elif isinstance(chunk, (bytes, bytearray, memoryview)):
        raw = bytes(chunk)
    else:
        raw = json.dumps(chunk, default=str).encode("utf-8")
    return _SSE_PREFIX.sub("", raw.decode("utf-8", errors="replace"), count=1)


def _unpack_read(item: Any) -> tuple[bool, Any]:
    """Normalise one ``read()`` result into ``(done, value)``."""
    if item is None:
        return True, None
    if isinstance(item, (str, bytes, bytearray, memoryview)):
        return len(item) == 0, item
    if isinstance(item, tuple) and len(item) == 2:
        return bool(item[0]), item[1]
    return bool(field_value(item, "done")), field_value(item, "value")


def plain_text(result: Any) -> Any:
    """First truthy of ``response``, ``text`` and ``data``; sequences join on newlines."""
    if result is None:
        return None
    value = field_value(result, "response") or field_value(result, "text")
    if value:
        return value
    data = field_value(result, "data")
    if isinstance(data, Sequence) and not isinstance(data, (str, bytes, bytearray)):
        return "\n".join(str(item) for item in data)
    return data


def encode_raw(result: Any) -> str:
    try:
        return json.dumps(result, default=str)
    except (TypeError, ValueError):
        return str(result)


# -- consumption routines -----------------------------------------------------


async def _relay_iterable(source: Any, push: Push) -> int:
    pushed = 0
    try:
        iterator = aiter(source)
    except Exception as exc:
        raise BackendShapeError(f"result is not iterable after all: {exc}") from exc
    while True:
        try:
            chunk = await anext(iterator)
        except StopAsyncIteration:
            return pushed
        except Exception as exc:
            raise BackendShapeError(
                f"async iteration failed after {pushed} chunk(s): {exc}"
            ) from exc
        await push(decode_chunk(chunk))
        pushed += 1


async def _relay_reader(source: Any, push: Push) -> int:
    reader = source.get_reader() if callable(getattr(source, "get_reader", None)) else source
    pushed = 0
    try:
        while True:
            item = reader.read()
            if inspect.isawaitable(item):
                item = await item
            done, value = _unpack_read(item)
            if done:
                break
            if value is None:
                continue
            await push(decode_chunk(value))
            pushed += 1
    finally:
        release = getattr(reader, "release_lock", None)
        if callable(release):
            release()
    return pushed


async def _relay_plain(source: Any, push: Push) -> int:
    try:
        payload = json.dumps({"response": plain_text(source)})
    except Exception:
        logger.warning("Could not extract text from %s, sending raw result", type(source).__name__)
        payload = encode_raw(source)
    await push(payload)
    return 1


async def relay(result: Any, push: Push) -> int:
    """Push every payload of *result* through *push*; returns the payload count."""
    match classify(result):
        case AsyncIterableResult(source):
            try:
                return await _relay_iterable(source, push)
            except BackendShapeError as exc:
                logger.warning("%s; falling back to non-streaming response", exc)
                return await _relay_plain(source, push)
        case ReaderResult(source):
            return await _relay_reader(source, push)
        case PlainResult(source):
            return await _relay_plain(source, push)
