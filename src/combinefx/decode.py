"""JSON decode collaborator.

decode_json() turns a payload into a Result; decoder() packages the same
thing as a plain function that raises DecodeError, ready for try_map():

    fetch(url).try_map(decoder(Post)).replace_error([])
"""

from __future__ import annotations

import json
from typing import Any, Callable

from combinefx.errors import DecodeError
from combinefx.events import Failure, Result, Success


def _build(into: Callable[..., Any], item: Any) -> Any:
    if isinstance(item, dict):
        return into(**item)
    return into(item)


def decode_json(data: bytes | str, into: Callable[..., Any] | None = None) -> Result:
    """Parse JSON; if into is given, build into(**obj) for each object.

    A top-level list decodes element-wise.
    """
    try:
        payload = json.loads(data)
        if into is not None:
            if isinstance(payload, list):
                payload = [_build(into, item) for item in payload]
            else:
                payload = _build(into, payload)
    except (ValueError, TypeError) as exc:
        target = getattr(into, "__name__", "JSON")
        return Failure(DecodeError(f"cannot decode {target}: {exc}"))
    return Success(payload)


def decoder(into: Callable[..., Any] | None = None) -> Callable[[bytes | str], Any]:
    """A bytes -> value function that raises DecodeError on bad input."""

    def _decode(data: bytes | str) -> Any:
        result = decode_json(data, into)
        if isinstance(result, Failure):
            raise result.error
        return result.value

    return _decode
