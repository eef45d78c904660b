"""HTTP fetch collaborator. Opt-in — requires httpx.

fetch() wraps a blocking GET in a Future. The request runs on a daemon
thread via Dispatcher.submit(); the result is marshaled back onto the
dispatcher, so subscribers are always called on the dispatcher's thread.

Failures arrive as Failed(ProducerError(HttpError)).
"""

from __future__ import annotations

import logging

import httpx

from combinefx.dispatcher import Dispatcher, resolve_dispatcher
from combinefx.errors import HttpError
from combinefx.future import Future, Promise

logger = logging.getLogger("combinefx.http")

DEFAULT_TIMEOUT = 10.0


def get_bytes(url: str, *, client: httpx.Client | None = None, timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """Blocking GET. Raises HttpError on transport errors and non-2xx statuses."""
    try:
        if client is not None:
            response = client.get(url, timeout=timeout)
        else:
            with httpx.Client(timeout=timeout) as own_client:
                response = own_client.get(url)
    except httpx.HTTPError as exc:
        raise HttpError(url, reason=str(exc)) from exc

    logger.debug("GET %s -> %d (%d bytes)", url, response.status_code, len(response.content))
    if not response.is_success:
        raise HttpError(url, response.status_code, response.reason_phrase)
    return response.content


def fetch(
    url: str,
    *,
    client: httpx.Client | None = None,
    dispatcher: Dispatcher | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Future[bytes]:
    """Start a GET now; the returned Future yields the response body.

    Usage:
        posts = (
            fetch("https://jsonplaceholder.typicode.com/posts", dispatcher=d)
            .try_map(decoder(Post))
            .replace_error([])
        )
        sub = posts.sink(on_posts)
    """
    dispatcher = resolve_dispatcher(dispatcher)

    def _producer(promise: Promise) -> None:
        dispatcher.submit(lambda: get_bytes(url, client=client, timeout=timeout), promise)

    return Future(_producer, dispatcher)
