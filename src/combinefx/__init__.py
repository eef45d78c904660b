"""combinefx: a minimal single-threaded reactive stream core for Python."""

from importlib.metadata import version as _version

__version__ = _version("combinefx")

from combinefx.errors import (
    CombineError,
    DecodeError,
    HttpError,
    InvalidState,
    ProducerError,
    UpstreamFailed,
)
from combinefx.events import COMPLETED, Completed, Failed, Failure, Success, Value
from combinefx.subscription import Subscription, SubscriptionBag
from combinefx.dispatcher import (
    Dispatcher,
    MonotonicClock,
    ScheduledTask,
    VirtualClock,
    main_dispatcher,
    set_main_dispatcher,
)
from combinefx.stream import Stream
from combinefx.subject import CurrentValueSubject, PassthroughSubject
from combinefx.operators import CombineLatest, Debounce, Filter, Map, ReceiveOn, ReplaceError, TryMap
from combinefx.future import Deferred, Future
from combinefx.timer import timer
from combinefx.decode import decode_json, decoder
# http and textual NOT auto-imported — opt-in only

__all__ = [
    "CombineError",
    "InvalidState",
    "UpstreamFailed",
    "ProducerError",
    "HttpError",
    "DecodeError",
    "Value",
    "Completed",
    "COMPLETED",
    "Failed",
    "Success",
    "Failure",
    "Subscription",
    "SubscriptionBag",
    "Dispatcher",
    "ScheduledTask",
    "VirtualClock",
    "MonotonicClock",
    "main_dispatcher",
    "set_main_dispatcher",
    "Stream",
    "PassthroughSubject",
    "CurrentValueSubject",
    "Map",
    "TryMap",
    "Filter",
    "Debounce",
    "CombineLatest",
    "ReceiveOn",
    "ReplaceError",
    "Future",
    "Deferred",
    "timer",
    "decode_json",
    "decoder",
]
