import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

FRIENDS_CHANGED = "friends.changed"
PROPOSALS_CHANGED = "proposals.changed"
CALENDAR_CHANGED = "calendar.changed"

Handler = Callable[[Any], Union[None, Awaitable[None]]]


class EventBus:
    """In-process publish/subscribe channel for reload triggers.

    Handlers run in subscription order. A failing handler is logged and does
    not stop the others or reach the publisher.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            self.unsubscribe(topic, handler)

        return unsubscribe

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        handlers = self._handlers.get(topic, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, topic: str, payload: Optional[Any] = None) -> int:
        delivered = 0
        for handler in list(self._handlers.get(topic, [])):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.warning(f"Handler for '{topic}' failed: {e}")
        return delivered
