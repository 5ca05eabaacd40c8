import logging
from typing import Callable, List

# Subscribers are called as callback(reason, **payload) whenever stored data changes.
_subscribers: List[Callable] = []


def subscribe(callback: Callable) -> Callable:
    if callback not in _subscribers:
        _subscribers.append(callback)
    return callback


def unsubscribe(callback: Callable) -> None:
    if callback in _subscribers:
        _subscribers.remove(callback)


def clear() -> None:
    _subscribers.clear()


def publish(reason: str, **payload) -> int:
    delivered = 0
    for callback in list(_subscribers):
        try:
            callback(reason, **payload)
            delivered += 1
        except Exception:
            logging.exception(f"Data change subscriber failed for reason: {reason}")
    return delivered
