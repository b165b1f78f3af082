from __future__ import annotations

import itertools
import time
from typing import Any, Callable, Iterable, TypeVar

from .utils import load_entrypoint


T = TypeVar("T")


def expand_list(**named_sequences: Iterable[Any]) -> list[dict[str, Any]]:
    """Cross product of the keyword sequences, one dict per combination.

    The last keyword varies fastest::

        expand_list(a=[1, 2], b=["x", "y"])
        # [{'a': 1, 'b': 'x'}, {'a': 1, 'b': 'y'}, {'a': 2, 'b': 'x'}, {'a': 2, 'b': 'y'}]
    """

    keys = list(named_sequences)
    pools = [list(named_sequences[key]) for key in keys]
    return [dict(zip(keys, combo)) for combo in itertools.product(*pools)]


def get_anything(name: str, default: Any = None) -> Any:
    """Resolve `module:attr` (or a dotted path), returning `default` if it is missing."""

    try:
        return load_entrypoint(name)
    except (ImportError, AttributeError, ValueError):
        return default


def try_again(
    fn: Callable[..., T],
    *args: Any,
    times: int = 2,
    delay_seconds: float = 5.0,
    backoff: float = 1.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    logger: Callable[[str], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """Call `fn(*args, **kwargs)` up to `times` times, sleeping between attempts.

    The delay is multiplied by `backoff` after every failure. The last error is
    re-raised once attempts are exhausted.
    """

    if times < 1:
        raise ValueError("times must be >= 1")
    delay = float(delay_seconds)
    for attempt in range(1, times + 1):
        try:
            return fn(*args, **kwargs)
        except exceptions as exc:
            if attempt >= times:
                raise
            if logger is not None:
                logger(
                    f"[RETRY] attempt {attempt}/{times} failed: "
                    f"{type(exc).__name__}: {exc}; sleeping {delay:.2f}s"
                )
            sleep(delay)
            delay *= backoff
    raise AssertionError("unreachable")  # pragma: no cover
