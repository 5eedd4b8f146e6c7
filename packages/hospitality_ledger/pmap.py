"""Order-preserving bounded thread-pool map, used to parse statement files concurrently.

``p_map(items, fn, concurrency=n)`` keeps at most ``n`` calls in flight and
returns results in input order. ``stop_on_error=True`` (default) propagates
the first failure and cancels work not yet started; ``False`` lets every call
finish and raises an ``ExceptionGroup`` of the failures. A mapper can return
``p_map_skip`` to drop its element from the output.

Parsing is I/O light but CPU bound in ``csv``; threads still help when files
are read from slow storage, and the pool size stays small.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

_CONCURRENCY_ENV = "HL_PARSE_CONCURRENCY"
DEFAULT_CONCURRENCY = 4


class _Skip:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "p_map_skip"


p_map_skip: object = _Skip()


def parse_concurrency() -> int:
    raw = os.getenv(_CONCURRENCY_ENV)
    try:
        n = int(raw) if raw else DEFAULT_CONCURRENCY
    except ValueError:
        n = DEFAULT_CONCURRENCY
    return max(1, n)


def p_map[InT, OutT](
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT | object],
    *,
    concurrency: int | None = None,
    stop_on_error: bool = True,
) -> list[OutT]:
    limit = parse_concurrency() if concurrency is None else concurrency
    if not isinstance(limit, int) or limit < 1:
        raise ValueError("concurrency must be a positive integer")

    pending = enumerate(iterable)
    results: dict[int, OutT | object] = {}
    failures: list[Exception] = []
    index_of: dict[Future, int] = {}
    total = 0

    def submit_next(pool: ThreadPoolExecutor) -> Future | None:
        nonlocal total
        nxt = next(pending, None)
        if nxt is None:
            return None
        idx, item = nxt
        fut = pool.submit(mapper, item)
        index_of[fut] = idx
        total += 1
        return fut

    with ThreadPoolExecutor(max_workers=limit) as pool:
        in_flight: set[Future] = set()
        for _ in range(limit):
            fut = submit_next(pool)
            if fut is None:
                break
            in_flight.add(fut)

        while in_flight:
            done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
            for fut in done:
                idx = index_of.pop(fut)
                try:
                    results[idx] = fut.result()
                except Exception as e:
                    if stop_on_error:
                        pool.shutdown(wait=False, cancel_futures=True)
                        raise
                    failures.append(e)
            for _ in done:
                fut = submit_next(pool)
                if fut is None:
                    break
                in_flight.add(fut)

    if failures:
        raise ExceptionGroup("p_map: one or more mapper calls failed", failures)

    out: list[OutT] = []
    for i in range(total):
        val = results.get(i, p_map_skip)
        if val is not p_map_skip:
            out.append(val)  # type: ignore[arg-type]
    return out


__all__ = ["DEFAULT_CONCURRENCY", "p_map", "p_map_skip", "parse_concurrency"]
