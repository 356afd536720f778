"""Log unsigned Stirling numbers of the first kind.

The table counts of the hierarchical Dirichlet process follow an Antoniak distribution, whose probability mass
function involves ``|s(n, m)|`` for every ``m`` in ``0..n``. These numbers overflow a float for moderate ``n``, so we
work with their logarithms, and compute a full row at a time.
"""

import collections
import math
import typing
import warnings

import numpy
import sympy.functions.combinatorial.numbers


def exact_log_stirling1_row(n: int) -> numpy.ndarray:
    """Log unsigned Stirling numbers of the first kind, computed from exact integers.

    Args:
        n: The number of elements being permuted.

    Returns:
        An array of length ``n + 1``; entry ``m`` is ``log |s(n, m)|`` (``-inf`` where the number is zero).

    Raises:
        ValueError: If `n` is negative.
        RecursionError: If sympy's recursion is too deep for `n`.

    """
    if n < 0:
        raise ValueError(f"Stirling numbers require a non-negative count, received {n}.")
    if n == 0:
        return numpy.zeros(1)

    # sympy returns Integer objects; python's math.log handles arbitrarily large ints
    values = (int(sympy.functions.combinatorial.numbers.stirling(n, m, kind=1)) for m in range(n + 1))
    return numpy.array([math.log(value) if value > 0 else -numpy.inf for value in values])


def log_stirling1_row(n: int, exact: bool = False) -> numpy.ndarray:
    """Log unsigned Stirling numbers of the first kind, ``log |s(n, m)|`` for ``m = 0..n``.

    Uses the recurrence ``|s(j + 1, m)| = j |s(j, m)| + |s(j, m - 1)|`` in log space, which never overflows.

    Args:
        n: The number of elements being permuted.
        exact: If True, compute the row from exact integers instead. If this fails with a RecursionError or
            OverflowError, a warning is raised and the recurrence is used.

    Returns:
        An array of length ``n + 1``.

    Raises:
        ValueError: If `n` is negative.

    """
    if n < 0:
        raise ValueError(f"Stirling numbers require a non-negative count, received {n}.")

    if exact:
        try:
            return exact_log_stirling1_row(n)
        except (RecursionError, OverflowError):
            warnings.warn(f"Exact Stirling numbers failed for n={n}; using the log space recurrence.")

    row = numpy.zeros(1)
    for j in range(n):
        log_j = numpy.log(j) if j > 0 else -numpy.inf
        stay = numpy.append(row + log_j, -numpy.inf)
        shift = numpy.insert(row, 0, -numpy.inf)
        row = numpy.logaddexp(stay, shift)
    return row


class StirlingCache(object):
    """A lazily populated mapping from a count ``n`` to its row of log Stirling numbers.

    Rows are computed once by `row_function` and returned read-only on every later request. By default the cache grows
    without bound; give `maxsize` to evict the least recently used rows instead.
    """

    def __init__(
        self,
        row_function: typing.Callable[[int], typing.Sequence[float]] = log_stirling1_row,
        maxsize: typing.Optional[int] = None,
    ) -> None:
        if maxsize is not None and maxsize < 1:
            raise ValueError("Stirling cache size must be positive.")
        self.row_function = row_function
        self.maxsize = maxsize
        self._rows: "collections.OrderedDict[int, numpy.ndarray]" = collections.OrderedDict()

    def __getitem__(self, n: int) -> numpy.ndarray:
        if n in self._rows:
            self._rows.move_to_end(n)
            return self._rows[n]

        row = numpy.array(self.row_function(n), dtype=float)
        row.flags.writeable = False
        self._rows[n] = row

        if self.maxsize is not None and len(self._rows) > self.maxsize:
            self._rows.popitem(last=False)
        return row

    def __contains__(self, n: int) -> bool:
        return n in self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def clear(self) -> None:
        self._rows.clear()
