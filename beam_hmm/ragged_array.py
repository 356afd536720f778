"""A jagged two dimensional container.

Rows of a ``RaggedArray`` are ordinary lists and may have different lengths. The beam sampler stores observations,
latent states and slice variables (one row per sequence), as well as the square and near-square matrices indexed by
latent state, in this container.
"""

import copy
import typing

import numpy

T = typing.TypeVar("T")


class RaggedArray(typing.Generic[T]):
    """Ordered rows of elements, where each row has its own length."""

    def __init__(
        self, rows: int = 0, columns: typing.Optional[typing.Union[int, typing.Sequence[int]]] = None, fill: T = 0
    ) -> None:
        """Create a ragged array.

        Args:
            rows: The number of rows.
            columns: If None (the default), every row is empty. If an integer, every row has this length. Otherwise a
                sequence with one length for each row.
            fill: The value given to every element of the new rows.

        Raises:
            ValueError: If a sequence of row lengths does not match the number of rows.

        """
        sizes: typing.Sequence[int]
        if columns is None:
            sizes = [0] * rows
        elif isinstance(columns, int):
            sizes = [columns] * rows
        else:
            sizes = list(columns)
            if len(sizes) != rows:
                raise ValueError(f"Expected {rows} row lengths, received {len(sizes)}.")

        self._data: typing.List[typing.List[T]] = [[fill] * size for size in sizes]

    @classmethod
    def from_rows(cls, rows: typing.Iterable[typing.Iterable[T]]) -> "RaggedArray[T]":
        """Build a ragged array holding a copy of each of the given rows."""
        array: RaggedArray[T] = cls()
        for row in rows:
            array.append(list(row))
        return array

    def __getitem__(self, i: int) -> typing.List[T]:
        return self._data[i]

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> typing.Iterator[typing.List[T]]:
        return iter(self._data)

    def __eq__(self, other) -> bool:
        if isinstance(other, RaggedArray):
            return self._data == other._data
        return NotImplemented

    def __repr__(self) -> str:
        return f"<RaggedArray, sizes {self.sizes()}>"

    def append(self, row: typing.Iterable[T]) -> None:
        """Add a new row after the existing rows."""
        self._data.append(list(row))

    def sum(self, i: int) -> T:
        """The sum of the elements in row `i` (zero for an empty row)."""
        return sum(self._data[i], 0)  # type: ignore

    def sizes(self) -> typing.List[int]:
        """The length of every row, in row order."""
        return [len(row) for row in self._data]

    def copy(self) -> "RaggedArray[T]":
        return copy.deepcopy(self)

    def to_numpy(self, dtype: typing.Any = float) -> numpy.ndarray:
        """Convert a rectangular ragged array to a two dimensional numpy array.

        Args:
            dtype: The numpy data type of the output.

        Returns:
            An array with shape ``(len(self), row_length)``.

        Raises:
            ValueError: If the rows do not all have the same length.

        """
        sizes = set(self.sizes())
        if len(sizes) > 1:
            raise ValueError("Only rectangular ragged arrays can be converted to numpy arrays.")
        if len(self._data) == 0:
            return numpy.zeros((0, 0), dtype=dtype)
        return numpy.array(self._data, dtype=dtype)
