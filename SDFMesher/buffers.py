"""
Growable Output Buffers
=======================

Numpy backed append-only arrays with an explicit capacity. Clearing a buffer
keeps its backing storage, so an extractor that is reused for several passes
only allocates when a pass produces more data than any pass before it.
"""

import numpy as np

#: Layout of one output vertex. ``position`` is homogeneous with ``w == 1``.
VERTEX_DTYPE = np.dtype([("position", np.float32, (4,)), ("normal", np.float32, (3,))])

#: Index type of the output triangle list.
INDEX_DTYPE = np.dtype(np.uint32)


class GrowableArray:
    """Append-only array with amortized doubling growth.

    Parameters
    ----------
    dtype : numpy dtype
        Element type, may be structured.
    capacity : int, default 0
        Initial number of elements to allocate.

    Examples
    --------
    >>> buf = GrowableArray(np.uint32)
    >>> buf.append(3)
    0
    >>> buf.extend([4, 5])
    >>> buf.view()
    array([3, 4, 5], dtype=uint32)
    >>> buf.clear()
    >>> len(buf), buf.capacity >= 3
    (0, True)
    """

    def __init__(self, dtype, capacity: int = 0):
        self.dtype = np.dtype(dtype)
        self.data = np.zeros(capacity, dtype=self.dtype)
        self._length = 0

    @property
    def capacity(self) -> int:
        return self.data.shape[0]

    def __len__(self) -> int:
        return self._length

    def __getitem__(self, index):
        return self.view()[index]

    def __iter__(self):
        return iter(self.view())

    def reserve(self, capacity: int):
        """Grow the backing storage to hold at least ``capacity`` elements."""
        if capacity <= self.capacity:
            return
        data = np.zeros(capacity, dtype=self.dtype)
        data[: self._length] = self.data[: self._length]
        self.data = data

    def _grow_for(self, count: int):
        required = self._length + count
        if required > self.capacity:
            self.reserve(max(required, self.capacity * 2, 16))

    def append(self, value) -> int:
        """Append one element and return its index."""
        self._grow_for(1)
        index = self._length
        self.data[index] = value
        self._length += 1
        return index

    def extend(self, values):
        values = np.asarray(values, dtype=self.dtype)
        count = values.shape[0]
        self._grow_for(count)
        self.data[self._length : self._length + count] = values
        self._length += count

    def clear(self):
        """Drop all elements; capacity is preserved."""
        self._length = 0

    def view(self) -> np.ndarray:
        """Array view of the valid elements (no copy)."""
        return self.data[: self._length]
