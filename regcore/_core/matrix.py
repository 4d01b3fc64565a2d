"""
Dense row-major matrix.

Thin container over a flat float64 buffer. Decomposition routines clone
their input before mutating it; fitted models freeze the design matrix
they retain.
"""

import numpy as np
from typing import Sequence

from ..exceptions import DimensionMismatchError


class Matrix:
    """
    Dense matrix stored as a flat row-major float64 buffer.

    Parameters
    ----------
    rows : int
        Number of rows
    cols : int
        Number of columns
    data : array-like, optional
        Flat buffer of length rows * cols (row-major). Zeros if omitted.
    """

    def __init__(self, rows: int, cols: int, data=None):
        if rows < 0 or cols < 0:
            raise ValueError(f"Invalid dimensions {rows}x{cols}")
        self._rows = int(rows)
        self._cols = int(cols)
        if data is None:
            self._data = np.zeros(self._rows * self._cols, dtype=np.float64)
        else:
            self._data = np.array(data, dtype=np.float64).ravel()
        if self._data.size != self._rows * self._cols:
            raise DimensionMismatchError(
                f"Data length {self._data.size} doesn't match dimensions "
                f"{self._rows}x{self._cols}"
            )

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def shape(self):
        return (self._rows, self._cols)

    @property
    def data(self) -> np.ndarray:
        """Flat row-major buffer."""
        return self._data

    @property
    def read_only(self) -> bool:
        return not self._data.flags.writeable

    def _check_index(self, i: int, j: int):
        if i < 0 or i >= self._rows or j < 0 or j >= self._cols:
            raise IndexError(
                f"Index ({i},{j}) out of bounds for {self._rows}x{self._cols} matrix"
            )

    def get(self, i: int, j: int) -> float:
        """Element at (i, j)."""
        self._check_index(i, j)
        return float(self._data[i * self._cols + j])

    def set(self, i: int, j: int, value: float):
        """Set element at (i, j)."""
        self._check_index(i, j)
        if self.read_only:
            raise ValueError("Matrix is read-only")
        self._data[i * self._cols + j] = value

    def get_row(self, i: int) -> np.ndarray:
        if i < 0 or i >= self._rows:
            raise IndexError(f"Row {i} out of bounds for {self._rows}x{self._cols} matrix")
        return self.to_numpy()[i, :].copy()

    def get_column(self, j: int) -> np.ndarray:
        if j < 0 or j >= self._cols:
            raise IndexError(f"Column {j} out of bounds for {self._rows}x{self._cols} matrix")
        return self.to_numpy()[:, j].copy()

    def set_column(self, j: int, values: Sequence[float]):
        values = np.asarray(values, dtype=np.float64)
        if values.shape != (self._rows,):
            raise DimensionMismatchError(
                f"Column length {values.size} doesn't match matrix rows {self._rows}"
            )
        if j < 0 or j >= self._cols:
            raise IndexError(f"Column {j} out of bounds for {self._rows}x{self._cols} matrix")
        if self.read_only:
            raise ValueError("Matrix is read-only")
        self.to_numpy()[:, j] = values

    def to_numpy(self) -> np.ndarray:
        """2-D view of the buffer (shares memory, honours read-only)."""
        return self._data.reshape(self._rows, self._cols)

    def transpose(self) -> "Matrix":
        return Matrix.from_array(self.to_numpy().T)

    @property
    def T(self) -> "Matrix":
        return self.transpose()

    def multiply(self, other: "Matrix") -> "Matrix":
        """Matrix-matrix product."""
        if self._cols != other.rows:
            raise DimensionMismatchError(
                f"Cannot multiply {self._rows}x{self._cols} by {other.rows}x{other.cols}"
            )
        return Matrix.from_array(self.to_numpy() @ other.to_numpy())

    def multiply_vector(self, vec) -> np.ndarray:
        """Matrix-vector product."""
        vec = np.asarray(vec, dtype=np.float64)
        if vec.shape != (self._cols,):
            raise DimensionMismatchError(
                f"Cannot multiply {self._rows}x{self._cols} matrix by vector "
                f"of length {vec.size}"
            )
        return self.to_numpy() @ vec

    def __matmul__(self, other):
        if isinstance(other, Matrix):
            return self.multiply(other)
        return self.multiply_vector(other)

    def clone(self) -> "Matrix":
        """Writable deep copy."""
        return Matrix(self._rows, self._cols, self._data.copy())

    def freeze(self) -> "Matrix":
        """Mark the buffer read-only and return self."""
        self._data.flags.writeable = False
        return self

    @staticmethod
    def identity(n: int) -> "Matrix":
        return Matrix.from_array(np.eye(n))

    @staticmethod
    def from_columns(cols) -> "Matrix":
        """Build a matrix from a sequence of equal-length column vectors."""
        if len(cols) == 0:
            raise ValueError("Need at least one column")
        columns = [np.asarray(c, dtype=np.float64).ravel() for c in cols]
        rows = columns[0].size
        for c in columns:
            if c.size != rows:
                raise DimensionMismatchError("All columns must have same length")
        return Matrix.from_array(np.column_stack(columns))

    @staticmethod
    def from_array(a) -> "Matrix":
        a = np.asarray(a, dtype=np.float64)
        if a.ndim != 2:
            raise ValueError(f"Expected 2-dimensional array, got {a.ndim} dimensions")
        return Matrix(a.shape[0], a.shape[1], a)

    def __eq__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self._data, other.data)

    __hash__ = None

    def __repr__(self):
        lines = []
        view = self.to_numpy()
        for i in range(min(5, self._rows)):
            row = [f"{view[i, j]:.4f}" for j in range(min(5, self._cols))]
            if self._cols > 5:
                row.append("...")
            lines.append("  [" + ", ".join(row) + "]")
        if self._rows > 5:
            lines.append("  ...")
        return f"Matrix({self._rows}x{self._cols}):\n" + "\n".join(lines)
