# randsketch

Reproducible random sketching operators for randomized numerical linear
algebra, built on NumPy.

## What is in the package

- `randsketch.philox`: the Philox4x32-10 counter-based generator.
  `RNGState` holds a 128-bit counter and a 64-bit key, and can be given
  either as integers or as tuples of 32-bit words.
  `RNGState.incremented(n)` returns a state whose counter is `n` steps
  further on. `philox4x32(counter, key)` returns one block of four 32-bit
  words. `uniform_neg11` turns a block into four values on (-1, 1).
  `box_muller` turns a block into four standard normal values.
- `randsketch.dense`: dense sketching operators.
  - `DenseDist(n_rows, n_cols, family, major_axis)` is a distribution
    over matrices whose entries are iid with mean zero and variance one.
    `family` is `ScalarDist.Gaussian` or `ScalarDist.Uniform`; uniform
    entries lie in [-sqrt(3), sqrt(3)]. The distribution works out
    `dim_major`, `dim_minor`, `isometry_scale` and `natural_layout`
    (`Layout.RowMajor` or `Layout.ColMajor`) from its arguments.
  - `fill_dense(dist, seed)` returns `(matrix, next_state)`.
  - `fill_dense_unpacked(layout, dist, n_rows, n_cols, ro_s, co_s, seed)`
    generates only the submatrix at row offset `ro_s` and column offset
    `co_s`. It gives the same values as slicing the full matrix.
  - `DenseSkOp(dist, seed_state)` is a sample from a distribution. Its
    `next_state` is the state that follows a full sample. `fill()`
    writes the explicit matrix into `buff`, allocating it if `own_memory`
    is true.
  - `submatrix_as_blackbox` materialises a submatrix of an operator as a
    `BLASFriendlyOperator`.
- `randsketch.csc`: `CSCMatrix` with `reserve(nnz)`, plus
  `csc_to_dense(spmat, layout)` and
  `dense_to_csc(layout, mat, abs_tol, n_rows, n_cols)`. `mat` may be a
  2-D array or a flat buffer read in `layout` order.
- `randsketch.conversions`:
  - `CSRMatrix` and `COOMatrix`, each with `to_dense()`.
  - `dense_to_csr` and `coo_from_diag`.
  - `sort_coo_data` puts the nonzeros in `NonzeroSort.CSC` or
    `NonzeroSort.CSR` order.
  - `coo_to_csc`, `csc_to_coo`, `coo_to_csr` and `csr_to_coo`.
  - `transpose_as_csr` and `transpose_as_csc`. These share the input's
    arrays by default; pass `share_memory=False` to get copies.
  - `reindex_inplace` switches between `IndexBase.Zero` and
    `IndexBase.One`.
- `randsketch.sksp`: sketching a sparse matrix (CSC, CSR or COO) with a
  dense operator.
  - `sketch_sparse_left` computes `B = alpha * op(submat(S)) @ op(A) + beta * B`.
  - `sketch_sparse_right` computes `B = alpha * op(A) @ op(submat(S)) + beta * B`.
  - `lsksp3` and `rsksp3` also take a submatrix of `A`.
  - `op` is `Op.NoTrans` or `Op.Trans`.
  - If a `DenseSkOp` has no buffer, only the submatrix that is needed is
    generated.
  - When `beta` is zero, `b` may be omitted.
  - The updated `b` is returned.
- `randsketch.tls`:
  - `init_noisy_data(m, n, d)` builds noisy Gaussian data `[A | B]`.
  - `total_least_squares(ab, n)` solves a total least squares problem
    by SVD.
  - `main` runs the demonstration described below.

## Installation

```
pip install .
```

To run the tests, install the test extra and run pytest:

```
pip install ".[test]"
pytest
```

## Example

```python
from randsketch.philox import RNGState
from randsketch.dense import DenseDist, DenseSkOp, ScalarDist, fill_dense

dist = DenseDist(4, 10, ScalarDist.Gaussian)
matrix, next_state = fill_dense(dist, RNGState(0))

op = DenseSkOp(dist, RNGState(0))
op.fill()   # equal to `matrix`
```

`next_state` is the state to pass to the next sampling call when that
call's output should be independent of `matrix`.

Sparse matrices can be built from dense arrays, converted between
formats, and sketched:

```python
import numpy as np
from randsketch.dense import Layout
from randsketch.csc import dense_to_csc
from randsketch.conversions import csc_to_coo, coo_to_csr
from randsketch.sksp import Op, sketch_sparse_left

a = np.array([[1.0, 0.0], [0.0, 2.0], [3.0, 0.0]])
csc = dense_to_csc(Layout.ColMajor, a, 0.0, 3, 2)
csr = coo_to_csr(csc_to_coo(csc))

sketch = sketch_sparse_left(Op.NoTrans, Op.NoTrans, 4, 2, 3, 1.0, op_3cols, 0, 0, csr, 0.0)
```

In the last line, `op_3cols` stands for any `DenseSkOp` with at least
4 rows and 3 columns.

## Total least squares demo

```
randsketch-tls              # m = 10000 rows, n = 500 columns
randsketch-tls 2000 100     # custom sizes
```

The command builds noisy Gaussian data `[A | b]`. It samples a dense
Gaussian operator with `2 * (n + 1)` rows and seed 1997, and uses it to
sketch the data. It then solves the total least squares problem twice,
once on the sketch and once on the full data. It prints:

- the time each step took;
- the speed-up of the sketched method;
- the relative distance between the two solutions.

With more columns than rows, the command prints a message and exits
with status 0. With a number of arguments other than zero or two, it
prints "Invalid arguments" and exits with status 1.

## What the package does not do

- There are no sparse sketching operators. The only random operators
  are the dense ones in `randsketch.dense`.
- There is no routine for sketching a dense matrix. The demo multiplies
  the explicit operator by the data with NumPy.
- Generation runs in a single thread. It is vectorised with NumPy rather
  than parallelised.