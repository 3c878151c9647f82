import numpy as np
import pytest

from randsketch.conversions import (
    COOMatrix,
    CSRMatrix,
    NonzeroSort,
    coo_from_diag,
    coo_to_csc,
    coo_to_csr,
    csc_to_coo,
    csr_to_coo,
    dense_to_csr,
    reindex_inplace,
    sort_coo_data,
    transpose_as_csc,
    transpose_as_csr,
)
from randsketch.csc import IndexBase, csc_to_dense, dense_to_csc
from randsketch.dense import Layout


def _sparsify(m, n, p_zero, seed=0):
    rng = np.random.default_rng(seed)
    mat = rng.standard_normal((m, n))
    mat[rng.random((m, n)) < p_zero] = 0.0
    return mat


TRANSPOSE_CASES = [(7, 20, 0.05), (7, 20, 0.90), (13, 5, 0.05), (13, 5, 0.90)]


@pytest.mark.parametrize("n,m,p", TRANSPOSE_CASES)
def test_transposed_csr_as_csc(n, m, p):
    a_dense = _sparsify(m, n, p)
    a_csr = dense_to_csr(a_dense, 0.0)

    view = transpose_as_csc(a_csr, True)
    np.testing.assert_array_equal(csc_to_dense(view, Layout.ColMajor), a_dense.T)

    copy = transpose_as_csc(a_csr, False)
    a_csr.vals[:] = 0.0
    np.testing.assert_array_equal(csc_to_dense(copy, Layout.ColMajor), a_dense.T)
    assert not np.any(csc_to_dense(view))


@pytest.mark.parametrize("n,m,p", TRANSPOSE_CASES)
def test_transposed_csc_as_csr(n, m, p):
    a_dense = _sparsify(m, n, p)
    a_csc = dense_to_csc(Layout.ColMajor, a_dense, 0.0)

    view = transpose_as_csr(a_csc, True)
    np.testing.assert_array_equal(view.to_dense(), a_dense.T)

    copy = transpose_as_csr(a_csc, False)
    a_csc.vals[:] = 0.0
    np.testing.assert_array_equal(copy.to_dense(), a_dense.T)
    assert view.own_memory is False
    assert copy.own_memory is True


def test_csr_to_dense_diagonal():
    n = 3
    vals = 1.0 + np.arange(n, dtype=np.float64)
    a = CSRMatrix(n, n, n, vals, np.arange(n + 1), np.arange(n))
    np.testing.assert_array_equal(a.to_dense(), np.diag(vals))


@pytest.mark.parametrize("order", ["C", "F"])
def test_csr_from_random_sparsified(order):
    mat = np.array(_sparsify(10, 5, 0.7), order=order)
    spmat = dense_to_csr(mat, 0.0)
    np.testing.assert_array_equal(spmat.to_dense(), mat)
    assert spmat.rowptr[-1] == spmat.nnz == np.count_nonzero(mat)


DIAG_CASES = (
    [(5, 5, k) for k in range(-4, 5)]
    + [(5, 10, 0), (10, 5, 0)]
    + [(10, 5, k) for k in (1, 2, 3, 4, -1, -2, -3, -4)]
    + [(5, 10, k) for k in (1, 2, 3, 4, -1, -2, -3, -4)]
)


@pytest.mark.parametrize("m,n,offset", DIAG_CASES)
def test_csr_from_diag_coo(m, n, offset):
    length = min(m, n - offset) if offset >= 0 else min(m + offset, n)
    diag = np.arange(1, length + 1) * 0.5
    expect = np.zeros((m, n))
    for ell in range(length):
        if offset >= 0:
            expect[ell, ell + offset] = diag[ell]
        else:
            expect[ell - offset, ell] = diag[ell]
    coo = coo_from_diag(diag, offset, m, n)
    csr = coo_to_csr(coo)
    np.testing.assert_array_equal(csr.to_dense(), expect)
    np.testing.assert_array_equal(coo.to_dense(), expect)


def test_coo_from_diag_too_long_raises():
    with pytest.raises(ValueError):
        coo_from_diag(np.ones(4), 2, 5, 5)


def _shuffled_coo(mat, seed=1):
    rows, cols = np.nonzero(mat)
    perm = np.random.default_rng(seed).permutation(len(rows))
    rows, cols = rows[perm], cols[perm]
    return COOMatrix(mat.shape[0], mat.shape[1], len(rows), mat[rows, cols], rows, cols)


def test_sort_coo_data_orders():
    mat = _sparsify(6, 8, 0.5, seed=2)
    coo = _shuffled_coo(mat)
    sort_coo_data(NonzeroSort.CSR, coo)
    keys = coo.rows * coo.n_cols + coo.cols
    assert np.all(np.diff(keys) > 0)
    assert coo.sort is NonzeroSort.CSR
    sort_coo_data(NonzeroSort.CSC, coo)
    keys = coo.cols * coo.n_rows + coo.rows
    assert np.all(np.diff(keys) > 0)
    np.testing.assert_array_equal(coo.to_dense(), mat)


def test_coo_csc_round_trip():
    mat = _sparsify(9, 4, 0.6, seed=4)
    csc = coo_to_csc(_shuffled_coo(mat))
    np.testing.assert_array_equal(csc_to_dense(csc), mat)
    back = csc_to_coo(csc)
    assert back.sort is NonzeroSort.CSC
    np.testing.assert_array_equal(back.to_dense(), mat)


def test_coo_csr_round_trip():
    mat = _sparsify(4, 9, 0.6, seed=6)
    csr = coo_to_csr(_shuffled_coo(mat))
    np.testing.assert_array_equal(csr.to_dense(), mat)
    back = csr_to_coo(csr)
    assert back.sort is NonzeroSort.CSR
    np.testing.assert_array_equal(back.to_dense(), mat)


def test_conversion_requires_zero_base():
    coo = _shuffled_coo(_sparsify(3, 3, 0.3))
    reindex_inplace(coo, IndexBase.One)
    with pytest.raises(ValueError):
        coo_to_csr(coo)


@pytest.mark.parametrize("fmt", ["csc", "csr", "coo"])
def test_reindex_round_trip(fmt):
    mat = _sparsify(5, 6, 0.4, seed=7)
    if fmt == "csc":
        a = dense_to_csc(Layout.ColMajor, mat)
        idx = lambda: a.rowidxs.copy()
    elif fmt == "csr":
        a = dense_to_csr(mat)
        idx = lambda: a.colidxs.copy()
    else:
        a = _shuffled_coo(mat)
        idx = lambda: np.concatenate([a.rows, a.cols])
    before = idx()
    reindex_inplace(a, IndexBase.One)
    assert a.index_base is IndexBase.One
    np.testing.assert_array_equal(idx(), before + 1)
    reindex_inplace(a, IndexBase.One)
    np.testing.assert_array_equal(idx(), before + 1)
    reindex_inplace(a, IndexBase.Zero)
    np.testing.assert_array_equal(idx(), before)


def test_one_based_to_dense_matches_zero_based():
    mat = _sparsify(5, 5, 0.5, seed=8)
    a = dense_to_csr(mat)
    reindex_inplace(a, IndexBase.One)
    np.testing.assert_array_equal(a.to_dense(), mat)