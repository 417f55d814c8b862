"""
Infinite, periodic matrix product operators.

Both variants expose the same interface (period, tensor, slice_tensor,
bond_dims, physical_dims, dtype and the `triangular` tag); the environment
solver picks its algorithm from the tag.
"""
import numpy as np


class InfMpo:
    """
    A periodic MPO with no further structure, e.g. the row-to-row transfer
    matrix of a classical partition function. Its environments are dominant
    eigenvectors and lambda its dominant eigenvalue per unit cell.

    MEMBERS
    -------
    self.tensors: List of (m_l, m_r, s_out, s_in) arrays, one per site.
    """
    triangular = False

    def __init__(self, tensors):
        if not isinstance(tensors, (list, tuple)):
            tensors = [tensors]
        if len(tensors) == 0:
            raise ValueError("An MPO needs at least one site tensor.")
        tensors = [np.asarray(W) for W in tensors]
        for w, W in enumerate(tensors):
            if W.ndim != 4:
                raise ValueError("MPO tensor " + str(w) + " has "
                                 + str(W.ndim) + " legs; expected 4.")
            if W.shape[2] != W.shape[3]:
                raise ValueError("MPO tensor " + str(w) + " has mismatched "
                                 "physical legs " + str(W.shape[2:]))
            W_next = tensors[(w+1) % len(tensors)]
            if W.shape[1] != W_next.shape[0]:
                raise ValueError("Auxiliary dimension mismatch between sites "
                                 + str(w) + " and "
                                 + str((w+1) % len(tensors)))
        self.tensors = tensors

    def period(self) -> int:
        return len(self.tensors)

    @property
    def dtype(self):
        return np.result_type(*self.tensors)

    def tensor(self, w):
        return self.tensors[w % self.period()]

    def slice_tensor(self, w, rows=None, cols=None):
        """
        The tensor at site w restricted to the auxiliary indices rows (on
        its left) and cols (on its right). rows and cols may be slices or
        lists of indices; None keeps every index.
        """
        W = self.tensor(w)
        if rows is not None:
            W = W[rows]
        if cols is not None:
            W = W[:, cols]
        return W

    def bond_dims(self):
        """
        bond_dims()[w] is the auxiliary dimension to the right of site w.
        """
        return [W.shape[1] for W in self.tensors]

    def physical_dims(self):
        return [W.shape[2] for W in self.tensors]

    def repeat(self, n: int):
        """
        The same operator with an n times longer unit cell.
        """
        return type(self)(self.tensors * n)

    def __repr__(self):
        return (type(self).__name__ + "(period=" + str(self.period())
                + ", bond_dims=" + str(self.bond_dims()) + ", physical_dims="
                + str(self.physical_dims()) + ")")


class InfJMpo(InfMpo):
    """
    A periodic MPO with Jordan block structure, representing an extensive
    sum of local terms. Every site tensor, read as a matrix over its
    auxiliary indices, is upper triangular with identity blocks in the
    (0, 0) and (N-1, N-1) corners.
    """
    triangular = True

    def __init__(self, tensors, atol=1E-12):
        super().__init__(tensors)
        N = self.tensors[0].shape[0]
        for w, W in enumerate(self.tensors):
            if W.shape[0] != N or W.shape[1] != N:
                raise ValueError("Jordan MPO tensors need square auxiliary "
                                 "blocks of a common size; site " + str(w)
                                 + " has " + str(W.shape[:2]))
            eye = np.eye(W.shape[2])
            if not (np.allclose(W[0, 0], eye, atol=atol)
                    and np.allclose(W[N-1, N-1], eye, atol=atol)):
                raise ValueError("Jordan MPO tensor " + str(w) + " lacks "
                                 "identity corner blocks.")
            lower = np.tril_indices(N, k=-1)
            if not np.allclose(W[lower], 0, atol=atol):
                raise ValueError("Jordan MPO tensor " + str(w) + " is not "
                                 "upper triangular.")
        self.atol = atol

    def is_zero_block(self, i):
        """
        True if the diagonal block (i, i) of the unit cell transfer vanishes.
        """
        return any(np.allclose(W[i, i], 0, atol=self.atol)
                   for W in self.tensors)

    def is_identity_block(self, i):
        eye = np.eye(self.tensors[0].shape[2])
        return all(np.allclose(W[i, i], eye, atol=self.atol)
                   for W in self.tensors)

    def repeat(self, n: int):
        return InfJMpo(self.tensors * n, atol=self.atol)

    def __add__(self, b):
        """
        Adds b (a scalar, or one scalar per site) times the identity to the
        local term of every site.
        """
        if np.isscalar(b):
            b = [b]*self.period()
        if len(b) != self.period():
            raise ValueError("Need one scalar per site; got " + str(len(b)))
        tensors = []
        for W, b_w in zip(self.tensors, b):
            W = W.astype(np.result_type(W, b_w), copy=True)
            W[0, -1] = W[0, -1] + b_w*np.eye(W.shape[2], dtype=W.dtype)
            tensors.append(W)
        return InfJMpo(tensors, atol=self.atol)

    __radd__ = __add__

    def __sub__(self, b):
        if np.isscalar(b):
            return self + (-b)
        return self + [-b_w for b_w in b]

    def renormalize(self, lambda_):
        """
        Shifts the operator by -lambda_ per unit cell.
        """
        return self - lambda_ / self.period()

    @classmethod
    def twosite(cls, h2, h1=None, period=1, tol=1E-12):
        """
        The Jordan MPO of sum_i h2(i, i+1) + sum_i h1(i).

        PARAMETERS
        ----------
        h2 (array, (d, d, d, d)): The two-site term, indexed
                                  (out_1, out_2, in_1, in_2).
        h1 (array, (d, d), optional): A one-site term.
        period (int): The unit cell of the result.
        tol (float): Singular values of h2 below tol are dropped.
        """
        h2 = np.asarray(h2)
        d = h2.shape[0]
        if h2.shape != (d, d, d, d):
            raise ValueError("h2 must have shape (d, d, d, d); got "
                             + str(h2.shape))
        mat = h2.transpose((0, 2, 1, 3)).reshape((d*d, d*d))
        U, S, Vh = np.linalg.svd(mat)
        K = int(np.sum(S > tol))
        N = K + 2
        W = np.zeros((N, N, d, d), dtype=np.result_type(h2, np.float64))
        W[0, 0] = np.eye(d)
        W[N-1, N-1] = np.eye(d)
        for k in range(K):
            W[0, 1+k] = (U[:, k]*np.sqrt(S[k])).reshape((d, d))
            W[1+k, N-1] = (np.sqrt(S[k])*Vh[k, :]).reshape((d, d))
        if h1 is not None:
            h1 = np.asarray(h1)
            if h1.shape != (d, d):
                raise ValueError("h1 must have shape (d, d); got "
                                 + str(h1.shape))
            W = W.astype(np.result_type(W, h1))
            W[0, N-1] = h1
        return cls([W]*period)
