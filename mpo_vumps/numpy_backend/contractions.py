"""
Low level tensor network manipulations.

Conventions
                         3
      2                  |
      |              1---W---2
      A---3              |
      |                  4
      1

  2---A---3          1---GL---            ---GR---1
      |                  |---2        2---|
      1              3---GL---            ---GR---3

MPS tensors are stored (d, chiL, chiR). MPO tensors are stored
(m_l, m_r, s_out, s_in) where s_out meets the bra and s_in meets the ket.
Environments are stored (bra, mpo, ket), both living on the bond to the
left of their site.
"""
import tensornetwork as tn


def leftmult(lam, gam):
    """
    2--lam--gam--3
            |
            1
            |
    where lam is stored 1--lam--2
    """
    out = tn.ncon([lam, gam],
                  [[-2, 1],
                   [-1, 1, -3]], backend="numpy")
    return out


def rightmult(gam, lam):
    """
    2--gam--lam--3
       |
       1
       |
    """
    out = tn.ncon([gam, lam],
                  [[-1, -2, 1],
                   [1, -3]], backend="numpy")
    return out


###############################################################################
# Chain contractors - MPS.
###############################################################################
def proj(A, B):
    """
    2   2
    |---|
    |   |
    A   B
    |   |
    |---|
    1   1
    Contract A with B to find the bilinear pairing (A, B).
    """
    idxs = [[1, 2], [1, 2]]
    contract = [A, B]
    ans = tn.ncon(contract, idxs, backend="numpy")
    return ans


def XopL(A, B=None, X=None):
    """
      |---A---2
      |   |
      X   |
      |   |
      |---B---1
    B is the (already conjugated) bra tensor.
    """
    if B is None:
        B = A.conj()
    if X is not None:
        A = leftmult(X, A)
    idx = [(2, 1, -2),
           (2, 1, -1)]
    return tn.ncon([A, B], idx, backend="numpy")


def XopR(A, B=None, X=None):
    """
      2---A---|
          |   |
          |   X
          |   |
      1---B---|
    """
    if B is None:
        B = A.conj()
    if X is not None:
        B = rightmult(B, X)
    idx = [(2, -2, 1),
           (2, -1, 1)]
    return tn.ncon([A, B], idx, backend="numpy")


###############################################################################
# Chain contractors - MPO.
###############################################################################
def mpo_XopL(GL, A, W, B=None):
    """
      |---A---3
      |   |
      GL--W---2
      |   |
      |---B---1
    """
    if B is None:
        B = A.conj()
    to_contract = [GL, A, W, B]
    idxs = [(1, 2, 3),
            (4, 3, -3),
            (2, -2, 5, 4),
            (5, 1, -1)]
    return tn.ncon(to_contract, idxs, backend="numpy")


def mpo_XopR(GR, A, W, B=None):
    """
      3---A---|
          |   |
      2---W---GR
          |   |
      1---B---|
    """
    if B is None:
        B = A.conj()
    to_contract = [GR, A, W, B]
    idxs = [(1, 2, 3),
            (4, -3, 3),
            (-2, 2, 5, 4),
            (5, -1, 1)]
    return tn.ncon(to_contract, idxs, backend="numpy")


def env_overlap(GL, C, GR, D=None):
    """
      |---C---|
      |       |
      GL------GR
      |       |
      |---D---|
    D is the conjugated bra bond tensor, C.conj() by default.
    """
    if D is None:
        D = C.conj()
    to_contract = [GL, C, D, GR]
    idxs = [(1, 2, 3),
            (3, 4),
            (1, 5),
            (5, 2, 4)]
    return tn.ncon(to_contract, idxs, backend="numpy")


##############################################################################
# VUMPS heff
##############################################################################
def apply_HAc(A_C, GL, W, GR):
    """
      |---A_C---|
      |    |    |
      GL---W----GR
      |    |    |
      2    1    3
    """
    to_contract = [GL, A_C, W, GR]
    idxs = [(-2, 1, 2),
            (3, 2, 4),
            (1, 5, -1, 3),
            (-3, 5, 4)]
    A_C_prime = tn.ncon(to_contract, idxs, backend="numpy")
    return A_C_prime


def apply_Hc(C, GL, GR):
    """
      |---C---|
      |       |
      GL------GR
      |       |
      1       2
    """
    to_contract = [GL, C, GR]
    idxs = [(-1, 1, 2),
            (2, 3),
            (-2, 1, 3)]
    C_prime = tn.ncon(to_contract, idxs, backend="numpy")
    return C_prime
