"""
The uniform MPS record. Canonicalization lives in mpo_vumps.canonical.
"""
from typing import NamedTuple

import mpo_vumps.backend as backend


class UniformMps(NamedTuple):
    """
    A translation-invariant MPS of period L, in mixed canonical form.

    Each field is a length-L list. AL[w] and AR[w] are (d, chiL, chiR)
    left and right isometries, C[w] is the (chi, chi) gauge transform on
    the bond between sites w and w+1, and AC[w] = AL[w] C[w] =
    C[w-1] AR[w]. New canonical forms are built as new records so that the
    four lists are always replaced together.
    """
    AL: list
    AR: list
    C: list
    AC: list

    def period(self) -> int:
        return len(self.AL)

    @property
    def dtype(self):
        return self.AL[0].dtype

    def physical_dims(self):
        return [A.shape[0] for A in self.AL]

    def bond_dims(self):
        """
        bond_dims()[w] is the dimension of the bond to the right of site w.
        """
        return [A.shape[2] for A in self.AL]


def repeat(mps, n: int):
    """
    The same state, described with an n times longer unit cell.
    """
    return UniformMps(list(mps.AL)*n, list(mps.AR)*n, list(mps.C)*n,
                      list(mps.AC)*n)


def normalize(mps):
    """
    Rescales C and AC to unit norm.
    """
    norm = backend.mps_linalg.norm
    C = [c / norm(c) for c in mps.C]
    AC = [ac / norm(ac) for ac in mps.AC]
    return mps._replace(C=C, AC=AC)
