import time
import jax.numpy as jnp


def tick():
    return time.perf_counter()


def tock(t0, dat=None):
    """
    Seconds elapsed since tick() returned t0. If dat is given, jax's
    asynchronous dispatch is first waited out on it; non-jax data (numpy
    arrays, lists of them, scalars) is converted before waiting.
    """
    if dat is not None:
        try:
            _ = dat.block_until_ready()
        except AttributeError:
            if isinstance(dat, (list, tuple)):
                dat = dat[-1]
            _ = jnp.asarray(dat).block_until_ready()
    return time.perf_counter() - t0
