"""
Backend selection and management.

Provides a unified interface to the solver backends:
- 'reference': regcore's own Householder QR / Jacobi / Gauss-Jordan code
- 'lapack': SciPy's LAPACK routines, same contract
"""

from .base import BackendBase
from .reference_backend import ReferenceBackend
from .lapack_backend import LapackBackend


_BACKENDS = {
    'reference': ReferenceBackend,
    'lapack': LapackBackend,
}


def get_backend(backend='reference') -> BackendBase:
    """
    Get computational backend.

    Parameters
    ----------
    backend : str or BackendBase
        Backend selection:
        - 'reference': Householder QR with pseudoinverse fallback (default)
        - 'lapack': SciPy/LAPACK QR with SVD fallback
        A BackendBase instance is returned unchanged.

    Returns
    -------
    BackendBase
        Backend instance

    Examples
    --------
    >>> backend = get_backend()
    >>> backend.name
    'reference'

    >>> # Cross-check against LAPACK
    >>> backend = get_backend('lapack')
    """
    if isinstance(backend, BackendBase):
        return backend
    try:
        return _BACKENDS[backend]()
    except (KeyError, TypeError):
        raise ValueError(
            f"Unknown backend: '{backend}'\n"
            f"Valid options: {', '.join(repr(name) for name in _BACKENDS)}"
        ) from None


def list_available_backends() -> list:
    """List names of available backends."""
    return list(_BACKENDS)


__all__ = [
    'get_backend',
    'list_available_backends',
    'BackendBase',
    'ReferenceBackend',
    'LapackBackend',
]
