"""
regcore: dense linear algebra and regression fitting with R-compatible numerics.

Copyright (C) 2024 SGCX
Licensed under GPL-3.0
"""

__version__ = "1.0.0"

# Import main user-facing API
from .lm import lm, LinearModel
from .glm import glm, GLM, GLMResult
from .diagnostics import diagnostics, DiagnosticsReport, InfluentialObservation
from .anova import anova, AnovaResult

from ._core.families import (
    Family, Gaussian, Binomial, Poisson, Gamma,
    gaussian, binomial, poisson,
)
from ._core.control import GLMControl
from .exceptions import (
    DimensionMismatchError,
    SingularMatrixError,
    InsufficientDataError,
    DomainError,
    ConvergenceWarning,
    RankDeficientWarning,
    InfluenceWarning,
)

# Import backend utilities (for advanced users)
from ._backends import get_backend, list_available_backends

__all__ = [
    'lm',
    'LinearModel',
    'glm',
    'GLM',
    'GLMResult',
    'diagnostics',
    'DiagnosticsReport',
    'InfluentialObservation',
    'anova',
    'AnovaResult',
    'Family',
    'Gaussian',
    'Binomial',
    'Poisson',
    'Gamma',
    'gaussian',
    'binomial',
    'poisson',
    'GLMControl',
    'DimensionMismatchError',
    'SingularMatrixError',
    'InsufficientDataError',
    'DomainError',
    'ConvergenceWarning',
    'RankDeficientWarning',
    'InfluenceWarning',
    'get_backend',
    'list_available_backends',
]
