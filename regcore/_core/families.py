"""
GLM family definitions.

Defines link functions, variance functions, deviance residuals and AIC
for the four supported exponential families. The set is closed:
Gaussian, Binomial, Poisson and Gamma, each with a fixed list of links.
"""

import numpy as np
from abc import ABC, abstractmethod
from scipy import stats

from .control import MU_CLAMP
from ..exceptions import DomainError


# ============================================================================
# Links
# ============================================================================

class Link(ABC):
    """Base class for link functions."""

    name = None

    @abstractmethod
    def linkfun(self, mu: np.ndarray) -> np.ndarray:
        """Link function: η = g(μ)"""
        pass

    @abstractmethod
    def linkinv(self, eta: np.ndarray) -> np.ndarray:
        """Inverse link: μ = g⁻¹(η)"""
        pass

    @abstractmethod
    def mu_eta(self, eta: np.ndarray) -> np.ndarray:
        """Derivative: dμ/dη"""
        pass

    def valideta(self, eta: np.ndarray) -> bool:
        """Check if η values are valid."""
        return bool(np.all(np.isfinite(eta)))

    def __eq__(self, other):
        return type(self) is type(other)

    def __hash__(self):
        return hash(type(self))

    def __repr__(self):
        return f"{type(self).__name__}()"


class IdentityLink(Link):
    name = "identity"

    def linkfun(self, mu):
        return np.asarray(mu, dtype=np.float64).copy()

    def linkinv(self, eta):
        return np.asarray(eta, dtype=np.float64).copy()

    def mu_eta(self, eta):
        return np.ones_like(np.asarray(eta, dtype=np.float64))


class LogLink(Link):
    name = "log"

    def linkfun(self, mu):
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.log(mu)

    def linkinv(self, eta):
        # Keep μ strictly positive (R: pmax(exp(eta), .Machine$double.eps))
        return np.maximum(np.exp(eta), np.finfo(np.float64).eps)

    def mu_eta(self, eta):
        return np.maximum(np.exp(eta), np.finfo(np.float64).eps)


class InverseLink(Link):
    name = "inverse"

    def linkfun(self, mu):
        with np.errstate(divide="ignore"):
            return 1.0 / np.asarray(mu, dtype=np.float64)

    def linkinv(self, eta):
        with np.errstate(divide="ignore"):
            return 1.0 / np.asarray(eta, dtype=np.float64)

    def mu_eta(self, eta):
        eta = np.asarray(eta, dtype=np.float64)
        with np.errstate(divide="ignore"):
            return -1.0 / (eta * eta)

    def valideta(self, eta):
        return bool(np.all(np.isfinite(eta)) and np.all(eta != 0))


class LogitLink(Link):
    """
    Logit link.

    Replicates R's binomial()$linkinv including the thresholding at
    ±30 to prevent overflow.
    """

    name = "logit"

    # Thresholds from R's family.c
    THRESH = 30.0
    MTHRESH = -30.0
    EPS = np.finfo(np.float64).eps

    def linkfun(self, mu):
        mu = np.asarray(mu, dtype=np.float64)
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.log(mu / (1 - mu))

    def linkinv(self, eta):
        eta = np.asarray(eta, dtype=np.float64)
        mu = np.empty_like(eta)

        # η < -30: return ε
        mu[eta < self.MTHRESH] = self.EPS
        # η > 30: return 1 - ε
        mu[eta > self.THRESH] = 1 - self.EPS
        # -30 ≤ η ≤ 30: standard formula
        mask = (eta >= self.MTHRESH) & (eta <= self.THRESH)
        mu[mask] = 1.0 / (1.0 + np.exp(-eta[mask]))
        # NaN propagates
        mu[np.isnan(eta)] = np.nan
        return mu

    def mu_eta(self, eta):
        eta = np.asarray(eta, dtype=np.float64)
        d = np.empty_like(eta)

        # Outside [-30, 30]: return ε
        outside = (eta < self.MTHRESH) | (eta > self.THRESH)
        d[outside] = self.EPS
        inside = ~outside
        exp_eta = np.exp(eta[inside])
        d[inside] = exp_eta / (1.0 + exp_eta) ** 2
        return d


class ProbitLink(Link):
    name = "probit"

    # R: thresh <- -qnorm(.Machine$double.eps)
    THRESH = -stats.norm.ppf(np.finfo(np.float64).eps)
    EPS = np.finfo(np.float64).eps

    def linkfun(self, mu):
        return stats.norm.ppf(mu)

    def linkinv(self, eta):
        eta = np.clip(np.asarray(eta, dtype=np.float64), -self.THRESH, self.THRESH)
        return stats.norm.cdf(eta)

    def mu_eta(self, eta):
        return np.maximum(stats.norm.pdf(eta), self.EPS)


class SqrtLink(Link):
    name = "sqrt"

    def linkfun(self, mu):
        with np.errstate(invalid="ignore"):
            return np.sqrt(mu)

    def linkinv(self, eta):
        eta = np.asarray(eta, dtype=np.float64)
        return eta * eta

    def mu_eta(self, eta):
        return 2.0 * np.asarray(eta, dtype=np.float64)

    def valideta(self, eta):
        return bool(np.all(np.isfinite(eta)) and np.all(eta > 0))


LINKS = {
    link.name: link
    for link in (IdentityLink, LogLink, InverseLink, LogitLink, ProbitLink, SqrtLink)
}


# ============================================================================
# Families
# ============================================================================

class Family(ABC):
    """Base class for GLM families."""

    # Allowed link names; the first is the default
    links = ()
    # Dispersion fixed at 1 (binomial, poisson) or estimated
    fixed_dispersion = False

    def __init__(self, link: str = None):
        if link is None:
            link = self.links[0]
        if isinstance(link, Link):
            link = link.name
        if link not in self.links:
            raise ValueError(
                f"Link '{link}' not available for {self.name} family; "
                f"available links are {', '.join(repr(l) for l in self.links)}"
            )
        self._link = LINKS[link]()

    @property
    @abstractmethod
    def name(self) -> str:
        """Family name."""
        pass

    @property
    def link(self) -> str:
        """Link name."""
        return self._link.name

    def linkfun(self, mu: np.ndarray) -> np.ndarray:
        """Link function: η = g(μ)"""
        return self._link.linkfun(mu)

    def linkinv(self, eta: np.ndarray) -> np.ndarray:
        """Inverse link: μ = g⁻¹(η)"""
        return self._link.linkinv(eta)

    def mu_eta(self, eta: np.ndarray) -> np.ndarray:
        """Derivative: dμ/dη"""
        return self._link.mu_eta(eta)

    def valideta(self, eta: np.ndarray) -> bool:
        """Check if η values are valid."""
        return self._link.valideta(eta)

    @abstractmethod
    def variance(self, mu: np.ndarray) -> np.ndarray:
        """Variance function: V(μ)"""
        pass

    @abstractmethod
    def dev_resids(
        self,
        y: np.ndarray,
        mu: np.ndarray,
        wt: np.ndarray
    ) -> np.ndarray:
        """Unit deviances (weighted)."""
        pass

    @abstractmethod
    def aic(
        self,
        y: np.ndarray,
        mu: np.ndarray,
        wt: np.ndarray,
        dev: float
    ) -> float:
        """-2 log-likelihood (plus 2 for an estimated dispersion)."""
        pass

    @abstractmethod
    def initialize(self, y: np.ndarray, wt: np.ndarray) -> np.ndarray:
        """Starting values for μ."""
        pass

    def validmu(self, mu: np.ndarray) -> np.ndarray:
        """Elementwise check that μ lies in the family's domain."""
        return np.isfinite(mu)

    def clamp_mu(self, mu: np.ndarray) -> np.ndarray:
        """Move invalid μ back inside the domain."""
        return mu

    def validate_response(self, y: np.ndarray, wt: np.ndarray):
        """Raise DomainError if y is outside the family's support."""
        pass

    def __eq__(self, other):
        return type(self) is type(other) and self.link == other.link

    def __hash__(self):
        return hash((type(self), self.link))

    def __repr__(self):
        return f"{type(self).__name__}(link='{self.link}')"


class Gaussian(Family):
    """Gaussian family (default identity link)."""

    links = ("identity", "log", "inverse")

    @property
    def name(self) -> str:
        return "gaussian"

    def variance(self, mu):
        return np.ones_like(mu)

    def dev_resids(self, y, mu, wt):
        return wt * (y - mu) ** 2

    def aic(self, y, mu, wt, dev):
        # σ² estimated by dev / n; log(w) terms from Var(y_i) = σ² / w_i
        nobs = y.size
        positive = wt > 0
        return (nobs * (np.log(2 * np.pi * dev / nobs) + 1)
                - np.sum(np.log(wt[positive])) + 2)

    def initialize(self, y, wt):
        return y.astype(np.float64).copy()


class Binomial(Family):
    """
    Binomial family (default logit link).

    The response is a proportion in [0, 1]; prior weights are the
    number of trials.
    """

    links = ("logit", "probit", "log")
    fixed_dispersion = True

    @property
    def name(self) -> str:
        return "binomial"

    def variance(self, mu):
        """Variance: V(μ) = μ(1-μ)"""
        return mu * (1 - mu)

    def dev_resids(self, y, mu, wt):
        """Matches R's binomial_dev_resids in family.c."""
        y = np.asarray(y, dtype=np.float64)
        mu = np.asarray(mu, dtype=np.float64)
        with np.errstate(divide="ignore", invalid="ignore"):
            d1 = np.where(y > 0, y * np.log(y / mu), 0.0)
            d2 = np.where(y < 1, (1 - y) * np.log((1 - y) / (1 - mu)), 0.0)
        return 2 * wt * (d1 + d2)

    def aic(self, y, mu, wt, dev):
        m = np.where(wt > 0, wt, 1.0)
        successes = np.round(m * y)
        ll = stats.binom.logpmf(successes, np.round(m), mu)
        return -2 * np.sum(np.where(wt > 0, ll, 0.0))

    def initialize(self, y, wt):
        return self.clamp_mu((wt * y + 0.5) / (wt + 1))

    def validmu(self, mu):
        # Fitted probabilities stay MU_CLAMP away from 0 and 1
        return np.isfinite(mu) & (mu >= MU_CLAMP) & (mu <= 1 - MU_CLAMP)

    def clamp_mu(self, mu):
        return np.clip(mu, MU_CLAMP, 1 - MU_CLAMP)

    def validate_response(self, y, wt):
        if np.any((y < 0) | (y > 1)):
            raise DomainError("y values must be 0 <= y <= 1 for the binomial family")


class Poisson(Family):
    """Poisson family (default log link)."""

    links = ("log", "identity", "sqrt")
    fixed_dispersion = True

    @property
    def name(self) -> str:
        return "poisson"

    def variance(self, mu):
        return mu

    def dev_resids(self, y, mu, wt):
        y = np.asarray(y, dtype=np.float64)
        mu = np.asarray(mu, dtype=np.float64)
        with np.errstate(divide="ignore", invalid="ignore"):
            r = np.where(y > 0, y * np.log(y / mu) - (y - mu), mu)
        return 2 * wt * r

    def aic(self, y, mu, wt, dev):
        return -2 * np.sum(stats.poisson.logpmf(y, mu) * wt)

    def initialize(self, y, wt):
        return y + 0.1

    def validmu(self, mu):
        return np.isfinite(mu) & (mu > 0)

    def clamp_mu(self, mu):
        return np.maximum(mu, MU_CLAMP)

    def validate_response(self, y, wt):
        if np.any(y < 0):
            raise DomainError("negative values not allowed for the 'Poisson' family")


class Gamma(Family):
    """Gamma family (default inverse link)."""

    links = ("inverse", "identity", "log")

    @property
    def name(self) -> str:
        return "Gamma"

    def variance(self, mu):
        return mu ** 2

    def dev_resids(self, y, mu, wt):
        y = np.asarray(y, dtype=np.float64)
        mu = np.asarray(mu, dtype=np.float64)
        return -2 * wt * (np.log(y / mu) - (y - mu) / mu)

    def aic(self, y, mu, wt, dev):
        n = np.sum(wt)
        disp = dev / n
        ll = stats.gamma.logpdf(y, a=1 / disp, scale=mu * disp)
        return -2 * np.sum(ll * wt) + 2

    def initialize(self, y, wt):
        return y.astype(np.float64).copy()

    def validmu(self, mu):
        return np.isfinite(mu) & (mu > 0)

    def clamp_mu(self, mu):
        return np.maximum(mu, MU_CLAMP)

    def validate_response(self, y, wt):
        if np.any(y <= 0):
            raise DomainError("non-positive values not allowed for the 'Gamma' family")


# Lower-case constructors, as in R
def gaussian(link: str = "identity") -> Gaussian:
    return Gaussian(link)


def binomial(link: str = "logit") -> Binomial:
    return Binomial(link)


def poisson(link: str = "log") -> Poisson:
    return Poisson(link)


__all__ = [
    "Link",
    "LINKS",
    "Family",
    "Gaussian",
    "Binomial",
    "Poisson",
    "Gamma",
    "gaussian",
    "binomial",
    "poisson",
]
