"""
Likelihood/Link Models.

Wicket model (binomial-logit), for bowler b facing batter a in stratum k:

    log-odds(survival) = nu_k + theta_a - phi_b

Runs model (log-linear), counting N[a, b, k] balls where a scored k off b:

    log E[N] = log nu_k + k * (theta_a - phi_b) + alpha_ab

alpha_ab is a per-pair nuisance term. Given the other parameters its
maximum-likelihood value is closed-form,

    alpha_ab = log n_ab - log sum_j nu_j exp(j * d_ab),

and substituting it back leaves the multinomial likelihood over run values.
The runs model is therefore fitted over competitors plus log nu_1..nu_6 only;
nu_0 is the reference category and fixed at 1.

All abilities and nu's are on the natural-log scale. The Average sentinel has
no column and contributes exactly 0 to every linear predictor, unless a
reference offset is passed to evaluate a recentered parameterization.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy import sparse
from scipy.special import expit, gammaln, log_softmax, logsumexp

from cricket_ratings.config import RUN_CATEGORIES
from cricket_ratings.models.design import ObservationSet

logger = logging.getLogger(__name__)


class _LinkModel:
    """Shared parameter bookkeeping for both models."""

    def __init__(self, obs: ObservationSet, aux_names: list[str]):
        self.obs = obs
        self.index = obs.index
        self.aux_names = aux_names

    @property
    def n_competitors(self) -> int:
        return len(self.index)

    @property
    def n_params(self) -> int:
        return self.n_competitors + len(self.aux_names)

    @property
    def param_names(self) -> list[str]:
        return [c.identity for c in self.index] + self.aux_names

    def split(self, beta: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """(competitor abilities, auxiliary parameters)."""
        return beta[: self.n_competitors], beta[self.n_competitors:]

    def initial_params(self) -> np.ndarray:
        return np.zeros(self.n_params)

    def bounds(self, ability_bound: float) -> list[tuple[Optional[float], Optional[float]]]:
        """Box constraints: abilities are bounded, auxiliary parameters are free."""
        return (
            [(-ability_bound, ability_bound)] * self.n_competitors
            + [(None, None)] * len(self.aux_names)
        )


class BinomialLogitModel(_LinkModel):
    """Wicket model: survival log-odds are nu[stratum] + batter - bowler."""

    def __init__(self, obs: ObservationSet):
        super().__init__(obs, [f"nu[{s}]" for s in obs.stratum_names])
        self.X = obs.design_matrix()
        self.wickets = obs.outcome[:, 0]
        self.survivals = obs.outcome[:, 1]
        self.balls = self.wickets + self.survivals

    @property
    def aux_shift_weights(self) -> np.ndarray:
        """How each nu moves when the batter-minus-bowler contrast shifts by 1."""
        return np.ones(len(self.aux_names))

    def linear_predictor(
        self, beta: np.ndarray, reference: Optional[tuple[float, float]] = None,
    ) -> np.ndarray:
        eta = self.X @ beta
        if reference is not None:
            eta = eta + self.obs.reference_offset(*reference)
        return eta

    def survival_prob(
        self, beta: np.ndarray, reference: Optional[tuple[float, float]] = None,
    ) -> np.ndarray:
        return expit(self.linear_predictor(beta, reference))

    def loglik(self, beta: np.ndarray) -> float:
        eta = self.linear_predictor(beta)
        return float(np.sum(self.survivals * eta - self.balls * np.logaddexp(0.0, eta)))

    def gradient(self, beta: np.ndarray) -> np.ndarray:
        p = self.survival_prob(beta)
        return self.X.T @ (self.survivals - self.balls * p)

    def information(self, beta: np.ndarray) -> np.ndarray:
        p = self.survival_prob(beta)
        w = self.balls * p * (1.0 - p)
        return (self.X.T @ sparse.diags(w) @ self.X).toarray()


class MultinomialRunsModel(_LinkModel):
    """Runs model with the per-pair nuisance terms profiled out."""

    def __init__(self, obs: ObservationSet, categories: tuple[int, ...] = RUN_CATEGORIES):
        if categories[0] != 0:
            raise ValueError("The first run category must be 0 (the reference category)")
        super().__init__(obs, [f"log_nu[{k}]" for k in categories[1:]])
        self.categories = categories
        self.k = np.array(categories, dtype=float)
        self.Z = obs.competitor_matrix()
        self.counts = obs.outcome
        self.balls = self.counts.sum(axis=1)

    def log_nu(self, beta: np.ndarray) -> np.ndarray:
        """Full log nu vector, reference category included."""
        _, aux = self.split(beta)
        return np.concatenate([[0.0], aux])

    @property
    def aux_shift_weights(self) -> np.ndarray:
        """How each log nu moves when the batter-minus-bowler contrast shifts by 1."""
        return self.k[1:].copy()

    def contrast(
        self, beta: np.ndarray, reference: Optional[tuple[float, float]] = None,
    ) -> np.ndarray:
        """Per-row batter-minus-bowler log-ability."""
        abilities, _ = self.split(beta)
        d = self.Z @ abilities
        if reference is not None:
            d = d + self.obs.reference_offset(*reference)
        return d

    def scores(
        self, beta: np.ndarray, reference: Optional[tuple[float, float]] = None,
    ) -> np.ndarray:
        return self.log_nu(beta)[None, :] + np.outer(self.contrast(beta, reference), self.k)

    def category_probs(
        self, beta: np.ndarray, reference: Optional[tuple[float, float]] = None,
    ) -> np.ndarray:
        """P(run value | pair), one row per observation, rows sum to 1."""
        return np.exp(log_softmax(self.scores(beta, reference), axis=1))

    def nuisance(self, beta: np.ndarray) -> np.ndarray:
        """Profiled per-pair terms alpha_ab."""
        return np.log(self.balls) - logsumexp(self.scores(beta), axis=1)

    def expected_counts(self, beta: np.ndarray) -> np.ndarray:
        """Poisson means exp(alpha + log nu_k + k d) at the profiled alpha."""
        return self.balls[:, None] * self.category_probs(beta)

    def loglik(self, beta: np.ndarray) -> float:
        log_p = log_softmax(self.scores(beta), axis=1)
        return float(np.sum(self.counts * log_p))

    def poisson_loglik(self, beta: np.ndarray) -> float:
        """Full Poisson log-likelihood at the profiled nuisance values."""
        mu = self.expected_counts(beta)
        with np.errstate(divide="ignore"):
            log_mu = np.where(mu > 0, np.log(mu), 0.0)
        return float(np.sum(self.counts * log_mu - mu - gammaln(self.counts + 1.0)))

    def gradient(self, beta: np.ndarray) -> np.ndarray:
        p = self.category_probs(beta)
        mean_k = p @ self.k
        grad_abilities = self.Z.T @ (self.counts @ self.k - self.balls * mean_k)
        grad_nu = (self.counts - self.balls[:, None] * p)[:, 1:].sum(axis=0)
        return np.concatenate([grad_abilities, grad_nu])

    def information(self, beta: np.ndarray) -> np.ndarray:
        """Profiled Fisher information, assembled block by block.

        Equal to the Schur complement of the Poisson information after
        eliminating the nuisance terms.
        """
        p = self.category_probs(beta)
        n = self.balls
        mean_k = p @ self.k
        var_k = p @ (self.k ** 2) - mean_k ** 2

        cc = (self.Z.T @ sparse.diags(n * var_k) @ self.Z).toarray()
        cov_k_nu = n[:, None] * p[:, 1:] * (self.k[None, 1:] - mean_k[:, None])
        c_nu = self.Z.T @ cov_k_nu
        weighted = n[:, None] * p[:, 1:]
        nu_nu = np.diag(weighted.sum(axis=0)) - weighted.T @ p[:, 1:]

        return np.block([[cc, c_nu], [c_nu.T, nu_nu]])
