"""
Maximum-likelihood optimizers.

Two strategies share one model interface (loglik, gradient, information):

1. IRLS / Fisher scoring (default). For both canonical-link models this is
   Newton's method on the (profiled) log-likelihood, with step halving when
   a step fails to improve it.
2. Bounded quasi-Newton (L-BFGS-B) directly on the log-likelihood, with
   ability columns boxed so near-separated competitors cannot diverge.

The Average reference columns and nu_0 are not in the parameter vector, so
the reference constraint holds by construction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np
from scipy.optimize import minimize

from cricket_ratings.config import FitMethod, OptimizerConfig
from cricket_ratings.errors import ConvergenceError, NumericalError

logger = logging.getLogger(__name__)

# Reciprocal condition number below which the information matrix is singular
MIN_RCOND = 1e-14


class LikelihoodModel(Protocol):
    n_params: int

    def loglik(self, beta: np.ndarray) -> float: ...

    def gradient(self, beta: np.ndarray) -> np.ndarray: ...

    def information(self, beta: np.ndarray) -> np.ndarray: ...

    def initial_params(self) -> np.ndarray: ...

    def bounds(self, ability_bound: float) -> list: ...


@dataclass
class FitResult:
    """Converged maximum-likelihood estimate."""
    params: np.ndarray
    loglik: float
    iterations: int
    method: FitMethod


def fit_irls(
    model: LikelihoodModel,
    config: OptimizerConfig = OptimizerConfig(),
    beta0: Optional[np.ndarray] = None,
) -> FitResult:
    """Fisher scoring with step halving.

    Converges when |l_new - l_old| < tol * (|l_new| + 0.1).

    Raises:
        NumericalError: singular information matrix or non-finite likelihood
        ConvergenceError: max_iter reached without meeting the tolerance
    """
    beta = model.initial_params() if beta0 is None else np.asarray(beta0, dtype=float).copy()
    ll = model.loglik(beta)
    if not np.isfinite(ll):
        raise NumericalError("Log-likelihood is not finite at the initial point", beta, 0)

    for iteration in range(1, config.max_iter + 1):
        info = model.information(beta)
        grad = model.gradient(beta)
        if np.linalg.cond(info) * MIN_RCOND > 1.0:
            raise NumericalError(
                f"Information matrix is singular at iteration {iteration}", beta, iteration - 1,
            )
        try:
            step = np.linalg.solve(info, grad)
        except np.linalg.LinAlgError as e:
            raise NumericalError(f"Information matrix solve failed: {e}", beta, iteration - 1) from e
        if not np.all(np.isfinite(step)):
            raise NumericalError("Non-finite IRLS step", beta, iteration - 1)

        slack = config.tol * (abs(ll) + 0.1)
        scale = 1.0
        for _ in range(config.max_step_halvings + 1):
            candidate = beta + scale * step
            ll_new = model.loglik(candidate)
            if np.isfinite(ll_new) and ll_new >= ll - slack:
                break
            scale /= 2.0
        else:
            raise NumericalError(
                f"Step halving failed to improve the log-likelihood at iteration {iteration}",
                beta, iteration - 1,
            )

        delta = abs(ll_new - ll)
        beta, ll = candidate, ll_new
        logger.debug("IRLS iter %d: loglik=%.10f delta=%.3e step=%.3g", iteration, ll, delta, scale)

        if delta < config.tol * (abs(ll) + 0.1):
            logger.info("IRLS converged in %d iterations (loglik=%.6f)", iteration, ll)
            return FitResult(params=beta, loglik=ll, iterations=iteration, method=FitMethod.IRLS)

    raise ConvergenceError(
        f"IRLS did not converge in {config.max_iter} iterations", beta, config.max_iter,
    )


def fit_lbfgsb(
    model: LikelihoodModel,
    config: OptimizerConfig = OptimizerConfig(),
    beta0: Optional[np.ndarray] = None,
) -> FitResult:
    """Bounded quasi-Newton search on the negative log-likelihood."""
    x0 = model.initial_params() if beta0 is None else np.asarray(beta0, dtype=float).copy()
    if not np.isfinite(model.loglik(x0)):
        raise NumericalError("Log-likelihood is not finite at the initial point", x0, 0)

    result = minimize(
        lambda b: -model.loglik(b),
        x0,
        jac=lambda b: -model.gradient(b),
        method="L-BFGS-B",
        bounds=model.bounds(config.ability_bound),
        options={
            "maxiter": config.lbfgsb_max_iter,
            "maxfun": config.lbfgsb_max_fun,
            "ftol": config.tol,
            "gtol": 1e-8,
        },
    )

    if not np.isfinite(result.fun) or not np.all(np.isfinite(result.x)):
        raise NumericalError("L-BFGS-B reached a non-finite point", x0, int(result.nit))
    if not result.success:
        # status 1: iteration or function-evaluation limit reached
        if result.status == 1:
            raise ConvergenceError(
                f"L-BFGS-B stopped at its limit after {result.nit} iterations: {result.message}",
                result.x, int(result.nit),
            )
        raise NumericalError(f"L-BFGS-B failed: {result.message}", result.x, int(result.nit))

    bounded = np.array([hi is not None for _, hi in model.bounds(config.ability_bound)])
    at_bound = int(np.sum(bounded & (np.abs(result.x) >= config.ability_bound - 1e-9)))
    if at_bound:
        logger.warning("%d parameters finished on the %.1f ability bound", at_bound, config.ability_bound)
    logger.info("L-BFGS-B converged in %d iterations (loglik=%.6f)", result.nit, -result.fun)
    return FitResult(
        params=result.x, loglik=float(-result.fun), iterations=int(result.nit), method=FitMethod.LBFGSB,
    )


def fit(
    model: LikelihoodModel,
    config: OptimizerConfig = OptimizerConfig(),
    beta0: Optional[np.ndarray] = None,
) -> FitResult:
    """Fit with the configured strategy."""
    if config.method == FitMethod.LBFGSB:
        return fit_lbfgsb(model, config, beta0)
    return fit_irls(model, config, beta0)
