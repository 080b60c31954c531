"""
Convolutional Analysis Operator Learning (CAOL) with orthogonality constraints.

Learns K filters h_k of shape R from signals x_1..x_L by alternating
minimization of

    sum_{l,k} 0.5 * ||h_k ⋆ x_l - z_lk||^2 + lam * ||z_lk||_0
    subject to H^H H = I / prod(R)

between hard-threshold sparse coding (closed form in Z) and an orthogonal
Procrustes filter update (closed form in H, restricted to rotations of the
initial bank H0). Both half-steps are exact minimizers, so the objective is
non-increasing.

The run is a pipeline of iterators:

    CAOLIterable          infinite stream of (H, objective), one pass per pull
    FilterHaltIterable    stops after the first H whose relative change <= tol
    itertools.islice      caps the number of iterations

``learn_filters`` drives the pipeline; ``learn_filters_unrolled`` performs the
same run as a single explicit loop and stops at the same iteration.

Reference: Chun & Fessler (2019). Convolutional analysis operator learning:
acceleration and convergence. IEEE Transactions on Image Processing.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .components.dict_updaters import ProcrustesUpdater
from .config import LearnerConfig, load_config, make_metadata
from .convergence import ConvergenceMonitor
from .core.filter_bank import FilterBank, natural_views, pack_filters, working_dtype
from .core.norms import relative_change
from .core.padding import filter_shape, pad_signals
from .exceptions import ConfigurationError, ShapeError
from .penalties import L0Penalty
from .sparse_coder import ConvolutionalSparseCoder

logger = logging.getLogger(__name__)


@dataclass
class CAOLState:
    """Buffers of one run; all are allocated once and overwritten in place."""
    padded_signals: List[np.ndarray]
    bank: FilterBank
    psi_z: np.ndarray                  # accumulator (prod(R), K)
    psi_views: List[np.ndarray]        # natural-shape views into psi_z
    coder: ConvolutionalSparseCoder
    updater: ProcrustesUpdater
    iteration: int = 0

    @property
    def H(self) -> np.ndarray:
        return self.bank.H


class CAOLIterable:
    """
    Infinite stream of filter updates.

    Every pull codes all signals with all filters, rebuilds the accumulator and
    applies one Procrustes update, then yields ``(H, objective)``. H is the live
    filter buffer of the run and is overwritten by the next pull; copy it to
    keep it. The objective is evaluated at the filters before the update and is
    None unless ``track_objective`` is set.

    Construction validates everything eagerly: ConfigurationError for a filter
    bank that is not scaled-orthonormal (before any signal is touched), then
    ShapeError for incompatible signals.

    Args:
        signals: L arrays with len(R) dimensions, each at least R in every dimension
        H0: Initial filters (prod(R), K) with H0^H H0 = I / prod(R)
        R: Filter shape
        lam: Sparsity weight (> 0)
        track_objective: Compute the objective on every pull
        n_jobs: Threads for the accumulation over filters (None: serial)
        rtol: Tolerance of the orthonormality check (None: sqrt(eps))
    """

    def __init__(self, signals: Sequence, H0, R, lam: float, track_objective: bool = False,
                 n_jobs: Optional[int] = None, rtol: Optional[float] = None):
        if not lam > 0:
            raise ConfigurationError(f"lam must be positive, got {lam}")
        if n_jobs == 0:
            raise ConfigurationError("n_jobs must be None or a nonzero integer, got 0")
        signals = [np.asarray(x) for x in signals]
        if not signals:
            raise ShapeError("At least one signal is required")

        R = filter_shape(R)
        H0 = np.asarray(H0)
        dtype = np.result_type(working_dtype(H0.dtype), working_dtype(signals[0].dtype))
        bank = FilterBank(H0, R, rtol=rtol, dtype=dtype)

        self.shape = R
        self.H0 = bank.H0
        self.rtol = bank.rtol
        self.penalty = L0Penalty(lam)
        self.padded_signals = pad_signals(signals, R)
        self.track_objective = track_objective
        self.n_jobs = n_jobs
        self.state: Optional[CAOLState] = None

    @property
    def lam(self) -> float:
        return self.penalty.lam

    @property
    def n_filters(self) -> int:
        return self.H0.shape[1]

    def initial_state(self) -> CAOLState:
        bank = FilterBank(self.H0, self.shape, rtol=self.rtol)
        psi_z = np.zeros_like(bank.H, order="F")
        return CAOLState(
            padded_signals=self.padded_signals,
            bank=bank,
            psi_z=psi_z,
            psi_views=natural_views(psi_z, self.shape),
            coder=ConvolutionalSparseCoder(self.padded_signals, bank.views, self.penalty, n_jobs=self.n_jobs),
            updater=ProcrustesUpdater(bank.H0),
        )

    def __iter__(self):
        self.state = state = self.initial_state()
        while True:
            t = state.iteration + 1
            obj = state.coder.accumulate(state.psi_z, state.psi_views, self.track_objective)
            state.updater.step(state.psi_z, out=state.bank.H, iteration=t)
            state.iteration = t
            if obj is not None:
                logger.debug(f"Iteration {t}: objective {obj:.6e}")
            yield state.bank.H, obj


class FilterHaltIterable:
    """
    Truncates a stream of filter matrices once consecutive iterates stop changing.

    After each element the relative change ||H - H_prev|| / ||H|| (H_prev = H0
    for the first element) is tested against tol; the element is always
    yielded, and the stream ends after the first one with change <= tol.
    """

    def __init__(self, iterable: CAOLIterable, tol: float):
        self.iterable = iterable
        self.tol = tol
        self.monitor: Optional[ConvergenceMonitor] = None

    def __iter__(self):
        self.monitor = monitor = ConvergenceMonitor(self.iterable.H0, self.tol)
        for H, obj in self.iterable:
            halt = monitor.update(H)
            logger.debug(f"Iteration {monitor.n_updates}: relative change {monitor.last_change:.3e}")
            yield H, obj
            if halt:
                return


class TraceRecorder:
    """Per-iteration objective values, filter snapshots and relative changes."""

    def __init__(self):
        self.objectives: List[float] = []
        self.filters: List[np.ndarray] = []
        self.convergence: List[float] = []

    def record(self, H, objective, change) -> None:
        self.filters.append(np.array(H, copy=True))
        self.objectives.append(objective)
        self.convergence.append(change)

    def __len__(self):
        return len(self.filters)


@dataclass
class CAOLResult:
    """
    Outcome of a run.

    ``filters`` are natural-shape views over ``H``. The trace fields are None
    unless tracing was requested, and then hold one entry per iteration.
    """
    H: np.ndarray
    filter_shape: Tuple[int, ...]
    n_iter: int
    converged: bool
    objectives: Optional[List[float]] = None
    filter_trace: Optional[List[np.ndarray]] = None
    convergence: Optional[List[float]] = None
    filters: List[np.ndarray] = field(init=False, repr=False)

    def __post_init__(self):
        self.filters = natural_views(self.H, self.filter_shape)

    @classmethod
    def from_run(cls, H, R, n_iter: int, converged: bool, recorder: Optional[TraceRecorder] = None):
        result = cls(H=np.array(H, order="F", copy=True), filter_shape=tuple(R), n_iter=n_iter, converged=converged)
        if recorder is not None:
            result.objectives = recorder.objectives
            result.filter_trace = recorder.filters
            result.convergence = recorder.convergence
        return result


def _log_outcome(n_iter: int, converged: bool, change, cfg: LearnerConfig):
    if converged:
        logger.info(f"Converged after {n_iter} iterations (relative change {change:.3e} <= {cfg.tol:.1e})")
    else:
        logger.info(f"Stopped at iteration cap {cfg.max_iters} (relative change {change:.3e} > {cfg.tol:.1e})")


def learn_filters(signals: Sequence, H0, R, lam: float, max_iters: int = 2000, tol: float = 1e-13,
                  trace: bool = False, n_jobs: Optional[int] = None, rtol: Optional[float] = None) -> CAOLResult:
    """
    Learn a scaled-orthonormal filter bank.

    Args:
        signals: L arrays with len(R) dimensions
        H0: Initial filters as a (prod(R), K) matrix with H0^H H0 = I / prod(R)
        R: Filter shape
        lam: Sparsity weight (> 0)
        max_iters: Iteration cap
        tol: Stop once the relative filter change is <= tol
        trace: Record objective values, filter snapshots and relative changes
        n_jobs: Threads for the accumulation over filters (None: serial)
        rtol: Tolerance of the orthonormality check on H0

    Returns:
        CAOLResult; hitting the cap without converging is not an error

    Raises:
        ConfigurationError: Bad parameters or H0 not scaled-orthonormal
        ShapeError: Signals incompatible with R or with each other
        NumericalFailure: SVD failure in a filter update
    """
    cfg = load_config(lam=lam, max_iters=max_iters, tol=tol, trace=trace, n_jobs=n_jobs,
                      orthonormality_rtol=rtol)
    it = CAOLIterable(signals, H0, R, cfg.lam, track_objective=cfg.trace, n_jobs=cfg.n_jobs,
                      rtol=cfg.orthonormality_rtol)
    logger.info(f"Learning {it.n_filters} filters of shape {it.shape} from {len(it.padded_signals)} signals "
                f"(lam={cfg.lam}, max_iters={cfg.max_iters}, tol={cfg.tol})")

    halting = FilterHaltIterable(it, cfg.tol)
    recorder = TraceRecorder() if cfg.trace else None

    n_iter = 0
    for H, obj in itertools.islice(halting, cfg.max_iters):
        n_iter += 1
        if recorder is not None:
            recorder.record(H, obj, halting.monitor.last_change)

    converged = halting.monitor.converged
    _log_outcome(n_iter, converged, halting.monitor.last_change, cfg)
    return CAOLResult.from_run(it.state.H, it.shape, n_iter, converged, recorder)


def learn_filters_from_bank(signals: Sequence, h0: Sequence, lam: float, **kwargs) -> CAOLResult:
    """``learn_filters`` with the initial bank given as K natural-shape filters."""
    H0, R = pack_filters(h0)
    return learn_filters(signals, H0, R, lam, **kwargs)


def learn_filters_unrolled(signals: Sequence, H0, R, lam: float, max_iters: int = 2000, tol: float = 1e-13,
                           trace: bool = False, n_jobs: Optional[int] = None,
                           rtol: Optional[float] = None) -> CAOLResult:
    """
    Single-loop version of ``learn_filters`` with the convergence test inline.

    Takes the same arguments and stops at the same iteration with the same
    filters.
    """
    cfg = load_config(lam=lam, max_iters=max_iters, tol=tol, trace=trace, n_jobs=n_jobs,
                      orthonormality_rtol=rtol)
    it = CAOLIterable(signals, H0, R, cfg.lam, n_jobs=cfg.n_jobs, rtol=cfg.orthonormality_rtol)
    state = it.initial_state()
    H = state.bank.H
    H_prev = np.empty_like(H)
    recorder = TraceRecorder() if cfg.trace else None

    converged = False
    change = None
    for t in range(1, cfg.max_iters + 1):
        obj = state.coder.accumulate(state.psi_z, state.psi_views, cfg.trace)

        np.copyto(H_prev, H)
        state.updater.step(state.psi_z, out=H, iteration=t)
        state.iteration = t

        change = relative_change(H, H_prev)
        if recorder is not None:
            recorder.record(H, obj, change)
        if change <= cfg.tol:
            converged = True
            break

    _log_outcome(state.iteration, converged, change, cfg)
    return CAOLResult.from_run(H, it.shape, state.iteration, converged, recorder)


class ConvolutionalAnalysisLearner:
    """
    Estimator-style interface to orthogonality-constrained CAOL.

    Parameters
    ----------
    lam : float
        Sparsity weight (> 0); codes are thresholded at sqrt(2*lam)
    max_iters : int, default=2000
        Iteration cap
    tol : float, default=1e-13
        Relative filter change at which the run stops
    trace : bool, default=False
        Keep objective values, filter snapshots and relative changes
    n_jobs : int or None, default=None
        Threads for the accumulation over filters
    orthonormality_rtol : float or None, default=None
        Tolerance of the orthonormality check on the initial filters
    config : LearnerConfig or dict, optional
        Base configuration; keyword arguments override it

    Examples
    --------
    >>> learner = ConvolutionalAnalysisLearner(lam=0.01, max_iters=100, trace=True)
    >>> learner.fit(images, initial_filters)
    >>> learner.filters_          # K learned filters
    >>> learner.history_["objectives"]
    """

    def __init__(self, lam: Optional[float] = None, max_iters: Optional[int] = None, tol: Optional[float] = None,
                 trace: Optional[bool] = None, n_jobs: Optional[int] = None,
                 orthonormality_rtol: Optional[float] = None, config=None):
        self.config = load_config(config, lam=lam, max_iters=max_iters, tol=tol, trace=trace,
                                  n_jobs=n_jobs, orthonormality_rtol=orthonormality_rtol)
        self.result_: Optional[CAOLResult] = None

    def fit(self, signals: Sequence, h0, R=None) -> "ConvolutionalAnalysisLearner":
        """
        Learn filters from signals.

        Args:
            signals: Training signals
            h0: K natural-shape initial filters, or a (prod(R), K) matrix when R is given
            R: Filter shape for a matrix h0

        Returns:
            Self (for chaining)
        """
        if R is None:
            H0, R = pack_filters(h0)
        else:
            H0 = h0
        cfg = self.config
        self.result_ = learn_filters(signals, H0, R, cfg.lam, max_iters=cfg.max_iters, tol=cfg.tol,
                                     trace=cfg.trace, n_jobs=cfg.n_jobs, rtol=cfg.orthonormality_rtol)
        return self

    def _check_fitted(self):
        if self.result_ is None:
            raise RuntimeError("Filters not learned yet. Call fit() first.")

    @property
    def filters_(self) -> List[np.ndarray]:
        self._check_fitted()
        return self.result_.filters

    @property
    def H_(self) -> np.ndarray:
        self._check_fitted()
        return self.result_.H

    @property
    def n_iter_(self) -> int:
        self._check_fitted()
        return self.result_.n_iter

    @property
    def converged_(self) -> bool:
        self._check_fitted()
        return self.result_.converged

    @property
    def history_(self) -> Dict[str, Any]:
        self._check_fitted()
        return {
            "objectives": self.result_.objectives or [],
            "convergence": self.result_.convergence or [],
            "filters": self.result_.filter_trace or [],
        }

    def _coder(self, signals) -> ConvolutionalSparseCoder:
        self._check_fitted()
        padded = pad_signals(signals, self.result_.filter_shape)
        return ConvolutionalSparseCoder(padded, self.result_.filters, L0Penalty(self.config.lam),
                                        n_jobs=self.config.n_jobs)

    def transform(self, signals: Sequence) -> List[List[np.ndarray]]:
        """Hard-thresholded codes: one list of K arrays (shaped like the signal) per signal."""
        coder = self._coder(signals)
        return [coder.codes(l) for l in range(len(coder.padded_signals))]

    def objective(self, signals: Sequence) -> float:
        """Objective of the learned filters on signals, with optimal codes."""
        return self._coder(signals).objective()

    def get_metadata(self, extra=None) -> Dict[str, Any]:
        self._check_fitted()
        return make_metadata(self.config, self.result_, extra)
