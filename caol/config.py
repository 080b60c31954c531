from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, PositiveInt, ValidationError, field_validator
from typing import Optional

from .exceptions import ConfigurationError


class LearnerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lam: float = Field(..., gt=0.0)
    max_iters: PositiveInt = 2000
    tol: float = Field(1e-13, ge=0.0)
    trace: bool = False
    n_jobs: Optional[int] = None            # None or 1: serial accumulation
    orthonormality_rtol: Optional[float] = Field(None, gt=0.0)   # None: sqrt(eps) of the initial filters' dtype

    @field_validator("n_jobs")
    @classmethod
    def _nonzero_jobs(cls, v):
        if v == 0:
            raise ValueError("n_jobs must be None or a nonzero integer (-1 for all cores)")
        return v


def load_config(cfg=None, **overrides) -> LearnerConfig:
    """Build a LearnerConfig from a config, a mapping and/or keyword overrides."""
    if isinstance(cfg, LearnerConfig):
        raw = cfg.model_dump()
    else:
        raw = dict(cfg or {})
    raw.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return LearnerConfig(**raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid learner configuration: {e}") from e


SCHEMA_VERSION = 1

def make_metadata(cfg: LearnerConfig, result, extra=None):
    meta = {
        "schema_version": SCHEMA_VERSION,
        "lam": cfg.lam,
        "max_iters": cfg.max_iters,
        "tol": cfg.tol,
        "trace": cfg.trace,
        "n_jobs": cfg.n_jobs,
        "filter_shape": list(result.filter_shape),
        "n_filters": len(result.filters),
        "n_iter": result.n_iter,
        "converged": result.converged,
    }
    if result.objectives is not None:
        meta["final_objective"] = float(result.objectives[-1]) if result.objectives else None
    if extra: meta.update(extra)
    return meta
