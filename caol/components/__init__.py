from .dict_updaters import polar_factor, ProcrustesUpdater, PolarUpdater

__all__ = ["polar_factor", "ProcrustesUpdater", "PolarUpdater"]
