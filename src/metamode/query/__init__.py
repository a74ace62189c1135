from metamode.query.api import IntegrityReport, MetamodeApi

__all__ = ["IntegrityReport", "MetamodeApi"]
