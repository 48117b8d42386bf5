"""paddock: motorsport statistics acquisition and lap-time reconciliation."""

from paddock._filters import Filter
from paddock._http import CurlFallback, RateLimitedTransport
from paddock.batch import BatchOrchestrator, DriverLapsResult
from paddock.cache import ResponseCache
from paddock.exceptions import (
    EndpointError,
    NetworkError,
    PaddockError,
    RateLimitError,
    RequestTimeoutError,
    ResponseValidationError,
    UpstreamError,
)
from paddock.jolpica import JolpicaClient
from paddock.models.lap import LapRecord
from paddock.openf1 import OpenF1Client
from paddock.pipeline import Pipeline
from paddock.reconcile import LapReconciler
from paddock.results import LapError, LapFetch, RaceLapFetch

__all__ = [
    "BatchOrchestrator",
    "CurlFallback",
    "DriverLapsResult",
    "EndpointError",
    "Filter",
    "JolpicaClient",
    "LapError",
    "LapFetch",
    "LapReconciler",
    "LapRecord",
    "NetworkError",
    "OpenF1Client",
    "PaddockError",
    "Pipeline",
    "RaceLapFetch",
    "RateLimitError",
    "RateLimitedTransport",
    "RequestTimeoutError",
    "ResponseCache",
    "ResponseValidationError",
    "UpstreamError",
]

__version__ = "0.1.0"
