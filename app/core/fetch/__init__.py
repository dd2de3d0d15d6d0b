from .admission import AdmissionQueue
from .coordinator import CertificateFetcher, FetchCoordinator, ResultHook
from .singleflight import InFlightFetch, SingleFlight

__all__ = [
    "AdmissionQueue",
    "CertificateFetcher",
    "FetchCoordinator",
    "InFlightFetch",
    "ResultHook",
    "SingleFlight",
]
