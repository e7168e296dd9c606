from licensefetch.services.license_service import LicenseService
from licensefetch.services.licensed_fetcher import LicensedFetcher
from licensefetch.services.pipeline import AcquisitionPipeline
from licensefetch.services.session import SessionTracker

__all__ = [
    "LicenseService",
    "LicensedFetcher",
    "AcquisitionPipeline",
    "SessionTracker",
]
