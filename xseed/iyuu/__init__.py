"""IYUU reseed service adapter, local mirror cache and identity correlation."""

from .correlator import IdentityCorrelator, RefreshSummary, build_site_identity_map, registrable_domain, site_host
from .service import IdentityService, IyuuServiceAdapter
from .store import MirrorStore
from .types import CandidateRecord, RegistrySite

__all__ = [
    "CandidateRecord",
    "IdentityCorrelator",
    "IdentityService",
    "IyuuServiceAdapter",
    "MirrorStore",
    "RefreshSummary",
    "RegistrySite",
    "build_site_identity_map",
    "registrable_domain",
    "site_host",
]
