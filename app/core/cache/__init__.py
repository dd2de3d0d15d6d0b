from .cache import Cache
from .provider import CERTIFICATE_NAMESPACE, clear_caches, get_cache
from .types import CacheBackend, CacheNamespace, CachePolicy, CertificateRecord

__all__ = [
    "CERTIFICATE_NAMESPACE",
    "Cache",
    "CacheBackend",
    "CacheNamespace",
    "CachePolicy",
    "CertificateRecord",
    "clear_caches",
    "get_cache",
]
