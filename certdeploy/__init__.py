"""
Alibaba Cloud certificate deployment.

This package contains:
- aliyun_client: RPC API client over the Alibaba Cloud SDK with bounded retry
- pagination: Paged listing traversal
- cas: Certificate replacement in the Certificate Management Service
- cdn: Binding certificates to CDN domains
- config_loader: Configuration loading and validation
- logger: Centralized logging setup
- helpers: Common utility functions
"""

from .logger import setup_logger, get_logger, register_secrets
from .config_loader import load_config, DeploymentInput, ConfigurationError
from .aliyun_client import AliyunClient, AliyunApiError, TransportError
from .pagination import iter_items, for_each_item, PageCursor, PaginationIntegrityError
from .cas import (
    replace_certificate,
    find_certificate,
    list_certificates,
    CertificateRecord,
    CertificateStatus,
    CertificateFileError,
    ReplacementOutcome,
)
from .cdn import bind_certificate_to_domains, BindingReport, CdnBindingError
from .helpers import parse_domains, parse_bool

__all__ = [
    # Logger
    "setup_logger",
    "get_logger",
    "register_secrets",
    # Config
    "load_config",
    "DeploymentInput",
    "ConfigurationError",
    # API client
    "AliyunClient",
    "AliyunApiError",
    "TransportError",
    # Pagination
    "iter_items",
    "for_each_item",
    "PageCursor",
    "PaginationIntegrityError",
    # CAS
    "replace_certificate",
    "find_certificate",
    "list_certificates",
    "CertificateRecord",
    "CertificateStatus",
    "CertificateFileError",
    "ReplacementOutcome",
    # CDN
    "bind_certificate_to_domains",
    "BindingReport",
    "CdnBindingError",
    # Helpers
    "parse_domains",
    "parse_bool",
]
