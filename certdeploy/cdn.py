"""
CDN certificate binding.

Points the HTTPS configuration of CDN domains at a certificate held in CAS.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from .aliyun_client import TransportError
from .config_loader import DeploymentInput
from .helpers import parse_domains
from .logger import get_logger


CDN_API_VERSION = "2018-05-10"


class CdnBindingError(Exception):
    """Raised when one or more domains could not be bound."""

    def __init__(self, report: "BindingReport"):
        super().__init__(
            f"Failed to deploy certificate to {len(report.failed)} CDN domain(s): "
            f"{', '.join(report.failed)}"
        )
        self.report = report


@dataclass
class BindingReport:
    """Domains the certificate was bound to, and those that failed."""
    bound: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def bind_domain(
    client,
    config: DeploymentInput,
    domain: str,
    certificate_id: Optional[int],
) -> None:
    """Bind a single CDN domain to the configured certificate."""
    client.call(
        config.cdn_endpoint,
        CDN_API_VERSION,
        "SetCdnDomainSSLCertificate",
        {
            "DomainName": domain,
            "CertName": config.certificate_name,
            "CertId": certificate_id,
            "CertType": "cas",
            "SSLProtocol": "on",
            "CertRegion": config.cert_region,
        },
    )


def bind_certificate_to_domains(
    client,
    config: DeploymentInput,
    certificate_id: Optional[int],
    domains: Union[str, Iterable[str], None] = None,
) -> BindingReport:
    """
    Bind the certificate to every unique CDN domain.

    By default the first failure aborts the remaining bindings. With
    continue_on_error every domain is attempted and the failures are
    reported together at the end.

    Args:
        client: AliyunClient (or any object with the same call method)
        config: Deployment configuration
        certificate_id: Id of the uploaded certificate (may be None)
        domains: Domains to bind; defaults to config.cdn_domains

    Returns:
        BindingReport of bound domains

    Raises:
        TransportError: On the first failure, unless continue_on_error is set
        CdnBindingError: If continue_on_error is set and any domain failed
    """
    logger = get_logger()
    report = BindingReport()
    unique_domains = parse_domains(config.cdn_domains if domains is None else domains)

    for domain in unique_domains:
        if config.dry_run:
            logger.info(f"[DRY RUN] Would deploy certificate to CDN domain {domain}.")
            continue

        logger.info(f"Deploying certificate to CDN domain {domain}.")
        try:
            bind_domain(client, config, domain, certificate_id)
        except TransportError as e:
            if not config.continue_on_error:
                raise
            logger.failure(f"{domain}: {e}")
            report.failed.append(domain)
            continue

        report.bound.append(domain)

    if report.failed:
        raise CdnBindingError(report)

    return report
