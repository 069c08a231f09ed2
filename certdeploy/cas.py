"""
Certificate Management Service (CAS) operations.

Handles locating, deleting and uploading certificates, and the
replace workflow that ties them together.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple

from .config_loader import DeploymentInput
from .logger import get_logger
from .pagination import iter_items


CAS_API_VERSION = "2020-04-07"


class CertificateStatus(Enum):
    """Listing buckets of ListUserCertificateOrder."""
    ISSUED = "ISSUED"
    WILLEXPIRED = "WILLEXPIRED"
    EXPIRED = "EXPIRED"


class CertificateFileError(OSError):
    """Raised when the certificate chain or private key cannot be read."""
    pass


@dataclass(frozen=True)
class CertificateRecord:
    """A certificate as returned by the listing API."""
    certificate_id: int
    name: str
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "CertificateRecord":
        """
        Build a record from a CertificateOrderList item.

        Args:
            item: Raw item as returned by ListUserCertificateOrder

        Returns:
            CertificateRecord keeping the raw item for reference
        """
        return cls(
            certificate_id=int(item["CertificateId"]),
            name=item.get("Name", ""),
            raw=item,
        )


@dataclass
class ReplacementOutcome:
    """Result of a certificate replacement."""
    certificate_name: str
    deleted_id: Optional[int] = None
    certificate_id: Optional[int] = None


def read_certificate_files(config: DeploymentInput) -> Tuple[str, str]:
    """
    Read the certificate chain and private key.

    Args:
        config: Deployment configuration

    Returns:
        Tuple of (fullchain PEM, private key PEM)

    Raises:
        CertificateFileError: If either file cannot be read
    """
    contents = []
    for path in (config.fullchain_file, config.key_file):
        try:
            with open(path, "r", encoding="utf-8") as f:
                contents.append(f.read())
        except (OSError, UnicodeDecodeError) as e:
            raise CertificateFileError(f"Failed to read {path}: {e}") from e

    return contents[0], contents[1]


def list_certificates(client, config: DeploymentInput) -> Iterator[CertificateRecord]:
    """
    Iterate over every uploaded certificate visible to the account.

    Every status bucket is traversed so a certificate is found whether it
    is valid, about to expire or already expired.
    """
    for item in iter_items(
        client,
        config.cas_endpoint,
        CAS_API_VERSION,
        "ListUserCertificateOrder",
        {"OrderType": "CERT"},
        list_key="CertificateOrderList",
        statuses=list(CertificateStatus),
    ):
        yield CertificateRecord.from_item(item)


def find_certificate(client, config: DeploymentInput) -> Optional[CertificateRecord]:
    """
    Find the certificate previously deployed under the configured name.

    Returns:
        The first record whose name matches exactly, or None
    """
    for record in list_certificates(client, config):
        if record.name == config.certificate_name:
            return record
    return None


def delete_certificate(client, config: DeploymentInput, certificate_id: int) -> None:
    """Delete an uploaded certificate by id."""
    client.call(
        config.cas_endpoint,
        CAS_API_VERSION,
        "DeleteUserCertificate",
        {"CertId": certificate_id},
    )


def upload_certificate(
    client,
    config: DeploymentInput,
    fullchain: str,
    key: str,
) -> Optional[int]:
    """
    Upload a certificate under the configured name.

    Returns:
        Id assigned to the new certificate, or None if the response has none
    """
    response = client.call(
        config.cas_endpoint,
        CAS_API_VERSION,
        "UploadUserCertificate",
        {
            "Cert": fullchain,
            "Key": key,
            "Name": config.certificate_name,
        },
    )

    cert_id = response.get("CertId")
    if cert_id in (None, "", 0):
        return None
    return int(cert_id)


def replace_certificate(client, config: DeploymentInput) -> ReplacementOutcome:
    """
    Replace the certificate deployed under the configured name.

    The previous certificate (if any) is deleted before the new one is
    uploaded; a failed delete aborts the replacement.

    Args:
        client: AliyunClient (or any object with the same call method)
        config: Deployment configuration

    Returns:
        ReplacementOutcome with the deleted and new certificate ids

    Raises:
        CertificateFileError: If the certificate files cannot be read
        TransportError: If an API call fails after all retries
        PaginationIntegrityError: If the listing is inconsistent
    """
    logger = get_logger()
    outcome = ReplacementOutcome(certificate_name=config.certificate_name)

    fullchain, key = read_certificate_files(config)

    previous = find_certificate(client, config)
    if previous is None:
        logger.info("Previously deployed certificate not found. Skipping delete.")
    elif config.dry_run:
        logger.info(
            f"[DRY RUN] Would delete previously deployed certificate {previous.certificate_id}."
        )
    else:
        logger.info(
            f"Found previously deployed certificate {previous.certificate_id}. Deleting."
        )
        delete_certificate(client, config, previous.certificate_id)
        outcome.deleted_id = previous.certificate_id

    if config.dry_run:
        logger.info(f"[DRY RUN] Would upload certificate '{config.certificate_name}'.")
        return outcome

    outcome.certificate_id = upload_certificate(client, config, fullchain, key)
    if outcome.certificate_id is None:
        logger.warning("Upload response did not include a certificate id")

    return outcome
