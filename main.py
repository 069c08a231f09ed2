#!/usr/bin/env python3
"""
Alibaba Cloud Certificate Deployment - Main Entry Point.

Replaces a certificate in Alibaba Cloud Certificate Management Service
(CAS) and deploys it to CDN domains. Designed to run as a step of a
deployment pipeline: inputs come from the command line, from GitHub
Actions style INPUT_* environment variables, or from a YAML file.

Usage:
    # Replace the certificate and bind it to two CDN domains
    python main.py --certificate-name my-cert \\
        --fullchain-file fullchain.pem --key-file privkey.pem \\
        --cdn-domains "example.com www.example.com"

    # Inputs from a YAML file, international endpoint
    python main.py --config deploy.yaml --use-intl-endpoint

    # Dry run (lists certificates, changes nothing)
    python main.py --config deploy.yaml --dry-run
"""

import argparse
import json
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from certdeploy.logger import setup_logger, get_logger, register_secrets
from certdeploy.config_loader import load_config, DeploymentInput, ConfigurationError
from certdeploy.aliyun_client import AliyunClient
from certdeploy.cas import replace_certificate
from certdeploy.cdn import bind_certificate_to_domains, CdnBindingError


class DeploymentStatus(Enum):
    """Final status of a deployment run."""
    DEPLOYED = "deployed"
    DRY_RUN = "dry_run"
    FAILED = "failed"


@dataclass
class DeploymentResult:
    """What a single deployment run did."""
    certificate_name: str
    status: DeploymentStatus = DeploymentStatus.DEPLOYED
    deleted_id: Optional[int] = None
    certificate_id: Optional[int] = None
    bound_domains: List[str] = field(default_factory=list)
    failed_domains: List[str] = field(default_factory=list)
    error: Optional[str] = None
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    completed_at: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status != DeploymentStatus.FAILED

    def finalize(self) -> None:
        """Mark the run as complete."""
        self.completed_at = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "certificate_name": self.certificate_name,
            "status": self.status.value.upper(),
            "success": self.success,
            "deleted_certificate_id": self.deleted_id,
            "certificate_id": self.certificate_id,
            "bound_domains": self.bound_domains,
            "failed_domains": self.failed_domains,
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Every input can also be given through the environment, so none of
    them is required on the command line.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Deploy a certificate to Alibaba Cloud CAS and CDN",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --certificate-name my-cert --fullchain-file fullchain.pem \\
           --key-file privkey.pem --cdn-domains "example.com www.example.com"
  %(prog)s --config deploy.yaml --dry-run

Environment:
  INPUT_ACCESS-KEY-ID, INPUT_ACCESS-KEY-SECRET, INPUT_SECURITY-TOKEN,
  INPUT_CERTIFICATE-NAME, INPUT_FULLCHAIN-FILE, INPUT_KEY-FILE,
  INPUT_CDN-DOMAINS, INPUT_TIMEOUT, INPUT_RETRY, INPUT_USE-INTL-ENDPOINT
        """,
    )

    # Credentials
    parser.add_argument("--access-key-id", type=str, help="AccessKey ID")
    parser.add_argument("--access-key-secret", type=str, help="AccessKey secret")
    parser.add_argument(
        "--security-token",
        type=str,
        help="STS security token (only for temporary credentials)",
    )

    # Certificate
    parser.add_argument(
        "--certificate-name",
        "--cert-name",
        type=str,
        dest="certificate_name",
        help="Name of the certificate in CAS (the previous one with this name is replaced)",
    )
    parser.add_argument("--fullchain-file", type=str, help="Path to the PEM certificate chain")
    parser.add_argument("--key-file", type=str, help="Path to the PEM private key")
    parser.add_argument(
        "--cdn-domains",
        type=str,
        help="Whitespace-separated CDN domains to deploy the certificate to",
    )

    # Request behaviour
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Request timeout in milliseconds (default: 10000)",
    )
    parser.add_argument(
        "--retry",
        type=int,
        default=None,
        help="Maximum attempts per API call (default: 3)",
    )
    parser.add_argument(
        "--use-intl-endpoint",
        action="store_true",
        default=None,
        help="Use the international (ap-southeast-1) endpoints",
    )

    # Common options
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to an optional YAML configuration file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Test mode: list certificates but don't make changes",
    )
    parser.add_argument(
        "--continue-on-error",
        action="store_true",
        default=None,
        help="Keep deploying to the remaining CDN domains when one fails",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write log output to this file",
    )
    parser.add_argument(
        "--json-summary",
        action="store_true",
        help="Output machine-readable JSON summary at the end of execution",
    )

    return parser.parse_args(argv)


CONFIG_ARGUMENTS = (
    "access_key_id",
    "access_key_secret",
    "security_token",
    "certificate_name",
    "fullchain_file",
    "key_file",
    "cdn_domains",
    "timeout",
    "retry",
    "use_intl_endpoint",
    "dry_run",
    "continue_on_error",
)


def run_deployment(
    config: DeploymentInput,
    client: Optional[AliyunClient] = None,
    result: Optional[DeploymentResult] = None,
) -> DeploymentResult:
    """
    Replace the certificate and deploy it to the configured CDN domains.

    Args:
        config: Deployment configuration
        client: Optional API client (built from the configuration if omitted)
        result: Optional result to fill in, so progress survives a failure

    Returns:
        DeploymentResult describing what was done

    Raises:
        Any error of the replacement or binding steps
    """
    logger = get_logger()
    owns_client = client is None
    if owns_client:
        client = AliyunClient.from_config(config)

    if result is None:
        result = DeploymentResult(certificate_name=config.certificate_name)
    if config.dry_run:
        result.status = DeploymentStatus.DRY_RUN

    try:
        logger.section("Certificate Management Service")
        outcome = replace_certificate(client, config)
        result.deleted_id = outcome.deleted_id
        result.certificate_id = outcome.certificate_id
        if not config.dry_run:
            logger.info(f"Deployed certificate {outcome.certificate_id}.")

        if config.cdn_domains:
            logger.section("CDN")
            report = bind_certificate_to_domains(client, config, outcome.certificate_id)
            result.bound_domains = report.bound
    finally:
        if owns_client:
            client.close()

    return result


def print_deployment_summary(result: DeploymentResult, output_json: bool = False) -> None:
    """
    Print the end-of-run summary.

    Args:
        result: DeploymentResult of the run
        output_json: If True, also output machine-readable JSON
    """
    logger = get_logger()
    separator = "=" * 70

    logger.info("")
    logger.info(separator)
    logger.info("DEPLOYMENT SUMMARY")
    logger.info(separator)
    logger.info(f"Status: {result.status.value.upper()}")
    logger.info(f"Certificate: {result.certificate_name}")
    if result.deleted_id is not None:
        logger.info(f"  Replaced certificate id: {result.deleted_id}")
    logger.info(f"  New certificate id: {result.certificate_id}")
    for domain in result.bound_domains:
        logger.info(f"  [SUCCESS] {domain}")
    for domain in result.failed_domains:
        logger.error(f"  [FAILED] {domain}")
    if result.error:
        logger.error(f"Error: {result.error}")
    logger.info(separator)

    if output_json:
        logger.info("--- BEGIN JSON SUMMARY ---")
        print(result.to_json())
        logger.info("--- END JSON SUMMARY ---")


def _in_github_actions() -> bool:
    """Check whether the run happens inside a GitHub Actions job."""
    return os.environ.get("GITHUB_ACTIONS") == "true"


def _signal_failure(message: str) -> None:
    """Report a failed run to the CI host (workflow error annotation)."""
    if _in_github_actions():
        # Annotation commands must be single-line
        escaped = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        print(f"::error::{escaped}")


def _write_outputs(result: DeploymentResult) -> None:
    """Expose the new certificate id as a step output."""
    output_path = os.environ.get("GITHUB_OUTPUT")
    if not output_path or result.certificate_id is None:
        return
    with open(output_path, "a", encoding="utf-8") as f:
        f.write(f"certificate-id={result.certificate_id}\n")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Exit Codes:
        0 - Certificate deployed (or dry run completed)
        1 - Deployment failed
        2 - Configuration error

    Returns:
        Exit code
    """
    args = parse_arguments(argv)

    logger = setup_logger(
        verbose=args.verbose,
        use_colors=not args.no_color,
        log_file=args.log_file,
    )
    register_secrets(args.access_key_secret, args.security_token)

    logger.info("Alibaba Cloud Certificate Deployment")
    logger.info("=" * 50)

    overrides = {key: getattr(args, key) for key in CONFIG_ARGUMENTS}

    try:
        config = load_config(args.config, overrides=overrides)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        _signal_failure(f"Configuration error: {e}")
        return 2

    register_secrets(config.access_key_secret, config.security_token)
    if config.dry_run:
        logger.warning("DRY RUN MODE - No changes will be made")

    result = DeploymentResult(certificate_name=config.certificate_name)
    try:
        run_deployment(config, result=result)
    except CdnBindingError as e:
        result.status = DeploymentStatus.FAILED
        result.bound_domains = e.report.bound
        result.failed_domains = e.report.failed
        result.error = str(e)
        logger.exception(f"Deployment failed: {e}")
    except Exception as e:
        result.status = DeploymentStatus.FAILED
        result.error = str(e)
        logger.exception(f"Deployment failed: {e}")

    result.finalize()
    print_deployment_summary(result, output_json=args.json_summary)

    if not result.success:
        _signal_failure(result.error or "Deployment failed")
        return 1

    _write_outputs(result)
    logger.success(f"Certificate '{config.certificate_name}' deployed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
