"""
Alibaba Cloud RPC API client.

Sends requests to the RPC-style management APIs (CAS, CDN) through the
Alibaba Cloud SDK core and retries failed calls a bounded number of times.
"""

import json
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit

from aliyunsdkcore.acs_exception.exceptions import ClientException, ServerException
from aliyunsdkcore.auth.credentials import AccessKeyCredential, StsTokenCredential
from aliyunsdkcore.client import AcsClient
from aliyunsdkcore.request import CommonRequest

from .logger import get_logger


DEFAULT_REGION = "cn-hangzhou"

# Some actions report success through a Code field as well
SUCCESS_CODES = ("200", "OK", "Success", "success")


class AliyunApiError(Exception):
    """Raised when a single API request fails or returns an error response."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        request_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.request_id = request_id
        self.status_code = status_code


class TransportError(Exception):
    """Raised when an API call still fails after the retry budget is spent."""

    def __init__(self, action: str, attempts: int, last_error: Exception):
        super().__init__(
            f"{action} failed after {attempts} attempt(s): {last_error}"
        )
        self.action = action
        self.attempts = attempts
        self.last_error = last_error


def _format_param(value: Any) -> str:
    """
    Render a parameter value the way the RPC APIs expect it.

    Args:
        value: Parameter value

    Returns:
        String form (booleans become lowercase true/false)
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_request(
    endpoint: str,
    api_version: str,
    action: str,
    params: Optional[Mapping[str, Any]] = None,
) -> CommonRequest:
    """
    Build a POST request for one RPC action.

    Parameters travel in the form body, so large values such as a
    certificate chain do not end up in the URL.

    Args:
        endpoint: Product endpoint URL (e.g. https://cas.aliyuncs.com)
        api_version: Product API version (e.g. 2020-04-07)
        action: API action name
        params: Action-specific parameters (None values are dropped)

    Returns:
        CommonRequest ready to be sent by an AcsClient
    """
    url = urlsplit(endpoint if "://" in endpoint else f"https://{endpoint}")

    request = CommonRequest()
    request.set_accept_format("json")
    request.set_method("POST")
    request.set_protocol_type(url.scheme or "https")
    request.set_domain(url.netloc)
    request.set_version(api_version)
    request.set_action_name(action)

    for key, value in (params or {}).items():
        if value is not None:
            request.add_body_params(key, _format_param(value))

    return request


class AliyunClient:
    """
    Client for Alibaba Cloud RPC APIs.

    One client serves every endpoint; the endpoint and API version are
    passed per call, the way each product exposes its own host and version.
    """

    def __init__(
        self,
        access_key_id: str,
        access_key_secret: str,
        security_token: Optional[str] = None,
        timeout: float = 10.0,
        retry: int = 3,
        region_id: str = DEFAULT_REGION,
        acs_client: Optional[AcsClient] = None,
    ):
        """
        Initialize the client.

        Args:
            access_key_id: AccessKey ID
            access_key_secret: AccessKey secret
            security_token: Optional STS security token
            timeout: Per-request timeout in seconds
            retry: Maximum number of attempts per call (at least 1)
            region_id: Region the SDK client is bound to
            acs_client: Optional SDK client to send requests with
        """
        if retry < 1:
            raise ValueError(f"retry must be at least 1, got {retry}")

        self.access_key_id = access_key_id
        self.access_key_secret = access_key_secret
        self.security_token = security_token
        self.timeout = timeout
        self.retry = retry
        self.region_id = region_id
        self.logger = get_logger()
        self._acs_client = acs_client

    @classmethod
    def from_config(cls, config, acs_client: Optional[AcsClient] = None) -> "AliyunClient":
        """
        Build a client from a DeploymentInput.

        Args:
            config: Deployment configuration
            acs_client: Optional SDK client to send requests with

        Returns:
            Configured AliyunClient
        """
        return cls(
            access_key_id=config.access_key_id,
            access_key_secret=config.access_key_secret,
            security_token=config.security_token,
            timeout=config.timeout_seconds,
            retry=config.retry,
            region_id=config.cert_region,
            acs_client=acs_client,
        )

    def _credential(self):
        """
        Get the SDK credential for the configured keys.

        The STS form is only used when a security token is set.
        """
        if self.security_token:
            return StsTokenCredential(
                self.access_key_id, self.access_key_secret, self.security_token
            )
        return AccessKeyCredential(self.access_key_id, self.access_key_secret)

    @property
    def acs_client(self) -> AcsClient:
        """Get the SDK client, creating it on first use."""
        if self._acs_client is None:
            # Retries are counted by call(), not by the SDK
            self._acs_client = AcsClient(
                region_id=self.region_id,
                credential=self._credential(),
                auto_retry=False,
                timeout=self.timeout,
                connect_timeout=self.timeout,
            )
        return self._acs_client

    def close(self) -> None:
        """Drop the SDK client so a later call starts a fresh one."""
        self._acs_client = None

    def _request(
        self,
        endpoint: str,
        api_version: str,
        action: str,
        params: Optional[Mapping[str, Any]],
    ) -> Dict[str, Any]:
        """
        Send one request without retrying.

        Raises:
            AliyunApiError: On an SDK error, an error response or an undecodable body
        """
        request = build_request(endpoint, api_version, action, params)

        try:
            raw = self.acs_client.do_action_with_exception(request)
        except ServerException as e:
            raise AliyunApiError(
                f"{e.get_error_code()}: {e.get_error_msg()}",
                code=e.get_error_code(),
                request_id=e.get_request_id(),
                status_code=e.get_http_status(),
            ) from e
        except ClientException as e:
            raise AliyunApiError(
                f"{e.get_error_code()}: {e.get_error_msg()}",
                code=e.get_error_code(),
            ) from e

        try:
            body = json.loads(raw)
        except ValueError:
            raise AliyunApiError(f"{action}: invalid response body")

        if not isinstance(body, dict):
            raise AliyunApiError(
                f"{action}: unexpected response type {type(body).__name__}"
            )

        code = body.get("Code")
        if code is not None and str(code) not in SUCCESS_CODES:
            raise AliyunApiError(
                f"{code}: {body.get('Message', 'unknown error')}",
                code=str(code),
                request_id=body.get("RequestId"),
            )

        return body

    def call(
        self,
        endpoint: str,
        api_version: str,
        action: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Call an API action, retrying failed attempts.

        The request is attempted at most `retry` times, with no delay
        between attempts.

        Args:
            endpoint: Product endpoint URL (e.g. https://cas.aliyuncs.com)
            api_version: Product API version
            action: API action name
            params: Action-specific parameters

        Returns:
            Decoded JSON response

        Raises:
            TransportError: If every attempt failed
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.retry + 1):
            try:
                return self._request(endpoint, api_version, action, params)
            except AliyunApiError as e:
                last_error = e
                self.logger.warning(
                    f"Aliyun API error {attempt}/{self.retry} ({action}): {e}"
                )

        raise TransportError(action, self.retry, last_error) from last_error
