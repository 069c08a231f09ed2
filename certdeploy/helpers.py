"""
Common utility functions.

Small, side-effect free helpers for turning pipeline inputs into values
the deployment steps can use directly.
"""

from typing import Iterable, Tuple, Union


TRUE_VALUES = ("true", "True", "TRUE", "1", "yes", "Yes", "YES", "on")
FALSE_VALUES = ("false", "False", "FALSE", "0", "no", "No", "NO", "off")


def parse_domains(domains: Union[str, Iterable[str], None]) -> Tuple[str, ...]:
    """
    Normalize a CDN domain list.

    Accepts either a whitespace-separated string (as passed by a workflow
    input) or an iterable of names. Empty entries are dropped and duplicates
    removed, keeping the first occurrence of each domain.

    Args:
        domains: Domain string, iterable of domains, or None

    Returns:
        Tuple of unique, non-empty domain names

    Examples:
        >>> parse_domains("a.com a.com  b.com")
        ('a.com', 'b.com')
    """
    if not domains:
        return ()

    if isinstance(domains, str):
        candidates = domains.split()
    else:
        candidates = []
        for entry in domains:
            candidates.extend((entry or "").split())

    return tuple(dict.fromkeys(candidates))


def parse_bool(value: Union[str, bool, None], default: bool = False) -> bool:
    """
    Parse a boolean input value.

    Args:
        value: Raw value (string from the environment, bool from YAML, or None)
        default: Value returned when the input is empty

    Returns:
        Parsed boolean

    Raises:
        ValueError: If the value is not a recognised boolean spelling
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value

    text = str(value).strip()
    if not text:
        return default
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False

    raise ValueError(
        f"Invalid boolean value '{value}'. "
        "Use one of: true | True | TRUE | false | False | FALSE"
    )


def parse_int_input(value: Union[str, int, None], default: int) -> int:
    """
    Parse an integer input, falling back to the default when unusable.

    Empty and non-numeric values fall back to the default. Numeric values
    are returned as-is so the caller can reject out-of-range numbers.

    Args:
        value: Raw value
        default: Fallback value

    Returns:
        Parsed integer
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value

    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        return default


def describe_endpoint(use_intl_endpoint: bool) -> str:
    """
    Get a human-readable name for the selected API endpoint family.

    Args:
        use_intl_endpoint: Whether the international endpoints are used

    Returns:
        Endpoint description for log output
    """
    return "international (ap-southeast-1)" if use_intl_endpoint else "mainland China (cn-hangzhou)"
