"""Kernel command line parsing.

The Ironic API URL is handed to the ramdisk on the kernel command line
as ``ipa-api-url=<url>`` unless it is overridden explicitly.
"""

from typing import Dict

import structlog

from .config import AgentConfig

logger = structlog.get_logger()

API_URL_KERNEL_ARG = "ipa-api-url"


class KernelArgsError(Exception):
    """Raised when kernel arguments cannot be read or parsed."""
    pass


def parse_kernel_args(kernel_args_file: str) -> Dict[str, str]:
    """
    Parse a kernel command line style file into a mapping.

    Tokens are separated by whitespace and must have the form
    ``key=value``. The value is everything after the first ``=``.

    Raises:
        KernelArgsError: If the file cannot be read or a token has no value.
    """
    try:
        with open(kernel_args_file, encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise KernelArgsError(
            f"Error opening kernel args file {kernel_args_file}: {e}"
        ) from e

    kernel_args: Dict[str, str] = {}
    for arg_field in content.split():
        key, sep, value = arg_field.partition("=")
        if not sep:
            raise KernelArgsError(
                f"Malformed kernel argument {arg_field!r} in {kernel_args_file}: "
                "expected key=value"
            )
        kernel_args[key] = value

    logger.debug("kernel_args_parsed", kernel_args=kernel_args)
    return kernel_args


def resolve_api_url(config: AgentConfig) -> str:
    """
    Determine the Ironic API URL.

    An explicit override wins; otherwise the URL is read from the kernel
    arguments file.

    Raises:
        KernelArgsError: If no URL can be determined.
    """
    api_url = config.api_url_override

    if not api_url:
        kernel_args = parse_kernel_args(config.kernel_args_file)
        api_url = kernel_args.get(API_URL_KERNEL_ARG, "")

    if not api_url:
        raise KernelArgsError("Unable to determine Ironic API URL")

    return api_url
