"""
Gough Rescue Agent main entry point.

Runs the rescue handoff once: inventory, lookup, heartbeat, finalize.
The first failing step stops the run and sets a non-zero exit status.
"""

import logging
import sys
from typing import List, Optional

import httpx
import structlog

from .client import IronicAPIClient, IronicAPIError
from .config import AgentConfig, ConfigError
from .finalize import FinalizeError, finalize_rescue
from .inventory import InventoryError, build_lookup_payload
from .kernel_args import KernelArgsError, resolve_api_url

logger = structlog.get_logger()

AGENT_ERRORS = (
    ConfigError,
    KernelArgsError,
    InventoryError,
    IronicAPIError,
    FinalizeError,
)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured logging to stderr."""
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        # stdout belongs to the finalize script
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


class RescueAgent:
    """Runs the rescue handoff workflow."""

    def __init__(self, config: AgentConfig, http_client: Optional[httpx.Client] = None):
        self.config = config
        self._http_client = http_client
        self.step = "init"

    def run(self) -> None:
        """Run every step once, raising on the first failure."""
        self.step = "resolve_api_url"
        api_url = resolve_api_url(self.config)
        logger.info("ironic_api_url_resolved", api_url=api_url)

        with IronicAPIClient(
            api_url,
            self.config.driver_name,
            http_client=self._http_client,
        ) as client:
            self.step = "build_lookup_payload"
            payload = build_lookup_payload()
            logger.info(
                "lookup_payload_built",
                interfaces=[iface.name for iface in payload.inventory.interfaces],
            )

            self.step = "lookup"
            node = client.lookup(payload)
            logger.info("lookup_succeeded", node_uuid=node.uuid)
            if self.config.debug:
                logger.debug(
                    "lookup_node_details",
                    node_uuid=node.uuid,
                    configdrive_size=len(node.instance_info.configdrive),
                    rescue_password_hash=(
                        node.instance_info.rescue_password_hash[:16] + "..."
                        if node.instance_info.rescue_password_hash
                        else None
                    ),
                )

            self.step = "heartbeat"
            client.heartbeat(node.uuid)
            logger.info("heartbeat_sent", node_uuid=node.uuid)

        self.step = "finalize"
        finalize_rescue(
            self.config.finalize_script,
            node.instance_info.configdrive,
            self.config.rescue_username,
            node.instance_info.rescue_password_hash,
        )
        self.step = "done"


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    configure_logging()

    try:
        config = AgentConfig.from_args(argv)
    except (ConfigError, ValueError) as e:
        logger.critical("configuration_error", step="config", error=str(e))
        return 1

    configure_logging(config.effective_log_level)
    logger.debug("configuration_loaded", config=repr(config))

    agent = RescueAgent(config)
    try:
        agent.run()
    except AGENT_ERRORS as e:
        logger.critical("rescue_agent_failed", step=agent.step, error=str(e))
        return 1

    logger.info("rescue_agent_completed")
    return 0


def run() -> None:
    """Entry point for console script."""
    sys.exit(main())


if __name__ == "__main__":
    run()
