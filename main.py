"""EventSub webhook server entry point."""

import logging
import signal
import sys
import threading

from eventsub.bootstrap.config import ServerConfig, parse_cli_args, resolve_secret
from eventsub.bootstrap.logging_setup import configure_logging
from eventsub.domain.correlation_id import CorrelationLoggerAdapter
from eventsub.domain.models import Notification
from eventsub.lifecycle.state import ListenerState
from eventsub.transport.server import ListenerError, Server

MAIN_LOGGER = CorrelationLoggerAdapter(logging.getLogger("eventsub.main"), {})


class LoggingObserver:
    """Logs every notification the server accepts."""

    def server_did_accept(self, connection) -> None:
        """Connections are already logged by the transport layer."""

    def server_did_receive_notification(self, notification: Notification) -> None:
        MAIN_LOGGER.info(
            "Received EventSub notification",
            extra={
                "event": "notification_received",
                "subscription_type": notification.subscription.type.value,
            },
        )


def main(argv: list[str] | None = None) -> int:
    """Run the webhook server until SIGINT or SIGTERM."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, args.log_destination)

    secret_holder = resolve_secret(args)
    if secret_holder is None:
        MAIN_LOGGER.critical(
            "No EventSub secret configured", extra={"event": "missing_secret"}
        )
        return 2

    config = ServerConfig.from_args(args)
    server = Server(
        secret_holder,
        config.port,
        host=config.host,
        max_message_age=config.max_message_age,
        max_request_bytes=config.max_request_bytes,
        observer=LoggingObserver(),
    )
    shutdown_requested = threading.Event()

    def shutdown_handler(signum: int, _frame) -> None:
        MAIN_LOGGER.info("Received shutdown signal", extra={"signal": signum})
        shutdown_requested.set()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    MAIN_LOGGER.info(
        "Starting EventSub webhook server",
        extra={
            "host": config.host,
            "port": config.port,
            "log_destination": args.log_destination,
            "log_level": args.log_level,
            "max_message_age_seconds": config.max_message_age_seconds,
            "max_request_bytes": config.max_request_bytes,
        },
    )
    try:
        server.start()
    except ListenerError:
        MAIN_LOGGER.critical(
            "Failed to start listener", extra={"event": "listener_start_failed"}
        )
        return 1

    while not shutdown_requested.wait(timeout=0.5):
        if server.state is ListenerState.FAILED:
            break
    server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
