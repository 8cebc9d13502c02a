"""Main entry point for the Solarizer service."""

import asyncio
import logging
import signal
import sys
from typing import Optional

import uvicorn

from .api import create_app
from .breaker import CircuitBreaker
from .config import Settings
from .influx_writer import InfluxWriter
from .scheduler import ImportScheduler
from .session_store import SessionStore
from .solarweb_client import SolarWebClient

logger = logging.getLogger("solarizer")


def setup_logging(level: str = "INFO"):
    """Configure root logging to stdout."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


class Solarizer:
    """Importer and API server sharing one Solar.web client."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.stop_event = asyncio.Event()
        self.client: Optional[SolarWebClient] = None
        self.influx_writer: Optional[InfluxWriter] = None
        self.scheduler: Optional[ImportScheduler] = None
        self._server: Optional[uvicorn.Server] = None

    def setup(self):
        """Create all components. Fails on an unreadable cookie file."""
        settings = self.settings

        session_store = SessionStore(settings.auth_cookie_file)
        breaker = CircuitBreaker(
            name="solarweb",
            min_requests=settings.breaker_min_requests,
            failure_ratio=settings.breaker_failure_ratio,
            cooldown=settings.breaker_cooldown,
            half_open_max_calls=settings.breaker_half_open_max_calls,
        )
        self.client = SolarWebClient(
            settings.pv_system_id,
            session_store,
            breaker=breaker,
            timeout=settings.request_timeout,
        )
        if settings.auth_cookie:
            self.client.set_auth_cookie(settings.auth_cookie)
        logger.info(f"SolarWeb client initialized (pvSystemId={settings.pv_system_id})")

        self.influx_writer = InfluxWriter(
            url=settings.influx_url,
            token=settings.influx_token,
            org=settings.influx_org,
            bucket=settings.influx_bucket,
        )
        self.scheduler = ImportScheduler(
            self.client,
            self.influx_writer,
            fast_interval=settings.fast_interval,
            slow_interval=settings.slow_interval,
        )
        logger.info(f"Influx importer initialized ({settings.influx_url}, bucket={settings.influx_bucket})")

        if not settings.api_tokens:
            logger.warning("API_TOKENS is empty, every API request will be rejected")
        app = create_app(
            self.client,
            settings.api_tokens,
            title=settings.api_title,
            version=settings.api_version,
        )
        server = uvicorn.Server(uvicorn.Config(
            app,
            host=settings.api_host,
            port=settings.api_port,
            log_level="warning",
        ))
        # Signals are handled in main()
        server.install_signal_handlers = lambda: None
        self._server = server
        logger.info(f"API server initialized ({settings.api_host}:{settings.api_port})")

    async def start(self):
        """Run importer and API server until stop() is called."""
        logger.info("=" * 60)
        logger.info("Solarizer - Solar.web importer")
        logger.info("=" * 60)

        self.setup()
        await asyncio.gather(
            self.scheduler.run(self.stop_event),
            self._server.serve(),
        )

    def stop(self):
        """Signal the importer and API server to stop."""
        logger.info("Shutting down")
        self.stop_event.set()
        if self._server:
            self._server.should_exit = True

    async def close(self):
        """Release HTTP and InfluxDB clients."""
        if self.client:
            await self.client.close()
        if self.influx_writer:
            self.influx_writer.close()
        logger.info("Shutdown complete")


async def main():
    """Main entry point."""
    settings = Settings()
    setup_logging(settings.log_level)
    logger.info("Starting up")

    service = Solarizer(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, service.stop)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await service.start()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        await service.close()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
