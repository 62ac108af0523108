import argparse
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from . import __version__
from .config import load_metrics_config, settings_from_args
from .errors import ConfigError, DiscoError
from .poller import SwitchPoller

logger = logging.getLogger(__name__)


# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def create_app(poller: SwitchPoller, manage_poller: bool = True) -> FastAPI:
    """Build the exposition app. With manage_poller the app starts and stops the poller."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        if manage_poller:
            logger.info(f"Starting switch collector for {poller.settings.target}...")
            # Discovery failure propagates and aborts startup
            poller.start()
            logger.info("Collector started successfully")

        yield

        if manage_poller:
            logger.info("Shutting down...")
            poller.stop()
            logger.info("Shutdown complete")

    app = FastAPI(
        title="Switch Collector",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        openapi_url=None,
        redoc_url=None,
    )
    app.add_middleware(SecurityHeadersMiddleware)

    @app.get("/")
    async def root():
        """API root"""
        return {
            "message": "Switch Collector",
            "target": poller.settings.target,
            "version": __version__,
            "endpoints": {
                "health": "/api/health",
                "metrics": "/metrics",
            },
        }

    @app.get("/api/health")
    async def health():
        """Health Check"""
        return {
            "status": "ok" if poller.running else "starting",
            "timestamp": datetime.now().isoformat(),
            **poller.status(),
        }

    @app.get("/metrics")
    async def metrics():
        """Prometheus exposition of the cumulative switch counters"""
        if poller.metrics is None:
            raise HTTPException(status_code=503, detail="Collector not initialized")
        return Response(
            content=generate_latest(poller.metrics.registry),
            media_type=CONTENT_TYPE_LATEST,
        )

    return app


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Collect switch SNMP counters for the local machine and uplink.")
    parser.add_argument("--web.listen-address", dest="listen_address", default=None,
                        help="Address to listen on for telemetry (default :8888).")
    parser.add_argument("--metrics", default=None,
                        help="Path to YAML file defining metrics to scrape.")
    parser.add_argument("--write-interval", dest="write_interval", type=int, default=None,
                        help="Seconds between writes of the archive files (default 300).")
    parser.add_argument("--data-dir", dest="data_dir", default=None,
                        help="Base directory for archive files (default current directory).")
    parser.add_argument("--log-level", dest="log_level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def main(argv=None):
    import uvicorn

    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = settings_from_args(args)
        metrics_config = load_metrics_config(settings.metrics_file)
        host, port = settings.listen_host_port()
    except ConfigError as e:
        logger.critical(str(e))
        sys.exit(1)

    poller = SwitchPoller(settings, metrics_config)
    try:
        poller.start()
    except DiscoError as e:
        logger.critical(f"Startup failed: {e}")
        sys.exit(1)

    app = create_app(poller, manage_poller=False)
    logger.info(f"Listening on {host}:{port}")
    try:
        uvicorn.run(app, host=host, port=port, log_level=args.log_level.lower())
    finally:
        poller.stop()


if __name__ == "__main__":
    main()
