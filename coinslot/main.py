import logging
import os
from collections import deque
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from . import config
from .acceptor import CoinAcceptor
from .hardware import create_driver

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
CONSOLE_HANDLER = "coinslot.console"


def configure_logging(log_file: str = config.LOG_FILE, level: int = logging.INFO) -> None:
    """Log to the console and to the file served by /logs; safe to call more than once"""
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    root = logging.getLogger()
    root.setLevel(level)

    path = os.path.abspath(log_file)
    names = {h.name for h in root.handlers}

    if CONSOLE_HANDLER not in names:
        console = logging.StreamHandler()
        console.set_name(CONSOLE_HANDLER)
        console.setFormatter(formatter)
        root.addHandler(console)

    if not any(isinstance(h, logging.FileHandler) and h.baseFilename == path for h in root.handlers):
        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def create_app(acceptor: Optional[CoinAcceptor] = None, log_file: str = config.LOG_FILE) -> FastAPI:
    """
    Build the API around a coin acceptor

    Args:
        acceptor: Service to expose; built from config when omitted
        log_file: File served by the /logs endpoint
    """
    if acceptor is None:
        acceptor = CoinAcceptor(create_driver())

    app = FastAPI(title="Coin Slot API", version="1.0")
    app.state.acceptor = acceptor
    app.state.log_file = log_file

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/status")
    def get_status():
        """Get total value and coin slot state"""
        return acceptor.status()

    @app.get("/coins")
    def get_coin_count():
        """Get current inserted coin value"""
        return {"coins": acceptor.total}

    @app.get("/api")
    def poll_coin_count(request: Request):
        """Polling endpoint used by the kiosk page; ?simulate injects one pulse"""
        if "simulate" in request.query_params:
            acceptor.inject_pulses(1)
        return {"coin_count": acceptor.total}

    @app.post("/coinslot/{action}")
    def control_coinslot(action: str):
        """
        Enable or disable the coin slot acceptor

        Args:
            action: "on" to accept coins, "off" to stop counting

        Returns:
            Success flag and resulting state
        """
        action = action.upper()
        if action not in ["ON", "OFF"]:
            raise HTTPException(status_code=400, detail="Action must be 'on' or 'off'")

        if action == "ON":
            success = acceptor.activate()
        else:
            success = acceptor.deactivate()

        return {
            "success": success,
            "action": action.lower(),
            "enabled": acceptor.active,
        }

    @app.post("/coins/simulate")
    def simulate_coin(background_tasks: BackgroundTasks, pulses: int = Query(1, ge=1, le=100)):
        """
        Simulate a coin insertion for machines without a sensor

        Args:
            pulses: Number of pulses to generate (1 = 1 peso coin, 5 = 5 pesos, ...)
        """
        background_tasks.add_task(acceptor.inject_pulses, pulses)
        return {"success": True, "pulses": pulses}

    @app.get("/logs")
    def get_logs(lines: int = 50):
        """Get the most recent log lines

        Args:
            lines: Number of most recent lines to fetch (default: 50)
        """
        try:
            with open(app.state.log_file, "r") as f:
                return {"logs": list(deque(f, maxlen=max(lines, 0)))}
        except OSError as e:
            return {"error": f"Error reading log file: {e}"}

    @app.get("/health")
    def health_check():
        """API health check endpoint"""
        return {
            "status": "online",
            "driver": acceptor.driver.name,
            "output_available": acceptor.driver.output_available,
        }

    @app.on_event("startup")
    async def startup_event():
        """Start logging to the file served by /logs"""
        configure_logging(app.state.log_file)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Clean up resources on shutdown"""
        acceptor.close()

    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host=config.HOST, port=config.PORT)
