#!/usr/bin/env python3
"""Main entry point for the RelayChat server.

Bootstraps a Uvicorn ASGI server for relaychat.api.server:app.
Loads .env file from --workdir if present to populate environment variables.
Requires --workdir path and proper configuration (chat model and API key).
"""

import asyncio
import os
import signal
import sys
from argparse import ArgumentParser
from pathlib import Path

shutdown_event = asyncio.Event()

if __name__ == "__main__":
    # Parse arguments FIRST (before any config validation) so --help works always
    parser = ArgumentParser(description="Start RelayChat server")
    parser.add_argument(
        "--workdir",
        required=True,
        help="Path to the working directory (database and config stored here)",
    )
    parser.add_argument(
        "--log-format",
        choices=["pretty", "json"],
        help="Log format (pretty or json). Overrides config and LOG_FORMAT env var.",
    )
    parser.add_argument(
        "--log-colors",
        type=lambda x: x.lower() in ("true", "1", "yes", "on"),
        help="Enable colored logs (true/false). Overrides config and LOG_COLORS env var.",
    )
    args, _ = parser.parse_known_args()

    # CLI flags take precedence over config and env
    if args.log_format:
        os.environ["LOG_FORMAT"] = args.log_format
    if args.log_colors is not None:
        os.environ["LOG_COLORS"] = "true" if args.log_colors else "false"

    from relaychat.utils.logger import get_logger

    startup_logger = get_logger("server.startup")

    def signal_handler(signum, frame):
        """Handle shutdown signals gracefully."""
        sig_name = signal.Signals(signum).name
        startup_logger.info(f"Received {sig_name}, initiating graceful shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    workdir_path = Path(args.workdir).expanduser().resolve()
    if not workdir_path.exists():
        startup_logger.error("--workdir does not exist", path=str(workdir_path))
        sys.exit(1)
    if not workdir_path.is_dir():
        startup_logger.error("--workdir is not a directory", path=str(workdir_path))
        sys.exit(1)

    # Relative database paths resolve against workdir
    os.chdir(workdir_path)
    startup_logger.debug("Changed working directory", workdir=str(workdir_path))

    from dotenv import load_dotenv

    env_file = workdir_path / ".env"
    if env_file.exists():
        load_dotenv(dotenv_path=env_file, override=False)
        startup_logger.debug("Loaded .env file", path=str(env_file))
    else:
        startup_logger.debug("No .env file found in workdir", path=str(env_file))

    from relaychat.config import (
        create_config_manager,
        get_default_config,
        settings,
    )

    try:
        config_dir = workdir_path / ".relaychat"
        config_dir.mkdir(parents=True, exist_ok=True)

        config_manager = create_config_manager(
            config_dir, defaults=get_default_config()
        )

        # Watching starts later inside the server's event loop
        asyncio.run(config_manager.initialize())

        settings._config_manager = config_manager

        startup_logger.info(
            "Configuration initialized",
            config_file=str(config_dir / "config.json"),
        )
    except Exception as e:
        startup_logger.error("Failed to initialize configuration", error=str(e))
        sys.exit(1)

    try:
        settings.validate_or_raise()
    except ValueError as e:
        startup_logger.error("Invalid configuration", error=str(e))
        sys.exit(1)

    import uvicorn

    from relaychat.config.logging_config import get_logging_config
    from relaychat.streams.context import get_stream_context

    # Resolve the buffer backend once at startup so its status is logged early
    resumable = get_stream_context() is not None

    startup_logger.info(
        "Starting RelayChat Server",
        server_url=f"http://{settings.server_host}:{settings.server_port}",
        docs_url=f"http://{settings.server_host}:{settings.server_port}/docs",
        workdir=str(workdir_path),
        resumable_streams=resumable,
    )

    reload_enabled_env = os.getenv("SERVER_RELOAD", "false").lower()
    reload_enabled = reload_enabled_env in {"1", "true", "yes", "on"}

    config = uvicorn.Config(
        "relaychat.api.server:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=reload_enabled,
        log_config=get_logging_config(),
        lifespan="on",
        timeout_graceful_shutdown=5,
    )
    server = uvicorn.Server(config)
    # Signals are handled above
    server.install_signal_handlers = False  # type: ignore[attr-defined]

    async def run_server():
        from relaychat.api.server import app

        app.state.config_manager = config_manager

        serve_task = asyncio.create_task(server.serve())
        shutdown_task = asyncio.create_task(shutdown_event.wait())

        done, _pending = await asyncio.wait(
            {shutdown_task, serve_task}, return_when=asyncio.FIRST_COMPLETED
        )

        if shutdown_task in done:
            startup_logger.info("Stopping server due to shutdown signal...")
            server.should_exit = True
            await serve_task
        else:
            shutdown_task.cancel()

    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        startup_logger.info("Server interrupted")
    except Exception as e:
        startup_logger.error("Server failed", error=str(e), exc_info=True)
        sys.exit(1)
    startup_logger.info("Server stopped")
