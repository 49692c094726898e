import asyncio
import json
import sys

from config import load_config, validate_config, write_default_config
from menus.catalog_menu import catalog_menu, sign_in_flow
from spotify_radar import build_services
from spotify_radar.auth import check_spotify_credentials
from utils.logger import log_error, log_info, log_warning, setup_logging


async def run(config: dict) -> int:
    services = build_services(config)
    session_manager = services.session_manager
    session_manager.on_signed_out(lambda _session: log_warning("Session ended; sign in again to continue"))

    try:
        if session_manager.restore() is None:
            if not await sign_in_flow(services, config):
                return 1
        await catalog_menu(services, config)
    finally:
        await services.aclose()

    log_info("Exiting program...")
    return 0


def main() -> int:
    setup_logging()

    try:
        config = load_config()
    except FileNotFoundError as e:
        log_error(f"Config file not found: {e}")
        if write_default_config():
            log_info("Wrote a default config.json; fill in your Spotify app credentials.")
        return 1
    except json.JSONDecodeError as e:
        log_error(f"Config file contains invalid JSON: {e}")
        return 1

    setup_logging(config.get("log_level", "INFO"))

    is_valid, errors = validate_config(config)
    if not is_valid:
        for error in errors:
            log_error(error)
        return 1

    status = check_spotify_credentials(config)
    if not status["ok"]:
        log_error(status["message"])
        return 1

    try:
        return asyncio.run(run(config))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
