import json
import sys

import uvicorn

from config import load_config, masked_config, validate_config
from spotify_api.auth import check_spotify_credentials
from utils.logger import setup_logging, log_info, log_warning, log_error


def run_server(config):
    from api.app import create_app

    status = check_spotify_credentials(config)
    if status["ok"]:
        log_info(status["message"])
    else:
        log_warning(status["message"])

    app = create_app(config)
    uvicorn.run(
        app,
        host=config["server_host"],
        port=int(config["server_port"]),
        log_level=str(config.get("log_level", "INFO")).lower(),
    )


def run_menu(config):
    from menus.schedule_menu import schedule_menu

    schedule_menu(config)


if __name__ == "__main__":
    try:
        config = load_config()
    except json.JSONDecodeError as e:
        setup_logging()
        log_error(f"Config file contains invalid JSON: {e}")
        sys.exit(1)
    except (OSError, ValueError) as e:
        setup_logging()
        log_error(f"Error loading config: {e}")
        sys.exit(1)

    setup_logging(config.get("log_level", "INFO"), config.get("log_file") or None)

    is_valid, errors = validate_config(config)
    if not is_valid:
        for error in errors:
            log_error(f"Config: {error}")
        sys.exit(1)

    for key, value in masked_config(config).items():
        log_info(f"[BOOT] {key} = {value}")

    command = sys.argv[1] if len(sys.argv) > 1 else "serve"

    if command == "serve":
        run_server(config)

    elif command == "menu":
        run_menu(config)

    else:
        log_error(f"Unknown command '{command}'. Use: python main.py [serve|menu]")
        sys.exit(2)
