import uvicorn

from callback_relay import relay_logger as logger
from callback_relay.config import RELAY_HOST, RELAY_PORT


def main() -> None:
    logger.info(f"Starting Callback Relay on {RELAY_HOST}:{RELAY_PORT}")
    uvicorn.run("callback_relay.callback_app:app", host=RELAY_HOST, port=RELAY_PORT)


if __name__ == "__main__":
    main()
