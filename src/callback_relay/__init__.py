from callback_relay.utils.logger import setup_logger

relay_logger = setup_logger("callback_relay", log_file="callback_relay.log")

__all__ = ["relay_logger"]
