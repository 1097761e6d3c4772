import asyncio
import os

DROPPED_BUFFER_COUNT = int(os.environ.get("DROPPED_BUFFER_COUNT", "3"))
RECHECK_INTERVAL = float(os.environ.get("RECHECK_INTERVAL", "5"))
BLOCK_POLL_INTERVAL = float(os.environ.get("BLOCK_POLL_INTERVAL", "2"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FILE = os.environ.get("LOG_FILE") or None
METRICS_PORT = int(os.environ.get("METRICS_PORT", "0"))
shutdown_event = asyncio.Event()

# Resubmission errors meaning another broadcast of the same tx is in flight or mined
KNOWN_TX_ERRORS = (
    # geth
    "replacement transaction underpriced",
    "known transaction",
    # parity
    "gas price too low to replace",
    "transaction with the same hash was already imported",
    # other
    "gateway timeout",
    "nonce too low",
)

WARNING_LOADING_TX = "There was a problem loading this transaction."
WARNING_RESUBMITTING_TX = "There was an error when resubmitting this transaction."
