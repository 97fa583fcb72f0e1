"""Entry point: python -m chainhopper [wallet]"""

import asyncio
import sys
from pathlib import Path

from chainhopper.config import Secrets, load_config, resolve_wallet_input
from chainhopper.engine import RebalanceEngine
from chainhopper.logging_config import configure_logging


def main():
    config = load_config(Path("config/settings.yaml"))
    try:
        secrets = Secrets()
    except Exception as e:
        print(f"Failed to load secrets from .env: {e}")
        print("Ensure .env is readable; OPENAI_API_KEY is needed only for the openai strategy")
        sys.exit(1)

    configure_logging(config.logging)

    cli_wallet = sys.argv[1] if len(sys.argv) > 1 else None
    wallet = resolve_wallet_input(config, secrets, cli_wallet)

    try:
        engine = RebalanceEngine(config, secrets)
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    sys.exit(asyncio.run(engine.run(wallet)))


if __name__ == "__main__":
    main()
