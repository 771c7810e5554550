# src/farmledger/api/__main__.py
from __future__ import annotations

import os

import uvicorn

from farmledger.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so FARM_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from farmledger.api.app import create_app
    from farmledger.runtime.farm_config import load_farm_config

    cfg = load_farm_config()
    os.environ.setdefault("FARM_MODE", cfg.mode)
    os.environ.setdefault("FARM_LOG_LEVEL", cfg.log_level)

    host = os.getenv("FARM_API_HOST", cfg.api_host)
    port = int(os.getenv("FARM_API_PORT", str(cfg.api_port)))

    uvicorn.run(create_app(), host=host, port=port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
