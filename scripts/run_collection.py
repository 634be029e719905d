# scripts/run_collection.py
import asyncio

from market_collector.config.loader import load_config_from_env
from market_collector.reporting.summary import format_collection_summary
from market_collector.runner.run import run_historical


async def main():
    cfg = load_config_from_env()
    run = await run_historical(cfg)

    print(format_collection_summary(run.result))
    print("Exported files:", sorted(str(p) for p in run.files.values()))


asyncio.run(main())
