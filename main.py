import asyncio
import sys

from kalshi_trader.clients import BinanceClient, KalshiClient
from kalshi_trader.config import Config
from kalshi_trader.interfaces import KalshiCredentials
from kalshi_trader.logger import get_logger
from kalshi_trader.services import StrategyRunner

logger = get_logger("main")


async def main():
    logger.info("Initializing Kalshi trader...")

    try:
        config = Config.load()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    client = KalshiClient(KalshiCredentials.from_config(config), use_demo=config.KALSHI_USE_DEMO)
    if not await client.connect():
        logger.error("Could not connect to Kalshi, exiting")
        return 1

    price_feed = BinanceClient(config.BINANCE_BASE_URL)
    runners = [
        StrategyRunner(series, config.binance_symbol_for(series), client, price_feed, config)
        for series in config.SERIES_TICKERS
    ]
    logger.info(f"Trading {', '.join(config.SERIES_TICKERS)} with the {config.STRATEGY} strategy")

    try:
        await asyncio.gather(*(r.start_polling(config.POLL_INTERVAL_SECONDS) for r in runners))
    finally:
        for runner in runners:
            runner.stop()
        await price_feed.close()
        await client.disconnect()
    return 0


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down.")


if __name__ == "__main__":
    run()
