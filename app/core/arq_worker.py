import asyncio
import logging
import sys
import time

from arq import cron, Worker
from arq.connections import RedisSettings

from app.core import paths
from app.core.config import REDIS_URL, STORE_NAMESPACE
from app.core.repository import check_membership, rebuild_group_index
from app.core.store import RedisStore
from app.schemas.retro import Board

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)


async def repair_board(ctx, board_id: str):
    """Background job: re-derive group indexes left inconsistent by partial writes."""
    logger.info(f"🔹 Checking group membership on board {board_id}")
    store = ctx.get("store") or RedisStore(ctx["redis"], namespace=STORE_NAMESPACE)

    try:
        snapshot = await store.get(paths.board_path(board_id))
        if snapshot is None:
            logger.info(f"⚠️ Board {board_id} not found")
            return 0

        board = Board.from_snapshot(board_id, snapshot)
        problems = check_membership(board)
        if not problems:
            return 0

        for problem in problems:
            logger.warning(f"⚠️ {problem}")
        writes = rebuild_group_index(board)
        await store.write_batch(writes)
        logger.info(f"✅ Repaired {len(writes)} entries on board {board_id}")
        return len(writes)

    except Exception as e:
        logger.error(f"❌ Repair failed on board {board_id}: {e}", exc_info=True)
        raise


# Retry behavior for repair jobs
repair_board.max_tries = 3
repair_board.retry_delay = 10  # seconds


async def worker_heartbeat(ctx):
    redis = ctx["redis"]
    await redis.set(
        "arq:heartbeat", str(time.time()), ex=60
    )  # expire in 60 seconds


async def run_worker_forever():
    """
    Resilient loop that keeps the ARQ worker running.
    Restarts worker on failure with exponential backoff.
    """
    backoff = 1
    while True:
        try:
            worker = Worker(
                functions=[repair_board],
                redis_settings=RedisSettings.from_dsn(REDIS_URL),
                cron_jobs=[
                    cron(worker_heartbeat, second=0),
                ],
                keep_result=0,
                max_jobs=5,
            )
            logger.info("🚀 Starting ARQ worker...")
            await worker.async_run()
        except asyncio.CancelledError:
            logger.warning("🌀 Worker shutdown triggered by CancelledError, safe to ignore.")
        except Exception as e:
            logger.error(f"❌ Worker crashed: {e}", exc_info=True)
            logger.info(f"🔁 Restarting worker in {backoff} seconds...")
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, 60)  # Max backoff 1 minute
        else:
            backoff = 1  # Reset backoff on clean exit


if __name__ == "__main__":
    try:
        asyncio.run(run_worker_forever())
    except KeyboardInterrupt:
        logger.info("🛑 Worker manually stopped.")
