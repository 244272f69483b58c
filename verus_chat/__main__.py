# verus_chat/__main__.py
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from verus_chat.config import settings
from verus_chat.detection import BlockchainDetector


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for onboarding detection.

    Probes every known blockchain for a local daemon and logs the outcome of
    each. When a folder is given, only that folder is checked for config files
    instead of the usual per-OS locations.

    Returns:
        int: 0 if at least one daemon is available, 1 otherwise.
    """
    args = sys.argv[1:] if argv is None else argv
    detector = BlockchainDetector()

    if args:
        result = await detector.detect_in_folder(Path(args[0]))
    else:
        result = await detector.detect_all()

    for outcome in result.blockchains:
        details = outcome.error_message or ""
        if outcome.block_height is not None:
            details = f"height {outcome.block_height}"
        logger.info(f"{outcome.blockchain_name}: {outcome.status.value} {details}")

    logger.info(
        f"{result.total_detected} available, "
        f"took {result.detection_duration_ms}ms",
    )
    return 0 if result.total_detected else 1


if __name__ == "__main__":
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    sys.exit(asyncio.run(main()))
