import asyncio
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from loguru import logger

from verus_chat.chains import BLOCKCHAINS
from verus_chat.config import settings
from verus_chat.discovery import ConfigLocator, config_path_in_folder, parse_config_file
from verus_chat.errors import (
    RPC_IN_WARMUP,
    ConfigError,
    ConfigNotFoundError,
    RpcError,
    RpcResponseError,
    RpcTimeoutError,
)
from verus_chat.models import (
    BlockchainDescriptor,
    Credentials,
    DetectionOutcome,
    DetectionStatus,
    ParallelDetectionResult,
    RpcEndpoint,
)
from verus_chat.rpc_client import RPCClient

ClientFactory = Callable[[RpcEndpoint, float], RPCClient]


def detection_status_for(exc: Exception) -> DetectionStatus:
    """Map a probe failure to the detection status it represents."""
    if isinstance(exc, (RpcTimeoutError, asyncio.TimeoutError)):
        return DetectionStatus.TIMEOUT
    if isinstance(exc, RpcResponseError) and exc.code == RPC_IN_WARMUP:
        return DetectionStatus.LOADING
    if isinstance(exc, ConfigNotFoundError):
        return DetectionStatus.NOT_FOUND
    if isinstance(exc, ConfigError):
        return DetectionStatus.PARSE_ERROR
    return DetectionStatus.ERROR


def available_endpoint(
    outcome: DetectionOutcome,
    host: str = settings.rpc_host,
) -> Optional[RpcEndpoint]:
    """Endpoint for an outcome that resolved credentials, otherwise None."""
    if outcome.credentials is None:
        return None
    return RpcEndpoint.from_credentials(host, outcome.credentials)


class BlockchainDetector:
    """
    Probes every catalog entry for a usable local daemon, all at once.

    Each entry is handled by an independent unit that locates and parses the
    chain's config file and, if that succeeds, calls `getblockcount` under the
    probe deadline. Units share no state; the results are sorted back into
    catalog order once all of them have finished.

    Attributes:
        catalog (Sequence[BlockchainDescriptor]): Chains to probe, in output
                                                  order.
        locator (ConfigLocator): Finds config files on the local machine.
        client_factory (ClientFactory): Builds an RPC client for an endpoint and
                                        deadline.
        probe_timeout (float): Ceiling, in seconds, for one chain's probe.
        rpc_host (str): Host the probed daemons listen on.
    """

    def __init__(
        self,
        catalog: Sequence[BlockchainDescriptor] = BLOCKCHAINS,
        locator: Optional[ConfigLocator] = None,
        client_factory: ClientFactory = RPCClient,
        probe_timeout: float = settings.probe_timeout,
        rpc_host: str = settings.rpc_host,
    ) -> None:
        self.catalog = tuple(catalog)
        self.locator = locator or ConfigLocator()
        self.client_factory = client_factory
        self.probe_timeout = probe_timeout
        self.rpc_host = rpc_host

    async def detect_all(self) -> ParallelDetectionResult:
        """
        Runs auto-discovery for every catalog entry concurrently.

        Returns:
            ParallelDetectionResult: One outcome per entry, in catalog order.
        """
        logger.info(f"Starting parallel detection of {len(self.catalog)} blockchains")
        return await self._run(lambda descriptor: None)

    async def detect_in_folder(self, folder: Path) -> ParallelDetectionResult:
        """
        Checks one user-chosen folder for each catalog entry's config file.

        The OS search paths are not consulted; each entry's exact config file
        name is looked up directly inside `folder`, then parsed and probed the
        same way as during auto-discovery.

        Args:
            folder (Path): Folder picked by the user.

        Returns:
            ParallelDetectionResult: One outcome per entry, in catalog order.
        """
        logger.info(f"Starting detection in folder {folder}")
        return await self._run(
            lambda descriptor: config_path_in_folder(folder, descriptor),
        )

    async def _run(
        self,
        config_path_for: Callable[[BlockchainDescriptor], Optional[Path]],
    ) -> ParallelDetectionResult:
        start_time = time.perf_counter()

        results = await asyncio.gather(
            *(
                self.detect_one(descriptor, config_path_for(descriptor))
                for descriptor in self.catalog
            ),
            return_exceptions=True,
        )

        outcomes: List[DetectionOutcome] = []
        for descriptor, result in zip(self.catalog, results):
            if isinstance(result, BaseException):
                logger.error(f"Detection task for {descriptor.id} failed: {result}")
                result = DetectionOutcome(
                    blockchain_id=descriptor.id,
                    blockchain_name=descriptor.name,
                    status=DetectionStatus.ERROR,
                    error_message=f"Detection task failed: {result}",
                )
            outcomes.append(result)

        # gather keeps argument order, but results are re-sorted by catalog
        # position so completion order can never reach the output
        position = {descriptor.id: index for index, descriptor in enumerate(self.catalog)}
        outcomes.sort(key=lambda outcome: position[outcome.blockchain_id])

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        total_detected = sum(
            1 for outcome in outcomes if outcome.status is DetectionStatus.AVAILABLE
        )
        logger.info(
            f"Detection finished in {duration_ms}ms, "
            f"{total_detected} of {len(outcomes)} blockchains available",
        )
        return ParallelDetectionResult(
            blockchains=outcomes,
            total_detected=total_detected,
            detection_duration_ms=duration_ms,
        )

    async def detect_one(
        self,
        descriptor: BlockchainDescriptor,
        config_path: Optional[Path] = None,
    ) -> DetectionOutcome:
        """
        Locates, parses and probes a single chain.

        Args:
            descriptor (BlockchainDescriptor): The chain to detect.
            config_path (Optional[Path]): Exact config file to use. When None the
                                          OS-specific candidate paths are
                                          searched.

        Returns:
            DetectionOutcome: The chain's terminal detection state.
        """
        try:
            if config_path is None:
                config_path = await asyncio.to_thread(self.locator.locate, descriptor)
            credentials = await asyncio.to_thread(parse_config_file, config_path)
        except ConfigError as exc:
            logger.debug(f"{descriptor.id}: {exc}")
            return DetectionOutcome(
                blockchain_id=descriptor.id,
                blockchain_name=descriptor.name,
                status=detection_status_for(exc),
                config_path=str(exc.path) if exc.path else None,
                error_message=str(exc),
            )

        return await self._probe(descriptor, credentials, config_path)

    async def _probe(
        self,
        descriptor: BlockchainDescriptor,
        credentials: Credentials,
        config_path: Path,
    ) -> DetectionOutcome:
        endpoint = RpcEndpoint.from_credentials(self.rpc_host, credentials)
        client = self.client_factory(endpoint, self.probe_timeout)
        height: Optional[int] = None
        error: Optional[Exception] = None

        try:
            height = await asyncio.wait_for(
                client.get_block_count(
                    timeout=self.probe_timeout,
                    tolerate_server_error=True,
                ),
                timeout=self.probe_timeout,
            )
        except (RpcError, asyncio.TimeoutError) as exc:
            error = exc
        finally:
            await client.close()

        if error is None:
            logger.info(f"{descriptor.id} is available at height {height}")
            status = DetectionStatus.AVAILABLE
            message = None
        else:
            status = detection_status_for(error)
            message = str(error) or f"Probe timed out after {self.probe_timeout}s"
            logger.warning(f"{descriptor.id} probe ended as {status.value}: {message}")

        return DetectionOutcome(
            blockchain_id=descriptor.id,
            blockchain_name=descriptor.name,
            status=status,
            credentials=credentials,
            config_path=str(config_path),
            error_message=message,
            block_height=height,
        )
