"""MentionBot entry point.

Assembles all system components (storage, social client, wallet, swap
client, orchestrator, scheduler, command queue, HTTP API) from configuration
and runs them with graceful shutdown support.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
from dataclasses import dataclass, field

import uvicorn

from mentionbot import __version__
from mentionbot.alerts.formatter import NotificationFormatter
from mentionbot.alerts.manager import NotificationDispatcher
from mentionbot.alerts.telegram import TelegramNotifier
from mentionbot.alerts.twitter_reply import TwitterReplyNotifier
from mentionbot.api.app import create_app
from mentionbot.config import AppConfig, load_config
from mentionbot.connectors.rate_limiter import RateLimitTracker
from mentionbot.connectors.solana import SolanaWalletClient
from mentionbot.connectors.twitter import TwitterClient
from mentionbot.core.orchestrator import TradeOrchestrator
from mentionbot.core.service import CommandService
from mentionbot.core.worker import CommandQueue
from mentionbot.execution.base import SwapClient, WalletClient
from mentionbot.execution.jupiter import JupiterSwapClient, load_keypair
from mentionbot.execution.paper_wallet import PaperWallet
from mentionbot.logging import get_logger, setup_logging
from mentionbot.models.trade import ExecutionMode
from mentionbot.monitoring.metrics import MetricsCollector
from mentionbot.storage.redis_store import RedisStorage


@dataclass
class Components:
    """Assembled application components.

    Attributes:
        storage: Redis persistence.
        service: Command service (owns the scheduler).
        queue: Background command queue.
        social_client: X client, if read credentials are configured.
        solana_client: RPC wallet client, in live mode.
        live_swap_client: Jupiter swap client, in live mode.
        metrics: Prometheus collector, if enabled.
        notifiers: Names of the enabled notification channels.
    """

    storage: RedisStorage
    service: CommandService
    queue: CommandQueue
    social_client: TwitterClient | None = None
    solana_client: SolanaWalletClient | None = None
    live_swap_client: JupiterSwapClient | None = None
    metrics: MetricsCollector | None = None
    notifiers: list[str] = field(default_factory=list)


@dataclass
class ExecutionClients:
    """Swap and wallet clients for one execution mode.

    Attributes:
        swap: Client executing swaps.
        wallet: Client answering balance queries.
        rpc: Solana RPC client to close on shutdown (live mode).
        live_swap: Jupiter client to close on shutdown (live mode, when built here).
    """

    swap: SwapClient
    wallet: WalletClient
    rpc: SolanaWalletClient | None = None
    live_swap: JupiterSwapClient | None = None


def _create_execution(
    config: AppConfig,
    swap_client: SwapClient | None,
) -> ExecutionClients:
    """Create the swap and wallet clients for the configured execution mode.

    In live mode an injected swap client wins; otherwise a Jupiter client is
    built from ``execution.live_signer_keys``.

    Args:
        config: Application configuration.
        swap_client: Swap client overriding the default for the mode.

    Raises:
        ValueError: If live mode has neither a swap client nor signer keys,
            or a signer key cannot be parsed.
    """
    if config.system.execution_mode == ExecutionMode.PAPER:
        wallet = PaperWallet(
            initial_balances=config.execution.paper_initial_balances,
            default_native_balance=config.execution.paper_default_sol_balance,
        )
        return ExecutionClients(swap=swap_client or wallet, wallet=wallet)

    if swap_client is None and not config.execution.live_signer_keys:
        raise ValueError(
            "Live execution mode requires execution.live_signer_keys "
            "(MENTIONBOT_EXECUTION__LIVE_SIGNER_KEYS)"
        )
    signers = [load_keypair(key) for key in config.execution.live_signer_keys]
    solana = SolanaWalletClient(
        rpc_url=config.solana.rpc_url,
        timeout_seconds=config.solana.request_timeout_seconds,
    )
    if swap_client is not None:
        return ExecutionClients(swap=swap_client, wallet=solana, rpc=solana)

    jupiter = JupiterSwapClient(
        rpc=solana,
        signers=signers,
        api_url=config.execution.jupiter_api_url,
        timeout_seconds=config.solana.request_timeout_seconds,
        confirm_timeout_seconds=config.execution.confirm_timeout_seconds,
    )
    unsigned = [bot.id for bot in config.bots if bot.wallet_public_key not in jupiter.wallets]
    if unsigned:
        get_logger("main").warning("bots_without_signer", bot_ids=unsigned)
    return ExecutionClients(swap=jupiter, wallet=solana, rpc=solana, live_swap=jupiter)


def _create_social_client(config: AppConfig) -> TwitterClient | None:
    if not config.twitter.can_read:
        return None
    return TwitterClient(
        bearer_token=config.twitter.bearer_token,
        api_key=config.twitter.api_key,
        api_secret=config.twitter.api_secret,
        access_token=config.twitter.access_token,
        access_secret=config.twitter.access_secret,
        max_results=config.twitter.max_results,
    )


def build_components(
    config: AppConfig,
    swap_client: SwapClient | None = None,
    storage: RedisStorage | None = None,
    social_client: TwitterClient | None = None,
) -> Components:
    """Wire every component from configuration.

    Args:
        config: Validated application configuration.
        swap_client: Swap client overriding the default for the mode.
        storage: Pre-built storage (for testing).
        social_client: Pre-built social client (for testing).

    Returns:
        Assembled components, not yet started.
    """
    logger = get_logger("main")

    if storage is None:
        storage = RedisStorage(
            redis_url=config.database.redis.url,
            key_prefix=config.database.redis.key_prefix,
        )
    execution = _create_execution(config, swap_client)

    if social_client is None:
        social_client = _create_social_client(config)
    if social_client is None:
        logger.warning("twitter_not_configured", msg="Mention polling disabled")

    metrics = MetricsCollector() if config.metrics.enabled else None

    formatter = NotificationFormatter(cluster=config.solana.cluster)
    dispatcher = NotificationDispatcher()
    notifier_names: list[str] = []
    if config.alerts.twitter_replies and social_client is not None:
        if social_client.can_reply:
            dispatcher.add(TwitterReplyNotifier(social_client, formatter))
            notifier_names.append("twitter")
        else:
            logger.warning("twitter_replies_disabled", msg="No OAuth credentials for replies")
    if config.alerts.telegram.enabled and config.alerts.telegram.bot_token:
        dispatcher.add(
            TelegramNotifier(
                bot_token=config.alerts.telegram.bot_token,
                chat_id=config.alerts.telegram.chat_id,
                formatter=formatter,
            )
        )
        notifier_names.append("telegram")

    orchestrator = TradeOrchestrator(
        storage=storage,
        swap_client=execution.swap,
        wallet_client=execution.wallet,
        notifier=dispatcher,
        metrics=metrics,
        simulate_on_failure=config.execution.simulate_on_failure,
        simulated_output_multiplier=config.execution.simulated_output_multiplier,
        balance_refresh_delay=config.execution.balance_refresh_delay_seconds,
    )
    rate_limiter = RateLimitTracker(low_watermark=config.scheduler.search_low_watermark)
    service = CommandService(
        bots=config.bots,
        storage=storage,
        orchestrator=orchestrator,
        social_client=social_client,
        scheduler_config=config.scheduler,
        rate_limiter=rate_limiter,
        notifier=dispatcher,
        metrics=metrics,
    )
    queue = CommandQueue(service, metrics=metrics)

    return Components(
        storage=storage,
        service=service,
        queue=queue,
        social_client=social_client,
        solana_client=execution.rpc,
        live_swap_client=execution.live_swap,
        metrics=metrics,
        notifiers=notifier_names,
    )


async def run(config: AppConfig, swap_client: SwapClient | None = None) -> None:
    """Run MentionBot until interrupted.

    Args:
        config: Validated application configuration.
        swap_client: Swap client overriding the default for the mode.
    """
    logger = get_logger("main")
    logger.info("mentionbot_starting", mode=config.system.execution_mode.value)

    try:
        components = build_components(config, swap_client=swap_client)
    except ValueError as e:
        logger.error("startup_failed", error=str(e))
        return

    service = components.service
    if components.metrics is not None:
        components.metrics.set_system_info(
            version=__version__,
            mode=config.system.execution_mode.value,
            bots=[bot.handle for bot in config.bots],
        )
        components.metrics.start_server(config.metrics.port)
        logger.info("metrics_server_started", port=config.metrics.port)

    server: uvicorn.Server | None = None
    server_task: asyncio.Task | None = None
    if config.api.enabled:
        app = create_app(service, components.queue)
        server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=config.api.host,
                port=config.api.port,
                log_level=config.system.log_level.lower(),
                log_config=None,
            )
        )

    # Setup shutdown event
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    try:
        await components.storage.connect()

        await components.queue.start()
        logger.info("command_queue_started")

        if service.scheduler is not None:
            pollable = [bot.id for bot in config.bots if bot.pollable]
            await service.scheduler.start(pollable)
            logger.info("scheduler_started", bots=pollable)

        if server is not None:
            server_task = asyncio.create_task(server.serve())
            logger.info("api_started", host=config.api.host, port=config.api.port)

        logger.info(
            "mentionbot_started",
            bots=[bot.handle for bot in config.bots],
            notifiers=components.notifiers,
        )

        # Wait for shutdown signal
        await shutdown_event.wait()

    finally:
        logger.info("mentionbot_shutting_down")

        if server is not None and server_task is not None:
            server.should_exit = True
            await server_task

        await components.queue.stop()
        await service.shutdown()

        if components.live_swap_client is not None:
            await components.live_swap_client.close()
        if components.solana_client is not None:
            await components.solana_client.close()

        await components.storage.disconnect()
        logger.info("mentionbot_stopped")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="MentionBot - trade commands from social mentions",
    )
    parser.add_argument(
        "--config-dir",
        default="configs",
        help="Path to configuration directory (default: configs)",
    )
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ExecutionMode],
        default=None,
        help="Execution mode override (default: from config)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit JSON logs",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    # Load configuration
    config = load_config(config_dir=args.config_dir)

    # Apply mode override if specified
    if args.mode is not None:
        config.system.execution_mode = ExecutionMode(args.mode)

    # Setup logging
    setup_logging(
        log_level=config.system.log_level,
        json_format=args.log_json or config.system.log_json,
    )

    # Run the system
    asyncio.run(run(config))


if __name__ == "__main__":
    main()
