#!/usr/bin/env python3
"""
DEX Arbitrator

Watches the same pair on Uniswap V3 and PancakeSwap V3 and trades the
spread when it clears fees, slippage and execution cost.

Usage:
    python main.py run              # Start an arbitrage session
    python main.py config           # Show configuration
    python main.py pools            # List known pools
    python main.py price USDT/WBNB  # Read current pool prices
    python main.py evaluate 100 105 # Run the profitability test offline
    python main.py balances         # Show wallet balances and router allowances
    python main.py approve          # Approve both routers to spend the pair's tokens
"""

import asyncio
import signal
import sys
from decimal import Decimal, InvalidOperation
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from arbitrator.config import get_config
from arbitrator.logger import setup_logging, get_logger
from arbitrator.chain import ChainConnector, Keychain, Wallet, get_network, to_readable
from arbitrator.chain.wallet import NATIVE_DECIMALS
from arbitrator.dex import PANCAKESWAP, UNISWAP, PancakeswapV3Venue, UniswapV3Venue, list_pools
from arbitrator.dex.pools import shared_symbols
from arbitrator.engine import ArbitrageEngine
from arbitrator.exceptions import ArbitratorError

# Initialize
app = typer.Typer(
    name="dex-arbitrator",
    help="Uniswap / PancakeSwap V3 arbitrage bot",
    add_completion=False,
)
console = Console()
logger = None


def setup():
    """Initialize logging and configuration."""
    global logger
    setup_logging()
    logger = get_logger("main")


def _parse_decimal(value: str, name: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        console.print(f"[red]{name} is not a number: {value}[/red]")
        raise typer.Exit(1)


async def _run_session(symbol: str, chain: Optional[str]) -> None:
    config = get_config()
    network = get_network(chain)
    keychain = Keychain.from_config()

    async with ChainConnector(network) as connector:
        uniswap = UniswapV3Venue(connector, keychain)
        pancakeswap = PancakeswapV3Venue(connector, keychain)
        engine = ArbitrageEngine(uniswap, pancakeswap, config.trading.to_order_config())

        stop_task: Optional[asyncio.Task] = None

        def request_stop():
            nonlocal stop_task
            if stop_task is None:
                console.print("\n[yellow]Shutting down gracefully...[/yellow]")
                stop_task = asyncio.create_task(engine.stop())

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, request_stop)

        try:
            await engine.start(symbol)
        finally:
            if stop_task is None:
                await engine.stop()
            else:
                await stop_task
            await uniswap.close()
            await pancakeswap.close()


@app.command()
def run(
    paper: bool = typer.Option(True, "--paper/--live", help="Paper trading mode"),
    symbol: Optional[str] = typer.Option(None, "--symbol", "-s", help="Pair to trade, e.g. USDT/WBNB"),
    chain: Optional[str] = typer.Option(None, "--chain", "-c", help="Network name, e.g. BscMainnet"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt (for automated deployments)"),
):
    """
    Start an arbitrage session between Uniswap and PancakeSwap.

    By default runs in paper trading mode. Use --live for real swaps.
    The session ends when either venue's price stream closes.
    """
    # Override config if needed
    config = get_config()
    if not paper:
        config.development.paper_trading = False
    if debug:
        config.development.debug_mode = True
        config.monitoring.log_level = "DEBUG"
    setup()

    symbol = symbol or config.trading.active_symbol
    chain_name = chain or config.chain.active_chain

    console.print(Panel.fit(
        "[bold green]🔁 DEX Arbitrator[/bold green]\n\n"
        f"Mode: [yellow]{'Paper Trading' if paper else '🔴 LIVE TRADING'}[/yellow]\n"
        f"Chain: [cyan]{chain_name}[/cyan]\n"
        f"Symbol: [cyan]{symbol}[/cyan]\n"
        f"Notional: [cyan]{config.trading.notional_amount}[/cyan]\n"
        f"Profit Threshold: [cyan]{config.trading.profit_threshold}[/cyan]",
        title="Configuration",
        border_style="green",
    ))

    if not paper and not yes:
        confirm = typer.confirm(
            "⚠️  You are about to start LIVE trading with real funds. Continue?",
            default=False,
        )
        if not confirm:
            console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit()

    try:
        asyncio.run(_run_session(symbol, chain))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
    except (ArbitratorError, KeyError) as e:
        console.print(f"[red]Error: {e}[/red]")
        if debug:
            raise
        raise typer.Exit(1)


@app.command()
def config():
    """Show current configuration."""
    setup()

    cfg = get_config()

    console.print(Panel.fit(
        f"[bold]Trading Parameters[/bold]\n"
        f"  Active Symbol: {cfg.trading.active_symbol}\n"
        f"  Notional Amount: {cfg.trading.notional_amount}\n"
        f"  Profit Threshold: {cfg.trading.profit_threshold}\n"
        f"  Slippage Buffer: {cfg.trading.slippage_buffer:.2%}\n"
        f"  Fixed Execution Cost: {cfg.trading.fixed_execution_cost}\n\n"
        f"[bold]Venues[/bold]\n"
        f"  Uniswap Fee: {cfg.venues.uniswap_fee_rate:.2%}\n"
        f"  PancakeSwap Fee: {cfg.venues.pancakeswap_fee_rate:.2%}\n"
        f"  Gas: {cfg.venues.gas_fee_cap_gwei} gwei cap / {cfg.venues.gas_tip_cap_gwei} gwei tip, limit {cfg.venues.gas_limit}\n\n"
        f"[bold]Chain[/bold]\n"
        f"  Network: {cfg.chain.active_chain}\n"
        f"  Wallet Configured: {'Yes' if cfg.wallet.is_configured() else 'No'}\n"
        f"  Stream Reconnect Attempts: {cfg.stream.reconnect_attempts}\n\n"
        f"[bold]Mode[/bold]\n"
        f"  Paper Trading: {'Yes' if cfg.development.paper_trading else 'No'}\n"
        f"  Debug Mode: {'Yes' if cfg.development.debug_mode else 'No'}",
        title="⚙️ Configuration",
        border_style="blue",
    ))


@app.command()
def pools():
    """List the pools each venue can subscribe to."""
    table = Table(title="🏊 Known Pools", box=box.ROUNDED)
    table.add_column("Venue", style="cyan")
    table.add_column("Chain")
    table.add_column("Symbol", style="green")
    table.add_column("Mainnet Address", style="dim")
    table.add_column("Testnet Address", style="dim")
    table.add_column("Decimals", justify="right")

    for venue, chain_name, symbol, pool in list_pools():
        table.add_row(
            venue,
            chain_name,
            symbol,
            pool.address or "-",
            pool.test_address or "-",
            f"{pool.base_decimals}/{pool.quote_decimals}",
        )

    console.print(table)

    for chain_name in sorted({row[1] for row in list_pools()}):
        both = shared_symbols(UNISWAP, PANCAKESWAP, chain_name)
        console.print(f"[dim]{chain_name}: arbitrable on both venues: {', '.join(both) or 'none'}[/dim]")


@app.command()
def price(
    symbol: Optional[str] = typer.Argument(None, help="Pair to read, e.g. USDT/WBNB"),
    chain: Optional[str] = typer.Option(None, "--chain", "-c", help="Network name"),
):
    """Read the current price of a pair on both venues."""
    setup()

    symbol = symbol or get_config().trading.active_symbol

    async def fetch_prices():
        async with ChainConnector(get_network(chain)) as connector:
            keychain = Keychain()
            venues = [UniswapV3Venue(connector, keychain), PancakeswapV3Venue(connector, keychain)]
            prices = {}
            for venue in venues:
                try:
                    prices[venue.name] = await venue.get_spot_price(symbol)
                except ArbitratorError as e:
                    prices[venue.name] = e
            return prices

    console.print("[dim]Reading pool prices...[/dim]")

    try:
        prices = asyncio.run(fetch_prices())
    except (ArbitratorError, KeyError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"💱 {symbol}", box=box.ROUNDED)
    table.add_column("Venue", style="cyan")
    table.add_column("Price", justify="right", style="green")

    for venue_name, value in prices.items():
        if isinstance(value, Exception):
            table.add_row(venue_name, f"[red]{value}[/red]")
        else:
            table.add_row(venue_name, f"{value:.8f}")

    console.print(table)


@app.command()
def evaluate(
    price_a: str = typer.Argument(..., help="Uniswap price (quote per base)"),
    price_b: str = typer.Argument(..., help="PancakeSwap price (quote per base)"),
):
    """
    Run the two-stage profitability test on a pair of prices.

    Uses the configured venue fees and order parameters; nothing is sent.
    """
    setup()

    a = _parse_decimal(price_a, "PRICE_A")
    b = _parse_decimal(price_b, "PRICE_B")

    cfg = get_config()
    # Venues are never connected here; only their fees are read
    connector = ChainConnector(get_network())
    keychain = Keychain()
    engine = ArbitrageEngine(
        UniswapV3Venue(connector, keychain, paper_trading=True),
        PancakeswapV3Venue(connector, keychain, paper_trading=True),
        cfg.trading.to_order_config(),
    )

    table = Table(title="🧮 Profitability Test", box=box.ROUNDED)
    table.add_column("Step", style="cyan")
    table.add_column("Value", justify="right")

    if a <= 0 or b <= 0:
        console.print("[red]Prices must be greater than zero[/red]")
        raise typer.Exit(1)

    ceiling = engine.fee_ceiling()
    spread_ratio = (max(a, b) - min(a, b)) / min(a, b)
    spread_ok = engine.is_spread_profitable(a, b)
    table.add_row("Fee Ceiling", f"{ceiling}")
    table.add_row("Spread Ratio", f"{spread_ratio:.6f}")
    table.add_row("Spread Test", "[green]pass[/green]" if spread_ok else "[red]fail[/red]")

    if spread_ok:
        evaluation = engine.simulate_profit(a, b)
        table.add_row("Net Quote Spent", f"{evaluation.net_quote_spent:.8f}")
        table.add_row("Base Acquired", f"{evaluation.base_acquired:.8f}")
        table.add_row("Net Base Sold", f"{evaluation.net_base_sold:.8f}")
        table.add_row("Quote Returned", f"{evaluation.quote_returned:.8f}")
        table.add_row("Profit", f"{evaluation.profit:.8f}")
        table.add_row("Profit Threshold", f"{evaluation.profit_threshold}")
        table.add_row(
            "Profit Test",
            "[green]pass[/green]" if evaluation.is_profitable else "[red]fail[/red]",
        )

    console.print(table)

    decision = engine.evaluate(a, b)
    if decision.is_actionable:
        console.print(
            f"[bold green]Buy on {decision.buy_venue}, sell on {decision.sell_venue}"
            f" ({decision.amount} {decision.symbol})[/bold green]"
        )
    else:
        console.print("[yellow]No trade[/yellow]")


@app.command()
def balances(
    symbol: Optional[str] = typer.Argument(None, help="Pair whose tokens to show, e.g. USDT/WBNB"),
    chain: Optional[str] = typer.Option(None, "--chain", "-c", help="Network name"),
):
    """Show the wallet's native and token balances and each router's allowance."""
    setup()

    symbol = symbol or get_config().trading.active_symbol

    async def fetch_balances():
        async with ChainConnector(get_network(chain)) as connector:
            keychain = Keychain.from_config()
            wallet = Wallet(connector, keychain)
            rows = [("Native", "-", to_readable(await wallet.get_native_balance(), NATIVE_DECIMALS), None)]

            for venue in (UniswapV3Venue(connector, keychain), PancakeswapV3Venue(connector, keychain)):
                pool = venue.resolve_pool(symbol)
                tokens = (
                    (pool.base_token, pool.base_token_contract, pool.base_decimals),
                    (pool.quote_token, pool.quote_token_contract, pool.quote_decimals),
                )
                for token, contract, decimals in tokens:
                    balance = to_readable(await wallet.get_token_balance(contract), decimals)
                    allowance = await wallet.get_allowance(contract, venue.router_address)
                    rows.append((token, venue.name, balance, to_readable(allowance, decimals)))
            return wallet.address, rows

    try:
        address, rows = asyncio.run(fetch_balances())
    except (ArbitratorError, KeyError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"👛 {address}", box=box.ROUNDED)
    table.add_column("Token", style="cyan")
    table.add_column("Router")
    table.add_column("Balance", justify="right", style="green")
    table.add_column("Allowance", justify="right")

    for token, router, balance, allowance in rows:
        table.add_row(
            token,
            router,
            f"{balance:.8f}",
            "-" if allowance is None else f"{allowance:.8f}",
        )

    console.print(table)


@app.command()
def approve(
    symbol: Optional[str] = typer.Argument(None, help="Pair whose tokens to approve, e.g. USDT/WBNB"),
    chain: Optional[str] = typer.Option(None, "--chain", "-c", help="Network name"),
    paper: bool = typer.Option(True, "--paper/--live", help="Paper trading mode"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
):
    """
    Approve both routers to spend the pair's tokens.

    Only routers whose allowance is exhausted get a new approval.
    """
    config = get_config()
    if not paper:
        config.development.paper_trading = False
    setup()

    symbol = symbol or config.trading.active_symbol

    if not paper and not yes:
        if not typer.confirm(f"⚠️  Send approval transactions for {symbol}?", default=False):
            console.print("[yellow]Aborted.[/yellow]")
            raise typer.Exit()

    async def send_approvals():
        async with ChainConnector(get_network(chain)) as connector:
            keychain = Keychain.from_config()
            sent = []
            for venue in (UniswapV3Venue(connector, keychain), PancakeswapV3Venue(connector, keychain)):
                pool = venue.resolve_pool(symbol)
                for token, contract in (
                    (pool.base_token, pool.base_token_contract),
                    (pool.quote_token, pool.quote_token_contract),
                ):
                    if paper:
                        transaction_id = await venue.wallet.approve(contract, venue.router_address)
                    else:
                        transaction_id = await venue.wallet.ensure_allowance(contract, venue.router_address, 1)
                    sent.append((venue.name, token, transaction_id))
            return sent

    try:
        sent = asyncio.run(send_approvals())
    except (ArbitratorError, KeyError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    for venue_name, token, transaction_id in sent:
        if transaction_id is None:
            console.print(f"[dim]{venue_name} router already approved for {token}[/dim]")
        else:
            console.print(f"[green]{venue_name} router approved for {token}: {transaction_id}[/green]")


@app.command()
def version():
    """Show version information."""
    from arbitrator import __version__

    console.print(Panel.fit(
        f"[bold]DEX Arbitrator[/bold]\n"
        f"Version: {__version__}\n"
        f"Python: {sys.version.split()[0]}",
        border_style="blue",
    ))


if __name__ == "__main__":
    app()
