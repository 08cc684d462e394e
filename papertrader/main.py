from __future__ import annotations

import csv
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, NoReturn, Optional

import typer

from papertrader.config import AppConfig, load_config
from papertrader.engine import TradingEngine
from papertrader.errors import TradingError
from papertrader.logging_setup import setup_logging
from papertrader.models import SIDES, Position, Side
from papertrader.persistence import SqliteLedgerStore
from papertrader.prices import parse_price_args
from papertrader.risk import preview_trade

app = typer.Typer(add_completion=False, help="Paper trading ledger.")


def _load(config: str) -> AppConfig:
    cfg = load_config(config)
    setup_logging(cfg.log)
    return cfg


@contextmanager
def _open_engine(cfg: AppConfig) -> Iterator[TradingEngine]:
    store = SqliteLedgerStore(cfg.storage.sqlite_path)
    try:
        yield TradingEngine(
            store,
            initial_cash=cfg.account.initial_cash,
            snapshot_limit=cfg.account.snapshot_limit,
            state_key=cfg.storage.state_key,
        )
    finally:
        store.close()


def _parse_side(side: str) -> Side:
    value = side.strip().lower()
    if value not in SIDES:
        typer.echo("Side must be long or short.")
        raise typer.Exit(code=1)
    return value  # type: ignore[return-value]


def _parse_prices(items: Optional[List[str]]) -> dict[str, float]:
    try:
        return parse_price_args(items or [])
    except ValueError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1)


def _fail(log: logging.Logger, event: str, exc: TradingError) -> NoReturn:
    log.warning(event, extra={"error": str(exc), "error_type": type(exc).__name__})
    typer.echo(str(exc))
    raise typer.Exit(code=1)


def _fmt_position(p: Position, mark: float, engine: TradingEngine) -> str:
    upl = engine.unrealized_pl(p, mark)
    upl_pct = engine.unrealized_pl_percent(p, mark)
    return (
        f"position id={p.id} symbol={p.symbol} side={p.side} qty={p.quantity:g} "
        f"avg={p.average_price:.2f} mark={mark:.2f} upl={upl:+.2f} ({upl_pct:+.2f}%)"
    )


@app.command()
def status(config: str = typer.Option(..., "--config", "-c"), price: Optional[List[str]] = typer.Option(None, "--price", "-p", help="Live price as SYMBOL=PRICE, repeatable")) -> None:
    """Show cash, open positions and portfolio totals."""
    cfg = _load(config)
    prices = _parse_prices(price)
    with _open_engine(cfg) as engine:
        typer.echo(f"cash={engine.cash:.2f} initial_cash={engine.initial_cash:.2f}")
        for p in engine.positions:
            typer.echo(_fmt_position(p, prices.get(p.symbol, p.average_price), engine))
        change, change_pct = engine.day_change(prices)
        typer.echo(
            f"total_value={engine.total_portfolio_value(prices):.2f} "
            f"positions_value={engine.positions_value(prices):.2f} "
            f"unrealized_pl={engine.total_unrealized_pl(prices):+.2f}"
        )
        typer.echo(
            f"total_return={engine.total_return(prices):+.2f} ({engine.total_return_percent(prices):+.2f}%) "
            f"day_change={change:+.2f} ({change_pct:+.2f}%)"
        )


@app.command()
def trade(
    symbol: str = typer.Argument(...),
    config: str = typer.Option(..., "--config", "-c"),
    qty: float = typer.Option(..., "--qty"),
    fill_price: float = typer.Option(..., "--at", help="Execution price"),
    side: str = typer.Option("long", "--side"),
    stop_loss: Optional[float] = typer.Option(None, "--stop-loss"),
    take_profit: Optional[float] = typer.Option(None, "--take-profit"),
    notes: str = typer.Option("", "--notes"),
) -> None:
    """Fill a trade immediately at the given price."""
    cfg = _load(config)
    log = logging.getLogger("cli")
    side_value = _parse_side(side)
    with _open_engine(cfg) as engine:
        try:
            t = engine.execute_trade(
                symbol,
                side_value,
                qty,
                fill_price,
                stop_loss=stop_loss,
                take_profit=take_profit,
                notes=notes,
            )
        except TradingError as exc:
            _fail(log, "trade_failed", exc)
        engine.update_portfolio_snapshot({t.symbol: t.price})
        pos = engine.find_position(t.symbol, t.side)
        typer.echo(f"executed trade_id={t.id} symbol={t.symbol} side={t.side} qty={t.quantity:g} price={t.price:.2f}")
        if pos is not None:
            typer.echo(f"position id={pos.id} qty={pos.quantity:g} avg={pos.average_price:.2f}")
        typer.echo(f"cash={engine.cash:.2f}")


@app.command()
def close(
    target: str = typer.Argument(..., help="Position id, or a symbol together with --side"),
    config: str = typer.Option(..., "--config", "-c"),
    close_price: float = typer.Option(..., "--at", help="Current price"),
    side: str = typer.Option("long", "--side"),
) -> None:
    """Close a whole position at the current price."""
    cfg = _load(config)
    log = logging.getLogger("cli")
    side_value = _parse_side(side)
    with _open_engine(cfg) as engine:
        held = engine.get_position(target) or engine.find_position(target, side_value)
        try:
            t = engine.close_position(held if held is not None else target, close_price)
        except TradingError as exc:
            _fail(log, "close_failed", exc)
        engine.update_portfolio_snapshot({t.symbol: t.price})
        typer.echo(f"closed symbol={t.symbol} side={t.side} qty={t.quantity:g} price={t.price:.2f}")
        typer.echo(f"cash={engine.cash:.2f}")


@app.command()
def snapshot(config: str = typer.Option(..., "--config", "-c"), price: Optional[List[str]] = typer.Option(None, "--price", "-p", help="Live price as SYMBOL=PRICE, repeatable")) -> None:
    """Record the current portfolio value."""
    cfg = _load(config)
    prices = _parse_prices(price)
    with _open_engine(cfg) as engine:
        snap = engine.update_portfolio_snapshot(prices)
        typer.echo(
            f"snapshot total_value={snap.total_value:.2f} cash={snap.cash:.2f} "
            f"positions_value={snap.positions_value:.2f} count={len(engine.portfolio_history)}"
        )


@app.command()
def history(config: str = typer.Option(..., "--config", "-c"), limit: int = typer.Option(20, "--limit", "-n")) -> None:
    """List recent trades, newest first."""
    cfg = _load(config)
    with _open_engine(cfg) as engine:
        trades = engine.trade_history[: max(limit, 0)]
        if not trades:
            typer.echo("No trades")
            return
        for t in trades:
            line = f"{t.executed_at.isoformat()} {t.side} {t.quantity:g} {t.symbol} @ {t.price:.2f}"
            if t.stop_loss is not None:
                line += f" sl={t.stop_loss:.2f}"
            if t.take_profit is not None:
                line += f" tp={t.take_profit:.2f}"
            if t.notes:
                line += f" notes={t.notes!r}"
            typer.echo(line)


@app.command()
def preview(
    config: str = typer.Option(..., "--config", "-c"),
    qty: float = typer.Option(..., "--qty"),
    entry: float = typer.Option(..., "--at", help="Planned entry price"),
    stop_loss: Optional[float] = typer.Option(None, "--stop-loss"),
    take_profit: Optional[float] = typer.Option(None, "--take-profit"),
) -> None:
    """Position size and risk numbers for a planned trade."""
    cfg = _load(config)
    with _open_engine(cfg) as engine:
        pv = preview_trade(engine.cash, qty, entry, stop_loss, take_profit, cfg.risk)
    typer.echo(
        f"position_cost={pv.position_cost:.2f} cash={pv.cash_available:.2f} "
        f"position_pct={pv.position_pct:.1f}% affordable={pv.affordable}"
    )
    if pv.risk_usd is not None:
        typer.echo(f"risk={pv.risk_usd:.2f} ({pv.risk_pct:.2f}%) within_budget={pv.within_risk_budget}")
    if pv.reward_risk is not None:
        typer.echo(f"reward_risk=1:{pv.reward_risk:.2f} meets_target={pv.meets_reward_risk}")


def _write_csv(path: Path, columns: list[str], rows: list[list[object]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(columns)
        writer.writerows(rows)


@app.command()
def export(config: str = typer.Option(..., "--config", "-c"), outdir: str = typer.Option("run/exports", "--outdir")) -> None:
    """Export trades and value snapshots to CSV."""
    cfg = _load(config)
    log = logging.getLogger("export")
    out = Path(outdir)
    ts_tag = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    with _open_engine(cfg) as engine:
        trades_path = out / f"trades_{ts_tag}.csv"
        _write_csv(
            trades_path,
            ["id", "executed_at", "symbol", "side", "quantity", "price", "stop_loss", "take_profit", "notes"],
            [
                [t.id, t.executed_at.isoformat(), t.symbol, t.side, t.quantity, t.price, t.stop_loss, t.take_profit, t.notes]
                for t in engine.trade_history
            ],
        )
        snaps_path = out / f"snapshots_{ts_tag}.csv"
        _write_csv(
            snaps_path,
            ["id", "timestamp", "total_value", "cash", "positions_value"],
            [[s.id, s.timestamp.isoformat(), s.total_value, s.cash, s.positions_value] for s in engine.portfolio_history],
        )
    log.info("export_complete", extra={"outdir": str(out), "files": [str(trades_path), str(snaps_path)]})
    typer.echo(f"wrote {trades_path}")
    typer.echo(f"wrote {snaps_path}")


@app.command()
def reset(config: str = typer.Option(..., "--config", "-c"), confirm: bool = typer.Option(False, "--confirm", help="Required to reset")) -> None:
    """Wipe positions, trades and history and start over with the initial cash."""
    if not confirm:
        typer.echo("Refusing to reset without --confirm")
        raise typer.Exit(code=1)
    cfg = _load(config)
    with _open_engine(cfg) as engine:
        engine.reset_portfolio()
        typer.echo(f"portfolio reset cash={engine.cash:.2f}")


if __name__ == "__main__":
    app()
