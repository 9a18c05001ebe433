"""
Trade Logger - Clean CSV with ONE ROW per closed position
"""

import csv
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

HEADERS = [
    'date', 'wallet', 'token', 'mint',
    'entry_mcap', 'exit_mcap', 'target_mcap', 'stop_mcap',
    'invested_sol', 'pnl_pct', 'result', 'exit_reason', 'hold_secs',
    'buy_tx', 'sell_tx'
]


class TradeLogger:
    def __init__(self, csv_path: str = "data/trades.csv"):
        self.csv_path = Path(csv_path)
        self.csv_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.csv_path.exists():
            with open(self.csv_path, 'w', newline='') as f:
                csv.writer(f).writerow(HEADERS)
            logger.info(f"Created trade log: {self.csv_path}")

    def log_trade(self, position, exit_market_cap: Optional[float], exit_reason: str):
        pnl = position.pnl_percent
        row = [
            datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S'),
            position.wallet[:8],
            position.symbol,
            position.mint,
            f"{position.entry_market_cap:.0f}",
            f"{exit_market_cap:.0f}" if exit_market_cap else "",
            f"{position.target_market_cap:.0f}",
            f"{position.stop_loss_market_cap:.0f}",
            f"{position.amount_sol:.4f}",
            f"{pnl:+.1f}%" if pnl is not None else "",
            ("WIN" if pnl > 0 else "LOSS") if pnl is not None else "",
            exit_reason,
            f"{time.time() - position.created_at:.1f}",
            position.buy_tx_signature or "",
            position.sell_tx_signature or "",
        ]

        with open(self.csv_path, 'a', newline='') as f:
            csv.writer(f).writerow(row)

        logger.info(f"📊 Logged: {position.symbol} | {exit_reason} | {row[9] or 'n/a'}")
