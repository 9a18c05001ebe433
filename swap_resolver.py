"""
Swap Resolver - Jupiter first, PumpPortal bonding curve as fallback
"""

import logging
from dataclasses import dataclass

import config
from errors import NoRouteError
from jupiter_aggregator import JupiterAggregatorClient, JupiterQuote
from models import Side, TradeIntent, Venue
from pumpportal_trader import PumpPortalTrader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedSwap:
    unsigned_transaction: str
    venue: Venue
    price: float = 0.0  # SOL per token, 0 when the venue gives no quote


def bonding_curve_slippage(side: Side, slippage_bps: int) -> float:
    """Percent slippage for the bonding-curve venue, floored per side"""
    floor = config.PUMPPORTAL_MIN_SELL_SLIPPAGE_PCT if side == Side.SELL else config.PUMPPORTAL_MIN_BUY_SLIPPAGE_PCT
    return max(slippage_bps / 100, floor)


def quote_price(intent: TradeIntent, quote: JupiterQuote, token_decimals: int) -> float:
    if intent.side == Side.BUY:
        tokens = quote.out_amount / (10 ** token_decimals)
        return intent.amount / tokens if tokens else 0.0
    sol_out = quote.out_amount / (10 ** config.SOL_DECIMALS)
    return sol_out / intent.amount if intent.amount else 0.0


class SwapResolver:

    def __init__(self, jupiter=None, pumpportal=None):
        self.jupiter = jupiter or JupiterAggregatorClient()
        self.pumpportal = pumpportal or PumpPortalTrader()

    async def resolve(self, intent: TradeIntent, token_decimals: int = None) -> ResolvedSwap:
        """Return an unsigned transaction for intent or raise NoRouteError"""
        decimals = config.DEFAULT_TOKEN_DECIMALS if token_decimals is None else token_decimals

        if intent.side == Side.BUY:
            input_mint, output_mint = config.SOL_MINT, intent.mint
            amount = int(intent.amount * 10 ** config.SOL_DECIMALS)
        else:
            input_mint, output_mint = intent.mint, config.SOL_MINT
            amount = int(intent.amount * 10 ** decimals)

        quote = None
        if amount > 0:
            quote = await self.jupiter.get_quote(input_mint, output_mint, amount, intent.slippage_bps)

        if quote is not None:
            swap_tx = await self.jupiter.get_swap_transaction(quote, intent.wallet, intent.mev_protection)
            if swap_tx:
                logger.info(f"✅ Jupiter route for {intent.side.value} {intent.mint[:8]}...")
                return ResolvedSwap(
                    unsigned_transaction=swap_tx,
                    venue=Venue.JUPITER,
                    price=quote_price(intent, quote, decimals),
                )
            logger.info(f"Jupiter swap build failed for {intent.mint[:8]}..., trying bonding curve")
        else:
            logger.info(f"No Jupiter quote for {intent.mint[:8]}..., trying bonding curve")

        slippage_pct = bonding_curve_slippage(intent.side, intent.slippage_bps)
        native_tx = await self.pumpportal.build_trade(
            signer=intent.wallet,
            action=intent.side.value,
            mint=intent.mint,
            amount=intent.amount,
            slippage_pct=slippage_pct,
            priority_fee=intent.priority_fee,
        )
        if native_tx:
            logger.info(f"✅ Bonding-curve route for {intent.side.value} {intent.mint[:8]}... ({slippage_pct}% slippage)")
            return ResolvedSwap(unsigned_transaction=native_tx, venue=Venue.PUMPFUN)

        raise NoRouteError("No route available via Jupiter or pump.fun")
