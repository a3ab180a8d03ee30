"""
Prefills for the valuation calculators.

FMP is tried first for price, EPS, book value and dividend; Finnhub fills in
price and name when FMP is unavailable. Values that could not be fetched are
left as None, meaning the user has to enter them by hand.
"""
import logging

from models.valuation import BuffettInputs, DcfInputs, DividendScenario
from services.market_data import MarketDataClient
from services.valuation import dividend_growth_for_scenario

logger = logging.getLogger(__name__)

MANUAL_INPUT = "Manual input required"
ALL_FAILED = "All APIs Failed - Manual Input Required"
DEFAULTS_UNAVAILABLE = "Conservative Defaults (API Unavailable)"


async def load_dcf_inputs(market_data: MarketDataClient, symbol: str) -> DcfInputs:
    symbol = symbol.upper()
    company_name = f"{symbol} Corporation"
    price = eps = total_fcf = shares = fcf_per_share = None
    growth = 5.0

    try:
        quote = await market_data.get_fmp_quote(symbol)
    except Exception as e:
        logger.warning(f"DCF prefill: no quote for {symbol}: {e}")
        return DcfInputs(symbol=symbol, company_name=company_name, data_source=MANUAL_INPUT)

    price, eps = quote.current_price, quote.eps
    company_name = quote.company_name or company_name
    source = quote.source

    if quote.source == "FMP":
        try:
            cash_flow = await market_data.get_cash_flow(symbol)
            if cash_flow.free_cash_flow is not None:
                total_fcf = round(cash_flow.free_cash_flow / 1_000_000)
            if cash_flow.shares_outstanding:
                shares = round(cash_flow.shares_outstanding / 1_000_000)
            if cash_flow.fcf_per_share is not None:
                fcf_per_share = round(cash_flow.fcf_per_share, 2)
        except Exception as e:
            logger.warning(f"DCF prefill: cash flow unavailable for {symbol}: {e}")

        historical = await market_data.get_historical_analysis_data(symbol)
        if historical.historical_eps_growth:
            growth = round(historical.historical_eps_growth, 1)

    return DcfInputs(
        symbol=symbol,
        company_name=company_name,
        current_price=price,
        eps=eps,
        total_fcf=total_fcf,
        shares_outstanding=shares,
        fcf_per_share=fcf_per_share,
        growth_rate=growth,
        data_source=source,
    )


async def load_buffett_inputs(
    market_data: MarketDataClient,
    symbol: str,
    dividend_scenario: DividendScenario = DividendScenario.STANDARD_PAYOUT,
) -> BuffettInputs:
    symbol = symbol.upper()
    company_name = f"{symbol} Inc."
    price = eps = book_value = dividend = None

    try:
        quote = await market_data.get_fmp_quote(symbol)
        price, eps = quote.current_price, quote.eps
        book_value, dividend = quote.book_value, quote.dividend_annual
        company_name = quote.company_name or company_name
        quote_source = quote.source
    except Exception as e:
        logger.warning(f"Buffett prefill: no quote for {symbol}: {e}")
        quote_source = ALL_FAILED

    growth, conservative_pe, max_pe = 6.0, 15.0, 25.0
    growth_source = pe_source = "Conservative Estimates"
    try:
        historical = await market_data.get_historical_analysis_data(symbol)
        growth = round(historical.historical_eps_growth, 1)
        conservative_pe = round(historical.conservative_pe_ratio, 1)
        max_pe = round(historical.max_pe_ratio, 1)
        growth_source = "FMP Historical" if historical.growth_calculated else "Fallback Estimate"
        pe_source = "FMP Historical" if historical.pe_calculated else "Fallback Estimate"
    except Exception as e:
        logger.warning(f"Buffett prefill: historical data failed for {symbol}: {e}")
        growth_source = pe_source = DEFAULTS_UNAVAILABLE

    return BuffettInputs(
        symbol=symbol,
        company_name=company_name,
        current_price=price,
        eps=eps,
        book_value_per_share=book_value,
        dividend_annual=dividend,
        eps_growth_rate=growth,
        dividend_scenario=dividend_scenario,
        dividend_growth_rate=round(dividend_growth_for_scenario(dividend_scenario, growth), 1),
        conservative_pe=conservative_pe,
        max_pe=max_pe,
        avg_pe=round((conservative_pe + max_pe) / 2, 1),
        quote_source=quote_source,
        growth_source=growth_source,
        pe_source=pe_source,
    )
