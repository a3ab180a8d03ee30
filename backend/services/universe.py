from config import DIVIDEND_FALLBACK_UNIVERSE
from models.stock import StockSearchResult

# Sector labels for the curated dividend universe
SECTOR_FALLBACKS = {
    "O": "Real Estate",
    "JNJ": "Healthcare",
    "KO": "Consumer Defensive",
    "PG": "Consumer Defensive",
    "JPM": "Financial Services",
    "MSFT": "Technology",
    "AAPL": "Technology",
    "ABBV": "Healthcare",
    "PEP": "Consumer Defensive",
    "XOM": "Energy",
    "CVX": "Energy",
    "MCD": "Consumer Cyclical",
    "WMT": "Consumer Defensive",
    "HD": "Consumer Cyclical",
    "VZ": "Communication Services",
    "T": "Communication Services",
    "MO": "Consumer Defensive",
    "MAIN": "Financial Services",
    "STAG": "Real Estate",
}

# Static reference universe for symbol search (no live API calls)
SEARCH_UNIVERSE = [
    StockSearchResult(symbol="AAPL", company_name="Apple Inc.", sector="Technology"),
    StockSearchResult(symbol="MSFT", company_name="Microsoft Corp.", sector="Technology"),
    StockSearchResult(symbol="GOOGL", company_name="Alphabet Inc.", sector="Technology"),
    StockSearchResult(symbol="TSLA", company_name="Tesla Inc.", sector="Automotive"),
    StockSearchResult(symbol="NVDA", company_name="NVIDIA Corp.", sector="Technology"),
    StockSearchResult(symbol="META", company_name="Meta Platforms Inc.", sector="Technology"),
    StockSearchResult(symbol="AMZN", company_name="Amazon.com Inc.", sector="Consumer"),
    StockSearchResult(symbol="KO", company_name="The Coca-Cola Co.", sector="Consumer"),
    StockSearchResult(symbol="JPM", company_name="JPMorgan Chase & Co.", sector="Finance"),
    StockSearchResult(symbol="JNJ", company_name="Johnson & Johnson", sector="Healthcare"),
    StockSearchResult(symbol="V", company_name="Visa Inc.", sector="Finance"),
    StockSearchResult(symbol="PG", company_name="Procter & Gamble Co.", sector="Consumer"),
]


def get_fallback_universe() -> list[str]:
    return list(DIVIDEND_FALLBACK_UNIVERSE)


def sector_for(symbol: str, reported: str = "Unknown") -> str:
    """Prefer the provider's sector; fall back to the curated map, then 'Unknown'."""
    if reported and reported != "Unknown":
        return reported
    return SECTOR_FALLBACKS.get(symbol, "Unknown")


def search_reference_universe(query: str) -> list[StockSearchResult]:
    if not query or len(query) < 2:
        return []
    q = query.lower()
    return [
        s for s in SEARCH_UNIVERSE
        if q in s.symbol.lower() or q in s.company_name.lower()
    ]
