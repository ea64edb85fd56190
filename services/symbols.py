"""
Symbol Constants

Fixed symbol sets used by the convenience endpoints and the market trends
snapshot.
"""

from typing import Dict, List, Tuple


# Fixed symbols behind the convenience endpoints
SYMBOLS: Dict[str, str] = {
    "PETROBRAS": "PBR",
    "VALE": "VALE",
    "VIX": "^VIX",
    "IBOVESPA": "^BVSP",
}

# Benchmarks in the market trends snapshot, queried as one batch:
# Ibovespa, S&P 500, Nasdaq Composite, VIX, WTI crude, gold
MARKET_INDICES: Tuple[str, ...] = ("^BVSP", "^GSPC", "^IXIC", "^VIX", "CL=F", "GC=F")

# Quote summary modules returned by the details operation
DETAIL_MODULES: Tuple[str, ...] = (
    "assetProfile",
    "summaryDetail",
    "financialData",
    "recommendationTrend",
    "earnings",
)

# Brazilian ADRs listed in the US, grouped by sector: (symbol, company name)
BRAZILIAN_ADRS_BY_SECTOR: Dict[str, List[Tuple[str, str]]] = {
    "Energy": [
        ("PBR", "Petrobras"),
    ],
    "Mining & Steel": [
        ("VALE", "Vale"),
        ("GGB", "Gerdau"),
        ("SID", "Companhia Siderúrgica Nacional"),
    ],
    "Financials": [
        ("ITUB", "Itaú Unibanco"),
        ("BBD", "Banco Bradesco"),
    ],
    "Consumer": [
        ("ABEV", "Ambev"),
        ("CBD", "GPA (Grupo Pão de Açúcar)"),
    ],
    "Utilities": [
        ("CIG", "Cemig"),
        ("EBR", "Eletrobras"),
    ],
}

# Flat list in the order the batch quote request is issued
BRAZILIAN_ADRS: List[str] = ["PBR", "VALE", "ITUB", "BBD", "ABEV", "GGB", "SID", "CIG", "EBR", "CBD"]
