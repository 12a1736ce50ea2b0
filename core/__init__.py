"""
Comparable-Sales Valuation Engine - Core Business Logic

Pipeline:
1. Region resolution (address -> prefecture code -> search profile)
2. Comparable retrieval (live source, neighbour broadening, synthetic fallback)
3. Correction (distance, floor area, building age)
4. Aggregation (IQR-filtered statistics, price range, confidence)
5. Market analysis (trend labels, investment value, insights)

Entry point: core.comp_engine.valuation.ValuationOrchestrator.evaluate
"""
