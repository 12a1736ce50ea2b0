"""
Reporting module for the valuation engine.

Command-line access to valuations:
    python -m reporting.cli sample
    python -m reporting.cli evaluate --address ... --area ... --age ... --purpose ...
"""
