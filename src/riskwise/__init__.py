"""RiskWise: portfolio risk monitoring, stop-loss allocation and alert fan-out."""
