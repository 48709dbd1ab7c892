"""
LLM-backed analysis of daily fee gains
"""
from lpdash.advisor.yield_advisor import YieldAdvisor, build_history, suggest_yield

__all__ = [
    "YieldAdvisor",
    "build_history",
    "suggest_yield",
]
