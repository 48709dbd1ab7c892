"""
Yield Advisor — one-sentence analysis of today's fee gain via Gemini

The model gets the pool, its recent history of accumulated fees in USD
(most recent first) and today's new accumulated total, and is asked to
compare today's gain (today - most recent entry) with the historical daily
average. Output is requested as JSON: {"analysis": "..."}.

REST endpoint:
  POST {ADVISOR_BASE_URL}/models/{ADVISOR_MODEL}:generateContent?key=GOOGLE_API_KEY
"""
import json
from typing import Dict, List, Sequence, Tuple

import requests

from lpdash.analysis.position_analytics import accumulated_fees_value_usd, sort_entries
from lpdash.config import config
from lpdash.exceptions import AdvisorError


PROMPT_TEMPLATE = """You are an expert DeFi analyst. Your task is to analyze a new accumulated-fees data point for a liquidity pool and give a short insight.

The user entered today's new accumulated fees total: ${current_fees:.2f}.

Based on the entry history, do the following:
1. Compute today's gain: take the value the user entered and subtract the 'fees_accumulated_usd' of the most recent history entry (the first item of the list).
2. Compute the average daily gain from the historical entries provided.
3. Give a concise, single-sentence analysis comparing today's gain with the average.

Pool:
- Name: {name}
- Pair: {token_a}/{token_b}

New accumulated fees total (entered by the user): ${current_fees:.2f}

Entry history (most recent first):
```json
{history_json}
```

Example output: {{"analysis": "Today's gain of $5.20 is slightly above your daily average of $4.80."}}
Round every value to two decimal places. Reply with JSON only."""


def build_history(entries: Sequence, size: int = None) -> List[Tuple[str, float]]:
    """(date, accumulated fees USD) for the last `size` entries, most recent first."""
    if size is None:
        size = config.ADVISOR_HISTORY_SIZE
    newest_first = list(reversed(sort_entries(entries)))
    return [(e.date, accumulated_fees_value_usd(e)) for e in newest_first[:size]]


def current_fees_usd(fees_a: float, fees_b: float, price_a: float, price_b: float) -> float:
    """Today's accumulated fees valued at today's prices."""
    return fees_a * price_a + fees_b * price_b


def build_prompt(pool, history: Sequence[Tuple[str, float]], current_fees: float) -> str:
    history_json = json.dumps(
        [{'date': d, 'fees_accumulated_usd': round(v, 6)} for d, v in history],
        indent=2,
    )
    return PROMPT_TEMPLATE.format(
        current_fees=current_fees,
        name=pool.name,
        token_a=pool.token_a,
        token_b=pool.token_b,
        history_json=history_json,
    )


class YieldAdvisor:
    """Client for the Gemini generateContent endpoint."""

    def __init__(self, api_key: str = None, model: str = None):
        self.api_key = config.GOOGLE_API_KEY if api_key is None else api_key
        self.model = model or config.ADVISOR_MODEL
        self.base_url = config.ADVISOR_BASE_URL

    def _generate(self, prompt: str) -> str:
        if not self.api_key:
            raise AdvisorError("GOOGLE_API_KEY is not set.")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            'contents': [{'parts': [{'text': prompt}]}],
            'generationConfig': {'responseMimeType': 'application/json'},
        }
        try:
            response = requests.post(url, params={'key': self.api_key}, json=body,
                                     timeout=config.ADVISOR_TIMEOUT_SEC)
            response.raise_for_status()
            data: Dict = response.json()
        except requests.RequestException as e:
            raise AdvisorError(f"Could not reach the analysis service: {e}")
        except ValueError as e:
            raise AdvisorError(f"Invalid response from the analysis service: {e}")

        try:
            return data['candidates'][0]['content']['parts'][0]['text']
        except (KeyError, IndexError, TypeError):
            raise AdvisorError("The analysis service returned no content.")

    def suggest_yield(self, pool, history: Sequence[Tuple[str, float]],
                      current_fees: float) -> str:
        """One sentence comparing today's fee gain with the daily average."""
        if not history:
            raise AdvisorError("Not enough historical data to run an analysis.")

        text = self._generate(build_prompt(pool, history, current_fees)).strip()
        try:
            analysis = json.loads(text).get('analysis', '')
        except (ValueError, AttributeError):
            # Model ignored the JSON instruction; use the raw sentence
            analysis = text
        if not analysis:
            raise AdvisorError("The analysis service returned an empty analysis.")
        return analysis.strip()


def suggest_yield(pool, history: Sequence[Tuple[str, float]], current_fees: float,
                  advisor: YieldAdvisor = None) -> str:
    """Module-level shortcut using a default YieldAdvisor."""
    return (advisor or YieldAdvisor()).suggest_yield(pool, history, current_fees)
