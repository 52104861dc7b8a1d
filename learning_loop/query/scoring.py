"""
Keyword extraction and run relevance scoring.

Score components for one run against a keyword list:
- +3.0 for every (keyword, tag) pair that matches, case-insensitively
- +2.0 for every keyword found in the task text
- +1.5 for every keyword found in the JSON list of touched files
- outcome bonus: failure +1.0, partial +0.5, success +0.3, error +0
- recency: the total is multiplied by 0.5 + 0.5 * exp(-0.1 * age_days),
  so old runs keep at least half their score. Unparseable timestamps are
  not decayed.
"""

from __future__ import annotations

import json
import math
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from ..schemas.enums import Outcome

TAG_WEIGHT = 3.0
TASK_WEIGHT = 2.0
FILE_WEIGHT = 1.5

OUTCOME_BONUS = {
    Outcome.FAILURE.value: 1.0,
    Outcome.PARTIAL.value: 0.5,
    Outcome.SUCCESS.value: 0.3,
    Outcome.ERROR.value: 0.0,
}

DECAY_RATE = 0.1
DECAY_FLOOR = 0.5

_SPLIT_RE = re.compile(r"[\s,.:;()\[\]\"']+")

_RFC3339_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$",
    re.ASCII,
)

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to",
        "for", "of", "is", "it", "this", "that", "with", "from", "by", "be",
        "as", "are", "was", "were", "been", "have", "has", "had", "do", "does",
        "did", "will", "would", "can", "could", "should", "may", "might", "shall",
        "not", "no", "i", "we", "you", "he", "she", "they", "me", "my",
    }
)


def extract_keywords(text: str) -> List[str]:
    """Lower-cased, de-duplicated keywords in first-seen order."""
    keywords: List[str] = []
    seen = set()
    for word in _SPLIT_RE.split(text):
        lower = word.lower()
        if len(lower) < 2 or lower in STOP_WORDS or lower in seen:
            continue
        seen.add(lower)
        keywords.append(lower)
    return keywords


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp.

    Only the full date-time form is accepted: a "T" separator and either "Z"
    or a numeric offset. Anything else (date-only, naive, space-separated)
    returns None.
    """
    if not value:
        return None
    match = _RFC3339_RE.match(value.strip())
    if match is None:
        return None

    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micros = int((fraction or "0")[:6].ljust(6, "0"))
    try:
        if zone in ("Z", "z"):
            tz = timezone.utc
        else:
            sign = -1 if zone[0] == "-" else 1
            offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
            tz = timezone(sign * offset)
        return datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second), micros,
            tzinfo=tz,
        )
    except ValueError:
        return None


def recency_factor(timestamp: Optional[str], now: datetime) -> float:
    """Multiplier in [0.5, 1.0] for a run's age; 1.0 when the age is unknown.

    Timestamps in the future give a factor above 1.0.
    """
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return 1.0
    days = (now - parsed).total_seconds() / 86400
    decay = math.exp(-DECAY_RATE * days)
    return DECAY_FLOOR + (1 - DECAY_FLOOR) * decay


def score_run(
    task: str,
    outcome: str,
    tags: Sequence[str],
    files_touched: Sequence[str],
    timestamp: Optional[str],
    keywords: Sequence[str],
    now: datetime,
) -> float:
    score = 0.0

    lowered_tags = [tag.lower() for tag in tags or []]
    for keyword in keywords:
        score += TAG_WEIGHT * lowered_tags.count(keyword.lower())

    task_lower = (task or "").lower()
    for keyword in keywords:
        if keyword.lower() in task_lower:
            score += TASK_WEIGHT

    files_lower = json.dumps(list(files_touched or []), ensure_ascii=False).lower()
    for keyword in keywords:
        if keyword.lower() in files_lower:
            score += FILE_WEIGHT

    score += OUTCOME_BONUS.get(outcome, 0.0)

    return score * recency_factor(timestamp, now)
