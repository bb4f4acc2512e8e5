"""Card identifier list loading.

Supported formats:
- `.json`: a JSON array of identifiers
- anything else: one identifier per line, blank lines and `#` comments ignored
"""

import json
import logging
from pathlib import Path

from fraud_reconciler.core.errors import CardSourceError

logger = logging.getLogger(__name__)


def parse_cards_text(text: str) -> list[str]:
    """Parse newline-separated card identifiers."""
    cards = []
    for line in text.splitlines():
        value = line.split("#", 1)[0].strip()
        if value:
            cards.append(value)
    return cards


def parse_cards_json(text: str) -> list[str]:
    """Parse a JSON array of card identifiers."""
    data = json.loads(text)
    if not isinstance(data, list):
        raise CardSourceError("Card list JSON must be an array", details={"type": type(data).__name__})
    return [str(card) for card in data]


def load_cards(path: str | Path) -> list[str]:
    """Load card identifiers from a file.

    Raises:
        CardSourceError: if the file is missing, unreadable or malformed
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CardSourceError("Could not read card list", details={"path": str(path), "error": str(e)}) from e

    if path.suffix.lower() == ".json":
        try:
            cards = parse_cards_json(text)
        except json.JSONDecodeError as e:
            raise CardSourceError("Invalid card list JSON", details={"path": str(path), "error": str(e)}) from e
    else:
        cards = parse_cards_text(text)

    logger.info(f"Loaded {len(cards)} cards", extra={"path": str(path), "cards": len(cards)})
    return cards
