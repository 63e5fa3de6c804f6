from typing import Dict, Optional

from .config import DENOMINATIONS


def resolve_denomination(pulses: int, table: Optional[Dict[int, int]] = None) -> Optional[int]:
    """
    Map a finished pulse burst to a coin value

    Args:
        pulses: Number of pulses counted for one coin
        table: Pulse count to value mapping (defaults to DENOMINATIONS)

    Returns:
        The coin value, or None when the pulse count is not a known coin
    """
    if table is None:
        table = DENOMINATIONS
    return table.get(pulses)
