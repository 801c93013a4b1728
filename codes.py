import re
from typing import Any

from errors import InvalidFormat

MAX_CODE_LENGTH = 25
CODE_PATTERN = re.compile(r"[A-Z0-9]+")


def normalize_code(raw: Any) -> str:
    """
    Zwraca kanoniczną postać kodu karty (trim + wielkie litery).

    Rzuca InvalidFormat, gdy kod jest pusty, dłuższy niż 25 znaków
    albo zawiera coś poza [A-Z0-9].
    """
    if not raw or not isinstance(raw, str):
        raise InvalidFormat("Gift card code is required")

    code = raw.strip().upper()

    if not code or len(code) > MAX_CODE_LENGTH or not CODE_PATTERN.fullmatch(code):
        raise InvalidFormat()

    return code
