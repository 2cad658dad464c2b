"""Pure helpers behind the stateless ``/tools`` endpoints."""

from __future__ import annotations

import math
import re
import secrets
import string
import unicodedata
from typing import Callable, Dict

WORDS_PER_MINUTE = 200

# factors to the base unit of each family (metre, kilogram)
LENGTH_FACTORS: Dict[str, float] = {
    "mm": 0.001,
    "cm": 0.01,
    "m": 1.0,
    "km": 1000.0,
    "in": 0.0254,
    "ft": 0.3048,
    "yd": 0.9144,
    "mi": 1609.344,
}

WEIGHT_FACTORS: Dict[str, float] = {
    "mg": 0.000001,
    "g": 0.001,
    "kg": 1.0,
    "t": 1000.0,
    "oz": 0.028349523125,
    "lb": 0.45359237,
}

# (to celsius, from celsius)
TEMPERATURE_FORMULAS: Dict[str, tuple] = {
    "C": (lambda v: v, lambda c: c),
    "F": (lambda v: (v - 32) * 5 / 9, lambda c: c * 9 / 5 + 32),
    "K": (lambda v: v - 273.15, lambda c: c + 273.15),
}

UNIT_TYPES = ("temp", "length", "weight")


def convert_unit(value: float, from_unit: str, to_unit: str, unit_type: str) -> float:
    """Convert between units of one family.

    Raises:
        ValueError: unknown type or unit
    """
    if unit_type == "temp":
        source, target = from_unit.upper(), to_unit.upper()
        if source not in TEMPERATURE_FORMULAS or target not in TEMPERATURE_FORMULAS:
            raise ValueError(f"Unknown temperature unit, use one of {', '.join(TEMPERATURE_FORMULAS)}")
        celsius = TEMPERATURE_FORMULAS[source][0](value)
        result = TEMPERATURE_FORMULAS[target][1](celsius)
    elif unit_type in ("length", "weight"):
        factors = LENGTH_FACTORS if unit_type == "length" else WEIGHT_FACTORS
        source, target = from_unit.lower(), to_unit.lower()
        if source not in factors or target not in factors:
            raise ValueError(f"Unknown {unit_type} unit, use one of {', '.join(factors)}")
        result = value * factors[source] / factors[target]
    else:
        raise ValueError(f"Unknown type '{unit_type}', must be one of {', '.join(UNIT_TYPES)}")
    return round(result, 6)


def text_stats(text: str) -> dict:
    words = len(text.split())
    paragraphs = [p for p in re.split(r"\n\s*\n", text) if p.strip()]
    sentences = [s for s in re.split(r"[.!?]+", text) if s.strip()]
    return {
        "characters": len(text),
        "characters_no_spaces": len(re.sub(r"\s", "", text)),
        "words": words,
        "lines": len(text.splitlines()) if text else 0,
        "sentences": len(sentences),
        "paragraphs": len(paragraphs),
        "reading_time_minutes": math.ceil(words / WORDS_PER_MINUTE) if words else 0,
    }


def _words(text: str) -> list:
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", text)
    return [w for w in re.split(r"[^A-Za-z0-9]+", spaced) if w]


def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return "-".join(w.lower() for w in _words(text))


def _camel(text: str) -> str:
    words = [w.lower() for w in _words(text)]
    return words[0] + "".join(w.capitalize() for w in words[1:]) if words else ""


def _sentence(text: str) -> str:
    lowered = text.lower()
    return re.sub(r"(^\s*|[.!?]\s+)([a-z])", lambda m: m.group(1) + m.group(2).upper(), lowered)


TRANSFORMS: Dict[str, Callable[[str], str]] = {
    "upper": str.upper,
    "lower": str.lower,
    "title": str.title,
    "sentence": _sentence,
    "camel": _camel,
    "snake": lambda t: "_".join(w.lower() for w in _words(t)),
    "kebab": slugify,
    "slug": slugify,
    "reverse": lambda t: t[::-1],
}


def transform_text(text: str, action: str) -> str:
    transform = TRANSFORMS.get(action)
    if transform is None:
        raise ValueError(f"Unknown action '{action}', must be one of {', '.join(TRANSFORMS)}")
    return transform(text)


SYMBOLS = "!@#$%^&*()-_=+[]{};:,.?"


def generate_password(
    length: int = 16,
    uppercase: bool = True,
    lowercase: bool = True,
    numbers: bool = True,
    symbols: bool = True,
) -> str:
    """Random password with at least one character from every enabled class."""
    classes = [
        chars for enabled, chars in (
            (uppercase, string.ascii_uppercase),
            (lowercase, string.ascii_lowercase),
            (numbers, string.digits),
            (symbols, SYMBOLS),
        ) if enabled
    ]
    if not classes:
        raise ValueError("Enable at least one character set")
    if length < len(classes):
        raise ValueError(f"Length must be at least {len(classes)}")

    pool = "".join(classes)
    chars = [secrets.choice(c) for c in classes]
    chars += [secrets.choice(pool) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
