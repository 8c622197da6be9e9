"""
Colour helpers for the avatar gradients.

The overlay draws skin and beard with two-stop gradients; these helpers
derive the extra stops from the single colour the user picks.
"""

import re

_HEX_RE = re.compile(r'^#?([0-9a-fA-F]{6})$')


def normalize_hex(color: str) -> str:
    """
    Normalize a hex colour to lowercase '#rrggbb'.

    Accepts the colour with or without the leading '#', as it appears
    in query strings (e.g. 'skin=f5d0c5').

    Raises:
        ValueError: If the value is not a 6-digit hex colour
    """
    match = _HEX_RE.match(color.strip()) if isinstance(color, str) else None
    if not match:
        raise ValueError(f"Invalid hex colour: {color!r}")
    return '#' + match.group(1).lower()


def _shift(color: str, amount: int) -> str:
    num = int(normalize_hex(color)[1:], 16)
    r = max(0, min(255, (num >> 16) + amount))
    g = max(0, min(255, ((num >> 8) & 0xFF) + amount))
    b = max(0, min(255, (num & 0xFF) + amount))
    return f'#{r:02x}{g:02x}{b:02x}'


def _amount(percent: float) -> int:
    # Half-up, like the browser's Math.round
    return int(2.55 * percent + 0.5)


def lighten_color(color: str, percent: float) -> str:
    """Lighten a hex colour by `percent` of the full channel range."""
    return _shift(color, _amount(percent))


def darken_color(color: str, percent: float) -> str:
    """Darken a hex colour by `percent` of the full channel range."""
    return _shift(color, -_amount(percent))


def skin_palette(color: str) -> dict[str, str]:
    """Gradient stops for the skin: a lighter highlight and the base."""
    base = normalize_hex(color)
    return {"light": lighten_color(base, 20), "base": base}


def beard_palette(color: str) -> dict[str, str]:
    """Gradient stops for the beard."""
    base = normalize_hex(color)
    return {"light": lighten_color(base, 15), "dark": darken_color(base, 20)}
