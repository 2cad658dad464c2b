"""SVG badge for the hit counter."""

from html import escape

THEMES = {
    "default": {"label_bg": "#555", "value_bg": "#4c1", "text": "#fff"},
    "dark": {"label_bg": "#222", "value_bg": "#444", "text": "#eee"},
    "blue": {"label_bg": "#34495e", "value_bg": "#007ec6", "text": "#fff"},
    "green": {"label_bg": "#2d4a2b", "value_bg": "#3fb950", "text": "#fff"},
}

_CHAR_WIDTH = 7
_PADDING = 10


def _width(text: str) -> int:
    return len(text) * _CHAR_WIDTH + _PADDING * 2


def render_counter_svg(label: str, count: int, theme: str = "default") -> str:
    colors = THEMES.get(theme, THEMES["default"])
    value = f"{count:,}"
    label_w = _width(label)
    value_w = _width(value)
    total = label_w + value_w
    label = escape(label)

    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{total}" height="20" role="img" '
        f'aria-label="{label}: {value}">'
        f'<title>{label}: {value}</title>'
        f'<rect width="{label_w}" height="20" fill="{colors["label_bg"]}"/>'
        f'<rect x="{label_w}" width="{value_w}" height="20" fill="{colors["value_bg"]}"/>'
        f'<g fill="{colors["text"]}" text-anchor="middle" '
        f'font-family="Verdana,Geneva,DejaVu Sans,sans-serif" font-size="11">'
        f'<text x="{label_w / 2}" y="14">{label}</text>'
        f'<text x="{label_w + value_w / 2}" y="14">{value}</text>'
        f"</g></svg>"
    )
