"""Single-page operator console for mission telemetry."""

from pathlib import Path

from services.api_gateway.config.settings import settings

_TEMPLATE_PATH = Path(__file__).with_name("templates") / "mission_ui.html"


def build_ui_html() -> str:
    template = _TEMPLATE_PATH.read_text(encoding="utf-8")
    return template.replace("{{API_PREFIX}}", settings.api_prefix)
