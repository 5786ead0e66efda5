"""Email body rendering from bundled Liquid templates."""

from functools import cache
from pathlib import Path
from typing import Any

import structlog
from liquid import BoundTemplate, Environment

logger = structlog.get_logger(__name__)

TEMPLATES_PATH = Path(__file__).parent / "templates"

_env = Environment()


@cache
def _load_template(name: str) -> BoundTemplate:
    source = (TEMPLATES_PATH / f"{name}.liquid").read_text(encoding="utf-8")
    return _env.from_string(source)


def render_mail(name: str, context: dict[str, Any]) -> str:
    """Render a mail template by name.

    Raises:
        ValueError: If the template is missing or rendering fails
    """
    try:
        return _load_template(name).render(**context)
    except Exception as e:
        logger.exception("mail_template_render_failed", template=name, error=str(e))
        raise ValueError(f"Failed to render mail template '{name}': {e}") from e
