"""
Email template rendering.

Templates are HTML files under ``backoffice/templates/email`` with
``{{name}}`` placeholders. Values are HTML-escaped; placeholders with no
value are left as they are.
"""

import html
import re
from pathlib import Path
from typing import Any

from structlog import get_logger

from backoffice.exceptions import TemplateNotFoundError

logger = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class TemplateRenderer:
    """Loads and fills HTML email templates."""

    def __init__(self, templates_dir: Path = TEMPLATES_DIR) -> None:
        self.templates_dir = templates_dir

    def available(self) -> list[str]:
        return sorted(p.stem for p in self.templates_dir.glob("*.html"))

    def render(self, template_name: str, variables: dict[str, Any]) -> str:
        """
        Raises:
            TemplateNotFoundError: No ``{template_name}.html`` in the templates dir
        """
        path = self.templates_dir / f"{template_name}.html"
        if not path.is_file():
            logger.error(
                "email_template_not_found",
                template=template_name,
                available=self.available(),
            )
            raise TemplateNotFoundError(template_name)

        source = path.read_text(encoding="utf-8")

        def substitute(match: re.Match[str]) -> str:
            key = match.group(1)
            if key not in variables:
                return match.group(0)
            value = variables[key]
            return "" if value is None else html.escape(str(value))

        return _PLACEHOLDER.sub(substitute, source)
