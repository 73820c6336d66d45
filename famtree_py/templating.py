from jinja2 import Environment, FileSystemLoader, select_autoescape
from pathlib import Path
from typing import Any, Dict, Optional

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def _num(value: Any) -> str:
    """Compact number for SVG attributes: 12.0 -> '12', 12.345 -> '12.35'."""
    if isinstance(value, float):
        return f"{value:.2f}".rstrip("0").rstrip(".")
    return str(value)


def get_env(templates_dir: Optional[str | Path] = None) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml", "svg", "svg.j2", "html.j2"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["num"] = _num
    return env


def render_template(template_name: str, ctx: Dict[str, Any], templates_dir: Optional[str | Path] = None) -> str:
    tmpl = get_env(templates_dir).get_template(template_name)
    return tmpl.render(**ctx)
