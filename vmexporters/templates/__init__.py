"""Jinja2 templates of the files we drop on the host."""
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from vmexporters.constants import TEMPLATES_DIR

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    # we render configuration files, not html
    autoescape=False,
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
    undefined=StrictUndefined,
)


def render(name: str, **kwargs) -> str:
    template = _env.get_template(name)
    return template.render(**kwargs)
