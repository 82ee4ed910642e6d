import logging
from email.utils import format_datetime
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader

from feed_translator.models import OutputType

def cdata(text: Optional[str]) -> str:
    """
    Make text safe to embed in a CDATA section.
    """
    return (text or "").replace("]]>", "]]]]><![CDATA[>")

def rfc822(value: datetime) -> str:
    return format_datetime(value)

DEFAULT_FILTERS: Dict[str, Callable[..., str]] = {
    "cdata": cdata,
    "rfc822": rfc822,
}

def generate_outputs(
    input: Any,
    template_dir: str,
    outputs: List[OutputType]
) -> Dict[OutputType, str]:
    """
    Generate outputs from an input using the specified output types. The input will be passed to the template as the `input` variable.

    Templates are autoescaped; use the `cdata` filter for markup placed in CDATA sections.

    Returns:
        Dict[OutputType, str]: A dictionary mapping output types to their rendered content.
    """
    env = Environment(
        loader=FileSystemLoader(template_dir),
        autoescape=True,
        keep_trailing_newline=True,
    )
    env.filters.update(DEFAULT_FILTERS)

    rendered_outputs = {}
    for output in outputs:
        logging.info(f"Generating output: {output.template_name}")

        template = env.get_template(output.template_name)
        rendered_outputs[output] = template.render(input=input)

        logging.info(f"Output generated: {output.relative_output_path}")

    return rendered_outputs
