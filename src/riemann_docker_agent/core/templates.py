# src/riemann_docker_agent/core/templates.py
"""Template compilation and rendering for event fields.

Templates are Jinja2, rendered in a sandbox with strict undefined handling.
The Go text/template field form used by earlier versions of the agent is
still accepted: a leading dot on a field reference is dropped before
compilation, so these are equivalent:

    docker {{.Name}} {{.Status}}
    docker {{ Name }} {{ Status }}

Fields available to templates:
    Host, Time, ContainerId, Status, Image, Name
    ContainerInfo  (container inspection result; when enrichment did not
                    happen every path below it renders as "")

Compilation errors are configuration errors and raise TemplateCompileError.
Go actions and functions (if, range, index, printf, ...) have no Jinja2
equivalent under the dot rewrite; the error names the ones found.
Render errors never propagate: the renderer logs them and returns "".
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import jinja2
import structlog
from jinja2 import meta
from jinja2.sandbox import SandboxedEnvironment

from riemann_docker_agent.contracts.errors import TemplateCompileError

if TYPE_CHECKING:
    from riemann_docker_agent.contracts.events import RawEvent

__all__ = [
    "TEMPLATE_FIELDS",
    "Renderer",
    "compile_template",
    "go_constructs",
    "template_fields",
    "to_jinja",
]

logger = structlog.get_logger(__name__)

TEMPLATE_FIELDS: frozenset[str] = frozenset(
    {"Host", "Time", "ContainerId", "Status", "Image", "Name", "ContainerInfo"}
)

_ACTION = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
_GO_FIELD = re.compile(r"(^|[\s(,|!=<>+\-*/~\[])\.(?=[A-Za-z_])")
_GO_WORD = re.compile(r"\s*-?\s*([a-z]+)\b")

# text/template actions and builtin functions
_GO_BUILTINS: frozenset[str] = frozenset(
    {
        "if", "else", "end", "range", "with", "define", "template", "block",
        "index", "slice", "len", "print", "printf", "println", "call",
        "and", "or", "not", "eq", "ne", "lt", "le", "gt", "ge",
        "html", "js", "urlquery",
    }
)  # fmt: skip

# Chains any attribute or item lookup and renders as ""
_NO_CONTAINER_INFO = jinja2.ChainableUndefined(name="ContainerInfo")

_environment = SandboxedEnvironment(
    autoescape=False,  # Plain text, not HTML
    undefined=jinja2.StrictUndefined,
    keep_trailing_newline=True,
)


def to_jinja(text: str) -> str:
    """Rewrite Go-style `{{.Field}}` references into Jinja2 expressions.

    Only the dot that starts a field reference is removed; attribute access
    inside a path (`.ContainerInfo.Config.Image`) keeps its inner dots.

    Examples:
        >>> to_jinja("docker {{.Name}} {{.Status}}")
        'docker {{Name}} {{Status}}'

        >>> to_jinja("{{ .ContainerInfo.Config.Image }}")
        '{{ ContainerInfo.Config.Image }}'
    """

    def _rewrite(match: re.Match[str]) -> str:
        return "{{" + _GO_FIELD.sub(r"\1", match.group(1)) + "}}"

    return _ACTION.sub(_rewrite, text)


def template_fields(text: str) -> frozenset[str]:
    """Return the top-level names a template references.

    Raises:
        jinja2.TemplateSyntaxError: If the template is malformed
    """
    ast = _environment.parse(to_jinja(text))
    return frozenset(meta.find_undeclared_variables(ast))


def _context(event: RawEvent, host: str) -> dict[str, Any]:
    context: dict[str, Any] = {
        "Host": host,
        "Time": event.time,
        "ContainerId": event.container_id,
        "Status": event.status,
        "Image": event.image,
        "Name": event.name,
        "ContainerInfo": event.metadata if event.metadata is not None else _NO_CONTAINER_INFO,
    }
    return context


class Renderer:
    """A compiled template bound to RawEvent fields.

    Renderers are immutable after compilation and safe to share between
    threads.
    """

    def __init__(self, name: str, text: str, template: jinja2.Template) -> None:
        self.name = name
        self.text = text
        self._template = template

    def render(self, event: RawEvent, *, host: str = "") -> str:
        """Render the template for an event; returns "" on any render failure."""
        try:
            return self._template.render(_context(event, host))
        except Exception as e:
            logger.warning(
                "Template render failed",
                template=self.name,
                container_id=event.container_id,
                status=event.status,
                error=str(e),
            )
            return ""

    def __repr__(self) -> str:
        return f"Renderer({self.name!r}, {self.text!r})"


def go_constructs(text: str) -> list[str]:
    """Return the Go text/template actions and functions a template uses.

    Only the word opening an action or a pipeline stage is checked, so
    Jinja2 filters and tests are never reported.

    Examples:
        >>> go_constructs('{{if .Name}}{{index .ContainerInfo.Config.Labels "k"}}{{end}}')
        ['if', 'index', 'end']
    """
    found: list[str] = []
    for action in _ACTION.finditer(text):
        for stage in action.group(1).split("|"):
            match = _GO_WORD.match(stage)
            if match and match.group(1) in _GO_BUILTINS and match.group(1) not in found:
                found.append(match.group(1))
    return found


def _compile_error(name: str, text: str, reason: str) -> TemplateCompileError:
    constructs = go_constructs(text)
    if constructs:
        reason = f"{reason}; Go template syntax not supported: {', '.join(constructs)} (rewrite as Jinja2)"
    return TemplateCompileError(name, text, reason)


def compile_template(name: str, text: str) -> Renderer:
    """Compile a template into a reusable Renderer.

    Args:
        name: Slot name used in error messages and logs (e.g. "service")
        text: Template source, Jinja2 or Go-style field syntax

    Returns:
        Compiled Renderer

    Raises:
        TemplateCompileError: If the template is malformed or references a
            field that events never carry
    """
    source = to_jinja(text)
    try:
        template = _environment.from_string(source)
        unknown = template_fields(text) - TEMPLATE_FIELDS
    except jinja2.TemplateSyntaxError as e:
        raise _compile_error(name, text, str(e)) from e

    if unknown:
        raise _compile_error(
            name,
            text,
            f"unknown field(s) {', '.join(sorted(unknown))}; available: {', '.join(sorted(TEMPLATE_FIELDS))}",
        )
    return Renderer(name, text, template)
