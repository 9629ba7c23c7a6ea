"""knowledge_rag.generation.prompt_builder

Named chat prompt templates and their rendering.

A template holds a system message and a user message, each a Jinja2 string.
The retrieval orchestrator renders both halves of the ``answer`` template
with the numbered context and the user's question. The default templates
ship with the package as ``prompts/default.json``; a JSON file named in the
configuration can override them by name.

Classes
-------
PromptTemplate
    A named pair of system and user message templates.
PromptBuilder
    Registry of templates, loaded from dictionaries or JSON files.

Functions
---------
create_prompt_builder
    Build a registry holding the default templates plus optional overrides.
"""
from typing import Optional, List, Dict, Any, Tuple, Union
from pathlib import Path
import json
import logging
from importlib import resources

from jinja2 import StrictUndefined, Template

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS_PACKAGE = "knowledge_rag.generation"
DEFAULT_PROMPTS_RESOURCE = "prompts/default.json"
ANSWER_PROMPT = "answer"


def _render(source: str, variables: Dict[str, Any]) -> str:
    if not source:
        return ""
    return Template(source, undefined=StrictUndefined).render(**variables)


class PromptTemplate:
    """A named chat prompt.

    Parameters
    ----------
    name : str
        Registry key.
    system : str, optional
        System message template. Empty means no system message.
    user : str, optional
        User message template.
    examples : list[str], optional
        Worked examples rendered ahead of the user message, in the user turn.

    Notes
    -----
    Undefined template variables raise :class:`jinja2.UndefinedError` instead
    of rendering as empty strings.
    """

    def __init__(self,
                 name: str,
                 system: str = "",
                 user: str = "",
                 examples: Optional[List[str]] = None,
        ):
        self.name = name
        self.system = system or ""
        self.user = user or ""
        self.examples = list(examples or [])

    def render_system(self, **variables) -> str:
        return _render(self.system, variables)

    def render_user(self, **variables) -> str:
        parts = [_render(example, variables) for example in self.examples]
        parts.append(_render(self.user, variables))
        return "\n\n".join(p for p in parts if p)

    def render(self, **variables) -> Tuple[str, str]:
        """Return the rendered ``(system, user)`` message pair."""
        return self.render_system(**variables), self.render_user(**variables)


class PromptBuilder:
    """Registry of :class:`PromptTemplate` objects keyed by name.

    Registering a name twice replaces the earlier template; a configured
    prompt file overrides the packaged defaults this way.
    """

    def __init__(self):
        self.templates: Dict[str, PromptTemplate] = {}

    def register(self, template: PromptTemplate) -> None:
        if template.name in self.templates:
            logger.info("Overriding prompt template %r", template.name)
        self.templates[template.name] = template

    def register_from_dict(self, data: Dict[str, Any]) -> str:
        """Register a template from its JSON form and return its name.

        Parameters
        ----------
        data : dict[str, Any]
            Mapping with ``name`` and optional ``system``, ``user`` and
            ``examples`` (a list of strings).

        Raises
        ------
        KeyError
            If ``name`` is missing.
        TypeError
            If a field has the wrong type.
        ValueError
            If ``name`` is blank.
        """
        if "name" not in data:
            raise KeyError("Prompt template is missing 'name'")
        name = data["name"]
        if not isinstance(name, str):
            raise TypeError(f"Prompt template 'name' must be a str, got {type(name)!r}")
        if not name.strip():
            raise ValueError("Prompt template 'name' must not be blank")

        for key in ("system", "user"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise TypeError(f"Prompt template {name!r}: '{key}' must be a str, got {type(data[key])!r}")
        examples = data.get("examples")
        if examples is not None and not (
            isinstance(examples, list) and all(isinstance(e, str) for e in examples)
        ):
            raise TypeError(f"Prompt template {name!r}: 'examples' must be a list of strings")

        self.register(PromptTemplate(
            name=name,
            system=data.get("system") or "",
            user=data.get("user") or "",
            examples=examples,
        ))
        return name

    def register_from_json(self, text: str, origin: str = "<string>") -> List[str]:
        """Register every template in a JSON document (one object or a list of objects)."""
        data = json.loads(text)
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise TypeError(f"{origin} must hold a template object or a list of template objects")
        names = [self.register_from_dict(item) for item in data]
        logger.debug("Registered prompt templates %s from %s", names, origin)
        return names

    def register_from_file(self, path: Union[Path, str], base_dir: Optional[Path] = None) -> List[str]:
        """Register the templates in a JSON file.

        A relative ``path`` is resolved against ``base_dir`` when given.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        ValueError
            If the file is not a ``.json`` file.
        """
        p = Path(path).expanduser()
        if not p.is_absolute() and base_dir is not None:
            p = Path(base_dir) / p
        if not p.is_file():
            raise FileNotFoundError(f"Prompt file not found: {p}")
        if p.suffix.lower() != ".json":
            raise ValueError(f"Prompt files must be JSON, got {p.suffix!r}")
        return self.register_from_json(p.read_text(encoding="utf-8"), origin=str(p))

    def register_defaults(self) -> List[str]:
        resource = resources.files(DEFAULT_PROMPTS_PACKAGE).joinpath(DEFAULT_PROMPTS_RESOURCE)
        return self.register_from_json(resource.read_text(encoding="utf-8"), origin=DEFAULT_PROMPTS_RESOURCE)

    def list_prompts(self) -> List[str]:
        return sorted(self.templates)

    def has_prompt(self, name: str) -> bool:
        return name in self.templates

    def get_template(self, name: str) -> PromptTemplate:
        """Return the template registered as ``name``.

        Raises
        ------
        KeyError
            If no such template exists. The message lists the registered names.
        """
        try:
            return self.templates[name]
        except KeyError:
            raise KeyError(f"Unknown prompt template {name!r}. Available: {self.list_prompts()}") from None

    def build_messages(self, name: str, **variables) -> Tuple[str, str]:
        """Render template ``name`` into a ``(system, user)`` message pair."""
        return self.get_template(name).render(**variables)


def create_prompt_builder(source: Optional[str] = None, base_dir: Optional[Path] = None) -> PromptBuilder:
    """Create a :class:`PromptBuilder` holding the packaged templates.

    Parameters
    ----------
    source : str, optional
        Path of a JSON template file (a ``file:`` prefix is accepted) whose
        templates override the defaults by name.
    base_dir : Path, optional
        Directory against which a relative ``source`` is resolved, typically
        the directory of the loaded configuration file.
    """
    builder = PromptBuilder()
    builder.register_defaults()
    if source:
        if source.startswith("file:"):
            source = source[len("file:"):]
        builder.register_from_file(source.strip(), base_dir=base_dir)
    return builder


__all__ = [
    "PromptTemplate",
    "PromptBuilder",
    "create_prompt_builder",
    "ANSWER_PROMPT",
]
