"""Prompt templates for generation, explanation and greeting.

Templates ship as markdown files in ``query_scout/prompts``. A file with the
same name in the personal directory (``~/.query-scout/instructions`` or
``$QUERY_SCOUT_INSTRUCTIONS_DIR``) replaces the packaged copy. Placeholders use
``$name`` syntax; unknown placeholders are left as written.
"""

import os
from pathlib import Path
from string import Template

PACKAGED_DIR = Path(__file__).resolve().parent / "prompts"


def _default_personal_dir() -> Path:
    env_dir = os.getenv("QUERY_SCOUT_INSTRUCTIONS_DIR")
    return Path(env_dir or "~/.query-scout/instructions").expanduser()


class InstructionLoader:
    """Looks templates up in the personal directory, then the packaged one."""

    GENERATE_SYSTEM = "generate_system_prompt.md"
    EXPLAIN_SYSTEM = "explain_system_prompt.md"
    EXPLAIN_USER = "explain_user_prompt.md"
    GREETING_SYSTEM = "greeting_system_prompt.md"
    GREETING_USER = "greeting_user_prompt.md"

    def __init__(
        self,
        packaged_dir: Path | str | None = None,
        personal_dir: Path | str | None = None,
    ):
        personal = Path(personal_dir).expanduser() if personal_dir is not None else _default_personal_dir()
        packaged = Path(packaged_dir).expanduser() if packaged_dir is not None else PACKAGED_DIR
        self.search_path: list[Path] = [personal, packaged]

    def locate(self, template_name: str) -> Path:
        """Return the first file named ``template_name`` on the search path.

        Raises:
            FileNotFoundError if no directory holds the template
        """
        for directory in self.search_path:
            candidate = directory / template_name
            if candidate.is_file():
                return candidate
        searched = ", ".join(str(d) for d in self.search_path)
        raise FileNotFoundError(f"Prompt template {template_name!r} not found in: {searched}")

    def is_overridden(self, template_name: str) -> bool:
        return self.locate(template_name).parent != self.search_path[-1]

    def load(self, template_name: str) -> str:
        return self.locate(template_name).read_text(encoding="utf-8").strip()

    def render(self, template_name: str, **variables: object) -> str:
        """Load a template and substitute ``$placeholders``."""
        return Template(self.load(template_name)).safe_substitute(
            {key: str(value) for key, value in variables.items()}
        )
