import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from src.rules.models import Rules

logger = logging.getLogger(__name__)

FENCE_OPEN = "```yaml"
FENCE_CLOSE = "```"


def extract_yaml(text: str) -> str:
    """
    Return the first ```yaml fenced block of a markdown document.
    Plain YAML (no fence) is returned unchanged.
    """
    block: list[str] | None = None
    for line in text.splitlines():
        marker = line.strip()
        if block is None:
            if marker.startswith(FENCE_OPEN):
                block = []
            continue
        if marker.startswith(FENCE_CLOSE):
            break
        block.append(line)
    return text if block is None else "\n".join(block)


def load_rules(path: str | Path) -> Rules:
    """
    Load and validate the rules file.
    Raises FileNotFoundError if file missing.
    Raises ValueError if the YAML or the schema is invalid.
    """
    rules_path = Path(path)
    if not rules_path.is_file():
        raise FileNotFoundError(f"Rules file not found at: {rules_path}")

    source = extract_yaml(rules_path.read_text(encoding="utf-8"))
    try:
        data = yaml.safe_load(source)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in {rules_path}: {e}") from e

    try:
        rules = Rules.model_validate(data or {})
    except ValidationError as e:
        raise ValueError(f"Rules validation failed for {rules_path}:\n{e}") from e

    logger.debug("Loaded rules %s v%s", rules.project.slug, rules.project.rules_version)
    return rules
