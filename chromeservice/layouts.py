"""Loading of the base dashboard layouts from YAML files."""

from __future__ import annotations

import logging
from os import PathLike
from pathlib import Path

import yaml

from chromeservice.models import (
    AvailableTemplates,
    BaseDashboardTemplate,
    ValidationError,
    validate_template_name,
)

logger = logging.getLogger(__name__)

LAYOUTS_DIR = "widget-dashboard-defaults"


def _layout_files(directory: Path) -> list[Path]:
    return sorted(directory.glob("*.yaml")) + sorted(directory.glob("*.yml"))


def load_base_layouts(
    templates_dir: str | PathLike[str],
) -> dict[AvailableTemplates, BaseDashboardTemplate]:
    """Read every base template under ``<templates_dir>/widget-dashboard-defaults``.

    Problems are logged; loading stops at the first invalid file and the
    templates read before it are kept.
    """
    found = {template: False for template in AvailableTemplates}
    layouts: dict[AvailableTemplates, BaseDashboardTemplate] = {}
    files = _layout_files(Path(templates_dir) / LAYOUTS_DIR)
    if not files:
        logger.error("no widget dashboard files found")

    for path in files:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except OSError as exc:
            logger.error("error reading widget dashboard file %s: %s", path, exc)
            break
        except yaml.YAMLError as exc:
            logger.error("error Unmarshal widget dashboard file %s: %s", path, exc)
            break
        try:
            template = BaseDashboardTemplate.from_dict(data)
        except ValidationError as exc:
            logger.error("error Unmarshal widget dashboard file %s: %s", path, exc)
            break
        try:
            dashboard = validate_template_name(template.name)
        except ValidationError as exc:
            logger.error("unknown dashboard type: %s", template.name)
            logger.error("%s", exc)
            break
        try:
            template.template_config.validate()
        except ValidationError as exc:
            logger.error("invalid template config in file: %s\n%s", path, exc)
            break
        layouts[dashboard] = template
        found[dashboard] = True

    for template, was_found in found.items():
        if not was_found:
            logger.error("missing default template for %s", template.value)

    return layouts