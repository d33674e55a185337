"""
Utility for loading YAML resources bundled with the package.

The built-in sample schema is shipped as YAML under askdb/resources so it
can be edited without touching code.
"""

from importlib import resources
from typing import Any, Dict

import yaml

from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id


logger = get_module_logger()

RESOURCE_PACKAGE = "askdb.resources"


def load_resource_yaml(file_name: str, package: str = RESOURCE_PACKAGE) -> Dict[str, Any]:
    """
    Load a YAML file bundled with the package.

    Args:
        file_name: File name inside the resource package (e.g. "sample_schema.yaml")
        package: Dotted resource package name

    Returns:
        Parsed YAML content as dictionary

    Raises:
        FileNotFoundError: If the resource does not exist
        ValueError: If the document is not a mapping
        yaml.YAMLError: If the file cannot be parsed
    """
    trace_id = current_trace_id()
    logger.debug(
        "Loading YAML resource",
        package=package,
        file_name=file_name,
        trace_id=trace_id
    )

    resource = resources.files(package).joinpath(file_name)
    try:
        content = yaml.safe_load(resource.read_text(encoding="utf-8"))
    except (FileNotFoundError, yaml.YAMLError) as e:
        logger.error(
            f"Failed to load YAML resource: {e}",
            package=package,
            file_name=file_name,
            trace_id=trace_id
        )
        raise

    if not isinstance(content, dict):
        raise ValueError(f"YAML resource {file_name} must contain a mapping, got {type(content).__name__}")

    return content
