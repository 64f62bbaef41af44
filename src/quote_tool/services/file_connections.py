"""
File Connections - auto-fill quote parameters from uploaded-file metadata.

A merchant links a metadata key (pages, width, volume, ...) to a parameter;
when a buyer uploads a file, each linked value is written into the form and
propagated to derived fields. Extracting metadata from the file itself is the
caller's job.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..engine.models import Parameter
from ..engine.resolver import update_form_value_with_calculations

logger = logging.getLogger(__name__)


# Common 3D printing material densities (g/cm³)
MATERIAL_DENSITIES: dict[str, float] = {
    "PLA": 1.24,
    "ABS": 1.05,
    "PETG": 1.27,
    "TPU": 1.2,
    "PC": 1.2,
    "ASA": 1.05,
    "Nylon": 1.14,
    "Wood Fill": 1.28,
    "Metal Fill": 4.0,
    "Carbon Fiber": 1.3,
    "Generic": 1.24,
}


@dataclass
class FileUploadConnection:
    """Links one metadata key to the parameter it fills."""
    id: str
    metadata_key: str  # e.g. "pages", "width", "height"
    parameter_name: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> 'FileUploadConnection':
        return cls(
            id=str(data.get('id', '')),
            metadata_key=data.get('metadataKey', ''),
            parameter_name=data.get('parameterName', ''),
            description=data.get('description', ''),
        )


def apply_file_connections(
    metadata: dict[str, Any],
    connections: list[FileUploadConnection],
    parameters: list[Parameter],
    form_values: dict[str, Any],
    max_iterations: Optional[int] = None,
) -> dict[str, Any]:
    """
    Write connected metadata values into a copy of the form values.

    Connections whose key is absent from the metadata are skipped. Each value
    goes through the incremental resolver so derived fields follow;
    max_iterations caps its passes (settings default when None).
    """
    values = dict(form_values)
    for connection in connections:
        metadata_value = metadata.get(connection.metadata_key)
        if metadata_value is None:
            continue
        logger.info(
            "Auto-filling %s with %s from file %s",
            connection.parameter_name, metadata_value, connection.metadata_key,
        )
        values = update_form_value_with_calculations(
            connection.parameter_name, str(metadata_value), parameters, values,
            max_iterations=max_iterations,
        )
    return values


def calculate_weight(volume_mm3: float, material_density: float = MATERIAL_DENSITIES["Generic"]) -> float:
    """Weight in grams for a volume in mm³ and a density in g/cm³."""
    return volume_mm3 / 1000 * material_density
