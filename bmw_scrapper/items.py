"""Records produced by the two passes and the column layouts of their tables."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List

BUILD_COLUMNS: List[str] = [
    "Car",
    "BodyType",
    "Model",
    "Engine",
    "SeriesCode",
    "LineCode",
    "ModelCode",
    "ImageUrl",
    "ConfigureUrl",
    "SummaryUrl",
]

PRICE_COLUMNS: List[str] = [
    "PriceBeforeVAT",
    "SelectedOptionsPrice",
    "SubtotalExVAT",
    "VATAmount",
    "SubtotalInclVAT",
    "OnTheRoadFee",
    "OTRPrice",
]

# Fixed head of the summary table; accumulated spec keys follow in sorted order
SUMMARY_BASE_COLUMNS: List[str] = [
    "Car",
    "BodyType",
    "Model",
    "Engine",
    "SeriesCode",
    "LineCode",
    "ModelCode",
    "ImageUrl",
    "SummaryUrl",
    *PRICE_COLUMNS,
]


def _sanitize(value: str) -> str:
    return re.sub(r"[\s-]", "", value).lower()


@dataclass(frozen=True)
class GridUnit:
    """One model card on the all-models grid."""

    order: int
    model_name: str
    body_type: str

    @property
    def key(self) -> str:
        return f"{_sanitize(self.model_name)}|{_sanitize(self.body_type)}"

    def __str__(self) -> str:
        return f"{self.model_name} [{self.body_type}]"


@dataclass(frozen=True)
class BuildIdentity:
    """Codes and URLs read off the configurator after an engine is picked."""

    series_code: str = ""
    line_code: str = ""
    model_code: str = ""
    configure_url: str = ""
    summary_url: str = ""

    @property
    def display_code(self) -> str:
        return self.line_code or self.model_code


@dataclass(frozen=True)
class BuildRecord:
    """One accepted (line, engine) combination."""

    car: str
    body_type: str
    model: str
    engine: str
    series_code: str
    line_code: str
    model_code: str
    image_url: str
    configure_url: str
    summary_url: str

    @classmethod
    def from_identity(
        cls,
        unit: GridUnit,
        line_label: str,
        engine_name: str,
        identity: BuildIdentity,
        image_url: str = "",
    ) -> "BuildRecord":
        return cls(
            car=unit.model_name,
            body_type=unit.body_type,
            model=line_label,
            engine=engine_name,
            series_code=identity.series_code,
            line_code=identity.line_code,
            model_code=identity.model_code or identity.line_code,
            image_url=image_url,
            configure_url=identity.configure_url,
            summary_url=identity.summary_url,
        )

    def as_row(self) -> Dict[str, str]:
        return {
            "Car": self.car,
            "BodyType": self.body_type,
            "Model": self.model,
            "Engine": self.engine,
            "SeriesCode": self.series_code,
            "LineCode": self.line_code,
            "ModelCode": self.model_code,
            "ImageUrl": self.image_url,
            "ConfigureUrl": self.configure_url,
            "SummaryUrl": self.summary_url,
        }
