"""
presets.py: read-only catalog of painter styles.

Each entry carries descriptive metadata and a default DnaConfiguration. The
detector scores catalog ids; the CLI applies `get_preset(id).configuration`,
and `preset_configuration(id)` is the non-raising lookup (None when unknown).
Catalog order is fixed and doubles as the tie-break order when detection
scores are equal.

External catalogs use the JSON shape

    {"masters": {"vermeer": {"name": "vermeer", "displayName": "Johannes Vermeer",
                             "period": "...", "periodCode": "GOLDEN_AGE",
                             "characteristics": [...], "configuration": {...},
                             "notes": "..."}}}
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from dna import (
    ConfigError,
    DnaConfiguration,
    Finition,
    GazePsychology,
    HistoricalConstraints,
    LightRevelation,
    MaterialSpiritual,
    Meta,
    TemporalSpatial,
    default_configuration,
)

log = logging.getLogger("masterdna")


class UnknownStyle(KeyError):
    """Style id not present in the catalog."""


@dataclass(frozen=True)
class StylePreset:
    name: str
    display_name: str
    period: str
    period_code: str
    characteristics: Tuple[str, ...]
    configuration: DnaConfiguration
    notes: str = ""

    @classmethod
    def from_dict(cls, style_id: str, data: Mapping[str, Any]) -> "StylePreset":
        if not isinstance(data, Mapping):
            raise ConfigError(f"masters.{style_id}: expected an object")
        if "configuration" not in data:
            raise ConfigError(f"masters.{style_id}.configuration: missing")
        return cls(
            name=str(data.get("name", style_id)),
            display_name=str(data.get("displayName", style_id)),
            period=str(data.get("period", "")),
            period_code=str(data.get("periodCode", "")),
            characteristics=tuple(str(c) for c in data.get("characteristics", ())),
            configuration=DnaConfiguration.from_dict(data["configuration"]),
            notes=str(data.get("notes", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "displayName": self.display_name,
            "period": self.period,
            "periodCode": self.period_code,
            "characteristics": list(self.characteristics),
            "configuration": self.configuration.to_dict(),
            "notes": self.notes,
        }


Catalog = Mapping[str, StylePreset]


def _cfg(artist: str, ts, ms, lr, gp, hc, fi) -> DnaConfiguration:
    """Build a configuration from per-group value tuples (master first, then fields in order)."""
    return DnaConfiguration(
        temporal_spatial=TemporalSpatial(*ts),
        material_spiritual=MaterialSpiritual(*ms),
        light_revelation=LightRevelation(*lr),
        gaze_psychology=GazePsychology(*gp),
        historical_constraints=HistoricalConstraints(*hc),
        finition=Finition(*fi),
        meta=Meta(artist=artist),
    )


_vermeer = default_configuration()

_BUILTIN: Tuple[StylePreset, ...] = (
    StylePreset(
        "caravaggio", "Caravaggio", "Baroque (1592-1610)", "BAROQUE",
        ("tenebrism", "violent chiaroscuro", "theatrical spotlight", "deep black grounds"),
        _cfg("Caravaggio",
             (70, 40, 10, 90, 0, 20, 10, 60),
             (65, 30, 50, 70, 20, 30, 60),
             (95, 40, 100, 10, 40, 30),
             (80, 60, 70, 95, 50, 30, 40, 20),
             (100, "BAROQUE", 90),
             (80, 60, 40)),
        "Push light_as_dramatic_tools first; shadows should fall to near black.",
    ),
    StylePreset(
        "rembrandt", "Rembrandt van Rijn", "Dutch Golden Age (1630-1669)", "GOLDEN_AGE",
        ("warm umber palette", "soft chiaroscuro", "impasto highlights", "psychological depth"),
        _cfg("Rembrandt",
             (75, 70, 30, 60, 0, 40, 20, 50),
             (80, 70, 60, 70, 50, 40, 70),
             (90, 80, 70, 40, 50, 60),
             (75, 60, 80, 60, 60, 50, 50, 50),
             (100, "GOLDEN_AGE", 90),
             (80, 70, 60)),
        "Warm golden shadows; keep the glow on faces and hands.",
    ),
    StylePreset(
        "vermeer", "Johannes Vermeer", "Dutch Golden Age (1653-1675)", "GOLDEN_AGE",
        ("window light", "pearl highlights", "microscopic precision", "suspended time"),
        DnaConfiguration(
            temporal_spatial=_vermeer.temporal_spatial,
            material_spiritual=_vermeer.material_spiritual,
            light_revelation=_vermeer.light_revelation,
            gaze_psychology=_vermeer.gaze_psychology,
            historical_constraints=_vermeer.historical_constraints,
            finition=_vermeer.finition,
            meta=Meta(artist="Vermeer"),
        ),
        "Reference configuration.",
    ),
    StylePreset(
        "friedrich", "Caspar David Friedrich", "Romanticism (1798-1840)", "ROMANTICISM",
        ("contemplative distance", "misty horizons", "muted cool palette", "sublime landscape"),
        _cfg("Caspar David Friedrich",
             (80, 70, 80, 20, 0, 60, 80, 40),
             (50, 40, 20, 40, 60, 50, 30),
             (70, 60, 20, 70, 30, 50),
             (65, 30, 70, 30, 70, 80, 30, 60),
             (80, "MODERN", 60),
             (70, 40, 50)),
        "Haze does most of the work; keep contrast moderate.",
    ),
    StylePreset(
        "turner", "J. M. W. Turner", "Romanticism (1796-1851)", "ROMANTICISM",
        ("luminous vortex", "dissolved forms", "atmospheric haze", "radiant skies"),
        _cfg("J. M. W. Turner",
             (85, 20, 100, 40, 40, 40, 100, 10),
             (70, 90, 30, 10, 70, 60, 10),
             (90, 100, 20, 80, 40, 80),
             (70, 10, 90, 40, 30, 90, 20, 90),
             (70, "MODERN", 50),
             (85, 50, 90)),
        "Motion blur and bloom carry the look; avoid sharpening.",
    ),
    StylePreset(
        "monet", "Claude Monet", "Impressionism (1872-1926)", "IMPRESSIONISM",
        ("broken colour", "plein-air light", "soft edges", "pastel atmosphere"),
        _cfg("Claude Monet",
             (75, 30, 80, 10, 20, 60, 70, 10),
             (70, 60, 60, 10, 50, 60, 10),
             (80, 70, 10, 80, 60, 70),
             (70, 10, 80, 10, 40, 90, 70, 80),
             (60, "MODERN", 40),
             (85, 80, 70)),
        "Vibrance over contrast; keep grain light.",
    ),
    StylePreset(
        "klimt", "Gustav Klimt", "Vienna Secession (1897-1918)", "ART_NOUVEAU",
        ("gold leaf", "ornamental surfaces", "saturated jewel tones", "flat decorative space"),
        _cfg("Gustav Klimt",
             (50, 60, 10, 30, 0, 20, 10, 60),
             (95, 100, 70, 90, 90, 70, 90),
             (80, 90, 30, 40, 90, 70),
             (70, 80, 60, 50, 60, 40, 90, 70),
             (60, "EARLY_RENAISSANCE", 50),
             (90, 90, 80)),
        "Material and lustre dominate; the warm grade echoes gilding.",
    ),
    StylePreset(
        "chagall", "Marc Chagall", "Modernism (1910-1985)", "MODERNISM",
        ("dreamlike colour", "floating figures", "vivid blues and reds", "folk symbolism"),
        _cfg("Marc Chagall",
             (60, 30, 40, 30, 20, 50, 40, 20),
             (75, 80, 60, 30, 90, 30, 40),
             (70, 70, 20, 50, 40, 80),
             (75, 20, 90, 40, 50, 60, 60, 90),
             (50, "MODERN", 40),
             (95, 100, 70)),
        "Let vibrance run high; keep the grade neutral.",
    ),
    StylePreset(
        "bacon", "Francis Bacon", "Mid-20th-century Expressionism (1944-1992)", "EXPRESSIONISM_MID_20TH",
        ("existential distortion", "smeared flesh", "hard contrast", "caged space"),
        _cfg("Francis Bacon",
             (88, 10, 30, 100, 80, 30, 20, 40),
             (92, 20, 100, 60, 10, 0, 70),
             (97, 10, 100, 10, 30, 20),
             (96, 40, 100, 90, 70, 10, 60, 40),
             (100, "EXPRESSIONISM_MID_20TH", 85),
             (70, 50, 20)),
        "Directional blur plus heavy texture; contrast stays brutal.",
    ),
    StylePreset(
        "beksinski", "Zdzisław Beksiński", "Polish dystopian surrealism (1964-2005)", "CONTEMPORARY",
        ("decay", "sepia dusk", "dystopian architecture", "muted ochre and bone"),
        _cfg("Zdzisław Beksiński",
             (80, 80, 90, 50, 0, 40, 90, 30),
             (85, 60, 90, 50, 80, 20, 60),
             (75, 50, 60, 30, 20, 40),
             (80, 40, 90, 60, 80, 60, 70, 70),
             (90, "EXPRESSIONISM_MID_20TH", 80),
             (60, 20, 30)),
        "Atmosphere and grain; sepia tones come from the expressionist grade.",
    ),
)

CATALOG: Catalog = MappingProxyType({p.name: p for p in _BUILTIN})


# =============== Lookups ===============
def find_preset(style_id: str, catalog: Optional[Catalog] = None) -> Optional[StylePreset]:
    return (CATALOG if catalog is None else catalog).get(style_id.strip().lower())


def get_preset(style_id: str, catalog: Optional[Catalog] = None) -> StylePreset:
    preset = find_preset(style_id, catalog)
    if preset is None:
        names = ", ".join((CATALOG if catalog is None else catalog).keys()) or "(none)"
        raise UnknownStyle(f"Unknown style '{style_id}'. Available: {names}")
    return preset


def preset_configuration(style_id: str, catalog: Optional[Catalog] = None) -> Optional[DnaConfiguration]:
    preset = find_preset(style_id, catalog)
    return preset.configuration if preset else None


def all_presets(catalog: Optional[Catalog] = None) -> List[Tuple[str, StylePreset]]:
    return list((CATALOG if catalog is None else catalog).items())


def load_catalog(path: Union[str, Path]) -> Catalog:
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid catalog JSON in {p}: {e}") from e
    masters = data.get("masters") if isinstance(data, Mapping) else None
    if not isinstance(masters, Mapping):
        raise ConfigError(f"{p}: expected an object with a 'masters' mapping")
    out = {str(k).lower(): StylePreset.from_dict(str(k), v) for k, v in masters.items()}
    log.info("Loaded %d style presets from %s", len(out), p)
    return MappingProxyType(out)
