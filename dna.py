"""
dna.py: typed DNA configuration and its validation boundary.

The external shape (preset files, the preset store, vision-model suggestions)
is camelCase JSON:

    {"meta": {"version": "7.0.0", "codename": "...", "artist": "..."},
     "dimensions": {"temporalSpatial": {"master": 78, "timelessFrozen": 80, ...},
                    ...,
                    "historicalConstraints": {"master": 100, "period": "GOLDEN_AGE", "fidelity": 85},
                    "finition": {"master": 80, "masterLustre": 75, "finalGlow": 60}}}

`DnaConfiguration.from_dict` checks that shape and clamps every percentage
into [0,100]. Out-of-range numbers are clamped, never rejected; structural
problems raise ConfigError.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, fields, replace
from numbers import Real
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

log = logging.getLogger("masterdna")

DEFAULT_VERSION = "7.0.0"
DEFAULT_CODENAME = "Psychonarrative Historical"


class ConfigError(ValueError):
    """Configuration does not match the DNA shape."""


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def _clamp_pct(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ConfigError(f"{path}: expected a number, got {value!r}")
    v = float(value)
    if math.isnan(v):
        raise ConfigError(f"{path}: NaN is not a valid percentage")
    return min(100.0, max(0.0, v))


# =============== Dimension groups ===============
@dataclass(frozen=True)
class DimensionGroup:
    """Base for the six groups: a `master` weight plus named 0..100 sub-parameters."""
    master: float = 0.0

    KEY = ""

    @classmethod
    def from_dict(cls, data: Any) -> "DimensionGroup":
        if not isinstance(data, Mapping):
            raise ConfigError(f"dimensions.{cls.KEY}: expected an object, got {type(data).__name__}")
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            key = _to_camel(f.name)
            path = f"dimensions.{cls.KEY}.{key}"
            if key in data:
                raw = data[key]
            elif f.name in data:
                raw = data[f.name]
            else:
                raise ConfigError(f"{path}: missing")
            if f.type in ("str", str):
                if not isinstance(raw, str):
                    raise ConfigError(f"{path}: expected a string, got {raw!r}")
                kwargs[f.name] = raw
            else:
                kwargs[f.name] = _clamp_pct(raw, path)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {_to_camel(f.name): getattr(self, f.name) for f in fields(self)}

    def sub_parameters(self) -> Iterator[Tuple[str, float]]:
        """(name, value) for every numeric parameter other than `master`, in declaration order."""
        for f in fields(self):
            if f.name == "master" or f.type in ("str", str):
                continue
            yield f.name, float(getattr(self, f.name))


@dataclass(frozen=True)
class TemporalSpatial(DimensionGroup):
    KEY = "temporalSpatial"
    timeless_frozen: float = 0.0
    atmospheric_duration: float = 0.0
    dramatic_moment: float = 0.0
    motion_blur: float = 0.0
    time_indication: float = 0.0
    atmospheric_indication: float = 0.0
    depth_precision: float = 0.0


@dataclass(frozen=True)
class MaterialSpiritual(DimensionGroup):
    KEY = "materialSpiritual"
    divine_through_material: float = 0.0
    material_as_expansion: float = 0.0
    material_precision: float = 0.0
    spiritual_symbolism: float = 0.0
    surface_perfection: float = 0.0
    detail_as_revelation: float = 0.0


@dataclass(frozen=True)
class LightRevelation(DimensionGroup):
    KEY = "lightRevelation"
    light_as_divine_proof: float = 0.0
    light_as_dramatic_tools: float = 0.0
    shadow_softness: float = 0.0
    reflection_subtlety: float = 0.0
    light_symbolism: float = 0.0


@dataclass(frozen=True)
class GazePsychology(DimensionGroup):
    KEY = "gazePsychology"
    microscopic_scrutiny: float = 0.0
    emotional_immersion: float = 0.0
    dramatic_orchestration: float = 0.0
    loop_completeness: float = 0.0
    transition_smoothness: float = 0.0
    discovery_density: float = 0.0
    hypnotic_quality: float = 0.0


@dataclass(frozen=True)
class HistoricalConstraints(DimensionGroup):
    KEY = "historicalConstraints"
    period: str = "CONTEMPORARY"
    fidelity: float = 0.0


@dataclass(frozen=True)
class Finition(DimensionGroup):
    KEY = "finition"
    master_lustre: float = 0.0
    final_glow: float = 0.0


# attribute name on DnaConfiguration -> group class, in pipeline order
GROUPS: Tuple[Tuple[str, type], ...] = (
    ("temporal_spatial", TemporalSpatial),
    ("material_spiritual", MaterialSpiritual),
    ("light_revelation", LightRevelation),
    ("gaze_psychology", GazePsychology),
    ("historical_constraints", HistoricalConstraints),
    ("finition", Finition),
)


# =============== Meta & configuration ===============
@dataclass(frozen=True)
class Meta:
    version: str = DEFAULT_VERSION
    codename: str = DEFAULT_CODENAME
    artist: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Meta":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigError(f"meta: expected an object, got {type(data).__name__}")
        artist = data.get("artist")
        if artist is not None and not isinstance(artist, str):
            raise ConfigError(f"meta.artist: expected a string, got {artist!r}")
        return cls(
            version=str(data.get("version", DEFAULT_VERSION)),
            codename=str(data.get("codename", DEFAULT_CODENAME)),
            artist=artist,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"version": self.version, "codename": self.codename}
        if self.artist is not None:
            out["artist"] = self.artist
        return out


@dataclass(frozen=True)
class DnaConfiguration:
    temporal_spatial: TemporalSpatial = field(default_factory=TemporalSpatial)
    material_spiritual: MaterialSpiritual = field(default_factory=MaterialSpiritual)
    light_revelation: LightRevelation = field(default_factory=LightRevelation)
    gaze_psychology: GazePsychology = field(default_factory=GazePsychology)
    historical_constraints: HistoricalConstraints = field(default_factory=HistoricalConstraints)
    finition: Finition = field(default_factory=Finition)
    meta: Meta = field(default_factory=Meta)

    @classmethod
    def from_dict(cls, data: Any) -> "DnaConfiguration":
        if not isinstance(data, Mapping):
            raise ConfigError(f"configuration: expected an object, got {type(data).__name__}")
        dims = data.get("dimensions")
        if not isinstance(dims, Mapping):
            raise ConfigError("dimensions: missing or not an object")
        kwargs: Dict[str, Any] = {"meta": Meta.from_dict(data.get("meta"))}
        for attr, group_cls in GROUPS:
            if group_cls.KEY not in dims:
                raise ConfigError(f"dimensions.{group_cls.KEY}: missing")
            kwargs[attr] = group_cls.from_dict(dims[group_cls.KEY])
        return cls(**kwargs)

    @classmethod
    def from_json(cls, text: str) -> "DnaConfiguration":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "DnaConfiguration":
        p = Path(path)
        log.info("Loading DNA configuration: %s", p)
        return cls.from_json(p.read_text(encoding="utf-8"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": self.meta.to_dict(),
            "dimensions": {cls.KEY: getattr(self, attr).to_dict() for attr, cls in GROUPS},
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def groups(self) -> Iterator[Tuple[str, DimensionGroup]]:
        for attr, _ in GROUPS:
            yield attr, getattr(self, attr)


# =============== Overrides ===============
def _resolve_group(name: str) -> str:
    for attr, cls in GROUPS:
        if name in (attr, cls.KEY):
            return attr
    raise ConfigError(f"Unknown dimension group '{name}'")


def apply_overrides(config: DnaConfiguration, overrides: Mapping[str, Any]) -> DnaConfiguration:
    """
    Return a copy with dotted-path values replaced, e.g. {"finition.master": 50,
    "historicalConstraints.period": "BAROQUE", "meta.artist": "Vermeer"}.
    Paths accept camelCase or snake_case names; numbers are clamped.
    """
    out = config
    for path, value in overrides.items():
        if "." not in path:
            raise ConfigError(f"Override '{path}' must look like group.param")
        head, key = path.split(".", 1)
        if head == "meta":
            if key not in ("version", "codename", "artist"):
                raise ConfigError(f"Unknown meta field '{key}'")
            out = replace(out, meta=replace(out.meta, **{key: None if value is None else str(value)}))
            continue
        attr = _resolve_group(head)
        group = getattr(out, attr)
        names = {f.name: f for f in fields(group)}
        names.update({_to_camel(n): f for n, f in list(names.items())})
        if key not in names:
            raise ConfigError(f"Unknown parameter '{key}' in {type(group).KEY}")
        f = names[key]
        if f.type in ("str", str):
            new_value: Any = str(value)
        else:
            new_value = _clamp_pct(value, path)
        out = replace(out, **{attr: replace(group, **{f.name: new_value})})
    return out


# =============== Reference configurations ===============
def neutral_configuration() -> DnaConfiguration:
    """Every master at 0; only the fixed finishing vignette runs."""
    return DnaConfiguration()


def default_configuration() -> DnaConfiguration:
    return DnaConfiguration(
        temporal_spatial=TemporalSpatial(
            master=78, timeless_frozen=80, atmospheric_duration=20, dramatic_moment=30,
            motion_blur=0, time_indication=50, atmospheric_indication=40, depth_precision=70,
        ),
        material_spiritual=MaterialSpiritual(
            master=72, divine_through_material=85, material_as_expansion=40, material_precision=80,
            spiritual_symbolism=60, surface_perfection=75, detail_as_revelation=70,
        ),
        light_revelation=LightRevelation(
            master=81, light_as_divine_proof=90, light_as_dramatic_tools=45, shadow_softness=60,
            reflection_subtlety=55, light_symbolism=65,
        ),
        gaze_psychology=GazePsychology(
            master=75, microscopic_scrutiny=85, emotional_immersion=50, dramatic_orchestration=40,
            loop_completeness=60, transition_smoothness=70, discovery_density=55, hypnotic_quality=45,
        ),
        historical_constraints=HistoricalConstraints(master=100, period="GOLDEN_AGE", fidelity=85),
        finition=Finition(master=80, master_lustre=75, final_glow=60),
    )
