"""
Domain models for money management sessions.

Strategy settings and strategy state are closed tagged unions keyed by the
``strategy`` field. Python attributes are snake_case; the JSON form uses the
camelCase names stored by the web client (``bankrollPercentage``,
``stakeIniziale``, ...). Both spellings are accepted on input, unknown keys are
ignored and missing keys fall back to per-strategy defaults, so settings blobs
written by older clients keep loading.
"""

import json
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .config import DEFAULT_EV_THRESHOLD, DEFAULT_CAPTURE_RATE, DEFAULT_ODDS, DEFAULT_KELLY_FRACTION
from .exceptions import InvalidConfiguration

StrategyKind = Literal[
    "flat",
    "percentage",
    "dalembert",
    "profitfall",
    "masaniello",
    "kelly",
    "beat-delay",
]

EventResult = Literal["pending", "won", "lost"]
SessionStatus = Literal["active", "completed", "stopped"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model with camelCase JSON aliases and lenient input handling."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        protected_namespaces=()
    )

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------
# Strategy settings
# ---------------------------------------------------------------------

class _SettingsBase(CamelModel):
    target_return: Optional[float] = Field(default=None, ge=0)


class FlatSettings(_SettingsBase):
    strategy: Literal["flat"] = "flat"
    base_stake: float = Field(default=10.0, gt=0)


class PercentageSettings(_SettingsBase):
    strategy: Literal["percentage"] = "percentage"
    bankroll_percentage: float = Field(default=10.0, gt=0, le=100)


class DalembertSettings(_SettingsBase):
    strategy: Literal["dalembert"] = "dalembert"
    dalembert_unit: float = Field(default=10.0, gt=0)
    stop_loss: Optional[int] = Field(default=None, ge=1)


class ProfitFallSettings(_SettingsBase):
    strategy: Literal["profitfall"] = "profitfall"
    stake_iniziale: float = Field(default=10.0, gt=0)
    margine_profitto: float = Field(default=10.0, gt=0, le=100)
    profit_fall_stop_loss: float = Field(default=100.0, gt=0)

    @property
    def desired_profit(self) -> float:
        return self.stake_iniziale * self.margine_profitto / 100


class MasanielloSettings(_SettingsBase):
    strategy: Literal["masaniello"] = "masaniello"
    total_events: int = Field(default=5, ge=1)
    minimum_wins: int = Field(default=3, ge=1)
    risk_factor: float = Field(default=5.0, gt=0, le=100)
    event_odds: List[float] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_sequence(self) -> "MasanielloSettings":
        if self.minimum_wins > self.total_events:
            raise ValueError(
                f"minimumWins ({self.minimum_wins}) cannot exceed "
                f"totalEvents ({self.total_events})"
            )
        if not self.event_odds:
            self.event_odds = [DEFAULT_ODDS] * self.total_events
        if len(self.event_odds) != self.total_events:
            raise ValueError(
                f"eventOdds must list {self.total_events} odds "
                f"(got {len(self.event_odds)})"
            )
        for index, odds in enumerate(self.event_odds):
            if odds <= 1:
                raise ValueError(f"eventOdds[{index}] must be greater than 1 (got {odds})")
        return self


class KellyEvent(CamelModel):
    id: Optional[str] = None
    name: str = ""
    bookmaker_odds: float = Field(
        gt=1,
        validation_alias=AliasChoices("bookmakerOdds", "bookmaker_odds", "quotaBookmaker")
    )
    estimated_probability: float = Field(
        ge=0,
        le=1,
        validation_alias=AliasChoices(
            "estimatedProbability", "estimated_probability", "probabilitaStimata"
        )
    )


class KellySettings(_SettingsBase):
    strategy: Literal["kelly"] = "kelly"
    kelly_fraction: float = Field(default=DEFAULT_KELLY_FRACTION, gt=0, le=1)
    max_risk_percentage: float = Field(default=20.0, gt=0, le=100)
    max_single_stake: float = Field(default=100.0, gt=0)
    events: List[KellyEvent] = Field(default_factory=list)


class BeatDelaySettings(_SettingsBase):
    strategy: Literal["beat-delay"] = "beat-delay"
    base_stake: float = Field(default=10.0, gt=0)
    stop_loss: Optional[int] = Field(default=None, ge=1)
    current_delay: float = Field(default=0.0, ge=0)
    historical_frequency: float = Field(default=0.0, ge=0, le=100)
    avg_delay: float = Field(default=0.0, ge=0)
    max_delay: float = Field(default=0.0, ge=0)
    current_odds: Optional[float] = Field(default=None, gt=1)
    capture_rate: float = Field(default=DEFAULT_CAPTURE_RATE, ge=0, le=100)
    recovery_rate: float = Field(default=0.0, ge=0, le=1)
    ev_threshold: float = DEFAULT_EV_THRESHOLD


StrategySettings = Annotated[
    Union[
        FlatSettings,
        PercentageSettings,
        DalembertSettings,
        ProfitFallSettings,
        MasanielloSettings,
        KellySettings,
        BeatDelaySettings,
    ],
    Field(discriminator="strategy"),
]

_SETTINGS_ADAPTER = TypeAdapter(StrategySettings)


# ---------------------------------------------------------------------
# Strategy state
# ---------------------------------------------------------------------

class FlatState(CamelModel):
    strategy: Literal["flat"] = "flat"


class PercentageState(CamelModel):
    strategy: Literal["percentage"] = "percentage"


class DalembertState(CamelModel):
    strategy: Literal["dalembert"] = "dalembert"
    current_level: int = Field(default=0, ge=0)


class ProfitFallState(CamelModel):
    strategy: Literal["profitfall"] = "profitfall"
    accumulated_loss: float = Field(default=0.0, ge=0)
    current_step: int = Field(default=1, ge=1)
    is_sequence_active: bool = False


class MasanielloState(CamelModel):
    strategy: Literal["masaniello"] = "masaniello"
    current_event: int = Field(default=0, ge=0)
    events_won: int = Field(default=0, ge=0)
    events_lost: int = Field(default=0, ge=0)
    remaining_bankroll: float = 0.0
    event_results: List[EventResult] = Field(default_factory=list)
    is_completed: bool = False
    is_successful: Optional[bool] = None


class KellyAllocation(CamelModel):
    """One event of a Kelly cycle with its computed allocation and result."""

    id: Optional[str] = None
    name: str = ""
    bookmaker_odds: float
    estimated_probability: float
    full_kelly: float = 0.0
    adjusted_kelly: float = 0.0
    stake: float = 0.0
    recommended: bool = False
    risk_level: str = "none"
    result: EventResult = "pending"


class KellyState(CamelModel):
    strategy: Literal["kelly"] = "kelly"
    events: List[KellyAllocation] = Field(default_factory=list)
    total_stake_allocated: float = 0.0
    is_completed: bool = False
    sessions_completed: int = Field(default=0, ge=0)


class BeatDelayState(CamelModel):
    strategy: Literal["beat-delay"] = "beat-delay"
    level: int = Field(default=0, ge=0)
    consecutive_losses: int = Field(default=0, ge=0)
    total_staked: float = Field(default=0.0, ge=0)
    anomaly_index: Optional[float] = None
    estimated_probability: Optional[float] = None
    expected_value: Optional[float] = None
    should_play: Optional[bool] = None


StrategyState = Annotated[
    Union[
        FlatState,
        PercentageState,
        DalembertState,
        ProfitFallState,
        MasanielloState,
        KellyState,
        BeatDelayState,
    ],
    Field(discriminator="strategy"),
]

_STATE_ADAPTER = TypeAdapter(StrategyState)


# ---------------------------------------------------------------------
# Session records
# ---------------------------------------------------------------------

class Bet(CamelModel):
    """A recorded bet. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    session_id: Optional[int] = None
    bet_number: int = Field(ge=1)
    stake: float = Field(ge=0)
    odds: float = Field(gt=1)
    potential_win: float = Field(ge=0)
    win: bool = Field(validation_alias=AliasChoices("win", "won"))
    profit: float = 0.0
    bankroll_before: float
    bankroll_after: float
    created_at: datetime = Field(default_factory=_utcnow)


class Session(CamelModel):
    id: Optional[int] = None
    name: str = "Session"
    initial_bankroll: float = Field(gt=0)
    current_bankroll: float
    target_return: float = Field(default=10.0, ge=0)
    strategy: StrategyKind
    strategy_settings: str = "{}"
    bet_count: int = Field(default=0, ge=0)
    wins: int = Field(default=0, ge=0)
    losses: int = Field(default=0, ge=0)
    status: SessionStatus = "active"
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------
# Decoding helpers
# ---------------------------------------------------------------------

def _first_error_field(exc: ValidationError) -> Optional[str]:
    errors = exc.errors()
    if not errors:
        return None
    return ".".join(str(part) for part in errors[0].get("loc", ())) or None


def _load_blob(raw: Any, what: str) -> Dict[str, Any]:
    if isinstance(raw, BaseModel):
        return raw.model_dump(by_alias=True)
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw or "{}")
        except json.JSONDecodeError as e:
            raise InvalidConfiguration(f"{what} is not valid JSON: {e}", field=what)
    if not isinstance(raw, dict):
        raise InvalidConfiguration(
            f"{what} must be a JSON object (got {type(raw).__name__})",
            field=what
        )
    return dict(raw)


def normalize_strategy(raw: Any) -> str:
    """Strip whitespace and lower-case a strategy tag; reject unknown tags."""
    normalized = str(raw).strip().lower()
    if normalized not in StrategyKind.__args__:
        raise InvalidConfiguration(
            f"Unknown strategy '{raw}'",
            field="strategy",
            details={"supported": list(StrategyKind.__args__)}
        )
    return normalized


def parse_strategy_settings(raw: Any, strategy: Optional[str] = None) -> StrategySettings:
    """
    Decode a settings blob into the typed settings variant.

    Args:
        raw: JSON string, dict or settings model
        strategy: Strategy tag; overrides any tag found in the blob. Session
            records keep the tag outside the blob, so callers pass it here.

    Raises:
        InvalidConfiguration: If the blob cannot be decoded or fails validation
    """
    data = _load_blob(raw, "strategySettings")
    if strategy is not None:
        data["strategy"] = normalize_strategy(strategy)
    elif "strategy" in data:
        data["strategy"] = normalize_strategy(data["strategy"])
    else:
        raise InvalidConfiguration("Missing strategy tag", field="strategy")

    try:
        return _SETTINGS_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise InvalidConfiguration(
            f"Invalid {data['strategy']} settings: {e.errors()[0]['msg']}",
            field=_first_error_field(e),
            details={"errors": e.errors(include_url=False, include_context=False)}
        )


def serialize_strategy_settings(settings: StrategySettings) -> str:
    return settings.model_dump_json(by_alias=True, exclude_none=True)


def parse_strategy_state(raw: Any) -> StrategyState:
    """Decode a persisted strategy state blob."""
    data = _load_blob(raw, "strategyState")
    try:
        return _STATE_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise InvalidConfiguration(
            f"Invalid strategy state: {e.errors()[0]['msg']}",
            field=_first_error_field(e)
        )


def serialize_strategy_state(state: StrategyState) -> str:
    return state.model_dump_json(by_alias=True)
