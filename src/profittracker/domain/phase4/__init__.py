from .aggregator import AggregatedTotals, aggregate
from .calculator import calculate_record, grid_averages
from .closed_bots import closed_bots_range, parse_screenshot_datetime
from .engine import calculate_update, run_phase4
from .errors import IncompleteHistoryError, MalformedJsonError, Phase4Error, ValidationError
from .models import (
    CategoryResult,
    MetricCategory,
    Mode,
    NeuPercent,
    ScreenshotRecord,
    Status,
    StoredUpdate,
    UpdateRecord,
    UploadBatch,
    VergleichPercent,
)
from .modes import ModeSelection, ResolvedMode, resolve_modes
from .overrides import apply_overrides
from .payload import Phase4Request, parse_phase4_payload, parse_screenshot_payload, screenshot_to_dict
from .runtime import format_duration, parse_duration, subtract_duration

__all__ = [
    "AggregatedTotals",
    "aggregate",
    "calculate_record",
    "grid_averages",
    "closed_bots_range",
    "parse_screenshot_datetime",
    "calculate_update",
    "run_phase4",
    "IncompleteHistoryError",
    "MalformedJsonError",
    "Phase4Error",
    "ValidationError",
    "CategoryResult",
    "MetricCategory",
    "Mode",
    "NeuPercent",
    "ScreenshotRecord",
    "Status",
    "StoredUpdate",
    "UpdateRecord",
    "UploadBatch",
    "VergleichPercent",
    "ModeSelection",
    "ResolvedMode",
    "resolve_modes",
    "apply_overrides",
    "Phase4Request",
    "parse_phase4_payload",
    "parse_screenshot_payload",
    "screenshot_to_dict",
    "format_duration",
    "parse_duration",
    "subtract_duration",
]
