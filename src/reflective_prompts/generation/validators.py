"""
Multi-stage validation pipeline for generation oracle outputs.

Oracle output is untrusted and is checked before anything is cached:
1. JSON Parse - validate parseable JSON object
2. Schema Validation - InsightContent pydantic model
3. Business Rules - dates are real dates, theme names unique
4. Quality Checks - warnings for theme count, summary length, thin descriptions
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import structlog
from pydantic import ValidationError

from ..models.artifacts import InsightContent

logger = structlog.get_logger(__name__)

# Quality thresholds (warnings only)
EXPECTED_THEME_RANGE = (4, 5)
SUMMARY_SOFT_LIMIT = 140
DESCRIPTION_MIN_WORDS = 60


# ============================================================================
# VALIDATION RESULT
# ============================================================================

@dataclass
class ValidationResult:
    """
    Result of multi-stage validation.

    Contains validation status, errors, warnings, and cleaned data.
    """

    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    cleaned_data: Optional[Dict[str, Any]] = None

    def add_error(self, error: str):
        """Add an error to the result."""
        self.errors.append(error)
        self.valid = False

    def add_warning(self, warning: str):
        """Add a warning to the result (non-fatal)."""
        self.warnings.append(warning)


def _is_iso_date(value: str) -> bool:
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except (TypeError, ValueError):
        return False
    return True


# ============================================================================
# VALIDATION PIPELINE
# ============================================================================

def validate_insight_output(output: Union[str, Dict[str, Any]]) -> ValidationResult:
    """
    Multi-stage validation of an insight payload.

    Args:
        output: Raw JSON string from the oracle (or an already decoded dict)

    Returns:
        ValidationResult; cleaned_data holds the normalized payload when valid
    """
    result = ValidationResult(valid=True)

    # Stage 1: Parse JSON
    logger.debug("validation_stage_1_json_parse")
    if isinstance(output, str):
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            result.add_error(f"Invalid JSON: {e}")
            return result
    else:
        data = output

    if not isinstance(data, dict):
        result.add_error(f"Expected a JSON object, got {type(data).__name__}")
        return result

    # Stage 2: Schema validation with Pydantic
    logger.debug("validation_stage_2_schema")
    try:
        content = InsightContent(**data)
    except ValidationError as e:
        for error in e.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            result.add_error(f"Schema violation at {field_path}: {error['msg']}")
        return result
    data = content.model_dump()

    # Stage 3: Business rules
    logger.debug("validation_stage_3_business_rules")
    for theme_idx, theme in enumerate(data["themes"]):
        for entry_idx, entry in enumerate(theme["source_entries"]):
            if not _is_iso_date(entry["date"]):
                result.add_error(
                    f"Invalid date in theme {theme_idx}, source entry {entry_idx}: "
                    f"{entry['date']!r}. Expected YYYY-MM-DD"
                )

    for ann_idx, annotation in enumerate(data["annotations"]):
        if not _is_iso_date(annotation["date"]):
            result.add_error(
                f"Invalid date in annotation {ann_idx}: {annotation['date']!r}. Expected YYYY-MM-DD"
            )

    # Duplicate theme names are collapsed, keeping the first occurrence
    seen = set()
    unique_themes = []
    for theme in data["themes"]:
        key = theme["name"].strip().lower()
        if key in seen:
            result.add_warning(f"Duplicate theme removed: {theme['name']}")
            continue
        seen.add(key)
        unique_themes.append(theme)
    data["themes"] = unique_themes

    if not result.valid:
        return result

    # Stage 4: Quality checks
    logger.debug("validation_stage_4_quality")
    low, high = EXPECTED_THEME_RANGE
    if not low <= len(data["themes"]) <= high:
        result.add_warning(f"Expected {low}-{high} themes, got {len(data['themes'])}")

    if len(data["summary"]) > SUMMARY_SOFT_LIMIT:
        result.add_warning(
            f"Summary is {len(data['summary'])} characters (soft limit {SUMMARY_SOFT_LIMIT})"
        )

    description_words = len(data["description"].split())
    if description_words < DESCRIPTION_MIN_WORDS:
        result.add_warning(f"Description is short ({description_words} words)")

    for theme in data["themes"]:
        if not theme["source_entries"]:
            result.add_warning(f"Theme without source entries: {theme['name']}")

    result.cleaned_data = data

    logger.info(
        "insight_validation_complete",
        valid=result.valid,
        errors_count=len(result.errors),
        warnings_count=len(result.warnings),
        themes_count=len(data["themes"]),
    )

    return result
