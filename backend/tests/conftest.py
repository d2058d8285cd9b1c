"""
Pytest configuration and shared fixtures for testing.
"""
import sys
from pathlib import Path

# Add project root to path so libs/ is importable (matches CI PYTHONPATH config)
# This must happen before importing from cat_engine/ which imports from libs/
project_root = Path(__file__).parent.parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Dict, Iterator, List, Optional, Sequence  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from cat_engine.core.cat.models import Item, Response, build_item_lookup  # noqa: E402
from cat_engine.main import app  # noqa: E402
from libs.domain_types import DifficultyBand  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def make_item(
    item_id: str,
    band: DifficultyBand = DifficultyBand.INTERMEDIATE,
    subject: str = "quant",
    topic: Optional[str] = None,
    discrimination: float = 1.0,
    guessing: float = 0.25,
    calibrated_difficulty: Optional[float] = None,
    **kwargs,
) -> Item:
    """Build an Item with sensible defaults for tests."""
    return Item(
        id=item_id,
        subject=subject,
        topic=topic or f"{subject}-basics",
        band=band,
        discrimination=discrimination,
        guessing=guessing,
        calibrated_difficulty=calibrated_difficulty,
        **kwargs,
    )


def make_responses(
    item_ids: Sequence[str],
    correct: Sequence[bool],
    times_ms: Optional[Sequence[float]] = None,
    confidences: Optional[Sequence[Optional[int]]] = None,
) -> List[Response]:
    """Build an ordered history with one-minute spaced timestamps."""
    responses = []
    for index, (item_id, is_correct) in enumerate(zip(item_ids, correct)):
        responses.append(
            Response(
                item_id=item_id,
                is_correct=is_correct,
                response_time_ms=times_ms[index] if times_ms else 30_000.0,
                confidence=confidences[index] if confidences else None,
                timestamp=BASE_TIME + timedelta(minutes=index),
            )
        )
    return responses


@pytest.fixture
def four_band_bank() -> List[Item]:
    """One default-parameter item per band (difficulties 0.2/0.4/0.6/0.8)."""
    return [
        make_item("b1", DifficultyBand.BEGINNER),
        make_item("i1", DifficultyBand.INTERMEDIATE),
        make_item("a1", DifficultyBand.ADVANCED),
        make_item("e1", DifficultyBand.EXPERT),
    ]


@pytest.fixture
def four_band_lookup(four_band_bank) -> Dict[str, Item]:
    return build_item_lookup(four_band_bank)


@pytest.fixture
def mixed_bank() -> List[Item]:
    """Two subjects, two bands each, with distinct topics."""
    return [
        make_item("q-beg", DifficultyBand.BEGINNER, "quant", "arithmetic"),
        make_item("q-adv", DifficultyBand.ADVANCED, "quant", "algebra"),
        make_item("r-beg", DifficultyBand.BEGINNER, "reasoning", "series"),
        make_item("r-adv", DifficultyBand.ADVANCED, "reasoning", "syllogisms"),
    ]


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Test client for the FastAPI app."""
    with TestClient(app) as test_client:
        yield test_client
