#!/usr/bin/env python3
"""Validate local pricing engine environment readiness."""

from __future__ import annotations

import asyncio
import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from importlib.metadata import version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pricing_engine.domain.models import DateRange
from pricing_engine.repository.data_repository import DataRepository
from pricing_engine.repository.repository_client import RepositoryClient
from pricing_engine.services.engine import PricingAvailabilityEngine
from pricing_engine.services.forecast_service import DemandForecastService
from pricing_engine.utils.config import get_settings

SEPARATOR_LINE = "=" * 44
EXPECTED_SEED_ROOMS = 11


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="pricing-engine-env-")

    # CHECK 1 — Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2 — Required packages importable with versions
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("numpy", "numpy"),
        ("pandas", "pandas"),
        ("sklearn", "scikit-learn"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "pricing_validation.db",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3 — Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4 — Synthetic data seeding
        try:
            repository.seed_synthetic_data()
            room_count = len(repository.list_rooms())
            if room_count != EXPECTED_SEED_ROOMS:
                raise RuntimeError(f"expected {EXPECTED_SEED_ROOMS} rooms, got {room_count}")
            ok, line = _print_result(f"Synthetic dataset: {room_count} rooms", True)
        except Exception as exc:
            ok, line = _print_result("Synthetic dataset", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5 — Forecast model training
        forecast_service = DemandForecastService(
            repository=repository,
            settings=validation_settings,
        )
        try:
            forecast_service.train_model()
            ok, line = _print_result("Forecast model training", True)
        except Exception as exc:
            ok, line = _print_result("Forecast model training", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        check_in = datetime.now(timezone.utc).date() + timedelta(days=7)
        stay = DateRange(check_in=check_in, check_out=check_in + timedelta(days=2))
        engine = PricingAvailabilityEngine.from_client(
            RepositoryClient(repository, forecaster=forecast_service),
            settings=validation_settings,
        )

        # CHECK 6 — Dynamic price calculation
        try:
            pricing = asyncio.run(engine.calculate_dynamic_price(1, stay, 8000.0))
            if not 0.5 <= pricing.adjustment_multiplier <= 2.0:
                raise RuntimeError("adjustment multiplier out of [0.5, 2.0] bounds")
            ok, line = _print_result(
                "Dynamic pricing",
                True,
                f": price={pricing.dynamic_price} multiplier={pricing.adjustment_multiplier:.4f}",
            )
        except Exception as exc:
            ok, line = _print_result("Dynamic pricing", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 7 — Availability forecast
        try:
            forecast = asyncio.run(engine.predict_availability(stay, "standard"))
            if len(forecast.predictions) != stay.nights:
                raise RuntimeError(forecast.message or "forecast returned no predictions")
            ok, line = _print_result(
                "Availability forecast",
                True,
                f": confidence={forecast.confidence:.4f}",
            )
        except Exception as exc:
            ok, line = _print_result("Availability forecast", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Pricing Engine Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
