from __future__ import annotations

import json
import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from map_generator import paths
from map_generator.catalog import MapItem
from map_generator.errors import MapGenerationError
from map_generator.generator import MapGenerator
from map_generator.processor import process_map


@dataclass(frozen=True)
class MapOutcome:
    item: MapItem
    error: Optional[MapGenerationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _map_worker(
    item: MapItem,
    generator: Optional[MapGenerator],
    base_dir: Path,
) -> MapOutcome:
    """Worker entry point. Failures come back as the outcome instead of raising."""
    try:
        process_map(item.name, item.is_test, generator=generator, base_dir=base_dir)
    except MapGenerationError as exc:
        return MapOutcome(item=item, error=exc)
    except Exception as exc:  # noqa: BLE001
        return MapOutcome(
            item=item,
            error=MapGenerationError(f"unhandled worker error for {item.name}: {exc}"),
        )
    return MapOutcome(item=item)


def _log_outcome(outcome: MapOutcome) -> None:
    label = f"test:{outcome.item.name}" if outcome.item.is_test else outcome.item.name
    if outcome.ok:
        logging.info("Generated %s", label)
    else:
        logging.error("Failed %s: %s", label, outcome.error)


def process_catalog(
    catalog: Sequence[MapItem],
    workers: Optional[int] = None,
    generator: Optional[MapGenerator] = None,
    base_dir: Optional[Path] = None,
) -> List[MapOutcome]:
    """Process every item and wait for all of them, returning outcomes in completion order.

    Nothing is cancelled when a map fails; every dispatched worker runs to completion.
    """
    if not catalog:
        return []
    # Resolved once here; pool processes may not share the caller's cwd.
    resolved_base = Path(base_dir) if base_dir is not None else paths.working_dir()
    if not resolved_base.is_absolute():
        resolved_base = paths.working_dir() / resolved_base
    max_workers = max(1, workers if workers is not None else len(catalog))
    logging.info(
        "Processing %d map(s) with %d worker process(es).",
        len(catalog),
        min(max_workers, len(catalog)),
    )

    outcomes: List[MapOutcome] = []
    if max_workers <= 1:
        for item in catalog:
            outcome = _map_worker(item, generator, resolved_base)
            _log_outcome(outcome)
            outcomes.append(outcome)
        return outcomes

    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(_map_worker, item, generator, resolved_base): item
            for item in catalog
        }
        for future in as_completed(futures):
            item = futures[future]
            try:
                outcome = future.result()
            except Exception as exc:  # noqa: BLE001
                outcome = MapOutcome(
                    item=item,
                    error=MapGenerationError(f"worker for {item.name} did not complete: {exc}"),
                )
            _log_outcome(outcome)
            outcomes.append(outcome)
    return outcomes


def first_error(outcomes: Sequence[MapOutcome]) -> Optional[MapGenerationError]:
    for outcome in outcomes:
        if outcome.error is not None:
            return outcome.error
    return None


def write_report(path: Path, outcomes: Sequence[MapOutcome], base_dir: Optional[Path]) -> None:
    entries: List[Dict[str, object]] = [
        {
            "name": outcome.item.name,
            "is_test": outcome.item.is_test,
            "ok": outcome.ok,
            "error": None if outcome.ok else str(outcome.error),
        }
        for outcome in outcomes
    ]
    payload = {
        "base_dir": str(base_dir) if base_dir is not None else None,
        "maps": entries,
        "succeeded": sum(1 for outcome in outcomes if outcome.ok),
        "failed": sum(1 for outcome in outcomes if not outcome.ok),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logging.info("Wrote run report to %s", path)


def run(
    catalog: Sequence[MapItem],
    workers: Optional[int] = None,
    generator: Optional[MapGenerator] = None,
    base_dir: Optional[Path] = None,
    report_path: Optional[Path] = None,
) -> List[MapOutcome]:
    """Process the catalog and raise the first failure once every worker has finished."""
    if base_dir is None:
        base_dir = paths.working_dir()
    outcomes = process_catalog(catalog, workers=workers, generator=generator, base_dir=base_dir)

    failed = sum(1 for outcome in outcomes if not outcome.ok)
    logging.info("Maps: %d ok / %d failed", len(outcomes) - failed, failed)

    if report_path is not None:
        try:
            write_report(report_path, outcomes, base_dir)
        except OSError as exc:
            logging.error("Failed to write run report %s: %s", report_path, exc)

    error = first_error(outcomes)
    if error is not None:
        raise error
    return outcomes
