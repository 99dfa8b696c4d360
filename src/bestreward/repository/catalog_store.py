import json
import os
import tempfile
import threading
from enum import Enum
from pathlib import Path

import pydantic
from loguru import logger

from bestreward.domain.catalog import Catalog
from bestreward.domain.errors import NotFoundError, ValidationError
from bestreward.engine.resolver import validate_shared_group


class ReorderKind(str, Enum):
    CHANNELS = "channels"
    CARDS = "cards"
    SCHEMES = "schemes"
    PAYMENT_METHODS = "payment_methods"
    REWARD_CONFIGS = "reward_configs"


_RESOURCE_NAMES = {
    ReorderKind.CHANNELS: "Channel",
    ReorderKind.CARDS: "Card",
    ReorderKind.SCHEMES: "Scheme",
    ReorderKind.PAYMENT_METHODS: "PaymentMethod",
    ReorderKind.REWARD_CONFIGS: "RewardConfig",
}


def build_catalog(data: dict) -> Catalog:
    try:
        return Catalog.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"invalid catalog: {exc}") from exc


class CatalogStore:
    """JSON file holding the catalog. Writes replace the whole file atomically."""

    def __init__(self, catalog_file: str):
        self.catalog_file = Path(catalog_file)
        self._lock = threading.Lock()

    def _read(self) -> dict:
        if not self.catalog_file.exists():
            raise FileNotFoundError(f"Catalog file not found: {self.catalog_file}")

        with self.catalog_file.open("r", encoding="utf-8") as fh:
            return json.load(fh)

    def _write(self, catalog: Catalog) -> None:
        self.catalog_file.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            suffix=".json",
            prefix=".catalog_",
            dir=self.catalog_file.parent,
            delete=False,
            encoding="utf-8",
        ) as fp:
            json.dump(catalog.model_dump(mode="json"), fp, ensure_ascii=False, indent=2)
            tmp_path = fp.name
        os.replace(tmp_path, self.catalog_file)

    def load(self) -> Catalog:
        return build_catalog(self._read())

    def assign_shared_group(self, scheme_id: str, target_id: str | None) -> Catalog:
        with self._lock:
            catalog = self.load()
            scheme = catalog.scheme(scheme_id)
            if target_id is not None:
                catalog.scheme(target_id)
            validate_shared_group(scheme, target_id, catalog.schemes_on_card(scheme.card_id))

            data = catalog.model_dump(mode="json")
            for item in data["schemes"]:
                if item["id"] == scheme_id:
                    item["shared_reward_group_id"] = target_id
            updated = build_catalog(data)
            self._write(updated)

        logger.info("Scheme {} now shares rewards with {}", scheme_id, target_id)
        return updated

    def reorder(self, kind: ReorderKind, ordered_ids: list[str]) -> Catalog:
        """Set ``display_order`` to each id's position. Every id is checked before anything is written.

        Items not named keep their relative order and follow the named ones.
        """
        kind = ReorderKind(kind)
        if len(set(ordered_ids)) != len(ordered_ids):
            raise ValidationError("reorder ids must be unique")

        with self._lock:
            data = self.load().model_dump(mode="json")
            rows = {item["id"]: item for item in data[kind.value]}
            missing = [item_id for item_id in ordered_ids if item_id not in rows]
            if missing:
                raise NotFoundError(_RESOURCE_NAMES[kind], missing[0])

            listed = set(ordered_ids)
            rest = sorted(
                (item_id for item_id in rows if item_id not in listed),
                key=lambda item_id: rows[item_id]["display_order"],
            )
            for position, item_id in enumerate(list(ordered_ids) + rest):
                rows[item_id]["display_order"] = position
            updated = build_catalog(data)
            self._write(updated)

        logger.info("Reordered {} {}", len(ordered_ids), kind.value)
        return updated
