"""
Launch Checklist Engine - Checklist Repository

Loads a shop's checklist items into typed RuleDefinitions (configuration is
parsed here, once) and applies shop-settings changes to them.
"""
import json
import logging
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...errors import RuleConfigError
from ...models.db_models import ChecklistItemDB, ShopDB
from ...models.domain import RuleDefinition
from ...models.rule_configs import RuleKey, parse_rule_config
from .templates import DEFAULT_CHECKLIST_ITEMS

logger = logging.getLogger(__name__)


def to_definition(item: ChecklistItemDB) -> RuleDefinition:
    """Convert a stored checklist item, parsing its configuration."""
    config = None
    config_error = None
    rule_key = RuleKey.lookup(item.key)
    if rule_key is not None:
        try:
            config = parse_rule_config(rule_key, item.config_json)
        except RuleConfigError as exc:
            config_error = str(exc)
            logger.warning(f"Checklist item {item.id} has malformed config: {exc}")

    return RuleDefinition(
        id=item.id,
        key=item.key,
        label=item.label,
        config=config,
        enabled=bool(item.is_enabled),
        weight=item.weight or 1,
        fix_type=item.fix_type,
        target_field=item.target_field,
        position=item.position,
        description=item.description,
        config_error=config_error,
    )


class ChecklistRepository:
    """Read and update a shop's checklist."""

    def __init__(self, db: Session):
        self.db = db

    def list_items(self, shop: ShopDB) -> List[ChecklistItemDB]:
        return (
            self.db.query(ChecklistItemDB)
            .filter(ChecklistItemDB.shop_id == shop.id)
            .order_by(ChecklistItemDB.position)
            .all()
        )

    def load_definitions(self, shop: ShopDB) -> List[RuleDefinition]:
        return [to_definition(item) for item in self.list_items(shop)]

    def find_definition(self, shop: ShopDB, rule_key: str) -> Optional[RuleDefinition]:
        """First checklist item for a rule key, enabled or not."""
        for definition in self.load_definitions(shop):
            if definition.key == rule_key:
                return definition
        return None

    def create_default_checklist(self, shop: ShopDB) -> List[ChecklistItemDB]:
        """Create the onboarding checklist. No-op if the shop already has items."""
        existing = self.list_items(shop)
        if existing:
            return existing

        items = []
        for position, template in enumerate(DEFAULT_CHECKLIST_ITEMS, start=1):
            item = ChecklistItemDB(
                id=str(uuid4()),
                shop_id=shop.id,
                key=template.key.value,
                label=template.label,
                description=template.description,
                config_json=json.dumps(template.config),
                weight=template.weight,
                fix_type=template.fix_type,
                target_field=template.target_field,
                is_enabled=True,
                position=position,
            )
            self.db.add(item)
            items.append(item)

        self.db.flush()
        logger.info(f"Created default checklist ({len(items)} items) for {shop.shop_domain}")
        return items

    def update_item(
        self,
        shop: ShopDB,
        item_id: str,
        enabled: Optional[bool] = None,
        weight: Optional[int] = None,
    ) -> Optional[ChecklistItemDB]:
        """
        Enable/disable or reweight one checklist item.

        Raises:
            ValueError: if weight is not a positive integer
        """
        item = (
            self.db.query(ChecklistItemDB)
            .filter(ChecklistItemDB.shop_id == shop.id, ChecklistItemDB.id == item_id)
            .first()
        )
        if item is None:
            return None

        if weight is not None:
            if isinstance(weight, bool) or not isinstance(weight, int) or weight < 1:
                raise ValueError("weight must be a positive integer")
            item.weight = weight
        if enabled is not None:
            item.is_enabled = enabled

        self.db.flush()
        return item
