from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, List

logger = logging.getLogger(__name__)

ALL_TABLES = "*"


@dataclass(frozen=True)
class ChangeEvent:
    """Notificação de linha alterada, no formato (tabela, tenant, evento, id)."""

    table: str
    tenant_id: int
    event: str
    row_id: int | None = None

    def as_dict(self) -> dict:
        return {
            "table": self.table,
            "tenant_id": self.tenant_id,
            "event": self.event,
            "row_id": self.row_id,
        }


Handler = Callable[[ChangeEvent], None]


class ChangeFeed:
    def __init__(self) -> None:
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)

    def publish(self, change: ChangeEvent) -> None:
        handlers = list(self._handlers.get(change.table, [])) + list(self._handlers.get(ALL_TABLES, []))
        if not handlers:
            logger.debug("ChangeFeed: no subscribers for %s", change.table)
            return
        for handler in handlers:
            try:
                handler(change)
            except Exception:
                # a escrita já foi commitada; falha de entrega não desfaz nada
                logger.exception("ChangeFeed handler failed for %s", change.table)

    def subscribe(self, table: str, handler: Handler) -> None:
        self._handlers[table].append(handler)

    def unsubscribe(self, table: str, handler: Handler) -> None:
        handlers = self._handlers.get(table, [])
        if handler in handlers:
            handlers.remove(handler)


change_feed = ChangeFeed()
