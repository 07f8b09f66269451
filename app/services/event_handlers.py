from __future__ import annotations

from collections import Counter
from threading import Lock

from app.services.event_bus import ChangeEvent, change_feed
from app.services.order_events import BALANCES_TABLE, ORDERS_TABLE


class ChangeVersions:
    """Contador de versões por (tenant, tabela).

    Os painéis consultam as versões e refazem o fetch quando alguma muda.
    """

    def __init__(self) -> None:
        self._versions: Counter[tuple[int, str]] = Counter()
        self._lock = Lock()

    def bump(self, change: ChangeEvent) -> None:
        with self._lock:
            self._versions[(change.tenant_id, change.table)] += 1

    def for_tenant(self, tenant_id: int) -> dict[str, int]:
        with self._lock:
            return {
                table: self._versions[(tenant_id, table)]
                for table in (ORDERS_TABLE, BALANCES_TABLE)
            }


change_versions = ChangeVersions()
_registered = False


def register_event_handlers() -> None:
    global _registered
    if _registered:
        return
    change_feed.subscribe(ORDERS_TABLE, change_versions.bump)
    change_feed.subscribe(BALANCES_TABLE, change_versions.bump)
    _registered = True
