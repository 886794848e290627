"""
Session Cache and Display Preferences

DESIGN DECISION: Client-local state lives behind a tiny key-value
abstraction instead of module-level globals:
- `finances_current_user` holds the last resolved Account, so a
  restart does not force a new login
- `dashboard_prefs:<account id>` holds widget visibility and order

This is a DISPLAY optimization, not a security boundary. The database
checks access on every request regardless of what is cached here.
Nothing in this module is ever sent to the server.
"""

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from family_finance.audit import get_logger
from family_finance.models.account import Account


logger = get_logger(__name__)

CURRENT_USER_KEY = "finances_current_user"


# =============================================================================
# KEY-VALUE STORES
# =============================================================================

class KeyValueStore(ABC):
    """JSON-compatible values by string key."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """The stored value, or None if missing or unreadable."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        pass


class MemoryStore(KeyValueStore):
    """In-process store (one Streamlit session, tests)."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """One JSON file per key under a directory."""

    def __init__(self, directory: Union[str, Path]):
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self._dir / f"{safe}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("session_value_unreadable", key=key, error=str(e))
            return None

    def set(self, key: str, value: Any) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(json.dumps(value), encoding="utf-8")

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# =============================================================================
# CURRENT ACCOUNT
# =============================================================================

class SessionCache:
    """The last resolved Account (members included)."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    def save(self, account: Account) -> None:
        self._store.set(CURRENT_USER_KEY, account.model_dump(mode="json"))

    def load(self) -> Optional[Account]:
        data = self._store.get(CURRENT_USER_KEY)
        if not data:
            return None
        try:
            return Account.model_validate(data)
        except PydanticValidationError as e:
            logger.warning("session_cache_corrupt", error=str(e))
            return None

    def clear(self) -> None:
        self._store.delete(CURRENT_USER_KEY)


# =============================================================================
# DASHBOARD PREFERENCES
# =============================================================================

# (id, label) in default order. Every widget is visible by default.
DASHBOARD_WIDGETS: list[tuple[str, str]] = [
    ("total_income", "Receitas Totais"),
    ("total_expense", "Despesas Totais"),
    ("balance", "Saldo do Mês"),
    ("pending_expenses", "Contas a Pagar"),
    ("savings_rate", "Taxa de Economia"),
    ("balance_by_category", "Saldo por Categoria"),
    ("evolution_chart", "Evolução de Gastos"),
    ("category_evolution", "Evolução por Categoria"),
    ("chart_expense", "Gráfico: Despesas por Categoria"),
    ("chart_income", "Gráfico: Receitas por Categoria"),
    ("ai_insight", "Análise de Inteligência Artificial"),
]

WIDGET_IDS = [widget_id for widget_id, _ in DASHBOARD_WIDGETS]
WIDGET_LABELS = dict(DASHBOARD_WIDGETS)


def prefs_key(account_id: UUID) -> str:
    return f"dashboard_prefs:{account_id}"


class DashboardPreferences(BaseModel):
    """Which dashboard widgets are shown, and in which order."""

    visible: dict[str, bool] = Field(
        default_factory=lambda: {widget_id: True for widget_id in WIDGET_IDS}
    )
    order: list[str] = Field(default_factory=lambda: list(WIDGET_IDS))

    def is_visible(self, widget_id: str) -> bool:
        return self.visible.get(widget_id, True)

    def visible_widgets(self) -> list[str]:
        return [w for w in self.order if self.is_visible(w)]

    def toggle(self, widget_id: str) -> "DashboardPreferences":
        visible = dict(self.visible)
        visible[widget_id] = not self.is_visible(widget_id)
        return self.model_copy(update={"visible": visible})

    def move(self, index: int, direction: str) -> "DashboardPreferences":
        """
        Swap the widget at `index` with its neighbour.

        `direction` is "up" or "down"; moving past either end is a no-op.
        """
        swap = index - 1 if direction == "up" else index + 1
        if not (0 <= index < len(self.order)) or not (0 <= swap < len(self.order)):
            return self
        order = list(self.order)
        order[index], order[swap] = order[swap], order[index]
        return self.model_copy(update={"order": order})

    @classmethod
    def merged(cls, visible: Optional[dict], order: Optional[list]) -> "DashboardPreferences":
        """
        Rebuild preferences from stored values.

        Unknown widget ids are dropped and widgets added since the
        preferences were saved are appended in catalogue order.
        """
        prefs = cls()
        if isinstance(visible, dict):
            prefs.visible.update({
                k: bool(v) for k, v in visible.items() if k in WIDGET_LABELS
            })
        if isinstance(order, list):
            known = [w for w in order if isinstance(w, str) and w in WIDGET_LABELS]
            saved = list(dict.fromkeys(known))
            prefs.order = saved + [w for w in WIDGET_IDS if w not in saved]
        return prefs

    @classmethod
    def load(cls, store: KeyValueStore, account_id: UUID) -> "DashboardPreferences":
        data = store.get(prefs_key(account_id))
        if not isinstance(data, dict):
            return cls()
        return cls.merged(data.get("visible"), data.get("order"))

    def save(self, store: KeyValueStore, account_id: UUID) -> None:
        store.set(prefs_key(account_id), self.model_dump())
