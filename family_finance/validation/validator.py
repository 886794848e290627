"""
Input Validation

DESIGN DECISION: Every rule that can be checked locally is checked
here, BEFORE any storage call:
- Category names are unique per data context (case-insensitive)
- Category budgets must be positive when set through the form
- A category still referenced by a transaction cannot be deleted
- A transaction needs a title, a category and a positive amount
- Installment counts are bounded and every installment is worth a cent
- Registration credentials are complete and the password long enough

The database does not know about any of these rules, so a request
that skips the validator is accepted as-is.

Each check raises `ValidationError(field, message)` with a
user-facing Portuguese message. Nothing is silently fixed.
"""

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from family_finance.config import get_settings
from family_finance.errors import ValidationError
from family_finance.models.ledger import CENT, Category, Transaction


MIN_PASSWORD_LENGTH = 6


class LedgerValidator:
    """Local business rules for categories, transactions and credentials."""

    def __init__(self, max_installments: Optional[int] = None):
        self._max_installments = (
            max_installments or get_settings().app.max_installments
        )

    @property
    def max_installments(self) -> int:
        return self._max_installments

    # --- Categories ---

    def check_category_name_unique(
        self,
        name: str,
        categories: Iterable[Category],
        exclude_id: Optional[UUID] = None,
    ) -> None:
        """
        Reject a name that already exists (ignoring case).

        Args:
            exclude_id: The category being renamed, which may keep
                        its own name
        """
        clean = (name or "").strip()
        if not clean:
            raise ValidationError("name", "O nome da categoria é obrigatório.")

        wanted = clean.lower()
        for category in categories:
            if exclude_id is not None and category.id == exclude_id:
                continue
            if category.name.strip().lower() == wanted:
                raise ValidationError(
                    "name",
                    "Já existe uma categoria com este nome.",
                )

    def check_budget(self, budget: Optional[Decimal]) -> None:
        """A budget entered in the form must be greater than zero."""
        if budget is None or budget <= 0:
            raise ValidationError(
                "budget",
                "O orçamento deve ser maior que zero.",
            )

    def check_category_deletable(
        self,
        category: Category,
        transactions: Iterable[Transaction],
    ) -> None:
        """
        Reject deleting a category that any transaction still uses.

        Transactions reference categories by name, any type or status.
        """
        if any(t.category == category.name for t in transactions):
            raise ValidationError(
                "category",
                "Erro de Integridade: Categoria em uso por transações existentes.",
            )

    # --- Transactions ---

    def check_transaction_draft(self, draft: Transaction) -> None:
        if not draft.title or not draft.title.strip():
            raise ValidationError("title", "Informe um título.")
        if draft.amount is None or draft.amount <= 0:
            raise ValidationError("amount", "O valor deve ser maior que zero.")
        if not draft.category or not draft.category.strip():
            raise ValidationError("category", "Selecione uma categoria.")

    def check_installment_count(self, count: int) -> None:
        if not isinstance(count, int) or isinstance(count, bool):
            raise ValidationError(
                "installments",
                "O número de parcelas deve ser um número inteiro.",
            )
        if count < 1 or count > self._max_installments:
            raise ValidationError(
                "installments",
                f"O número de parcelas deve estar entre 1 e {self._max_installments}.",
            )

    def check_installment_split(self, amount: Decimal, count: int) -> None:
        """Every installment must be worth at least one cent."""
        if amount < CENT * count:
            raise ValidationError(
                "installments",
                f"O valor é pequeno demais para {count} parcelas.",
            )

    # --- Accounts ---

    def check_credentials(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
        require_name: bool = False,
    ) -> None:
        """Registration / login form rules."""
        fields = [email, password]
        if require_name:
            fields.append(name)
        if any(not (value or "").strip() for value in fields):
            raise ValidationError("form", "Preencha todos os campos.")
        if require_name and len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                "password",
                f"A senha deve ter no mínimo {MIN_PASSWORD_LENGTH} caracteres.",
            )
