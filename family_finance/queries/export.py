"""
Export Formatting

pt-BR presentation helpers and the payables CSV. The CSV opens
directly in Excel: UTF-8 with BOM, `;` separator, comma decimals.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from family_finance.models.ledger import CENT, Transaction, TransactionStatus, to_money


CSV_HEADERS = ["Título", "Vencimento", "Categoria", "Valor", "Status", "Parcela"]


def _format_decimal(value: Decimal) -> str:
    """1234.5 -> '1.234,50'"""
    grouped = f"{value.quantize(CENT, rounding=ROUND_HALF_UP):,.2f}"
    return grouped.replace(",", "_").replace(".", ",").replace("_", ".")


def format_currency(value: Any) -> str:
    """Format an amount as BRL, e.g. 'R$ 1.234,56' or '-R$ 10,00'."""
    amount = to_money(value)
    text = f"R$ {_format_decimal(abs(amount))}"
    return f"-{text}" if amount < 0 else text


def format_date(value: Optional[date]) -> str:
    """dd/mm/yyyy, or '-' when there is no date."""
    if value is None:
        return "-"
    return value.strftime("%d/%m/%Y")


def installment_label(transaction: Transaction) -> str:
    return transaction.installments.label() if transaction.installments else "-"


def status_label(status: TransactionStatus) -> str:
    return "Pago" if status == TransactionStatus.PAID else "Pendente"


def _quoted(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def payables_to_csv(transactions: Iterable[Transaction]) -> str:
    """
    Render payables as CSV text.

    Text columns are always quoted; numbers and dates are not.
    """
    lines = [";".join(CSV_HEADERS)]
    for t in transactions:
        lines.append(";".join([
            _quoted(t.title),
            format_date(t.date),
            _quoted(t.category),
            f"{t.amount:.2f}".replace(".", ","),
            status_label(t.status),
            installment_label(t),
        ]))
    return "\ufeff" + "\n".join(lines)
