"""
Streamlit Frontend for Family Finance

The screens a family uses day to day: dashboard, transactions,
bills to pay, categories and member profiles.

DESIGN PRINCIPLES:
1. The UI only calls services. No business rule lives here
2. Every error is shown as a short Portuguese message, never a trace
3. A failed save leaves the screen exactly as it was
4. AI features are optional and never block the rest of the app
"""

import asyncio
import threading
from datetime import date
from decimal import Decimal

import streamlit as st

from family_finance.accounts import ViewState, return_target, view_state
from family_finance.config import get_settings, validate_all_settings
from family_finance.errors import (
    AuthError,
    FinanceError,
    RegistrationPendingError,
    ValidationError,
)
from family_finance.models.ledger import (
    CategoryType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from family_finance.orchestrator import (
    AppComponents,
    SharedServices,
    create_app_components,
    create_shared_services,
)
from family_finance.queries.aggregation import category_totals, filter_by_month
from family_finance.queries.export import (
    format_currency,
    format_date,
    installment_label,
    payables_to_csv,
    status_label,
)
from family_finance.queries.payables import (
    InstallmentFilter,
    PayableSort,
    PayablesFilter,
    payables,
    selected_total,
)
from family_finance.session.store import WIDGET_LABELS, DashboardPreferences


MONTHS = [
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
]

CATEGORY_TYPE_LABELS = {
    CategoryType.EXPENSE: "Despesa",
    CategoryType.INCOME: "Receita",
    CategoryType.BOTH: "Ambos",
}


# Page configuration
st.set_page_config(
    page_title="Finanças da Família",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .over-budget {
        color: #dc3545;
        font-weight: bold;
    }
    .warning-budget {
        color: #e0a800;
        font-weight: bold;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_event_loop():
    """One loop per process: the Supabase client's connections live on it."""
    return asyncio.new_event_loop(), threading.Lock()


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop, lock = get_event_loop()
    with lock:
        return loop.run_until_complete(coro)


@st.cache_resource
def get_shared_services() -> SharedServices:
    """Process-wide services (no user state)."""
    return create_shared_services()


def get_components() -> AppComponents:
    """This browser session's components: own database client, own auth session."""
    if "components" not in st.session_state:
        st.session_state.components = create_app_components(get_shared_services())
    return st.session_state.components


def current_ledger(components: AppComponents, account):
    """The ledger of the active data context, loaded once per context."""
    key = f"ledger:{account.data_context_id}"
    if st.session_state.get("ledger_key") != key:
        ledger = components.ledger_for(account)
        run_async(ledger.load())
        st.session_state.ledger = ledger
        st.session_state.ledger_key = key
    return st.session_state.ledger


def forget_ledger():
    st.session_state.pop("ledger", None)
    st.session_state.pop("ledger_key", None)
    st.session_state.pop("analysis", None)


def render_startup_error(error: Exception):
    """Explain which part of the configuration is missing."""
    st.error("Falha ao iniciar. Verifique a configuração.")

    status = validate_all_settings()
    services = [
        ("Supabase (Banco de dados)", "supabase"),
        ("Gemini (IA)", "gemini"),
        ("Aplicativo", "app"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name}")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Não configurado')}")

    if status.get("app") and get_settings().app.debug_mode:
        st.exception(error)


def main():
    """Main application entry point."""
    try:
        components = get_components()
    except Exception as e:
        render_startup_error(e)
        st.stop()

    if "account" not in st.session_state:
        st.session_state.account = run_async(components.accounts.restore_session())

    account = st.session_state.account
    if view_state(account) == ViewState.LOGGED_OUT:
        render_auth_page(components)
        return

    try:
        ledger = current_ledger(components, account)
    except FinanceError as e:
        st.error("Erro de conexão com o banco de dados.")
        st.caption(e.message)
        if st.button("🔄 Tentar novamente"):
            forget_ledger()
            st.rerun()
        return

    render_sidebar(components, account)

    page = st.sidebar.radio(
        "Navegar:",
        ["📊 Painel", "💸 Transações", "🧾 Contas a Pagar", "🏷️ Categorias", "👥 Membros"],
        index=0,
    )

    if page == "📊 Painel":
        render_dashboard_page(components, account, ledger)
    elif page == "💸 Transações":
        render_transactions_page(components, ledger)
    elif page == "🧾 Contas a Pagar":
        render_payables_page(ledger)
    elif page == "🏷️ Categorias":
        render_categories_page(ledger)
    elif page == "👥 Membros":
        render_members_page(components, account)


def render_sidebar(components: AppComponents, account):
    st.sidebar.title("💰 Finanças da Família")
    st.sidebar.markdown(f"**{account.name}**")

    if view_state(account) == ViewState.VIEWING_MEMBER_CONTEXT:
        st.sidebar.info("Você está vendo o perfil de um membro.")
        if st.sidebar.button("↩️ Voltar para minha conta"):
            switch_to(components, return_target(account))

    if st.sidebar.button("🚪 Sair"):
        run_async(components.accounts.logout())
        st.session_state.account = None
        forget_ledger()
        st.rerun()

    st.sidebar.markdown("---")


def switch_to(components: AppComponents, target_id):
    target = run_async(components.accounts.switch_user(target_id))
    if target is None:
        st.error("Erro ao trocar de usuário.")
        return
    st.session_state.account = target
    forget_ledger()
    st.rerun()


# =============================================================================
# AUTH
# =============================================================================

def render_auth_page(components: AppComponents):
    st.title("💰 Finanças da Família")

    login_tab, register_tab = st.tabs(["Entrar", "Criar conta"])

    with login_tab:
        with st.form("login"):
            email = st.text_input("E-mail")
            password = st.text_input("Senha", type="password")
            submitted = st.form_submit_button("Entrar", type="primary")
        if submitted:
            try:
                st.session_state.account = run_async(
                    components.accounts.login(email, password)
                )
                forget_ledger()
                st.rerun()
            except (AuthError, ValidationError) as e:
                st.error(e.message)

    with register_tab:
        with st.form("register"):
            name = st.text_input("Nome")
            email = st.text_input("E-mail", key="register_email")
            password = st.text_input("Senha", type="password", key="register_password")
            submitted = st.form_submit_button("Criar conta", type="primary")
        if submitted:
            try:
                st.session_state.account = run_async(
                    components.accounts.register(name, email, password)
                )
                forget_ledger()
                st.rerun()
            except RegistrationPendingError as e:
                st.info(e.message)
            except (AuthError, ValidationError) as e:
                st.error(e.message)


# =============================================================================
# DASHBOARD
# =============================================================================

def render_dashboard_page(components: AppComponents, account, ledger):
    st.title("📊 Painel")

    today = date.today()
    col1, col2 = st.columns(2)
    with col1:
        month = st.selectbox(
            "Mês",
            options=list(range(12)),
            index=today.month - 1,
            format_func=lambda m: MONTHS[m],
        )
    with col2:
        year = st.number_input("Ano", value=today.year, step=1, format="%d")
    year = int(year)

    prefs = DashboardPreferences.load(components.store, account.id)
    with st.expander("⚙️ Personalizar painel"):
        for index, widget_id in enumerate(prefs.order):
            c1, c2, c3 = st.columns([6, 1, 1])
            label = WIDGET_LABELS[widget_id]
            if c1.checkbox(label, value=prefs.is_visible(widget_id), key=f"show_{widget_id}") != prefs.is_visible(widget_id):
                prefs = prefs.toggle(widget_id)
                prefs.save(components.store, account.id)
                st.rerun()
            if c2.button("⬆️", key=f"up_{widget_id}", disabled=index == 0):
                prefs.move(index, "up").save(components.store, account.id)
                st.rerun()
            if c3.button("⬇️", key=f"down_{widget_id}", disabled=index == len(prefs.order) - 1):
                prefs.move(index, "down").save(components.store, account.id)
                st.rerun()

    summary = ledger.monthly_summary(month, year)
    window = filter_by_month(ledger.transactions, month, year)

    for widget_id in prefs.visible_widgets():
        if widget_id == "total_income":
            st.metric("Receitas Totais", format_currency(summary.income))
        elif widget_id == "total_expense":
            st.metric("Despesas Totais", format_currency(summary.expense))
        elif widget_id == "balance":
            st.metric("Saldo do Mês", format_currency(summary.balance))
        elif widget_id == "pending_expenses":
            st.metric("Contas a Pagar", format_currency(summary.pending))
        elif widget_id == "savings_rate":
            st.metric("Taxa de Economia", f"{summary.savings_rate}%")
        elif widget_id == "balance_by_category":
            render_budget_table(ledger.budget_report(month, year))
        elif widget_id == "evolution_chart":
            st.subheader("Evolução de Gastos")
            series = ledger.evolution(year)
            st.bar_chart({MONTHS[i][:3]: float(v) for i, v in enumerate(series)})
        elif widget_id == "category_evolution":
            st.subheader("Evolução por Categoria")
            rows = ledger.category_evolution(year)
            st.bar_chart([
                {name: float(total) for name, total in row.totals.items()}
                for row in rows
            ])
        elif widget_id == "chart_expense":
            render_category_chart("Despesas por Categoria", window, TransactionType.EXPENSE)
        elif widget_id == "chart_income":
            render_category_chart("Receitas por Categoria", window, TransactionType.INCOME)
        elif widget_id == "ai_insight":
            render_ai_insight(components, ledger)


def render_budget_table(report):
    st.subheader("Saldo por Categoria")
    if report.is_empty:
        st.info("Nenhuma categoria de despesa cadastrada.")
        return
    for row in [*report.rows, report.totals]:
        css = {"over": "over-budget", "warning": "warning-budget"}.get(row.level, "")
        st.markdown(
            f"<span class='{css}'>{row.category}</span>: "
            f"{format_currency(row.spent)} de {format_currency(row.budget)} "
            f"({row.percent_used}%) · restante {format_currency(row.remaining)}",
            unsafe_allow_html=True,
        )
        st.progress(float(row.bar_width) / 100)


def render_category_chart(title, transactions, transaction_type):
    st.subheader(title)
    totals = category_totals(transactions, transaction_type)
    if not totals:
        st.caption("Sem dados no período.")
        return
    st.bar_chart({t.category: float(t.total) for t in totals})


def render_ai_insight(components: AppComponents, ledger):
    st.subheader("🤖 Análise de Inteligência Artificial")
    if not components.ai_enabled:
        st.caption("Configure GEMINI_API_KEY para habilitar a análise.")
        return

    if st.button("Gerar análise"):
        result = run_async(components.analysis_agent.analyze(ledger.transactions))
        if result.is_fallback and st.session_state.get("analysis"):
            st.warning(result.summary)
        else:
            st.session_state.analysis = result

    analysis = st.session_state.get("analysis")
    if analysis:
        st.write(analysis.summary)
        for tip in analysis.tips:
            st.markdown(f"- 💡 {tip}")
        for anomaly in analysis.anomalies:
            st.markdown(f"- ⚠️ {anomaly}")


# =============================================================================
# TRANSACTIONS
# =============================================================================

def render_transactions_page(components: AppComponents, ledger):
    st.title("💸 Transações")

    prefill = st.session_state.get("receipt")
    if components.receipt_agent is not None:
        with st.expander("📷 Ler recibo"):
            app_settings = get_settings().app
            uploaded = st.file_uploader(
                "Foto do recibo", type=app_settings.supported_formats_list,
            )
            if uploaded and uploaded.size > app_settings.max_upload_size_bytes:
                st.error(
                    f"Arquivo muito grande (máximo {app_settings.max_upload_size_mb} MB)."
                )
            elif uploaded and st.button("Extrair dados"):
                with st.spinner("Lendo recibo..."):
                    try:
                        st.session_state.receipt = run_async(
                            components.receipt_agent.extract(uploaded.read())
                        )
                        if st.session_state.receipt is None:
                            st.warning("Nenhum dado encontrado no recibo.")
                        st.rerun()
                    except FinanceError as e:
                        st.error(e.message)

    with st.form("new_transaction", clear_on_submit=True):
        title = st.text_input("Título", value=prefill.title if prefill else "")
        col1, col2, col3 = st.columns(3)
        with col1:
            amount = st.number_input(
                "Valor (R$)",
                min_value=0.0,
                step=0.01,
                format="%.2f",
                value=float(prefill.amount) if prefill and prefill.amount else 0.0,
            )
            kind = st.selectbox(
                "Tipo",
                options=list(TransactionType),
                format_func=lambda t: "Despesa" if t == TransactionType.EXPENSE else "Receita",
            )
        with col2:
            category = st.selectbox("Categoria", options=[c.name for c in ledger.categories])
            status = st.selectbox(
                "Status",
                options=[TransactionStatus.PENDING, TransactionStatus.PAID],
                format_func=status_label,
            )
        with col3:
            due = st.date_input("Data", value=date.today())
            installments = st.number_input(
                "Parcelas", min_value=1, max_value=components.validator.max_installments, value=1,
            )
        observation = st.text_area("Observação", value=(prefill.observation or "") if prefill else "")
        submitted = st.form_submit_button("Adicionar", type="primary")

    if submitted:
        draft = Transaction(
            title=title,
            amount=Decimal(str(amount)),
            type=kind,
            category=category or "",
            status=status,
            date=due,
            payment_date=date.today() if status == TransactionStatus.PAID else None,
            observation=observation,
        )
        try:
            run_async(ledger.add_transaction(draft, int(installments)))
            st.session_state.pop("receipt", None)
            st.success("Transação adicionada com sucesso!")
            st.rerun()
        except FinanceError as e:
            st.error(e.message)

    st.markdown("---")
    for t in ledger.transactions:
        c1, c2, c3, c4 = st.columns([5, 2, 2, 1])
        label = f" ({installment_label(t)})" if t.installments else ""
        c1.markdown(f"**{t.title}**{label} · {t.category} · {format_date(t.date)}")
        c2.write(format_currency(t.amount))
        if c3.button(status_label(t.status), key=f"toggle_{t.id}"):
            try:
                run_async(ledger.toggle_status(t.id))
                st.rerun()
            except FinanceError as e:
                st.error(e.message)
        if c4.button("🗑️", key=f"delete_{t.id}"):
            try:
                run_async(ledger.delete_transaction(t.id))
                st.success("Transação removida com sucesso.")
                st.rerun()
            except FinanceError as e:
                st.error(e.message)


# =============================================================================
# PAYABLES
# =============================================================================

def render_payables_page(ledger):
    st.title("🧾 Contas a Pagar")

    today = date.today()
    col1, col2, col3, col4 = st.columns(4)
    month = col1.selectbox(
        "Mês", options=[-1, *range(12)], index=today.month,
        format_func=lambda m: "Todos" if m == -1 else MONTHS[m],
    )
    year = col2.number_input("Ano", value=today.year, step=1, format="%d")
    installments = col3.selectbox(
        "Parcelado", options=list(InstallmentFilter),
        format_func=lambda f: {"all": "Todos", "installment": "Parcelados", "single": "À vista"}[f.value],
    )
    sort = col4.selectbox("Ordenar", options=list(PayableSort), format_func=lambda s: s.value)
    search = st.text_input("Buscar")

    bills = payables(ledger.transactions, PayablesFilter(
        month=month, year=int(year), installments=installments, search=search, sort=sort,
    ))

    selected = []
    for t in bills:
        if st.checkbox(
            f"{format_date(t.date)} · {t.title} · {t.category} · "
            f"{format_currency(t.amount)} · {installment_label(t)}",
            key=f"pay_{t.id}",
        ):
            selected.append(t.id)

    st.markdown(f"**Selecionado:** {format_currency(selected_total(bills, selected))}")
    payment_date = st.date_input("Data do pagamento", value=today)

    col1, col2 = st.columns(2)
    if col1.button("✅ Marcar como pagas", disabled=not selected, type="primary"):
        try:
            updated = run_async(ledger.mark_as_paid(selected, payment_date))
            st.success(f"{len(updated)} conta(s) marcadas como pagas.")
            st.rerun()
        except FinanceError as e:
            st.error(e.message)
    col2.download_button(
        "📥 Excel (CSV)",
        data=payables_to_csv(bills).encode("utf-8"),
        file_name=f"contas_a_pagar_{today.isoformat()}.csv",
        mime="text/csv",
    )


# =============================================================================
# CATEGORIES
# =============================================================================

def render_categories_page(ledger):
    st.title("🏷️ Categorias")

    with st.form("new_category", clear_on_submit=True):
        col1, col2, col3 = st.columns(3)
        name = col1.text_input("Nome")
        kind = col2.selectbox(
            "Tipo", options=list(CategoryType), format_func=CATEGORY_TYPE_LABELS.get,
        )
        budget = col3.number_input("Orçamento (R$)", min_value=0.0, step=10.0, format="%.2f")
        submitted = st.form_submit_button("Criar categoria", type="primary")

    if submitted:
        try:
            run_async(ledger.add_category(name, kind, Decimal(str(budget))))
            st.success("Categoria criada com sucesso.")
            st.rerun()
        except FinanceError as e:
            st.error(e.message)

    st.markdown("---")
    for category in sorted(ledger.categories, key=lambda c: c.name.casefold()):
        with st.expander(f"{category.name} · {CATEGORY_TYPE_LABELS[category.type]}"):
            new_name = st.text_input("Nome", value=category.name, key=f"name_{category.id}")
            new_budget = st.number_input(
                "Orçamento (R$)", value=float(category.budget), min_value=0.0,
                step=10.0, format="%.2f", key=f"budget_{category.id}",
            )
            col1, col2 = st.columns(2)
            if col1.button("Salvar", key=f"save_{category.id}"):
                try:
                    run_async(ledger.edit_category(
                        category.id, new_name, category.type, Decimal(str(new_budget)),
                    ))
                    st.success("Categoria atualizada.")
                    st.rerun()
                except FinanceError as e:
                    st.error(e.message)
            if col2.button("Excluir", key=f"del_{category.id}"):
                try:
                    run_async(ledger.delete_category(category.id))
                    st.success("Categoria excluída.")
                    st.rerun()
                except FinanceError as e:
                    st.error(e.message)


# =============================================================================
# MEMBERS
# =============================================================================

def render_members_page(components: AppComponents, account):
    st.title("👥 Membros")

    if account.is_member:
        st.info("Perfis de membros não podem gerenciar outros membros.")
        return

    for member in account.members:
        col1, col2 = st.columns([4, 1])
        shared = "dados compartilhados" if member.data_context_id == account.data_context_id else "dados próprios"
        col1.markdown(f"**{member.name}** · {member.email or '-'} · {shared}")
        if col2.button("Acessar", key=f"switch_{member.id}"):
            switch_to(components, member.id)

    st.markdown("---")
    with st.form("new_member", clear_on_submit=True):
        name = st.text_input("Nome")
        email = st.text_input("E-mail (opcional)")
        share = st.checkbox("Compartilhar meus dados com este membro")
        submitted = st.form_submit_button("Adicionar membro", type="primary")

    if submitted:
        try:
            st.session_state.account = run_async(
                components.accounts.add_member(account, name, email, share_data=share)
            )
            st.success("Membro adicionado.")
            st.rerun()
        except FinanceError as e:
            st.error(e.message)


if __name__ == "__main__":
    main()
