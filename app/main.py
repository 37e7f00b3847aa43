"""
Streamlit Frontend for Vela Ledger

The bookkeeping screens of Vela Digital:
- Dashboard with balances and clients due soon
- Transaction entry, list and delete
- Recurring clients (monthly memberships)
- Cash flow by period and by category
- Excel export
- Appearance (saved theme)

DESIGN PRINCIPLES:
1. Every action reports its outcome (success or the backend's message)
2. A failed action never takes the app down
3. Lists are re-read after every change
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from vela_ledger.config import get_settings, validate_all_settings
from vela_ledger.export import XLSX_MIME
from vela_ledger.ledger import (
    TransactionLockedError,
    format_amount_from_number,
    format_currency_display,
    format_money,
    normalize_currency_value,
)
from vela_ledger.models import (
    BillingState,
    FileUpload,
    Granularity,
    PaymentMethod,
    ReceiptType,
    Transaction,
    TransactionEntry,
    TransactionStatus,
    TransactionType,
)
from vela_ledger.orchestrator import AppComponents, AppState, create_app_components
from vela_ledger.reports import TAX_CATEGORY, categories_for
from vela_ledger.services.storage import StorageError
from vela_ledger.theme import css_variables, theme_options
from vela_ledger.validation import ValidationError

# Page configuration
st.set_page_config(
    page_title="Vela Ledger",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

TYPE_LABELS = {
    TransactionType.INCOME: "Ingreso",
    TransactionType.EXPENSE: "Egreso",
    TransactionType.TRANSFER: "Transferencia",
}
STATUS_LABELS = {
    TransactionStatus.DRAFT: "Borrador",
    TransactionStatus.POSTED: "Publicado",
    TransactionStatus.PENDING: "Pendiente",
}

# Errors an action can end with; anything else is a bug and should surface
ACTION_ERRORS = (ValidationError, StorageError, TransactionLockedError)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components(use_storage=True)


def get_state() -> AppState:
    if "app_state" not in st.session_state:
        st.session_state.app_state = AppState(user_id="local-user")
    return st.session_state.app_state


def to_upload(uploaded) -> FileUpload:
    return FileUpload(
        filename=uploaded.name,
        content=uploaded.getvalue(),
        content_type=uploaded.type or "application/octet-stream",
    )


def apply_theme(components: AppComponents, state: AppState):
    theme = run_async(state.load_theme(components))
    st.markdown(f"<style>{css_variables(theme)}</style>", unsafe_allow_html=True)


def main():
    """Main application entry point."""
    components = get_components()
    state = get_state()
    apply_theme(components, state)

    st.sidebar.title("💰 Vela Ledger")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Ir a:",
        [
            "🏠 Dashboard",
            "➕ Nueva transacción",
            "📋 Transacciones",
            "🔁 Clientes recurrentes",
            "💵 Flujo de efectivo",
            "📤 Exportar",
            "🎨 Apariencia",
        ],
        index=0,
    )

    st.sidebar.markdown("---")
    if not components.persistent:
        st.sidebar.warning("Sin almacenamiento remoto: los datos no se guardan.")

    if page == "🏠 Dashboard":
        render_dashboard(components, state)
    elif page == "➕ Nueva transacción":
        render_new_transaction(components, state)
    elif page == "📋 Transacciones":
        render_transactions(components, state)
    elif page == "🔁 Clientes recurrentes":
        render_recurring_clients(components, state)
    elif page == "💵 Flujo de efectivo":
        render_cash_flow(components)
    elif page == "📤 Exportar":
        render_export(components)
    elif page == "🎨 Apariencia":
        render_appearance(components, state)


def render_dashboard(components: AppComponents, state: AppState):
    st.title("🏠 Dashboard")
    currency = get_settings().app.currency

    try:
        stats = run_async(state.load_stats(components))
        clients = run_async(state.load_clients(components))
    except StorageError as e:
        st.error(f"No se pudieron cargar los datos: {e}")
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Transacciones", stats.total_transactions)
    col2.metric("Balance total", format_money(stats.balance, currency))
    col3.metric("Este mes", format_money(stats.this_month, currency))

    st.markdown("---")
    st.subheader("Cobros próximos")
    due = components.billing.due_soon(clients)
    if not due:
        st.info("No hay cobros en los próximos días.")
    for view in due:
        days = view.days_until_due(date.today())
        when = "hoy" if days == 0 else f"en {days} días"
        st.write(f"**{view.client.name}**: {format_money(view.client.amount, currency)} ({when})")


def render_new_transaction(components: AppComponents, state: AppState):
    st.title("➕ Nueva transacción")
    app_settings = get_settings().app

    col1, col2 = st.columns(2)
    with col1:
        tx_type = st.selectbox(
            "Tipo",
            [TransactionType.INCOME, TransactionType.EXPENSE],
            format_func=lambda t: TYPE_LABELS[t],
        )
        raw_amount = st.text_input("Monto", placeholder="0.00")
        amount = normalize_currency_value(raw_amount)
        if amount:
            st.caption(f"${format_currency_display(amount)}")
        concept = st.text_input("Concepto", max_chars=140)
        method = st.radio(
            "Método",
            list(PaymentMethod),
            format_func=lambda m: "Banco" if m == PaymentMethod.BANK else "Efectivo",
            horizontal=True,
        )
    with col2:
        category = st.selectbox("Categoría", [""] + categories_for(tx_type.value))
        rates = ["0.16", "0.08", "0"]
        default_rate = str(app_settings.default_vat_rate)
        vat_rate = st.selectbox(
            "Tasa de IVA",
            rates,
            index=rates.index(default_rate) if default_rate in rates else 0,
        )
        vat_included = True
        if not (tx_type == TransactionType.EXPENSE and category == TAX_CATEGORY):
            vat_included = st.toggle("¿IVA incluido en el monto?", value=True)
        receipt_type = st.selectbox(
            "Tipo de comprobante",
            [None] + list(ReceiptType),
            format_func=lambda r: "Sin comprobante" if r is None else r.value,
        )
        receipt = st.file_uploader(
            "Comprobante",
            type=app_settings.supported_formats_list,
        )
        xml = None
        if receipt_type == ReceiptType.CFDI:
            xml = st.file_uploader("XML del CFDI", type=["xml"])
    notes = st.text_area("Notas")

    entry = TransactionEntry(
        type=tx_type,
        amount=amount or None,
        concept=concept or None,
        method=method,
        vat_rate=Decimal(vat_rate),
        vat_included=vat_included,
        category=category or None,
        receipt_type=receipt_type,
        notes=notes or None,
    )

    save_draft, publish = st.columns(2)
    status = None
    if save_draft.button("💾 Guardar borrador"):
        status = TransactionStatus.DRAFT
    if publish.button("✅ Publicar", type="primary"):
        status = TransactionStatus.POSTED

    if status is not None:
        try:
            with st.spinner("Guardando..."):
                saved = run_async(components.transactions.create(
                    entry,
                    status,
                    state.user_id,
                    receipt_file=to_upload(receipt) if receipt else None,
                    xml_file=to_upload(xml) if xml else None,
                ))
            title = "Borrador guardado" if status == TransactionStatus.DRAFT else "Transacción publicada"
            st.success(f"{title}: {saved.concept} ({format_money(saved.effective_total)})")
        except ACTION_ERRORS as e:
            st.error(str(e))


def render_transactions(components: AppComponents, state: AppState):
    st.title("📋 Transacciones")

    type_filter = st.selectbox(
        "Filtrar",
        [None, TransactionType.INCOME, TransactionType.EXPENSE, TransactionType.TRANSFER],
        format_func=lambda t: "Todas" if t is None else TYPE_LABELS[t],
    )
    try:
        transactions = run_async(state.load_transactions(components, type_filter))
    except StorageError as e:
        st.error(f"No se pudieron cargar las transacciones: {e}")
        return

    if not transactions:
        st.info("Aún no hay movimientos.")
        return

    for tx in transactions:
        with st.container(border=True):
            col1, col2, col3 = st.columns([4, 2, 1])
            col1.markdown(f"**{tx.concept}**  \n{tx.category or ''} · {tx.transaction_date.isoformat()}")
            sign = "+" if tx.type == TransactionType.INCOME else "-"
            col2.markdown(f"{sign}{format_money(tx.effective_total)}  \n{STATUS_LABELS[tx.status]}")
            if tx.receipt_url:
                col2.markdown(f"[Ver comprobante]({tx.receipt_url})")
            if col3.button("🗑️", key=f"delete-{tx.id}", disabled=tx.reconciled):
                try:
                    soft = run_async(components.transactions.delete(tx))
                    st.success("Transacción eliminada" if soft else "Borrador eliminado")
                    st.rerun()
                except ACTION_ERRORS as e:
                    st.error(str(e))
            with st.expander("Detalle"):
                render_transaction_detail(components, tx)


def render_transaction_detail(components: AppComponents, tx: Transaction):
    """VAT breakdown, plus the edit form while the row is still editable."""
    currency = get_settings().app.currency
    breakdown = tx.vat_breakdown
    st.markdown(
        f"Subtotal {format_money(breakdown.subtotal, currency)} · "
        f"IVA {format_money(breakdown.vat, currency)} · "
        f"Total {format_money(breakdown.total, currency)}"
    )
    if tx.uuid_cfdi:
        st.caption(f"UUID CFDI: {tx.uuid_cfdi}")
    if not tx.is_editable:
        st.caption("Conciliada: no se puede editar.")
        return

    with st.form(f"edit-{tx.id}"):
        raw_amount = st.text_input("Monto", value=format_amount_from_number(tx.amount))
        concept = st.text_input("Concepto", value=tx.concept, max_chars=140)
        options = [""] + categories_for(tx.type.value)
        category = st.selectbox(
            "Categoría",
            options,
            index=options.index(tx.category) if tx.category in options else 0,
        )
        rates = ["0.16", "0.08", "0"]
        current_rate = str(tx.vat_rate.normalize())
        vat_rate = st.selectbox(
            "Tasa de IVA",
            rates,
            index=rates.index(current_rate) if current_rate in rates else 0,
        )
        vat_included = st.checkbox("IVA incluido en el monto", value=tx.vat_included)
        receipt = st.file_uploader(
            "Reemplazar comprobante",
            type=get_settings().app.supported_formats_list,
        )
        notes = st.text_area("Notas", value=tx.notes or "")

        status = tx.status
        if tx.status == TransactionStatus.DRAFT and st.checkbox("Publicar al guardar"):
            status = TransactionStatus.POSTED

        if st.form_submit_button("💾 Guardar cambios"):
            entry = TransactionEntry(
                type=tx.type,
                amount=normalize_currency_value(raw_amount) or None,
                concept=concept or None,
                method=tx.method,
                vat_rate=Decimal(vat_rate),
                vat_included=vat_included,
                category=category or None,
                receipt_type=tx.receipt_type,
                bank_account_id=tx.bank_account_id,
                notes=notes or None,
            )
            try:
                run_async(components.transactions.update(
                    tx.id,
                    entry,
                    status,
                    receipt_file=to_upload(receipt) if receipt else None,
                ))
                st.success("Transacción actualizada")
                st.rerun()
            except ACTION_ERRORS as e:
                st.error(str(e))


def render_recurring_clients(components: AppComponents, state: AppState):
    st.title("🔁 Clientes recurrentes")
    currency = get_settings().app.currency

    with st.form("add_client", clear_on_submit=True):
        st.subheader("Nuevo recordatorio")
        name = st.text_input("Nombre")
        amount = st.text_input("Monto mensual")
        billing_day = st.number_input("Día de cobro", min_value=1, max_value=31, value=1)
        notes = st.text_area("Notas")
        if st.form_submit_button("Agregar"):
            try:
                view = run_async(components.billing.add_client(
                    state.user_id, name, normalize_currency_value(amount), billing_day, notes,
                ))
                st.success(f"Recordatorio creado, primer cobro: {view.client.due_date.isoformat()}")
            except ACTION_ERRORS as e:
                st.error(str(e))

    try:
        clients = run_async(state.load_clients(components))
    except StorageError as e:
        st.error(f"Error al cargar clientes: {e}")
        return

    for view in clients:
        client = view.client
        with st.container(border=True):
            st.markdown(
                f"**{client.name}**: {format_money(client.amount, currency)}  \n"
                f"Día {client.billing_day} de cada mes · próximo cobro {client.due_date.isoformat()}"
            )
            if view.state == BillingState.PAID:
                st.warning(
                    f"Pagado el {view.last_paid_on.isoformat()}, pero falta el cobro pendiente "
                    f"del {client.due_date.isoformat()}."
                )
                if st.button("➕ Generar cobro pendiente", key=f"seed-{client.id}"):
                    try:
                        run_async(components.billing.create_pending_charge(client, client.due_date))
                        st.rerun()
                    except ACTION_ERRORS as e:
                        st.error(f"No se pudo generar el cobro: {e}")
            elif view.state == BillingState.AWAITING_CHARGE:
                st.caption("Sin cobro pendiente")

            col1, col2, col3 = st.columns([2, 3, 1])
            if col1.button("✅ Marcar pagado", key=f"paid-{client.id}"):
                try:
                    next_due = run_async(components.billing.mark_paid(view))
                    st.success(f"Pago registrado. Próximo cobro: {next_due.isoformat()}")
                    st.rerun()
                except ACTION_ERRORS as e:
                    st.error(f"No se pudo actualizar: {e}")

            invoice = col2.file_uploader(
                "Factura (PDF o XML)",
                type=["pdf", "xml"],
                key=f"invoice-{client.id}",
            )
            if invoice is not None and col2.button("Registrar con factura", key=f"attach-{client.id}"):
                try:
                    next_due = run_async(components.billing.attach_invoice_and_complete(
                        view, to_upload(invoice),
                    ))
                    st.success(f"Factura registrada. Próximo cobro: {next_due.isoformat()}")
                    st.rerun()
                except ACTION_ERRORS as e:
                    st.error(f"No se pudo registrar la factura: {e}")

            if col3.button("🗑️", key=f"remove-{client.id}"):
                try:
                    run_async(components.billing.delete_client(state.user_id, client.id))
                    st.rerun()
                except ACTION_ERRORS as e:
                    st.error(f"No se pudo eliminar: {e}")


def render_cash_flow(components: AppComponents):
    st.title("💵 Flujo de efectivo")

    today = date.today()
    col1, col2, col3 = st.columns(3)
    date_from = col1.date_input("Desde", value=today.replace(day=1))
    date_to = col2.date_input("Hasta", value=today)
    granularity = col3.selectbox(
        "Agrupar por",
        list(Granularity),
        format_func=lambda g: {"day": "Día", "week": "Semana", "month": "Mes"}[g.value],
    )

    try:
        buckets = run_async(components.cash_flow.series(granularity, date_from, date_to))
        statement = run_async(components.cash_flow.statement(date_from, date_to))
    except StorageError as e:
        st.error(str(e))
        return

    if buckets:
        st.bar_chart(
            {
                "Ingresos": {b.period.isoformat(): float(b.income) for b in buckets},
                "Egresos": {b.period.isoformat(): float(b.expense) for b in buckets},
            }
        )

    st.subheader("I. Ingresos operativos")
    for group in statement.income_groups:
        st.write(f"{group.name}: {format_money(group.total)}")
    st.subheader("II. Costos y gastos operativos")
    for group in statement.expense_groups:
        st.write(f"{group.name}: {format_money(group.total)}")

    st.subheader("III. Resultado operativo")
    col1, col2, col3 = st.columns(3)
    col1.metric("EBITDA", format_money(statement.ebitda))
    col2.metric("EBIT", format_money(statement.ebit))
    col3.metric("Flujo neto", format_money(statement.net_flow))


def render_export(components: AppComponents):
    st.title("📤 Exportar datos")
    st.markdown(
        "Archivo Excel con dos hojas: **Banregio_Contador** (solo banco) "
        "y **Vela_Todos** (todos los movimientos)."
    )

    if st.button("Generar Excel", type="primary"):
        try:
            filename, content = run_async(components.export.transactions_workbook())
            st.download_button(
                "⬇️ Descargar",
                data=content,
                file_name=filename,
                mime=XLSX_MIME,
            )
        except StorageError as e:
            st.error(str(e))

    st.markdown("---")
    st.subheader("Flujo por rubros")
    today = date.today()
    col1, col2 = st.columns(2)
    date_from = col1.date_input("Desde", value=today.replace(day=1), key="statement-from")
    date_to = col2.date_input("Hasta", value=today, key="statement-to")
    if st.button("Generar flujo por rubros"):
        try:
            filename, content = run_async(
                components.export.statement_workbook(date_from, date_to)
            )
            st.download_button(
                "⬇️ Descargar flujo (formato .xlsx)",
                data=content,
                file_name=filename,
                mime=XLSX_MIME,
            )
            st.caption(
                "El archivo conserva la extensión .xls pero su contenido es .xlsx; "
                "Excel puede pedir confirmación al abrirlo."
            )
        except StorageError as e:
            st.error(str(e))


def render_appearance(components: AppComponents, state: AppState):
    st.title("🎨 Apariencia")

    options = theme_options()
    ids = [theme_id for theme_id, _ in options]
    labels = dict(options)
    choice = st.radio(
        "Tema",
        ids,
        index=ids.index(state.theme) if state.theme in ids else 0,
        format_func=lambda theme_id: labels[theme_id],
    )

    col1, col2 = st.columns(2)
    if col1.button("Guardar", type="primary"):
        try:
            run_async(components.themes.save(state.user_id, choice))
            st.rerun()
        except StorageError as e:
            st.error(str(e))
    if col2.button("Restablecer"):
        try:
            run_async(components.themes.reset(state.user_id))
            st.rerun()
        except StorageError as e:
            st.error(str(e))

    st.markdown("---")
    st.markdown("### Estado de conexión")
    status = validate_all_settings()
    for name, key in [("Google Sheets", "google_sheets"), ("Cloudinary", "cloudinary")]:
        if status.get(key, False):
            st.success(f"✅ {name}")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Sin configurar')}")


if __name__ == "__main__":
    main()
