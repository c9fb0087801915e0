"""
Streamlit Frontend for Invoice Pro

Two views, driven by the ViewCoordinator:
1. Invoice list: open, delete (with confirmation), create
2. Invoice form: edit header fields and items, download PDF, save

DESIGN PRINCIPLES:
1. The page never decides what is persisted; the controller does
2. Delete always asks first
3. Failures show up as notifications, the page keeps working
"""

import asyncio
from datetime import date

import httpx
import streamlit as st

from src.config import get_settings, validate_all_settings
from src.invoices import ViewCoordinator
from src.models.invoice import Invoice, format_amount, invoice_total
from src.orchestrator import InvoiceSession, create_app_components, create_asset_cache
from src.services.offline import AssetCacheError, OfflineAssetCache


settings = get_settings()

# Page configuration
st.set_page_config(
    page_title=settings.app.app_title,
    page_icon="🧾",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .letterhead {
        text-align: center;
        border-bottom: 1px solid #374151;
        padding-bottom: 16px;
        margin-bottom: 24px;
    }
    .big-number {
        font-size: 1.6em;
        font-weight: bold;
        text-align: right;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> tuple[InvoiceSession, OfflineAssetCache]:
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to open local storage, working in memory only: {e}")
        return create_app_components(use_storage=False)


def show_notifications(session: InvoiceSession) -> None:
    """Toast every failure we have not shown yet."""
    seen = st.session_state.setdefault("seen_events", set())
    for event in reversed(session.audit_logger.recent_failures(limit=5)):
        if event.event_id not in seen:
            seen.add(event.event_id)
            st.toast(f"⚠️ {event.description}")


def main():
    """Main application entry point."""
    session, asset_cache = get_components()
    run_async(session.start())

    st.sidebar.title(f"🧾 {settings.app.app_title}")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📄 Invoices", "⚙️ Settings"],
        index=0,
    )

    if session.synchronizer.last_save_ok is False:
        st.sidebar.warning("Last save failed. Changes are kept for this session only.")

    if page == "📄 Invoices":
        if session.coordinator.is_editing:
            render_form_page(session)
        else:
            render_list_page(session)
    elif page == "⚙️ Settings":
        render_settings_page(session, asset_cache)

    show_notifications(session)


# =============================================================================
# LIST VIEW
# =============================================================================

def render_list_page(session: InvoiceSession):
    """Render the invoice list."""
    coordinator = session.coordinator

    header, action = st.columns([4, 1])
    header.title("Invoices")
    if action.button("➕ Create New Invoice", type="primary"):
        if run_async(coordinator.create_new()):
            st.session_state.form_nonce = st.session_state.get("form_nonce", 0) + 1
            st.session_state.export_result = None
            st.rerun()

    pending = st.session_state.get("pending_delete")
    if pending:
        render_delete_confirmation(coordinator, pending)

    invoices = coordinator.invoices()
    if not invoices:
        st.info("No invoices yet. Click **Create New Invoice** to get started.")
        return

    columns = st.columns([2, 2, 4, 2, 1, 1])
    for column, title in zip(columns, ["Ref", "Date", "M/s", "Total", "", ""]):
        column.markdown(f"**{title}**")

    for invoice in invoices:
        ref_col, date_col, to_col, total_col, edit_col, delete_col = st.columns([2, 2, 4, 2, 1, 1])
        ref_col.write(invoice.ref or "N/A")
        date_col.write(invoice.invoice_date)
        to_col.write(invoice.recipient or "N/A")
        total_col.write(format_amount(invoice_total(invoice)))

        if edit_col.button("✏️", key=f"edit_{invoice.id}", help="Edit"):
            if run_async(coordinator.edit_invoice(invoice.id)):
                st.session_state.form_nonce = st.session_state.get("form_nonce", 0) + 1
                st.session_state.export_result = None
            st.rerun()
        if delete_col.button("🗑️", key=f"delete_{invoice.id}", help="Delete"):
            st.session_state.pending_delete = invoice.id
            st.rerun()


def render_delete_confirmation(coordinator: ViewCoordinator, invoice_id: str):
    """Ask before deleting. 'No' changes nothing."""
    st.warning("Are you sure you want to delete this invoice?")
    yes, no, _ = st.columns([1, 1, 4])

    if yes.button("Yes, delete", type="primary"):
        if not run_async(coordinator.delete_invoice(invoice_id, lambda invoice: True)):
            st.error("That invoice no longer exists.")
        st.session_state.pending_delete = None
        st.rerun()
    if no.button("No, keep it"):
        run_async(coordinator.delete_invoice(invoice_id, lambda invoice: False))
        st.session_state.pending_delete = None
        st.rerun()


# =============================================================================
# FORM VIEW
# =============================================================================

def _date_value(text: str):
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def render_letterhead(coordinator: ViewCoordinator, invoice: Invoice, nonce: int):
    company = settings.company
    st.markdown(
        f"<div class='letterhead'><h1>{company.name}</h1>"
        f"<p>{company.subtitle}</p>"
        f"<small>{company.address} | Contact: {company.contact} | Email: {company.email}</small></div>",
        unsafe_allow_html=True,
    )
    ntn = st.text_input("NTN No:", value=invoice.ntn_no, placeholder="Enter NTN No.", key=f"ntn_{nonce}")
    if ntn != invoice.ntn_no:
        coordinator.set_field("ntn_no", ntn)

    st.markdown("<h2 style='text-align:center'>COMMERCIAL INVOICE</h2>", unsafe_allow_html=True)


def render_header_fields(coordinator: ViewCoordinator, invoice: Invoice, nonce: int):
    left, right = st.columns(2)
    ref = left.text_input("Ref:", value=invoice.ref, placeholder="Reference No.", key=f"ref_{nonce}")
    if ref != invoice.ref:
        coordinator.set_field("ref", ref)

    current = _date_value(invoice.invoice_date)
    if current is None:
        text = right.text_input("Date:", value=invoice.invoice_date, placeholder="YYYY-MM-DD", key=f"date_{nonce}")
        if text != invoice.invoice_date:
            coordinator.set_field("invoice_date", text)
    else:
        picked = right.date_input("Date:", value=current, key=f"date_{nonce}")
        if picked and picked.isoformat() != invoice.invoice_date:
            coordinator.set_field("invoice_date", picked.isoformat())

    recipient = st.text_input(
        "M/s:", value=invoice.recipient, placeholder="Recipient Name / Company", key=f"recipient_{nonce}"
    )
    if recipient != invoice.recipient:
        coordinator.set_field("recipient", recipient)


def render_items(coordinator: ViewCoordinator, invoice: Invoice, nonce: int):
    widths = [1, 5, 2, 2, 2, 1]
    for column, title in zip(st.columns(widths), ["Sno", "Description", "Qty", "Unit Rate", "Amount", ""]):
        column.markdown(f"**{title}**")

    for item in invoice.items:
        sno, desc, qty, rate, amount, remove = st.columns(widths)
        sno.write(item.sno)

        description = desc.text_input(
            "Description", value=item.description, placeholder="Item description",
            key=f"desc_{nonce}_{item.id}", label_visibility="collapsed",
        )
        if description != item.description:
            coordinator.update_item(item.id, "description", description)

        raw_qty = qty.text_input(
            "Qty", value=f"{item.qty:g}", key=f"qty_{nonce}_{item.id}", label_visibility="collapsed",
        )
        if raw_qty != f"{item.qty:g}":
            coordinator.update_item(item.id, "qty", raw_qty)

        raw_rate = rate.text_input(
            "Unit Rate", value=f"{item.unit_rate:g}", key=f"rate_{nonce}_{item.id}", label_visibility="collapsed",
        )
        if raw_rate != f"{item.unit_rate:g}":
            coordinator.update_item(item.id, "unit_rate", raw_rate)

        amount.markdown(f"<div style='text-align:right'>{format_amount(item.line_amount)}</div>",
                        unsafe_allow_html=True)

        if remove.button("🗑️", key=f"remove_{nonce}_{item.id}", help="Remove item"):
            coordinator.remove_item(item.id)
            st.rerun()

    if st.button("➕ Add Item"):
        coordinator.add_item()
        st.rerun()


def render_form_page(session: InvoiceSession):
    """Render the invoice form for the working copy."""
    coordinator = session.coordinator
    nonce = st.session_state.get("form_nonce", 0)
    invoice = coordinator.working_copy

    render_letterhead(coordinator, invoice, nonce)
    render_header_fields(coordinator, invoice, nonce)
    st.markdown("---")
    render_items(coordinator, coordinator.working_copy, nonce)

    _, total_col = st.columns([3, 1])
    total_col.markdown("**Total Amount:**")
    total_col.markdown(f"<div class='big-number'>{coordinator.formatted_total}</div>", unsafe_allow_html=True)

    st.markdown("---")
    st.markdown("**Sign:**")
    st.markdown("<br><br>", unsafe_allow_html=True)

    back, pdf, save = st.columns(3)

    if back.button("⬅️ Back to List"):
        run_async(coordinator.cancel())
        st.session_state.export_result = None
        st.rerun()

    if pdf.button("⬇️ Download PDF", disabled=session.exporter.in_progress):
        with st.spinner("Generating..."):
            result = run_async(coordinator.export_working_copy(session.exporter))
        if result is None:
            st.info("A PDF is already being generated.")
        elif not result.success:
            st.error(f"Could not generate the PDF: {result.error}")
        st.session_state.export_result = result

    result = st.session_state.get("export_result")
    if result is not None and result.success:
        pdf.download_button(
            label=f"💾 Save {result.filename}",
            data=result.content,
            file_name=result.filename,
            mime=result.mime_type,
        )

    if save.button("✅ Save Invoice", type="primary"):
        committed = run_async(coordinator.save())
        st.session_state.export_result = None
        if committed is not None:
            st.toast(f"Saved invoice {committed.ref or committed.id}")
        st.rerun()


# =============================================================================
# SETTINGS
# =============================================================================

async def refresh_offline_cache(session: InvoiceSession) -> list[str]:
    """Install and activate a fresh shell cache. Returns the cached URLs."""
    async with httpx.AsyncHTTPTransport() as network:
        cache = create_asset_cache(network=network, audit_logger=session.audit_logger)
        urls = await cache.install()
        await cache.activate()
        return urls


def render_settings_page(session: InvoiceSession, asset_cache: OfflineAssetCache):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")
    status = validate_all_settings()
    for name in ("storage", "asset_cache", "export", "company", "app"):
        if status.get(name, False):
            st.success(f"✅ {name}")
        else:
            st.error(f"❌ {name} - {status.get(f'{name}_error', 'Invalid')}")

    storage = settings.storage
    st.markdown("### Storage")
    st.write(f"Backend: `{storage.backend}`")
    if storage.backend == "disk":
        st.write(f"Directory: `{storage.path}`")
    st.write(f"Key: `{session.synchronizer.key}`")
    st.write(f"Invoices in this session: {len(session.controller)}")

    st.markdown("### Offline Cache")
    st.write(f"Cache: `{asset_cache.cache_name}`")
    st.write(f"Origin: `{asset_cache.origin}`")
    st.write("Assets: " + ", ".join(f"`{path}`" for path in asset_cache.manifest))
    namespaces = run_async(asset_cache.namespaces())
    if asset_cache.cache_name in namespaces:
        st.success("Shell assets are cached for offline use.")
    else:
        st.info("Shell assets are not cached yet.")

    if st.button("🔄 Refresh offline cache"):
        try:
            urls = run_async(refresh_offline_cache(session))
            st.success(f"Cached {len(urls)} assets.")
        except AssetCacheError as e:
            st.error(str(e))

    st.markdown("### Recent Activity")
    for event in session.audit_logger.recent_events(limit=10):
        st.caption(f"{event.timestamp:%H:%M:%S} · {event.description}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
