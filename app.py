import json
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, List, Optional

import altair as alt
import httpx
import pandas as pd
import streamlit as st

from core.auth import admin_path, allowed_uploads, authenticate, require_upload
from core.config import CLIENT_POLICIES, UPLOAD_TARGETS, load_settings
from core.data import WORKFORCE_FALLBACK, NormalizedTable, normalize_table
from core.errors import (
    AuthenticationError,
    AuthorizationError,
    DashboardError,
    InvalidResponseError,
    UpstreamStatusError,
    UpstreamUnavailableError,
)
from core.fetch import parse_json, read_table, request_with_retry_sync
from core.filters import DashboardFilters, normalize_filters
from core.logging_config import setup_logging
from core.metrics_attendance import compute_attendance, export_groups as attendance_export
from core.metrics_overview import compute_overview
from core.metrics_performance import compute_performance, export_groups as performance_export
from core.metrics_recruitment import compute_recruitment
from core.metrics_sector import compute_sector
from core.metrics_sortie import compute_sortie
from core.metrics_turnover import compute_turnover
from core.metrics_workforce import compute_workforce
from core.schema import SCHEMAS, WORKFORCE
from core.session import PageCache, SessionStore, new_client_id
from core.upload import clear_sheet_payload, turnover_form_payload, upload_batches

alt.data_transformers.disable_max_rows()

SETTINGS = load_settings()
setup_logging(SETTINGS.log_level, json_output=SETTINGS.log_format == "json")

ALL = "Tous"


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        .level-high {color: #dc2626;font-weight: 600;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(chips: Dict[str, Any]) -> str:
    parts = []
    for label, value in chips.items():
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value) if value else ALL
        parts.append(f"<span class='chip'>{label}: {value or ALL}</span>")
    return "".join(parts)


def render_page_header(title: str, breadcrumb: str, chips: Dict[str, Any], export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([7, 3])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Actualiser", key=f"refresh-{title}"):
            page_cache().clear()
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    if chips:
        st.markdown(f"<div class='chip-row'>{format_filter_summary(chips)}</div>", unsafe_allow_html=True)


def show_chart(spec: Optional[Dict[str, Any]]):
    if spec:
        st.vega_lite_chart(spec=spec, use_container_width=True)


def kpi_row(items: List[tuple]):
    cols = st.columns(len(items))
    for col, (label, value) in zip(cols, items):
        col.metric(label, value)


def choice(label: str, options: List[str], key: str) -> List[str]:
    picked = st.selectbox(label, [ALL] + list(options), key=key)
    return [] if picked == ALL else [picked]


def render_data_quality(dq: Any):
    if not dq:
        return
    with st.expander("Qualité des données", expanded=False):
        st.json(dq)


# ---------- Data access ----------
@st.cache_resource
def api_client() -> httpx.Client:
    return httpx.Client(base_url=SETTINGS.api_base_url, follow_redirects=True)


def session_store() -> SessionStore:
    """One store per browser session; the client id rides in the URL so a reload finds it again."""
    store = st.session_state.get("_session_store")
    if store is None:
        client_id = st.query_params.get("sid", "")
        try:
            store = SessionStore.for_client(SETTINGS.session_dir, client_id)
        except ValueError:
            client_id = new_client_id()
            st.query_params["sid"] = client_id
            store = SessionStore.for_client(SETTINGS.session_dir, client_id)
        st.session_state["_session_store"] = store
    return store


def page_cache() -> PageCache:
    return st.session_state.setdefault("_tables", PageCache())


def fetch_raw(name: str) -> Any:
    path = "/api/admin/auth" if name == "auth" else f"/api/{name}"
    response = request_with_retry_sync(api_client(), "GET", path, CLIENT_POLICIES[name], source=name)
    return read_table(response, source=name)


def describe_error(exc: Exception) -> str:
    if isinstance(exc, UpstreamUnavailableError):
        return "Le serveur ne répond pas. Vérifiez votre connexion et réessayez."
    if isinstance(exc, UpstreamStatusError):
        try:
            detail = json.loads(exc.body or "{}")
        except ValueError:
            detail = {}
        message = detail.get("error") if isinstance(detail, dict) else None
        return f"Erreur du serveur ({exc.status}){': ' + message if message else ''}"
    if isinstance(exc, InvalidResponseError):
        return "Réponse invalide du serveur (données non JSON)."
    return str(exc)


def load_table(name: str, *, quiet: bool = False) -> Optional[NormalizedTable]:
    """Fetch and normalize one table for the current page; failures render a retry control."""
    tables: Dict[str, NormalizedTable] = page_cache().tables
    if name in tables:
        return tables[name]
    try:
        with st.spinner(f"Chargement des données ({name})..."):
            table = normalize_table(fetch_raw(name), SCHEMAS[name])
    except DashboardError as exc:
        if quiet:
            st.warning(f"{name}: {describe_error(exc)}")
            return None
        st.error(describe_error(exc))
        if st.button("Réessayer", key=f"retry-{name}"):
            st.rerun()
        if name == "workforce" and st.button("Utiliser les données locales", key="workforce-fallback"):
            tables["workforce"] = normalize_table(WORKFORCE_FALLBACK, WORKFORCE)
            st.rerun()
        return None
    tables[name] = table
    return table


def post_upload(payload: Dict[str, Any]) -> Any:
    response = request_with_retry_sync(api_client(), "POST", "/api/admin/upload", CLIENT_POLICIES["upload"], source="upload", json=payload)
    return parse_json(response, source="upload")


# ---------- UI setup ----------
st.set_page_config(page_title="Tableau de bord RH", layout="wide")
inject_base_styles()
st.title("Tableau de bord RH")
st.caption("Présence, performance, effectifs et mouvements du personnel.")

store = session_store()

PAGES = ["Accueil", "Présence", "Performance", "Effectif", "Turnover", "Recrutement", "Sorties", "Secteur", "Administration"]

# ----- Sidebar: navigation + session -----
with st.sidebar:
    st.markdown("### Navigation")
    current_page = st.radio("Navigation", PAGES, index=0)
    page_cache().for_page(current_page)

    st.markdown("---")
    st.markdown("### Session")
    session = store.session
    if session is None:
        with st.form("login"):
            email = st.text_input("Email")
            password = st.text_input("Mot de passe", type="password")
            submitted = st.form_submit_button("Se connecter")
        if submitted:
            try:
                session = authenticate(fetch_raw("auth"), email, password)
                store.save(session)
                st.success(f"Connecté: {admin_path(session.permission)}")
                st.rerun()
            except DashboardError as exc:
                st.error(describe_error(exc))
    else:
        st.markdown(f"**{session.email}** ({session.permission.value})")
        if st.button("Se déconnecter"):
            store.clear()
            st.rerun()

    st.markdown("---")
    with st.expander("Paramètres avancés", expanded=False):
        top_n = st.slider("Top N", min_value=5, max_value=50, value=10, step=5)
        page_size = st.slider("Lignes par page", min_value=5, max_value=50, value=10, step=5)


def make_filters(**raw: Any) -> DashboardFilters:
    raw.setdefault("top_n", top_n)
    raw.setdefault("page_size", page_size)
    return normalize_filters(raw)


def render_home_page():
    render_page_header("Accueil", "Accueil", {})
    attendance = load_table("attendance", quiet=True)
    workforce = load_table("workforce", quiet=True)
    data = compute_overview(make_filters(), attendance=attendance, workforce=workforce)

    cols = st.columns(2)
    with cols[0]:
        with card("Présence du jour"):
            att = data["attendance"]
            if att is None:
                st.info("Données de présence indisponibles.")
            else:
                kpi_row([
                    ("Présents", att["total_present"]),
                    ("Absents", att["total_absent"]),
                    ("Taux de présence", f"{att['attendance_rate']}%"),
                    ("Taux d'absence", f"{att['absence_rate']}%"),
                ])
                show_chart(data["charts"].get("attendance"))
    with cols[1]:
        with card("Effectif"):
            wf = data["workforce"]
            if wf is None:
                st.info("Données d'effectif indisponibles.")
            else:
                kpi_row([
                    ("Travailleurs", wf["total_workers"]),
                    ("Départements", wf["total_departments"]),
                    ("Âge moyen", wf["average_age"]),
                ])
                kpi_row([("Hommes", wf["total_men"]), ("Femmes", wf["total_women"])])
                show_chart(data["charts"].get("gender"))


def render_attendance_page():
    table = load_table("attendance")
    if table is None:
        return
    categories = sorted({c for c in table.frame["category"].tolist() if c}) if not table.frame.empty else []

    with st.sidebar:
        st.markdown("### Filtres présence")
        category = choice("Catégorie", categories, key="att-category")
        search = st.text_input("Rechercher un groupe", key="att-search")
        status = st.radio("Statut des groupes", ["all", "present", "absent"], horizontal=True, key="att-status")
        contract_status = st.radio("Statut des contrats", ["all", "present", "absent"], horizontal=True, key="att-contract-status")

    page = st.session_state.get("att-page", 1)
    contract_page = st.session_state.get("att-contract-page", 1)
    selected_group = st.session_state.get("att-group") or None
    filters = make_filters(
        selected={"category": category},
        search=search,
        status=status,
        contract_status=contract_status,
        page=page,
        contract_page=contract_page,
        selected_group=None if selected_group == ALL else selected_group,
        record_status=st.session_state.get("att-record-status", "all"),
        record_search=st.session_state.get("att-record-search", ""),
    )
    data = compute_attendance(filters, table)

    render_page_header(
        "Présence",
        "Accueil / Présence",
        {"Catégorie": category, "Recherche": search, "Statut": status},
        export_df=attendance_export(filters, table),
        export_name="presence.csv",
    )

    overall = data["overall"]
    with card("Vue d'ensemble"):
        kpi_row([
            ("Travailleurs", overall["total_workers"]),
            ("Présents", overall["present"]),
            ("Absents", overall["absent"]),
            ("Taux de présence", f"{overall['attendance_rate']}%"),
            ("Taux d'absence", f"{overall['absence_rate']}%"),
        ])

    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Par catégorie"):
            show_chart(data["charts"].get("categories"))
    with chart_cols[1]:
        with card("Par contrat"):
            show_chart(data["charts"].get("contracts"))

    groups = data["groups"]
    with card(f"Groupes ({groups['total_items']})"):
        st.dataframe(pd.DataFrame(groups["items"]), hide_index=True, use_container_width=True)
        st.number_input("Page", min_value=1, max_value=max(1, groups["total_pages"]), step=1, key="att-page")

    contracts = data["contracts"]
    with card(f"Contrats ({contracts['total_items']})"):
        st.dataframe(pd.DataFrame(contracts["items"]), hide_index=True, use_container_width=True)
        st.number_input("Page contrats", min_value=1, max_value=max(1, contracts["total_pages"]), step=1, key="att-contract-page")

    with card("Détail d'un groupe"):
        names = [g["name"] for g in data["group_stats"]]
        st.selectbox("Groupe", [ALL] + names, key="att-group")
        detail = data["group_detail"]
        if detail:
            c1, c2 = st.columns(2)
            c1.radio("Statut", ["all", "present", "absent"], horizontal=True, key="att-record-status")
            c2.text_input("Code ou nom", key="att-record-search")
            st.dataframe(pd.DataFrame(detail["records"]), hide_index=True, use_container_width=True)

    render_data_quality(data["data_quality"])


def render_performance_page():
    table = load_table("performance")
    if table is None:
        return
    frame = table.frame
    departments = sorted({d for d in frame["department"].tolist() if d}) if not frame.empty else []
    dates = sorted({d for d in frame["date"].tolist() if d}) if not frame.empty else []

    with st.sidebar:
        st.markdown("### Filtres performance")
        selected_dates = st.multiselect("Dates", dates, key="perf-dates")
        selected_departments = st.multiselect("Départements", departments, key="perf-departments")
        search = st.text_input("Rechercher un groupe", key="perf-search")

    selected_group = st.session_state.get("perf-group")
    filters = make_filters(
        selected={"date": selected_dates, "department": selected_departments},
        search=search,
        page=st.session_state.get("perf-page", 1),
        selected_group=None if selected_group in (None, ALL) else selected_group,
        selected_dates=st.session_state.get("perf-detail-dates", []),
        record_search=st.session_state.get("perf-name", ""),
        record_code_search=st.session_state.get("perf-code", ""),
    )
    data = compute_performance(filters, table)

    render_page_header(
        "Performance",
        "Accueil / Performance",
        {"Dates": selected_dates, "Départements": selected_departments, "Recherche": search},
        export_df=performance_export(filters, table),
        export_name="performance.csv",
    )

    totals = data["totals"]
    low = data["low_hours"]
    kpi_row([
        ("Travailleurs", totals["workers"]),
        ("Groupes", totals["groups"]),
        ("Heures totales", round(totals["total_hours"], 1)),
        ("Moins de 8h", f"{low['count']} ({low['percentage']}%)"),
    ])

    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Heures par département"):
            show_chart(data["charts"].get("departments"))
    with chart_cols[1]:
        with card("Distribution AG"):
            show_chart(data["charts"].get("ag"))

    groups = data["groups"]
    with card(f"Groupes ({groups['total_items']})"):
        st.dataframe(pd.DataFrame(groups["items"]), hide_index=True, use_container_width=True)
        st.number_input("Page", min_value=1, max_value=max(1, groups["total_pages"]), step=1, key="perf-page")

    with card("Détail d'un groupe"):
        group_names = sorted({g for g in frame["group"].tolist() if g}) if not frame.empty else []
        st.selectbox("Groupe", [ALL] + group_names, key="perf-group")
        detail = data["group_detail"]
        if detail:
            show_chart(detail["charts"].get("attendance"))
            c1, c2, c3 = st.columns(3)
            c1.multiselect("Dates", [d["date"] for d in detail["attendance_by_date"]], key="perf-detail-dates")
            c2.text_input("Nom", key="perf-name")
            c3.text_input("Code", key="perf-code")
            st.dataframe(pd.DataFrame(detail["workers"]), hide_index=True, use_container_width=True)

    with st.expander("Dates par mois", expanded=False):
        for month in data["dates_by_month"]:
            st.markdown(f"**{month['label']}**: {', '.join(month['dates'])}")

    render_data_quality(data["data_quality"])


def render_workforce_page():
    table = load_table("workforce")
    if table is None:
        return
    frame = table.frame
    with st.sidebar:
        st.markdown("### Filtres effectif")
        departments = choice("Département", sorted({d for d in frame["department"].tolist() if d}), key="wf-department")
        contracts = choice("Contrat", sorted({c for c in frame["contract"].tolist() if c}), key="wf-contract")

    filters = make_filters(selected={"department": departments, "contract": contracts})
    data = compute_workforce(filters, table)
    flat = pd.DataFrame(
        [
            {"department": d["name"], "contract": c, **counts}
            for d in data["departments"]
            for c, counts in d["contracts"].items()
        ]
    )
    render_page_header(
        "Effectif",
        "Accueil / Effectif",
        {"Département": departments, "Contrat": contracts},
        export_df=flat,
        export_name="effectif.csv",
    )

    kpis = data["kpis"]
    kpi_row([
        ("Travailleurs", kpis["total_workers"]),
        ("Hommes", kpis["total_men"]),
        ("Femmes", kpis["total_women"]),
        ("Départements", kpis["departments"]),
    ])

    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Répartition par contrat"):
            show_chart(data["charts"].get("contracts"))
    with chart_cols[1]:
        with card("Répartition par âge"):
            show_chart(data["charts"].get("ages"))

    with card("Départements x contrats"):
        st.dataframe(flat, hide_index=True, use_container_width=True)

    with card("Focus genre"):
        st.dataframe(pd.DataFrame(data["gender_focus"]).drop(columns=["data"], errors="ignore"), hide_index=True, use_container_width=True)

    render_data_quality(data["data_quality"])


def render_turnover_page():
    table = load_table("turnover")
    if table is None:
        return
    options = compute_turnover(make_filters(), table)["options"]
    with st.sidebar:
        st.markdown("### Filtres turnover")
        month = choice("Mois", options.get("month", []), key="to-month")
        group = choice("Groupe", options.get("group", []), key="to-group")
        contract = choice("Contrat", options.get("contract", []), key="to-contract")

    filters = make_filters(selected={"month": month, "group": group, "contract": contract})
    data = compute_turnover(filters, table)
    details = pd.DataFrame(data["details"])
    render_page_header(
        "Turnover",
        "Accueil / Turnover",
        {"Mois": month, "Groupe": group, "Contrat": contract},
        export_df=details,
        export_name="turnover.csv",
    )

    kpis = data["kpis"]
    kpi_row([
        ("Début de mois", kpis["total_started"]),
        ("Sorties", kpis["total_finished"]),
        ("Effectif moyen", kpis["average_workforce"]),
        ("Taux de turnover", f"{kpis['turnover_rate']}%"),
    ])

    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Évolution du taux"):
            show_chart(data["charts"].get("trend"))
    with chart_cols[1]:
        with card("Effectifs et sorties"):
            show_chart(data["charts"].get("flows"))

    with card("Par mois"):
        monthly = pd.DataFrame(data["monthly"])
        if not monthly.empty:
            monthly = monthly.drop(columns=["records"], errors="ignore")
        st.dataframe(monthly, hide_index=True, use_container_width=True)

    with card("Détail"):
        st.dataframe(details, hide_index=True, use_container_width=True)

    render_data_quality(data["data_quality"])


def render_recruitment_page():
    table = load_table("recruitment")
    if table is None:
        return
    options = compute_recruitment(make_filters(), table)["options"]
    with st.sidebar:
        st.markdown("### Filtres recrutement")
        department = choice("Département", options["department"], key="rec-department")
        source = choice("Source", options["source"], key="rec-source")
        month = choice("Mois", options["month"], key="rec-month")
        sector = choice("Secteur", options["sector"], key="rec-sector")

    filters = make_filters(selected={"department": department, "source": source, "month": month, "sector": sector})
    data = compute_recruitment(filters, table)
    records = pd.DataFrame(data["records"])
    render_page_header(
        "Recrutement",
        "Accueil / Recrutement",
        {"Département": department, "Source": source, "Mois": month, "Secteur": sector},
        export_df=records,
        export_name="recrutement.csv",
    )

    kpis = data["kpis"]
    kpi_row([
        ("Recrutements", kpis["total_recruits"]),
        ("Départements", kpis["departments"]),
        ("Sources", kpis["sources"]),
        ("Intérim", kpis["temporary"]),
        ("Permanents", kpis["permanent"]),
    ])

    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Par département"):
            show_chart(data["charts"].get("departments"))
        with card("Par secteur"):
            show_chart(data["charts"].get("sectors"))
    with chart_cols[1]:
        with card("Par source"):
            show_chart(data["charts"].get("sources"))
        with card("Intérim"):
            show_chart(data["charts"].get("interim"))

    with card("Par mois"):
        show_chart(data["charts"].get("months"))

    with card("Enregistrements"):
        st.dataframe(records, hide_index=True, use_container_width=True)

    render_data_quality(data["data_quality"])


def render_sortie_page():
    table = load_table("sortie")
    if table is None:
        return
    options = compute_sortie(make_filters(), table)["options"]
    with st.sidebar:
        st.markdown("### Filtres sorties")
        year = choice("Année", options["year"], key="so-year")
        month = choice("Mois", options["month"], key="so-month")
        department = choice("Département", options["department"], key="so-department")
        contract = choice("Contrat", options["contract"], key="so-contract")

    filters = make_filters(selected={"year": year, "month": month, "department": department, "contract": contract})
    data = compute_sortie(filters, table)
    records = pd.DataFrame(data["records"])
    render_page_header(
        "Sorties",
        "Accueil / Sorties",
        {"Année": year, "Mois": month, "Département": department, "Contrat": contract},
        export_df=records,
        export_name="sorties.csv",
    )

    kpis = data["kpis"]
    kpi_row([
        ("Sorties", kpis["total_exits"]),
        ("Femmes", kpis["female"]),
        ("Hommes", kpis["male"]),
        ("Types de contrat", kpis["contract_types"]),
    ])

    with card("Sorties par mois et QZ"):
        show_chart(data["charts"].get("months"))

    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Par département"):
            show_chart(data["charts"].get("departments"))
    with chart_cols[1]:
        with card("Par sexe"):
            show_chart(data["charts"].get("sex"))

    with card("Enregistrements"):
        st.dataframe(records, hide_index=True, use_container_width=True)

    render_data_quality(data["data_quality"])


def read_records(uploaded) -> List[Dict[str, Any]]:
    if uploaded is None:
        return []
    if uploaded.name.lower().endswith(".json"):
        payload = json.load(uploaded)
        return payload if isinstance(payload, list) else []
    return pd.read_csv(uploaded, dtype=str).fillna("").to_dict(orient="records")


def render_sector_page():
    with st.sidebar:
        st.markdown("### Données secteur")
        workers_file = st.file_uploader("Travailleurs (JSON ou CSV)", type=["json", "csv"], key="sector-workers")
        farms_file = st.file_uploader("Fermes (JSON ou CSV)", type=["json", "csv"], key="sector-farms")

    workers = read_records(workers_file)
    farms = read_records(farms_file)
    if not workers:
        render_page_header("Secteur", "Accueil / Secteur", {})
        st.info("Chargez un fichier de travailleurs pour afficher les statistiques du secteur.")
        return

    farm_ids = sorted({str(f.get("id", "")) for f in farms if f.get("id")})
    supervisors = {str(w.get("supervisor_id")): str(w.get("supervisor_name")) for w in workers if w.get("supervisor_id") and w.get("supervisor_name")}
    with st.sidebar:
        selected_farms = st.multiselect("Fermes", farm_ids, key="sector-farms-filter")
        period = st.date_input("Période", value=(), key="sector-range")
        year = st.number_input("Vue annuelle (année, 0 = période)", min_value=0, max_value=2100, value=0, step=1, key="sector-year")

    start, end = (period[0], period[1]) if isinstance(period, tuple) and len(period) == 2 else (None, None)
    filters = make_filters(
        selected={"farm": selected_farms},
        date_from=start.isoformat() if start else None,
        date_to=end.isoformat() if end else None,
        year=int(year) or None,
    )
    data = compute_sector(filters, workers, farms=farms, supervisors=supervisors, today=date.today())
    render_page_header(
        "Secteur",
        "Accueil / Secteur",
        {"Fermes": selected_farms, "Période": f"{data['range']['start']} → {data['range']['end']}"},
        export_df=pd.DataFrame(data["farms"]),
        export_name="secteur.csv",
    )

    kpis = data["kpis"]
    kpi_row([
        ("Travailleurs", kpis["workers"]),
        ("Âge moyen", kpis["average_age"]),
        ("Turnover", f"{kpis['turnover_rate']}%"),
        ("Fermes", kpis["farms"]),
    ])

    chart_cols = st.columns(2)
    with chart_cols[0]:
        with card("Superviseurs"):
            show_chart(data["charts"].get("supervisors"))
        with card("Âge"):
            show_chart(data["charts"].get("ages"))
    with chart_cols[1]:
        with card("Genre"):
            show_chart(data["charts"].get("gender"))
        with card("Motifs de sortie"):
            st.dataframe(pd.DataFrame(data["exit_reasons"]), hide_index=True, use_container_width=True)

    with card("Turnover"):
        show_chart(data["charts"].get("turnover"))

    with card("Fermes"):
        st.dataframe(pd.DataFrame(data["farms"]), hide_index=True, use_container_width=True)


UPLOAD_LABELS = {
    "pointage": "Pointage",
    "presence": "Présence",
    "database": "Base de données",
    "recruitment": "Recrutement",
    "temporary": "Travailleurs temporaires",
}


def render_sheet_upload(label: str, target: str):
    with card(f"Télécharger {label}"):
        uploaded = st.file_uploader("Fichier Excel ou CSV", type=["xlsx", "xls", "csv"], key=f"upload-{target}")
        if uploaded is None:
            return
        if uploaded.name.lower().endswith(".csv"):
            frame = pd.read_csv(uploaded, dtype=str).fillna("")
        else:
            frame = pd.read_excel(uploaded, dtype=str).fillna("")
        st.caption(f"{len(frame)} lignes, {len(frame.columns)} colonnes")
        st.dataframe(frame.head(20), hide_index=True, use_container_width=True)
        if not st.button("Envoyer vers Google Sheets", key=f"send-{target}"):
            return
        try:
            require_upload(store.session, target)
        except (AuthenticationError, AuthorizationError) as exc:
            st.error(str(exc))
            return
        script_url = UPLOAD_TARGETS[target]
        batches = upload_batches(script_url, list(frame.columns), frame.values.tolist())
        progress = st.progress(0)
        try:
            post_upload(clear_sheet_payload(script_url))
            for i, batch in enumerate(batches, start=1):
                post_upload(batch)
                progress.progress(i / len(batches))
        except DashboardError as exc:
            st.error(f"Erreur lors de l'envoi aux Google Sheets: {describe_error(exc)}")
            return
        progress.progress(1.0)
        st.success("Données envoyées avec succès")


def render_turnover_form():
    with card("Ajouter des données de turnover"):
        with st.form("turnover-form", clear_on_submit=True):
            c1, c2 = st.columns(2)
            form = {
                "mois": c1.text_input("Mois (AAAA-MM)"),
                "baja": c2.text_input("Baja"),
                "group": c1.text_input("Groupe"),
                "contrat": c2.text_input("Contrat"),
                "effectif1": c1.text_input("Effectif début"),
                "effectif2": c2.text_input("Effectif fin"),
            }
            submitted = st.form_submit_button("Soumettre")
        if submitted:
            try:
                require_upload(store.session, "turnover_form")
                post_upload(turnover_form_payload(UPLOAD_TARGETS["turnover_form"], form))
                st.success("Données de turnover ajoutées avec succès")
            except (AuthenticationError, AuthorizationError, ValueError) as exc:
                st.error(str(exc))
            except DashboardError as exc:
                st.error(describe_error(exc))


def render_admin_page():
    session = store.session
    if session is None:
        render_page_header("Administration", "Accueil / Administration", {})
        st.info("Connectez-vous depuis la barre latérale pour accéder à l'administration.")
        return
    render_page_header("Administration", f"Accueil {admin_path(session.permission)}", {"Accès": session.permission.value})
    targets = allowed_uploads(session)
    for target in targets:
        if target in UPLOAD_LABELS:
            render_sheet_upload(UPLOAD_LABELS[target], target)
    if "turnover_form" in targets:
        render_turnover_form()


if current_page == "Accueil":
    render_home_page()
elif current_page == "Présence":
    render_attendance_page()
elif current_page == "Performance":
    render_performance_page()
elif current_page == "Effectif":
    render_workforce_page()
elif current_page == "Turnover":
    render_turnover_page()
elif current_page == "Recrutement":
    render_recruitment_page()
elif current_page == "Sorties":
    render_sortie_page()
elif current_page == "Secteur":
    render_sector_page()
else:
    render_admin_page()
