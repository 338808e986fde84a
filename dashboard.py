"""
dashboard.py — Streamlit live dashboard for the regime turn simulation.

Launch:
    streamlit run dashboard.py

Reads only dashboard_data.json — no sim modules imported.
Auto-refreshes at 2 FPS via streamlit-autorefresh (falls back to a
manual Refresh button when the package is not installed).
"""

import json
import pathlib
import numpy as np
import streamlit as st
import plotly.graph_objects as go
import plotly.express as px

# ── Optional: streamlit-autorefresh for 2-FPS polling ────────────────────
try:
    from streamlit_autorefresh import st_autorefresh as _st_autorefresh
    _HAS_AUTOREFRESH = True
except ImportError:
    _HAS_AUTOREFRESH = False

DATA_PATH = pathlib.Path("dashboard_data.json")

# ── Regime-type palette ───────────────────────────────────────────────────
_TYPE_COLORS = {
    'Democratic':    '#66ECFF',
    'Authoritarian': '#FF4B4B',
    'Tribal':        '#FFB347',
    'aNarchic':      '#AAAAAA',
}

# Up to 10 distinct regime line colours
_REGIME_COLORS = [
    '#FF4B4B', '#FFB347', '#FAFF66', '#66FF99',
    '#66ECFF', '#6699FF', '#CC66FF', '#FF66C0',
    '#FFFFFF', '#AAAAAA',
]


# ══════════════════════════════════════════════════════════════════════════
# Data loading — TTL-cached so we don't hammer disk on every Streamlit run
# ══════════════════════════════════════════════════════════════════════════

@st.cache_data(ttl=2)
def _read_json(mtime: float) -> dict | None:          # mtime is the cache-bust key
    try:
        return json.loads(DATA_PATH.read_text(encoding='utf-8'))
    except (FileNotFoundError, json.JSONDecodeError):
        return None


def load_data() -> dict | None:
    try:
        mtime = DATA_PATH.stat().st_mtime
    except FileNotFoundError:
        return None
    return _read_json(mtime)


# ══════════════════════════════════════════════════════════════════════════
# Price heat-map
# ══════════════════════════════════════════════════════════════════════════

def price_matrix(data: dict) -> np.ndarray:
    """Regime × category matrix of log10 prices."""
    rows = [r['prices'] for r in data.get('regimes', [])]
    if not rows:
        return np.zeros((0, len(data.get('categories', []))))
    return np.log10(np.clip(np.asarray(rows, dtype=float), 1e-2, None))


def build_price_map(data: dict) -> go.Figure:
    """Heat-map of log10 price per regime (rows) and category (columns)."""
    mat   = price_matrix(data)
    names = [r['name'] for r in data.get('regimes', [])]
    fig = px.imshow(
        mat,
        x=data.get('categories', []),
        y=names,
        color_continuous_scale='RdYlGn',
        color_continuous_midpoint=0.0,
        aspect='auto',
        labels=dict(color='log10 price'),
    )
    fig.update_layout(
        paper_bgcolor='#0e1117',
        plot_bgcolor='#0e1117',
        font=dict(color='white'),
        margin=dict(l=0, r=0, t=10, b=0),
        height=380,
    )
    return fig


# ══════════════════════════════════════════════════════════════════════════
# Wealth time-series figure
# ══════════════════════════════════════════════════════════════════════════

def build_wealth_chart(data: dict) -> go.Figure:
    """Line chart: wealth over time for the five richest living regimes."""
    history = data.get('wealth_history', [])
    top5    = [r['name'] for r in data.get('regimes', [])[:5]]

    fig = go.Figure()
    for idx, name in enumerate(top5):
        color  = _REGIME_COLORS[idx % len(_REGIME_COLORS)]
        turns_ = [h['turn']           for h in history if name in h['wealth']]
        vals_  = [h['wealth'][name]   for h in history if name in h['wealth']]
        if not turns_:
            continue
        fig.add_trace(go.Scatter(
            x=turns_, y=vals_,
            mode='lines',
            line=dict(color=color, width=2),
            name=name,
            hovertemplate=f'<b>{name}</b>: %{{y:.2f}}<br>Turn %{{x}}<extra></extra>',
        ))

    # Collapse threshold reference
    fig.add_hline(
        y=0.08,
        line_dash='dot',
        line_color='#ff4444',
        opacity=0.6,
        annotation_text='  collapse',
        annotation_position='right',
        annotation_font_color='#ff4444',
        annotation_font_size=11,
    )

    fig.update_layout(
        title=dict(text='Regime Wealth Over Time',
                   font=dict(color='#dddddd', size=13), x=0.0),
        paper_bgcolor='#0e1117',
        plot_bgcolor='#111827',
        font=dict(color='white'),
        xaxis=dict(title='Turn', gridcolor='#1e2233', zeroline=False,
                   tickfont=dict(size=10)),
        yaxis=dict(title='Wealth', range=[0, 5.2], gridcolor='#1e2233'),
        legend=dict(bgcolor='rgba(0,0,0,0)', font=dict(color='white', size=11)),
        margin=dict(l=50, r=60, t=40, b=50),
        height=320,
    )
    return fig


def fundamentals_rows(data: dict) -> list:
    return [
        {
            'Name': ('★ ' if r.get('player') else '') + r['name'],
            'Type': r['type'],
            'CI': r['ci'], 'Land': r['LS'], 'PopDen': r['PD'],
            'EconAct': r['EA'], 'TechAdv': r['TA'], 'PolStab': r['PS'],
            'Wealth': r['wealth'], 'Trade': r['tradeOpen'],
        }
        for r in data.get('regimes', [])
    ]


# ══════════════════════════════════════════════════════════════════════════
# Page config — must be first Streamlit call
# ══════════════════════════════════════════════════════════════════════════

st.set_page_config(
    page_title='Regime Sim — Live Dashboard',
    page_icon='🏛',
    layout='wide',
    initial_sidebar_state='expanded',
)

# Inject minimal dark-mode polish
st.markdown("""
<style>
[data-testid="stTextArea"] textarea {
    font-family: 'Courier New', monospace;
    font-size: 11px;
    background: #0a0e17;
    color: #a8c8a8;
    border: 1px solid #2a3040;
}
[data-testid="metric-container"] {
    background: #111827;
    border-radius: 8px;
    padding: 10px 16px;
    margin-bottom: 6px;
}
</style>
""", unsafe_allow_html=True)

# ── Auto-refresh: 500 ms = 2 FPS ─────────────────────────────────────────
if _HAS_AUTOREFRESH:
    _st_autorefresh(interval=500, key='sim_autorefresh')

# ── Load data ─────────────────────────────────────────────────────────────
data = load_data()

# ══════════════════════════════════════════════════════════════════════════
# Sidebar
# ══════════════════════════════════════════════════════════════════════════

with st.sidebar:
    st.title('🏛 Regime Sim')
    st.caption('Turn Simulation · Live Monitor')

    if not _HAS_AUTOREFRESH:
        if st.button('⟳  Refresh', use_container_width=True):
            st.cache_data.clear()
            st.rerun()
        st.caption('Auto-refresh unavailable.\n`pip install streamlit-autorefresh`')

    st.divider()

    if data is None:
        st.warning(
            '**Waiting for simulation data…**\n\n'
            'Run the simulation first:\n\n```\npython -m polity_sim --dashboard\n```\n\n'
            'The dashboard file is written every 5 turns.'
        )
    else:
        G = data.get('globals', {})
        st.metric('⏱  Turn',           f'{data["turn"]:,}')
        st.metric('🏛  Regimes',        str(data['alive']))
        st.metric('⚡ Turn Rate',       f'{data["turn_rate"]:.2f} t/s')
        st.metric('🤝 Alliances',       str(len(data.get('alliances', []))))
        st.metric('💀 Fallen',          str(len(data.get('fallen', {}))))

        st.divider()
        st.subheader('Global Signals')
        for key, label in [('GG', 'Growth'), ('IR', 'Interest'), ('RA', 'Risk aversion'),
                           ('ES', 'Energy shock'), ('TS', 'Tech shock'), ('CS', 'Climate shock')]:
            st.markdown(f'**{label}** ({key}): `{G.get(key, 0.0):+.3f}`')

        st.divider()
        st.subheader('Regime Types')
        for r in data.get('regimes', []):
            color = _TYPE_COLORS.get(r['type'], '#FFFFFF')
            st.markdown(
                f'<span style="color:{color}">●</span> '
                f'**{r["name"]}** {r["type"]}  \n'
                f'&nbsp;&nbsp;&nbsp;wealth {r["wealth"]:.2f} · stab {r["PS"]:.2f}',
                unsafe_allow_html=True,
            )

# ══════════════════════════════════════════════════════════════════════════
# Main panel
# ══════════════════════════════════════════════════════════════════════════

if data is None:
    st.info(
        '**dashboard_data.json** not found yet.  \n'
        'Start the simulation (`python -m polity_sim --dashboard`) and the first '
        'snapshot appears after turn 5.'
    )
    st.stop()

# Header bar
st.markdown(
    f'### Turn **{data["turn"]:,}** &nbsp;·&nbsp; '
    f'{data["alive"]} regimes &nbsp;·&nbsp; '
    f'{data["turn_rate"]:.2f} t/s &nbsp;·&nbsp; '
    f'world {data.get("world_id", "?")}',
    unsafe_allow_html=True,
)

col_map, col_right = st.columns([3, 2], gap='medium')

with col_map:
    st.subheader('Market Prices')
    st.plotly_chart(
        build_price_map(data),
        use_container_width=True,
        key='price_map',
        config={'displayModeBar': False},
    )
    st.subheader('Fundamentals')
    st.dataframe(fundamentals_rows(data), use_container_width=True, hide_index=True)

with col_right:
    st.plotly_chart(
        build_wealth_chart(data),
        use_container_width=True,
        key='wealth_chart',
        config={'displayModeBar': False},
    )

    st.subheader('Event Feed')
    events    = list(reversed(data.get('event_tail', [])))
    event_txt = '\n'.join(events[:30])
    st.text_area(
        label='Events',
        value=event_txt,
        height=215,
        disabled=True,
        key='event_feed',
        label_visibility='collapsed',
    )
