"""
Chart-Figuren (Plotly) für den Report.

Reine Daten-Senke: nimmt eine ReportSummary und baut Figuren, rechnet
nichts neu.
"""

from __future__ import annotations

from typing import Optional

import plotly.graph_objects as go

from profittracker.reports.summary import ReportSummary

POSITIVE = '#10b981'
NEGATIVE = '#ef4444'
LINE = '#3b82f6'


def _base_layout(fig: go.Figure, title: str) -> go.Figure:
    fig.update_layout(
        title=dict(text=title, font=dict(size=14)),
        paper_bgcolor='rgba(15,23,42,0.95)',
        plot_bgcolor='rgba(15,23,42,0.95)',
        font=dict(color='#cbd5e1', family='Arial'),
        hovermode='closest',
        showlegend=False,
        xaxis=dict(gridcolor='rgba(255,255,255,0.05)'),
        yaxis=dict(gridcolor='rgba(255,255,255,0.08)', ticksuffix=' USDT'),
        margin=dict(l=40, r=20, t=50, b=40),
    )
    return fig


def profit_by_bot_figure(summary: ReportSummary) -> Optional[go.Figure]:
    """Balken: Profit pro Bot im Zeitraum."""
    if summary.by_bot.empty:
        return None
    values = [float(v) for v in summary.by_bot['profit']]
    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=list(summary.by_bot['botName']),
        y=values,
        marker=dict(color=[POSITIVE if v >= 0 else NEGATIVE for v in values]),
        hovertemplate='<b>%{x}</b><br>Profit: %{y:.2f} USDT<extra></extra>'
    ))
    return _base_layout(fig, 'Profit pro Bot')


def profit_by_date_figure(summary: ReportSummary) -> Optional[go.Figure]:
    """Linie: Profit pro Tag (TT.MM)."""
    if summary.by_date.empty:
        return None
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=list(summary.by_date['label']),
        y=[float(v) for v in summary.by_date['profit']],
        mode='lines+markers',
        line=dict(color=LINE, width=2.5, shape='spline'),
        marker=dict(color='#f59e0b', size=7),
        hovertemplate='<b>%{x}</b><br>Profit: %{y:.2f} USDT<extra></extra>'
    ))
    return _base_layout(fig, 'Profit pro Tag')
