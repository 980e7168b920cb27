from fastapi import APIRouter, Depends, Request
from typing import Dict, Any, Callable, List
from grafica.api.deps import get_owner, get_store
from grafica.db.session import get_session
from grafica.models.service import STATUS_CANCELLED, STATUS_DONE, STATUS_IN_PRODUCTION, STATUS_QUOTE
from grafica.services.dao import ClientsDAO, ServicesDAO
from grafica.services.store import AppStore
from grafica.utils.datetime import format_date
import logging
from html import escape
from starlette.responses import HTMLResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def compute_metrics(services: List[Dict[str, Any]], total_clients: int) -> Dict[str, Any]:
    billable = [s for s in services if s.get("status") != STATUS_CANCELLED]
    revenue = sum(s.get("price") or 0 for s in billable)
    cost = sum(s.get("total_cost") or 0 for s in billable)
    profit = revenue - cost
    return {
        "total_clients": total_clients,
        "total_services": len(services),
        "quotes": sum(1 for s in services if s.get("status") == STATUS_QUOTE),
        "production": sum(1 for s in services if s.get("status") == STATUS_IN_PRODUCTION),
        "completed": sum(1 for s in services if s.get("status") == STATUS_DONE),
        "revenue": revenue,
        "cost": cost,
        "profit": profit,
        "margin": profit / revenue if revenue > 0 else 0.0,
    }


def _wants_html(request: Request) -> bool:
    return 'text/html' in request.headers.get('accept', '')


def _render_summary_html(m: Dict[str, Any], cards: List[str], company: str, currency: str) -> str:
    values = {
        "revenue": ("Revenue", f"{currency} {m['revenue']:.2f}"),
        "cost": ("Cost", f"{currency} {m['cost']:.2f}"),
        "profit": ("Profit", f"{currency} {m['profit']:.2f}"),
        "margin": ("Margin", f"{m['margin'] * 100:.1f}%"),
        "production": ("In production", str(m["production"])),
        "quotes": ("Open quotes", str(m["quotes"])),
    }
    card_html = ''.join(
        f'<div class="card"><div class="title">{values[c][0]}</div><div class="value">{values[c][1]}</div></div>'
        for c in cards if c in values
    )
    return f"""
<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>{escape(company)} · Dashboard</title>
  <style>
    body {{ font-family: Inter, system-ui, -apple-system, 'Segoe UI', Roboto, 'Helvetica Neue', Arial; background:#f3f4f6; padding:24px; }}
    .container {{ max-width:1100px; margin:0 auto; }}
    .cards {{ display:flex; flex-wrap:wrap; gap:16px; margin-bottom:20px; }}
    .card {{ background:white;padding:20px;border-radius:8px; box-shadow:0 1px 3px rgba(0,0,0,0.06); flex:1; min-width:160px }}
    .title {{ color:#6b7280; font-size:13px }}
    .value {{ font-size:28px; font-weight:700; margin-top:6px }}
    .nav {{ margin-bottom:18px }}
    .nav a {{ margin-right:12px; color:#2563eb; text-decoration:none }}
  </style>
</head>
<body>
  <div class="container">
    <div class="nav"><a href="/dashboard/summary">Dashboard</a> <a href="/dashboard/services">Services</a> <a href="/dashboard/stats">Stats</a></div>
    <h1>{escape(company)}</h1>
    <p>{m['total_clients']} clients · {m['total_services']} services · {m['completed']} completed</p>
    <div class="cards">{card_html}</div>
  </div>
</body>
</html>
"""


def _load(owner: Callable):
    session = get_session()
    try:
        services = ServicesDAO(session, owner).list()
        clients = ClientsDAO(session, owner).list()
    finally:
        session.close()
    return services, clients


@router.get("/summary")
def summary(request: Request, owner: Callable = Depends(get_owner), store: AppStore = Depends(get_store)) -> Any:
    services, clients = _load(owner)
    metrics = compute_metrics(services, len(clients))
    logger.debug("Dashboard metrics: %s", metrics)

    if _wants_html(request):
        state = store.get_state()
        settings = state["settings"]
        html = _render_summary_html(
            metrics,
            settings.get("dashboard_cards") or [],
            settings.get("company_name") or "",
            state["currency"],
        )
        return HTMLResponse(content=html)

    return metrics


@router.get("/services")
def services(request: Request, owner: Callable = Depends(get_owner), store: AppStore = Depends(get_store)):
    rows, _ = _load(owner)
    result = []
    for s in rows:
        result.append({
            "id": s["id"],
            "name": s["name"],
            "client": (s.get("client") or {}).get("name"),
            "status": s["status"],
            "price": s["price"],
            "margin": s["margin"],
            "due_date": s.get("due_date"),
            "created_at": s.get("created_at"),
        })

    if _wants_html(request):
        locale = store.get_state()["locale"]
        rows_html = ''.join([
            f"<tr><td>{escape(r['name'])}</td><td>{escape(r['client'] or '-')}</td><td>{escape(r['status'])}</td>"
            f"<td>{r['price']:.2f}</td><td>{r['margin'] * 100:.1f}%</td>"
            f"<td>{format_date(r['due_date'], locale)}</td><td>{format_date(r['created_at'], locale)}</td></tr>"
            for r in result
        ])
        html = f"""
<!doctype html>
<html><head><meta charset='utf-8' /><title>Services</title>
<style>body{{font-family:Inter,system-ui, -apple-system, 'Segoe UI', Roboto; background:#f3f4f6; padding:24px}} table{{width:100%; border-collapse:collapse; background:white}}th,td{{padding:12px;border-bottom:1px solid #eef2f7}}thead{{background:#f9fafb}}</style>
</head><body><div class='container'><h1>Services</h1><table><thead><tr><th>Name</th><th>Client</th><th>Status</th><th>Price</th><th>Margin</th><th>Due</th><th>Created</th></tr></thead><tbody>{rows_html}</tbody></table></div></body></html>
"""
        return HTMLResponse(content=html)

    return result


@router.get("/stats")
def stats(request: Request, owner: Callable = Depends(get_owner)):
    rows, _ = _load(owner)
    by_status: Dict[str, int] = {}
    for s in rows:
        by_status[s["status"] or "unknown"] = by_status.get(s["status"] or "unknown", 0) + 1

    if _wants_html(request):
        items = ''.join([f"<li><strong>{escape(k)}</strong>: {v}</li>" for k, v in by_status.items()])
        html = f"""
<!doctype html>
<html><head><meta charset='utf-8' /><title>Stats</title>
<style>body{{font-family:Inter,system-ui, -apple-system, 'Segoe UI', Roboto; background:#f3f4f6; padding:24px}} ul{{background:white;padding:20px;border-radius:8px;}}</style>
</head><body><div class='container'><h1>Stats</h1><ul>{items}</ul></div></body></html>
"""
        return HTMLResponse(content=html)

    return {"by_status": by_status}
