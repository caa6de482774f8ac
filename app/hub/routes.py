from flask import Blueprint, Response, abort, current_app, render_template

from app.hub.db import db_session
from app.hub.modules.alliances.models import Alliance
from app.hub.modules.alliances.service import list_alliances
from app.hub.modules.applications.service import approved_players
from app.hub.modules.state_info.service import active_sections

bp = Blueprint("routes", __name__)

PUBLIC_PATHS = ("/", "/about", "/apply", "/contact")


@bp.get("/")
def index():
    s = db_session()
    return render_template(
        "public/index.html",
        alliances=list_alliances(s, limit=3),
        sections=active_sections(s),
        approved=approved_players(s, limit=20),
    )


@bp.get("/about")
def about():
    s = db_session()
    return render_template("public/about.html", sections=active_sections(s))


@bp.get("/alliances/<int:alliance_id>")
def alliance_page(alliance_id: int):
    s = db_session()
    alliance = s.get(Alliance, alliance_id)
    if not alliance:
        abort(404)
    return render_template("public/alliance.html", alliance=alliance)


@bp.get("/apply")
def apply():
    s = db_session()
    return render_template("public/apply.html", alliances=list_alliances(s))


@bp.get("/apply/success")
def apply_success():
    return render_template("public/apply_success.html")


@bp.get("/contact")
def contact():
    return render_template("public/contact.html")


@bp.get("/robots.txt")
def robots():
    base = current_app.config.get("APP_URL") or ""
    lines = [
        "User-agent: *",
        "Allow: /",
        "Disallow: /api/",
        "Disallow: /admin/",
        "Disallow: /dashboard",
        f"Sitemap: {base}/sitemap.xml",
    ]
    return Response("\n".join(lines) + "\n", mimetype="text/plain")


@bp.get("/sitemap.xml")
def sitemap():
    s = db_session()
    base = current_app.config.get("APP_URL") or ""
    urls = [f"{base}{p}" for p in PUBLIC_PATHS]
    urls += [f"{base}/alliances/{a.id}" for a in list_alliances(s)]
    body = render_template("sitemap.xml", urls=urls)
    return Response(body, mimetype="application/xml")


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for load balancer probes. No DB access, minimal overhead.
    """
    return "ok", 200
