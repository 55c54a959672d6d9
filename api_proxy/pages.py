"""
HTML for the dashboard and the login form.
"""

import datetime
from html import escape
from typing import Optional

from api_proxy.config import ProxyConfig

_STYLE = """
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
       margin: 0; min-height: 100vh; background: #1d2430; color: #f4f6f8; }
main { max-width: 1100px; margin: 0 auto; padding: 32px 20px; }
h1 { margin-bottom: 4px; }
.cards { display: flex; flex-wrap: wrap; gap: 20px; margin-top: 24px; }
.card { background: rgba(255, 255, 255, 0.08); border-radius: 12px; padding: 16px 20px;
        flex: 1 1 320px; max-width: 520px; }
.card h3 { display: flex; justify-content: space-between; margin: 0 0 12px; }
.badge { background: #00ff87; color: #000; border-radius: 20px; padding: 2px 10px; font-size: 0.8rem; }
code { background: rgba(255, 255, 255, 0.12); padding: 2px 6px; border-radius: 4px; }
.login { max-width: 380px; margin: 12vh auto; background: #fff; color: #333;
         border-radius: 12px; padding: 30px 40px; text-align: center; }
.login form { display: flex; flex-direction: column; }
.login input { padding: 12px; margin-bottom: 16px; border: 1px solid #ccc; border-radius: 6px; }
.login button { padding: 12px; background: #007bff; color: #fff; border: none; border-radius: 6px; }
.error-message { color: #dc3545; font-weight: bold; margin-top: 15px; }
footer { margin-top: 40px; opacity: 0.7; font-size: 0.9rem; text-align: center; }
"""


def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n"
        f"<title>{escape(title)}</title>\n"
        '<meta charset="UTF-8">\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f"<style>{_STYLE}</style>\n</head>\n<body>\n{body}\n</body>\n</html>\n"
    )


def render_dashboard(config: ProxyConfig) -> str:
    cards = []
    for entry in config.routes:
        proxy_url = f"https://{config.domain}{entry.prefix}"
        cards.append(
            '<div class="card">'
            f'<h3>{escape(entry.prefix)} <span class="badge">online</span></h3>'
            f"<p><strong>Proxy URL:</strong> <code>{escape(proxy_url)}</code></p>"
            f"<p><strong>Origin:</strong> <code>{escape(entry.origin)}</code></p>"
            "</div>"
        )
    year = datetime.date.today().year
    body = (
        "<main>"
        "<h1>API Proxy Dashboard</h1>"
        "<p>Available proxy routes</p>"
        f'<div class="cards">{"".join(cards)}</div>'
        f"<footer>&copy; {year} API Proxy</footer>"
        "</main>"
    )
    return _page("API Proxy Dashboard", body)


def render_login_page(
    config: ProxyConfig, redirect_to: str = "/", error: Optional[str] = None
) -> str:
    error_html = f'<p class="error-message">{escape(error)}</p>' if error else ""
    body = (
        '<div class="login">'
        "<h2>Login required</h2>"
        "<p>Enter the password to access the API proxy.</p>"
        f'<form action="{escape(config.login_path)}" method="post">'
        '<label for="password">Password</label>'
        '<input type="password" id="password" name="password" required>'
        f'<input type="hidden" name="redirect_to" value="{escape(redirect_to)}">'
        '<button type="submit">Log in</button>'
        "</form>"
        f"{error_html}"
        "</div>"
    )
    return _page("Login required", body)
