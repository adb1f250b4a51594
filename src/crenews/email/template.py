"""
Newsletter rendering with Jinja2.

Templates live in crenews/templates/ and are loaded from the installed
package, so rendering works regardless of the working directory.
"""

from datetime import datetime
from functools import lru_cache
from urllib.parse import urlencode

from jinja2 import Environment, PackageLoader, select_autoescape

from crenews.email.transport import EmailContent
from crenews.subscribers import Subscriber, format_interests


@lru_cache(maxsize=1)
def get_template_env() -> Environment:
    return Environment(
        loader=PackageLoader("crenews", "templates"),
        autoescape=select_autoescape(["html", "html.j2"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def format_subject(title: str, run_date: datetime) -> str:
    return f"{run_date:%b %d} - {title}"


def render_newsletter(
    subscriber: Subscriber,
    national: list[dict],
    local: list[dict],
    title: str,
    run_date: datetime,
    base_url: str,
) -> EmailContent:
    """Render the HTML and plain-text bodies of one subscriber's digest."""
    env = get_template_env()
    base_url = base_url.rstrip("/")

    context = {
        "title": title,
        "date": run_date.strftime("%B %d, %Y"),
        "first_name": subscriber.first_name,
        "interests": format_interests(subscriber.interests),
        "national": national,
        "local": local,
        "unsubscribe_url": f"{base_url}/unsubscribe?{urlencode({'email': subscriber.email})}",
    }

    return EmailContent(
        subject=format_subject(title, run_date),
        html=env.get_template("newsletter.html.j2").render(**context),
        text=env.get_template("newsletter.txt.j2").render(**context),
    )
