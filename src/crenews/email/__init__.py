"""Newsletter rendering and delivery."""

from crenews.email.template import render_newsletter
from crenews.email.transport import EmailContent, EmailTransport

__all__ = ["EmailContent", "EmailTransport", "render_newsletter"]
