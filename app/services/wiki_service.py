"""Wiki service — write wiki pages and notify about the change.

Functions flush but do NOT commit — the caller commits.
"""

import logging

from app.extensions import db
from app.models.wiki import Wiki, WikiContent, WikiPage
from app.services import notification_service

logger = logging.getLogger(__name__)


def save_page(project, title, text, author, comments=None):
    """Create the page ``title`` or update its text.

    A new page notifies as wiki_content_added; an edit notifies as
    wiki_content_updated, and only when the text actually changed.

    Returns:
        The page's WikiContent.

    Raises:
        PermissionError: If ``author`` may not edit wiki pages.
        ValueError: If the title is blank.
    """
    if not author.allowed_to("edit_wiki_pages", project):
        raise PermissionError("Not allowed to edit wiki pages of this project.")
    title = (title or "").strip()
    if not title:
        raise ValueError("Title is required.")

    wiki = project.wiki
    if wiki is None:
        wiki = Wiki(project=project, start_page=title)
        db.session.add(wiki)
        db.session.flush()

    page = wiki.find_page(title)
    if page is None:
        page = WikiPage(wiki=wiki, title=title)
        content = WikiContent(page=page, author=author, text=text or "", comments=comments)
        db.session.add_all([page, content])
        db.session.flush()
        logger.info(f"Wiki page '{title}' added to {project.identifier}")
        notification_service.wiki_content_added(content)
        return content

    content = page.content
    if content is None:
        content = WikiContent(page=page, author=author, text="")
        db.session.add(content)
    text_changed = content.text != (text or "")
    content.text = text or ""
    content.comments = comments
    content.author = author
    if text_changed:
        content.version += 1
    db.session.flush()
    notification_service.wiki_content_updated(content, text_changed=text_changed)
    return content
