"""
commitboard.engine.transform — Chat message → safe HTML pipeline
=================================================================

Stages, in order:

1. Parse Markdown with ``markdown-it-py`` (raw HTML disabled, so any
   markup in the message is escaped rather than honoured).
2. Autolink bare URLs (``linkify``).
3. Sanitise the HTML tree against a tag/attribute allow-list.
4. Replace Discord mention tokens with resolved, styled elements.  All
   lookups of one document run concurrently, once per distinct entity.
5. Collapse plain source-host links into compact ``owner/repo`` badges.
6. Force ``target="_blank"`` and ``rel="nofollow noopener noreferrer"``
   on every link.

Stages 3–6 operate on a BeautifulSoup tree and are plain functions, so
a :class:`ContentRenderer` can be built with a different stage list.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import re
from collections.abc import Awaitable, Callable, Sequence

from bs4 import BeautifulSoup, NavigableString, Tag
from markdown_it import MarkdownIt

from commitboard.engine.mentions import (
    ChannelMention,
    EmojiMention,
    Mention,
    RoleMention,
    TimestampMention,
    UserMention,
    format_timestamp,
    has_mentions,
    tokenize,
)
from commitboard.services.discord_service import (
    DiscordResolver,
    Found,
    display_name,
    role_color_hex,
)

__all__ = [
    "ContentRenderer",
    "abbreviate_rev",
    "add_link_attributes",
    "markdown_to_soup",
    "rewrite_git_links",
    "sanitize",
    "substitute_mentions",
]

Stage = Callable[[BeautifulSoup, DiscordResolver], Awaitable[None] | None]

DEFAULT_GIT_HOST = "github.com"
LINK_REL = ("nofollow", "noopener", "noreferrer")

_md = (
    MarkdownIt("commonmark", {"html": False, "linkify": True})
    .enable(["linkify", "strikethrough", "table"])
)


# ---------------------------------------------------------------------------
# 1 + 2. Markdown → tree
# ---------------------------------------------------------------------------
def markdown_to_soup(markdown: str) -> BeautifulSoup:
    return BeautifulSoup(_md.render(markdown), "html.parser")


# ---------------------------------------------------------------------------
# 3. Sanitiser
# ---------------------------------------------------------------------------
ALLOWED_TAGS: frozenset[str] = frozenset({
    "a", "b", "blockquote", "br", "code", "del", "em", "h1", "h2", "h3",
    "h4", "h5", "h6", "hr", "i", "img", "li", "ol", "p", "pre", "s",
    "strong", "sub", "sup", "table", "tbody", "td", "th", "thead", "tr", "ul",
})

# Removed together with their content.
DROPPED_TAGS: frozenset[str] = frozenset({
    "script", "style", "iframe", "object", "embed", "template", "noscript",
})

ALLOWED_ATTRIBUTES: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "title"}),
    "img": frozenset({"src", "alt", "title"}),
    "code": frozenset({"class"}),
    "ol": frozenset({"start"}),
}

_SAFE_URL = re.compile(r"^(?:https?:|mailto:|[^:/?#]*(?:[/?#]|$))", re.IGNORECASE)
_LANGUAGE_CLASS = re.compile(r"^language-[\w+-]+$")


def sanitize(soup: BeautifulSoup, resolver: DiscordResolver | None = None) -> None:
    """Strip everything outside the allow-list, in place.

    Unknown tags are unwrapped (their text survives); dangerous containers
    are removed outright; URLs must be http(s), mailto or relative.
    """
    for tag in soup.find_all(True):
        if tag.decomposed:
            continue
        if tag.name in DROPPED_TAGS:
            tag.decompose()
            continue
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue

        allowed = ALLOWED_ATTRIBUTES.get(tag.name, frozenset())
        for attr in list(tag.attrs):
            if attr not in allowed:
                del tag[attr]

        for url_attr in ("href", "src"):
            value = tag.get(url_attr)
            if value is not None and not _SAFE_URL.match(value.strip()):
                del tag[url_attr]

        if tag.name == "code" and tag.get("class"):
            classes = [c for c in tag["class"] if _LANGUAGE_CLASS.match(c)]
            if classes:
                tag["class"] = classes
            else:
                del tag["class"]


# ---------------------------------------------------------------------------
# 4. Discord mentions
# ---------------------------------------------------------------------------
_NO_SUBSTITUTION_PARENTS = frozenset({"code", "pre"})


def _in_code(node: NavigableString) -> bool:
    return any(parent.name in _NO_SUBSTITUTION_PARENTS for parent in node.parents)


async def _hydrate(
    soup: BeautifulSoup, mention: Mention, resolver: DiscordResolver
) -> Tag:
    """Build the element for one mention, looking it up when needed."""
    if isinstance(mention, UserMention):
        user = await resolver.get_user(mention.id)
        name = display_name(user.value) if isinstance(user, Found) else "user"
        el = soup.new_tag("span", attrs={"class": "mention mention-user"})
        el.string = f"@{name}"
    elif isinstance(mention, ChannelMention):
        channel = await resolver.get_channel(mention.id)
        name = (channel.value.get("name") if isinstance(channel, Found) else None) or "channel"
        el = soup.new_tag("span", attrs={"class": "mention mention-channel"})
        el.string = f"#{name}"
    elif isinstance(mention, RoleMention):
        role = await resolver.get_role(mention.id)
        attrs = {"class": "mention mention-role"}
        name = "role"
        if isinstance(role, Found):
            name = role.value.get("name") or "role"
            color = role_color_hex(role.value)
            if color:
                attrs["style"] = f"color: {color}; background: {color}20;"
        el = soup.new_tag("span", attrs=attrs)
        el.string = f"@{name}"
    elif isinstance(mention, EmojiMention):
        el = soup.new_tag(
            "img",
            attrs={"src": mention.url, "alt": f":{mention.name}:", "class": "discord-emoji"},
        )
    elif isinstance(mention, TimestampMention):
        attrs = {}
        try:
            attrs["datetime"] = mention.instant.isoformat()
        except (OverflowError, OSError, ValueError):
            pass
        el = soup.new_tag("time", attrs=attrs)
        el.string = format_timestamp(mention)
    else:
        raise TypeError(f"unsupported mention type: {type(mention).__name__}")
    return el


async def substitute_mentions(soup: BeautifulSoup, resolver: DiscordResolver) -> None:
    """Replace mention tokens in every text node, resolving each entity once."""
    placeholders: list[tuple[Tag, Mention]] = []

    for node in list(soup.find_all(string=True)):
        if type(node) is not NavigableString or _in_code(node):
            continue
        if not has_mentions(str(node)):
            continue

        replacements: list[NavigableString | Tag] = []
        for part in tokenize(str(node)):
            if isinstance(part, str):
                replacements.append(NavigableString(part))
            else:
                placeholder = soup.new_tag("span")
                placeholders.append((placeholder, part))
                replacements.append(placeholder)
        node.replace_with(*replacements)

    if not placeholders:
        return

    distinct = list(dict.fromkeys(mention for _, mention in placeholders))
    elements = await asyncio.gather(*(_hydrate(soup, m, resolver) for m in distinct))
    rendered = dict(zip(distinct, elements))

    for placeholder, mention in placeholders:
        placeholder.replace_with(copy.copy(rendered[mention]))


# ---------------------------------------------------------------------------
# 5. Source-host link badges
# ---------------------------------------------------------------------------
_HOST = r"^https?://(?P<domain>[^/]+)/(?P<user>[^/]+)/(?P<repo>[^/]+)"
COMMIT_PATTERN = re.compile(_HOST + r"/commit/(?P<sha>[a-f0-9]+)$", re.IGNORECASE)
DIFF_PATTERN = re.compile(
    _HOST + r"/compare/(?P<from_rev>.+?)(?P<dots>\.\.\.?)(?P<to_rev>.+)$", re.IGNORECASE
)
ISSUE_PULL_PATTERN = re.compile(_HOST + r"/(?:pull|issues)/(?P<num>\d+)$", re.IGNORECASE)
REPO_PATTERN = re.compile(_HOST + r"$", re.IGNORECASE)

_FULL_SHA = re.compile(r"[0-9a-f]{40}", re.IGNORECASE)


def abbreviate_rev(rev: str) -> str:
    """Shorten a full 40-hex commit SHA to 7 characters; leave refs alone."""
    if _FULL_SHA.fullmatch(rev):
        return rev[:7]
    return rev


def _repo_label(domain: str, user: str, repo: str) -> str:
    if domain.lower() == DEFAULT_GIT_HOST:
        return f"{user}/{repo}"
    return f"{domain}:{user}/{repo}"


def _badge_parts(href: str) -> list[tuple[str, str]] | None:
    if match := COMMIT_PATTERN.match(href):
        return [
            ("github-repo", _repo_label(match["domain"], match["user"], match["repo"])),
            ("github-sha", abbreviate_rev(match["sha"])),
        ]
    if match := DIFF_PATTERN.match(href):
        revs = f"{abbreviate_rev(match['from_rev'])}{match['dots']}{abbreviate_rev(match['to_rev'])}"
        return [
            ("github-repo", _repo_label(match["domain"], match["user"], match["repo"])),
            ("github-sha", revs),
        ]
    if match := ISSUE_PULL_PATTERN.match(href):
        return [
            ("github-repo", _repo_label(match["domain"], match["user"], match["repo"])),
            ("github-num", f"#{match['num']}"),
        ]
    if match := REPO_PATTERN.match(href):
        return [("github-repo", _repo_label(match["domain"], match["user"], match["repo"]))]
    return None


def rewrite_git_links(soup: BeautifulSoup, resolver: DiscordResolver | None = None) -> None:
    """Turn ``<a href=X>X</a>`` pointing at a repo/commit/compare/PR into a badge.

    Links with custom text, nested markup or no href are left alone.
    """
    for link in soup.find_all("a"):
        href = link.get("href")
        if not href or not isinstance(href, str):
            continue
        children = list(link.children)
        if len(children) != 1 or type(children[0]) is not NavigableString:
            continue
        if str(children[0]) != href:
            continue

        parts = _badge_parts(href)
        if parts is None:
            continue

        link["class"] = ["github-commit"]
        link.clear()
        for css_class, text in parts:
            span = soup.new_tag("span", attrs={"class": css_class})
            span.string = text
            link.append(span)


# ---------------------------------------------------------------------------
# 6. Link attributes
# ---------------------------------------------------------------------------
def add_link_attributes(soup: BeautifulSoup, resolver: DiscordResolver | None = None) -> None:
    """Open every link in a new tab without leaking opener or referrer."""
    for link in soup.find_all("a"):
        link["target"] = "_blank"
        existing = link.get("rel") or []
        if isinstance(existing, str):
            existing = existing.split()
        link["rel"] = list(existing) + [r for r in LINK_REL if r not in existing]


DEFAULT_STAGES: tuple[Stage, ...] = (
    sanitize,
    substitute_mentions,
    rewrite_git_links,
    add_link_attributes,
)


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------
class ContentRenderer:
    """Render chat Markdown into dashboard-safe HTML.

    Usage::

        renderer = ContentRenderer(resolver)
        html = await renderer.render("shipped <@123>'s fix in https://github.com/a/b/pull/7")
    """

    def __init__(
        self,
        resolver: DiscordResolver,
        stages: Sequence[Stage] = DEFAULT_STAGES,
    ) -> None:
        self.resolver = resolver
        self.stages = tuple(stages)

    async def render(self, markdown: str) -> str:
        if not markdown:
            return ""
        soup = markdown_to_soup(markdown)
        for stage in self.stages:
            result = stage(soup, self.resolver)
            if inspect.isawaitable(result):
                await result
        return str(soup).strip()
